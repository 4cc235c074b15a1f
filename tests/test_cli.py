# -*- coding: utf-8 -*-

import time
import pytest
from click.testing import CliRunner
from folio.cli.cli import cli

TIMESTAMP = str(time.time())


@pytest.fixture
def testpath_fsroot(tmpdir):
    return tmpdir.mkdir('folio_root' + TIMESTAMP)


@pytest.fixture
def testfile_outside_fsroot(tmpdir):
    infile = tmpdir.mkdir('folio_input_files_' + TIMESTAMP).join('folio.txt')
    infile.write(b'foo', mode='wb')
    return infile


@pytest.fixture
def run(testpath_fsroot):
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(cli, ['--root', str(testpath_fsroot)] + [str(arg) for arg in args])
    return invoke


def test_folio_cli_upsert_and_get(run, testfile_outside_fsroot):
    result = run('upsert', 'a/b.txt', testfile_outside_fsroot)
    assert result.exit_code == 0
    assert 'upsert: a/b.txt created' in result.output

    result = run('upsert', 'a/b.txt', testfile_outside_fsroot)
    assert 'upsert: a/b.txt replaced' in result.output

    result = run('get', 'a/b.txt')
    assert result.exit_code == 0
    assert result.stdout_bytes == b'foo'


def test_folio_cli_create_conflict(run, testfile_outside_fsroot):
    assert run('create', 'a.txt', testfile_outside_fsroot).exit_code == 0
    result = run('create', 'a.txt', testfile_outside_fsroot)
    assert result.exit_code != 0
    assert 'already exists' in result.output


def test_folio_cli_rejects_traversal(run, testfile_outside_fsroot):
    result = run('create', '../escape.txt', testfile_outside_fsroot)
    assert result.exit_code != 0
    assert run('get', '%2e%2e/etc/passwd').exit_code != 0


def test_folio_cli_put(run, testpath_fsroot, testfile_outside_fsroot):
    result = run('put', testfile_outside_fsroot)
    assert result.exit_code == 0
    name = result.output.split()[-1]
    assert name.endswith('.txt')
    assert testpath_fsroot.join(name).read_binary() == b'foo'


def test_folio_cli_exists(run, testfile_outside_fsroot):
    run('create', 'a.txt', testfile_outside_fsroot)
    result = run('exists', 'a.txt', 'missing.txt')
    assert 'exists: a.txt: True' in result.output
    assert 'exists: missing.txt: False' in result.output


def test_folio_cli_info(run, testfile_outside_fsroot):
    run('create', 'a.txt', testfile_outside_fsroot)
    result = run('info', 'a.txt')
    assert result.exit_code == 0
    assert result.output.startswith('a.txt 3 Bytes')


def test_folio_cli_delete(run, testpath_fsroot, testfile_outside_fsroot):
    run('create', 'd/a.txt', testfile_outside_fsroot)
    result = run('delete', 'd/a.txt', 'd/a.txt', 'd')
    assert 'delete: d/a.txt: deleted' in result.output
    assert 'delete: d/a.txt: False' in result.output
    assert 'delete: d: is a directory' in result.output
    assert not testpath_fsroot.join('d', 'a.txt').check()


def test_folio_cli_iterate(run, testfile_outside_fsroot):
    run('create', 'x/y.txt', testfile_outside_fsroot)
    run('create', 'z.txt', testfile_outside_fsroot)
    result = run('iterate')
    assert sorted(result.output.split()) == ['x/y.txt', 'z.txt']


def test_folio_cli_max_size(testpath_fsroot, testfile_outside_fsroot):
    result = CliRunner().invoke(cli, ['--root', str(testpath_fsroot), '--max-size', '2',
                                      'create', 'a.txt', str(testfile_outside_fsroot)])
    assert result.exit_code != 0
    assert 'exceeds' in result.output


def test_folio_cli_upload_attempts(testpath_fsroot, testfile_outside_fsroot):
    runner = CliRunner()
    result = runner.invoke(cli, ['--root', str(testpath_fsroot), '--upload-attempts', '1',
                                 'put', str(testfile_outside_fsroot)])
    assert result.exit_code == 0
    assert testpath_fsroot.join(result.output.split()[-1]).read_binary() == b'foo'

    result = runner.invoke(cli, ['--root', str(testpath_fsroot), '--upload-attempts', '0',
                                 'put', str(testfile_outside_fsroot)])
    assert result.exit_code == 2

    result = runner.invoke(cli, ['--root', str(testpath_fsroot), 'put', str(testfile_outside_fsroot)],
                           env={'FOLIO_UPLOAD_ATTEMPTS': '0'})
    assert result.exit_code == 2
