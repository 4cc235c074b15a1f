#!/usr/bin/env python3

import logging
import shutil
import sys
from datetime import datetime
import click
import humanize
from folio import Folio
from folio import FolioConfig
from folio import FolioError
from folio import IsDirectory
from folio.config import DEFAULT_MAX_FILE_SIZE
from folio.web import create_app


@click.group()
@click.option("--root", type=click.Path(file_okay=False, resolve_path=True),
              envvar='FOLIO_UPLOADS_PATH', default='./uploads', show_default=True)
@click.option("--tmproot", type=click.Path(file_okay=False, resolve_path=True),
              envvar='FOLIO_TMP_PATH')
@click.option('--max-size', type=click.IntRange(min=0), envvar='FOLIO_MAX_FILE_SIZE',
              default=DEFAULT_MAX_FILE_SIZE, show_default=True,
              help='Upload limit in bytes, 0 for none.')
@click.option('--id-length', type=click.IntRange(1, 64), envvar='FOLIO_ID_LENGTH', default=8)
@click.option('--upload-attempts', type=click.IntRange(min=1), envvar='FOLIO_UPLOAD_ATTEMPTS',
              default=16, show_default=True)
@click.option('--verbose', is_flag=True)
@click.pass_context
def cli(ctx, root, tmproot, max_size, id_length, upload_attempts, verbose):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    config = FolioConfig(uploads_path=root, tmp_path=tmproot,
                         max_file_size=max_size, id_length=id_length,
                         upload_attempts=upload_attempts)
    ctx.obj = Folio(config)
    if verbose:
        print(ctx.obj, file=sys.stderr)


@cli.command()
@click.argument("infiles", type=click.File(mode='rb'), nargs=-1)
@click.pass_obj
def put(obj, infiles):
    for infile in infiles:
        try:
            item = obj.upload(infile, filename=infile.name)
        except FolioError as e:
            raise click.ClickException(str(e))
        print("put:", infile.name, item.path)


@cli.command()
@click.argument("path", type=str)
@click.argument("infile", type=click.File(mode='rb'))
@click.pass_obj
def create(obj, path, infile):
    try:
        item = obj.engine.create_only(obj.resolve(path), infile)
    except FolioError as e:
        raise click.ClickException(str(e))
    print("create:", item.path, item.outcome.value)


@cli.command()
@click.argument("path", type=str)
@click.argument("infile", type=click.File(mode='rb'))
@click.pass_obj
def upsert(obj, path, infile):
    try:
        item = obj.engine.upsert(obj.resolve(path), infile)
    except FolioError as e:
        raise click.ClickException(str(e))
    print("upsert:", item.path, item.outcome.value)


@cli.command()
@click.argument("path", type=str)
@click.pass_obj
def get(obj, path):
    try:
        stream = obj.engine.read(obj.resolve(path))
    except FolioError as e:
        raise click.ClickException(str(e))
    with stream:
        shutil.copyfileobj(stream, click.get_binary_stream('stdout'))


@cli.command()
@click.argument("paths", type=str, nargs=-1)
@click.pass_obj
def exists(obj, paths):
    for path in paths:
        try:
            ans = obj.engine.exists(obj.resolve(path))
        except FolioError as e:
            ans = e
        print("exists:", path + ':', ans)


@cli.command()
@click.argument("paths", type=str, nargs=-1)
@click.pass_obj
def info(obj, paths):
    for path in paths:
        try:
            item = obj.engine.info(obj.resolve(path))
        except FolioError as e:
            print("info:", path + ':', e, file=sys.stderr)
            continue
        modified = humanize.naturaltime(datetime.fromtimestamp(item.mtime))
        print(item.path, humanize.naturalsize(item.size, binary=True), modified)


@cli.command()
@click.argument("paths", type=str, nargs=-1)
@click.pass_obj
def delete(obj, paths):
    for path in paths:
        try:
            ans = obj.engine.delete(obj.resolve(path)).value
        except FileNotFoundError:
            ans = False
        except IsDirectory:
            ans = 'is a directory'
        except FolioError as e:
            ans = e
        print("delete:", path + ':', ans)


@cli.command()
@click.pass_obj
def iterate(obj):
    for path in obj.engine.files():
        print(path)


@cli.command()
@click.option('--host', envvar='FOLIO_HOST', default='127.0.0.1', show_default=True)
@click.option('--port', type=int, envvar='FOLIO_PORT', default=8080, show_default=True)
@click.pass_obj
def serve(obj, host, port):
    app = create_app(obj.config)
    app.run(host=host, port=port)


if __name__ == '__main__':
    cli()
