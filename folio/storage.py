"""Module for the StorageEngine class.

All reads and writes beneath the storage root go through here. Content is
staged in a temporary file first and only ever becomes visible through
``link()`` (exclusive create) or ``rename()`` (replace), so nobody observes a
half written file and two creators can never both win.
"""

import enum
import functools
import logging
import os
import stat
from pathlib import Path
from tempfile import NamedTemporaryFile
import attr

from .errors import Conflict
from .errors import FolioError
from .errors import InvalidPath
from .errors import IOFailure
from .errors import IsDirectory
from .errors import NotFound
from .errors import TooLarge
from .resolver import ResolvedPath
from .resolver import confine
from .resolver import path_is_parent

logger = logging.getLogger(__name__)

BLOCK_SIZE = 256 * 128 * 2
TMPDIR = '_tmp'


class Kind(enum.Enum):
    ABSENT = 'absent'
    FILE = 'file'
    DIRECTORY = 'directory'


class Outcome(enum.Enum):
    CREATED = 'created'
    REPLACED = 'replaced'
    DELETED = 'deleted'


def surface_io_errors(func):
    """Report unexpected filesystem errors as :class:`IOFailure`."""
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except FolioError:
            raise
        except OSError as e:
            logger.error('%s failed: %s', func.__name__, e)
            raise IOFailure('{0} failed: {1}'.format(func.__name__, e)) from e
    return wrapper


def iter_chunks(content):
    """Yield `content` as a sequence of chunks.

    `content` may be bytes or str, a readable object, a path to a local file,
    or any iterable of chunks.
    """
    if isinstance(content, (bytes, bytearray, memoryview, str)):
        yield content
    elif isinstance(content, os.PathLike):
        with open(content, 'rb') as handle:
            yield from iter_chunks(handle)
    elif hasattr(content, 'read'):
        while True:
            chunk = content.read(BLOCK_SIZE)
            if not chunk:
                break
            yield chunk
    else:
        yield from content


def fsync_dir(path):
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


@attr.s(auto_attribs=True)
class StagedFile():
    """Fully written temporary file waiting to be committed.

    Attributes:
        name (Path): Location of the temporary file.
        size (int): Number of bytes written.
    """
    name: Path = attr.ib(converter=Path)
    size: int

    def discard(self):
        try:
            os.unlink(self.name)
        except FileNotFoundError:
            pass  # consumed by a rename

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.discard()


@attr.s(auto_attribs=True)
class StoredObject():
    """File stored beneath the root.

    Attributes:
        path (ResolvedPath): Root relative path.
        abspath (str): Absolute location of the file on disk.
        size (int): Size in bytes.
        mtime (float, optional): Last modification time, when it was read.
        outcome (Outcome, optional): What the operation that returned this
            object did. ``None`` for plain lookups.
    """
    path: ResolvedPath
    abspath: str = attr.ib(converter=Path)
    size: int
    mtime: float = None
    outcome: Outcome = None


@attr.s(auto_attribs=True, kw_only=True)
class StorageEngine():
    """Filesystem backed object store.

    Attributes:
        root (str): Directory path used as root of storage space.
        tmproot (str, optional): Directory for staged uploads. Must be on the
            same filesystem as `root`. Defaults to ``root/_tmp``; paths inside
            it are refused.
        max_size (int, optional): Largest accepted content in bytes. ``None``
            disables the limit.
        fmode (int, optional): File mode of stored files. Defaults to
            ``0o644``.
        dmode (int, optional): Mode for created directories. Defaults to
            ``0o755``.
        fsync (bool, optional): Flush content and directory entries to disk
            before reporting success. Defaults to ``True``.
    """
    root: str = attr.ib(converter=Path)
    tmproot: str = attr.ib(default=None, converter=attr.converters.optional(Path))
    max_size: int = None
    fmode: int = 0o644
    dmode: int = 0o755
    fsync: bool = True

    def __attrs_post_init__(self):
        self.root = self.root.resolve()
        if self.tmproot is None:
            self.tmproot = self.root / TMPDIR
        self.tmproot = self.tmproot.resolve()
        if path_is_parent(self.tmproot, self.root):
            raise ValueError('tmproot {0} must not contain the storage root {1}'.format(self.tmproot, self.root))
        if self.max_size is not None:
            assert self.max_size >= 0

    def realpath(self, path):
        """Absolute location of `path`, re-checked against the root.

        Raises:
            InvalidPath: If `path` escapes the root or points into `tmproot`.
        """
        if not isinstance(path, ResolvedPath):
            raise InvalidPath('Invalid path: expected ResolvedPath, got {0!r}'.format(path))
        target = self.root.joinpath(*path.parts)
        resolved = confine(self.root, target)
        if path_is_parent(self.tmproot, resolved):
            logger.warning('path points into the staging area: %s', path)
            raise InvalidPath('Invalid path: {0} is reserved'.format(path))
        return target

    def _check_size(self, size):
        if self.max_size is not None and size > self.max_size:
            raise TooLarge('content of {0} bytes exceeds the limit of {1} bytes'.format(size, self.max_size))

    def _mktemp(self):
        try:
            tmp = NamedTemporaryFile(delete=False, dir=self.tmproot, prefix='_tmp')
        except FileNotFoundError:
            os.makedirs(self.tmproot, self.dmode, exist_ok=True)
            tmp = NamedTemporaryFile(delete=False, dir=self.tmproot, prefix='_tmp')

        if self.fmode is not None:
            os.chmod(tmp.name, self.fmode)

        return tmp

    def _copy(self, content, tmp):
        size = 0
        for chunk in iter_chunks(content):
            if isinstance(chunk, str):
                chunk = bytes(chunk, 'UTF8')
            size += len(chunk)
            self._check_size(size)
            tmp.write(chunk)
        tmp.flush()
        if self.fsync:
            os.fsync(tmp.fileno())
        tmp.close()
        return size

    @surface_io_errors
    def stage(self, content, length=None):
        """Write `content` to a private temporary file.

        Args:
            content (mixed): Bytes, str, readable object, path or iterable of
                chunks.
            length (int, optional): Announced size, checked before any I/O.

        Returns:
            StagedFile: The staged content. Use it as a context manager, or
            call :meth:`StagedFile.discard` when done.

        Raises:
            TooLarge: If `length` or the actual size exceeds `max_size`.
        """
        if length is not None:
            self._check_size(length)
        tmp = self._mktemp()
        try:
            size = self._copy(content, tmp)
        except BaseException:
            tmp.close()
            os.unlink(tmp.name)
            raise
        return StagedFile(tmp.name, size)

    def _staging(self, content, length):
        if isinstance(content, StagedFile):
            # owned by the caller, who may commit it again
            return _Borrowed(content)
        return self.stage(content, length)

    def _mkparents(self, target, path):
        try:
            os.makedirs(target.parent, self.dmode, exist_ok=True)
        except (FileExistsError, NotADirectoryError) as e:
            logger.warning('a file occupies a parent of %s', path)
            raise Conflict('a file occupies a parent directory of {0}'.format(path)) from e

    def _synced(self, target):
        if self.fsync and os.name == 'posix':
            fsync_dir(target.parent)

    def _kind(self, target):
        try:
            st = os.stat(target)
        except (FileNotFoundError, NotADirectoryError):
            return Kind.ABSENT
        if stat.S_ISDIR(st.st_mode):
            return Kind.DIRECTORY
        if stat.S_ISREG(st.st_mode):
            return Kind.FILE
        return Kind.ABSENT

    @surface_io_errors
    def kind(self, path):
        """Return whether `path` is a file, a directory or absent."""
        return self._kind(self.realpath(path))

    def exists(self, path):
        """Check whether a regular file exists at `path`."""
        return self.kind(path) is Kind.FILE

    @surface_io_errors
    def create_only(self, path, content, length=None):
        """Store `content` at `path` unless something is already there.

        The file is linked into place in one step, so of two concurrent
        creators exactly one succeeds.

        Returns:
            StoredObject: With ``outcome`` set to ``Outcome.CREATED``.

        Raises:
            Conflict: If `path` (or one of its parents) is already taken.
            TooLarge: If the content exceeds `max_size`.
        """
        target = self.realpath(path)
        with self._staging(content, length) as staged:
            self._mkparents(target, path)
            try:
                os.link(staged.name, target)
            except FileExistsError as e:
                logger.warning('file already exists: %s', path)
                raise Conflict('file already exists: {0}'.format(path)) from e
            self._synced(target)
        logger.info('file created: %s', path)
        return StoredObject(path, target, staged.size, outcome=Outcome.CREATED)

    @surface_io_errors
    def upsert(self, path, content, length=None):
        """Store `content` at `path`, replacing any previous file.

        Readers see either the old or the new content, never a mix.

        Returns:
            StoredObject: With ``outcome`` ``Outcome.CREATED`` if nothing was
            at `path`, ``Outcome.REPLACED`` otherwise.

        Raises:
            IsDirectory: If `path` is a directory.
            Conflict: If a file occupies one of the parents of `path`.
            TooLarge: If the content exceeds `max_size`.
        """
        target = self.realpath(path)
        with self._staging(content, length) as staged:
            self._mkparents(target, path)
            try:
                os.link(staged.name, target)
                outcome = Outcome.CREATED
            except FileExistsError:
                if self._kind(target) is Kind.DIRECTORY:
                    logger.warning('path is a directory: %s', path)
                    raise IsDirectory('path is a directory: {0}'.format(path))
                try:
                    os.replace(staged.name, target)
                except IsADirectoryError as e:
                    logger.warning('path is a directory: %s', path)
                    raise IsDirectory('path is a directory: {0}'.format(path)) from e
                outcome = Outcome.REPLACED
            self._synced(target)
        if outcome is Outcome.CREATED:
            logger.info('file created: %s', path)
        else:
            logger.info('file updated: %s', path)
        return StoredObject(path, target, staged.size, outcome=outcome)

    @surface_io_errors
    def read(self, path):
        """Open the file at `path` for reading.

        Returns:
            Buffer: Binary file object. It keeps reading the content that was
            current when it was opened.

        Raises:
            NotFound: If nothing is at `path` or it is not a regular file.
        """
        target = self.realpath(path)
        flags = os.O_RDONLY | getattr(os, 'O_BINARY', 0) | getattr(os, 'O_NONBLOCK', 0)
        try:
            fd = os.open(target, flags)
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as e:
            raise NotFound('file not found: {0}'.format(path)) from e
        try:
            if not stat.S_ISREG(os.fstat(fd).st_mode):
                raise NotFound('file not found: {0}'.format(path))
            return os.fdopen(fd, 'rb')
        except BaseException:
            os.close(fd)
            raise

    @surface_io_errors
    def info(self, path):
        """Return the :class:`StoredObject` at `path`.

        Raises:
            NotFound: If no regular file is at `path`.
        """
        target = self.realpath(path)
        try:
            st = os.stat(target)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFound('file not found: {0}'.format(path)) from e
        if not stat.S_ISREG(st.st_mode):
            raise NotFound('file not found: {0}'.format(path))
        return StoredObject(path, target, st.st_size, mtime=st.st_mtime)

    @surface_io_errors
    def delete(self, path):
        """Delete the file at `path`.

        Returns:
            Outcome: ``Outcome.DELETED``.

        Raises:
            NotFound: If nothing is at `path`.
            IsDirectory: If `path` is a directory.
        """
        target = self.realpath(path)
        kind = self._kind(target)
        if kind is Kind.DIRECTORY:
            logger.warning('path is not a file: %s', path)
            raise IsDirectory('path is not a file: {0}'.format(path))
        if kind is Kind.ABSENT:
            logger.warning('file not found: %s', path)
            raise NotFound('file not found: {0}'.format(path))
        try:
            os.remove(target)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFound('file not found: {0}'.format(path)) from e
        logger.info('file deleted: %s', path)
        return Outcome.DELETED

    def files(self):
        """Return generator that yields the path of every stored file."""
        for folder, dirs, files in os.walk(self.root):
            folder = Path(folder)
            dirs[:] = sorted(name for name in dirs if folder / name != self.tmproot)
            parts = folder.relative_to(self.root).parts
            for name in sorted(files):
                try:
                    mode = os.lstat(folder / name).st_mode
                except FileNotFoundError:
                    # removed since the directory was listed
                    continue
                if stat.S_ISREG(mode):
                    yield ResolvedPath(parts + (name,))

    def __contains__(self, path):
        return self.exists(path)

    def __iter__(self):
        return self.files()


@attr.s(auto_attribs=True)
class _Borrowed():
    staged: StagedFile

    def __enter__(self):
        return self.staged

    def __exit__(self, exc_type, exc_value, traceback):
        pass
