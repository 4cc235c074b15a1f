"""Module for the PathResolver class.

Turns untrusted path strings into paths confined to the storage root, and
mints fresh identifier-based paths for anonymous uploads.
"""

import logging
import mimetypes
import os
import re
import secrets
import string
from pathlib import Path
from pathlib import PurePosixPath
from urllib.parse import unquote
import attr

from .errors import InvalidPath

logger = logging.getLogger(__name__)

BASE62 = string.digits + string.ascii_uppercase + string.ascii_lowercase
EXTENSION = re.compile(r'^[A-Za-z0-9]{1,16}$')
SEPARATORS = set(['/', '\\', os.sep, os.altsep]) - set([None])
NAME_MAX = 255  # bytes, per segment


def path_is_parent(parent, child):
    parent = Path(parent).expanduser().resolve()
    child = Path(child).expanduser().resolve()
    return os.path.commonpath([parent]) == os.path.commonpath([parent, child])


def confine(root, target):
    """Resolve `target` and make sure it lies strictly beneath `root`.

    Symlinks are followed wherever they exist, so a link planted by an earlier
    write cannot be used to walk out of the root.

    Args:
        root (Path): Absolute, already resolved storage root.
        target (Path): Candidate location under `root`.

    Returns:
        Path: The resolved form of `target`.

    Raises:
        InvalidPath: If `target` resolves to `root` itself or outside of it.
    """
    try:
        resolved = Path(target).resolve()
    except (OSError, RuntimeError) as e:  # symlink loops
        raise InvalidPath('Invalid path: {0} cannot be resolved: {1}'.format(target, e)) from e
    if resolved == root or not path_is_parent(root, resolved):
        logger.warning('path escapes the storage root: %s', target)
        raise InvalidPath('Invalid path: {0} is outside of {1}'.format(target, root))
    return resolved


def check_segment(segment):
    if segment in ('', '.'):
        raise InvalidPath('Invalid path segment: {0!r}'.format(segment))
    if segment == '..':
        raise InvalidPath('Invalid path: contains ".."')
    if '\x00' in segment:
        raise InvalidPath('Invalid path: contains a null byte')
    if any(sep in segment for sep in SEPARATORS):
        raise InvalidPath('Invalid path segment: {0!r} contains a separator'.format(segment))
    if len(segment.encode('utf-8', 'surrogateescape')) > NAME_MAX:
        raise InvalidPath('Invalid path segment: longer than {0} bytes'.format(NAME_MAX))


def file_extension(filename=None, content_type=None):
    """Return the extension (without the dot) to give a generated file name,
    or ``None``. The client's file name wins over its content type."""
    if filename:
        # browsers on windows may send the full client side path
        suffix = PurePosixPath(filename.replace('\\', '/')).suffix[1:]
        if EXTENSION.match(suffix):
            return suffix
    if content_type:
        guessed = mimetypes.guess_extension(content_type.split(';')[0].strip())
        if guessed and EXTENSION.match(guessed[1:]):
            return guessed[1:]
    return None


@attr.s(auto_attribs=True, frozen=True)
class ResolvedPath():
    """Normalized, root relative path.

    Attributes:
        parts (tuple): Path segments, none of them empty, ``.`` or ``..``.
    """
    parts: tuple = attr.ib(converter=tuple)

    @parts.validator
    def _check_parts(self, attribute, value):
        if not value:
            raise InvalidPath('Invalid path: no segments')
        for segment in value:
            if not isinstance(segment, str):
                raise InvalidPath('Invalid path segment: {0!r}'.format(segment))
            check_segment(segment)

    @property
    def name(self):
        return self.parts[-1]

    def as_posix(self):
        return '/'.join(self.parts)

    def __str__(self):
        return self.as_posix()


@attr.s(auto_attribs=True, kw_only=True)
class PathResolver():
    """Maps client supplied paths onto the storage root.

    Attributes:
        root (str): Directory path used as root of storage space.
        id_length (int, optional): Length of generated identifiers. Defaults
            to ``8``.
    """
    root: str = attr.ib(converter=Path)
    id_length: int = 8

    def __attrs_post_init__(self):
        self.root = self.root.resolve()
        assert self.id_length > 0

    def resolve(self, raw):
        """Validate an untrusted path string.

        Percent-encoding is decoded before anything else so that encoded
        traversal is caught. Empty and ``.`` segments are dropped, a leading
        ``/`` is treated as relative to the root, and ``..`` is an error.

        Args:
            raw (str): Path as received from the client.

        Returns:
            ResolvedPath: The validated path.

        Raises:
            InvalidPath: If the path is empty, malformed or escapes the root.
        """
        if not isinstance(raw, str):
            raise InvalidPath('Invalid path: expected str, got {0}'.format(type(raw).__name__))
        if not raw:
            raise InvalidPath('Invalid path: path is empty')
        try:
            decoded = unquote(raw, errors='strict')
        except UnicodeDecodeError as e:
            raise InvalidPath('Invalid path: {0!r} is not valid UTF-8'.format(raw)) from e

        segments = [segment for segment in decoded.split('/') if segment not in ('', '.')]
        try:
            path = ResolvedPath(segments)
        except InvalidPath:
            logger.warning('invalid file path: %r', raw)
            raise
        confine(self.root, self.abspath(path))
        return path

    def generate(self, original_filename=None, content_type=None):
        """Mint a fresh path from a random base62 token.

        The token keeps the extension of `original_filename`, falling back to
        one guessed from `content_type`. Whether the path is free on disk is
        only known when the engine tries to create it.

        Returns:
            ResolvedPath: Single segment path such as ``ab12CD34.txt``.
        """
        token = ''.join(secrets.choice(BASE62) for _ in range(self.id_length))
        extension = file_extension(original_filename, content_type)
        if extension:
            token = '{0}.{1}'.format(token, extension)
        path = ResolvedPath((token,))
        confine(self.root, self.abspath(path))
        return path

    def abspath(self, path):
        return self.root.joinpath(*path.parts)
