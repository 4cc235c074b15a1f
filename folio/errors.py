"""Errors raised by the path resolver and the storage engine.

Each error carries the HTTP status code the web layer answers with. The
builtin bases let callers keep catching ``FileNotFoundError`` and friends.
"""


class FolioError(Exception):
    """Base class for every error reported by folio.

    Attributes:
        status_code (int): HTTP status associated with the error.
    """
    status_code = 500


class InvalidPath(FolioError, ValueError):
    """Malformed path, or one that would land outside the storage root."""
    status_code = 400


class Conflict(FolioError, FileExistsError):
    """Something already occupies a path where exclusivity was required."""
    status_code = 409


class TooLarge(FolioError):
    """Content exceeds the configured maximum size."""
    status_code = 413


class NotFound(FolioError, FileNotFoundError):
    """No file at the path, or the path is a directory."""
    status_code = 404


class IsDirectory(FolioError, IsADirectoryError):
    """A file operation targeted a directory."""
    status_code = 400


class IOFailure(FolioError, OSError):
    """The underlying filesystem failed (disk full, permission denied...)."""
    status_code = 500
