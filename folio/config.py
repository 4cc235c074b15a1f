"""Settings for a folio store and the process serving it."""

import os
from pathlib import Path
import attr

ENV_PREFIX = 'FOLIO_'
DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MiB


def optional_int(value):
    if value is None or value == '':
        return None
    return int(value)


@attr.s(auto_attribs=True, kw_only=True)
class FolioConfig():
    """Configuration for a folio store.

    Attributes:
        uploads_path (str): Storage root. Defaults to ``./uploads``.
        tmp_path (str, optional): Staging directory, on the same filesystem
            as `uploads_path`. Defaults to ``uploads_path/_tmp``.
        max_file_size (int, optional): Upload limit in bytes, ``None`` or
            ``0`` for no limit. Defaults to 5 MiB.
        id_length (int, optional): Length of generated identifiers.
        upload_attempts (int, optional): How many identifiers an anonymous
            upload tries before giving up.
        host (str, optional): Address the HTTP server binds to.
        port (int, optional): Port the HTTP server listens on.
    """
    uploads_path: str = attr.ib(default='./uploads', converter=Path)
    tmp_path: str = attr.ib(default=None, converter=attr.converters.optional(Path))
    max_file_size: int = attr.ib(default=DEFAULT_MAX_FILE_SIZE, converter=optional_int)
    id_length: int = attr.ib(default=8, converter=int)
    upload_attempts: int = attr.ib(default=16, converter=int)
    host: str = '127.0.0.1'
    port: int = attr.ib(default=8080, converter=int)

    def __attrs_post_init__(self):
        if not self.max_file_size:
            self.max_file_size = None
        if self.id_length < 1:
            raise ValueError('id_length must be positive, got {0}'.format(self.id_length))
        if self.upload_attempts < 1:
            raise ValueError('upload_attempts must be positive, got {0}'.format(self.upload_attempts))

    @classmethod
    def from_env(cls, environ=None):
        """Build a config from ``FOLIO_*`` variables, e.g.
        ``FOLIO_UPLOADS_PATH`` or ``FOLIO_MAX_FILE_SIZE``. Unset variables
        keep their defaults."""
        if environ is None:
            environ = os.environ
        settings = {}
        for field in attr.fields(cls):
            name = ENV_PREFIX + field.name.upper()
            if name in environ:
                settings[field.name] = environ[name]
        return cls(**settings)
