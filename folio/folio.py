"""Module for the Folio class."""

import logging
import attr

from .config import FolioConfig
from .errors import Conflict
from .resolver import PathResolver
from .storage import StorageEngine

logger = logging.getLogger(__name__)


@attr.s(auto_attribs=True)
class Folio():
    """A configured store: one resolver and one engine sharing a root.

    Attributes:
        config (FolioConfig): Store settings.
    """
    config: FolioConfig = attr.ib(factory=FolioConfig)

    def __attrs_post_init__(self):
        self.resolver = PathResolver(root=self.config.uploads_path,
                                     id_length=self.config.id_length)
        self.engine = StorageEngine(root=self.config.uploads_path,
                                    tmproot=self.config.tmp_path,
                                    max_size=self.config.max_file_size)
        self.root = self.engine.root

    def resolve(self, raw):
        return self.resolver.resolve(raw)

    def upload(self, content, filename=None, content_type=None, length=None):
        """Store `content` under a freshly generated identifier.

        The content is staged once; each attempt only links the staged file
        under a new name, so a collision costs no rewrite.

        Args:
            content (mixed): Anything :meth:`StorageEngine.stage` accepts.
            filename (str, optional): Client file name, for its extension.
            content_type (str, optional): Used for the extension when the
                file name has none.
            length (int, optional): Announced size.

        Returns:
            StoredObject: The stored file.

        Raises:
            Conflict: If every attempt hit an existing file.
            TooLarge: If the content exceeds the configured limit.
        """
        attempts = self.config.upload_attempts
        with self.engine.stage(content, length) as staged:
            for attempt in range(1, attempts + 1):
                path = self.resolver.generate(filename, content_type)
                try:
                    return self.engine.create_only(path, staged)
                except Conflict:
                    logger.debug('generated id %s is taken (attempt %d of %d)', path, attempt, attempts)
        raise Conflict('no free identifier after {0} attempts'.format(attempts))
