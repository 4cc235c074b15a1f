# -*- coding: utf-8 -*-
"""folio is a small network file store.

Clients upload, fetch, check and delete files addressed either by a
generated short identifier or by their own hierarchical path.

The parts with real invariants live here:

- Untrusted path strings never resolve outside the storage root.
- Concurrent writers never corrupt content or both win an exclusive create.
- "Already exists" and "missing" answers are race free.
"""

from .__meta__ import (
    __title__,
    __summary__,
    __version__,
    __author__,
    __license__
)

from .config import FolioConfig
from .errors import FolioError, InvalidPath, Conflict, TooLarge, NotFound, IsDirectory, IOFailure
from .folio import Folio
from .resolver import PathResolver, ResolvedPath, path_is_parent
from .storage import StorageEngine, StagedFile, StoredObject, Kind, Outcome


__all__ = ('Folio', 'FolioConfig', 'PathResolver', 'ResolvedPath', 'StorageEngine',
           'StagedFile', 'StoredObject', 'Kind', 'Outcome', 'path_is_parent',
           'FolioError', 'InvalidPath', 'Conflict', 'TooLarge', 'NotFound',
           'IsDirectory', 'IOFailure')
