"""Change detection for loaded source modules.

Compares the host runtime's loaded-file set against a cache of
fingerprints taken the last time each file was observed:
- Files seen for the first time establish a baseline
- Files whose fingerprint moved are reported as changed
- Files that dropped out of the loaded set are reported once, then forgotten
"""

import logging

from classrefresh.boundary import LoadedFileSet
from classrefresh.fingerprint import UNSEEN, Fingerprint
from classrefresh.identity import file_to_module, module_to_file

logger = logging.getLogger(__name__)


class ChangeTracker:
    """Tracks fingerprints of loaded source files.

    The cache lives on the instance, so independent trackers can watch
    independent scopes. It is not persisted: it models what this process has
    already seen.
    """

    def __init__(self, files: LoadedFileSet):
        self.files = files
        self._cache: dict[str, Fingerprint] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, identity: object) -> bool:
        if not isinstance(identity, str):
            return False
        return module_to_file(identity) in self._cache

    def tracked(self) -> dict[str, Fingerprint]:
        """Return a copy of the fingerprint cache, keyed by source key."""
        return dict(self._cache)

    def scan(self) -> list[str]:
        """Detect modules whose source changed since they were last observed.

        Returns:
            Identities needing a refresh. Order is not meaningful across
            unrelated modules.
        """
        loaded = self.files.snapshot()
        changed: list[str] = []

        # Tracked files that are no longer loaded must be force-refreshed
        for key in [k for k in self._cache if k not in loaded]:
            logger.debug(f"{key} is no longer loaded")
            del self._cache[key]
            changed.append(file_to_module(key))

        for key, path in loaded.items():
            current = Fingerprint.of(path)
            previous = self._cache.get(key)
            if previous is None:
                self._cache[key] = current
                continue
            if current != previous:
                logger.debug(f"{key} changed on disk")
                changed.append(file_to_module(key))

        if changed:
            logger.info(f"Detected {len(changed)} changed modules")
        return changed

    def record_loaded(self, identity: str) -> None:
        """Store a fresh fingerprint for ``identity`` after a load attempt."""
        key = module_to_file(identity)
        path = self.files.locate(key)
        fingerprint = Fingerprint.of(path)
        if fingerprint == UNSEEN:
            logger.debug(f"No source on disk for {identity}")
        self._cache[key] = fingerprint

    def forget(self, identity: str) -> None:
        """Drop ``identity`` from the cache ahead of an unload."""
        self._cache.pop(module_to_file(identity), None)
