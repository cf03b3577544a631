"""Reload engine.

Handles:
- Detecting changed modules (via ChangeTracker)
- Expanding each change to its dependency closure
- Unloading the whole closure, then loading it back in the same order
- Reporting load failures without aborting the batch
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from classrefresh.boundary import LoadedFileSet, Loader, TypeRegistry, Unloader
from classrefresh.errors import LoadFailure, RefreshError
from classrefresh.identity import module_to_file, normalize_identity
from classrefresh.resolver import DEFAULT_MAX_DEPTH, DependencyResolver
from classrefresh.tracker import ChangeTracker

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 100


class RefreshStatus(Enum):
    """Outcome of refreshing one changed module."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED_LOAD = "failed_load"
    FAILED_RESOLUTION = "failed_resolution"


@dataclass
class ModuleRefresh:
    """Result of refreshing one changed module and its dependents."""

    identity: str
    status: RefreshStatus
    closure: list[str] = field(default_factory=list)
    unloaded: list[str] = field(default_factory=list)
    loaded: list[str] = field(default_factory=list)
    failures: list[LoadFailure] = field(default_factory=list)
    error_message: str | None = None


@dataclass
class RefreshReport:
    """Result of one ``refresh()`` pass."""

    changed: list[str]
    results: list[ModuleRefresh] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def ok(self) -> bool:
        return all(
            r.status in (RefreshStatus.SUCCESS, RefreshStatus.SKIPPED) for r in self.results
        )

    @property
    def failures(self) -> list[LoadFailure]:
        return [f for r in self.results for f in r.failures]

    @property
    def reloaded(self) -> list[str]:
        return [identity for r in self.results for identity in r.loaded]


def dedupe_closure(closure: list[str]) -> list[str]:
    """Drop repeated identities, keeping each one's last position.

    The last occurrence of a node in a preorder walk comes after the last
    occurrence of every ancestor, so the result still loads parents first.
    """
    seen: set[str] = set()
    ordered: list[str] = []
    for identity in reversed(closure):
        if identity not in seen:
            seen.add(identity)
            ordered.append(identity)
    ordered.reverse()
    return ordered


class RefreshEngine:
    """Reloads changed modules together with everything that depends on them.

    Flow:
    1. Scan for changed source files
    2. For each change, compute the dependency closure
    3. Keep only identities that are actually loaded
    4. Unload every identity in the closure
    5. Load every identity in the same order, reporting failures

    Load failures are caught and reported, never raised: a broken file
    leaves its module unloaded until the next edit that loads cleanly.
    Resolution errors propagate out of ``refresh_module``; ``refresh`` records
    them per module and carries on.
    """

    def __init__(
        self,
        loader: Loader,
        unloader: Unloader,
        registry: TypeRegistry,
        files: LoadedFileSet,
        tracker: ChangeTracker | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        self.loader = loader
        self.unloader = unloader
        self.registry = registry
        self.files = files
        self.tracker = tracker if tracker is not None else ChangeTracker(files)
        self.resolver = DependencyResolver(registry, max_depth=max_depth)

        self._lock = threading.RLock()
        self._history: deque[RefreshReport] = deque(maxlen=history_size)

    def refresh(self) -> RefreshReport:
        """Reload every module changed since the last scan.

        Returns:
            RefreshReport with one ModuleRefresh per changed module.
        """
        with self._lock:
            changed = self.tracker.scan()
            report = RefreshReport(changed=changed)

            for identity in changed:
                try:
                    result = self.refresh_module(identity)
                except RefreshError as e:
                    logger.error(f"Cannot refresh {identity}: {e}")
                    result = ModuleRefresh(
                        identity=identity,
                        status=RefreshStatus.FAILED_RESOLUTION,
                        error_message=str(e),
                    )
                report.results.append(result)

            if changed:
                logger.info(
                    f"Refresh complete: {len(report.reloaded)} modules reloaded, "
                    f"{len(report.failures)} failures"
                )
                self._history.append(report)
            return report

    def refresh_module(self, identity: str) -> ModuleRefresh:
        """Unload and reload ``identity`` and its dependents.

        Args:
            identity: Module name or source key.

        Raises:
            UnknownMetaclass: If the dependency walk meets an unknown kind.
            DependencyDepthExceeded: If the dependency walk nests too deep.
        """
        identity = normalize_identity(identity)
        closure = dedupe_closure(self.resolver.closure_of(identity))
        to_refresh = [name for name in closure if module_to_file(name) in self.files]

        result = ModuleRefresh(identity=identity, status=RefreshStatus.SUCCESS, closure=closure)
        if not to_refresh:
            logger.debug(f"Nothing loaded in closure of {identity}, skipping")
            result.status = RefreshStatus.SKIPPED
            return result

        logger.debug(f"Refreshing {identity}: {to_refresh}")

        for name in to_refresh:
            self.unload_module(name)
            result.unloaded.append(name)

        for name in to_refresh:
            failure = self.load_module(name)
            if failure is None:
                result.loaded.append(name)
            else:
                result.failures.append(failure)

        if result.failures:
            result.status = RefreshStatus.FAILED_LOAD
            result.error_message = "; ".join(str(f) for f in result.failures)
        return result

    def unload_module(self, identity: str) -> None:
        """Remove ``identity`` from the runtime and stop tracking its file."""
        identity = normalize_identity(identity)
        self.unloader.unload(identity)

        # Some unloaders leave the type descriptor behind
        if self.registry.is_reflective():
            self.registry.remove_descriptor(identity)

        self.tracker.forget(identity)
        logger.debug(f"Unloaded {identity}")

    def load_module(self, identity: str) -> LoadFailure | None:
        """Load ``identity``, returning the failure instead of raising it."""
        identity = normalize_identity(identity)
        failure = None
        try:
            self.loader.load(identity)
            logger.info(f"Reloaded module: {identity}")
        except LoadFailure as e:
            logger.error(str(e))
            failure = e
        finally:
            self.tracker.record_loaded(identity)
        return failure

    def history(self, limit: int = 10) -> list[RefreshReport]:
        """Get recent refresh reports that had at least one change."""
        return list(self._history)[-limit:]
