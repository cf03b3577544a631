"""Loading, unloading and enumerating modules through importlib."""

import importlib
import logging
import sys
from importlib.machinery import ModuleSpec, PathFinder
from pathlib import Path
from types import ModuleType

from classrefresh.config import RefreshConfig
from classrefresh.errors import LoadFailure
from classrefresh.identity import SOURCE_SUFFIX, file_to_module, module_to_file

logger = logging.getLogger(__name__)


def source_path(module: ModuleType) -> Path | None:
    """Return the ``.py`` file a module was executed from, if any."""
    filename = getattr(module, "__file__", None)
    if not isinstance(filename, str) or not filename.endswith(SOURCE_SUFFIX):
        return None
    return Path(filename)


def find_source(identity: str) -> Path | None:
    """Locate a module's source file without importing it or its parents."""
    try:
        spec = _find_spec(identity)
    except (ImportError, ValueError) as e:
        logger.debug(f"Cannot locate {identity}: {e}")
        return None
    if spec is None or not isinstance(spec.origin, str):
        return None
    if not spec.origin.endswith(SOURCE_SUFFIX):
        return None
    return Path(spec.origin)


def _find_spec(identity: str) -> ModuleSpec | None:
    # importlib.util.find_spec would execute a missing parent package
    parent_name, _, _ = identity.rpartition(".")
    if not parent_name:
        return PathFinder.find_spec(identity)

    search = getattr(sys.modules.get(parent_name), "__path__", None)
    if search is None:
        parent_spec = _find_spec(parent_name)
        if parent_spec is None or parent_spec.submodule_search_locations is None:
            return None
        search = parent_spec.submodule_search_locations
    return PathFinder.find_spec(identity, list(search))


class ModuleFileSet:
    """Source files of the modules currently in ``sys.modules``.

    A module whose last load failed stays in the set with its known path,
    so the tracker keeps watching the broken file for the next edit.
    """

    def __init__(self, config: RefreshConfig | None = None):
        self.config = config or RefreshConfig()
        self._broken: dict[str, Path | None] = {}

    def _tracked_path(self, name: str, module: ModuleType | None) -> Path | None:
        if module is None:
            return None
        path = source_path(module)
        if path is None or not self.config.matches(name, path):
            return None
        return path

    def snapshot(self) -> dict[str, Path | None]:
        files: dict[str, Path | None] = {}
        for name, module in list(sys.modules.items()):
            path = self._tracked_path(name, module)
            if path is not None:
                files[module_to_file(name)] = path
        for name, path in self._broken.items():
            files.setdefault(module_to_file(name), path)
        return files

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        name = file_to_module(key)
        if name in self._broken:
            return True
        return self._tracked_path(name, sys.modules.get(name)) is not None

    def locate(self, key: str) -> Path | None:
        name = file_to_module(key)
        module = sys.modules.get(name)
        if module is not None:
            path = source_path(module)
            if path is not None:
                return path
        if self._broken.get(name) is not None:
            return self._broken[name]
        return find_source(name)

    @property
    def broken(self) -> list[str]:
        """Modules whose last load attempt failed."""
        return list(self._broken)

    def mark_broken(self, identity: str, path: Path | None) -> None:
        self._broken[identity] = path

    def clear_broken(self, identity: str) -> None:
        self._broken.pop(identity, None)


class ModuleSymbolTable:
    """The interpreter's module namespaces, addressed by module name."""

    def remove_bindings(self, identity: str) -> None:
        """Detach ``identity`` from ``sys.modules`` and empty its namespace.

        Callers still holding the old module see it empty rather than stale.
        Dunder attributes are kept so the object still reads as a module.
        """
        module = sys.modules.pop(identity, None)
        if module is None:
            return

        parent_name, _, child = identity.rpartition(".")
        parent = sys.modules.get(parent_name) if parent_name else None
        if parent is not None and getattr(parent, child, None) is module:
            delattr(parent, child)

        namespace = vars(module)
        for name in [n for n in namespace if not (n.startswith("__") and n.endswith("__"))]:
            del namespace[name]


class ModuleUnloader:
    """Unloads modules by removing all of their bindings."""

    def __init__(self, symbols: ModuleSymbolTable, files: ModuleFileSet):
        self.symbols = symbols
        self.files = files

    def unload(self, identity: str) -> None:
        self.symbols.remove_bindings(identity)
        self.files.clear_broken(identity)


class ImportLoader:
    """Loads modules with importlib.

    A module that is already loaded is re-executed in place; otherwise it
    is imported fresh. Any exception raised by the module body is wrapped in
    LoadFailure and the module is marked broken in the file set.
    """

    def __init__(self, files: ModuleFileSet):
        self.files = files

    def load(self, identity: str) -> None:
        # Pick up files created since the finders last listed their directories
        importlib.invalidate_caches()
        try:
            module = sys.modules.get(identity)
            if module is not None:
                importlib.reload(module)
            else:
                importlib.import_module(identity)
        except Exception as e:
            self.files.mark_broken(identity, find_source(identity))
            raise LoadFailure(identity, e) from e

        self.files.clear_broken(identity)
        _attach_submodules(identity)


def _attach_submodules(identity: str) -> None:
    """Re-bind already loaded submodules onto a freshly executed package."""
    package = sys.modules.get(identity)
    if package is None or not hasattr(package, "__path__"):
        return
    prefix = identity + "."
    for name, module in list(sys.modules.items()):
        child = name[len(prefix):]
        if name.startswith(prefix) and "." not in child and not hasattr(package, child):
            setattr(package, child, module)
