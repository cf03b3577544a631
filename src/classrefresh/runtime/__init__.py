"""Host runtime bindings for a live CPython interpreter."""

from classrefresh.config import RefreshConfig
from classrefresh.engine import RefreshEngine
from classrefresh.runtime.modules import (
    ImportLoader,
    ModuleFileSet,
    ModuleSymbolTable,
    ModuleUnloader,
    find_source,
    source_path,
)
from classrefresh.runtime.registry import PythonTypeRegistry, is_role


class PythonRuntime:
    """Bundles the importlib-backed loader, unloader, registry and file set."""

    def __init__(self, config: RefreshConfig | None = None):
        self.config = config or RefreshConfig()
        self.files = ModuleFileSet(self.config)
        self.symbols = ModuleSymbolTable()
        self.loader = ImportLoader(self.files)
        self.unloader = ModuleUnloader(self.symbols, self.files)
        self.registry = PythonTypeRegistry(self.config)

    def create_engine(self) -> RefreshEngine:
        return RefreshEngine(
            loader=self.loader,
            unloader=self.unloader,
            registry=self.registry,
            files=self.files,
            max_depth=self.config.max_depth,
        )


def create_engine(config: RefreshConfig | None = None) -> RefreshEngine:
    """Build a RefreshEngine over the running interpreter."""
    return PythonRuntime(config).create_engine()


__all__ = [
    "ImportLoader",
    "ModuleFileSet",
    "ModuleSymbolTable",
    "ModuleUnloader",
    "PythonRuntime",
    "PythonTypeRegistry",
    "create_engine",
    "find_source",
    "is_role",
    "source_path",
]
