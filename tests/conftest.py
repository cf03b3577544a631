"""Pytest configuration and fixtures."""

import importlib
import os
import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from classrefresh.boundary import DescriptorKind, TypeDescriptor
from classrefresh.engine import RefreshEngine
from classrefresh.errors import LoadFailure
from classrefresh.identity import file_to_module, module_to_file


def write_source(path: Path, text: str) -> Path:
    """Write a source file, pushing its mtime forward if it already existed."""
    previous = path.stat().st_mtime_ns if path.exists() else None
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    if previous is not None:
        bumped = max(path.stat().st_mtime_ns, previous + 2_000_000_000)
        os.utime(path, ns=(bumped, bumped))
    return path


class FakeFiles:
    """Loaded-file set over real files, with load state kept in a dict."""

    def __init__(self, root: Path):
        self.root = root
        self.loaded: dict[str, Path] = {}

    def snapshot(self) -> dict[str, Path]:
        return dict(self.loaded)

    def __contains__(self, key: object) -> bool:
        return key in self.loaded

    def locate(self, key: str) -> Path | None:
        path = self.root / key
        return path if path.exists() else None


@dataclass
class FakeRegistry:
    """Type registry whose graph is declared by the test."""

    reflective: bool = True
    descriptors: dict[str, TypeDescriptor] = field(default_factory=dict)
    subclasses: dict[str, list[str]] = field(default_factory=dict)
    consumers: dict[str, list[str]] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)

    def add_class(self, name: str, *subclasses: str, is_metaclass: bool = False, instance_of: tuple[str, ...] = ()) -> None:
        self.descriptors[name] = TypeDescriptor(
            name=name,
            kind=DescriptorKind.CLASS,
            is_metaclass=is_metaclass,
            instance_of=instance_of,
        )
        self.subclasses[name] = list(subclasses)

    def add_role(self, name: str, *consumers: str) -> None:
        self.descriptors[name] = TypeDescriptor(name=name, kind=DescriptorKind.ROLE)
        self.consumers[name] = list(consumers)

    def is_reflective(self) -> bool:
        return self.reflective

    def descriptor_of(self, identity: str) -> TypeDescriptor | None:
        return self.descriptors.get(identity)

    def subclasses_of(self, identity: str) -> list[str]:
        return list(self.subclasses.get(identity, []))

    def consumers_of(self, identity: str) -> list[str]:
        return list(self.consumers.get(identity, []))

    def all_live_descriptor_instances(self) -> list[TypeDescriptor]:
        return list(self.descriptors.values())

    def remove_descriptor(self, identity: str) -> None:
        self.removed.append(identity)


class FakeWorld:
    """Modules as files under ``root``; loads and unloads are logged in ``calls``."""

    def __init__(self, root: Path):
        self.root = root
        self.files = FakeFiles(root)
        self.registry = FakeRegistry()
        self.calls: list[tuple[str, str]] = []
        self.broken: set[str] = set()

    def add_module(self, name: str, source: str = "", loaded: bool = True) -> Path:
        key = module_to_file(name)
        path = write_source(self.root / key, source or f"# {name}\n")
        if loaded:
            self.files.loaded[key] = path
        return path

    def edit(self, name: str, source: str) -> Path:
        return write_source(self.root / module_to_file(name), source)

    def load(self, identity: str) -> None:
        self.calls.append(("load", identity))
        if identity in self.broken:
            raise LoadFailure(identity, SyntaxError("invalid syntax"))
        key = module_to_file(identity)
        self.files.loaded[key] = self.root / key

    def unload(self, identity: str) -> None:
        self.calls.append(("unload", identity))
        self.files.loaded.pop(module_to_file(identity), None)

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    def engine(self, **kwargs) -> RefreshEngine:
        return RefreshEngine(
            loader=self,
            unloader=self,
            registry=self.registry,
            files=self.files,
            **kwargs,
        )


@pytest.fixture
def world(tmp_path: Path) -> FakeWorld:
    """An in-memory host runtime backed by files in tmp_path."""
    return FakeWorld(tmp_path)


@dataclass
class Sandbox:
    """A directory on sys.path for writing and importing real modules."""

    root: Path

    def write(self, name: str, source: str) -> Path:
        path = self.root / module_to_file(name)
        # Make every enclosing directory a package
        package = path.parent
        while package != self.root:
            init = package / "__init__.py"
            if not init.exists():
                write_source(init, "")
            package = package.parent
        return write_source(path, source)

    def write_package(self, name: str, source: str = "") -> Path:
        path = self.root / name.replace(".", "/") / "__init__.py"
        return write_source(path, source)

    def import_module(self, name: str):
        importlib.invalidate_caches()
        return importlib.import_module(name)

    def module(self, name: str):
        return sys.modules[name]

    def name_of(self, path: Path) -> str:
        return file_to_module(path.relative_to(self.root).as_posix())


@pytest.fixture
def sandbox(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Import real modules from tmp_path, removing them afterwards."""
    root = tmp_path / "site"
    root.mkdir()
    monkeypatch.syspath_prepend(str(root))
    monkeypatch.setattr(sys, "dont_write_bytecode", True)

    before = set(sys.modules)
    yield Sandbox(root)

    for name in set(sys.modules) - before:
        del sys.modules[name]
    importlib.invalidate_caches()
