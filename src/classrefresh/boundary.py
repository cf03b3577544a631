"""Contracts with the host runtime.

The refresh core never imports, unloads or reflects on anything directly.
It goes through these protocols; ``classrefresh.runtime`` provides the
implementations for a live CPython interpreter.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol


class DescriptorKind(str, Enum):
    """Kinds of live type descriptor the resolver knows how to walk."""

    CLASS = "class"
    ROLE = "role"
    UNREFLECTIVE = "unreflective"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TypeDescriptor:
    """Reflective view of one identity, as reported by a TypeRegistry."""

    name: str
    kind: DescriptorKind
    # True when the identity defines a metaclass
    is_metaclass: bool = False
    # Identities whose metaclass this descriptor's type is an instance of
    instance_of: tuple[str, ...] = ()
    detail: str | None = None


class Loader(Protocol):
    def load(self, identity: str) -> None:
        """Execute the identity's source, replacing any prior definition.

        Raises:
            LoadFailure: If the source fails to parse or execute.
        """
        ...


class Unloader(Protocol):
    def unload(self, identity: str) -> None:
        """Remove the identity's runtime definition. No-op if not loaded."""
        ...


class SymbolTable(Protocol):
    def remove_bindings(self, identity: str) -> None:
        """Drop every binding held under ``identity``."""
        ...


class TypeRegistry(Protocol):
    def is_reflective(self) -> bool: ...

    def descriptor_of(self, identity: str) -> TypeDescriptor | None: ...

    def subclasses_of(self, identity: str) -> list[str]: ...

    def consumers_of(self, identity: str) -> list[str]: ...

    def all_live_descriptor_instances(self) -> list[TypeDescriptor]: ...

    def remove_descriptor(self, identity: str) -> None: ...


class LoadedFileSet(Protocol):
    def snapshot(self) -> Mapping[str, Path | None]:
        """Map every loaded source key to its on-disk path."""
        ...

    def __contains__(self, key: object) -> bool: ...

    def locate(self, key: str) -> Path | None:
        """Resolve a source key to a path, loaded or not."""
        ...
