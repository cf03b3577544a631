"""Errors raised while detecting, resolving and reloading modules."""

from typing import Any


class RefreshError(Exception):
    """Base class for classrefresh errors."""


class LoadFailure(RefreshError):
    """Raised when a module's source fails to execute during reload.

    Recoverable: the engine reports it and moves on. The module stays
    unloaded until a later edit loads cleanly.
    """

    def __init__(self, identity: str, cause: BaseException | str):
        self.identity = identity
        self.cause = cause
        detail = cause if isinstance(cause, str) else f"{type(cause).__name__}: {cause}"
        self.detail = detail
        super().__init__(f"Failed to load {identity}: {detail}")


class UnknownMetaclass(RefreshError):
    """Raised when the type registry returns a descriptor kind we cannot walk."""

    def __init__(self, identity: str, descriptor: Any):
        self.identity = identity
        self.descriptor = descriptor
        super().__init__(f"Unknown metaclass for {identity}: {descriptor!r}")


class DependencyDepthExceeded(RefreshError):
    """Raised when a dependency closure nests deeper than the configured limit."""

    def __init__(self, identity: str, depth: int):
        self.identity = identity
        self.depth = depth
        super().__init__(f"Dependency closure of {identity} exceeds depth {depth}")


class ConfigError(RefreshError):
    """Raised when the configuration file cannot be parsed."""
