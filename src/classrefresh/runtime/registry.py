"""Type registry backed by live class reflection.

A module's descriptor summarises the classes it defines:
- ROLE if every class is an interface (abstract, or a Protocol)
- CLASS otherwise; a metaclass if any of them derives from ``type``
"""

import inspect
import logging
import sys
import weakref
from abc import ABCMeta
from collections.abc import Iterator

from classrefresh.boundary import DescriptorKind, TypeDescriptor
from classrefresh.config import RefreshConfig
from classrefresh.runtime.modules import source_path

logger = logging.getLogger(__name__)


def is_role(cls: type) -> bool:
    """Check if a class is an interface other classes consume."""
    return bool(getattr(cls, "_is_protocol", False)) or inspect.isabstract(cls)


def _safe_issubclass(cls: type, role: type) -> bool:
    try:
        return issubclass(cls, role)
    except TypeError:
        # Non runtime-checkable protocols refuse issubclass()
        return False


def _all_classes() -> Iterator[type]:
    seen: set[int] = set()
    stack: list[type] = [object]
    while stack:
        cls = stack.pop()
        if id(cls) in seen:
            continue
        seen.add(id(cls))
        yield cls
        stack.extend(type.__subclasses__(cls))


class PythonTypeRegistry:
    """Reflects over ``sys.modules`` to answer dependency queries.

    Classes from a removed descriptor are retired: they linger in their
    bases' ``__subclasses__()`` until garbage collected and must not be
    mistaken for live dependents.
    """

    def __init__(self, config: RefreshConfig | None = None):
        self.config = config or RefreshConfig()
        self._retired: weakref.WeakSet[type] = weakref.WeakSet()

    def is_reflective(self) -> bool:
        return True

    def is_live(self, cls: type) -> bool:
        """Check that ``cls`` is still the binding its module exposes."""
        if cls in self._retired:
            return False
        module = sys.modules.get(cls.__module__)
        if module is None:
            return False
        if "<locals>" in cls.__qualname__:
            return True
        target: object = module
        for part in cls.__qualname__.split("."):
            target = getattr(target, part, None)
            if target is None:
                return False
        return target is cls

    def classes_of(self, identity: str) -> list[type]:
        """Live classes defined by module ``identity``, in definition order."""
        module = sys.modules.get(identity)
        if module is None:
            return []
        classes: list[type] = []
        seen: set[int] = set()
        for value in list(vars(module).values()):
            if not isinstance(value, type) or id(value) in seen:
                continue
            if value.__module__ != identity or not self.is_live(value):
                continue
            seen.add(id(value))
            classes.append(value)
        return classes

    def descriptor_of(self, identity: str) -> TypeDescriptor | None:
        classes = self.classes_of(identity)
        if not classes:
            return None

        kind = DescriptorKind.ROLE if all(is_role(c) for c in classes) else DescriptorKind.CLASS
        instance_of: list[str] = []
        for cls in classes:
            for meta in type(cls).__mro__:
                if meta.__module__ not in instance_of:
                    instance_of.append(meta.__module__)

        return TypeDescriptor(
            name=identity,
            kind=kind,
            is_metaclass=any(issubclass(c, type) for c in classes),
            instance_of=tuple(instance_of),
        )

    def subclasses_of(self, identity: str) -> list[str]:
        names: list[str] = []
        for cls in self.classes_of(identity):
            # type.__subclasses__ also works when cls is itself a metaclass
            for sub in type.__subclasses__(cls):
                name = sub.__module__
                if name == identity or name in names or not self.is_live(sub):
                    continue
                names.append(name)
        return names

    def consumers_of(self, identity: str) -> list[str]:
        names = self.subclasses_of(identity)
        roles = [c for c in self.classes_of(identity) if isinstance(c, ABCMeta)]
        if not roles:
            return names

        # Virtual subclasses registered through ABCMeta.register
        for name in self._scoped_modules():
            if name == identity or name in names:
                continue
            for cls in self.classes_of(name):
                if any(role not in cls.__mro__ and _safe_issubclass(cls, role) for role in roles):
                    names.append(name)
                    break
        return names

    def all_live_descriptor_instances(self) -> list[TypeDescriptor]:
        descriptors = []
        for name in self._scoped_modules():
            descriptor = self.descriptor_of(name)
            if descriptor is not None:
                descriptors.append(descriptor)
        return descriptors

    def remove_descriptor(self, identity: str) -> None:
        """Retire every class still claiming to come from ``identity``."""
        ghosts = [
            cls
            for cls in _all_classes()
            if cls.__module__ == identity and not self.is_live(cls)
        ]
        for cls in ghosts:
            self._retired.add(cls)
            for base in cls.__mro__[1:]:
                if isinstance(base, ABCMeta):
                    base._abc_caches_clear()
        if ghosts:
            logger.debug(f"Retired {len(ghosts)} stale classes from {identity}")

    def _scoped_modules(self) -> list[str]:
        return [
            name
            for name, module in list(sys.modules.items())
            if module is not None
            and source_path(module) is not None
            and self.config.matches(name, source_path(module))
        ]
