"""Dependency closure over the live type graph.

The graph is never stored. Every walk asks the registry afresh, since each
reload changes it.
"""

import logging
from typing import Final

from classrefresh.boundary import DescriptorKind, TypeDescriptor, TypeRegistry
from classrefresh.errors import DependencyDepthExceeded, UnknownMetaclass
from classrefresh.identity import normalize_identity

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH: Final = 256


class DependencyResolver:
    """Computes which identities must be reloaded together.

    Walks three relationships from a changed identity to its dependents:
    - class -> subclasses
    - metaclass -> classes whose type is an instance of it
    - role -> consuming classes and roles
    """

    def __init__(self, registry: TypeRegistry, max_depth: int = DEFAULT_MAX_DEPTH):
        self.registry = registry
        self.max_depth = max_depth

    def kind_of(self, identity: str) -> tuple[DescriptorKind, TypeDescriptor | None]:
        """Resolve the descriptor kind for ``identity`` once."""
        if not self.registry.is_reflective():
            return DescriptorKind.UNREFLECTIVE, None

        descriptor = self.registry.descriptor_of(identity)
        if descriptor is None:
            return DescriptorKind.UNREFLECTIVE, None

        try:
            return DescriptorKind(descriptor.kind), descriptor
        except ValueError:
            return DescriptorKind.UNKNOWN, descriptor

    def dependents_of(self, identity: str) -> list[str]:
        """Direct dependents of ``identity``, in reload order.

        Raises:
            UnknownMetaclass: If the registry reports a kind we cannot walk.
        """
        kind, descriptor = self.kind_of(identity)

        if kind is DescriptorKind.UNREFLECTIVE:
            return []

        if kind is DescriptorKind.CLASS:
            # Subclasses first: metaclass changes are coarser and apply last
            dependents = list(self.registry.subclasses_of(identity))
            if descriptor is not None and descriptor.is_metaclass:
                dependents.extend(
                    instance.name
                    for instance in self.registry.all_live_descriptor_instances()
                    if identity in instance.instance_of and instance.name != identity
                )
            return dependents

        if kind is DescriptorKind.ROLE:
            return list(self.registry.consumers_of(identity))

        raise UnknownMetaclass(identity, descriptor)

    def closure_of(self, identity: str) -> list[str]:
        """Ordered closure of ``identity``: depth-first, preorder, self first.

        The same identity can appear more than once when the graph has
        diamonds. A dependent that is already an ancestor on the current path
        is skipped.

        Raises:
            UnknownMetaclass: If any identity in the walk has an unknown kind.
            DependencyDepthExceeded: If nesting passes ``max_depth``.
        """
        root = normalize_identity(identity)
        closure = [root]
        path = [root]
        stack = [iter(self.dependents_of(root))]

        while stack:
            dependent = next(stack[-1], None)
            if dependent is None:
                stack.pop()
                path.pop()
                continue

            if dependent in path:
                logger.warning(f"Skipping dependency cycle {' -> '.join(path)} -> {dependent}")
                continue

            if len(path) >= self.max_depth:
                raise DependencyDepthExceeded(root, self.max_depth)

            closure.append(dependent)
            path.append(dependent)
            stack.append(iter(self.dependents_of(dependent)))

        logger.debug(f"Closure of {root}: {closure}")
        return closure
