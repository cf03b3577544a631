"""Dependency-aware live reload for long-running Python processes.

- Change detection from file fingerprints
- Reload propagation to subclasses, role consumers and metaclass instances
- Unload-then-load ordering across the whole dependency closure
"""

from classrefresh.boundary import DescriptorKind, TypeDescriptor
from classrefresh.config import RefreshConfig, load_config
from classrefresh.engine import ModuleRefresh, RefreshEngine, RefreshReport, RefreshStatus
from classrefresh.errors import (
    ConfigError,
    DependencyDepthExceeded,
    LoadFailure,
    RefreshError,
    UnknownMetaclass,
)
from classrefresh.fingerprint import UNSEEN, Fingerprint
from classrefresh.identity import file_to_module, module_to_file, normalize_identity
from classrefresh.resolver import DependencyResolver
from classrefresh.tracker import ChangeTracker

__version__ = "0.1.0"

__all__ = [
    "ChangeTracker",
    "ConfigError",
    "DependencyDepthExceeded",
    "DependencyResolver",
    "DescriptorKind",
    "Fingerprint",
    "LoadFailure",
    "ModuleRefresh",
    "RefreshConfig",
    "RefreshEngine",
    "RefreshError",
    "RefreshReport",
    "RefreshStatus",
    "TypeDescriptor",
    "UNSEEN",
    "UnknownMetaclass",
    "file_to_module",
    "load_config",
    "module_to_file",
    "normalize_identity",
]
