"""Module identity <-> source key mapping.

Identities are dotted module names (``pkg.mod``). Source keys are the
slash-separated relative paths the fingerprint cache is keyed on
(``pkg/mod.py``). The mapping is a pure string transform: no filesystem
lookup happens here.
"""

SOURCE_SUFFIX = ".py"
PACKAGE_INIT = "__init__" + SOURCE_SUFFIX


def file_to_module(key: str) -> str:
    """Convert a source key to a module identity.

    Keys that do not end in ``.py`` are returned unchanged.
    """
    if not key.endswith(SOURCE_SUFFIX):
        return key

    stem = key[: -len(SOURCE_SUFFIX)]
    if key == PACKAGE_INIT:
        return key
    if key.endswith("/" + PACKAGE_INIT):
        stem = key[: -len(PACKAGE_INIT) - 1]

    return stem.replace("/", ".")


def module_to_file(identity: str) -> str:
    """Convert a module identity to its source key.

    Identities that already look like a source key pass through unchanged.
    A package maps to ``pkg.py`` rather than ``pkg/__init__.py``; the key is
    a cache handle, the real location comes from the loaded-file set.
    """
    if identity.endswith(SOURCE_SUFFIX):
        return identity

    return identity.replace(".", "/") + SOURCE_SUFFIX


def normalize_identity(name: str) -> str:
    """Accept either a module name or a source key, return the module name."""
    return file_to_module(name)
