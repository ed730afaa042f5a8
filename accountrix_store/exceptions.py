"""Exceptions raised by the Accountrix local store."""


class StoreError(Exception):
    """Base class for store errors."""


class StoreInitializationError(StoreError, RuntimeError):
    """The secure backend or the data directory is unusable.

    The store cannot operate without its encryption key, so this is
    always propagated to the caller.
    """


class MalformedImportError(StoreError, ValueError):
    """An import bundle is structurally invalid (no ``data`` mapping)."""
