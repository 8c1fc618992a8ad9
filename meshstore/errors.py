# errors.py


class MeshStoreError(Exception):
    """Base class for every error raised by meshstore."""


class CryptoError(MeshStoreError):
    """Key generation or signing failed."""


class PersistenceError(MeshStoreError):
    """The storage engine rejected a write, or a write touched an unexpected number of rows."""


class DuplicateRaceError(PersistenceError):
    """A concurrent writer inserted the same unique key first."""

    def __init__(self, table: str, detail: str = ""):
        self.table = table
        super().__init__(f"duplicate key in {table}: {detail}" if detail else f"duplicate key in {table}")


class SenderResolutionError(MeshStoreError):
    """A message's sender identity could not be reconciled into a peer."""


class PacketError(MeshStoreError):
    """Malformed or badly signed packet."""
