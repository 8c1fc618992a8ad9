from .datastore import DataStore, IngestPool
from .errors import (
    CryptoError,
    DuplicateRaceError,
    MeshStoreError,
    PacketError,
    PersistenceError,
    SenderResolutionError,
)
from .models import Message, OwnedIdentity, Peer, ProtocolIdentity, ProtocolMessage
from .store import Store

__version__ = "0.1.0"
