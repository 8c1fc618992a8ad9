"""
Public entry point for the transport layer.

``DataStore`` ties the peer directory and message log to one storage handle
and exposes the three reconciliation operations plus read-only lookups.
"""

from __future__ import annotations
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from .crypto_utils import generate_owned_identity
from .messages import MessageLog
from .models import Message, OwnedIdentity, Peer, ProtocolIdentity, ProtocolMessage
from .peers import PeerDirectory
from .store import Store

logger = logging.getLogger(__name__)

PacketBuilder = Callable[[OwnedIdentity], bytes]


class DataStore:
    def __init__(self, store: Store, clock: Callable[[], float] = time.time):
        self.store = store
        self.peers = PeerDirectory(store, clock=clock)
        self.messages = MessageLog(store, self.peers, clock=clock)

    # ---------- reconciliation ----------

    def mint_local_identity(self, alias: str, packet_builder: Optional[PacketBuilder] = None) -> Peer:
        """
        Generate and persist a new local identity.

        If ``packet_builder`` is given, its output is cached as the peer's
        self-announcement packet. Failures propagate; nothing is retried.
        """
        if not isinstance(alias, str) or not alias.strip():
            raise ValueError("alias must be a non-empty string")
        identity = generate_owned_identity(alias)
        raw = packet_builder(identity) if packet_builder is not None else None
        peer = self.peers.add_local_peer(identity, raw_packet=raw)
        logger.info("minted local identity %r (%s)", alias, identity.public_key.hex()[:16])
        return peer

    def ingest_remote_identity(self, identity: ProtocolIdentity) -> Peer:
        return self.peers.reconcile_remote_identity(identity)

    def ingest_remote_message(self, msg: ProtocolMessage) -> Message:
        return self.messages.ingest_remote_message(msg)

    # ---------- lookups ----------

    def get_primary_local_peer(self) -> Optional[Peer]:
        return self.peers.get_primary_local_peer()

    def get_peer_by_public_key(self, public_key: bytes) -> Optional[Peer]:
        return self.peers.get_peer_by_public_key(public_key)

    def get_peer_by_id(self, peer_id: int) -> Optional[Peer]:
        return self.peers.get_peer_by_id(peer_id)

    def get_message_by_signature(self, signature: bytes) -> Optional[Message]:
        return self.messages.get_message_by_signature(signature)

    def get_message_by_id(self, message_id: int) -> Optional[Message]:
        return self.messages.get_message_by_id(message_id)

    def get_outgoing_messages_for_peer(self, recipient: Peer) -> list[Message]:
        return self.messages.outgoing_messages_for_peer(recipient)

    def close(self):
        self.store.close()


class IngestPool:
    """Bounded worker pool, one worker per concurrent radio session."""

    def __init__(self, datastore: DataStore, max_sessions: int = 4):
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self.datastore = datastore
        self.max_sessions = max_sessions
        self.executor = ThreadPoolExecutor(max_workers=max_sessions, thread_name_prefix="ingest")

    def submit_identity(self, identity: ProtocolIdentity) -> "Future[Peer]":
        return self.executor.submit(self.datastore.ingest_remote_identity, identity)

    def submit_message(self, msg: ProtocolMessage) -> "Future[Message]":
        return self.executor.submit(self.datastore.ingest_remote_message, msg)

    def shutdown(self, wait: bool = True):
        self.executor.shutdown(wait=wait)

    def __enter__(self) -> "IngestPool":
        return self

    def __exit__(self, *exc):
        self.shutdown()
