# messages.py

from __future__ import annotations
import logging
import time
from typing import Callable, Optional

from .errors import DuplicateRaceError, MeshStoreError, PersistenceError, SenderResolutionError
from .models import Message, Peer, ProtocolMessage
from .peers import PeerDirectory
from .store import MESSAGES, Store

logger = logging.getLogger(__name__)

BY_SIGNATURE = "signature=?"
BY_ID = "id=?"


class MessageLog:
    """
    Append-only log of messages keyed by signature.

    Stored messages are never changed. A second delivery of the same
    signature returns the stored row untouched.
    """

    def __init__(self, store: Store, peers: PeerDirectory, clock: Callable[[], float] = time.time):
        self.store = store
        self.peers = peers
        self.clock = clock

    def get_message_by_signature(self, signature: bytes) -> Optional[Message]:
        return self._first(BY_SIGNATURE, (bytes(signature),))

    def get_message_by_id(self, message_id: int) -> Optional[Message]:
        return self._first(BY_ID, (int(message_id),))

    def ingest_remote_message(self, msg: ProtocolMessage) -> Message:
        try:
            sender = self.peers.reconcile_remote_identity(msg.sender)
        except MeshStoreError as e:
            logger.error("could not resolve sender %s: %s", msg.sender.public_key.hex()[:16], e)
            raise SenderResolutionError(f"failed to get peer for message: {e}") from e

        existing = self.get_message_by_signature(msg.signature)
        if existing is not None:
            logger.info("received stored message %s, ignoring", msg.signature.hex()[:16])
            return existing

        # reply_sig may point at a message we have not seen yet
        fields = {
            "signature": bytes(msg.signature),
            "peer_id": sender.id,
            "body": msg.body,
            "authored_date": msg.authored_date,
            "received_date": self.clock(),
            "reply_sig": msg.reply_signature,
            "raw_pkt": msg.raw_packet,
        }
        try:
            row = self.store.insert(MESSAGES, fields)
        except DuplicateRaceError:
            logger.warning("message %s inserted concurrently, re-resolving", msg.signature.hex()[:16])
            winner = self.get_message_by_signature(msg.signature)
            if winner is None:
                raise PersistenceError("message missing after duplicate insert")
            return winner
        return Message.from_row(row)

    # ---------- relay / threading ----------

    def outgoing_messages_for_peer(self, recipient: Peer) -> list[Message]:
        """Messages to offer ``recipient`` on contact: everything it did not author."""
        rows = self.store.query(MESSAGES, "peer_id != ?", (recipient.id,), order_by="received_date, id")
        return [Message.from_row(r) for r in rows]

    def replies_to(self, signature: bytes) -> list[Message]:
        rows = self.store.query(MESSAGES, "reply_sig=?", (bytes(signature),), order_by="authored_date, id")
        return [Message.from_row(r) for r in rows]

    def sender_of(self, message: Message) -> Optional[Peer]:
        return self.peers.get_peer_by_id(message.peer_id)

    def all_messages(self) -> list[Message]:
        return [Message.from_row(r) for r in self.store.query(MESSAGES)]

    def count(self) -> int:
        return self.store.count(MESSAGES)

    def _first(self, where: str, args: tuple) -> Optional[Message]:
        rows = self.store.query(MESSAGES, where, args, limit=1)
        return Message.from_row(rows[0]) if rows else None
