# peers.py

from __future__ import annotations
import logging
import time
from typing import Callable, Optional

from .errors import DuplicateRaceError, PersistenceError
from .models import OwnedIdentity, Peer, ProtocolIdentity
from .store import PEERS, Store

logger = logging.getLogger(__name__)

BY_PUBKEY = "pubkey=?"
BY_ID = "id=?"
LOCAL = "seckey IS NOT NULL"


class PeerDirectory:
    """Durable mapping from public key to peer metadata."""

    def __init__(self, store: Store, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    # ---------- lookups ----------

    def get_primary_local_peer(self) -> Optional[Peer]:
        """First peer carrying a secret key, or None before an identity is minted."""
        # TODO: cache once multi-identity support settles which local peer is primary
        return self._first(LOCAL, ())

    def get_peer_by_public_key(self, public_key: bytes) -> Optional[Peer]:
        return self._first(BY_PUBKEY, (bytes(public_key),))

    def get_peer_by_id(self, peer_id: int) -> Optional[Peer]:
        return self._first(BY_ID, (int(peer_id),))

    def all_peers(self) -> list[Peer]:
        return [Peer.from_row(r) for r in self.store.query(PEERS, order_by="last_seen DESC, id")]

    def recent_peers(self, max_age: float = 30) -> list[Peer]:
        cutoff = self.clock() - max_age
        rows = self.store.query(PEERS, "last_seen >= ?", (cutoff,), order_by="last_seen DESC, id")
        return [Peer.from_row(r) for r in rows]

    def count(self) -> int:
        return self.store.count(PEERS)

    # ---------- writes ----------

    def add_local_peer(self, identity: OwnedIdentity, raw_packet: Optional[bytes] = None) -> Peer:
        row = self.store.insert(PEERS, {
            "pubkey": identity.public_key,
            "seckey": identity.secret_key,
            "alias": identity.alias,
            "last_seen": self.clock(),
            "raw_pkt": raw_packet,
        })
        return Peer.from_row(row)

    def reconcile_remote_identity(self, identity: ProtocolIdentity) -> Peer:
        """
        Create or refresh the peer for ``identity``.

        Alias and raw packet are last-write-wins, last_seen advances on every
        call. Losing an insert race to another session falls back to updating
        the row that session created. A local identity relayed back to us
        only has its last_seen refreshed; its minted alias and packet stay.
        """
        values = {
            "last_seen": self.clock(),
            "alias": identity.alias,
            "raw_pkt": identity.raw_packet,
        }
        existing = self.get_peer_by_public_key(identity.public_key)
        if existing is not None:
            if existing.is_local:
                return self._refresh(identity.public_key, {"last_seen": values["last_seen"]})
            return self._refresh(identity.public_key, values)
        try:
            row = self.store.insert(PEERS, dict(values, pubkey=bytes(identity.public_key)))
        except DuplicateRaceError:
            logger.warning("peer %s inserted concurrently, re-resolving", identity.public_key.hex()[:16])
            return self._refresh(identity.public_key, values)
        return Peer.from_row(row)

    # ---------- internals ----------

    def _refresh(self, public_key: bytes, values: dict) -> Peer:
        updated = self.store.update(PEERS, values, BY_PUBKEY, (bytes(public_key),))
        if updated != 1:
            logger.error("updating peer %s touched %d rows", public_key.hex()[:16], updated)
            raise PersistenceError(f"peer update affected {updated} rows, expected 1")
        peer = self.get_peer_by_public_key(public_key)
        if peer is None:
            logger.error("peer %s vanished after update", public_key.hex()[:16])
            raise PersistenceError("peer could not be read back after update")
        return peer

    def _first(self, where: str, args: tuple) -> Optional[Peer]:
        rows = self.store.query(PEERS, where, args, limit=1)
        return Peer.from_row(rows[0]) if rows else None
