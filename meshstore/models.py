# models.py

from __future__ import annotations
import sqlite3
from dataclasses import dataclass
from typing import Optional, Union

Body = Union[str, bytes]


@dataclass(frozen=True)
class OwnedIdentity:
    # Ed25519 keypair; secret_key is the 32-byte seed
    public_key: bytes
    secret_key: bytes
    alias: str


@dataclass(frozen=True)
class ProtocolIdentity:
    public_key: bytes
    alias: str
    raw_packet: bytes


@dataclass(frozen=True)
class ProtocolMessage:
    sender: ProtocolIdentity
    body: Body
    authored_date: float
    signature: bytes
    raw_packet: bytes
    reply_signature: Optional[bytes] = None


@dataclass(frozen=True)
class Peer:
    id: int
    public_key: bytes
    alias: str
    last_seen: float
    secret_key: Optional[bytes] = None
    raw_packet: Optional[bytes] = None

    @property
    def is_local(self) -> bool:
        return self.secret_key is not None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Peer":
        return cls(
            id=row["id"],
            public_key=bytes(row["pubkey"]),
            alias=row["alias"],
            last_seen=row["last_seen"],
            secret_key=bytes(row["seckey"]) if row["seckey"] is not None else None,
            raw_packet=bytes(row["raw_pkt"]) if row["raw_pkt"] is not None else None,
        )


@dataclass(frozen=True)
class Message:
    id: int
    signature: bytes
    peer_id: int
    body: Body
    authored_date: float
    received_date: float
    raw_packet: bytes
    reply_signature: Optional[bytes] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Message":
        return cls(
            id=row["id"],
            signature=bytes(row["signature"]),
            peer_id=row["peer_id"],
            body=row["body"],
            authored_date=row["authored_date"],
            received_date=row["received_date"],
            raw_packet=bytes(row["raw_pkt"]),
            reply_signature=bytes(row["reply_sig"]) if row["reply_sig"] is not None else None,
        )
