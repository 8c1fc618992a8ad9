"""
Reference wire codec for identity and message packets.

Every packet is a msgpack map ``{"payload": <bytes>, "sig": <bytes>}`` where
``payload`` is itself msgpack and ``sig`` is an Ed25519 signature over it.
A message payload embeds its sender's identity packet so the receiver can
reconcile the sender from the message alone.
"""

from __future__ import annotations
import time
from typing import Optional

import msgpack

from .crypto_utils import sign, verify
from .errors import PacketError
from .models import Body, OwnedIdentity, ProtocolIdentity, ProtocolMessage

PACKET_VERSION = 1
IDENTITY = "identity"
MESSAGE = "message"


# ---------- helpers ----------

def _seal(identity: OwnedIdentity, payload: dict) -> bytes:
    blob = msgpack.packb(payload, use_bin_type=True)
    return msgpack.packb({"payload": blob, "sig": sign(identity, blob)}, use_bin_type=True)


def _open(raw: bytes, kind: str) -> tuple[dict, bytes]:
    try:
        outer = msgpack.unpackb(raw, raw=False)
        blob, sig = outer["payload"], outer["sig"]
        payload = msgpack.unpackb(blob, raw=False)
    except (msgpack.exceptions.ExtraData, msgpack.exceptions.UnpackException,
            ValueError, TypeError, KeyError) as e:
        raise PacketError(f"undecodable {kind} packet: {e}") from e
    if not isinstance(payload, dict) or payload.get("t") != kind:
        raise PacketError(f"not a {kind} packet")
    if payload.get("v") != PACKET_VERSION:
        raise PacketError(f"unsupported packet version {payload.get('v')!r}")
    if not verify(sig, blob, payload.get("pk", b"")):
        raise PacketError(f"bad signature on {kind} packet")
    return payload, sig


def _field(payload: dict, name: str, types, kind: str):
    try:
        value = payload[name]
    except KeyError as e:
        raise PacketError(f"{kind} packet missing field {name!r}") from e
    if not isinstance(value, types):
        raise PacketError(f"{kind} packet field {name!r} has type {type(value).__name__}")
    return value


# ---------- identity ----------

def build_identity_packet(identity: OwnedIdentity) -> bytes:
    """Signed self-announcement for ``identity``."""
    return _seal(identity, {
        "v": PACKET_VERSION,
        "t": IDENTITY,
        "pk": identity.public_key,
        "alias": identity.alias,
        "ts": int(time.time()),
    })


def decode_identity_packet(raw: bytes) -> ProtocolIdentity:
    payload, _ = _open(raw, IDENTITY)
    return ProtocolIdentity(
        public_key=_field(payload, "pk", bytes, IDENTITY),
        alias=_field(payload, "alias", str, IDENTITY),
        raw_packet=raw,
    )


# ---------- message ----------

def build_message_packet(identity: OwnedIdentity, body: Body,
                         reply_signature: Optional[bytes] = None,
                         authored_date: Optional[float] = None) -> bytes:
    return _seal(identity, {
        "v": PACKET_VERSION,
        "t": MESSAGE,
        "pk": identity.public_key,
        "sender": build_identity_packet(identity),
        "body": body,
        "ts": time.time() if authored_date is None else authored_date,
        "reply": reply_signature,
    })


def decode_message_packet(raw: bytes) -> ProtocolMessage:
    payload, sig = _open(raw, MESSAGE)
    sender = decode_identity_packet(_field(payload, "sender", bytes, MESSAGE))
    if sender.public_key != _field(payload, "pk", bytes, MESSAGE):
        raise PacketError("message signer does not match embedded sender identity")
    ts = _field(payload, "ts", (int, float), MESSAGE)
    if isinstance(ts, bool):
        raise PacketError("message packet field 'ts' has type bool")
    reply = payload.get("reply")
    if reply is not None and not isinstance(reply, bytes):
        raise PacketError(f"message packet field 'reply' has type {type(reply).__name__}")
    return ProtocolMessage(
        sender=sender,
        body=_field(payload, "body", (str, bytes), MESSAGE),
        authored_date=ts,
        signature=sig,
        raw_packet=raw,
        reply_signature=reply,
    )
