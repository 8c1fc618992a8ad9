from pathlib import Path

import pytest

from meshstore.crypto_utils import generate_owned_identity
from meshstore.datastore import DataStore
from meshstore.models import ProtocolIdentity, ProtocolMessage
from meshstore.store import Store


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float = 1.0) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path):
    s = Store(str(tmp_path / "store.sqlite"))
    yield s
    s.close()


@pytest.fixture
def ds(store, clock):
    return DataStore(store, clock=clock)


def make_identity(public_key: bytes, alias: str, raw: bytes = b"") -> ProtocolIdentity:
    return ProtocolIdentity(public_key=public_key, alias=alias, raw_packet=raw or b"id:" + public_key)


def make_message(sender: ProtocolIdentity, body, signature: bytes,
                 reply_signature=None, authored_date: float = 1_600_000_000.0) -> ProtocolMessage:
    return ProtocolMessage(
        sender=sender,
        body=body,
        authored_date=authored_date,
        signature=signature,
        raw_packet=b"msg:" + signature,
        reply_signature=reply_signature,
    )


@pytest.fixture
def bob():
    return make_identity(b"\xaa" * 32, "bob")


@pytest.fixture
def owned_carol():
    return generate_owned_identity("carol")
