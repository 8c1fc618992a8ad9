import pytest

from meshstore.errors import DuplicateRaceError, PersistenceError
from meshstore.store import MESSAGES, PEERS, Store


def _peer_fields(pubkey: bytes, alias: str = "x"):
    return {"pubkey": pubkey, "alias": alias, "last_seen": 1.0}


def test_insert_returns_materialized_row(store):
    row = store.insert(PEERS, _peer_fields(b"\x01" * 32, "bob"))
    assert row["id"] >= 1
    assert row["alias"] == "bob"
    assert bytes(row["pubkey"]) == b"\x01" * 32
    assert row["seckey"] is None


def test_unique_pubkey_raises_duplicate_race(store):
    store.insert(PEERS, _peer_fields(b"\x01" * 32))
    with pytest.raises(DuplicateRaceError) as exc:
        store.insert(PEERS, _peer_fields(b"\x01" * 32))
    assert exc.value.table == PEERS
    assert store.count(PEERS) == 1


def test_unique_signature_raises_duplicate_race(store):
    peer = store.insert(PEERS, _peer_fields(b"\x01" * 32))
    msg = {"signature": b"sig", "peer_id": peer["id"], "body": "hi",
           "authored_date": 1.0, "received_date": 2.0, "raw_pkt": b"raw"}
    store.insert(MESSAGES, msg)
    with pytest.raises(DuplicateRaceError):
        store.insert(MESSAGES, msg)


def test_dangling_sender_is_rejected(store):
    msg = {"signature": b"sig", "peer_id": 999, "body": "hi",
           "authored_date": 1.0, "received_date": 2.0, "raw_pkt": b"raw"}
    with pytest.raises(PersistenceError) as exc:
        store.insert(MESSAGES, msg)
    assert not isinstance(exc.value, DuplicateRaceError)
    assert store.count(MESSAGES) == 0


def test_pubkey_match_is_exact_bytes(store):
    store.insert(PEERS, _peer_fields(b"\xab\xcd"))
    assert store.query(PEERS, "pubkey=?", (b"\xab\xcd",))
    assert not store.query(PEERS, "pubkey=?", (b"\xAB\xCD\x00",))
    assert not store.query(PEERS, "pubkey=?", ("abcd",))


def test_update_reports_rowcount(store):
    store.insert(PEERS, _peer_fields(b"\x01"))
    assert store.update(PEERS, {"alias": "new"}, "pubkey=?", (b"\x01",)) == 1
    assert store.update(PEERS, {"alias": "new"}, "pubkey=?", (b"\x02",)) == 0


def test_query_without_predicate_is_full_scan(store):
    for i in range(3):
        store.insert(PEERS, _peer_fields(bytes([i])))
    assert len(store.query(PEERS)) == 3
    assert len(store.query(PEERS, limit=2)) == 2


def test_bad_predicate_is_persistence_error(store):
    with pytest.raises(PersistenceError):
        store.query(PEERS, "no_such_column=?", (1,))


def test_unknown_table_rejected(store):
    with pytest.raises(ValueError):
        store.insert("users", {"a": 1})


def test_schema_survives_reopen(tmp_path):
    path = str(tmp_path / "db.sqlite")
    with Store(path) as s:
        s.insert(PEERS, _peer_fields(b"\x01"))
    with Store(path) as s:
        assert s.count(PEERS) == 1


def test_count_on_closed_store_is_persistence_error(tmp_path):
    s = Store(str(tmp_path / "db.sqlite"))
    s.close()
    with pytest.raises(PersistenceError):
        s.count(PEERS)


class _NoReadBack:
    """Connection stand-in whose SELECTs find nothing."""

    def __init__(self, db):
        self._db = db

    def execute(self, q, args=()):
        if q.startswith("SELECT"):
            return self._db.execute("SELECT * FROM peers WHERE 0")
        return self._db.execute(q, args)

    def __getattr__(self, name):
        return getattr(self._db, name)


def test_missing_read_back_is_logged_persistence_error(store, caplog):
    store.db = _NoReadBack(store.db)
    with caplog.at_level("ERROR", logger="meshstore.store"):
        with pytest.raises(PersistenceError, match="read back"):
            store.insert(PEERS, _peer_fields(b"\x01"))
    assert "could not be read back" in caplog.text
