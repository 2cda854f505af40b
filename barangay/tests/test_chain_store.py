"""
Tests for the append-only SQLite chain store.
"""

import sqlite3
import uuid

import pytest

from barangay.app.db.chain_store import (
    ChainStore,
    ChainStoreError,
    ClockRegressionError,
    DuplicateDigestError,
    StaleTipError,
)
from barangay.app.db.ledger_hashing import (
    GENESIS_DIGEST,
    compute_block_digest,
    utc_timestamp,
)
from barangay.app.models.audit import Block


def make_block(
    previous_digest,
    description="Added resident: Juan",
    timestamp=None,
    module="Resident",
):
    timestamp = timestamp or utc_timestamp()
    fields = (timestamp, "alice", "CREATE", module, description, previous_digest)
    return Block(
        block_id=str(uuid.uuid4()),
        timestamp=timestamp,
        actor="alice",
        action="CREATE",
        module=module,
        description=description,
        previous_digest=previous_digest,
        digest=compute_block_digest(*fields),
    )


def append_n(store, n):
    blocks = []
    previous = GENESIS_DIGEST
    for i in range(n):
        block = store.append(make_block(previous, description=f"entry {i}"))
        blocks.append(block)
        previous = block.digest
    return blocks


def test_empty_chain_has_no_tip(store):
    assert store.get_tip() is None
    assert store.count() == 0
    assert store.list_all() == []


def test_append_assigns_sequence_and_becomes_tip(store):
    block = store.append(make_block(GENESIS_DIGEST))

    assert block.sequence == 1
    tip = store.get_tip()
    assert tip == block
    assert tip.previous_digest == GENESIS_DIGEST


def test_duplicate_digest_is_rejected(store):
    first = store.append(make_block(GENESIS_DIGEST))
    duplicate = first.model_copy(update={"block_id": str(uuid.uuid4())})

    with pytest.raises(DuplicateDigestError):
        store.append(duplicate)
    assert store.count() == 1


def test_block_not_extending_tip_is_rejected(store):
    """Two blocks can never claim the same predecessor (no forks)."""
    store.append(make_block(GENESIS_DIGEST, description="first"))

    sibling = make_block(GENESIS_DIGEST, description="sibling of first")
    with pytest.raises(StaleTipError):
        store.append(sibling)
    assert store.count() == 1


def test_first_block_must_reference_genesis(store):
    with pytest.raises(StaleTipError):
        store.append(make_block("f" * 64))


def test_stale_tip_error_is_a_chain_store_error():
    assert issubclass(StaleTipError, ChainStoreError)
    assert issubclass(DuplicateDigestError, ChainStoreError)


def test_list_all_orders_and_paginates(store):
    blocks = append_n(store, 5)

    newest_first = store.list_all(order="desc")
    assert [b.digest for b in newest_first] == [b.digest for b in reversed(blocks)]

    oldest_first = store.list_all(order="asc")
    assert [b.digest for b in oldest_first] == [b.digest for b in blocks]

    page_two = store.list_all(order="asc", page=2, limit=2)
    assert [b.description for b in page_two] == ["entry 2", "entry 3"]

    assert store.list_all(order="asc", page=4, limit=2) == []


def test_list_all_rejects_bad_arguments(store):
    with pytest.raises(ValueError):
        store.list_all(order="sideways")
    with pytest.raises(ValueError):
        store.list_all(page=0)


def test_search_is_case_insensitive_substring(store):
    previous = GENESIS_DIGEST
    for module, description in [
        ("Resident", "Added resident: Juan"),
        ("Announcement", "Posted: Fiesta"),
        ("Official", "Updated resident: Ana"),
    ]:
        block = make_block(previous, description=description, module=module)
        previous = store.append(block).digest

    matches = store.list_all(search="RESIDENT")
    assert {b.description for b in matches} == {
        "Added resident: Juan",
        "Updated resident: Ana",
    }
    assert store.count(search="fiesta") == 1
    assert store.count(search="alice") == 3


def test_search_treats_wildcards_literally(store):
    previous = store.append(make_block(GENESIS_DIGEST, description="100% done")).digest
    store.append(make_block(previous, description="1000 done"))

    assert [b.description for b in store.list_all(search="0%")] == ["100% done"]
    assert store.count(search="_") == 0


def test_equal_timestamps_are_ordered_by_sequence(store):
    ts = utc_timestamp()
    first = store.append(make_block(GENESIS_DIGEST, description="a", timestamp=ts))
    second = store.append(make_block(first.digest, description="b", timestamp=ts))

    assert store.get_tip().digest == second.digest
    assert [b.description for b in store.list_all(order="asc")] == ["a", "b"]


def test_iter_rows_streams_raw_rows_in_causal_order(store):
    blocks = append_n(store, 3)

    rows = list(store.iter_rows(order="asc"))
    assert [row["digest"] for row in rows] == [b.digest for b in blocks]
    assert set(rows[0]) >= {"block_id", "sequence", "previous_digest", "digest"}


def test_store_exposes_no_mutation_beyond_append():
    public = {name for name in dir(ChainStore) if not name.startswith("_")}
    assert public == {"append", "get_tip", "list_all", "iter_rows", "count"}


def test_storage_failure_surfaces_as_chain_store_error(tmp_path):
    missing_table_db = tmp_path / "empty.db"

    def connect():
        conn = sqlite3.connect(missing_table_db, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    broken = ChainStore(connect=connect)
    with pytest.raises(ChainStoreError):
        broken.get_tip()
    with pytest.raises(ChainStoreError):
        broken.append(make_block(GENESIS_DIGEST))


def test_block_timestamped_before_tip_is_rejected(store):
    first = store.append(
        make_block(GENESIS_DIGEST, timestamp="2025-03-01T10:00:00.000Z")
    )

    earlier = make_block(first.digest, timestamp="2025-03-01T09:59:59.000Z")
    with pytest.raises(ClockRegressionError):
        store.append(earlier)
    assert store.get_tip().digest == first.digest
    assert issubclass(ClockRegressionError, StaleTipError)


def test_unopenable_database_raises_chain_store_error(monkeypatch, tmp_path):
    import barangay.app.db.migrate as migrate_module

    monkeypatch.setattr(
        migrate_module, "get_db_path", lambda: tmp_path / "missing-dir" / "audit.db"
    )
    unreachable = ChainStore()

    with pytest.raises(ChainStoreError):
        unreachable.get_tip()
    with pytest.raises(ChainStoreError):
        unreachable.append(make_block(GENESIS_DIGEST))
    with pytest.raises(ChainStoreError):
        unreachable.list_all()
    with pytest.raises(ChainStoreError):
        unreachable.count()
    with pytest.raises(ChainStoreError):
        list(unreachable.iter_rows())
