from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from orderdesk.config import PostgresConfig
from orderdesk.storage import (
    Order,
    OrderNotFoundError,
    OrderStore,
    _apply_migrations,
    connect,
)

CREATE_ORDERS = (
    "CREATE TABLE orders (id TEXT PRIMARY KEY, item TEXT NOT NULL, "
    "quantity INTEGER NOT NULL)"
)


def _sqlite_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    return engine.execution_options(schema_translate_map={"lyceum_schema": None})


@pytest.fixture
def store():
    engine = _sqlite_engine()
    with engine.begin() as conn:
        conn.execute(text(CREATE_ORDERS))
    return OrderStore(engine)


def test_create_then_get_round_trip(store):
    store.create("a1", "book", 3)
    assert store.get("a1") == Order(id="a1", item="book", quantity=3)


def test_get_missing_raises(store):
    with pytest.raises(OrderNotFoundError) as info:
        store.get("missing")
    assert info.value.order_id == "missing"


def test_create_duplicate_id_fails(store):
    store.create("a1", "book", 3)
    with pytest.raises(IntegrityError):
        store.create("a1", "pen", 1)
    assert store.get("a1").item == "book"


def test_update_returns_new_values(store):
    store.create("a1", "book", 3)
    updated = store.update("a1", "pen", 7)
    assert updated == Order(id="a1", item="pen", quantity=7)
    assert store.get("a1") == updated


def test_update_missing_raises(store):
    with pytest.raises(OrderNotFoundError):
        store.update("missing", "pen", 1)
    assert store.list() == []


def test_delete_removes_order(store):
    store.create("a1", "book", 3)
    store.create("a2", "pen", 1)
    store.delete("a1")
    with pytest.raises(OrderNotFoundError):
        store.get("a1")
    assert store.list() == [Order(id="a2", item="pen", quantity=1)]


def test_delete_missing_raises(store):
    with pytest.raises(OrderNotFoundError):
        store.delete("missing")


def test_list_returns_every_order(store):
    assert store.list() == []
    store.create("a1", "book", 3)
    store.create("a2", "pen", 1)
    assert sorted(store.list(), key=lambda order: order.id) == [
        Order(id="a1", item="book", quantity=3),
        Order(id="a2", item="pen", quantity=1),
    ]


def test_migrations_apply_once_in_order(tmp_path: Path):
    (tmp_path / "000001_create_orders.up.sql").write_text(CREATE_ORDERS)
    (tmp_path / "000001_create_orders.down.sql").write_text("DROP TABLE orders")
    (tmp_path / "000002_seed.up.sql").write_text(
        "INSERT INTO orders (id, item, quantity) VALUES ('s1', 'seed', 1)"
    )
    engine = _sqlite_engine()

    assert _apply_migrations(engine, tmp_path) == 2
    assert _apply_migrations(engine, tmp_path) == 0

    with engine.connect() as conn:
        row = conn.execute(text("SELECT version, dirty FROM schema_migrations")).one()
    assert row.version == 2
    assert not row.dirty
    assert OrderStore(engine).list() == [Order(id="s1", item="seed", quantity=1)]


def test_dirty_database_refuses_migrations(tmp_path: Path):
    (tmp_path / "000001_create_orders.up.sql").write_text(CREATE_ORDERS)
    engine = _sqlite_engine()
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE schema_migrations "
                "(version BIGINT NOT NULL PRIMARY KEY, dirty BOOLEAN NOT NULL)"
            )
        )
        conn.execute(text("INSERT INTO schema_migrations VALUES (1, 1)"))
    with pytest.raises(RuntimeError):
        _apply_migrations(engine, tmp_path)


def test_connect_requires_migrations_directory(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        connect(PostgresConfig(), tmp_path / "absent")