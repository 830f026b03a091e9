"""Order persistence backed by a SQL database."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, delete, insert
from sqlalchemy import select, text, update
from sqlalchemy.engine import Engine

from .config import PostgresConfig
from .logger import get_logger

_ORDERS = Table(
    "orders",
    MetaData(),
    Column("id", String, primary_key=True),
    Column("item", String, nullable=False),
    Column("quantity", Integer, nullable=False),
    schema="lyceum_schema",
)
_SELECT = select(_ORDERS.c.id, _ORDERS.c.item, _ORDERS.c.quantity)
_MIGRATION_NAME = re.compile(r"^(\d+)_.*\.up\.sql$")


@dataclass(frozen=True)
class Order:
    """A single order."""

    id: str = ""
    item: str = ""
    quantity: int = 0


class OrderNotFoundError(LookupError):
    """Raised when no order has the requested id."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"order not found: {order_id}")
        self.order_id = order_id


class OrderStore:
    """Create, read, update and delete orders."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create(self, order_id: str, item: str, quantity: int) -> None:
        with self._engine.begin() as conn:
            conn.execute(insert(_ORDERS).values(id=order_id, item=item, quantity=quantity))

    def get(self, order_id: str) -> Order:
        """Return the order with ``order_id`` or raise ``OrderNotFoundError``."""
        with self._engine.connect() as conn:
            row = conn.execute(_SELECT.where(_ORDERS.c.id == order_id)).first()
        if row is None:
            error = OrderNotFoundError(order_id)
            get_logger().error("Error get order", error=str(error))
            raise error
        return Order(*row)

    def update(self, order_id: str, item: str, quantity: int) -> Order:
        self.get(order_id)
        with self._engine.begin() as conn:
            conn.execute(
                update(_ORDERS).where(_ORDERS.c.id == order_id).values(item=item, quantity=quantity)
            )
        return self.get(order_id)

    def delete(self, order_id: str) -> None:
        self.get(order_id)
        with self._engine.begin() as conn:
            conn.execute(delete(_ORDERS).where(_ORDERS.c.id == order_id))

    def list(self) -> list[Order]:
        with self._engine.connect() as conn:
            return [Order(*row) for row in conn.execute(_SELECT)]


def _apply_migrations(engine: Engine, directory: Path) -> None:
    """Apply pending ``*.up.sql`` files in version order."""
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE IF NOT EXISTS schema_migrations "
                "(version BIGINT NOT NULL PRIMARY KEY, dirty BOOLEAN NOT NULL)"
            )
        )
        row = conn.execute(text("SELECT version, dirty FROM schema_migrations")).first()
    if row is not None and row.dirty:
        raise RuntimeError(f"database is dirty at migration version {row.version}")
    current = -1 if row is None else int(row.version)

    pending = sorted(
        (int(match.group(1)), path)
        for path in directory.iterdir()
        if (match := _MIGRATION_NAME.match(path.name)) and path.is_file()
    )
    for version, path in pending:
        if version <= current:
            continue
        script = path.read_text(encoding="utf-8")
        with engine.begin() as conn:
            if script.strip():
                conn.exec_driver_sql(script)
            conn.execute(text("DELETE FROM schema_migrations"))
            conn.execute(
                text("INSERT INTO schema_migrations (version, dirty) VALUES (:v, :d)"),
                {"v": version, "d": False},
            )


def connect(config: PostgresConfig, migrations_dir: str | Path = "db/migrations") -> OrderStore:
    """Connect to the database, run pending migrations and check the connection."""
    log = get_logger()
    directory = Path(migrations_dir)
    if not directory.is_dir():
        error = FileNotFoundError(f"migrations directory not found: {directory}")
        log.error("Failed to connect to postgres", error=str(error))
        raise error

    engine = create_engine(config.url(), pool_pre_ping=True)
    try:
        _apply_migrations(engine, directory)
    except Exception as exc:
        log.error("Failed to run migrations", error=str(exc))
        raise
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as exc:
        log.error("Failed to ping postgres", error=str(exc))
        raise

    log.info("Successfully connected to postgres")
    return OrderStore(engine)