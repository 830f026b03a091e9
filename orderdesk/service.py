"""Order operations tying together the database, cache, broker and search index."""

from __future__ import annotations

import json
import os
import uuid
from datetime import timedelta
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from .logger import get_logger
from .storage import Order

TOPIC = "orders"
INDEX = "orders"
CACHE_TTL = timedelta(minutes=1)
DEFAULT_SEARCH_URL = "http://localhost:9200"


class ValidationError(ValueError):
    """Raised when a request carries invalid order data."""


class OrderDatabase(Protocol):
    def create(self, order_id: str, item: str, quantity: int) -> None: ...
    def get(self, order_id: str) -> Order: ...
    def update(self, order_id: str, item: str, quantity: int) -> Order: ...
    def delete(self, order_id: str) -> None: ...
    def list(self) -> list[Order]: ...


class Cache(Protocol):
    def get(self, name: str) -> Any: ...
    def set(self, name: str, value: str, ex: timedelta | None = None) -> Any: ...
    def delete(self, *names: str) -> Any: ...


class Producer(Protocol):
    def send(self, topic: str, key: str, value: str) -> Any: ...


def _encode(order: Order) -> str:
    # Zero values are left out, as the order's wire form omits empty fields.
    data: dict[str, Any] = {}
    if order.id:
        data["id"] = order.id
    if order.item:
        data["item"] = order.item
    if order.quantity:
        data["quantity"] = order.quantity
    return json.dumps(data, separators=(",", ":"))


def _decode(raw: str | bytes) -> Order:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("cached order is not a JSON object")
    quantity = data.get("quantity", 0)
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise ValueError(f"invalid quantity in cached order: {quantity!r}")
    return Order(
        id=str(data.get("id", "")),
        item=str(data.get("item", "")),
        quantity=quantity,
    )


class SearchIndex:
    """A minimal document store client speaking the Elasticsearch REST API."""

    def __init__(
        self, base_url: str | None = None, client: httpx.Client | None = None
    ) -> None:
        url = base_url or os.environ.get("ELASTICSEARCH_URL") or DEFAULT_SEARCH_URL
        self._base_url = url.rstrip("/")
        self._client = client if client is not None else httpx.Client()

    def _url(self, index: str, doc_id: str) -> str:
        return f"{self._base_url}/{quote(index, safe='')}/_doc/{quote(doc_id, safe='')}"

    def index(self, index: str, doc_id: str, body: str) -> Any:
        """Store ``body`` (a JSON document) under ``doc_id`` and refresh the index."""
        response = self._client.put(
            self._url(index, doc_id),
            params={"refresh": "true"},
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        return response.json()

    def get(self, index: str, doc_id: str) -> Any:
        """Fetch the document stored under ``doc_id``."""
        return self._client.get(self._url(index, doc_id)).json()


class OrderService:
    """Business operations on orders."""

    def __init__(
        self,
        db: OrderDatabase,
        cache: Cache,
        producer: Producer,
        search: SearchIndex,
    ) -> None:
        self.db = db
        self.cache = cache
        self.producer = producer
        self.search = search

    @staticmethod
    def _validate(item: str, quantity: int) -> None:
        if not item or quantity == 0:
            get_logger().error("Item and Quantity must not be empty")
            raise ValidationError("item and quantity must not be empty")

    def create_order(self, item: str, quantity: int) -> str:
        """Store a new order, publish it and index it; return its id."""
        log = get_logger()
        order_id = str(uuid.uuid4())
        self._validate(item, quantity)
        try:
            self.db.create(order_id, item, quantity)
        except Exception as exc:
            log.error("CreateOrder failed", error=str(exc))
            raise

        payload = _encode(Order(id=order_id, item=item, quantity=quantity))
        try:
            self.producer.send(TOPIC, order_id, payload)
        except Exception as exc:
            log.error("CreateOrder failed", error=str(exc))
            raise

        try:
            self.search.index(INDEX, order_id, payload)
        except Exception as exc:
            log.error("CreateOrder failed in elastic", error=str(exc))
        return order_id

    def get_order(self, order_id: str) -> Order:
        """Return an order, from the cache when possible."""
        log = get_logger()
        cached = self.cache.get(order_id)
        if cached is not None:
            log.info("Value from cache!")
            try:
                return _decode(cached)
            except ValueError as exc:
                log.error("Unmarshal order failed", error=str(exc))
                raise

        try:
            document = self.search.get(INDEX, order_id)
            log.info("search document", document=document)
        except Exception as exc:
            log.error("GetOrder failed", error=str(exc))

        try:
            stored = self.db.get(order_id)
        except Exception as exc:
            log.error("GetOrder failed", error=str(exc))
            raise

        order = Order(id=order_id, item=stored.item, quantity=stored.quantity)
        try:
            self.cache.set(order_id, _encode(order), ex=CACHE_TTL)
        except Exception as exc:
            log.error("SetCacheOrder failed", error=str(exc))
        log.info("Value from db!")
        return order

    def update_order(self, order_id: str, item: str, quantity: int) -> Order:
        """Change an existing order, publish the new item and refresh the cache."""
        log = get_logger()
        try:
            self.db.get(order_id)
        except Exception as exc:
            log.error("GetOrder failed", error=str(exc))
            raise

        self._validate(item, quantity)

        try:
            stored = self.db.update(order_id, item, quantity)
        except Exception as exc:
            log.error("UpdateOrder failed", error=str(exc))
            raise

        try:
            self.producer.send(TOPIC, order_id, item)
        except Exception as exc:
            log.error("UpdateOrder publish failed", error=str(exc))

        order = Order(id=order_id, item=stored.item, quantity=stored.quantity)
        try:
            self.cache.set(order_id, _encode(order), ex=CACHE_TTL)
        except Exception as exc:
            log.error("SetOrder failed", error=str(exc))
            raise
        return order

    def delete_order(self, order_id: str) -> bool:
        """Remove an existing order and drop it from the cache."""
        log = get_logger()
        try:
            self.db.get(order_id)
        except Exception as exc:
            log.error("GetOrder failed", error=str(exc))
            raise
        try:
            self.db.delete(order_id)
        except Exception as exc:
            log.error("DeleteOrder failed", error=str(exc))
            raise
        try:
            self.cache.delete(order_id)
        except Exception as exc:
            log.error("DeleteOrder from cache failed", error=str(exc))
        return True

    def list_orders(self) -> list[Order]:
        """Return every order in the database."""
        try:
            return self.db.list()
        except Exception as exc:
            get_logger().error("ListOrders failed", error=str(exc))
            raise