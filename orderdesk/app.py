"""HTTP front end for the order service, and the command that starts it."""

import argparse
import json
import os
from typing import Any, Callable, Dict, Optional, Sequence

import httpx
import redis
import uvicorn
from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse

from .config import load_config
from .logger import get_logger, intercept
from .service import OrderService, SearchIndex, ValidationError
from .storage import Order, OrderNotFoundError, connect


class _RestProducer:
    """Publishes messages through a Kafka REST proxy."""

    def __init__(self, base_url: str) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.Client()

    def send(self, topic: str, key: str, value: str) -> Any:
        response = self._client.post(
            f"{self._base_url}/topics/{topic}",
            content=json.dumps({"records": [{"key": key, "value": value}]}),
            headers={"Content-Type": "application/vnd.kafka.json.v2+json"},
        )
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self._client.close()


def _order_json(order: Order) -> Dict[str, Any]:
    data = {"id": order.id, "item": order.item, "quantity": order.quantity}
    return {key: value for key, value in data.items() if value}


def _order_fields(payload: Dict[str, Any]) -> tuple:
    item = payload.get("item", "")
    quantity = payload.get("quantity", 0)
    if not isinstance(item, str):
        raise ValidationError("item must be a string")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if not -(2**31) <= quantity < 2**31:
        raise ValidationError("quantity is out of range")
    return item, quantity


def _call(method: str, handler: Callable[[Any], Any], request: Any) -> Any:
    # Error bodies carry RPC status codes: 3 invalid argument, 5 not found, 2 unknown.
    try:
        return intercept(f"/OrderService/{method}", handler, request)
    except ValidationError as exc:
        status, code, message = 400, 3, str(exc)
    except OrderNotFoundError as exc:
        status, code, message = 404, 5, str(exc)
    except Exception as exc:
        status, code, message = 500, 2, str(exc)
    return JSONResponse(
        status_code=status, content={"code": code, "message": message, "details": []}
    )


def create_app(service: OrderService) -> FastAPI:
    """Build the HTTP application exposing ``service``."""
    app = FastAPI(title="orderdesk")

    @app.post("/v1/orders")
    def create_order(payload: Dict[str, Any] = Body(...)) -> Any:
        return _call(
            "CreateOrder",
            lambda req: {"id": service.create_order(*_order_fields(req))},
            payload,
        )

    @app.get("/v1/orders/{order_id}")
    def get_order(order_id: str) -> Any:
        return _call(
            "GetOrder", lambda oid: {"order": _order_json(service.get_order(oid))}, order_id
        )

    @app.put("/v1/orders/{order_id}")
    def update_order(order_id: str, payload: Dict[str, Any] = Body(...)) -> Any:
        return _call(
            "UpdateOrder",
            lambda req: {
                "order": _order_json(service.update_order(order_id, *_order_fields(req)))
            },
            payload,
        )

    @app.delete("/v1/orders/{order_id}")
    def delete_order(order_id: str) -> Any:
        return _call("DeleteOrder", lambda oid: {"success": service.delete_order(oid)}, order_id)

    @app.get("/v1/orders")
    def list_orders() -> Any:
        return _call(
            "ListOrders",
            lambda _: {"orders": [_order_json(order) for order in service.list_orders()]},
            None,
        )

    return app


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Load settings, connect the backing services and serve HTTP until stopped."""
    parser = argparse.ArgumentParser(prog="orderdesk", description="Run the order service.")
    parser.add_argument("--env-file", default=".env", help="dotenv file with settings")
    parser.add_argument("--migrations", default="db/migrations", help="SQL migrations directory")
    args = parser.parse_args(argv)
    log = get_logger()

    try:
        config = load_config(args.env_file)
    except (OSError, ValueError) as exc:
        log.fatal("config.New() error", error=str(exc))
    try:
        store = connect(config.postgres, args.migrations)
    except Exception as exc:
        log.fatal("Failed to connect to postgres", error=str(exc))

    cache = redis.Redis(
        host="redis",
        port=int(config.redis.port),
        password=config.redis.password,
        db=config.redis.db,
    )
    producer = _RestProducer(
        os.environ.get("KAFKA_REST_URL") or f"http://kafka:{config.kafka.port}"
    )
    app = create_app(OrderService(store, cache, producer, SearchIndex()))

    log.info("Starting server grpc gateway...", port=config.gateway_port)
    try:
        uvicorn.run(
            app, host="0.0.0.0", port=int(config.gateway_port), timeout_graceful_shutdown=10
        )
    finally:
        producer.close()
        cache.close()
        log.info("Server Stopped")