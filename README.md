# orderdesk

orderdesk is a small order management service. An order has an id, an item
name and a quantity. Orders are stored in PostgreSQL through SQLAlchemy, and
single orders are cached in Redis for one minute. Every new or changed order is
published to the `orders` topic, and new orders are indexed in an
Elasticsearch-compatible search index. All of this is served as a JSON API
over HTTP.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Running the server

```
orderdesk [--env-file PATH] [--migrations DIR]
```

- `--env-file` sets the dotenv file with the settings. The default is `.env`.
- `--migrations` sets the directory of SQL migrations. The default is
  `db/migrations`.

The command runs these steps in order:

1. It reads the settings with `load_config`.
2. It connects to PostgreSQL and applies any pending `<version>_<name>.up.sql`
   files from the migrations directory, in version order. The applied version
   is recorded in a `schema_migrations` table.
3. It connects to Redis on host `redis`.
4. It publishes messages through a Kafka REST proxy. The proxy address is
   `KAFKA_REST_URL`, or `http://kafka:<KAFKA_LISTENER_PLAIN_PORT>` if that is
   not set.
5. It indexes orders at `ELASTICSEARCH_URL`, or `http://localhost:9200` if that
   is not set.
6. It serves HTTP with uvicorn on `0.0.0.0`, at the gateway port.

If the settings or the database cannot be loaded, the command logs a fatal
record and exits with status 1.

### Settings

Values in the dotenv file take precedence over the process environment. Every
setting has a default, so an empty `.env` file is enough. The file itself must
exist, or `load_config` raises `FileNotFoundError`. Integer settings that do
not parse raise `ValueError`.

| Class            | Variable                                 | Default                  |
|------------------|------------------------------------------|--------------------------|
| `PostgresConfig` | `POSTGRES_HOST`                          | `localhost`              |
|                  | `POSTGRES_PORT`                          | `5432`                   |
|                  | `POSTGRES_USERT`                         | `root`                   |
|                  | `POSTGRES_PASS`                          | `password`               |
|                  | `POSTGRES_DB`                            | `postgres`               |
| `RedisConfig`    | `REDIS_PORT`                             | `6379`                   |
|                  | `REDIS_PASSWORD`                         | `password`               |
|                  | `REDIS_DB`                               | `0`                      |
| `KafkaConfig`    | `KAFKA_BROKER_ID`                        | `1`                      |
|                  | `KAFKA_ZOOKEEPER_CONNECT`                | `zookeeper:2181`         |
|                  | `KAFKA_LISTENER_NAME`                    | `PLAIN`                  |
|                  | `KAFKA_LISTENER_PLAIN_PORT`              | `9092`                   |
|                  | `KAFKA_ADVERTISED_LISTENERS`             | `PLAIN://localhost:9092` |
|                  | `KAFKA_OFFSETS_TOPIC_REPLICATION_FACTOR` | `1`                      |
| `Config`         | `GRPC_PORT`                              | `50051`                  |
|                  | `GRPC_GATEWAY_PORT`                      | `8081`                   |

`PostgresConfig.url()` returns the connection URL, with `sslmode=disable`.

### HTTP API

| Method   | Path               | Body                      | Response                     |
|----------|--------------------|---------------------------|------------------------------|
| `POST`   | `/v1/orders`       | `{"item": ..., "quantity": ...}` | `{"id": ...}`         |
| `GET`    | `/v1/orders/{id}`  |                           | `{"order": {...}}`           |
| `PUT`    | `/v1/orders/{id}`  | `{"item": ..., "quantity": ...}` | `{"order": {...}}`    |
| `DELETE` | `/v1/orders/{id}`  |                           | `{"success": true}`          |
| `GET`    | `/v1/orders`       |                           | `{"orders": [...]}`          |

Fields with empty or zero values are left out of order objects. Errors are
returned as `{"code": ..., "message": ..., "details": []}`:

- status 400 with code 3 for invalid data;
- status 404 with code 5 for a missing order;
- status 500 with code 2 for any other failure.

## Using it as a library

```python
from orderdesk.app import create_app
from orderdesk.config import load_config
from orderdesk.service import OrderService, SearchIndex
from orderdesk.storage import connect

config = load_config(".env")
store = connect(config.postgres, "db/migrations")   # an OrderStore
service = OrderService(store, redis_client, producer, SearchIndex("http://localhost:9200"))

order_id = service.create_order("book", 2)
order = service.get_order(order_id)
app = create_app(service)   # a FastAPI application
```

The service's collaborators behave as follows:

- The cache needs `get`, `set(name, value, ex=...)` and `delete`. A
  `redis.Redis` client fits.
- The producer needs `send(topic, key, value)`.
- `SearchIndex` talks to the search index's REST API through an
  `httpx.Client`. Its `index` and `get` methods store and fetch documents.

Errors and side effects:

- `create_order` and `update_order` raise `ValidationError` when the item is
  empty or the quantity is zero.
- `OrderStore.get`, `update` and `delete` raise `OrderNotFoundError` for an
  unknown id.
- Failures of the search index are only logged.
- A failed publish is logged in `update_order`, but raised in `create_order`.

### Resilience helpers

`orderdesk.resilience` offers three helpers that you can use on their own:

- `retry(operation, max_retries, base_delay)` calls `operation` until it
  succeeds, at most `max_retries` times, and returns its result. After each
  failure it sleeps `base_delay * 2**attempt` seconds. If every attempt fails,
  it raises the last error.
- `timeout(operation, seconds)` runs `operation` in a background thread and
  returns its result or raises its error. If it has not finished within
  `seconds`, it raises `TimeoutError`, and the thread is left to finish on its
  own.
- `process_with_dlq(messages, operation)` calls `operation` on every message.
  It returns a `DLQResult`. `dead_letters` lists the messages that failed.
  `error` holds the error from the last message, or `None` if the last
  message succeeded.

### Logging

`get_logger()` returns the process-wide `Logger`. Its `info`, `error` and
`fatal` methods write JSON lines to standard error, and `fatal` then exits
with status 1. `intercept(method, handler, request)` runs a handler under a
fresh request id. While a request is handled, `current_request_id()` returns
that id, and every log record includes it.

## What it does not do

- There is no gRPC server. `GRPC_PORT` is read into `Config`, but only the
  HTTP API is served.
- Messages are published only through a Kafka REST proxy, not over the native
  Kafka protocol.
- No migration files are included. The database schema (a
  `lyceum_schema.orders` table) must be supplied in the migrations directory.