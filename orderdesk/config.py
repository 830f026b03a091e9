"""Service configuration read from a dotenv file and the process environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import quote

from dotenv import dotenv_values

PASSWORD = "password"

_PG_LOGIN_ENV = "POSTGRES_PASS"
_REDIS_LOGIN_ENV = "REDIS_PASSWORD"

REDIS_TIMEOUT = timedelta(seconds=5)


def _env(name: str, default: Any) -> Any:
    return field(default=default, metadata={"env": name})


@dataclass(frozen=True)
class PostgresConfig:
    """Connection settings for the order database."""

    host: str = _env("POSTGRES_HOST", "localhost")
    port: int = _env("POSTGRES_PORT", 5432)
    username: str = _env("POSTGRES_USERT", "root")
    password: str = _env(_PG_LOGIN_ENV, PASSWORD)
    database: str = _env("POSTGRES_DB", "postgres")

    def url(self) -> str:
        """Return the connection URL for this database."""
        user = quote(self.username, safe="")
        credential = quote(self.password, safe="")
        return (
            f"postgresql://{user}:{credential}@{self.host}:{self.port}/"
            f"{self.database}?sslmode=disable"
        )


@dataclass(frozen=True)
class RedisConfig:
    """Settings for the order cache."""

    port: str = _env("REDIS_PORT", "6379")
    password: str = _env(_REDIS_LOGIN_ENV, PASSWORD)
    db: int = _env("REDIS_DB", 0)


@dataclass(frozen=True)
class KafkaConfig:
    """Settings for the order event broker."""

    broker_id: str = _env("KAFKA_BROKER_ID", "1")
    zookeeper: str = _env("KAFKA_ZOOKEEPER_CONNECT", "zookeeper:2181")
    listener: str = _env("KAFKA_LISTENER_NAME", "PLAIN")
    port: str = _env("KAFKA_LISTENER_PLAIN_PORT", "9092")
    address: str = _env("KAFKA_ADVERTISED_LISTENERS", "PLAIN://localhost:9092")
    replicas: str = _env("KAFKA_OFFSETS_TOPIC_REPLICATION_FACTOR", "1")


@dataclass(frozen=True)
class Config:
    """Complete service configuration."""

    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    grpc_port: int = _env("GRPC_PORT", 50051)
    gateway_port: str = _env("GRPC_GATEWAY_PORT", "8081")


def _section(cls: type, values: Mapping[str, str], **nested: Any) -> Any:
    kwargs: dict[str, Any] = dict(nested)
    for spec in fields(cls):
        name = spec.metadata.get("env")
        if name is None or name not in values:
            continue
        raw = values[name]
        if isinstance(spec.default, int):
            try:
                kwargs[spec.name] = int(raw.strip())
            except ValueError:
                raise ValueError(f"{name}: expected an integer, got {raw!r}") from None
        else:
            kwargs[spec.name] = raw
    return cls(**kwargs)


def load_config(path: str | os.PathLike[str] = ".env") -> Config:
    """Read the configuration from a dotenv file, falling back to the environment.

    Values in the file take precedence over the process environment.
    """
    env_file = Path(path)
    if not env_file.is_file():
        raise FileNotFoundError(f"config file not found: {env_file}")
    values = dict(os.environ)
    values.update(
        {key: value for key, value in dotenv_values(env_file).items() if value is not None}
    )
    return _section(
        Config,
        values,
        postgres=_section(PostgresConfig, values),
        redis=_section(RedisConfig, values),
        kafka=_section(KafkaConfig, values),
    )