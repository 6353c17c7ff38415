"""
Environment-driven settings.

``FLASK_ENV`` picks one of the config classes below; every other value is
read through ``EnvReader`` so a malformed variable degrades to its default
and is reported in ``ENV_DIAGNOSTICS`` instead of stopping the process.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

ENVIRONMENTS = ("development", "testing", "staging", "production")
MISSING_VARIANT_POLICIES = ("skip", "fail")
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})
_INSTANCE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), os.pardir, "instance")


@dataclass(frozen=True)
class EnvironmentInfo:
    name: str
    source: str
    raw_value: str


class EnvReader:
    """Typed access to environment variables with fallbacks and warnings."""

    def __init__(self, data: Mapping[str, str] | None = None):
        self._source = dict(os.environ) if data is None else dict(data)
        self.warnings: list[str] = []

    def _get(self, key: str) -> str | None:
        raw = self._source.get(key)
        if raw is None or not raw.strip():
            return None
        return raw.strip()

    def _fallback(self, key: str, expected: str, value: str, default):
        self.warnings.append(f"{key}: expected {expected}, got {value!r}; using {default!r}")
        return default

    def str(self, key: str, default: str | None = None) -> str | None:
        value = self._get(key)
        return default if value is None else value

    def int(self, key: str, default: int = 0) -> int:
        value = self._get(key)
        if value is None:
            return default
        if value.lstrip("-").isdigit():
            return int(value)
        return self._fallback(key, "an integer", value, default)

    def bool(self, key: str, default: bool = False) -> bool:
        value = self._get(key)
        if value is None:
            return default
        if value.lower() in _TRUTHY:
            return True
        if value.lower() in _FALSY:
            return False
        return self._fallback(key, "a boolean", value, default)

    def choice(self, key: str, choices, default: str) -> str:
        value = self._get(key)
        if value is None:
            return default
        if value.lower() in choices:
            return value.lower()
        return self._fallback(key, f"one of {', '.join(sorted(choices))}", value, default)


def resolve_environment(reader: EnvReader) -> EnvironmentInfo:
    raw_value = reader.str("FLASK_ENV", "development")
    name = raw_value.lower()
    if name not in ENVIRONMENTS:
        raise RuntimeError(f"FLASK_ENV={raw_value!r} is not one of {', '.join(ENVIRONMENTS)}")
    return EnvironmentInfo(name=name, source="FLASK_ENV", raw_value=raw_value)


def database_uri(reader: EnvReader, *, sqlite_fallback: bool) -> str | None:
    """DATABASE_URL with Heroku-style ``postgres://`` fixed up."""
    url = reader.str("DATABASE_URL")
    if url and url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url or not sqlite_fallback:
        return url
    os.makedirs(_INSTANCE_DIR, exist_ok=True)
    return "sqlite:///" + os.path.abspath(os.path.join(_INSTANCE_DIR, "stockroom.db"))


env = EnvReader()
ENV_INFO = resolve_environment(env)


class BaseConfig:
    FLASK_ENV = ENV_INFO.name
    SECRET_KEY = env.str("FLASK_SECRET_KEY", "stockroom-dev-secret")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": env.int("SQLALCHEMY_POOL_SIZE", 10),
        "max_overflow": env.int("SQLALCHEMY_MAX_OVERFLOW", 5),
        "pool_recycle": env.int("SQLALCHEMY_POOL_RECYCLE", 1800),
    }

    CACHE_TYPE = env.str("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = env.int("CACHE_DEFAULT_TIMEOUT", 300)

    LOG_LEVEL = env.str("LOG_LEVEL", "INFO")
    LOG_REDACT_PII = env.bool("LOG_REDACT_PII", True)

    # Ledger / workflow
    MISSING_VARIANT_POLICY = env.choice("MISSING_VARIANT_POLICY", MISSING_VARIANT_POLICIES, "skip")
    DEFAULT_PERFORMER = env.str("DEFAULT_PERFORMER", "System")
    STOCK_OPTIONS_CACHE_TTL = env.int("STOCK_OPTIONS_CACHE_TTL", 300)
    APP_TIMEZONE = env.str("APP_TIMEZONE", "UTC")


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True
    LOG_LEVEL = env.str("LOG_LEVEL", "DEBUG")
    SQLALCHEMY_DATABASE_URI = database_uri(env, sqlite_fallback=True)


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CACHE_TYPE = "SimpleCache"


class StagingConfig(BaseConfig):
    ENV = "staging"
    SQLALCHEMY_DATABASE_URI = database_uri(env, sqlite_fallback=False)


class ProductionConfig(BaseConfig):
    ENV = "production"
    SQLALCHEMY_DATABASE_URI = database_uri(env, sqlite_fallback=False)
    LOG_LEVEL = env.str("LOG_LEVEL", "WARNING")


config_map = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}

Config = config_map[ENV_INFO.name]
ENV_DIAGNOSTICS = {
    "active": ENV_INFO.name,
    "source": ENV_INFO.source,
    "warnings": tuple(env.warnings),
}
