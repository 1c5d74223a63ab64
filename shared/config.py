"""
Environment-based configuration for the classifieds crawler.

This module exposes a small, typed configuration surface shared by the crawl
and extract pipelines and the CLI. All values are sourced from environment
variables with sensible, non-secret defaults.

No secrets or credentials are hard-coded here; they must be provided via
the environment (or tooling such as python-dotenv in local development).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Optional

Environment = Literal["local", "dev", "staging", "prod"]
ListPagePersistence = Literal["always", "when_discovering"]

DEFAULT_LIST_PAGE_URL = (
    "https://www.olx.ro/d/imobiliare/apartamente-garsoniere-de-inchiriat/2-camere/brasov/"
    "?search[order]=created_at:desc"
)


@dataclass(frozen=True)
class AppConfig:
    """
    Top-level application configuration.

    Covers logging, the Postgres connection pool, the HTTP fetcher, and the
    tuning knobs of the crawl and extract worker pools.
    """

    environment: Environment
    log_level: str

    # Optional file path for structured JSON logs; when set, logs are written
    # to file (and stdout if log_stdout).
    log_file: Optional[str]
    # When True, logs go to stdout. When False, only file (if LOG_FILE set). Default True.
    log_stdout: bool

    # Postgres connection string; required by every command that touches the store.
    database_url: Optional[str]
    # Root listing page seeded as the first job of a new session.
    list_page_url: str

    db_pool_size: int
    # Fail fast under contention instead of waiting on the pool indefinitely.
    db_pool_acquire_timeout_seconds: float

    fetch_timeout_seconds: float
    fetch_user_agent: str

    crawl_max_retries: int
    crawl_retry_backoff_seconds: float
    crawl_idle_poll_seconds: float

    extract_worker_count: int
    extract_max_in_flight: int

    list_page_persistence: ListPagePersistence

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Construct configuration from environment variables.

        All fields have sensible defaults suitable for local development,
        except DATABASE_URL which has no default.
        """

        environment = os.getenv("APP_ENV", "local")

        # Narrow the type at runtime while keeping a simple env interface.
        if environment not in {"local", "dev", "staging", "prod"}:
            raise ValueError(f"Unsupported APP_ENV value: {environment!r}")

        log_stdout_raw = (os.getenv("LOG_STDOUT") or "true").strip().lower()
        log_stdout = log_stdout_raw in ("true", "1", "yes")

        def _int_env(name: str, default: int, minimum: int = 1) -> int:
            raw = os.getenv(name, str(default)).strip()
            try:
                value = int(raw)
            except ValueError:
                raise ValueError(f"{name} must be an integer, got {raw!r}") from None
            if value < minimum:
                raise ValueError(f"{name} must be >= {minimum}, got {value}")
            return value

        def _float_env(name: str, default: float) -> float:
            raw = os.getenv(name, str(default)).strip()
            try:
                value = float(raw)
            except ValueError:
                raise ValueError(f"{name} must be a number, got {raw!r}") from None
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")
            return value

        list_page_persistence = os.getenv("LIST_PAGE_PERSISTENCE", "always").strip().lower()
        if list_page_persistence not in {"always", "when_discovering"}:
            raise ValueError(
                f"Unsupported LIST_PAGE_PERSISTENCE value: {list_page_persistence!r}"
            )

        log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL value: {log_level!r}")

        return cls(
            environment=environment,  # type: ignore[arg-type]
            log_level=log_level,
            log_file=os.getenv("LOG_FILE") or None,
            log_stdout=log_stdout,
            database_url=normalize_database_url(os.getenv("DATABASE_URL") or None),
            list_page_url=os.getenv("LIST_PAGE_URL") or DEFAULT_LIST_PAGE_URL,
            db_pool_size=_int_env("DB_POOL_SIZE", 5),
            db_pool_acquire_timeout_seconds=_float_env("DB_POOL_ACQUIRE_TIMEOUT_SECONDS", 2.0),
            fetch_timeout_seconds=_float_env("FETCH_TIMEOUT_SECONDS", 30.0),
            fetch_user_agent=os.getenv("FETCH_USER_AGENT") or "curl/7.85.0",
            crawl_max_retries=_int_env("CRAWL_MAX_RETRIES", 3),
            crawl_retry_backoff_seconds=_float_env("CRAWL_RETRY_BACKOFF_SECONDS", 5.0),
            crawl_idle_poll_seconds=_float_env("CRAWL_IDLE_POLL_SECONDS", 1.0),
            extract_worker_count=_int_env("EXTRACT_WORKER_COUNT", 4),
            extract_max_in_flight=_int_env("EXTRACT_MAX_IN_FLIGHT", 3),
            list_page_persistence=list_page_persistence,  # type: ignore[arg-type]
        )


def normalize_database_url(url: Optional[str]) -> Optional[str]:
    """
    Point plain Postgres URLs at the async psycopg driver.

    SQLAlchemy 2.x rejects 'postgres://' and defaults 'postgresql://' to the
    sync psycopg2 driver; the async engine needs 'postgresql+psycopg://'.
    """
    if not url:
        return None
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def get_config() -> AppConfig:
    """
    Helper to obtain the current configuration.

    In simple scripts, calling this function directly is sufficient. In
    longer-lived processes, construct a single `AppConfig` at startup and
    pass it explicitly through your code.
    """

    return AppConfig.from_env()
