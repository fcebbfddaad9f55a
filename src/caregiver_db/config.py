"""Database configuration read from the environment.

``DATABASE_URL`` takes precedence; otherwise the URL is assembled from
``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD`` and ``PG_DATABASE``
(convenient for docker-compose).  Both the runtime engine and Alembic use
the asyncpg driver, so a plain ``postgresql://`` URL is upgraded to
``postgresql+asyncpg://``.
"""

import os
from dataclasses import dataclass
from urllib.parse import quote_plus

ASYNC_SCHEME = "postgresql+asyncpg://"


@dataclass(frozen=True)
class DatabaseSettings:
    host: str = "localhost"
    port: int = 5432
    user: str = "caregiver"
    password: str = "caregiver"
    database: str = "caregiver"
    url: str | None = None

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        return cls(
            host=os.getenv("PG_HOST", "localhost"),
            port=int(os.getenv("PG_PORT", "5432")),
            user=os.getenv("PG_USER", "caregiver"),
            password=os.getenv("PG_PASSWORD", "caregiver"),
            database=os.getenv("PG_DATABASE", "caregiver"),
            url=os.getenv("DATABASE_URL") or None,
        )

    @property
    def async_url(self) -> str:
        if self.url:
            for prefix in ("postgresql://", "postgres://"):
                if self.url.startswith(prefix):
                    return ASYNC_SCHEME + self.url[len(prefix):]
            return self.url
        return (
            f"{ASYNC_SCHEME}{quote_plus(self.user)}:{quote_plus(self.password)}"
            f"@{self.host}:{self.port}/{self.database}"
        )


def get_async_url() -> str:
    """Return the asyncpg connection URL from the current environment."""
    return DatabaseSettings.from_env().async_url
