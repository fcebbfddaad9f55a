"""Settings for the caregiver questionnaire HTTP server.

Read once from the environment when the app is created; see README.md for
the variables and their defaults.
"""

import os
from dataclasses import dataclass, field

# Page size bounds for the session listing.  FastAPI binds Query() defaults
# when the route is declared, so these are fixed at import.
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "20"))
MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))

DEFAULT_STALE_DAYS = 30


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    # Idle days after which cleanup abandons an in-progress session
    stale_session_days: int = DEFAULT_STALE_DAYS
    # X-Admin-Key value for /admin routes; unset disables them
    admin_api_key: str | None = None
    # X-Proxy-Secret the gateway sends with X-User-ID; unset trusts X-User-ID
    trusted_proxy_secret: str | None = None

    @classmethod
    def from_env(cls) -> "ServerSettings":
        return cls(
            host=os.getenv("SERVER_HOST", cls.host),
            port=int(os.getenv("SERVER_PORT", str(cls.port))),
            cors_origins=_split_origins(os.getenv("SERVER_CORS_ORIGINS", "*")),
            log_level=os.getenv("SERVER_LOG_LEVEL", cls.log_level).upper(),
            stale_session_days=int(
                os.getenv("STALE_SESSION_DAYS", str(DEFAULT_STALE_DAYS))
            ),
            admin_api_key=os.getenv("ADMIN_API_KEY") or None,
            trusted_proxy_secret=os.getenv("TRUSTED_PROXY_SECRET") or None,
        )
