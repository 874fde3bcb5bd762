"""
Console configuration.

Defaults mirror the hosted console; every field can be overridden from
``FLEET_CONSOLE_*`` environment variables via ``ConsoleConfig.from_env``.
"""

import logging
import os
from typing import List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ConsoleConfig(BaseModel):
    """Configuration for the session guard, executors and pollers."""

    api_base_url: str = "http://127.0.0.1:8080"
    request_timeout_seconds: float = Field(gt=0, default=30.0)

    # Session handling
    session_cookie_marker: str = "auth-session"
    login_path: str = "/login"
    landing_path: str = "/"
    dashboard_path: str = "/dashboard"
    logout_path: str = "/logout"
    admin_groups: List[str] = ["*", "callowaysutton"]
    # Idle console sessions (workflow state, in-flight flags) are evicted after this
    session_ttl_seconds: float = Field(gt=0, default=3600.0)

    # Fleet view
    eligible_statuses: List[str] = ["Active", "Pending"]
    # None keeps the one-shot check made when a subject first becomes known
    reachability_refresh_seconds: Optional[float] = None

    log_level: str = "INFO"
    log_format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    @classmethod
    def from_env(cls) -> "ConsoleConfig":
        defaults = cls()

        def _list(name: str, fallback: List[str]) -> List[str]:
            raw = os.getenv(name)
            if not raw:
                return list(fallback)
            return [item.strip() for item in raw.split(",") if item.strip()]

        refresh = os.getenv("FLEET_CONSOLE_REACHABILITY_REFRESH")
        session_ttl = os.getenv("FLEET_CONSOLE_SESSION_TTL")
        return cls(
            api_base_url=os.getenv("FLEET_CONSOLE_API_URL", defaults.api_base_url),
            request_timeout_seconds=float(
                os.getenv("FLEET_CONSOLE_TIMEOUT", str(defaults.request_timeout_seconds))
            ),
            session_cookie_marker=os.getenv(
                "FLEET_CONSOLE_SESSION_MARKER", defaults.session_cookie_marker
            ),
            login_path=os.getenv("FLEET_CONSOLE_LOGIN_PATH", defaults.login_path),
            landing_path=os.getenv("FLEET_CONSOLE_LANDING_PATH", defaults.landing_path),
            dashboard_path=os.getenv("FLEET_CONSOLE_DASHBOARD_PATH", defaults.dashboard_path),
            logout_path=os.getenv("FLEET_CONSOLE_LOGOUT_PATH", defaults.logout_path),
            admin_groups=_list("FLEET_CONSOLE_ADMIN_GROUPS", defaults.admin_groups),
            session_ttl_seconds=(
                float(session_ttl) if session_ttl else defaults.session_ttl_seconds
            ),
            eligible_statuses=_list(
                "FLEET_CONSOLE_ELIGIBLE_STATUSES", defaults.eligible_statuses
            ),
            reachability_refresh_seconds=float(refresh) if refresh else None,
            log_level=os.getenv("FLEET_CONSOLE_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("FLEET_CONSOLE_LOG_FORMAT", defaults.log_format),
        )


def setup_logging(config: Optional[ConsoleConfig] = None) -> None:
    cfg = config or ConsoleConfig()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format=cfg.log_format,
        force=True,
    )
    logger.debug("Logging configured at %s", cfg.log_level.upper())
