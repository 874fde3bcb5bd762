"""
Session Guard — gates every view and every mutating call.

Behavioral Contract:
- Resolves the current identity from the remote "who am I" endpoint
- Classifies 401/403 (and unreachable) outcomes by local session evidence:
    evidence present  -> expired session: hard clear, then landing page
    evidence absent   -> never authenticated: login page
- Exactly one redirect per guard; once it has fired, later failures report
  the same outcome without repeating side effects
- Elevated views additionally require an admin identity; a non-admin is
  sent to the dashboard, never to login
"""

import logging
from typing import Mapping, Optional, Union

import httpx
from pydantic import ValidationError

from fleet_console.config import ConsoleConfig
from fleet_console.errors import RemoteUnavailable
from fleet_console.models.identity import Identity, is_admin
from fleet_console.models.outcomes import AuthFailure, AuthRemedy
from fleet_console.session.context import ClientEnvironment
from fleet_console.transport.client import CredentialProvider, RemoteAPI, json_body

logger = logging.getLogger(__name__)

AUTH_STATUSES = (401, 403)

IdentityResult = Union[Identity, AuthFailure]


def session_evidence(cookies: Mapping[str, str], marker: str) -> Optional[str]:
    """The first ``name=value`` cookie pair that mentions the session marker."""
    for name, value in cookies.items():
        pair = f"{name}={value}"
        if marker in pair:
            return pair
    return None


def _parse_identity(response: httpx.Response) -> Optional[Identity]:
    if response.status_code != 200:
        return None
    body = json_body(response)
    if not isinstance(body, dict):
        return None
    try:
        return Identity.model_validate(body)
    except ValidationError:
        return None


class SessionGuard:
    """
    One guard per session context. Every protected view and every
    mutating call routes its responses through ``handle_auth_failure``.
    """

    def __init__(
        self,
        api: RemoteAPI,
        environment: ClientEnvironment,
        config: Optional[ConsoleConfig] = None,
        credentials: Optional[CredentialProvider] = None,
    ):
        self.api = api
        self.environment = environment
        self.config = config or ConsoleConfig()
        self.credentials = credentials or api.credentials
        self._fired: Optional[AuthFailure] = None

    @property
    def fired(self) -> Optional[AuthFailure]:
        """The terminal auth failure, if the guard has already redirected."""
        return self._fired

    def has_session_evidence(self) -> bool:
        marker = self.config.session_cookie_marker
        return session_evidence(self.credentials.cookies(), marker) is not None

    async def resolve_identity(self) -> IdentityResult:
        """Identity on success; otherwise the guard redirects and reports why."""
        try:
            response = await self.api.get("/api/user")
        except RemoteUnavailable as e:
            # Cannot tell "expired" from "unreachable"; fall back to local evidence
            logger.error("Authentication check failed: %s", e)
            return self._remediate(None, "Authentication check failed")

        if response.status_code in AUTH_STATUSES:
            return self._remediate(response.status_code, "Session rejected")

        identity = _parse_identity(response)
        if identity is None:
            logger.error(
                "Authentication check failed: unusable %s response", response.status_code
            )
            return self._remediate(response.status_code, "Authentication check failed")
        return identity

    async def require_admin(self) -> IdentityResult:
        """
        Stricter gate for elevated views.

        No identity -> login. Identity without an admin group -> dashboard.
        """
        try:
            response = await self.api.get("/api/user")
        except RemoteUnavailable as e:
            logger.error("Admin check failed: %s", e)
            return self._redirect(AuthRemedy.LOGIN, self.config.login_path, None)

        identity = _parse_identity(response)
        if identity is None:
            return self._redirect(
                AuthRemedy.LOGIN, self.config.login_path, response.status_code
            )
        if not is_admin(identity, self.config.admin_groups):
            logger.info("Denied elevated view to %s", identity.email)
            return self._redirect(
                AuthRemedy.DASHBOARD, self.config.dashboard_path, None,
                message="Admin access required",
            )
        return identity

    def handle_auth_failure(self, response: httpx.Response) -> Optional[AuthFailure]:
        """
        The shared check. Returns the auth failure (after redirecting) when
        the response is a 401/403, else None and the caller carries on.
        """
        if response.status_code not in AUTH_STATUSES:
            return None
        return self._remediate(response.status_code, "Session rejected")

    def logout(self) -> None:
        self.environment.navigate(self.config.logout_path)

    def hard_clear(self) -> None:
        """Wipe every cookie (all path/domain variants) and all storage."""
        host = self.environment.hostname
        for name in self.environment.cookie_names():
            self.environment.expire_cookie(name, "/", None)
            self.environment.expire_cookie(name, "/", host)
            self.environment.expire_cookie(name, "/", f".{host}")
        self.environment.clear_local_storage()
        self.environment.clear_session_storage()

    def _remediate(self, status_code: Optional[int], message: str) -> AuthFailure:
        if self._fired is not None:
            return self._fired
        if self.has_session_evidence():
            logger.warning("Session expired or invalid; clearing client state")
            self.hard_clear()
            return self._redirect(
                AuthRemedy.HARD_CLEAR, self.config.landing_path, status_code, message
            )
        return self._redirect(
            AuthRemedy.LOGIN, self.config.login_path, status_code, message
        )

    def _redirect(
        self,
        remedy: AuthRemedy,
        location: str,
        status_code: Optional[int],
        message: str = "",
    ) -> AuthFailure:
        if self._fired is not None:
            return self._fired
        self.environment.navigate(location)
        self._fired = AuthFailure(
            remedy=remedy,
            location=location,
            status_code=status_code,
            message=message,
        )
        return self._fired
