"""
Admin Users — manage console users and their groups.

Every operation is behind ``require_admin``: a session that cannot be
resolved goes to login, a non-admin goes to the dashboard.
"""

import logging
from typing import Any, Iterable, List, Optional, Union

from pydantic import ValidationError

from fleet_console.errors import ConfirmationRequired
from fleet_console.models.action import Confirmation
from fleet_console.models.identity import Identity
from fleet_console.models.outcomes import AuthFailure, Failure, ProtocolFailure, ValidationFailure
from fleet_console.models.server import ManagedUser
from fleet_console.session.calls import guarded_call
from fleet_console.session.guard import SessionGuard
from fleet_console.transport.client import path_segment

logger = logging.getLogger(__name__)


def parse_groups(group_string: str) -> List[str]:
    """"a, b,,c" -> ["a", "b", "c"]"""
    return [g.strip() for g in group_string.split(",") if g.strip()]


def delete_subject(email: str) -> str:
    return f"user:{email}:delete"


class AdminUserService:
    def __init__(self, guard: SessionGuard):
        self.guard = guard
        self.identity: Optional[Identity] = None

    async def mount(self) -> Union[Identity, AuthFailure]:
        result = await self.guard.require_admin()
        if isinstance(result, Identity):
            self.identity = result
        return result

    async def _authorized(self) -> Optional[AuthFailure]:
        if self.identity is not None:
            return None
        result = await self.mount()
        return result if isinstance(result, AuthFailure) else None

    async def list_users(self) -> Union[List[ManagedUser], Failure]:
        denied = await self._authorized()
        if denied is not None:
            return denied
        body = await guarded_call(self.guard, "GET", "/api/admin/users", "Failed to fetch users")
        if isinstance(body, Failure):
            return body
        records = body.get("data") if isinstance(body, dict) else body
        try:
            return [ManagedUser.model_validate(r) for r in records or []]
        except (ValidationError, TypeError) as e:
            logger.error("Error fetching users: %s", e)
            return ProtocolFailure(message="Error fetching users")

    async def add_user(self, email: str, groups: Iterable[str]) -> Union[Any, Failure]:
        groups = [g for g in groups if g]
        if not email or not groups:
            return ValidationFailure(
                field="email", message="Please provide both email and at least one group"
            )
        denied = await self._authorized()
        if denied is not None:
            return denied
        return await guarded_call(
            self.guard, "POST", "/api/admin/users", "Failed to add user",
            json={"email": email, "groups": groups},
        )

    async def update_groups(self, email: str, groups: Iterable[str]) -> Union[Any, Failure]:
        denied = await self._authorized()
        if denied is not None:
            return denied
        return await guarded_call(
            self.guard, "PUT", f"/api/admin/users/{path_segment(email)}",
            "Failed to update user groups",
            json={"groups": list(groups)},
        )

    async def delete_user(
        self, email: str, confirmation: Optional[Confirmation]
    ) -> Union[Any, Failure]:
        if confirmation is None or confirmation.subject != delete_subject(email):
            raise ConfirmationRequired(f"Deleting {email} requires confirmation.")
        denied = await self._authorized()
        if denied is not None:
            return denied
        logger.info("Deleting console user %s", email)
        return await guarded_call(
            self.guard, "DELETE", f"/api/admin/users/{path_segment(email)}",
            "Failed to delete user",
        )

    async def trigger_sync(self) -> Union[Any, Failure]:
        denied = await self._authorized()
        if denied is not None:
            return denied
        return await guarded_call(self.guard, "POST", "/api/admin/sync", "Failed to trigger sync")

    async def api_key_status(self) -> Union[Any, Failure]:
        denied = await self._authorized()
        if denied is not None:
            return denied
        body = await guarded_call(
            self.guard, "GET", "/api/admin/api-keys/status", "Failed to fetch API key status"
        )
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body
