"""
Action Executor — performs one guarded remote mutation.

Behavioral Contract:
- Never dispatches without a confirmation that covers the request
- At most one outstanding call per (server, action kind); a duplicate is
  refused without touching the network
- Single POST per request; every response passes the session guard first
- The in-flight flag is released on every exit path
- Success means the action was accepted, not that the server converged
"""

import logging
from typing import Dict, Optional, Set

from fleet_console.errors import ConfirmationRequired, RemoteUnavailable
from fleet_console.models.action import (
    ActionKey,
    ActionKind,
    ActionRequest,
    Confirmation,
    CONSOLE_ACTIONS,
    POWER_ACTIONS,
)
from fleet_console.models.outcomes import (
    Ack,
    ActionOutcome,
    InFlightFailure,
    RemoteFailure,
    TransportFailure,
)
from fleet_console.session.guard import SessionGuard
from fleet_console.transport.client import RemoteAPI, error_message, json_body

logger = logging.getLogger(__name__)


GENERIC_FAILURES: Dict[ActionKind, str] = {
    ActionKind.START: "Failed to start server",
    ActionKind.STOP: "Failed to stop server",
    ActionKind.RESTART: "Failed to restart server",
    ActionKind.RESET_PASSWORD: "Failed to reset password",
    ActionKind.CONSOLE_ENABLE: "Failed to enable console",
    ActionKind.CONSOLE_DISABLE: "Failed to disable console",
    ActionKind.REINSTALL: "Failed to reinstall server",
    ActionKind.RESTORE_SNAPSHOT: "Failed to restore snapshot",
}


def endpoint_for(request: ActionRequest) -> str:
    """Map an action request to its POST endpoint."""
    base = f"/api/server/{request.target_server_id}"
    kind = request.kind
    if kind in POWER_ACTIONS:
        return f"{base}/action/{kind.value}"
    if kind in CONSOLE_ACTIONS:
        toggle = "enable" if kind == ActionKind.CONSOLE_ENABLE else "disable"
        return f"{base}/console/{toggle}"
    if kind == ActionKind.RESET_PASSWORD:
        return f"{base}/reset-password"
    if kind == ActionKind.REINSTALL:
        return f"{base}/reinstall"
    if kind == ActionKind.RESTORE_SNAPSHOT:
        return f"{base}/restore-snapshot"
    raise ValueError(f"No endpoint for action kind: {kind}")


class InFlightRegistry:
    """
    Per-(server, kind) guard map.

    Claims are checked and taken without an await in between, so within
    one event loop a second claim on a held key always fails.
    """

    def __init__(self):
        self._held: Set[ActionKey] = set()

    def claim(self, key: ActionKey) -> bool:
        if key in self._held:
            return False
        self._held.add(key)
        return True

    def release(self, key: ActionKey) -> None:
        self._held.discard(key)

    def is_held(self, key: ActionKey) -> bool:
        return key in self._held

    def __len__(self) -> int:
        return len(self._held)


class ActionExecutor:
    """Dispatches confirmed action requests to the remote API."""

    def __init__(
        self,
        api: RemoteAPI,
        guard: SessionGuard,
        in_flight: Optional[InFlightRegistry] = None,
    ):
        self.api = api
        self.guard = guard
        self.in_flight = in_flight if in_flight is not None else InFlightRegistry()

    def is_in_flight(self, server_id: int, kind: ActionKind) -> bool:
        return self.in_flight.is_held((server_id, kind))

    async def execute(
        self,
        request: ActionRequest,
        confirmation: Optional[Confirmation],
    ) -> ActionOutcome:
        """
        Execute a confirmed request.

        GUARD: Never dispatch without a matching confirmation.
        """
        if confirmation is None or not confirmation.covers(request):
            raise ConfirmationRequired(
                f"Cannot execute {request.kind.value} on server "
                f"{request.target_server_id}: no matching confirmation."
            )

        if not self.in_flight.claim(request.key):
            logger.info(
                "Ignoring duplicate %s on server %s while one is in flight",
                request.kind.value, request.target_server_id,
            )
            return InFlightFailure(
                message=f"A {request.kind.value} request is already in progress"
            )

        try:
            return await self._dispatch(request)
        finally:
            self.in_flight.release(request.key)

    async def _dispatch(self, request: ActionRequest) -> ActionOutcome:
        path = endpoint_for(request)
        logger.info(
            "Dispatching %s for server %s", request.kind.value, request.target_server_id
        )
        try:
            response = await self.api.post(path, json=request.payload)
        except RemoteUnavailable as e:
            logger.error("Error performing %s: %s", request.kind.value, e)
            return TransportFailure(message=GENERIC_FAILURES[request.kind])

        auth_failure = self.guard.handle_auth_failure(response)
        if auth_failure is not None:
            return auth_failure

        if not response.is_success:
            message = error_message(response, GENERIC_FAILURES[request.kind])
            logger.warning(
                "%s on server %s rejected (%s): %s",
                request.kind.value, request.target_server_id,
                response.status_code, message,
            )
            return RemoteFailure(status_code=response.status_code, message=message)

        body = json_body(response)
        logger.info(
            "%s accepted for server %s", request.kind.value, request.target_server_id
        )
        return Ack(request=request, payload=body if body is not None else {})
