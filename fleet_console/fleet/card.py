"""
Server Card — everything the console does for one server.

Each card owns its executor, destructive workflows and poller. Cards
share no mutable state, so actions on different servers never contend.
"""

import logging
from typing import List, Optional, Union

from fleet_console.config import ConsoleConfig
from fleet_console.execution.executor import ActionExecutor
from fleet_console.fleet.store import FleetStore
from fleet_console.models.action import (
    ActionKind,
    ActionRequest,
    Confirmation,
    DESTRUCTIVE_ACTIONS,
)
from fleet_console.models.outcomes import ActionOutcome, Failure
from fleet_console.models.reachability import ReachabilityState
from fleet_console.models.server import ConsoleCredentials, ServerEntity
from fleet_console.reachability.poller import StatusPoller
from fleet_console.workflow.reinstall import ReinstallWorkflow
from fleet_console.workflow.snapshot import SnapshotRestoreWorkflow

logger = logging.getLogger(__name__)


class ServerCard:
    def __init__(
        self,
        entity: ServerEntity,
        store: FleetStore,
        config: Optional[ConsoleConfig] = None,
    ):
        self.entity = entity
        self.store = store
        self.config = config or store.config
        guard = store.guard

        self.executor = ActionExecutor(guard.api, guard)
        self.reinstall = ReinstallWorkflow(entity.id, self.name, self.executor)
        self.snapshot_restore = SnapshotRestoreWorkflow(entity.id, self.name, self.executor)
        self.poller = StatusPoller(guard, self.config.reachability_refresh_seconds)
        self.notices: List[str] = []

    @property
    def server_id(self) -> int:
        return self.entity.id

    @property
    def name(self) -> str:
        return self.entity.domain or str(self.entity.id)

    async def load(self) -> Union[ServerEntity, Failure]:
        """Load details, then start reachability checks as subjects become known."""
        self.poller.watch(self.entity.domain)
        result = await self.store.load_server(self.server_id)
        if isinstance(result, Failure):
            return result
        self.entity = result
        self.poller.watch(self.entity.ip)
        return result

    def ip_state(self) -> Optional[ReachabilityState]:
        return self.poller.state(self.entity.ip) if self.entity.ip else None

    def hostname_state(self) -> Optional[ReachabilityState]:
        return self.poller.state(self.entity.domain) if self.entity.domain else None

    def trigger_enabled(self, kind: ActionKind) -> bool:
        return not self.executor.is_in_flight(self.server_id, kind)

    def request(self, kind: ActionKind) -> ActionRequest:
        if kind in DESTRUCTIVE_ACTIONS:
            raise ValueError(f"{kind.value} must go through its confirmation workflow")
        return ActionRequest(kind=kind, target_server_id=self.server_id)

    async def trigger(
        self, kind: ActionKind, confirmation: Optional[Confirmation]
    ) -> ActionOutcome:
        """Run a simple action; the caller has already prompted for confirmation."""
        outcome = await self.executor.execute(self.request(kind), confirmation)
        if isinstance(outcome, Failure):
            self.notices.append(outcome.message)
        else:
            self.notices.append(
                f"{kind.value.replace('_', ' ').capitalize()} request accepted for {self.name}"
            )
        return outcome

    async def open_console(self) -> Union[ConsoleCredentials, Failure]:
        return await self.store.fetch_console_credentials(self.server_id)
