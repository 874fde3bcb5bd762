"""
Fleet Store — the session's read-only, possibly stale copy of its servers.

Updated by: list and detail fetches
Queried by: server cards and the HTTP surface
"""

import logging
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from fleet_console.config import ConsoleConfig
from fleet_console.models.outcomes import Failure, ProtocolFailure
from fleet_console.models.server import ConsoleCredentials, ServerEntity
from fleet_console.session.calls import guarded_call
from fleet_console.session.guard import SessionGuard

logger = logging.getLogger(__name__)


class FleetStore:
    """
    In-memory, per-session server cache.
    Nothing outlives the session context that created it.
    """

    def __init__(self, guard: SessionGuard, config: Optional[ConsoleConfig] = None):
        self.guard = guard
        self.config = config or guard.config
        self._servers: Dict[int, ServerEntity] = {}

    @property
    def servers(self) -> List[ServerEntity]:
        """Eligible servers in display order (domain, case-insensitive)."""
        return sorted(self._servers.values(), key=lambda s: (s.domain or "").casefold())

    def get_server(self, server_id: int) -> Optional[ServerEntity]:
        return self._servers.get(server_id)

    async def load_servers(self) -> Union[List[ServerEntity], Failure]:
        """Fetch the server list, keeping only servers eligible for display."""
        body = await guarded_call(self.guard, "GET", "/api/servers", "Failed to fetch servers")
        if isinstance(body, Failure):
            return body
        if not isinstance(body, list):
            body = []

        statuses = self.config.eligible_statuses
        loaded: Dict[int, ServerEntity] = {}
        for record in body:
            try:
                entity = ServerEntity.model_validate(record)
            except ValidationError as e:
                logger.warning("Skipping malformed server record: %s", e)
                continue
            if entity.is_eligible(statuses):
                previous = self._servers.get(entity.id)
                if previous is not None:
                    entity = previous.merge_detail(entity.model_dump())
                loaded[entity.id] = entity

        self._servers = loaded
        return self.servers

    async def load_server(self, server_id: int) -> Union[ServerEntity, Failure]:
        """Fetch full detail for one server and merge it into the cache."""
        body = await guarded_call(
            self.guard, "GET", f"/api/server/{server_id}", "Error loading server"
        )
        if isinstance(body, Failure):
            return body
        if not isinstance(body, dict):
            return ProtocolFailure(message="Error loading server")

        current = self._servers.get(server_id) or ServerEntity(id=server_id)
        entity = current.merge_detail(body)
        self._servers[server_id] = entity
        return entity

    async def fetch_console_credentials(
        self, server_id: int
    ) -> Union[ConsoleCredentials, Failure]:
        body = await guarded_call(
            self.guard,
            "GET",
            f"/api/server/{server_id}/credentials",
            "Error fetching credentials",
        )
        if isinstance(body, Failure):
            return body
        password = body.get("vnc_password") if isinstance(body, dict) else None
        if not password:
            logger.error("No VNC password returned for server %s", server_id)
            return ProtocolFailure(message="No VNC password returned")
        return ConsoleCredentials(vnc_password=password)
