"""Dashboard — the guarded entry view that builds one card per server."""

import asyncio
import logging
from typing import Dict, List, Optional, Union

from fleet_console.fleet.card import ServerCard
from fleet_console.fleet.store import FleetStore
from fleet_console.models.identity import Identity, is_admin
from fleet_console.models.outcomes import AuthFailure, Failure
from fleet_console.session.guard import SessionGuard

logger = logging.getLogger(__name__)


class Dashboard:
    def __init__(self, guard: SessionGuard):
        self.guard = guard
        self.store = FleetStore(guard)
        self.identity: Optional[Identity] = None
        self.cards: Dict[int, ServerCard] = {}
        self.error: Optional[str] = None

    @property
    def shows_admin_link(self) -> bool:
        return self.identity is not None and is_admin(
            self.identity, self.guard.config.admin_groups
        )

    async def mount(self, load_details: bool = True) -> Union[List[ServerCard], Failure]:
        """
        Gate on the session, then load the fleet.

        Nothing is fetched when the guard redirects.
        """
        identity = await self.guard.resolve_identity()
        if isinstance(identity, AuthFailure):
            return identity
        self.identity = identity

        servers = await self.store.load_servers()
        if isinstance(servers, Failure):
            self.error = servers.message
            return servers

        self.cards = {s.id: ServerCard(s, self.store) for s in servers}
        if load_details and self.cards:
            results = await asyncio.gather(*(c.load() for c in self.cards.values()))
            for card, result in zip(self.cards.values(), results):
                if isinstance(result, Failure):
                    logger.warning("Error loading server %s: %s", card.server_id, result.message)
        return list(self.cards.values())

    def card(self, server_id: int) -> Optional[ServerCard]:
        return self.cards.get(server_id)
