"""Tests for the fleet store, server cards and dashboard."""

import pytest

from fleet_console.config import ConsoleConfig
from fleet_console.fleet.card import ServerCard
from fleet_console.fleet.dashboard import Dashboard
from fleet_console.fleet.store import FleetStore
from fleet_console.models.action import ActionKind, ActionRequest, Confirmation
from fleet_console.models.outcomes import Ack, AuthFailure, ProtocolFailure, RemoteFailure
from fleet_console.models.reachability import ReachabilityStatus
from fleet_console.models.server import ConsoleCredentials, ServerEntity


SESSION_COOKIES = {"auth-session": "abc123"}

SERVERS = [
    {"id": 2, "domain": "zeta.example.com", "domainstatus": "Active"},
    {"id": 1, "domain": "Alpha.example.com", "domainstatus": "Pending"},
    {"id": 3, "domain": "gone.example.com", "domainstatus": "Cancelled"},
    {"id": 4, "domain": "   ", "domainstatus": "Active"},
    {"id": 5, "domain": None, "domainstatus": "Active"},
]


def _route_fleet(remote):
    remote.route("GET", "/api/servers", json=SERVERS)
    remote.route("GET", "/api/server/1", json={"id": 1, "ip": "10.0.0.1", "state": "running"})
    remote.route("GET", "/api/server/2", json={"id": 2, "ip": "10.0.0.2", "state": "stopped"})
    for subject in ("10.0.0.1", "10.0.0.2", "Alpha.example.com", "zeta.example.com"):
        remote.route("GET", f"/api/ping/{subject}", json={"status": "up"})


def _make_store(make_session, cookies=SESSION_COOKIES):
    browser, guard = make_session(cookies)
    return browser, FleetStore(guard)


class TestFleetStore:
    @pytest.mark.anyio
    async def test_load_servers_filters_and_sorts(self, remote, make_session):
        _route_fleet(remote)
        _, store = _make_store(make_session)

        servers = await store.load_servers()

        assert [s.id for s in servers] == [1, 2]
        assert store.get_server(3) is None

    @pytest.mark.anyio
    async def test_eligible_statuses_are_configurable(self, remote, make_session):
        _route_fleet(remote)
        browser, guard = make_session(SESSION_COOKIES)
        cfg = ConsoleConfig(eligible_statuses=["Cancelled"])
        store = FleetStore(guard, cfg)

        servers = await store.load_servers()

        assert [s.id for s in servers] == [3]

    @pytest.mark.anyio
    async def test_reload_keeps_detail(self, remote, make_session):
        _route_fleet(remote)
        _, store = _make_store(make_session)
        await store.load_servers()
        await store.load_server(1)

        await store.load_servers()

        assert store.get_server(1).ip == "10.0.0.1"

    @pytest.mark.anyio
    async def test_load_server_merges_detail(self, remote, make_session):
        _route_fleet(remote)
        _, store = _make_store(make_session)
        await store.load_servers()

        entity = await store.load_server(2)

        assert entity.domain == "zeta.example.com"
        assert entity.ip == "10.0.0.2"
        assert entity.state == "stopped"

    @pytest.mark.anyio
    async def test_list_failure(self, remote, make_session):
        remote.route("GET", "/api/servers", status=500, json={"message": "upstream timeout"})
        _, store = _make_store(make_session)

        result = await store.load_servers()

        assert isinstance(result, RemoteFailure)
        assert result.message == "upstream timeout"

    @pytest.mark.anyio
    async def test_console_credentials(self, remote, make_session):
        remote.route("GET", "/api/server/1/credentials", json={"vnc_password": "s3cret"})
        _, store = _make_store(make_session)

        result = await store.fetch_console_credentials(1)

        assert result == ConsoleCredentials(vnc_password="s3cret")

    @pytest.mark.anyio
    async def test_console_credentials_missing_password(self, remote, make_session):
        remote.route("GET", "/api/server/1/credentials", json={"vnc_password": ""})
        _, store = _make_store(make_session)

        result = await store.fetch_console_credentials(1)

        assert isinstance(result, ProtocolFailure)
        assert result.message == "No VNC password returned"


class TestServerCard:
    @pytest.mark.anyio
    async def test_load_watches_hostname_and_ip(self, remote, make_session):
        _route_fleet(remote)
        _, store = _make_store(make_session)
        await store.load_servers()
        card = ServerCard(store.get_server(1), store)

        await card.load()
        await card.poller.settle()

        assert card.poller.watched == ["Alpha.example.com", "10.0.0.1"]
        assert card.ip_state().status == ReachabilityStatus.UP
        assert card.hostname_state().status == ReachabilityStatus.UP

    @pytest.mark.anyio
    async def test_ip_state_none_before_detail(self, make_session):
        _, store = _make_store(make_session)
        card = ServerCard(ServerEntity(id=9, domain="x.example.com"), store)

        assert card.ip_state() is None
        assert card.hostname_state().status == ReachabilityStatus.UNKNOWN

    @pytest.mark.anyio
    async def test_trigger_records_notice(self, remote, make_session):
        remote.route("POST", "/api/server/9/action/restart", json={})
        _, store = _make_store(make_session)
        card = ServerCard(ServerEntity(id=9, domain="x.example.com"), store)
        request = card.request(ActionKind.RESTART)

        outcome = await card.trigger(ActionKind.RESTART, Confirmation.grant(request))

        assert isinstance(outcome, Ack)
        assert card.notices == ["Restart request accepted for x.example.com"]
        assert card.trigger_enabled(ActionKind.RESTART)

    @pytest.mark.anyio
    async def test_trigger_failure_notice(self, remote, make_session):
        remote.route("POST", "/api/server/9/console/enable", status=500)
        _, store = _make_store(make_session)
        card = ServerCard(ServerEntity(id=9, domain="x.example.com"), store)
        request = card.request(ActionKind.CONSOLE_ENABLE)

        await card.trigger(ActionKind.CONSOLE_ENABLE, Confirmation.grant(request))

        assert card.notices == ["Failed to enable console"]

    @pytest.mark.anyio
    async def test_destructive_kinds_need_workflow(self, make_session):
        _, store = _make_store(make_session)
        card = ServerCard(ServerEntity(id=9), store)

        with pytest.raises(ValueError):
            card.request(ActionKind.REINSTALL)

    @pytest.mark.anyio
    async def test_cards_do_not_share_in_flight_state(self, make_session):
        _, store = _make_store(make_session)
        a = ServerCard(ServerEntity(id=1), store)
        b = ServerCard(ServerEntity(id=2), store)

        a.executor.in_flight.claim((1, ActionKind.START))

        assert not a.trigger_enabled(ActionKind.START)
        assert b.trigger_enabled(ActionKind.START)
        assert a.executor is not b.executor


class TestDashboard:
    @pytest.mark.anyio
    async def test_mount_builds_cards(self, remote, make_session):
        remote.user(groups=["customers"])
        _route_fleet(remote)
        _, guard = make_session(SESSION_COOKIES)
        dashboard = Dashboard(guard)

        cards = await dashboard.mount()
        for card in cards:
            await card.poller.settle()

        assert [c.server_id for c in cards] == [1, 2]
        assert dashboard.card(2).entity.ip == "10.0.0.2"
        assert not dashboard.shows_admin_link

    @pytest.mark.anyio
    async def test_admin_link_for_admins(self, remote, make_session):
        remote.user(groups=["*"])
        remote.route("GET", "/api/servers", json=[])
        _, guard = make_session(SESSION_COOKIES)
        dashboard = Dashboard(guard)

        assert await dashboard.mount() == []
        assert dashboard.shows_admin_link

    @pytest.mark.anyio
    async def test_auth_failure_loads_nothing(self, remote, make_session):
        remote.user(status=401)
        _route_fleet(remote)
        browser, guard = make_session(SESSION_COOKIES)
        dashboard = Dashboard(guard)

        result = await dashboard.mount()

        assert isinstance(result, AuthFailure)
        assert remote.calls_to("GET", "/api/servers") == []
        assert dashboard.cards == {}
        assert browser.navigations == ["/"]

    @pytest.mark.anyio
    async def test_detail_failure_keeps_card(self, remote, make_session):
        remote.user()
        remote.route("GET", "/api/servers", json=SERVERS[:1])
        remote.route("GET", "/api/server/2", status=500)
        _, guard = make_session(SESSION_COOKIES)
        dashboard = Dashboard(guard)

        cards = await dashboard.mount()
        for card in cards:
            await card.poller.settle()

        assert len(cards) == 1
        assert cards[0].entity.ip is None
