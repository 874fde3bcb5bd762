"""Tests for the admin user service."""

import json

import pytest

from fleet_console.admin.users import AdminUserService, delete_subject, parse_groups
from fleet_console.errors import ConfirmationRequired
from fleet_console.models.action import Confirmation
from fleet_console.models.identity import Identity
from fleet_console.models.outcomes import AuthFailure, AuthRemedy, RemoteFailure, ValidationFailure
from fleet_console.models.server import ManagedUser


SESSION_COOKIES = {"auth-session": "abc123"}
USERS = [
    {"email": "ops@example.com", "groups": ["*"]},
    {"email": "dev@example.com", "groups": None},
]


def _make_service(remote, make_session, groups=("*",)):
    remote.user(email="root@example.com", groups=list(groups))
    browser, guard = make_session(SESSION_COOKIES)
    return browser, AdminUserService(guard)


class TestParseGroups:
    @pytest.mark.parametrize("raw,expected", [
        ("a, b,,c", ["a", "b", "c"]),
        ("  ", []),
        ("customers", ["customers"]),
    ])
    def test_parse_groups(self, raw, expected):
        assert parse_groups(raw) == expected


class TestMount:
    @pytest.mark.anyio
    async def test_admin_mounts(self, remote, make_session):
        browser, service = _make_service(remote, make_session)

        result = await service.mount()

        assert isinstance(result, Identity)
        assert service.identity == result
        assert browser.location is None

    @pytest.mark.anyio
    async def test_non_admin_is_sent_to_dashboard(self, remote, make_session):
        browser, service = _make_service(remote, make_session, groups=("customers",))

        result = await service.list_users()

        assert isinstance(result, AuthFailure)
        assert result.remedy == AuthRemedy.DASHBOARD
        assert browser.navigations == ["/dashboard"]
        assert remote.calls_to("GET", "/api/admin/users") == []


class TestUsers:
    @pytest.mark.anyio
    async def test_list_users(self, remote, make_session):
        remote.route("GET", "/api/admin/users", json={"status": "success", "data": USERS})
        _, service = _make_service(remote, make_session)

        users = await service.list_users()

        assert users == [
            ManagedUser(email="ops@example.com", groups=["*"]),
            ManagedUser(email="dev@example.com", groups=[]),
        ]

    @pytest.mark.anyio
    async def test_list_users_error_message(self, remote, make_session):
        remote.route("GET", "/api/admin/users", status=500, json={"msg": "db locked"})
        _, service = _make_service(remote, make_session)

        result = await service.list_users()

        assert isinstance(result, RemoteFailure)
        assert result.message == "db locked"

    @pytest.mark.anyio
    async def test_add_user_validates_before_any_call(self, remote, make_session):
        _, service = _make_service(remote, make_session)

        result = await service.add_user("new@example.com", parse_groups(" , "))

        assert isinstance(result, ValidationFailure)
        assert result.message == "Please provide both email and at least one group"
        assert remote.calls == []

    @pytest.mark.anyio
    async def test_add_user(self, remote, make_session):
        remote.route("POST", "/api/admin/users", json={"status": "success"})
        _, service = _make_service(remote, make_session)

        result = await service.add_user("new@example.com", parse_groups("customers, beta"))

        assert result == {"status": "success"}
        call = remote.calls_to("POST", "/api/admin/users")[0]
        assert json.loads(call.content) == {
            "email": "new@example.com",
            "groups": ["customers", "beta"],
        }

    @pytest.mark.anyio
    async def test_update_groups_encodes_email(self, remote, make_session):
        remote.route("PUT", "/api/admin/users/dev@example.com", json={"status": "success"})
        _, service = _make_service(remote, make_session)

        await service.update_groups("dev@example.com", ["customers"])

        call = remote.calls_to("PUT", "/api/admin/users/dev@example.com")[0]
        assert call.url.raw_path == b"/api/admin/users/dev%40example.com"
        assert json.loads(call.content) == {"groups": ["customers"]}

    @pytest.mark.anyio
    async def test_delete_requires_confirmation(self, remote, make_session):
        _, service = _make_service(remote, make_session)

        with pytest.raises(ConfirmationRequired):
            await service.delete_user("dev@example.com", None)
        with pytest.raises(ConfirmationRequired):
            await service.delete_user(
                "dev@example.com", Confirmation.grant_for(delete_subject("ops@example.com"))
            )
        assert remote.calls == []

    @pytest.mark.anyio
    async def test_delete_user(self, remote, make_session):
        remote.route("DELETE", "/api/admin/users/dev@example.com", json={"status": "success"})
        _, service = _make_service(remote, make_session)

        result = await service.delete_user(
            "dev@example.com", Confirmation.grant_for(delete_subject("dev@example.com"))
        )

        assert result == {"status": "success"}


class TestMaintenance:
    @pytest.mark.anyio
    async def test_trigger_sync(self, remote, make_session):
        remote.route("POST", "/api/admin/sync", json={"status": "started"})
        _, service = _make_service(remote, make_session)

        assert await service.trigger_sync() == {"status": "started"}

    @pytest.mark.anyio
    async def test_api_key_status_unwraps_data(self, remote, make_session):
        remote.route("GET", "/api/admin/api-keys/status", json={"data": {"configured": True}})
        _, service = _make_service(remote, make_session)

        assert await service.api_key_status() == {"configured": True}

    @pytest.mark.anyio
    async def test_auth_failure_mid_session(self, remote, make_session):
        remote.route("POST", "/api/admin/sync", status=401)
        browser, service = _make_service(remote, make_session)
        await service.mount()

        result = await service.trigger_sync()

        assert isinstance(result, AuthFailure)
        assert result.remedy == AuthRemedy.HARD_CLEAR
        assert browser.navigations == ["/"]
