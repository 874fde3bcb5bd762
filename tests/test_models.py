"""Tests for the data models."""

import pytest
from pydantic import ValidationError

from fleet_console.models.action import ActionKind, ActionRequest, Confirmation
from fleet_console.models.identity import Identity, is_admin
from fleet_console.models.outcomes import (
    AuthFailure,
    AuthRemedy,
    FailureKind,
    RemoteFailure,
    TransportFailure,
    ValidationFailure,
    is_failure,
)
from fleet_console.models.reachability import ReachabilityState, ReachabilityStatus
from fleet_console.models.server import ServerEntity, Snapshot


class TestIdentity:
    @pytest.mark.parametrize(
        "groups,expected",
        [
            (["*"], True),
            (["callowaysutton"], True),
            (["customers", "*"], True),
            (["customers"], False),
            ([], False),
            (["Callowaysutton"], False),
        ],
    )
    def test_is_admin(self, groups, expected):
        identity = Identity(email="a@example.com", groups=groups)
        assert is_admin(identity) is expected

    def test_null_groups_are_empty(self):
        identity = Identity.model_validate({"email": "a@example.com", "groups": None})
        assert identity.groups == frozenset()
        assert is_admin(identity) is False

    def test_custom_admin_groups(self):
        identity = Identity(email="a@example.com", groups=["ops"])
        assert is_admin(identity, admin_groups=["ops"]) is True

    def test_identity_is_immutable(self):
        identity = Identity(email="a@example.com", groups=["*"])
        with pytest.raises(ValidationError):
            identity.email = "b@example.com"


class TestServerEntity:
    @pytest.mark.parametrize(
        "status,domain,expected",
        [
            ("Active", "web1.example.com", True),
            ("Pending", "web1.example.com", True),
            ("Suspended", "web1.example.com", False),
            ("Active", "", False),
            ("Active", "   ", False),
            ("Active", None, False),
        ],
    )
    def test_eligibility(self, status, domain, expected):
        entity = ServerEntity(id=1, domain=domain, domainstatus=status)
        assert entity.is_eligible() is expected

    def test_merge_detail_keeps_known_fields(self):
        entity = ServerEntity(id=7, domain="db.example.com", domainstatus="Active")
        merged = entity.merge_detail({"ip": "10.0.0.5", "domain": None, "unknown": "x", "id": 99})
        assert merged.ip == "10.0.0.5"
        assert merged.domain == "db.example.com"
        assert merged.id == 7

    def test_snapshot_ignores_extra_fields(self):
        snap = Snapshot.model_validate({
            "id": "s1", "name": "daily-1", "created_at": "2024-01-01T00:00:00Z",
            "size_gb": 2.5, "status": "completed", "region": "eu",
        })
        assert snap.label == "daily-1"


class TestActionRequest:
    def test_key_is_server_and_kind(self):
        request = ActionRequest(kind=ActionKind.START, target_server_id=42)
        assert request.key == (42, ActionKind.START)

    def test_confirmation_covers_only_its_request(self):
        start = ActionRequest(kind=ActionKind.START, target_server_id=42)
        stop = ActionRequest(kind=ActionKind.STOP, target_server_id=42)
        other = ActionRequest(kind=ActionKind.START, target_server_id=43)
        confirmation = Confirmation.grant(start)
        assert confirmation.covers(start)
        assert not confirmation.covers(stop)
        assert not confirmation.covers(other)


class TestReachabilityState:
    def test_defaults_to_unknown(self):
        state = ReachabilityState(subject_key="10.0.0.5")
        assert state.status == ReachabilityStatus.UNKNOWN

    def test_three_states_render_distinctly(self):
        indicators = {
            ReachabilityState(subject_key="10.0.0.5", status=s).indicator
            for s in ReachabilityStatus
        }
        assert len(indicators) == 3


class TestOutcomes:
    def test_kinds_are_tagged(self):
        assert RemoteFailure(status_code=500, message="x").kind == FailureKind.REMOTE
        assert TransportFailure(message="x").kind == FailureKind.TRANSPORT
        assert ValidationFailure(field="f", message="x").kind == FailureKind.VALIDATION
        auth = AuthFailure(remedy=AuthRemedy.LOGIN, location="/login")
        assert auth.kind == FailureKind.AUTH

    def test_is_failure(self):
        assert is_failure(TransportFailure(message="x"))
        assert not is_failure({"status": "ok"})
