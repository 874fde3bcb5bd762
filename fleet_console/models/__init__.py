"""Fleet console data models."""

from fleet_console.models.action import (
    ActionKind,
    ActionRequest,
    Confirmation,
)
from fleet_console.models.identity import ADMIN_GROUPS, Identity, is_admin
from fleet_console.models.outcomes import (
    Ack,
    ActionError,
    ActionOutcome,
    AuthFailure,
    AuthRemedy,
    Failure,
    FailureKind,
    InFlightFailure,
    ProtocolFailure,
    RemoteFailure,
    TransportFailure,
    ValidationFailure,
)
from fleet_console.models.reachability import ReachabilityState, ReachabilityStatus
from fleet_console.models.server import (
    AppOption,
    ConsoleCredentials,
    ManagedUser,
    OsOption,
    ServerEntity,
    Snapshot,
)

__all__ = [
    "ADMIN_GROUPS",
    "Ack",
    "ActionError",
    "ActionKind",
    "ActionOutcome",
    "ActionRequest",
    "AppOption",
    "AuthFailure",
    "AuthRemedy",
    "Confirmation",
    "ConsoleCredentials",
    "Failure",
    "FailureKind",
    "Identity",
    "InFlightFailure",
    "ManagedUser",
    "OsOption",
    "ProtocolFailure",
    "ReachabilityState",
    "ReachabilityStatus",
    "RemoteFailure",
    "ServerEntity",
    "Snapshot",
    "TransportFailure",
    "ValidationFailure",
    "is_admin",
]
