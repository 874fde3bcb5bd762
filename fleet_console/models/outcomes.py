"""
Tagged outcomes for every remote interaction.

Call sites receive one of these instead of an exception and must handle
each variant explicitly.
"""

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel

from fleet_console.models.action import ActionRequest


class FailureKind(str, Enum):
    AUTH = "auth"
    VALIDATION = "validation"
    REMOTE = "remote"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    IN_FLIGHT = "in_flight"


class AuthRemedy(str, Enum):
    """The terminal redirect an auth failure resolved to."""
    HARD_CLEAR = "hard_clear"   # Expired session: wipe client state, go to landing page
    LOGIN = "login"             # Never authenticated: go to login
    DASHBOARD = "dashboard"     # Authenticated but not elevated: go to dashboard


class Failure(BaseModel):
    kind: FailureKind
    message: str = ""


class AuthFailure(Failure):
    """Intercepted centrally; the redirect has already happened when a caller sees this."""
    kind: Literal[FailureKind.AUTH] = FailureKind.AUTH
    remedy: AuthRemedy
    location: str
    status_code: Optional[int] = None


class ValidationFailure(Failure):
    """A required field was missing; nothing was dispatched."""
    kind: Literal[FailureKind.VALIDATION] = FailureKind.VALIDATION
    field: str


class RemoteFailure(Failure):
    kind: Literal[FailureKind.REMOTE] = FailureKind.REMOTE
    status_code: int


class TransportFailure(Failure):
    kind: Literal[FailureKind.TRANSPORT] = FailureKind.TRANSPORT


class ProtocolFailure(Failure):
    """A 2xx response that lacked a field the caller depends on."""
    kind: Literal[FailureKind.PROTOCOL] = FailureKind.PROTOCOL


class InFlightFailure(Failure):
    kind: Literal[FailureKind.IN_FLIGHT] = FailureKind.IN_FLIGHT


class Ack(BaseModel):
    """The remote API accepted the action. Convergence happens out of band."""
    request: ActionRequest
    payload: Any = None


ActionError = Union[RemoteFailure, TransportFailure, InFlightFailure]
ActionOutcome = Union[Ack, RemoteFailure, TransportFailure, InFlightFailure, AuthFailure]


def is_failure(outcome: Any) -> bool:
    return isinstance(outcome, Failure)
