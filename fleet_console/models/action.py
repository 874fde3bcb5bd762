"""Action requests and the confirmation that must precede every dispatch."""

from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    RESET_PASSWORD = "reset_password"
    CONSOLE_ENABLE = "console_enable"
    CONSOLE_DISABLE = "console_disable"
    REINSTALL = "reinstall"
    RESTORE_SNAPSHOT = "restore_snapshot"


POWER_ACTIONS = (ActionKind.START, ActionKind.STOP, ActionKind.RESTART)
CONSOLE_ACTIONS = (ActionKind.CONSOLE_ENABLE, ActionKind.CONSOLE_DISABLE)
DESTRUCTIVE_ACTIONS = (ActionKind.REINSTALL, ActionKind.RESTORE_SNAPSHOT)

ActionKey = Tuple[int, ActionKind]


class ActionRequest(BaseModel):
    """One user-triggered mutation. Lives only for the duration of the call."""

    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    target_server_id: int
    payload: Optional[dict] = None

    @property
    def key(self) -> ActionKey:
        return (self.target_server_id, self.kind)

    @property
    def subject(self) -> str:
        return f"server:{self.target_server_id}:{self.kind.value}"


class Confirmation(BaseModel):
    """
    Proof that a human confirmed a specific subject.

    The caller prompts; the executor only checks that the confirmation it
    was handed covers the request it is about to dispatch.
    """

    model_config = ConfigDict(frozen=True)

    subject: str
    granted_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def grant(cls, request: ActionRequest) -> "Confirmation":
        return cls(subject=request.subject)

    @classmethod
    def grant_for(cls, subject: str) -> "Confirmation":
        return cls(subject=subject)

    def covers(self, request: ActionRequest) -> bool:
        return self.subject == request.subject
