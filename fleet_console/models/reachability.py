"""Transient up/down/unknown classification of an address or hostname."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ReachabilityStatus(str, Enum):
    UNKNOWN = "unknown"     # No answer yet
    UP = "up"
    DOWN = "down"


_INDICATORS = {
    ReachabilityStatus.UNKNOWN: "pending",
    ReachabilityStatus.UP: "online",
    ReachabilityStatus.DOWN: "offline",
}


class ReachabilityState(BaseModel):
    """One per subject (server IP or server hostname), refreshed independently."""

    subject_key: str
    status: ReachabilityStatus = ReachabilityStatus.UNKNOWN
    checked_at: Optional[datetime] = None

    @property
    def indicator(self) -> str:
        """Visual state for the view; the three statuses never share one."""
        return _INDICATORS[self.status]
