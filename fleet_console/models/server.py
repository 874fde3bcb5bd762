"""Server entities and the option records offered by destructive workflows."""

from typing import FrozenSet, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator


ELIGIBLE_STATUSES: FrozenSet[str] = frozenset({"Active", "Pending"})


class ServerEntity(BaseModel):
    """
    Local, possibly stale copy of a server owned by the remote API.

    List records and detail records carry different subsets of fields,
    so everything except the id is optional.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    domain: Optional[str] = None
    domainstatus: Optional[str] = None       # "Active" | "Pending" | "Suspended" | ...
    regdate: Optional[str] = None
    billingcycle: Optional[str] = None
    nextduedate: Optional[str] = None

    # Detail fields
    name: Optional[str] = None
    state: Optional[str] = None              # Power state as last reported
    ip: Optional[str] = None
    operatingsystem: Optional[str] = None
    cpu: Optional[str] = None
    mem: Optional[str] = None
    disk: Optional[str] = None
    vncstatus: Optional[str] = None
    dailysnapshots: Optional[str] = None

    def is_eligible(self, statuses: Iterable[str] = ELIGIBLE_STATUSES) -> bool:
        """Only active/pending servers with a non-blank domain are shown or acted on."""
        if self.domainstatus not in set(statuses):
            return False
        return bool(self.domain and self.domain.strip())

    def merge_detail(self, detail: dict) -> "ServerEntity":
        """Return a copy updated with the non-null fields of a detail record."""
        updates = {
            k: v for k, v in detail.items()
            if k in type(self).model_fields and k != "id" and v is not None
        }
        return self.model_copy(update=updates)


class OsOption(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    operatingsystem: str

    @property
    def label(self) -> str:
        return self.operatingsystem


class AppOption(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    app: str

    @property
    def label(self) -> str:
        return self.app


class Snapshot(BaseModel):
    """A restorable point-in-time image of a server."""

    model_config = ConfigDict(extra="ignore")

    id: Union[str, int]
    name: str
    created_at: str
    size_gb: float = 0.0
    status: str = "unknown"                  # "completed" | "pending" | ...

    @property
    def label(self) -> str:
        return self.name


class ConsoleCredentials(BaseModel):
    vnc_password: str


class ManagedUser(BaseModel):
    """A console user record as seen by the admin surface."""

    model_config = ConfigDict(extra="ignore")

    email: str
    groups: List[str] = []

    @field_validator("groups", mode="before")
    @classmethod
    def _null_groups(cls, value):
        return value if value is not None else []
