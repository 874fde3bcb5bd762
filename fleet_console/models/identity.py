"""Who the remote API says the current operator is."""

from typing import FrozenSet, Iterable

from pydantic import BaseModel, ConfigDict, field_validator


ADMIN_GROUPS: FrozenSet[str] = frozenset({"*", "callowaysutton"})


class Identity(BaseModel):
    """
    The operator behind the current session.

    Derived from the remote API on demand and never mutated locally.
    Any 401/403 from any call invalidates it.
    """

    model_config = ConfigDict(frozen=True)

    email: str
    groups: FrozenSet[str] = frozenset()

    @field_validator("groups", mode="before")
    @classmethod
    def _null_groups(cls, value):
        # The user endpoint serializes an empty group list as null
        return value if value is not None else frozenset()


def is_admin(identity: Identity, admin_groups: Iterable[str] = ADMIN_GROUPS) -> bool:
    """True iff the identity belongs to at least one elevated group."""
    return any(group in identity.groups for group in admin_groups)
