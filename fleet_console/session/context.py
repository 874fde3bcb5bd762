"""
Client-side session context.

The guard never touches process-wide cookie or storage state. It works
against a ``ClientEnvironment`` it is handed; ``BrowserSession`` is the
in-memory implementation used by library callers, tests and the HTTP
surface (which renders the recorded side effects into a response).
"""

from typing import Dict, List, Mapping, NamedTuple, Optional, Protocol


class ExpiredCookie(NamedTuple):
    name: str
    path: str
    domain: Optional[str]


class ClientEnvironment(Protocol):
    """The side effects a session guard is allowed to perform."""

    hostname: str

    def cookie_names(self) -> List[str]:
        ...

    def expire_cookie(self, name: str, path: str = "/", domain: Optional[str] = None) -> None:
        ...

    def clear_local_storage(self) -> None:
        ...

    def clear_session_storage(self) -> None:
        ...

    def navigate(self, location: str) -> None:
        ...


class BrowserSession:
    """Cookie jar, storage and location for one operator's session."""

    def __init__(
        self,
        cookies: Optional[Mapping[str, str]] = None,
        hostname: str = "localhost",
        local_storage: Optional[Dict[str, str]] = None,
        session_storage: Optional[Dict[str, str]] = None,
    ):
        self.hostname = hostname
        self._cookies: Dict[str, str] = dict(cookies or {})
        self.local_storage: Dict[str, str] = dict(local_storage or {})
        self.session_storage: Dict[str, str] = dict(session_storage or {})
        self.location: Optional[str] = None
        self.navigations: List[str] = []
        self.expired_cookies: List[ExpiredCookie] = []
        self.storage_cleared = False

    # CredentialProvider

    def cookies(self) -> Dict[str, str]:
        return dict(self._cookies)

    # ClientEnvironment

    def cookie_names(self) -> List[str]:
        return list(self._cookies)

    def expire_cookie(self, name: str, path: str = "/", domain: Optional[str] = None) -> None:
        self.expired_cookies.append(ExpiredCookie(name, path, domain))
        self._cookies.pop(name, None)

    def clear_local_storage(self) -> None:
        self.local_storage.clear()
        self.storage_cleared = True

    def clear_session_storage(self) -> None:
        self.session_storage.clear()
        self.storage_cleared = True

    def navigate(self, location: str) -> None:
        self.location = location
        self.navigations.append(location)

    @property
    def redirected(self) -> bool:
        return self.location is not None
