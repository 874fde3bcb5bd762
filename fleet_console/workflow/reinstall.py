"""Reinstall: replace a server's operating system or application image."""

import asyncio
import logging
from enum import Enum
from typing import List, Optional, Tuple, Union

from fleet_console.models.action import ActionKind
from fleet_console.models.outcomes import Failure, ValidationFailure
from fleet_console.models.server import AppOption, OsOption
from fleet_console.workflow.destructive import DestructiveWorkflow, WorkflowState

logger = logging.getLogger(__name__)

OptionLists = Tuple[List[OsOption], List[AppOption]]


class ReinstallType(str, Enum):
    OS = "os"
    APP = "app"


class AuthenticationMode(str, Enum):
    PASSWORD = "password"   # Auto-generated, retrievable from the server credentials
    SSH = "ssh"


class ReinstallWorkflow(DestructiveWorkflow):
    kind = ActionKind.REINSTALL
    confirmation_token = "CONFIRM"

    def _reset_selection(self) -> None:
        self.os_options: List[OsOption] = []
        self.app_options: List[AppOption] = []
        self.reinstall_type = ReinstallType.OS
        self.os_app_id: Optional[int] = None
        self.authentication = AuthenticationMode.PASSWORD
        self.ssh_key = ""

    async def _fetch_options(self) -> Tuple[Optional[Failure], OptionLists]:
        os_result, app_result = await asyncio.gather(
            self._fetch_list("/api/os_options", OsOption, "Failed to load operating systems"),
            self._fetch_list("/api/apps", AppOption, "Failed to load applications"),
        )
        failure = None
        os_options: List[OsOption] = []
        app_options: List[AppOption] = []
        if isinstance(os_result, Failure):
            failure = os_result
        else:
            os_options = os_result
        if isinstance(app_result, Failure):
            failure = failure or app_result
        else:
            app_options = app_result
        return failure, (os_options, app_options)

    def _apply_options(self, options: OptionLists) -> None:
        self.os_options, self.app_options = options
        # Reopening always starts on the OS list
        if self.os_options:
            self.os_app_id = self.os_options[0].id

    @property
    def active_options(self) -> List[Union[OsOption, AppOption]]:
        if self.reinstall_type == ReinstallType.OS:
            return list(self.os_options)
        return list(self.app_options)

    def set_reinstall_type(self, reinstall_type: Union[ReinstallType, str]) -> None:
        """Switch lists; the selection moves to the first item of the new list."""
        self._require(WorkflowState.SELECTING)
        self.reinstall_type = ReinstallType(reinstall_type)
        options = self.active_options
        self.os_app_id = options[0].id if options else None

    def select(self, option_id: int) -> Optional[ValidationFailure]:
        self._require(WorkflowState.SELECTING)
        if not any(option.id == option_id for option in self.active_options):
            return ValidationFailure(
                field="os_app_id",
                message=f"Unknown {self.reinstall_type.value} option: {option_id}",
            )
        self.os_app_id = option_id
        return None

    def set_authentication(self, mode: Union[AuthenticationMode, str]) -> None:
        self._require(WorkflowState.SELECTING)
        self.authentication = AuthenticationMode(mode)
        if self.authentication == AuthenticationMode.PASSWORD:
            self.ssh_key = ""

    def set_ssh_key(self, ssh_key: str) -> None:
        self._require(WorkflowState.SELECTING)
        self.ssh_key = ssh_key

    def _validate_selection(self) -> Optional[ValidationFailure]:
        if self.os_app_id is None:
            return ValidationFailure(field="os_app_id", message="Please select an OS or App")
        if self.authentication == AuthenticationMode.SSH and not self.ssh_key.strip():
            return ValidationFailure(field="ssh_key", message="Please provide an SSH key")
        return None

    def payload(self) -> dict:
        return {
            "reinstall_type": self.reinstall_type.value,
            "os_app_id": self.os_app_id,
            "authentication": self.authentication.value,
            "ssh_key": self.ssh_key,
        }

    def selected_label(self) -> str:
        selected = next(
            (o for o in self.active_options if o.id == self.os_app_id), None
        )
        return selected.label if selected else "Unknown"

    def summary(self) -> dict:
        return {
            "server": self.server_name,
            "type": (
                "Operating System"
                if self.reinstall_type == ReinstallType.OS
                else "Application"
            ),
            "selection": self.selected_label(),
            "authentication": (
                "SSH Key"
                if self.authentication == AuthenticationMode.SSH
                else "Auto-generated Password"
            ),
        }
