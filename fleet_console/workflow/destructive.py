"""
Destructive Workflow — select, type-to-confirm, commit.

States:
  CLOSED → SELECTING → CONFIRMING → COMMITTING → (CLOSED | FAILED → CONFIRMING)

Behavioral Contract:
- Every open re-fetches the option set; nothing is cached across opens
- CONFIRMING is reached only with a valid selection
- The commit call is issued only from CONFIRMING, and only when the typed
  token equals the workflow's literal exactly
- A failed commit returns to CONFIRMING so the operator can retry without
  re-selecting; success closes and reports the server's payload once
- Results that arrive after the workflow was closed or reopened are ignored
"""

import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from fleet_console.errors import WorkflowStateError
from fleet_console.execution.executor import ActionExecutor
from fleet_console.models.action import ActionKind, ActionRequest, Confirmation
from fleet_console.models.outcomes import (
    Ack,
    ActionOutcome,
    AuthFailure,
    Failure,
    ProtocolFailure,
    ValidationFailure,
)
from fleet_console.session.calls import guarded_call

logger = logging.getLogger(__name__)

OptionT = TypeVar("OptionT", bound=BaseModel)
CompletionCallback = Callable[[Any], None]


class WorkflowState(str, Enum):
    CLOSED = "closed"
    SELECTING = "selecting"
    CONFIRMING = "confirming"
    COMMITTING = "committing"
    FAILED = "failed"


class DestructiveWorkflow:
    """
    Base state machine shared by reinstall and snapshot restore.

    Subclasses define the option set, the selection, its validation and
    the commit payload.
    """

    kind: ActionKind
    confirmation_token: str

    def __init__(
        self,
        server_id: int,
        server_name: str,
        executor: ActionExecutor,
        on_complete: Optional[CompletionCallback] = None,
    ):
        self.server_id = server_id
        self.server_name = server_name
        self.executor = executor
        self.on_complete = on_complete

        self.state = WorkflowState.CLOSED
        self.history: List[WorkflowState] = [WorkflowState.CLOSED]
        self.last_error: Optional[str] = None
        self.rejection: Optional[str] = None
        self._generation = 0
        self._reset_selection()

    # --- Subclass hooks ---

    def _reset_selection(self) -> None:
        raise NotImplementedError

    async def _fetch_options(self) -> Tuple[Optional[Failure], Any]:
        """Fetch the option set without touching workflow state."""
        raise NotImplementedError

    def _apply_options(self, options: Any) -> None:
        raise NotImplementedError

    def _validate_selection(self) -> Optional[ValidationFailure]:
        raise NotImplementedError

    def payload(self) -> dict:
        raise NotImplementedError

    def summary(self) -> dict:
        """What the operator is about to destroy, shown while confirming."""
        raise NotImplementedError

    # --- Transitions ---

    @property
    def is_open(self) -> bool:
        return self.state != WorkflowState.CLOSED

    @property
    def is_committing(self) -> bool:
        return self.state == WorkflowState.COMMITTING

    def _transition(self, new_state: WorkflowState) -> None:
        logger.debug(
            "%s workflow for server %s: %s -> %s",
            self.kind.value, self.server_id, self.state.value, new_state.value,
        )
        self.state = new_state
        self.history.append(new_state)

    def _require(self, *states: WorkflowState) -> None:
        if self.state not in states:
            raise WorkflowStateError(
                f"{self.kind.value} workflow is {self.state.value}; "
                f"expected {' or '.join(s.value for s in states)}"
            )

    async def open(self) -> Optional[Failure]:
        """Enter SELECTING and fetch a fresh option set."""
        self._generation += 1
        generation = self._generation
        self._reset_selection()
        self.last_error = None
        self.rejection = None
        self._transition(WorkflowState.SELECTING)

        failure, options = await self._fetch_options()
        if generation != self._generation:
            logger.info(
                "Discarding %s options for server %s: workflow moved on",
                self.kind.value, self.server_id,
            )
            return failure
        self._apply_options(options)
        if isinstance(failure, AuthFailure):
            self._transition(WorkflowState.CLOSED)
        elif failure is not None:
            self.last_error = failure.message
        return failure

    def proceed(self) -> Optional[ValidationFailure]:
        """SELECTING → CONFIRMING, or the reason the selection is not usable."""
        self._require(WorkflowState.SELECTING)
        failure = self._validate_selection()
        if failure is not None:
            self.rejection = failure.message
            return failure
        self.rejection = None
        self._transition(WorkflowState.CONFIRMING)
        return None

    def back(self) -> None:
        self._require(WorkflowState.CONFIRMING)
        self.rejection = None
        self._transition(WorkflowState.SELECTING)

    def close(self) -> None:
        """Close from any state. An outstanding commit is abandoned, not cancelled."""
        self._generation += 1
        if self.state != WorkflowState.CLOSED:
            self._transition(WorkflowState.CLOSED)

    def token_matches(self, typed_token: str) -> bool:
        return typed_token == self.confirmation_token

    async def commit(
        self,
        typed_token: str,
        on_complete: Optional[CompletionCallback] = None,
    ) -> Union[ActionOutcome, ValidationFailure]:
        """Dispatch the destructive call if the typed token matches exactly."""
        self._require(WorkflowState.CONFIRMING)

        if not self.token_matches(typed_token):
            self.rejection = f'Please type "{self.confirmation_token}" to proceed'
            return ValidationFailure(field="confirmation", message=self.rejection)

        self.rejection = None
        self.last_error = None
        request = ActionRequest(
            kind=self.kind,
            target_server_id=self.server_id,
            payload=self.payload(),
        )
        generation = self._generation
        self._transition(WorkflowState.COMMITTING)

        outcome = await self.executor.execute(request, Confirmation.grant(request))

        if generation != self._generation:
            logger.info(
                "Ignoring late %s result for server %s", self.kind.value, self.server_id
            )
            return outcome

        if isinstance(outcome, Ack):
            self._transition(WorkflowState.CLOSED)
            callback = on_complete or self.on_complete
            if callback is not None:
                callback(outcome.payload)
        elif isinstance(outcome, AuthFailure):
            self._transition(WorkflowState.CLOSED)
        else:
            self.last_error = outcome.message
            self._transition(WorkflowState.FAILED)
            self._transition(WorkflowState.CONFIRMING)
        return outcome

    # --- Option fetching ---

    async def _fetch_list(
        self, path: str, model: Type[OptionT], failure_message: str
    ) -> Union[List[OptionT], Failure]:
        body = await guarded_call(self.executor.guard, "GET", path, failure_message)
        if isinstance(body, Failure):
            return body
        if body is None:
            body = []
        if not isinstance(body, list):
            return ProtocolFailure(message=failure_message)
        try:
            return [model.model_validate(item) for item in body]
        except ValidationError as e:
            logger.error("Malformed option list from %s: %s", path, e)
            return ProtocolFailure(message=failure_message)
