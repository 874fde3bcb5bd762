"""
Programming-error exceptions.

Remote failures never raise; they come back as tagged outcomes
(see ``fleet_console.models.outcomes``). These are raised only when a
caller breaks a contract of the orchestrator itself.
"""


class ConsoleError(Exception):
    """Base class for fleet console contract violations."""
    pass


class ConfirmationRequired(ConsoleError):
    """Raised when an action reaches the executor without a matching confirmation."""
    pass


class WorkflowStateError(ConsoleError):
    """Raised on an illegal destructive-workflow transition."""
    pass


class RemoteUnavailable(ConsoleError):
    """Raised by the transport when no response was received."""
    pass
