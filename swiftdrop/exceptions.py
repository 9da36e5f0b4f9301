"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class SwiftDropError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(SwiftDropError):
    """Raised for issues related to policy or settings loading and validation."""


class UploadValidationError(SwiftDropError):
    """Raised when a candidate file violates the size or type policy."""

    def __init__(self, name: str, reasons: list[str]):
        super().__init__(f"{name}: {reasons[0] if reasons else 'rejected'}")
        self.name = name
        self.reasons = list(reasons)


class TransferError(SwiftDropError):
    """Raised by a transfer engine when an upload fails."""


class TransferAborted(SwiftDropError):
    """
    Raised by a transfer engine once it has observed an abort request.
    """


class TaskNotFoundError(SwiftDropError):
    """Raised when a task identifier does not exist in the task store."""

    def __init__(self, task_id: str):
        super().__init__(f"Task with id '{task_id}' was not found.")
        self.task_id = task_id


class InvalidStateError(SwiftDropError):
    """Raised when an operation is not allowed in the task's current status."""

    def __init__(self, task_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} task '{task_id}' while it is {status}.")
        self.task_id = task_id
        self.status = status
        self.action = action


class DuplicateTaskError(SwiftDropError):
    """Raised when a task identifier is enqueued while already waiting."""

    def __init__(self, task_id: str):
        super().__init__(f"Task '{task_id}' is already queued.")
        self.task_id = task_id
