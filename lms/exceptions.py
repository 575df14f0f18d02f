"""Errors raised by the batch lifecycle.

All of them are DRF ``APIException`` subclasses so that views can let them
propagate: ``custom_exception_handler`` turns them into the standard
``{success, message, data}`` envelope with the status code declared here.
"""

from rest_framework import status
from rest_framework.exceptions import APIException


class BatchError(APIException):
    """Base class for batch lifecycle errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Batch operation failed."
    default_code = "batch_error"

    def __init__(self, detail=None, code=None):
        super().__init__(detail, code)
        self.message = str(self.detail)


class BatchValidationError(BatchError):
    """A batch failed one of its structural invariants (dates, capacity, uniqueness)."""

    default_detail = "Batch validation failed."
    default_code = "validation_error"

    def __init__(self, detail=None, field=None, code=None):
        super().__init__(detail, code)
        self.field = field


class InvalidTransitionError(BatchError):
    """The requested status is not reachable from the current one."""

    default_code = "invalid_transition"

    def __init__(self, current_status, requested_status):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(f"Invalid status transition from {current_status} to {requested_status}")


class BatchConflictError(BatchError):
    """Mutual exclusion, readiness or schedule gate blocked the operation."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"

    def __init__(self, detail=None, blocking_batch=None, code=None):
        super().__init__(detail, code)
        self.blocking_batch = blocking_batch


class BatchNotFoundError(BatchError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Batch not found."
    default_code = "not_found"


class RollbackUnavailableError(BatchError):
    """The last status change cannot be undone."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "rollback_unavailable"

    NO_HISTORY = "no history"
    LAST_CHANGE_AUTOMATIC = "last change automatic"
    ALREADY_ROLLED_BACK = "last change already rolled back"

    def __init__(self, reason):
        self.reason = reason
        super().__init__(f"Cannot roll back: {reason}")
