"""Exception types shared by the service layers."""

from __future__ import annotations


class EmployeeAuditError(Exception):
    """Base class for errors that map onto a client-facing response."""

    code = "error"
    status_code = 500


class NotFoundError(EmployeeAuditError):
    code = "not_found"
    status_code = 404


class DuplicateError(EmployeeAuditError):
    code = "duplicate"
    status_code = 409


class InvalidRequestError(EmployeeAuditError):
    code = "invalid_request"
    status_code = 400


class TransactionStateError(RuntimeError):
    """Raised when a finished transaction is completed a second time."""
