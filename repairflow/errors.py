# -*- coding: utf-8 -*-
"""
Workflow error taxonomy

Validation errors are raised before any read of the order, state errors after
the read but before any write, concurrency and infrastructure errors while
writing. Every error aborts the surrounding store transaction.
"""


class WorkflowError(Exception):
    """Base error for rejected commands"""
    status_code = 400
    retryable = False

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {
            "error": self.name,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


# ==================== Validation ====================

class ValidationFailed(WorkflowError):
    """Bad input shape or value"""
    status_code = 422


class InvalidLineItem(ValidationFailed):
    """Negative price, non-positive quantity, unknown catalog reference"""


class InvalidPayment(ValidationFailed):
    """Payment amount below the amount due, or negative"""


# ==================== State ====================

class IllegalTransition(WorkflowError):
    """Command not allowed from the order's current status"""
    status_code = 409


class NoConfirmedWork(WorkflowError):
    """Assignment attempted before any line item was confirmed"""
    status_code = 409


class NotFound(WorkflowError):
    status_code = 404


class UnknownLineItem(NotFound):
    """Line item does not belong to the order or is no longer pending"""


class UnknownWorker(NotFound):
    """Worker does not exist or is not active"""


# ==================== Access ====================

class Unauthorized(WorkflowError):
    """Actor role may not perform the command"""
    status_code = 403


class Unauthenticated(Unauthorized):
    """Missing or unknown session token"""
    status_code = 401

    @property
    def name(self) -> str:
        return "Unauthorized"


# ==================== Concurrency / infrastructure ====================

class ConcurrentModification(WorkflowError):
    """Order changed since it was read; re-fetch and retry"""
    status_code = 409


class ServiceUnavailable(WorkflowError):
    """External collaborator unreachable"""
    status_code = 503
    retryable = True


class StoreUnavailable(ServiceUnavailable):
    """Relational store unreachable"""
