"""Domain errors raised by the gate engine."""

from __future__ import annotations

from typing import Any


class ApplyGateError(Exception):
    """Base error carrying a machine-readable code and an HTTP-style status."""

    code = "APPLY_GATE_ERROR"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFound(ApplyGateError):
    """Session, job or question reference absent."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            f"{resource} not found",
            details={"resource": resource, "id": identifier},
        )
        self.resource = resource
        self.identifier = identifier


class JobExpired(ApplyGateError):
    code = "JOB_EXPIRED"
    status_code = 410

    def __init__(self, job_id: str):
        super().__init__("Job has expired", details={"job_id": job_id})
        self.job_id = job_id


class StateError(ApplyGateError):
    """Operation is not valid for the session's current status."""

    code = "INVALID_SESSION_STATE"
    status_code = 409

    def __init__(self, status: Any, message: str | None = None):
        status_value = getattr(status, "value", status)
        super().__init__(
            message
            or f"Application session is not eligible for submission (status: {status_value})",
            details={"status": status_value},
        )
        self.status = status


class ValidationError(ApplyGateError):
    """Malformed answers, reported per offending field."""

    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, errors: list[dict[str, str]]):
        super().__init__("Validation error", details={"errors": errors})
        self.errors = errors

    def __str__(self) -> str:
        fields = ", ".join(f"{item['field']}: {item['message']}" for item in self.errors)
        return f"Validation error ({fields})"


class DuplicateApplication(ApplyGateError):
    code = "DUPLICATE_APPLICATION"
    status_code = 409

    def __init__(self, job_id: str, candidate_email: str):
        super().__init__(
            "You have already applied to this job.",
            details={"job_id": job_id, "candidate_email": candidate_email},
        )
        self.job_id = job_id
        self.candidate_email = candidate_email


__all__ = [
    "ApplyGateError",
    "NotFound",
    "JobExpired",
    "StateError",
    "ValidationError",
    "DuplicateApplication",
]
