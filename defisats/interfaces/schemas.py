"""
Pydantic schemas shared by every router.
"""

from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Liveness plus the state of the database and background workers.

    ``status`` is "ok" when the database answers and "degraded" otherwise.
    Workers are reported but never degrade the status because they are
    switched off in some deployments.
    """

    status: str
    version: str
    database: str
    scheduler_running: bool
    relay_running: bool


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None


class MessageResponse(BaseModel):
    message: str


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


class TaskRunResponse(BaseModel):
    """Outcome of a scheduler task run on demand."""

    task: str
    status: str
    duration_seconds: float
    details: dict
    error: Optional[str] = None
