"""Unified operation result envelope.

Every public engine operation returns this shape:
{
    "ok": true,                 // false on any rejection
    "code": null,               // stable error code when ok=false
    "error": null,              // human-readable message when ok=false
    "retryable": false,         // true when the same call may succeed later
    "data": { ... },            // null on error
    "timestamp": "...",
    "request_id": "..."
}
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from src.pm_common.errors import AppError


class OpResult(BaseModel):
    ok: bool = True
    code: str | None = None
    error: str | None = None
    retryable: bool = False
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def success_result(data: Any = None) -> OpResult:
    return OpResult(ok=True, data=data)


def error_result(exc: AppError) -> OpResult:
    return OpResult(ok=False, code=exc.code, error=exc.message, retryable=exc.retryable)
