# FILE: hims_billing/schemas/common.py
from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel


class ApiError(BaseModel):
    msg: str
    # machine-readable kind: validation_error / not_found / conflict / ...
    code: str = "error"


class ApiResponse(BaseModel):
    """Envelope for error answers: {status: false, data: null, error: {...}}."""
    status: bool
    data: Optional[Any] = None
    error: Optional[ApiError] = None
