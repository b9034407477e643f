"""
Envelope returned by the operational endpoints (/healthz, /readyz).

The /api routes answer with Harvest payloads or {"error": ...} instead.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class EnvelopeError(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ApiResponse(BaseModel):
    ok: bool
    data: Optional[Any] = None
    error: Optional[EnvelopeError] = None
    requestId: str = ""

    @classmethod
    def success(cls, data: Any = None, request_id: str = "") -> "ApiResponse":
        return cls(ok=True, data=data, requestId=request_id)

    @classmethod
    def failure(cls, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                request_id: str = "") -> "ApiResponse":
        error = EnvelopeError(code=code, message=message, details=details)
        return cls(ok=False, error=error, requestId=request_id)
