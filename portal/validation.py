"""
Request validation: pydantic models in, 400 with a per-field message map out.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from portal.config import settings
from portal.errors import PortalError

M = TypeVar("M", bound=BaseModel)

RECEIPT_CONTENT_TYPES = ("image/", "application/pdf")


def field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for issue in exc.errors():
        path = ".".join(str(part) for part in issue["loc"])
        errors.setdefault(path, []).append(issue["msg"])
    return errors


def summary(errors: Dict[str, List[str]]) -> str:
    if len(errors) == 1:
        return "Validation failed for 1 field"
    return f"Validation failed for {len(errors)} fields"


def validate_request(schema: Type[M], data: Any) -> M:
    """
    Validate data against schema.

    Raises PortalError(400) whose errors map each dotted field path to its
    messages, e.g. {"hours": ["Input should be less than or equal to 24"]}.
    """
    try:
        return schema.model_validate(data if data is not None else {})
    except ValidationError as e:
        errors = field_errors(e)
        raise PortalError(400, summary(errors) if errors else "Validation failed", errors=errors)


def validate_receipt(content_type: Optional[str], size: int) -> None:
    """Receipts must be an image or a PDF no larger than MAX_RECEIPT_SIZE_MB."""
    errors: List[str] = []
    if not content_type or not content_type.startswith(RECEIPT_CONTENT_TYPES):
        errors.append("Receipt must be an image or PDF")
    limit = settings.MAX_RECEIPT_SIZE_MB * 1024 * 1024
    if size > limit:
        errors.append(f"Receipt cannot exceed {settings.MAX_RECEIPT_SIZE_MB}MB")
    if errors:
        raise PortalError(400, summary({"receipt": errors}), errors={"receipt": errors})


def parse_id(value: str, label: str = "ID") -> int:
    """Path id -> int, 400 'Invalid <label>' otherwise."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise PortalError(400, f"Invalid {label}") from None
    if parsed <= 0:
        raise PortalError(400, f"Invalid {label}")
    return parsed
