"""
HTTP-facing errors and Harvest error message cleanup.
"""
from __future__ import annotations
import html
import re
from typing import Dict, List, Optional

UNAUTHORIZED = "Unauthorized"
NO_HARVEST_TOKEN = "No Harvest access token found"
FORBIDDEN_ADMIN = "Forbidden - Admin access required"
FORBIDDEN_ADMIN_OR_MANAGER = "Forbidden - Admin or Manager access required"

_TAG_RE = re.compile(r"<[^>]*>")
_LOCKED_RE = re.compile(r"cannot track (time|expenses?)", re.IGNORECASE)
_APPROVED_OR_LOCKED_RE = re.compile(r"approved|locked", re.IGNORECASE)
_PROJECT_RE = re.compile(r"to\s+(.+?),?\s+because", re.IGNORECASE)


class PortalError(Exception):
    """An error that maps directly onto an HTTP response."""

    def __init__(
        self,
        status_code: int,
        message: str,
        errors: Optional[Dict[str, List[str]]] = None,
        requires_reauth: Optional[bool] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.errors = errors
        self.requires_reauth = requires_reauth
        super().__init__(message)

    def to_dict(self) -> dict:
        body: dict = {"error": self.message}
        if self.errors is not None:
            body["errors"] = self.errors
        if self.requires_reauth is not None:
            body["requiresReauth"] = self.requires_reauth
        return body


def strip_html(text: str) -> str:
    """
    Remove tags and decode entities from a Harvest error message.

    >>> strip_html('You cannot track time to <strong>Project Name</strong>')
    'You cannot track time to Project Name'
    """
    return html.unescape(_TAG_RE.sub("", text)).strip()


def format_locked_period_error(message: str) -> str:
    """
    Turn Harvest's verbose locked-week rejection into a short message.

    'You cannot track time to <strong>[PRJ-01] PMO Hive</strong>, because
    hours have been <strong>approved</strong>' becomes
    'Cannot log time to [PRJ-01] PMO Hive - week is approved'. Anything else
    is returned with HTML stripped.
    """
    clean = strip_html(message)

    if not (_LOCKED_RE.search(clean) and _APPROVED_OR_LOCKED_RE.search(clean)):
        return clean

    match = _PROJECT_RE.search(clean)
    project_name = match.group(1) if match else "this project"
    action = "submit expense" if re.search(r"expenses?", clean, re.IGNORECASE) else "log time"
    reason = "approved" if re.search(r"approved", clean, re.IGNORECASE) else "locked"
    return f"Cannot {action} to {project_name} - week is {reason}"
