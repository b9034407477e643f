"""
Helpers shared by the /api/harvest routers.
"""
from __future__ import annotations
import json
from typing import Any, Dict

from fastapi import Request

from portal.errors import PortalError

SUCCESS = {"success": True}


async def read_json(request: Request) -> Any:
    """Request body as JSON; 400 when it is not valid JSON."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        raise PortalError(400, "Invalid JSON body") from None


def query_dict(request: Request) -> Dict[str, str]:
    """Query string as a flat dict; empty values are treated as absent."""
    return {k: v for k, v in request.query_params.items() if v != ""}


def is_multipart(request: Request) -> bool:
    return "multipart/form-data" in request.headers.get("content-type", "")
