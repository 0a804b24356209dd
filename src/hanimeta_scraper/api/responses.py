"""JSON response envelope.

Every API payload is wrapped as ``{"success": true, "data": ...}`` or
``{"success": false, "error": "..."}``.  Service and cache-management
endpoints that report operational status (``/health``, ``/cache/...``)
return plain objects instead.
"""

from __future__ import annotations

from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse


def ok(data: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse({"success": True, "data": data}, status_code=status_code)


def fail(error: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": error}, status_code=status_code)
