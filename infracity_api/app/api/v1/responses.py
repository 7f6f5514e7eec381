"""
Response envelope and error translation shared by the v1 endpoints.

Successful responses are wrapped as ``{"success": true, "data": ...}``
with an optional ``message``.  Service exceptions are mapped onto HTTP
errors; the application's exception handlers render those as
``{"success": false, "error": ...}``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from infracity_api.app.core.errors import NotFoundError


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def http_error(exc: Exception) -> HTTPException:
    """Translate a service exception into an ``HTTPException``.

    ``NotFoundError`` becomes 404, ``PermissionError`` 403 and any other
    ``ValueError`` 400.
    """
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
