"""
Service-level exceptions.

Services signal problems with plain exceptions that the routers map to
HTTP status codes:

* ``NotFoundError`` (a ``ValueError``) for missing entities, 404;
* ``ValueError`` for invalid business input, 400;
* ``PermissionError`` for access violations, 403.
"""


class NotFoundError(ValueError):
    """Raised when a requested entity does not exist."""
