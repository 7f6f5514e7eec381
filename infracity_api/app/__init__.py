"""
Application package for the InfraCity API.

Each domain (tasks, issues, road segments, intersections, plans,
planning sessions, analytics, reports) owns a schema module, a service
and a router under ``api/v1/endpoints``.  Routers are aggregated in
``api/v1/router.py`` and mounted by ``main.create_app``.
"""

from .main import app  # noqa: F401
