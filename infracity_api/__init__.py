"""
Top-level package for the InfraCity API.

Marks ``infracity_api`` as a package so the application can be
imported with fully qualified names such as
``infracity_api.app.main``.  All functionality lives in submodules
under ``app``; the Python client for the REST API lives in
``infracity_api.client``.
"""

__all__ = []
