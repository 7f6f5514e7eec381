"""
Pydantic schema definitions for API payloads.

Schemas are separated from the SQLite tables so that the API
representation (nested documents, enums) stays independent of the
storage layout (JSON text columns).
"""
