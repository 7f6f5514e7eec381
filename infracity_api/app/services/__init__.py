"""
Service layer.

Each service encapsulates the business rules and SQL for one domain.
Services raise ``ValueError`` for missing or invalid data and
``PermissionError`` for access violations; routers translate these
into HTTP errors.
"""
