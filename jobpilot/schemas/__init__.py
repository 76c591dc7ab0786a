"""
Schemas module - Request/Response schemas for API endpoints.

All schemas live in ``jobpilot.schemas.schemas``; table definitions are in
``jobpilot.db.tables``.
"""
