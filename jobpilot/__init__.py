"""
JobPilot
A job board where organizations publish listings and job seekers apply.

Architecture:
- PostgreSQL: Structured data (users, organizations, listings, applications)
- MongoDB: Uploaded résumé files (GridFS)
- LLM: Listing matching, résumé summaries and application rating only
- Identity provider: Users, organizations, permissions and plans
"""

__version__ = "1.0.0"
