"""
Runtime package for the language tutor relay server.

This package contains:
- API layer (FastAPI server + chat routes)
- Models (Pydantic / dataclasses for requests and sessions)
"""
