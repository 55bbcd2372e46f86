"""
Pydantic / datamodels used by the language tutor.

Split into:
- session_models: Session + Turn + SessionStatus + visibility directives
- api_models: HTTP request/response schemas
"""
