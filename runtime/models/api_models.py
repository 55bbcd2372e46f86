"""
HTTP request/response models for the POST /api/chat relay.

Field names on the wire are camelCase; Python attributes are snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    native_language: str = Field(alias="nativeLanguage", min_length=1)
    target_language: str = Field(alias="targetLanguage", min_length=1)
    difficulty: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
