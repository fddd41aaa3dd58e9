"""
API request and response models for FastAPI endpoints.

This module defines the Pydantic models used for API request/response validation.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from .category import Category


class VersionInfo(BaseModel):
    """Component versions in effect."""

    api_version: str = Field(description="API version")
    ruleset_version: str = Field(description="Local keyword rule set version")
    prompt_version: str = Field(description="Remote classifier prompt version")
    scheduler_version: str = Field(description="Snippet polling state machine version")
    cache_version: int = Field(description="Expected cache schema version")

    model_config = {"frozen": True}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status", examples=["healthy"])
    version: str = Field(description="API version", examples=["1.0.0"])
    uptime_seconds: float = Field(description="Service uptime")


class ClassifyRequest(BaseModel):
    """Request model for classifying a single conversation snippet."""

    text: str = Field(default="", description="Message snippet")
    sender: str = Field(default="", description="Participant names")
    subject: str = Field(default="", description="Conversation subject")
    item_id: Optional[str] = Field(
        default=None, description="If given, the result is written to the cache"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "text": "We have a great job opportunity, are you hiring?",
                "sender": "Jane Recruiter",
                "subject": "Opening at ACME",
                "item_id": "conversation-42",
            }
        }
    }


class ClassifyResponse(BaseModel):
    """Response model for classification."""

    category: Category
    source: str = Field(description="local | remote | fallback")
    scores: Dict[str, int] = Field(default_factory=dict, description="Local keyword scores")
    cached: bool = Field(default=False, description="Whether the result was written to the cache")


class StoreRequest(BaseModel):
    """Request envelope for the store channel."""

    action: str = Field(description="getSettings | saveSettings | updateCacheEntry | deleteCacheEntry | clearCache")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    category: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    use_ai: Optional[bool] = Field(default=None, alias="useAI")

    model_config = {"populate_by_name": True}


class StoreResponse(BaseModel):
    """Response envelope for the store channel."""

    success: bool
    error: Optional[str] = None
    settings: Optional[Dict] = None


class PreferencesUpdate(BaseModel):
    """Settings surface update."""

    api_key: Optional[str] = Field(default=None, description="Remote classifier credential")
    use_ai: Optional[bool] = Field(default=None, description="Opt in to remote classification")


class PreferencesResponse(BaseModel):
    """Settings surface view (the API key itself is never echoed)."""

    api_key_set: bool
    use_ai: bool
    categories: List[str]
    cache_count: int
