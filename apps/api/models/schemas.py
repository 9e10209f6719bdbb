"""
Pydantic models for the Price History Crawler API
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Crawl Request Schemas
# =============================================================================

class CrawlOptions(BaseModel):
    """Options for a batch crawl. Zero or missing numbers fall back to the defaults."""
    concurrency: Optional[int] = Field(default=3, ge=0, description="Number of browser instances")
    headless: Optional[bool] = Field(default=True, description="Run browsers without a window")
    timeout: Optional[int] = Field(default=30000, ge=0, description="Navigation timeout in milliseconds")

    def to_options(self) -> Dict[str, Any]:
        return self.model_dump()


class CrawlRequest(BaseModel):
    """Request body for POST /crawl"""
    urls: List[str] = Field(..., min_length=1, description="Listing URLs to crawl")
    options: CrawlOptions = Field(default_factory=CrawlOptions)

    @field_validator('urls')
    @classmethod
    def strip_urls(cls, v: List[str]) -> List[str]:
        urls = [url.strip() for url in v]
        if not any(urls):
            raise ValueError('at least one non-empty URL is required')
        return urls


# =============================================================================
# Stream Message Schemas
# =============================================================================

class CompleteMessage(BaseModel):
    """Terminal stream message with every per-URL outcome"""
    type: str = "complete"
    results: List[Dict[str, Any]]
    sessionId: str
    totalTime: int


class SavedMessage(BaseModel):
    """Sent after the batch artifact was written"""
    type: str = "saved"
    file: str


class ErrorMessage(BaseModel):
    """Terminal stream message when the batch itself failed"""
    type: str = "error"
    error: str


# =============================================================================
# Session Schemas
# =============================================================================

class SessionInfo(BaseModel):
    """A live crawl session"""
    session_id: str
    started_at: str
    elapsed_ms: int


class SessionListResponse(BaseModel):
    count: int
    sessions: List[SessionInfo]


# =============================================================================
# Health Check Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    active_sessions: int
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
