"""Health check response schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or degraded")
    service: str
    version: str
    environment: str
    timestamp: str
    database: bool = Field(description="Relational store answered a ping")
    cache_backend: str = Field(description="redis or memory")
