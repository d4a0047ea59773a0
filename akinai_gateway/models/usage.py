"""API usage models"""

from datetime import datetime, timezone
from typing import Optional, List
from pydantic import BaseModel, Field


class UsageLogEntry(BaseModel):
    """One line per completed inbound request"""
    tenant_id: str
    endpoint: str
    method: str
    status_code: int
    response_time_ms: int
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def successful(self) -> bool:
        return self.status_code < 400


class DailyUsage(BaseModel):
    date: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    avg_response_time_ms: int = 0


class UsageStats(BaseModel):
    """Usage totals over a range of days"""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    avg_response_time_ms: int = 0
    daily: List[DailyUsage] = Field(default_factory=list)
