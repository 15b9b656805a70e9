"""
Pydantic models for the JSON payloads served by the API.

Endpoints build their bodies through these models so response shapes stay
consistent.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class PricesResponse(BaseModel):
    BTC: float = Field(gt=0)
    ETH: float = Field(gt=0)
    SOL: float = Field(gt=0)


class ErrorResponse(BaseModel):
    error: str


class Preferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    darkMode: StrictBool


class Countdown(BaseModel):
    seconds: int = Field(ge=0)
    display: str


class DashboardRow(BaseModel):
    symbol: str
    name: str
    color: str
    start: float
    current: float
    start_display: str
    current_display: str
    change_value: Optional[float] = None
    change_percent: Optional[float] = None
    change_display: str
    biggest_mover: bool
    url: Optional[str] = None


class DashboardTimeframe(BaseModel):
    label: str
    slug: str
    window_minutes: int
    window_start: Optional[int] = None
    countdown_seconds: int = Field(ge=0)
    countdown_display: str
    biggest_mover: Optional[str] = None
    rows: List[DashboardRow]


class DashboardResponse(BaseModel):
    timestamp: str
    last_update: Optional[float] = None
    refreshing: bool = False
    darkMode: bool = True
    timeframes: List[DashboardTimeframe]


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    errors_5xx: int
    has_snapshot: bool
    last_error: Optional[str] = None


class MetricsResponse(BaseModel):
    status: str
    uptime_seconds: float
    errors_5xx: int
    price_fetch: Dict[str, Any]
