"""Pydantic schemas for aggregated usage."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

Money = Annotated[
    Decimal, PlainSerializer(lambda value: float(value), return_type=float, when_used="json")
]

DataSource = Literal["admin-api", "local-files"]


class ModelUsage(BaseModel):
    """Rollup for one model identifier."""

    model: str = Field(..., description="Model identifier")
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    cost: Money = Field(default=Decimal("0"), ge=0)

    model_config = ConfigDict(protected_namespaces=())


class MonthlyUsage(BaseModel):
    """Rollup for one calendar month of the reporting year."""

    month: str = Field(..., description="Month label, e.g. 'Mar'")
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    cost: Money = Field(default=Decimal("0"), ge=0)


class UsageData(BaseModel):
    """Aggregate usage for one user, one year and one data source."""

    provider: Literal["claude"] = "claude"
    data_source: DataSource
    data_source_label: str
    year: int
    total_input_tokens: int = Field(default=0, ge=0)
    total_output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    total_cost: Money = Field(default=Decimal("0"), ge=0)
    model_breakdown: List[ModelUsage] = Field(default_factory=list)
    monthly_breakdown: List[MonthlyUsage] = Field(default_factory=list)

    model_config = ConfigDict(protected_namespaces=())

    @property
    def is_empty(self) -> bool:
        return self.total_tokens == 0


class RawUsageRecordIn(BaseModel):
    """A usage record supplied directly by the client."""

    model: str = Field(default="unknown")
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cache_creation_tokens: int = Field(default=0, ge=0)
    cache_read_tokens: int = Field(default=0, ge=0)
    timestamp: datetime
    cost: Optional[Decimal] = Field(default=None, ge=0)

    model_config = ConfigDict(protected_namespaces=())


class AggregateBody(BaseModel):
    """Payload for the raw-record aggregation endpoint."""

    records: List[RawUsageRecordIn] = Field(default_factory=list)
    year: Optional[int] = None
    data_source: DataSource = "local-files"


class AdminUsageBody(BaseModel):
    """Payload for the Anthropic admin-API usage endpoint."""

    admin_api_key: str = Field(..., description="Anthropic Admin API key")
    year: Optional[int] = None


class UsageResponse(BaseModel):
    success: bool = True
    data: UsageData
