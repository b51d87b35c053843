from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MatchEventCreate(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=100)
    user_id: str | None = None
    problem: str | None = Field(None, max_length=200)
    city: str | None = Field(None, max_length=150)
    area: str | None = Field(None, max_length=150)
    gender: str | None = Field(None, max_length=20)
    lgbtq: str | None = Field(None, max_length=20)
    religion: str | None = Field(None, max_length=50)
    exp_band: str | None = Field(None, max_length=20)
    price_min: float | None = None
    price_max: float | None = None
    source_page: str | None = Field(None, max_length=500)
    user_agent: str | None = Field(None, max_length=1_000)


class MatchAnalytics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: datetime = Field(..., alias="from")
    to: datetime
    total: int
    problems: dict[str, int]
    cities: dict[str, int]
    areas: dict[str, int]
    genders: dict[str, int]
    lgbtq: dict[str, int]
    religions: dict[str, int]
    expBands: dict[str, int]
    prices: list[tuple[float, float]]
    conversions: int
