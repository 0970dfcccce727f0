# app/schemas.py
"""Pydantic models shared by the pipeline and the API.

Fields are snake_case everywhere in Python; the camelCase names the browser
client expects only appear when a model is serialized by alias.
"""
import re
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime

ASIN_PATTERN = re.compile(r"^[A-Z0-9]{10}$")


def normalize_asin(value: str) -> str:
    asin = (value or "").strip().upper()
    if not ASIN_PATTERN.match(asin):
        raise ValueError("ASIN must be exactly 10 letters or numbers")
    return asin


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ListingData(ApiModel):
    asin: str = Field(..., max_length=10)
    title: str = Field(..., min_length=1)
    bullet_points: List[str] = Field(default_factory=list)
    description: str = ""
    price: Optional[str] = None
    image_url: Optional[str] = None
    fetched_at: datetime


class OptimizedListing(ApiModel):
    title: str
    bullet_points: List[str]
    description: str
    keywords: List[str]


class RewriteResult(ApiModel):
    optimized: OptimizedListing
    model_used: str
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None


class OriginalListing(ApiModel):
    title: str
    bullet_points: List[str]
    description: str
    price: Optional[str] = None
    image_url: Optional[str] = None


class OptimizationResult(ApiModel):
    id: int
    asin: str
    original: OriginalListing
    optimized: OptimizedListing
    model_used: str
    created_at: datetime


class OptimizeRequest(ApiModel):
    asin: str
    marketplace: Optional[str] = None

    @field_validator("asin")
    @classmethod
    def check_asin(cls, value: str) -> str:
        return normalize_asin(value)

    @field_validator("marketplace")
    @classmethod
    def check_marketplace(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().lower() if value else None


class OptimizationOut(ApiModel):
    id: int
    listing_id: int
    asin: str
    optimized_title: Optional[str]
    optimized_bullets: Optional[List[str]]
    optimized_description: Optional[str]
    keywords: Optional[List[str]]
    model_used: Optional[str]
    prompt_tokens: Optional[int]
    completion_tokens: Optional[int]
    created_at: Optional[datetime]


class OptimizationDetailOut(OptimizationOut):
    original_title: str
    original_bullets: List[str]
    original_description: Optional[str]
    original_price: Optional[str]
    original_image_url: Optional[str]


class RecentOptimizationOut(ApiModel):
    id: int
    asin: str
    optimized_title: Optional[str]
    model_used: Optional[str]
    created_at: Optional[datetime]
    original_title: str
    original_image_url: Optional[str]


class HistoryOut(ApiModel):
    asin: str
    optimizations: List[OptimizationOut]
    total: int
    limit: int
    offset: int


class DeleteOut(ApiModel):
    asin: str
    deleted: int
