# app/crud.py
"""Persistence helpers for `Listing` snapshots and `Optimization` records.

Every function takes an open `Session`. Writes commit immediately so callers
can keep sessions short; nothing here updates a row in place.
"""
from datetime import timedelta
from sqlalchemy import select, delete, func
from sqlalchemy.orm import Session
from typing import List, Optional

from .models import Listing, Optimization
from .schemas import ListingData, RewriteResult
from .utils import utcnow


# Listing snapshots

def save_listing(db: Session, data: ListingData) -> int:
    obj = Listing(
        asin=data.asin,
        title=data.title,
        bullet_points=list(data.bullet_points),
        description=data.description,
        price=data.price,
        image_url=data.image_url,
        fetched_at=data.fetched_at,
    )
    db.add(obj)
    db.commit()
    return obj.id

def get_listing(db: Session, listing_id: int) -> Optional[Listing]:
    return db.get(Listing, listing_id)

def find_latest_listing(db: Session, asin: str) -> Optional[Listing]:
    stmt = (
        select(Listing)
        .where(Listing.asin == asin)
        .order_by(Listing.fetched_at.desc(), Listing.id.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()

def find_fresh_listing(db: Session, asin: str, ttl: timedelta) -> Optional[Listing]:
    """Most recent snapshot younger than `ttl`, or None when only stale ones exist."""
    cutoff = utcnow() - ttl
    stmt = (
        select(Listing)
        .where(Listing.asin == asin, Listing.fetched_at > cutoff)
        .order_by(Listing.fetched_at.desc(), Listing.id.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()


# Optimizations

def record_optimization(db: Session, listing_id: int, asin: str, rewrite: RewriteResult) -> Optimization:
    obj = Optimization(
        listing_id=listing_id,
        asin=asin,
        optimized_title=rewrite.optimized.title,
        optimized_bullets=list(rewrite.optimized.bullet_points),
        optimized_description=rewrite.optimized.description,
        keywords=list(rewrite.optimized.keywords),
        model_used=rewrite.model_used,
        prompt_tokens=rewrite.prompt_tokens,
        completion_tokens=rewrite.completion_tokens,
    )
    db.add(obj)
    db.commit()
    return obj

def list_optimizations(db: Session, asin: str, limit: int = 20, offset: int = 0) -> List[Optimization]:
    stmt = (
        select(Optimization)
        .where(Optimization.asin == asin)
        .order_by(Optimization.created_at.desc(), Optimization.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())

def count_optimizations(db: Session, asin: str) -> int:
    stmt = select(func.count()).select_from(Optimization).where(Optimization.asin == asin)
    return db.scalar(stmt) or 0

def get_optimization_with_listing(db: Session, optimization_id: int):
    stmt = (
        select(
            Optimization.id,
            Optimization.listing_id,
            Optimization.asin,
            Optimization.optimized_title,
            Optimization.optimized_bullets,
            Optimization.optimized_description,
            Optimization.keywords,
            Optimization.model_used,
            Optimization.prompt_tokens,
            Optimization.completion_tokens,
            Optimization.created_at,
            Listing.title.label("original_title"),
            Listing.bullet_points.label("original_bullets"),
            Listing.description.label("original_description"),
            Listing.price.label("original_price"),
            Listing.image_url.label("original_image_url"),
        )
        .join(Listing, Optimization.listing_id == Listing.id)
        .where(Optimization.id == optimization_id)
        .limit(1)
    )
    return db.execute(stmt).first()

def recent_optimizations(db: Session, limit: int = 10):
    """Latest optimization per ASIN, newest first."""
    latest = (
        select(func.max(Optimization.id).label("max_id"))
        .group_by(Optimization.asin)
        .subquery("latest")
    )
    stmt = (
        select(
            Optimization.id,
            Optimization.asin,
            Optimization.optimized_title,
            Optimization.model_used,
            Optimization.created_at,
            Listing.title.label("original_title"),
            Listing.image_url.label("original_image_url"),
        )
        .join(latest, Optimization.id == latest.c.max_id)
        .join(Listing, Optimization.listing_id == Listing.id)
        .order_by(Optimization.created_at.desc(), Optimization.id.desc())
        .limit(limit)
    )
    return db.execute(stmt).all()

def delete_optimizations(db: Session, asin: str) -> int:
    result = db.execute(delete(Optimization).where(Optimization.asin == asin))
    db.commit()
    return result.rowcount or 0
