# app/models.py
"""SQLAlchemy ORM models for persisted entities.

Both tables are append-only: a `Listing` row is one scraped snapshot of a
product page, an `Optimization` row is one rewrite of a snapshot.
"""
from sqlalchemy import Column, ForeignKey, Integer, String, Text, JSON, TIMESTAMP, Index
from sqlalchemy.orm import relationship
from .db import Base
from .utils import utcnow


class Listing(Base):
    __tablename__ = "listings"
    id = Column(Integer, primary_key=True, index=True)
    asin = Column(String(10), nullable=False, index=True)
    title = Column(Text, nullable=False)
    bullet_points = Column(JSON, nullable=False, default=list)
    description = Column(Text)
    price = Column(String(50))
    image_url = Column(String(2048))
    fetched_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    optimizations = relationship(
        "Optimization", back_populates="listing", cascade="all, delete", passive_deletes=True
    )


class Optimization(Base):
    __tablename__ = "optimizations"
    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(
        Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False
    )
    asin = Column(String(10), nullable=False, index=True)
    optimized_title = Column(Text)
    optimized_bullets = Column(JSON)
    optimized_description = Column(Text)
    keywords = Column(JSON)
    model_used = Column(String(50))
    prompt_tokens = Column(Integer)
    completion_tokens = Column(Integer)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    listing = relationship("Listing", back_populates="optimizations")

Index("idx_listings_asin_fetched_at", Listing.asin, Listing.fetched_at)
Index("idx_optimizations_asin_created_at", Optimization.asin, Optimization.created_at)
