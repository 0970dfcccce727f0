# tests/conftest.py
import pytest
from datetime import timedelta

from app import models  # noqa: F401
from app.config import Settings
from app.db import Base, create_db_engine, create_session_factory
from app.schemas import ListingData, OptimizedListing, RewriteResult
from app.utils import utcnow


@pytest.fixture
def settings():
    return Settings(
        gemini_api_key="test-key",
        gemini_model="gemini-test",
        database_url="sqlite://",
    )


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_listing(asin="B08N5WRWNW", age=timedelta(0), **overrides):
    data = {
        "asin": asin,
        "title": "Acme Travel Mug 16oz Stainless Steel",
        "bullet_points": [
            "Built from aircraft-grade aluminum for years of everyday durability",
            "Double-wall vacuum insulation keeps drinks hot for twelve hours",
        ],
        "description": "A sturdy travel mug for commuters who want coffee that stays hot.",
        "price": "₹1,299.00",
        "image_url": "https://m.media-amazon.com/images/I/71abc.jpg",
        "fetched_at": utcnow() - age,
    }
    data.update(overrides)
    return ListingData(**data)


def make_rewrite(title="Acme Insulated Travel Mug 16 Oz", model_used="gemini-test"):
    return RewriteResult(
        optimized=OptimizedListing(
            title=title,
            bullet_points=[f"BENEFIT {i}: supporting copy for bullet {i}" for i in range(1, 6)],
            description="Optimized description copy.",
            keywords=["insulated coffee cup", "commuter tumbler", "gift for dad", "office desk mug", "leakproof lid cup"],
        ),
        model_used=model_used,
        prompt_tokens=120,
        completion_tokens=340,
    )
