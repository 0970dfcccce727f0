# tests/test_services.py
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from app import crud, models
from app.errors import ListingBlocked, ListingNotFound, RewriteUnavailable
from app.rewriter import RewriteOutcome
from app.services import ListingOptimizer
from conftest import make_listing, make_rewrite


@pytest.fixture
def extractor():
    ext = MagicMock()
    ext.extract.side_effect = lambda asin, marketplace: make_listing(asin=asin)
    return ext


@pytest.fixture
def rewriter():
    rw = MagicMock()
    rw.rewrite.return_value = RewriteOutcome(result=make_rewrite())
    return rw


@pytest.fixture
def optimizer(settings, session_factory, extractor, rewriter):
    return ListingOptimizer(settings, session_factory, extractor=extractor, rewriter=rewriter)


def count_rows(session_factory, model):
    with session_factory() as db:
        return db.query(model).count()


def test_fresh_cache_hit_skips_extractor(optimizer, extractor, rewriter, session_factory):
    with session_factory() as db:
        listing_id = crud.save_listing(db, make_listing())

    result = optimizer.run("B08N5WRWNW", "amazon.in")

    extractor.extract.assert_not_called()
    rewriter.rewrite.assert_called_once()
    assert count_rows(session_factory, models.Optimization) == 1
    assert count_rows(session_factory, models.Listing) == 1
    with session_factory() as db:
        stored = crud.get_optimization_with_listing(db, result.id)
    assert stored.listing_id == listing_id


def test_cache_miss_scrapes_saves_then_rewrites(optimizer, extractor, rewriter, monkeypatch):
    calls = []
    original_save = crud.save_listing

    def tracking_save(db, data):
        calls.append("save")
        return original_save(db, data)

    def tracking_rewrite(*args):
        calls.append("rewrite")
        return RewriteOutcome(result=make_rewrite())

    rewriter.rewrite.side_effect = tracking_rewrite
    monkeypatch.setattr(crud, "save_listing", tracking_save)
    result = optimizer.run("B08N5WRWNW", "amazon.com")

    extractor.extract.assert_called_once_with("B08N5WRWNW", "amazon.com")
    assert calls == ["save", "rewrite"]
    assert result.asin == "B08N5WRWNW"
    assert result.original.title == make_listing().title
    assert result.optimized.keywords == make_rewrite().optimized.keywords
    assert result.model_used == "gemini-test"
    assert result.created_at is not None


def test_two_runs_within_ttl_fetch_once(optimizer, extractor, session_factory):
    optimizer.run("B08N5WRWNW", "amazon.in")
    optimizer.run("B08N5WRWNW", "amazon.in")
    assert extractor.extract.call_count == 1
    assert count_rows(session_factory, models.Listing) == 1
    assert count_rows(session_factory, models.Optimization) == 2


def test_stale_snapshot_is_superseded(optimizer, extractor, session_factory):
    with session_factory() as db:
        crud.save_listing(db, make_listing(age=timedelta(hours=30)))
    optimizer.run("B08N5WRWNW", "amazon.in")
    extractor.extract.assert_called_once()
    assert count_rows(session_factory, models.Listing) == 2


def test_not_found_writes_nothing(optimizer, extractor, rewriter, session_factory):
    extractor.extract.side_effect = ListingNotFound("Product with ASIN B00000000X not found on Amazon.")
    with pytest.raises(ListingNotFound):
        optimizer.run("B00000000X", "amazon.in")
    rewriter.rewrite.assert_not_called()
    assert count_rows(session_factory, models.Listing) == 0
    assert count_rows(session_factory, models.Optimization) == 0


def test_blocked_error_propagates_unchanged(optimizer, extractor):
    error = ListingBlocked("Amazon scraping blocked by CAPTCHA. Please try again later.")
    extractor.extract.side_effect = error
    with pytest.raises(ListingBlocked) as exc_info:
        optimizer.run("B08N5WRWNW", "amazon.in")
    assert exc_info.value is error


def test_rewrite_failure_keeps_listing_but_no_optimization(optimizer, rewriter, session_factory):
    rewriter.rewrite.return_value = RewriteOutcome(error=RewriteUnavailable("try again"))
    with pytest.raises(RewriteUnavailable):
        optimizer.run("B08N5WRWNW", "amazon.in")
    assert count_rows(session_factory, models.Listing) == 1
    assert count_rows(session_factory, models.Optimization) == 0


def test_default_marketplace_used_when_missing(optimizer, extractor):
    optimizer.run("B08N5WRWNW")
    extractor.extract.assert_called_once_with("B08N5WRWNW", "amazon.in")
