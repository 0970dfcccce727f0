# app/services.py
"""The optimize pipeline: resolve listing, rewrite, persist, respond."""
from datetime import timedelta
from typing import Optional

from . import crud, schemas
from .config import Settings
from .rewriter import GeminiRewriter
from .scrape import ListingExtractor
from .utils import logger


def listing_to_original(listing) -> schemas.OriginalListing:
    return schemas.OriginalListing(
        title=listing.title,
        bullet_points=list(listing.bullet_points or []),
        description=listing.description or "",
        price=listing.price or None,
        image_url=listing.image_url or None,
    )


class ListingOptimizer:
    """Runs one optimization per call.

    Sessions are opened per store call so no database connection is held
    while the marketplace or Gemini is being called.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory,
        extractor: Optional[ListingExtractor] = None,
        rewriter: Optional[GeminiRewriter] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.extractor = extractor or ListingExtractor(settings)
        self.rewriter = rewriter or GeminiRewriter(settings)
        self.cache_ttl = timedelta(milliseconds=settings.product_cache_ttl_ms)

    def resolve_listing(self, asin: str, marketplace: str):
        """Return `(listing_id, OriginalListing)`, scraping only on a cache miss."""
        with self.session_factory() as db:
            cached = crud.find_fresh_listing(db, asin, self.cache_ttl)
            if cached is not None:
                logger.info("Using cached listing %s for ASIN %s", cached.id, asin)
                return cached.id, listing_to_original(cached)

        logger.info("No fresh listing for ASIN %s, scraping %s", asin, marketplace)
        scraped = self.extractor.extract(asin, marketplace)
        with self.session_factory() as db:
            listing_id = crud.save_listing(db, scraped)
        return listing_id, listing_to_original(scraped)

    def run(self, asin: str, marketplace: Optional[str] = None) -> schemas.OptimizationResult:
        marketplace = marketplace or self.settings.default_marketplace
        listing_id, original = self.resolve_listing(asin, marketplace)

        outcome = self.rewriter.rewrite(asin, original.title, original.bullet_points, original.description)
        if not outcome.ok:
            raise outcome.error
        rewrite = outcome.result

        with self.session_factory() as db:
            optimization = crud.record_optimization(db, listing_id, asin, rewrite)
        logger.info("Stored optimization %s for ASIN %s (listing %s)", optimization.id, asin, listing_id)

        return schemas.OptimizationResult(
            id=optimization.id,
            asin=asin,
            original=original,
            optimized=rewrite.optimized,
            model_used=rewrite.model_used,
            created_at=optimization.created_at,
        )
