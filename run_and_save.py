import argparse
import sys
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

from app.config import load_settings
from app.db import Base, create_db_engine, create_session_factory
from app.errors import ListingOptimizerError
from app.schemas import normalize_asin
from app.services import ListingOptimizer
import app.models  # noqa: F401


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Scrape, optimize and store Amazon listings by ASIN.")
    parser.add_argument("asins", nargs="+", help="one or more 10-character ASINs")
    parser.add_argument("--marketplace", default=None, help="marketplace domain, e.g. amazon.com")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    marketplace = args.marketplace or settings.default_marketplace
    if marketplace not in settings.marketplaces:
        print(f"Unsupported marketplace {marketplace!r}; choose from {', '.join(settings.supported_marketplaces)}")
        return 2

    engine = create_db_engine(settings)
    Base.metadata.create_all(bind=engine)
    optimizer = ListingOptimizer(settings, create_session_factory(engine))

    failures = 0
    for raw in args.asins:
        try:
            asin = normalize_asin(raw)
            result = optimizer.run(asin, marketplace)
        except ValueError as e:
            print(f"{raw}: {e}")
            failures += 1
            continue
        except ListingOptimizerError as e:
            print(f"{raw}: {e.code}: {e.message}")
            failures += 1
            continue
        print(f"{asin}: saved optimization #{result.id} ({result.model_used})")
        print(f"  title:    {result.optimized.title}")
        print(f"  keywords: {', '.join(result.optimized.keywords)}")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
