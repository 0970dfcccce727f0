# app/utils.py
"""Shared utilities: logging and small text helpers."""
import os
import logging
import re
from datetime import datetime, timezone
from dotenv import load_dotenv

load_dotenv()

_WHITESPACE = re.compile(r"\s+")


def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("listing-optimizer")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def squash_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return _WHITESPACE.sub(" ", text or "").strip()
