# app/scrape.py
"""Amazon product page extraction.

`ListingExtractor.extract` fetches a `/dp/<ASIN>` page and hands the HTML to
`parse_listing_html`, which is pure: every field is resolved by its own chain
of selector strategies where the first non-empty candidate wins, so a miss on
one field never affects another. Only the title is mandatory.
"""
import json, re
from typing import Callable, Iterable, List, Optional
import requests
from bs4 import BeautifulSoup

from .config import Settings
from .errors import ExtractionFailed, ListingBlocked, ListingNotFound, TransportError
from .schemas import ListingData
from .utils import logger, squash_whitespace, utcnow

FETCH_TIMEOUT_SECONDS = 10
MAX_DESCRIPTION_LENGTH = 5000
MIN_DESCRIPTION_LENGTH = 20
MIN_BULLET_LENGTH = 15
MAX_BULLET_LENGTH = 1000

SCRAPER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
}

BULLET_SELECTORS = [
    "#feature-bullets ul li span.a-list-item",
    "#feature-bullets li",
    "div[data-feature-name='featurebullets'] li",
    "#productFactsDesktopExpander ul li span.a-list-item",
]

# lowercase substrings of widget text that shows up inside bullet lists
BULLET_DENYLIST = (
    "enhance your purchase",
    "see more product details",
    "make sure this fits",
    "report an issue",
    "click here to",
    "see all",
)

PRIMARY_DESCRIPTION_SELECTORS = ["#productDescription"]
RICH_DESCRIPTION_SELECTORS = ["#aplus", "#aplus_feature_div", ".aplus-v2"]

PRICE_SELECTORS = [
    ".a-price .a-offscreen",
    "#corePrice_feature_div .a-offscreen",
    "#priceblock_ourprice",
    "#priceblock_dealprice",
    ".a-color-price",
]

IMAGE_SELECTOR = "#landingImage, #imgBlkFront"

BLOCKED_MARKERS = (
    "enter the characters you see below",
    "sorry, we just need to make sure you're not a robot",
)
NOT_FOUND_MARKERS = (
    "we couldn't find that page",
    "looking for something?",
    "the web address you entered is not a functioning page",
)

NOISE_TAGS = ["style", "script", "noscript", "template"]

# a {...} block plus any selector token glued to it, e.g. ".aplus-module{color:red}"
_BRACE_FRAGMENT = re.compile(r"(?:[.#@\w-][^\s{}]*)?\{[^{}]*\}")
# tags are gone after get_text, so only braces and JS tokens count
_CODE_MARKERS = re.compile(
    r"[{}]|function\s*\(|=>|\bvar\s+\w+\s*=|\bwindow\.|\bdocument\.|\bP\.when\("
)


# Page classification

def is_blocked_page(soup: BeautifulSoup) -> bool:
    title = soup.title.get_text(" ", strip=True) if soup.title else ""
    if "robot check" in title.lower():
        return True
    if soup.select_one("form[action*='validateCaptcha']"):
        return True
    text = soup.get_text(" ", strip=True).lower()
    return any(marker in text for marker in BLOCKED_MARKERS)

def is_not_found_page(soup: BeautifulSoup) -> bool:
    title = soup.title.get_text(" ", strip=True) if soup.title else ""
    if "page not found" in title.lower():
        return True
    text = soup.get_text(" ", strip=True).lower()
    return any(marker in text for marker in NOT_FOUND_MARKERS)


# Field strategies

def first_non_empty(strategies: Iterable[Callable[[], Optional[str]]]) -> Optional[str]:
    for strategy in strategies:
        value = strategy()
        if value:
            return value
    return None

def extract_title(soup: BeautifulSoup) -> Optional[str]:
    node = soup.select_one("#productTitle")
    return squash_whitespace(node.get_text(" ")) if node else None

def is_content_bullet(text: str) -> bool:
    if len(text) < MIN_BULLET_LENGTH or len(text) > MAX_BULLET_LENGTH:
        return False
    lowered = text.lower()
    return not any(phrase in lowered for phrase in BULLET_DENYLIST)

def bullets_from_selector(soup: BeautifulSoup, selector: str) -> List[str]:
    bullets = []
    for el in soup.select(selector):
        text = squash_whitespace(el.get_text(" "))
        if is_content_bullet(text) and text not in bullets:
            bullets.append(text)
    return bullets

def extract_bullets(soup: BeautifulSoup) -> List[str]:
    for selector in BULLET_SELECTORS:
        bullets = bullets_from_selector(soup, selector)
        if bullets:
            return bullets
    return []

def strip_noise(node) -> None:
    for tag in node.find_all(NOISE_TAGS):
        tag.decompose()

def strip_code_fragments(text: str) -> str:
    """Remove brace-delimited CSS/JS fragments, innermost blocks first."""
    previous = None
    while previous != text:
        previous = text
        text = _BRACE_FRAGMENT.sub(" ", text)
    return squash_whitespace(text)

def looks_like_code(text: str) -> bool:
    return bool(_CODE_MARKERS.search(text))

def primary_description(soup: BeautifulSoup, min_length: int = MIN_DESCRIPTION_LENGTH) -> Optional[str]:
    for selector in PRIMARY_DESCRIPTION_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        strip_noise(node)
        text = squash_whitespace(node.get_text(" "))
        if text and len(text) >= min_length:
            return text
    return None

def rich_content_description(soup: BeautifulSoup) -> Optional[str]:
    for selector in RICH_DESCRIPTION_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        strip_noise(node)
        text = strip_code_fragments(node.get_text(" "))
        if looks_like_code(text) or len(text) < MIN_DESCRIPTION_LENGTH:
            continue
        return text
    return None

def extract_description(soup: BeautifulSoup) -> str:
    text = first_non_empty([
        lambda: primary_description(soup),
        lambda: rich_content_description(soup),
        # a short primary block still beats nothing
        lambda: primary_description(soup, min_length=1),
    ])
    return (text or "")[:MAX_DESCRIPTION_LENGTH]

def extract_price(soup: BeautifulSoup) -> Optional[str]:
    for selector in PRICE_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        price = squash_whitespace(node.get_text(" "))
        if price:
            return price
    return None

def image_from_dynamic_attribute(raw: Optional[str]) -> Optional[str]:
    """First URL of a `data-a-dynamic-image` map (largest rendition first)."""
    if not raw:
        return None
    try:
        images = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(images, dict):
        return None
    return next(iter(images), None)

def extract_image(soup: BeautifulSoup) -> Optional[str]:
    node = soup.select_one(IMAGE_SELECTOR)
    if node is None:
        return None
    return first_non_empty([
        lambda: image_from_dynamic_attribute(node.get("data-a-dynamic-image")),
        lambda: node.get("data-old-hires"),
        lambda: node.get("src"),
    ])


def parse_listing_html(asin: str, html: str) -> ListingData:
    soup = BeautifulSoup(html, "lxml")

    if is_blocked_page(soup):
        logger.warning("CAPTCHA detected for ASIN %s", asin)
        raise ListingBlocked("Amazon scraping blocked by CAPTCHA. Please try again later.")

    if is_not_found_page(soup):
        raise ListingNotFound(f"Product with ASIN {asin} not found on Amazon.")

    title = extract_title(soup)
    if not title:
        raise ExtractionFailed("Failed to extract product title. Page structure might have changed.")

    return ListingData(
        asin=asin,
        title=title,
        bullet_points=extract_bullets(soup),
        description=extract_description(soup),
        price=extract_price(soup),
        image_url=extract_image(soup),
        fetched_at=utcnow(),
    )


class ListingExtractor:
    """Fetches and parses Amazon product pages."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def product_url(self, asin: str, marketplace: Optional[str] = None) -> str:
        base = self.settings.base_url_for(marketplace or self.settings.default_marketplace)
        return f"{base}/dp/{asin}"

    def fetch(self, url: str) -> requests.Response:
        try:
            return self.session.get(url, headers=SCRAPER_HEADERS, timeout=FETCH_TIMEOUT_SECONDS)
        except requests.Timeout as e:
            raise TransportError(f"Timed out fetching {url}") from e
        except requests.RequestException as e:
            raise TransportError(f"Failed to fetch Amazon product page: {e}") from e

    def extract(self, asin: str, marketplace: Optional[str] = None) -> ListingData:
        url = self.product_url(asin, marketplace)
        logger.info("Starting scrape for ASIN %s (%s)", asin, url)

        response = self.fetch(url)
        if response.status_code == 404:
            raise ListingNotFound(f"Product with ASIN {asin} not found on Amazon.")
        if response.status_code >= 500:
            raise TransportError(f"Amazon responded with HTTP {response.status_code} for ASIN {asin}")

        listing = parse_listing_html(asin, response.text)
        logger.info("Successfully scraped ASIN %s (%d bullets)", asin, len(listing.bullet_points))
        return listing
