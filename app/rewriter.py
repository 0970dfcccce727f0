# app/rewriter.py
"""Gemini listing rewrite.

The model is asked for a single JSON object matching `RESPONSE_SCHEMA`, and the
parsed payload is validated again before it is accepted. Any failure, whether
transport, quota or a malformed payload, comes back as the same retryable
`RewriteUnavailable` inside a `RewriteOutcome`.
"""
import json
from dataclasses import dataclass
from typing import Any, List, Optional

from google import genai
from google.genai import types

from .config import Settings
from .errors import RewriteUnavailable
from .schemas import OptimizedListing, RewriteResult
from .utils import logger

TITLE_MAX_CHARS = 200
BULLET_COUNT = 5
BULLET_MIN_CHARS, BULLET_MAX_CHARS = 150, 250
DESCRIPTION_MIN_CHARS, DESCRIPTION_MAX_CHARS = 800, 1500
KEYWORD_COUNT = 5

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "optimized_title": {"type": "STRING"},
        "optimized_bullets": {"type": "ARRAY", "items": {"type": "STRING"}},
        "optimized_description": {"type": "STRING"},
        "keywords": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["optimized_title", "optimized_bullets", "optimized_description", "keywords"],
}

UNAVAILABLE_MESSAGE = "AI optimization service is temporarily unavailable. Please try again."


def build_prompt(asin: str, title: str, bullet_points: List[str], description: str) -> str:
    if bullet_points:
        bullets = "\n".join(f"  {i}. {bp}" for i, bp in enumerate(bullet_points, start=1))
    else:
        bullets = "  (none provided - infer likely benefits from the title and description)"
    description = description or "(none provided - infer product details from the title and bullets)"

    return f"""You are a senior Amazon Marketplace listing strategist. You combine deep expertise in:
- Amazon A9/A10 search ranking and indexing behavior
- Consumer psychology and high-converting copywriting
- Amazon listing policy compliance (Seller Central style guide)

TASK: Rewrite and optimize the following Amazon product listing to maximize organic search ranking, click-through rate and conversion rate while staying fully compliant with Amazon's content policies.

=== CURRENT LISTING ===
ASIN: {asin}
Title: {title}
Bullet Points:
{bullets}
Description: {description}

=== OUTPUT RULES (all are binding) ===

1. optimized_title
   - At most {TITLE_MAX_CHARS} characters. Front-load the primary keyword within the first 80 characters.
   - Formula: [Brand] + [Product Type] + [Key Feature] + [Secondary Feature] + [Size / Quantity / Variant]; omit what you cannot infer.
   - Title Case. No ALL CAPS, special symbols or promotional phrases ("Sale", "Free Shipping").
   - Keep a recognizable brand name from the original title at the start.

2. optimized_bullets
   - Exactly {BULLET_COUNT} bullets, each between {BULLET_MIN_CHARS} and {BULLET_MAX_CHARS} characters.
   - Each bullet starts with a CAPITALIZED BENEFIT PHRASE (2-5 words) and a colon, followed by a feature tied to its benefit.
   - Order: primary benefit, key differentiator, quality or materials, ideal use case, what's included or warranty.
   - No HTML, emojis or special symbols.

3. optimized_description
   - Between {DESCRIPTION_MIN_CHARS} and {DESCRIPTION_MAX_CHARS} characters of plain text.
   - Hook sentence, 2-3 short paragraphs with specific details, then a closing call to action.
   - No HTML, markdown or emojis.

4. keywords
   - Exactly {KEYWORD_COUNT} search phrases, each 2-4 words long.
   - None of them may already appear in the optimized title, bullets or description.
   - No brand names, ASINs or single generic words.

POLICY: never use superlatives ("best", "#1", "top rated"), time-limited claims ("today only", "limited time"), competitor references, or medical and health guarantees.

Respond with a single valid JSON object only. No commentary outside the JSON object."""


def _string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list) or not value:
        return None
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    if len(items) != len(value):
        return None
    return items


def parse_rewrite_response(text: Optional[str]) -> OptimizedListing:
    """Parse and validate the model payload; raises ValueError when it breaks the contract."""
    if not text or not text.strip():
        raise ValueError("Empty response from Gemini")
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("Gemini response is not a JSON object")

    title = payload.get("optimized_title")
    description = payload.get("optimized_description")
    bullets = _string_list(payload.get("optimized_bullets"))
    keywords = _string_list(payload.get("keywords"))

    if not isinstance(title, str) or not title.strip():
        raise ValueError("Gemini response is missing optimized_title")
    if not isinstance(description, str) or not description.strip():
        raise ValueError("Gemini response is missing optimized_description")
    if bullets is None:
        raise ValueError("Gemini response has no usable optimized_bullets")
    if keywords is None:
        raise ValueError("Gemini response has no usable keywords")

    return OptimizedListing(
        title=title.strip(),
        bullet_points=bullets,
        description=description.strip(),
        keywords=keywords,
    )


@dataclass
class RewriteOutcome:
    result: Optional[RewriteResult] = None
    error: Optional[RewriteUnavailable] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class GeminiRewriter:
    def __init__(self, settings: Settings, client: Optional[genai.Client] = None):
        self.settings = settings
        self.model = settings.gemini_model
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(
                api_key=self.settings.gemini_api_key,
                http_options=types.HttpOptions(timeout=self.settings.gemini_timeout_ms),
            )
        return self._client

    def generate(self, prompt: str):
        return self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=RESPONSE_SCHEMA,
            ),
        )

    def rewrite(self, asin: str, title: str, bullet_points: List[str], description: str) -> RewriteOutcome:
        prompt = build_prompt(asin, title, bullet_points, description)
        try:
            response = self.generate(prompt)
            optimized = parse_rewrite_response(response.text)
        except Exception as e:
            logger.error("Gemini rewrite failed for ASIN %s: %s", asin, e)
            return RewriteOutcome(error=RewriteUnavailable(UNAVAILABLE_MESSAGE))

        usage = getattr(response, "usage_metadata", None)
        return RewriteOutcome(result=RewriteResult(
            optimized=optimized,
            model_used=self.model,
            prompt_tokens=getattr(usage, "prompt_token_count", None),
            completion_tokens=getattr(usage, "candidates_token_count", None),
        ))
