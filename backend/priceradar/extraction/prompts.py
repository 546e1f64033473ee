"""Prompt templates for query parsing and offer extraction."""

from typing import Optional, Sequence

from priceradar.schemas.query import StructuredQuery

MAX_IMAGE_HINTS = 20
TRUNCATION_MARKER = "\n... [truncated]"

QUERY_SYSTEM_PROMPT = (
    "You are a precise query parsing assistant. Extract structured data from user "
    "queries and return ONLY valid JSON. No explanations, no markdown, just the JSON object."
)

EXTRACTION_SYSTEM_PROMPT = (
    "You are a precise data extraction assistant. Extract product listings from "
    "marketplace content and return ONLY valid JSON. No explanations, no markdown, "
    "just the JSON array."
)

_QUERY_TEMPLATE = """Parse the following product search query into structured JSON.

**Query:** {query_text}

**Instructions:**
1. Extract the main product/item being searched
2. Identify brand, model, or specific product details
3. Extract condition: "new", "used", or "refurbished"
4. Extract price constraints (min/max) as bare numbers
5. Extract location preferences
6. Extract shipping preferences: "local", "national" or "international"
7. Extract any other relevant keywords

**Output format (JSON only, no markdown):**
{{
  "item": "Main product description",
  "brand": "Brand name (if mentioned)",
  "model": "Model name (if mentioned)",
  "condition": "new|used|refurbished (if mentioned)",
  "price_min": numeric_value,
  "price_max": numeric_value,
  "location": "Location constraint (if mentioned)",
  "shipping": "local|national|international (if mentioned)",
  "keywords": ["additional", "search", "terms"]
}}

**Examples:**

Query: "MacBook Pro M2, nuovo, max 2000€"
{{"item": "MacBook Pro M2", "brand": "Apple", "model": "M2", "condition": "new", "price_max": 2000, "keywords": ["MacBook", "Pro", "M2"]}}

Query: "RTX 4080 usata sotto 800 euro"
{{"item": "RTX 4080", "brand": "NVIDIA", "model": "4080", "condition": "used", "price_max": 800, "keywords": ["RTX", "4080", "graphics card"]}}

Now parse the query above and return ONLY the JSON object."""

_EXTRACTION_TEMPLATE = """Extract product listings from the following marketplace content.

**Search Query:** {search}
{filters}**Source:** {source_url}
{images}
**Instructions:**
1. Find ALL relevant product listings that match "{search}"
2. For each listing, extract:
   - title: Product name/description
   - price: Numeric price value (bare number, no currency symbol)
   - currency: Currency code (e.g., "EUR", "USD")
   - url: Direct listing URL (if found, otherwise use the source URL)
   - snippet: Brief description (max 150 chars)
   - condition: Condition in English if mentioned ("New", "Used", "Refurbished")
   - location: Seller location if mentioned
   - imageUrl: The most relevant image from the available images list above (full URL)
3. Treat the filters above as hints: prefer listings that respect them
4. Return ONLY a JSON array of objects
5. If no listings are found, return an empty array []
6. Skip sponsored/ads listings

**Content to analyze:**

{content}

**Output format (JSON array only, no markdown):**
[
  {{
    "title": "Product Name",
    "price": 799.99,
    "currency": "EUR",
    "url": "https://...",
    "snippet": "Brief description...",
    "condition": "Used",
    "location": "Milan, Italy",
    "imageUrl": "https://..."
  }}
]"""


def truncate_content(content: str, max_chars: int) -> str:
    """Cap content at max_chars, appending a truncation marker when cut."""
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + TRUNCATION_MARKER


def build_query_prompt(query_text: str) -> str:
    return _QUERY_TEMPLATE.format(query_text=query_text)


def build_extraction_prompt(
    content: str,
    query: StructuredQuery,
    source_url: str,
    image_hints: Optional[Sequence[str]] = None,
) -> str:
    """Build the user message for offer extraction.

    Args:
        content: Page content, already truncated
        query: Monitor's structured query
        source_url: Page the content came from
        image_hints: Image URLs discovered on the page
    """
    filters = []
    if query.price_min:
        filters.append(f"- Minimum price: {query.price_min:g}")
    if query.price_max:
        filters.append(f"- Maximum price: {query.price_max:g}")
    if query.condition:
        filters.append(f"- Condition: {query.condition}")
    filters_section = "\n**Filters:**\n" + "\n".join(filters) + "\n" if filters else ""

    images_section = ""
    hints = list(image_hints or [])[:MAX_IMAGE_HINTS]
    if hints:
        listed = "\n".join(f"{idx}. {url}" for idx, url in enumerate(hints, start=1))
        images_section = f"\n**Available Images ({len(hints)} found):**\n{listed}\n"

    return _EXTRACTION_TEMPLATE.format(
        search=query.item,
        filters=filters_section,
        source_url=source_url,
        images=images_section,
        content=content,
    )
