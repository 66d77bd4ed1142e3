"""Keyword intent detection and category/tag matching for product searches."""

from difflib import SequenceMatcher
from typing import Any

PRICE_ASC_KEYWORDS = ("cheapest", "cheap", "low price", "affordable", "budget", "lowest")
PRICE_DESC_KEYWORDS = ("expensive", "premium", "luxury", "costly", "highest", "most expensive")
DATE_DESC_KEYWORDS = ("newest", "latest", "recent", "new", "fresh", "just arrived")
ON_SALE_KEYWORDS = ("sale", "discount", "promo", "offer", "deal", "reduced", "clearance", "special offer")

# Words stripped from the query before it is sent as a text search
FILTER_WORDS = {
    "cheapest", "expensive", "newest", "latest", "on", "sale",
    "discount", "in", "with", "the", "a", "an",
}

FUZZY_THRESHOLD = 60.0
MAX_CATEGORY_MATCHES = 3
MAX_TAG_MATCHES = 2


def contains_keywords(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def similarity(a: str, b: str) -> float:
    """Percentage similarity of two strings (0-100)."""
    return SequenceMatcher(None, a, b).ratio() * 100


def _match(term: dict[str, Any], match_type: str, confidence: float) -> dict[str, Any]:
    return {
        "id": term.get("id"),
        "name": term.get("name"),
        "slug": term.get("slug"),
        "match_type": match_type,
        "confidence": confidence,
    }


def _best_per_id(matches: list[dict[str, Any]], limit: int) -> list[dict[str, Any]]:
    """Keep the most confident match per id, best first."""
    best: dict[Any, dict[str, Any]] = {}
    for match in matches:
        current = best.get(match["id"])
        if current is None or current["confidence"] < match["confidence"]:
            best[match["id"]] = match
    return sorted(best.values(), key=lambda m: m["confidence"], reverse=True)[:limit]


def match_terms(
    query: str,
    terms: list[dict[str, Any]],
    fuzzy: bool = True,
    limit: int = MAX_CATEGORY_MATCHES,
) -> list[dict[str, Any]]:
    """
    Match query words against category or tag names and slugs.

    A word longer than 2 characters contained in a name or slug is an exact
    match (confidence 1.0). With `fuzzy`, words longer than 3 characters
    that are more than 60% similar to a name also match, with the
    similarity as confidence.
    """
    words = query.lower().split()
    matches: list[dict[str, Any]] = []

    for term in terms:
        name = str(term.get("name") or "").lower()
        slug = str(term.get("slug") or "").lower()
        if not name:
            continue

        for word in words:
            if len(word) > 2 and (word in name or word in slug):
                matches.append(_match(term, "exact", 1.0))
                break

        if fuzzy:
            for word in words:
                if len(word) > 3:
                    score = similarity(word, name)
                    if score > FUZZY_THRESHOLD:
                        matches.append(_match(term, "fuzzy", round(score / 100, 4)))

    return _best_per_id(matches, limit)


def analyze_search_intent(
    user_query: str,
    categories: list[dict[str, Any]] | None = None,
    tags: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Detect ordering/sale intents and matching categories and tags in a query."""
    query = user_query.lower()
    analysis: dict[str, Any] = {
        "original_query": user_query,
        "detected_intents": [],
        "matched_categories": [],
        "matched_tags": [],
        "search_params": {},
    }
    intents = analysis["detected_intents"]
    params = analysis["search_params"]

    if contains_keywords(query, PRICE_ASC_KEYWORDS):
        intents.append("price_asc")
        params.update(orderby="price", order="asc")
    elif contains_keywords(query, PRICE_DESC_KEYWORDS):
        intents.append("price_desc")
        params.update(orderby="price", order="desc")

    # Recency wins over price ordering when both are asked for
    if contains_keywords(query, DATE_DESC_KEYWORDS):
        intents.append("date_desc")
        params.update(orderby="date", order="desc")

    if contains_keywords(query, ON_SALE_KEYWORDS):
        intents.append("on_sale")
        params["on_sale"] = True

    analysis["matched_categories"] = match_terms(query, categories or [], fuzzy=True, limit=MAX_CATEGORY_MATCHES)
    analysis["matched_tags"] = match_terms(query, tags or [], fuzzy=False, limit=MAX_TAG_MATCHES)

    if analysis["matched_categories"]:
        params["category"] = analysis["matched_categories"][0]["id"]
    if analysis["matched_tags"]:
        params["tag"] = analysis["matched_tags"][0]["id"]

    return analysis


def extract_search_terms(query: str) -> str:
    """Drop ordering and filler words from a query."""
    return " ".join(word for word in query.lower().split() if word not in FILTER_WORDS).strip()


def find_broader_categories(
    matched: list[dict[str, Any]], categories: list[dict[str, Any]], limit: int = 3
) -> list[dict[str, Any]]:
    """Top-level categories other than the matched ones."""
    if not matched:
        return []
    matched_ids = {m["id"] for m in matched}
    broader = [
        c for c in categories
        if c.get("parent") == 0 and c.get("id") not in matched_ids
    ]
    return broader[:limit]
