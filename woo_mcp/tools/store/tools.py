"""Store provider: the search guide and store-info resources, and prompt templates."""

from typing import Any

from woo_mcp.mcp.registry import CapabilityRegistry

SEARCH_GUIDE_URI = "woocommerce://search-guide"
STORE_INFO_URI = "woocommerce://store-info"

# Fields of the REST index document exposed as store info
STORE_INFO_FIELDS = ("name", "description", "url", "home", "gmt_offset", "timezone_string")

SEARCH_GUIDE: dict[str, Any] = {
    "title": "WooCommerce Intelligent Search Guide",
    "version": "1.0",
    "description": "Step-by-step guide for AI assistants to perform optimal product searches",
    "workflow": {
        "overview": "For a quick answer call wc_intelligent_search; for full control follow these steps",
        "steps": [
            {
                "step": 1,
                "action": "Discover available categories and tags",
                "tools": {
                    "wc_get_categories": "Get all product categories with IDs, names, and counts",
                    "wc_get_tags": "Get all product tags with IDs, names, and counts",
                },
                "parameters": {"per_page": 100, "hide_empty": False},
            },
            {
                "step": 2,
                "action": "Analyze search intent",
                "tool": "wc_analyze_search_intent_helper",
                "required_parameters": {"user_query": "The original user search query"},
                "recommended_parameters": {
                    "available_categories": "Array from wc_get_categories",
                    "available_tags": "Array from wc_get_tags",
                },
            },
            {
                "step": 3,
                "action": "Execute optimized search",
                "tool": "wc_products_search",
                "parameters": "Use the search_params returned by the intent analysis",
            },
        ],
    },
    "intent_patterns": {
        "cheapest": {
            "keywords": ["cheapest", "cheap", "low price", "affordable", "budget", "lowest"],
            "parameters": {"orderby": "price", "order": "asc"},
        },
        "expensive": {
            "keywords": ["expensive", "premium", "luxury", "costly", "highest"],
            "parameters": {"orderby": "price", "order": "desc"},
        },
        "newest": {
            "keywords": ["newest", "latest", "recent", "new", "fresh", "just arrived"],
            "parameters": {"orderby": "date", "order": "desc"},
        },
        "on_sale": {
            "keywords": ["sale", "discount", "promo", "offer", "deal", "reduced", "clearance"],
            "parameters": {"on_sale": True},
        },
    },
    "category_matching": {
        "exact_match": "A query word longer than 2 characters contained in a category name or slug",
        "fuzzy_match": "A query word longer than 3 characters more than 60% similar to a category name",
        "examples": ["perfume -> Perfumes (exact match)", "perfums -> Perfumes (fuzzy match)"],
    },
    "fallback_stages": [
        "Stage 1: full search with all detected filters",
        "Stage 2: drop sale and ordering filters, keep the category",
        "Stage 3: search a broader top-level category",
        "Stage 4: general text search across all products",
        "Stage 5: show available categories and suggestions",
    ],
    "best_practices": {
        "always_get_categories_first": "Categories change dynamically, never assume what categories exist",
        "combine_multiple_intents": "Users often combine price + category + promotional intent in one query",
        "handle_no_results": "If search returns empty, try broader parameters or suggest alternatives",
    },
}


def register_tools(registry: CapabilityRegistry) -> None:
    """Register the store resources and prompts with the registry."""
    backend = registry.backend

    async def read_store_info() -> dict[str, Any]:
        index = await backend.get("/") if backend is not None else {}
        if not isinstance(index, dict):
            return {}
        return {key: index.get(key) for key in STORE_INFO_FIELDS if key in index}

    registry.register_resource(
        name="woocommerce-search-guide",
        uri=SEARCH_GUIDE_URI,
        description=(
            "Guide for AI assistants on how to perform intelligent WooCommerce product "
            "searches using the available tools"
        ),
        reader=lambda: SEARCH_GUIDE,
    )

    registry.register_resource(
        name="store-info",
        uri=STORE_INFO_URI,
        description="Store name, description, URL and timezone",
        reader=read_store_info,
    )

    registry.register_prompt(
        name="search-products",
        description="Find products matching a shopper's request",
        arguments=[
            {"name": "query", "description": "What the shopper is looking for", "required": True},
            {"name": "budget", "description": "Optional maximum price"},
        ],
        messages=[
            {
                "role": "user",
                "text": (
                    "Find products for this request: {{query}}. Budget: {{budget}}.\n"
                    "Read the woocommerce://search-guide resource first, then use "
                    "wc_intelligent_search. Summarize the best matches with name, price "
                    "and link, and suggest alternatives if nothing fits."
                ),
            }
        ],
    )

    registry.register_prompt(
        name="analyze-sales",
        description="Summarize store sales for a period",
        arguments=[
            {"name": "period", "description": "week, month, last_month or year", "required": True},
        ],
        messages=[
            {
                "role": "user",
                "text": (
                    "Analyze the store's sales for the period '{{period}}'. Use wc_reports_sales "
                    "and wc_reports_orders_totals, then report revenue, order counts and notable "
                    "trends."
                ),
            }
        ],
    )
