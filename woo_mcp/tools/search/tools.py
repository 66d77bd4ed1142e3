"""Intelligent product search provider: intent analysis plus staged fallbacks."""

import logging
from typing import Any

from woo_mcp.backend.client import RestBackend
from woo_mcp.mcp.errors import BackendUnavailableError, InvalidParamsError, McpError
from woo_mcp.mcp.registry import CapabilityRegistry
from woo_mcp.tools.base import (
    boolean_prop,
    integer_prop,
    object_schema,
    read_only,
    register_decorated,
    string_prop,
    tool,
)
from woo_mcp.tools.search.intent import (
    analyze_search_intent,
    extract_search_terms,
    find_broader_categories,
)

logger = logging.getLogger(__name__)

PRODUCTS_ROUTE = "/wc/v3/products"
CATEGORIES_ROUTE = "/wc/v3/products/categories"
TAGS_ROUTE = "/wc/v3/products/tags"

# Product fields kept in search results
PRODUCT_FIELDS = (
    "id", "name", "slug", "permalink", "type", "status", "featured",
    "short_description", "sku", "price", "regular_price", "sale_price",
    "on_sale", "stock_status", "stock_quantity", "categories", "tags",
    "date_created", "date_modified",
)

SUGGESTIONS = [
    "Try broader search terms",
    "Browse available categories",
    "Check for spelling mistakes",
    "Try searching without specific filters like 'on sale' or 'cheapest'",
    "Consider using general terms instead of specific product names",
]

SEARCH_TIPS = [
    "Use simple product names like 'laptop', 'phone', 'book'",
    "Try category names directly",
    "Remove price and sale filters to see all products",
]


def summarize_product(product: dict[str, Any]) -> dict[str, Any]:
    summary = {key: product[key] for key in PRODUCT_FIELDS if key in product}
    images = product.get("images") or []
    summary["images"] = [
        {key: image.get(key) for key in ("id", "src", "name", "alt")} for image in images[:1]
    ]
    return summary


class ProductSearch:
    """Searches products through the REST backend, widening the query until something matches."""

    def __init__(self, backend: RestBackend):
        self.backend = backend

    async def _terms(self, route: str) -> list[dict[str, Any]]:
        """Categories or tags; an error response counts as none."""
        try:
            terms = await self.backend.get(route, {"per_page": 100, "hide_empty": False})
        except BackendUnavailableError:
            raise
        except McpError as e:
            logger.warning(f"Could not load {route}: {e.message}")
            return []
        return terms if isinstance(terms, list) else []

    async def search_products(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            products = await self.backend.get(PRODUCTS_ROUTE, params)
        except BackendUnavailableError:
            raise
        except McpError as e:
            logger.warning(f"Product search failed for {params}: {e.message}")
            return []
        if not isinstance(products, list):
            return []
        return [summarize_product(p) for p in products if isinstance(p, dict)]

    @staticmethod
    def base_params(per_page: int, page: int) -> dict[str, Any]:
        return {"per_page": per_page, "page": page, "status": "publish"}

    def stage_params(self, analysis: dict[str, Any], categories: list[dict[str, Any]], per_page: int, page: int):
        """The parameter sets for stages 1-4, in order, with their descriptions."""
        query = analysis["original_query"]

        full = self.base_params(per_page, page)
        terms = extract_search_terms(query)
        if terms:
            full["search"] = terms
        full.update(analysis["search_params"])

        relaxed = {k: v for k, v in full.items() if k not in ("on_sale", "orderby", "order")}

        stages = [
            ("Stage 1: Found products with full search", full),
            ("Stage 2: Found products in category (removed sale/price filters)", relaxed),
        ]

        # Without a broader category this stage would list the whole catalogue
        broader_categories = find_broader_categories(analysis["matched_categories"], categories)
        if broader_categories:
            broader = self.base_params(per_page, page)
            broader["category"] = broader_categories[0]["id"]
            stages.append(("Stage 3: Found products in broader categories", broader))

        general = self.base_params(per_page, page)
        if terms:
            general["search"] = terms
        stages.append(("Stage 4: Found products with general search", general))
        return stages

    @tool(
        name="wc_intelligent_search",
        description=(
            "Intelligent product search with automatic fallback to categories, broader terms, "
            "and alternatives when no products found. Never returns empty results."
        ),
        input_schema=object_schema(
            {
                "query": string_prop('Search query (e.g., "cheapest perfumes on sale", "latest electronics")'),
                "per_page": integer_prop("Number of results per page (default: 20)", minimum=1, maximum=100),
                "page": integer_prop("Page number (default: 1)", minimum=1),
                "debug": boolean_prop("Show debug information about search strategy used"),
            },
            required=["query"],
        ),
        annotations=read_only("Intelligent Product Search"),
    )
    async def intelligent_search(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = str(arguments.get("query") or "").strip()
        if not query:
            raise InvalidParamsError("Search query is required")
        per_page = int(arguments.get("per_page", 20))
        page = int(arguments.get("page", 1))
        debug = bool(arguments.get("debug", False))

        categories = await self._terms(CATEGORIES_ROUTE)
        tags = await self._terms(TAGS_ROUTE)
        analysis = analyze_search_intent(query, categories, tags)

        debug_info = {
            "intent_analysis": analysis,
            "available_categories_count": len(categories),
            "available_tags_count": len(tags),
        }
        stages_attempted = []

        for strategy, params in self.stage_params(analysis, categories, per_page, page):
            stages_attempted.append(params)
            products = await self.search_products(params)
            if products:
                response = {
                    "success": True,
                    "search_strategy_used": strategy,
                    "products": products,
                    "total_products": len(products),
                    "message": f"Found {len(products)} products",
                }
                if debug:
                    response["debug"] = debug_info
                return response

        with_products = [c for c in categories if (c.get("count") or 0) > 0]
        response = {
            "success": False,
            "message": f"No products found for '{query}'",
            "search_strategy_used": "Stage 5: Showing alternatives",
            "alternatives": {
                "available_categories": with_products[:10],
                "suggestions": SUGGESTIONS,
                "search_tips": SEARCH_TIPS,
            },
        }
        if debug:
            response["debug"] = {
                "search_stages_attempted": stages_attempted,
                "debug_info": debug_info,
                "total_categories_available": len(categories),
                "categories_with_products": len(with_products),
            }
        return response

    @tool(
        name="wc_analyze_search_intent_helper",
        description="Analyze user search query and return optimized search parameters with category matching",
        input_schema=object_schema(
            {
                "user_query": string_prop("The original user search query"),
                "available_categories": {
                    "type": "array",
                    "description": "Array of available categories from wc_get_categories",
                    "items": {"type": "object"},
                },
                "available_tags": {
                    "type": "array",
                    "description": "Array of available tags from wc_get_tags",
                    "items": {"type": "object"},
                },
            },
            required=["user_query"],
        ),
        annotations=read_only("Analyze Search Intent"),
    )
    async def analyze_intent(self, arguments: dict[str, Any]) -> dict[str, Any]:
        user_query = arguments.get("user_query")
        if not isinstance(user_query, str) or not user_query:
            raise InvalidParamsError("user_query is required")
        return analyze_search_intent(
            user_query,
            arguments.get("available_categories") or [],
            arguments.get("available_tags") or [],
        )


def register_tools(registry: CapabilityRegistry) -> None:
    """Register the intelligent search tools with the registry."""
    search = ProductSearch(registry.backend)
    register_decorated(registry, search.intelligent_search, search.analyze_intent)
