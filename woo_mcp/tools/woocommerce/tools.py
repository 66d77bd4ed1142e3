"""WooCommerce provider: read-only tools aliased onto the WooCommerce REST API."""

from woo_mcp.mcp.registry import CapabilityRegistry, RestAlias
from woo_mcp.tools.base import (
    PAGINATION,
    boolean_prop,
    integer_prop,
    object_schema,
    read_only,
    string_prop,
)

WC = "/wc/v3"

ORDER_ARG = string_prop("Sort direction", enum=["asc", "desc"])


def register_tools(registry: CapabilityRegistry) -> None:
    """Register all WooCommerce tools with the registry."""

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    registry.register_tool(
        name="wc_products_search",
        description=(
            "Search and filter WooCommerce products. Supports text search, category and tag "
            "filters, price range, sale status and ordering."
        ),
        rest_alias=RestAlias("GET", f"{WC}/products"),
        input_schema=object_schema(
            {
                "search": string_prop("Text to search for in product names and descriptions"),
                "category": string_prop("Category ID to filter by"),
                "tag": string_prop("Tag ID to filter by"),
                "on_sale": boolean_prop("Only products that are on sale"),
                "min_price": string_prop("Minimum price"),
                "max_price": string_prop("Maximum price"),
                "stock_status": string_prop("Stock status", enum=["instock", "outofstock", "onbackorder"]),
                "orderby": string_prop(
                    "Sort field",
                    enum=["date", "id", "include", "title", "slug", "price", "popularity", "rating"],
                ),
                "order": ORDER_ARG,
                **PAGINATION,
            }
        ),
        annotations=read_only("Search Products"),
    )

    registry.register_tool(
        name="wc_get_product",
        description="Get a WooCommerce product by ID",
        rest_alias=RestAlias("GET", f"{WC}/products/(?P<id>[\\d]+)"),
        input_schema=object_schema({"id": integer_prop("Product ID")}, required=["id"]),
        annotations=read_only("Get Product"),
    )

    registry.register_tool(
        name="wc_get_product_variations",
        description="List the variations of a variable product",
        rest_alias=RestAlias("GET", f"{WC}/products/{{product_id}}/variations"),
        input_schema=object_schema(
            {"product_id": integer_prop("Parent product ID"), **PAGINATION},
            required=["product_id"],
        ),
        annotations=read_only("Get Product Variations"),
    )

    registry.register_tool(
        name="wc_get_product_variation",
        description="Get a single variation of a variable product",
        rest_alias=RestAlias("GET", f"{WC}/products/{{product_id}}/variations/{{id}}"),
        input_schema=object_schema(
            {
                "product_id": integer_prop("Parent product ID"),
                "id": integer_prop("Variation ID"),
            },
            required=["product_id", "id"],
        ),
        annotations=read_only("Get Product Variation"),
    )

    registry.register_tool(
        name="wc_get_categories",
        description="List product categories with their IDs, parents and product counts",
        rest_alias=RestAlias("GET", f"{WC}/products/categories"),
        input_schema=object_schema(
            {
                "search": string_prop("Limit results to categories matching a string"),
                "parent": integer_prop("Only children of this category ID"),
                "hide_empty": boolean_prop("Hide categories without products"),
                **PAGINATION,
            }
        ),
        annotations=read_only("Get Product Categories"),
    )

    registry.register_tool(
        name="wc_get_tags",
        description="List product tags with their IDs and product counts",
        rest_alias=RestAlias("GET", f"{WC}/products/tags"),
        input_schema=object_schema(
            {
                "search": string_prop("Limit results to tags matching a string"),
                "hide_empty": boolean_prop("Hide tags without products"),
                **PAGINATION,
            }
        ),
        annotations=read_only("Get Product Tags"),
    )

    registry.register_tool(
        name="wc_get_product_attributes",
        description="List global product attributes (size, color, ...)",
        rest_alias=RestAlias("GET", f"{WC}/products/attributes"),
        annotations=read_only("Get Product Attributes"),
    )

    registry.register_tool(
        name="wc_get_product_reviews",
        description="List product reviews, optionally for specific products",
        rest_alias=RestAlias("GET", f"{WC}/products/reviews"),
        input_schema=object_schema(
            {
                "product": {
                    "type": "array",
                    "description": "Limit to reviews of these product IDs",
                    "items": {"type": "integer"},
                },
                **PAGINATION,
            }
        ),
        annotations=read_only("Get Product Reviews"),
    )

    # -------------------------------------------------------------------------
    # Orders and reports (private store data)
    # -------------------------------------------------------------------------

    registry.register_tool(
        name="wc_orders_search",
        description="Search WooCommerce orders by status, customer or date",
        rest_alias=RestAlias("GET", f"{WC}/orders"),
        input_schema=object_schema(
            {
                "search": string_prop("Limit results to orders matching a string"),
                "status": string_prop("Order status (pending, processing, completed, ...)"),
                "customer": integer_prop("Customer ID"),
                "after": string_prop("Only orders created after this ISO8601 date"),
                "before": string_prop("Only orders created before this ISO8601 date"),
                "order": ORDER_ARG,
                **PAGINATION,
            }
        ),
        annotations=read_only("Search Orders"),
        requires_auth=True,
    )

    registry.register_tool(
        name="wc_get_order",
        description="Get a WooCommerce order by ID",
        rest_alias=RestAlias("GET", f"{WC}/orders/{{id}}"),
        input_schema=object_schema({"id": integer_prop("Order ID")}, required=["id"]),
        annotations=read_only("Get Order"),
        requires_auth=True,
    )

    registry.register_tool(
        name="wc_reports_sales",
        description="Sales report for a period",
        rest_alias=RestAlias("GET", f"{WC}/reports/sales"),
        input_schema=object_schema(
            {
                "period": string_prop("Report period", enum=["week", "month", "last_month", "year"]),
                "date_min": string_prop("Start date (YYYY-MM-DD)"),
                "date_max": string_prop("End date (YYYY-MM-DD)"),
            }
        ),
        annotations=read_only("Sales Report"),
        requires_auth=True,
    )

    registry.register_tool(
        name="wc_reports_orders_totals",
        description="Order totals by status",
        rest_alias=RestAlias("GET", f"{WC}/reports/orders/totals"),
        annotations=read_only("Orders Totals Report"),
        requires_auth=True,
    )

    # -------------------------------------------------------------------------
    # Store settings
    # -------------------------------------------------------------------------

    registry.register_tool(
        name="wc_get_shipping_zones",
        description="List shipping zones",
        rest_alias=RestAlias("GET", f"{WC}/shipping/zones"),
        annotations=read_only("Get Shipping Zones"),
    )

    registry.register_tool(
        name="wc_get_shipping_zone_methods",
        description="List the shipping methods of a shipping zone",
        rest_alias=RestAlias("GET", f"{WC}/shipping/zones/(?P<zone_id>[0-9]+)/methods"),
        input_schema=object_schema({"zone_id": integer_prop("Shipping zone ID")}, required=["zone_id"]),
        annotations=read_only("Get Shipping Zone Methods"),
    )

    registry.register_tool(
        name="wc_get_tax_classes",
        description="List tax classes",
        rest_alias=RestAlias("GET", f"{WC}/taxes/classes"),
        annotations=read_only("Get Tax Classes"),
    )

    registry.register_tool(
        name="wc_get_tax_rates",
        description="List tax rates, optionally for one tax class",
        rest_alias=RestAlias("GET", f"{WC}/taxes"),
        input_schema=object_schema({"class": string_prop("Tax class slug"), **PAGINATION}),
        annotations=read_only("Get Tax Rates"),
    )

    registry.register_tool(
        name="wc_get_payment_gateways",
        description="List payment gateways and whether they are enabled",
        rest_alias=RestAlias("GET", f"{WC}/payment_gateways"),
        annotations=read_only("Get Payment Gateways"),
    )

    registry.register_tool(
        name="wc_get_system_status",
        description="Get WooCommerce system status (environment, database, active plugins)",
        rest_alias=RestAlias("GET", f"{WC}/system_status"),
        annotations=read_only("Get System Status"),
        requires_auth=True,
    )
