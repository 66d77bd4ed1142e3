"""WordPress provider: posts and pages through the core REST API."""

from woo_mcp.mcp.registry import CapabilityRegistry, RestAlias
from woo_mcp.tools.base import PAGINATION, integer_prop, object_schema, read_only, string_prop

WP = "/wp/v2"

POST_FIELDS = {
    "title": string_prop("Post title"),
    "content": string_prop("Post content (HTML)"),
    "excerpt": string_prop("Post excerpt"),
    "status": string_prop("Post status", enum=["publish", "future", "draft", "pending", "private"]),
}


def register_tools(registry: CapabilityRegistry) -> None:
    """Register WordPress post and page tools with the registry."""

    registry.register_tool(
        name="wp_posts_search",
        description="Search and filter WordPress posts with pagination",
        rest_alias=RestAlias("GET", f"{WP}/posts"),
        input_schema=object_schema(
            {
                "search": string_prop("Limit results to posts matching a string"),
                "categories": {
                    "type": "array",
                    "description": "Limit to posts in these category IDs",
                    "items": {"type": "integer"},
                },
                **PAGINATION,
            }
        ),
        annotations=read_only("Search Posts"),
    )

    registry.register_tool(
        name="wp_get_post",
        description="Get a WordPress post by ID",
        rest_alias=RestAlias("GET", f"{WP}/posts/(?P<id>[\\d]+)"),
        input_schema=object_schema({"id": integer_prop("Post ID")}, required=["id"]),
        annotations=read_only("Get Post"),
    )

    registry.register_tool(
        name="wp_list_categories",
        description="List post categories",
        rest_alias=RestAlias("GET", f"{WP}/categories"),
        input_schema=object_schema({**PAGINATION}),
        annotations=read_only("List Categories"),
    )

    registry.register_tool(
        name="wp_list_tags",
        description="List post tags",
        rest_alias=RestAlias("GET", f"{WP}/tags"),
        input_schema=object_schema({**PAGINATION}),
        annotations=read_only("List Tags"),
    )

    registry.register_tool(
        name="wp_pages_search",
        description="Search and filter WordPress pages with pagination",
        rest_alias=RestAlias("GET", f"{WP}/pages"),
        input_schema=object_schema(
            {"search": string_prop("Limit results to pages matching a string"), **PAGINATION}
        ),
        annotations=read_only("Search Pages"),
    )

    registry.register_tool(
        name="wp_get_page",
        description="Get a WordPress page by ID",
        rest_alias=RestAlias("GET", f"{WP}/pages/(?P<id>[\\d]+)"),
        input_schema=object_schema({"id": integer_prop("Page ID")}, required=["id"]),
        annotations=read_only("Get Page"),
    )

    # Write tools: only callable by admins
    registry.register_tool(
        name="wp_add_post",
        description="Create a new WordPress post",
        rest_alias=RestAlias("POST", f"{WP}/posts"),
        input_schema=object_schema({**POST_FIELDS}, required=["title", "content"]),
        annotations={"title": "Add Post", "readOnlyHint": False, "destructiveHint": False},
    )

    registry.register_tool(
        name="wp_update_post",
        description="Update an existing WordPress post",
        rest_alias=RestAlias("POST", f"{WP}/posts/(?P<id>[\\d]+)"),
        input_schema=object_schema({"id": integer_prop("Post ID"), **POST_FIELDS}, required=["id"]),
        annotations={"title": "Update Post", "readOnlyHint": False, "destructiveHint": False, "idempotentHint": True},
    )

    registry.register_tool(
        name="wp_delete_post",
        description="Move a WordPress post to the trash",
        rest_alias=RestAlias("DELETE", f"{WP}/posts/(?P<id>[\\d]+)"),
        input_schema=object_schema({"id": integer_prop("Post ID")}, required=["id"]),
        annotations={"title": "Delete Post", "readOnlyHint": False, "destructiveHint": True},
    )
