"""Entry point for the webtask-workflows MCP server.

Imports the tools module first so its @mcp.tool() decorators are registered
before the server starts.
"""


def main() -> None:
    """Entry point for direct execution (`python -m webtask_workflows`)."""
    # Import tools first to register @mcp.tool() decorators
    from . import tools  # noqa: F401 - imported for side effects (decorator registration)
    from .server import main as server_main

    server_main()


if __name__ == "__main__":
    main()
