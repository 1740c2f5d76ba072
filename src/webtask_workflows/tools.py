"""MCP tool implementations for compound webtask workflows.

Tools:
- validate_workflow: resolve + validate a workflow body without running it
- run_workflow: compile (cached) and execute a workflow against sibling
  webtasks, returning the response the caller would have received

Following official MCP Python SDK patterns:
- Tool functions decorated with @mcp.tool()
- Flat parameter signatures with Annotated types for validation
- Async functions for all tools
- Clear docstrings (become tool descriptions)
"""

from typing import Annotated, Any

from mcp.types import ToolAnnotations
from pydantic import Field

from .context import AppContextType
from .engine import (
    BufferedResponse,
    InboundRequest,
    UrlFormat,
    WorkflowError,
    create_debuglog,
    resolve_script,
    validate_workflow,
)
from .engine.responses import error_payload
from .server import mcp


def _decode_body(response: BufferedResponse) -> Any:
    """Decode a captured body: JSON when declared as JSON, else text."""
    content_type = next(
        (value for key, value in response.header_items if key.lower() == "content-type"), ""
    )
    if "application/json" in content_type.lower():
        try:
            return response.json()
        except ValueError:
            pass
    return response.text()


@mcp.tool(
    name="validate_workflow",
    annotations=ToolAnnotations(
        title="Validate Workflow",
        readOnlyHint=False,  # Code bodies are executed by the compile capability
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=False,
    )
)
async def validate_workflow_script(
    script: Annotated[
        str,
        Field(
            description="Workflow body: JSON document or code defining `workflow`",
            max_length=100000,
        ),
    ],
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Validate a compound webtask workflow without calling any webtask. Required: script.

    A body that is not JSON is handed to the configured compile capability,
    which executes it as code to obtain the definition.
    """
    app_ctx = ctx.request_context.lifespan_context
    log = create_debuglog("workflow", verbosity=app_ctx.config.debug_level)

    try:
        candidate = await resolve_script(script, app_ctx.compiler, log)
        definition = validate_workflow(candidate)
    except WorkflowError as e:
        return {"valid": False, "errors": [e.message], "type": None, "nodes": []}

    return {
        "valid": True,
        "errors": [],
        "type": definition.type.value,
        "nodes": [node.name for node in definition.nodes],
    }


@mcp.tool(
    annotations=ToolAnnotations(
        title="Run Workflow",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,  # Downstream webtasks may have side effects
        openWorldHint=True,
    )
)
async def run_workflow(
    script: Annotated[
        str,
        Field(description="Workflow body: JSON document or code defining `workflow`"),
    ],
    host: Annotated[
        str,
        Field(description="Host serving the sibling webtasks (e.g. wt.example.com)", min_length=1),
    ],
    container: Annotated[
        str,
        Field(description="Webtask container (ignored for wildcard domains)"),
    ] = "",
    url_format: Annotated[
        int,
        Field(description="Addressing mode: 1=shared domain, 2=custom domain, 3=wildcard"),
    ] = UrlFormat.SHARED_DOMAIN,
    method: Annotated[str, Field(description="Inbound HTTP method")] = "GET",
    query: Annotated[
        dict[str, str] | None, Field(description="Inbound query parameters")
    ] = None,
    headers: Annotated[
        dict[str, str] | None, Field(description="Inbound request headers")
    ] = None,
    body: Annotated[str, Field(description="Inbound request body")] = "",
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Run a compound webtask workflow. Required: script, host. Returns status, headers, body."""
    app_ctx = ctx.request_context.lifespan_context

    try:
        workflow = await app_ctx.get_or_compile(script)
    except WorkflowError as e:
        return {"statusCode": e.status_code, "headers": {}, "body": error_payload(e)}

    request = InboundRequest(
        method=method,
        headers={**(headers or {}), "host": host},
        query=dict(query or {}),
        body=body.encode("utf-8"),
        url_format=url_format,
        container=container,
    )
    response = BufferedResponse()
    await workflow(request, response)

    return {
        "statusCode": response.status_code,
        "headers": response.headers,
        "body": _decode_body(response),
    }


__all__ = ["validate_workflow_script", "run_workflow"]
