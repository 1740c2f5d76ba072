"""Tests for workflow body resolution (JSON first, code second)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from webtask_workflows.engine.exceptions import ScriptResolutionError
from webtask_workflows.engine.resolver import resolve_script

FANOUT = {"type": "fanout", "nodes": [{"name": "a"}]}


@pytest.mark.asyncio
@pytest.mark.parametrize("script", [None, "", "   \n", b""])
async def test_empty_body_is_fatal(script):
    compiler = MagicMock()

    with pytest.raises(ScriptResolutionError, match="empty code"):
        await resolve_script(script, compiler)

    compiler.assert_not_called()


@pytest.mark.asyncio
async def test_structured_object_passes_through_unchanged():
    compiler = MagicMock()

    candidate = await resolve_script(FANOUT, compiler)

    assert candidate is FANOUT
    compiler.assert_not_called()


@pytest.mark.asyncio
async def test_json_text_is_parsed_without_compiling():
    compiler = MagicMock()

    candidate = await resolve_script('{"type": "fanout", "nodes": [{"name": "a"}]}', compiler)

    assert candidate == FANOUT
    compiler.assert_not_called()


@pytest.mark.asyncio
async def test_json_bytes_are_decoded():
    candidate = await resolve_script(b'{"type": "sequence", "nodes": []}', MagicMock())
    assert candidate == {"type": "sequence", "nodes": []}


@pytest.mark.asyncio
async def test_non_json_falls_back_to_sync_compiler():
    compiler = MagicMock(return_value=FANOUT)

    candidate = await resolve_script("workflow = {...}", compiler)

    assert candidate == FANOUT
    compiler.assert_called_once_with("workflow = {...}")


@pytest.mark.asyncio
async def test_non_json_falls_back_to_async_compiler():
    compiler = AsyncMock(return_value=FANOUT)

    candidate = await resolve_script("not json", compiler)

    assert candidate == FANOUT
    compiler.assert_awaited_once_with("not json")


@pytest.mark.asyncio
async def test_compiler_failure_is_wrapped():
    compiler = MagicMock(side_effect=SyntaxError("invalid syntax"))

    with pytest.raises(ScriptResolutionError) as exc_info:
        await resolve_script("def broken(:", compiler)

    assert "error compiling workflow code: invalid syntax" in exc_info.value.message
    assert isinstance(exc_info.value.__cause__, SyntaxError)
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_non_utf8_bytes_are_a_resolution_error():
    compiler = MagicMock()

    with pytest.raises(ScriptResolutionError, match="not valid UTF-8") as exc_info:
        await resolve_script(b"\xff\xfe{", compiler)

    assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)
    compiler.assert_not_called()
