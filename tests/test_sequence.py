"""Tests for the sequence executor."""

import json

import httpx
import pytest

from webtask_workflows.engine import BufferedResponse, compile_workflow


def sequence(*names, **extra):
    return {"type": "sequence", "nodes": [{"name": name} for name in names], **extra}


class RecordingResponse(BufferedResponse):
    """BufferedResponse that keeps every written chunk separately."""

    def __init__(self):
        super().__init__()
        self.writes = []

    async def write(self, chunk):
        self.writes.append(chunk)
        await super().write(chunk)


@pytest.mark.asyncio
async def test_each_response_feeds_the_next_call(tasks, config, make_request, response):
    async def a(request):
        return httpx.Response(200, json={"x": 1}, headers={"x-step": "a"})

    async def b(request):
        assert json.loads(request.content) == {"x": 1}
        return httpx.Response(200, json={"y": 2}, headers={"x-step": "b"})

    tasks.route("a", a)
    tasks.route("b", b)
    workflow = await compile_workflow(sequence("a", "b"), config=config, transport=tasks.transport)

    await workflow(make_request(), response)

    assert response.status_code == 200
    assert response.json() == {"y": 2}
    assert response.headers["x-step"] == "b"
    assert response.finished
    assert tasks.calls_to("a")[0].json() == {"input": True}
    assert tasks.calls_to("b")[0].json() == {"x": 1}


@pytest.mark.asyncio
async def test_response_headers_replace_inbound_headers(tasks, config, make_request, response):
    tasks.respond("a", headers={"x-step": "a", "content-type": "application/json"})
    request = make_request(
        headers={"host": "tasks.example.test", "authorization": "Bearer abc"},
    )
    workflow = await compile_workflow(sequence("a", "b"), config=config, transport=tasks.transport)

    await workflow(request, response)

    first = tasks.calls_to("a")[0]
    second = tasks.calls_to("b")[0]
    assert first.headers["authorization"] == "Bearer abc"
    assert "authorization" not in second.headers
    assert second.headers["x-step"] == "a"
    assert second.headers["content-type"] == "application/json"
    assert second.headers["connection"] == "keep-alive"


@pytest.mark.asyncio
async def test_failure_short_circuits_remaining_steps(tasks, config, make_request, response):
    tasks.respond("b", status_code=500)
    workflow = await compile_workflow(
        sequence("a", "b", "c"), config=config, transport=tasks.transport
    )

    await workflow(make_request(), response)

    assert response.status_code == 500
    assert response.json() == {
        "statusCode": 500,
        "error": "Internal Server Error",
        "message": "Unexpected status code: 500",
    }
    assert len(tasks.calls_to("a")) == 1
    assert len(tasks.calls_to("b")) == 1
    assert tasks.calls_to("c") == []


@pytest.mark.asyncio
async def test_client_error_status_is_reported_as_is(tasks, config, make_request, response):
    tasks.respond("a", status_code=404)
    workflow = await compile_workflow(sequence("a", "b"), config=config, transport=tasks.transport)

    await workflow(make_request(), response)

    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"
    assert tasks.calls_to("b") == []


@pytest.mark.asyncio
async def test_non_200_success_status_is_internal_error(tasks, config, make_request, response):
    tasks.respond("a", status_code=201)
    workflow = await compile_workflow(sequence("a", "b"), config=config, transport=tasks.transport)

    await workflow(make_request(), response)

    assert response.status_code == 500
    assert response.json()["message"] == "Unexpected status code: 201"
    assert tasks.calls_to("b") == []


@pytest.mark.asyncio
async def test_transport_failure_is_bad_gateway(tasks, config, make_request, response):
    tasks.fail("a")
    workflow = await compile_workflow(sequence("a", "b"), config=config, transport=tasks.transport)

    await workflow(make_request(), response)

    assert response.status_code == 502
    assert response.json()["error"] == "Bad Gateway"
    assert tasks.calls_to("b") == []


@pytest.mark.asyncio
async def test_timeout_is_gateway_timeout(tasks, config, make_request, response):
    tasks.respond("b", delay=1.0)
    workflow = await compile_workflow(
        sequence("a", "b", timeout=50), config=config, transport=tasks.transport
    )

    await workflow(make_request(), response)

    assert response.status_code == 504
    assert response.json()["message"] == "Request to 'b' timed out after 50ms"


@pytest.mark.asyncio
async def test_node_method_and_query_overrides(tasks, config, make_request, response):
    workflow = await compile_workflow(
        {
            "type": "sequence",
            "nodes": [
                {"name": "a"},
                {"name": "b", "method": "get", "query": {"page": "2"}},
            ],
        },
        config=config,
        transport=tasks.transport,
    )

    await workflow(make_request(query={"page": "1", "lang": "en"}), response)

    first = tasks.calls_to("a")[0]
    second = tasks.calls_to("b")[0]
    assert first.method == "POST"
    assert dict(first.url.params) == {"page": "1", "lang": "en"}
    assert second.method == "GET"
    assert dict(second.url.params) == {"page": "2", "lang": "en"}


@pytest.mark.asyncio
async def test_final_body_is_streamed_chunk_by_chunk(tasks, config, make_request):
    async def chunks():
        yield b'{"part": 1,'
        yield b' "done": true}'

    async def last(_request):
        return httpx.Response(200, content=chunks(), headers={"content-type": "application/json"})

    tasks.route("b", last)
    response = RecordingResponse()
    workflow = await compile_workflow(sequence("a", "b"), config=config, transport=tasks.transport)

    await workflow(make_request(), response)

    assert response.status_code == 200
    assert response.writes == [b'{"part": 1,', b' "done": true}']
    assert response.json() == {"part": 1, "done": True}


@pytest.mark.asyncio
async def test_single_node_sequence_passes_response_through(tasks, config, make_request, response):
    tasks.respond("only", json_body={"echo": "hi"}, headers={"x-cache": "miss"})
    workflow = await compile_workflow(sequence("only"), config=config, transport=tasks.transport)

    await workflow(make_request(), response)

    assert response.status_code == 200
    assert response.headers["x-cache"] == "miss"
    assert response.json() == {"echo": "hi"}


@pytest.mark.asyncio
async def test_sequence_against_http_server(httpserver, config, server_request, response):
    httpserver.expect_ordered_request("/a", method="POST", json={"input": True}).respond_with_json(
        {"x": 1}
    )
    httpserver.expect_ordered_request("/b", method="POST", json={"x": 1}).respond_with_json(
        {"y": 2}
    )
    workflow = await compile_workflow(sequence("a", "b"), config=config)

    await workflow(server_request(), response)

    assert response.status_code == 200
    assert response.json() == {"y": 2}
    httpserver.check_assertions()


@pytest.mark.asyncio
async def test_previous_response_reaches_echo_webtask(
    echo_server, config, server_request, response
):
    echo_server.expect_request("/a").respond_with_json({"x": 1}, headers={"X-Step": "a"})
    workflow = await compile_workflow(
        {
            "type": "sequence",
            "nodes": [{"name": "a"}, {"name": "echo", "method": "PUT", "query": {"v": "2"}}],
        },
        config=config,
    )

    await workflow(server_request(query={"v": "1", "lang": "en"}), response)

    assert response.status_code == 200
    echoed = response.json()
    assert echoed["method"] == "PUT"
    assert echoed["args"] == {"v": "2", "lang": "en"}
    assert echoed["json"] == {"x": 1}
    assert echoed["headers"]["x-step"] == "a"
    assert echoed["headers"]["connection"] == "keep-alive"


@pytest.mark.asyncio
async def test_preloaded_responses_are_chained_and_passed_through(
    tasks, config, make_request, response
):
    async def a(_request):
        return httpx.Response(200, content=b"plain bytes from a")

    async def b(request):
        return httpx.Response(200, content=b"got: " + request.content)

    tasks.route("a", a)
    tasks.route("b", b)
    workflow = await compile_workflow(sequence("a", "b"), config=config, transport=tasks.transport)

    await workflow(make_request(), response)

    assert response.status_code == 200
    assert tasks.calls_to("b")[0].body == b"plain bytes from a"
    assert response.body == b"got: plain bytes from a"
    assert response.finished


@pytest.mark.asyncio
async def test_repeated_headers_pass_through_verbatim(tasks, config, make_request, response):
    cookies = [
        ("set-cookie", "a=1; Expires=Wed, 21 Oct 2015 07:28:00 GMT"),
        ("set-cookie", "b=2"),
    ]

    async def last(_request):
        return httpx.Response(200, json={}, headers=cookies)

    tasks.route("only", last)
    workflow = await compile_workflow(sequence("only"), config=config, transport=tasks.transport)

    await workflow(make_request(), response)

    assert [pair for pair in response.header_items if pair[0] == "set-cookie"] == cookies
    assert response.headers["set-cookie"] == [value for _, value in cookies]
