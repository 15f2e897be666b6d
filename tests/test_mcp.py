"""Tests for MCP tool routing and the stdio JSON-RPC transport."""

import io
import json

import pytest

from helpers import ControllableExecutor, PNG_BYTES, prediction, wait_for_status
from imagen_mcp.errors.exceptions import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ImagenMCPError,
    ValidationError,
)
from imagen_mcp.mcp.server import MCPServer, tool_result_content
from imagen_mcp.mcp.stdio_server import PROTOCOL_VERSION, ImagenMCPStdioServer
from imagen_mcp.mcp.tools import TOOL_DEFINITIONS
from imagen_mcp.models.enums import JobStatus
from imagen_mcp.models.results import MessageResult, MultiResourceResult, ResourceResult
from imagen_mcp.workers.queue import JobQueue


def text_of(response: dict) -> str:
    return response["content"][0]["text"]


class TestToolDefinitions:
    def test_all_tools_listed(self):
        names = [t["name"] for t in TOOL_DEFINITIONS]
        assert names == [
            "start_generation_job",
            "check_job_status",
            "get_job_result",
            "list_jobs",
            "cancel_job",
            "generate_image",
            "edit_image",
            "customize_image",
            "upscale_image",
            "generate_and_upscale_image",
            "list_history",
            "search_history",
            "get_history_by_uuid",
        ]

    def test_every_tool_has_object_schema(self):
        for tool in TOOL_DEFINITIONS:
            assert tool["description"]
            assert tool["inputSchema"]["type"] == "object"


class TestToolResultContent:
    def test_message(self):
        assert tool_result_content(MessageResult(text="hi")) == {"content": [{"type": "text", "text": "hi"}]}

    def test_resources(self):
        content = tool_result_content(
            MultiResourceResult(uris=["file:///a.png", "file:///b.png"], text="two")
        )["content"]
        assert content[0] == {"type": "text", "text": "two"}
        assert [c["resource"]["uri"] for c in content[1:]] == ["file:///a.png", "file:///b.png"]

    def test_single_resource(self):
        content = tool_result_content(ResourceResult(uri="file:///a.png", text="one"))["content"]
        assert content[1] == {
            "type": "resource",
            "resource": {"uri": "file:///a.png", "mimeType": "image/png", "text": "file:///a.png"},
        }


class TestJobTools:
    @pytest.mark.asyncio
    async def test_start_and_follow_job(self, store, make_queue):
        executor = ControllableExecutor()
        server = MCPServer(make_queue(executor))

        response = await server.call_tool("start_generation_job", {"tool_type": "generate", "params": {"name": "fox"}})
        text = text_of(response)
        assert text.startswith("Job created successfully!")
        job_id = text.split("Job ID: ")[1].split("\n")[0]

        status = text_of(await server.call_tool("check_job_status", {"job_id": job_id}))
        assert "Status: running" in status
        assert "Job is currently running..." in status

        with pytest.raises(ImagenMCPError, match="Job is still running. Current status: running") as exc_info:
            await server.call_tool("get_job_result", {"job_id": job_id})
        assert exc_info.value.code == INVALID_REQUEST

        executor.release("fox")
        await wait_for_status(store, job_id, JobStatus.COMPLETED)
        result = text_of(await server.call_tool("get_job_result", {"job_id": job_id}))
        assert "Job completed successfully!" in result
        assert "Output: /images/fox.png" in result
        assert "URI: file:///images/fox.png" in result

    @pytest.mark.asyncio
    async def test_failed_job_result(self, store, make_queue):
        server = MCPServer(make_queue(ControllableExecutor(blocking=False, error=RuntimeError("quota"))))
        response = await server.call_tool("start_generation_job", {"tool_type": "edit", "params": {}})
        job_id = text_of(response).split("Job ID: ")[1].split("\n")[0]
        await wait_for_status(store, job_id, JobStatus.FAILED)

        with pytest.raises(ImagenMCPError, match="Job failed: quota"):
            await server.call_tool("get_job_result", {"job_id": job_id})

    @pytest.mark.asyncio
    async def test_unknown_job(self, make_queue):
        server = MCPServer(make_queue(ControllableExecutor()))
        for tool in ("check_job_status", "get_job_result", "cancel_job"):
            with pytest.raises(ImagenMCPError, match="Job not found: job_missing"):
                await server.call_tool(tool, {"job_id": "job_missing"})

    @pytest.mark.asyncio
    async def test_list_jobs(self, store, make_queue):
        server = MCPServer(make_queue(ControllableExecutor(), max_concurrent=1))
        assert text_of(await server.call_tool("list_jobs", {})) == "No jobs found."
        assert text_of(await server.call_tool("list_jobs", {"status": "failed"})) == "No jobs found with status 'failed'."

        await server.call_tool("start_generation_job", {"tool_type": "generate", "params": {"name": "a"}})
        await server.call_tool("start_generation_job", {"tool_type": "generate", "params": {"name": "b"}})

        listing = text_of(await server.call_tool("list_jobs", {}))
        assert "Total: 2 job(s)" in listing
        pending = text_of(await server.call_tool("list_jobs", {"status": "pending"}))
        assert "Total: 1 job(s)" in pending
        assert "Filter: status = pending" in pending

    @pytest.mark.asyncio
    async def test_cancel(self, store, make_queue):
        server = MCPServer(make_queue(ControllableExecutor(), max_concurrent=1))
        await server.call_tool("start_generation_job", {"tool_type": "generate", "params": {"name": "a"}})
        response = await server.call_tool("start_generation_job", {"tool_type": "generate", "params": {"name": "b"}})
        job_id = text_of(response).split("Job ID: ")[1].split("\n")[0]

        assert text_of(await server.call_tool("cancel_job", {"job_id": job_id})) == (
            f"Job {job_id} has been cancelled successfully."
        )
        with pytest.raises(ImagenMCPError, match="Cannot cancel job in failed status"):
            await server.call_tool("cancel_job", {"job_id": job_id})

    @pytest.mark.asyncio
    async def test_invalid_job_type(self, store, make_queue):
        server = MCPServer(make_queue(ControllableExecutor()))
        with pytest.raises(ValidationError, match="Invalid arguments for start_generation_job"):
            await server.call_tool("start_generation_job", {"tool_type": "paint", "params": {}})
        assert await store.list_jobs() == []


class TestHistoryTools:
    @pytest.fixture
    async def server(self, store, executor_context, test_settings):
        queue = JobQueue(store, executor_context, config=test_settings)
        yield MCPServer(queue)
        await queue.stop()

    @pytest.mark.asyncio
    async def test_empty_history(self, server):
        assert text_of(await server.call_tool("list_history", {})) == (
            "No image history found matching the specified filters."
        )
        assert text_of(await server.call_tool("search_history", {"query": "fox"})) == (
            'No images found matching the search query: "fox"'
        )
        assert text_of(await server.call_tool("get_history_by_uuid", {"uuid": "nope"})) == (
            "No image history found for UUID: nope"
        )

    @pytest.mark.asyncio
    async def test_generated_image_is_listed_searched_and_detailed(self, server, history):
        await server.call_tool(
            "generate_image", {"prompt": "A red fox " + "x" * 100, "aspect_ratio": "16:9"}
        )
        (record,) = await history.list_images()

        listing = text_of(await server.call_tool("list_history", {"filters": {"tool_name": "generate_image"}}))
        assert listing.startswith("Found 1 image(s) in history:")
        assert f"UUID: {record.uuid}" in listing
        assert "  Prompt: A red fox " + "x" * 70 + "..." in listing
        assert "  Aspect Ratio: 16:9" in listing
        assert f"  File Size: {record.file_size} bytes" in listing
        assert "  Success: Yes" in listing

        found = text_of(await server.call_tool("search_history", {"query": "RED FOX"}))
        assert found.startswith('Found 1 image(s) matching "RED FOX":')
        assert f"  File: {record.file_path}" in found

        details = text_of(await server.call_tool("get_history_by_uuid", {"uuid": record.uuid}))
        assert details.startswith("Image History Details:")
        assert f"File Path: {record.file_path}" in details
        assert "  Model: imagen-3.0-generate-002" in details
        assert "  MIME Type: image/png" in details
        assert f"  Parameters Hash: {record.params_hash[:16]}..." in details
        assert '"aspect_ratio": "16:9"' in details

    @pytest.mark.asyncio
    async def test_filter_excludes_other_tools(self, server):
        await server.call_tool("generate_image", {"prompt": "fox"})
        response = await server.call_tool("list_history", {"filters": {"tool_name": "upscale_image"}})
        assert text_of(response) == "No image history found matching the specified filters."

    @pytest.mark.asyncio
    async def test_page_full_hint(self, server, imagen_api):
        imagen_api.queue(json={"predictions": [prediction(b"one"), prediction(b"two")]})
        await server.call_tool("generate_image", {"prompt": "fox", "sample_count": 2})
        listing = text_of(await server.call_tool("list_history", {"limit": 2}))
        assert listing.endswith("Showing first 2 results. Use offset parameter to see more.")

    @pytest.mark.asyncio
    async def test_search_requires_query(self, server):
        with pytest.raises(ValidationError, match="query"):
            await server.call_tool("search_history", {})

    @pytest.mark.asyncio
    async def test_bad_date_filter(self, server):
        with pytest.raises(ValidationError, match="Invalid history filters"):
            await server.call_tool("list_history", {"filters": {"date_from": "yesterday"}})

    @pytest.mark.asyncio
    async def test_unavailable_without_history_store(self, make_queue):
        server = MCPServer(make_queue(ControllableExecutor()))
        with pytest.raises(ImagenMCPError, match="Image history is not available") as exc_info:
            await server.call_tool("list_history", {})
        assert exc_info.value.code == INTERNAL_ERROR


class TestRouting:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, make_queue):
        server = MCPServer(make_queue(ControllableExecutor()))
        with pytest.raises(ImagenMCPError, match="Unknown tool: draw") as exc_info:
            await server.call_tool("draw", {})
        assert exc_info.value.code == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_schema_violation(self, make_queue):
        server = MCPServer(make_queue(ControllableExecutor()))
        with pytest.raises(ValidationError, match=r"Invalid arguments for generate_image \(sample_count\)") as exc_info:
            await server.call_tool("generate_image", {"prompt": "fox", "sample_count": 9})
        assert exc_info.value.code == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_image_tool_runs_inline(self, store, executor_context, imagen_api, test_settings):
        queue = JobQueue(store, executor_context, config=test_settings)
        server = MCPServer(queue)
        try:
            response = await server.call_tool("generate_image", {"prompt": "fox", "output_path": "fox.png"})
        finally:
            await queue.stop()

        saved = executor_context.outputs.output_dir / "fox.png"
        assert saved.read_bytes() == PNG_BYTES
        assert response["content"][1]["resource"]["uri"] == saved.as_uri()
        assert await store.list_jobs() == []


def stdio_transport(server: MCPServer, *messages):
    lines = [m if isinstance(m, str) else json.dumps(m) for m in messages]
    stdin = io.StringIO("\n".join(lines) + "\n")
    stdout = io.StringIO()
    return ImagenMCPStdioServer(server, stdin=stdin, stdout=stdout), stdout


def responses(stdout: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


class TestStdioServer:
    @pytest.mark.asyncio
    async def test_initialize_list_and_ping(self, make_queue):
        transport, stdout = stdio_transport(
            MCPServer(make_queue(ControllableExecutor())),
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
            {"jsonrpc": "2.0", "id": 3, "method": "ping"},
        )
        await transport.run()

        init, tools, ping = responses(stdout)
        assert init["id"] == 1
        assert init["result"]["protocolVersion"] == PROTOCOL_VERSION
        assert init["result"]["serverInfo"]["name"] == "vertexai-imagen"
        assert len(tools["result"]["tools"]) == 13
        assert ping == {"jsonrpc": "2.0", "id": 3, "result": {}}

    @pytest.mark.asyncio
    async def test_tool_call_and_errors(self, make_queue):
        transport, stdout = stdio_transport(
            MCPServer(make_queue(ControllableExecutor())),
            "{broken",
            "[1, 2]",
            {"jsonrpc": "2.0", "id": 4, "method": "resources/list"},
            {"jsonrpc": "2.0", "id": 5, "method": "tools/call", "params": {"name": "list_jobs", "arguments": {}}},
            {"jsonrpc": "2.0", "id": 6, "method": "tools/call", "params": {"name": "check_job_status", "arguments": {"job_id": "job_x"}}},
        )
        await transport.run()

        by_id = {}
        errors_without_id = []
        for response in responses(stdout):
            if response["id"] is None:
                errors_without_id.append(response["error"]["code"])
            else:
                by_id[response["id"]] = response

        assert errors_without_id == [PARSE_ERROR, INVALID_REQUEST]
        assert by_id[4]["error"]["code"] == METHOD_NOT_FOUND
        assert by_id[5]["result"]["content"][0]["text"] == "No jobs found."
        assert by_id[6]["error"] == {"code": INVALID_REQUEST, "message": "Job not found: job_x"}

    @pytest.mark.asyncio
    async def test_unexpected_error_maps_to_internal(self, make_queue):
        class BrokenServer(MCPServer):
            async def call_tool(self, tool_name, arguments):
                raise RuntimeError("disk full")

        transport, stdout = stdio_transport(
            BrokenServer(make_queue(ControllableExecutor())),
            {"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "list_jobs"}},
        )
        await transport.run()
        assert responses(stdout) == [
            {"jsonrpc": "2.0", "id": 7, "error": {"code": INTERNAL_ERROR, "message": "disk full"}}
        ]
