"""MCP stdio server for Vertex AI Imagen.

Reads JSON-RPC 2.0 messages from stdin, dispatches them to MCPServer and
writes responses to stdout. Logs go to stderr. Everything runs on one event
loop so queued jobs keep executing between requests.

Usage:
    imagen-mcp-server [--output-dir DIR] [--max-concurrent-jobs N]
"""

import asyncio
import json
import logging
import sys
from typing import Any, TextIO

from imagen_mcp import __version__
from imagen_mcp.errors.exceptions import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ImagenMCPError,
    error_message,
)
from imagen_mcp.mcp.server import MCPServer

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"


class ImagenMCPStdioServer:
    """JSON-RPC 2.0 stdio transport for the Imagen MCP server."""

    def __init__(self, server: MCPServer, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._mcp = server
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._calls: set[asyncio.Task] = set()

    async def run(self) -> None:
        """Serve until stdin closes; in-flight tool calls are allowed to finish."""
        while True:
            line = await asyncio.to_thread(self._stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            await self.handle_line(line)
        if self._calls:
            await asyncio.gather(*self._calls, return_exceptions=True)

    async def handle_line(self, line: str) -> None:
        try:
            request = json.loads(line)
        except json.JSONDecodeError:
            self._write_error(None, PARSE_ERROR, "Parse error")
            return
        if not isinstance(request, dict):
            self._write_error(None, INVALID_REQUEST, "Invalid request")
            return

        method = request.get("method", "")
        req_id = request.get("id")

        if method == "initialize":
            self._write_result(req_id, {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": "vertexai-imagen", "version": __version__},
            })
        elif method == "tools/list":
            self._write_result(req_id, {"tools": self._mcp.list_tools()})
        elif method == "tools/call":
            params = request.get("params") or {}
            task = asyncio.create_task(
                self._call_tool(req_id, params.get("name", ""), params.get("arguments"))
            )
            self._calls.add(task)
            task.add_done_callback(self._calls.discard)
        elif method == "ping":
            self._write_result(req_id, {})
        elif method.startswith("notifications/"):
            pass  # Client notification, no response needed
        else:
            self._write_error(req_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    async def _call_tool(self, req_id: Any, tool_name: str, arguments: dict | None) -> None:
        try:
            result = await self._mcp.call_tool(tool_name, arguments)
        except ImagenMCPError as exc:
            self._write_error(req_id, exc.code, exc.message, exc.details)
        except Exception as exc:
            logger.exception("Tool %s raised an unexpected error", tool_name)
            self._write_error(req_id, INTERNAL_ERROR, error_message(exc))
        else:
            self._write_result(req_id, result)

    def _write(self, response: dict) -> None:
        self._stdout.write(json.dumps(response, default=str) + "\n")
        self._stdout.flush()

    def _write_result(self, req_id: Any, result: Any) -> None:
        self._write({"jsonrpc": "2.0", "id": req_id, "result": result})

    def _write_error(self, req_id: Any, code: int, message: str, data: Any = None) -> None:
        error: dict[str, Any] = {"code": code, "message": message}
        if data is not None:
            error["data"] = data
        self._write({"jsonrpc": "2.0", "id": req_id, "error": error})


async def serve(config) -> None:
    """Wire up storage, executors and the job queue, then serve stdio."""
    from imagen_mcp.db.engine import create_db_engine, create_session_factory, init_db
    from imagen_mcp.repositories.history_repo import HistoryStore
    from imagen_mcp.repositories.job_repo import JobStore
    from imagen_mcp.services.imagen_client import ImagenClient
    from imagen_mcp.services.output_paths import OutputManager
    from imagen_mcp.services.rate_limiter import RateLimiter
    from imagen_mcp.workers.base import ExecutorContext
    from imagen_mcp.workers.queue import JobQueue

    engine = create_db_engine(config=config)
    await init_db(engine)
    store = JobStore(create_session_factory(engine))
    history = HistoryStore(store)
    client = ImagenClient(
        config, RateLimiter(config.rate_limit_max_calls, config.rate_limit_window_ms)
    )
    context = ExecutorContext(
        settings=config,
        client=client,
        outputs=OutputManager(config.output_dir),
        history=history,
    )
    queue = JobQueue(store, context, config=config)

    logger.info(
        "Imagen MCP server starting (db=%s, output_dir=%s, max_concurrent_jobs=%d)",
        config.database_path, config.output_dir, queue.max_concurrent,
    )
    await queue.start()
    try:
        await ImagenMCPStdioServer(MCPServer(queue, history)).run()
    finally:
        await queue.stop()
        await client.aclose()
        await engine.dispose()
        logger.info("Imagen MCP server stopped")


def main() -> None:
    import argparse

    from imagen_mcp.config import settings
    from imagen_mcp.logging_config import setup_logging

    parser = argparse.ArgumentParser(
        prog="imagen-mcp-server",
        description="Vertex AI Imagen MCP stdio server",
    )
    parser.add_argument("--output-dir", default=None, help="Directory for generated images")
    parser.add_argument("--max-concurrent-jobs", type=int, default=None, help="Job concurrency limit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args()

    overrides = {}
    if args.output_dir:
        overrides["output_dir"] = args.output_dir
    if args.max_concurrent_jobs:
        overrides["max_concurrent_jobs"] = args.max_concurrent_jobs
    config = settings.model_copy(update=overrides) if overrides else settings

    setup_logging(config)
    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
