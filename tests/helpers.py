"""Test helpers: a controllable executor, a fake Imagen API and async polling utilities."""

import asyncio
import base64
import json
from collections import defaultdict

import httpx

from imagen_mcp.models.results import ResourceResult
from imagen_mcp.repositories.job_repo import JobStore
from imagen_mcp.workers.base import BaseExecutor


class ControllableExecutor(BaseExecutor):
    """Test executor whose completion is driven by the test.

    Each call waits on an event keyed by ``params["name"]`` unless
    ``blocking`` is False. ``error`` makes it raise after release.
    """

    tool_name = "controllable"

    def __init__(self, blocking: bool = True, delay: float = 0, error: Exception | None = None, result=None):
        self.blocking = blocking
        self.delay = delay
        self.error = error
        self.result = result
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = defaultdict(asyncio.Event)

    def release(self, name: str) -> None:
        self.gates[name].set()

    def release_all(self) -> None:
        self.blocking = False
        for gate in self.gates.values():
            gate.set()

    async def process(self, context, params):
        name = params.get("name", "job")
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.blocking:
            await self.gates[name].wait()
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return ResourceResult(uri=f"file:///images/{name}.png", path=f"/images/{name}.png")


async def wait_for(check, timeout: float = 3.0, interval: float = 0.01) -> None:
    """Poll an async predicate until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not await check():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


async def wait_for_status(store: JobStore, job_id: str, status: str, timeout: float = 3.0):
    async def check():
        job = await store.get_job(job_id)
        return job is not None and job.status == status

    await wait_for(check, timeout)
    return await store.get_job(job_id)


PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


def prediction(data: bytes = PNG_BYTES, mime_type: str = "image/png") -> dict:
    return {"bytesBase64Encoded": base64.b64encode(data).decode("ascii"), "mimeType": mime_type}


class FakeImagenAPI:
    """httpx mock transport handler that records requests and replays queued responses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []

    def queue(self, status_code: int = 200, **kwargs) -> None:
        self.responses.append(httpx.Response(status_code, **kwargs))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json={"predictions": [prediction()]})

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)
