"""fal.ai queue client for image-synthesis jobs.

Processing flow:
    1. Submit the model input to `{queue_url}/{model_id}`.
    2. Poll the returned status URL until the job reports `COMPLETED`.
    3. Fetch the job output from the returned response URL.

Retry behavior:
    None. Each HTTP call is attempted once; queue polling continues until a
    terminal status with no overall time budget.

Error handling strategy:
    - HTTP failures propagate as `httpx.HTTPError`.
    - Faulted jobs and malformed queue responses raise `RuntimeError`.

Determinism:
    Request assembly is deterministic for fixed inputs/configuration. Job
    timing and generated output are provider dependent.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable

import httpx

from evacgen.config import ServiceConfig
from evacgen.synthesis.events import QueueUpdate


logger = logging.getLogger(__name__)

TERMINAL_FAILURE_STATUSES = {"FAILED", "ERROR", "CANCELLED"}


@dataclass(frozen=True)
class QueueHandle:
    """Identifiers returned by a queue submission."""

    request_id: str
    status_url: str
    response_url: str


class FalQueueClient:
    """Submit and await jobs on the fal queue.

    Args:
        config: Injected service configuration.
        transport: Optional httpx transport for tests.
    """

    def __init__(
        self,
        config: ServiceConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        headers.update(self.config.auth_headers())
        return httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            headers=headers,
            transport=self._transport,
        )

    async def subscribe(
        self,
        model_id: str,
        arguments: dict[str, Any],
        on_update: Callable[[QueueUpdate], None] | None = None,
    ) -> dict[str, Any]:
        """Submit a job, forward status updates, and return the job output.

        Raises:
            RuntimeError: Missing key, faulted job, or malformed response.
            httpx.HTTPError: Transport or HTTP status failures.
        """
        if not self.config.fal_key:
            raise RuntimeError("FAL_KEY is not configured")

        async with self._client() as client:
            handle = await self._submit(client, model_id, arguments)
            async for update in self._iter_status(client, handle):
                if on_update is not None:
                    on_update(update)
            return await self._result(client, handle)

    async def _submit(
        self,
        client: httpx.AsyncClient,
        model_id: str,
        arguments: dict[str, Any],
    ) -> QueueHandle:
        response = await client.post(f"{self.config.queue_url}/{model_id}", json=arguments)
        response.raise_for_status()
        data = response.json()

        request_id = data.get("request_id")
        if not request_id:
            raise RuntimeError("Queue did not return a request id.")

        base = f"{self.config.queue_url}/{model_id}/requests/{request_id}"
        return QueueHandle(
            request_id=request_id,
            status_url=data.get("status_url") or f"{base}/status",
            response_url=data.get("response_url") or base,
        )

    async def _iter_status(
        self,
        client: httpx.AsyncClient,
        handle: QueueHandle,
    ) -> AsyncIterator[QueueUpdate]:
        """Yield status snapshots until the job completes."""
        while True:
            response = await client.get(handle.status_url, params={"logs": 1})
            response.raise_for_status()
            data = response.json()

            status = str(data.get("status", "")).upper()
            update = QueueUpdate(
                request_id=handle.request_id,
                status=status,
                queue_position=data.get("queue_position"),
                logs=tuple(data.get("logs") or ()),
            )
            yield update

            if data.get("error") or status in TERMINAL_FAILURE_STATUSES:
                raise RuntimeError(f"Queue job {status or 'faulted'}: {data.get('error') or 'no details'}")
            if update.completed:
                return

            await asyncio.sleep(self.config.poll_interval_seconds)

    async def _result(self, client: httpx.AsyncClient, handle: QueueHandle) -> dict[str, Any]:
        response = await client.get(handle.response_url)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise RuntimeError("Queue returned a non-object result.")
        return data
