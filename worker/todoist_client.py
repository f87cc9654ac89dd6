"""
Thin Todoist REST client: create a task, look up a task's status.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

import httpx

from core.sync.errors import DownstreamError
from core.sync.models import TaskFound, TaskNotFound, TaskQueryError, TaskStatus

log = logging.getLogger("todoist")

DEFAULT_API_URL = "https://api.todoist.com/rest/v2"
# 4xx codes that still mean "try again later"
_TRANSIENT_4XX = {408, 429}
# field names Todoist has used for a completed task
_DONE_FIELDS = ("is_completed", "isCompleted", "completed", "checked")


def _is_transient_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in _TRANSIENT_4XX


def task_is_done(task: Dict) -> bool:
    return any(bool(task.get(name)) for name in _DONE_FIELDS)


class TodoistClient:
    def __init__(
        self,
        api_token: str,
        project_id: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 15.0,
        max_attempts: int = 2,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_token:
            raise ValueError("Todoist API token is required")
        self.project_id = project_id
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_token}"},
        )

    async def __aenter__(self) -> "TodoistClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Send a request, retrying transient failures a bounded number of times.
        Returns the response for any status below 500 (callers interpret 4xx).
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_error = DownstreamError(f"Connection error: {exc}", permanent=False)
            else:
                if not _is_transient_status(response.status_code):
                    return response
                last_error = DownstreamError(
                    f"Todoist API error: {response.status_code}",
                    status_code=response.status_code,
                    permanent=False,
                )

            if attempt < self.max_attempts:
                log.warning(
                    "Transient Todoist failure, retrying",
                    extra={"path": path, "attempt": attempt, "error": str(last_error)},
                )
                await asyncio.sleep(self.retry_delay)

        raise last_error

    async def create_task(self, name: str) -> str:
        """Create a task in the configured project; returns the new task id."""
        response = await self._request(
            "POST",
            "/tasks",
            json={"content": name, "project_id": self.project_id},
        )
        if response.status_code >= 400:
            raise DownstreamError(
                f"Failed to create task {name!r}: {response.status_code} - {response.text}",
                status_code=response.status_code,
                permanent=True,
            )
        task = response.json()
        task_id = task.get("id")
        if not task_id:
            raise DownstreamError(f"Todoist returned no task id for {name!r}", permanent=False)
        return str(task_id)

    async def get_task_status(self, task_id: str) -> TaskStatus:
        """Classify a task as found (done or not), not found, or a query error."""
        try:
            response = await self._request("GET", f"/tasks/{task_id}")
        except DownstreamError as exc:
            return TaskQueryError(str(exc), transient=not exc.permanent)

        if response.status_code == 404:
            return TaskNotFound()
        if response.status_code >= 400:
            return TaskQueryError(
                f"Unexpected response for task {task_id}: {response.status_code}",
                transient=False,
            )
        try:
            task = response.json()
        except ValueError:
            return TaskQueryError(f"Unreadable task payload for {task_id}", transient=True)
        return TaskFound(done=task_is_done(task))


__all__ = ["DEFAULT_API_URL", "TodoistClient", "task_is_done"]
