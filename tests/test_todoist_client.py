import json

import httpx
import pytest

from core.sync.errors import DownstreamError
from core.sync.models import TaskFound, TaskNotFound, TaskQueryError
from tests.fakes import run
from worker.todoist_client import TodoistClient, task_is_done


def _client(handler, max_attempts=2):
    return TodoistClient(
        "token-123",
        "proj-9",
        base_url="https://todoist.test/rest/v2",
        max_attempts=max_attempts,
        retry_delay=0,
        transport=httpx.MockTransport(handler),
    )


async def _call(client, method, *args):
    async with client:
        return await getattr(client, method)(*args)


def test_create_task_sends_content_and_project():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "8001", "content": "Milk"})

    task_id = run(_call(_client(handler), "create_task", "Milk"))

    assert task_id == "8001"
    assert seen["path"] == "/rest/v2/tasks"
    assert seen["auth"] == "Bearer token-123"
    assert seen["body"] == {"content": "Milk", "project_id": "proj-9"}


def test_create_task_4xx_is_permanent_without_retry():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(400, text="bad project")

    with pytest.raises(DownstreamError) as excinfo:
        run(_call(_client(handler), "create_task", "Milk"))

    assert excinfo.value.permanent is True
    assert excinfo.value.status_code == 400
    assert len(calls) == 1


def test_create_task_retries_transient_then_succeeds():
    responses = [httpx.Response(503), httpx.Response(200, json={"id": 42})]

    def handler(request):
        return responses.pop(0)

    assert run(_call(_client(handler), "create_task", "Eggs")) == "42"
    assert responses == []


def test_create_task_gives_up_after_bounded_attempts():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(500)

    with pytest.raises(DownstreamError) as excinfo:
        run(_call(_client(handler, max_attempts=3), "create_task", "Eggs"))

    assert excinfo.value.permanent is False
    assert len(calls) == 3


def test_status_404_means_not_found():
    def handler(request):
        return httpx.Response(404)

    assert run(_call(_client(handler), "get_task_status", "1")) == TaskNotFound()


def test_status_done_and_active():
    def handler(request):
        if request.url.path.endswith("/done"):
            return httpx.Response(200, json={"id": "done", "is_completed": True})
        return httpx.Response(200, json={"id": "open", "is_completed": False})

    assert run(_call(_client(handler), "get_task_status", "done")) == TaskFound(done=True)
    assert run(_call(_client(handler), "get_task_status", "open")) == TaskFound(done=False)


def test_status_transport_error_is_transient_query_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    status = run(_call(_client(handler), "get_task_status", "1"))

    assert isinstance(status, TaskQueryError)
    assert status.transient is True


def test_status_unexpected_4xx_is_not_transient():
    def handler(request):
        return httpx.Response(403)

    status = run(_call(_client(handler), "get_task_status", "1"))

    assert isinstance(status, TaskQueryError)
    assert status.transient is False


def test_task_is_done_accepts_each_known_field():
    assert task_is_done({"checked": 1})
    assert task_is_done({"isCompleted": True})
    assert task_is_done({"completed": True})
    assert not task_is_done({"content": "Milk"})


def test_missing_token_is_rejected():
    with pytest.raises(ValueError):
        TodoistClient("", "proj")
