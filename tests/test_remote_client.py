"""Тесты HTTP-клиента удаленного хранилища на тестовом aiohttp-сервере."""

from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp import test_utils

from core.progress_store import ProgressStore
from core.storage import MemoryStorage
from services.remote_client import RemoteProgressClient
from shared.models import ProgressUpdateRequest, QuestionProgressRequest

TOKEN = "secret-token"


def make_app(state):
    def authorized(request):
        return request.headers.get("Authorization") == f"Bearer {TOKEN}"

    async def get_progress(request):
        if not authorized(request):
            return web.json_response({"success": False, "error": "Unauthorized"}, status=401)
        state["query"] = dict(request.query)
        return web.json_response({"success": True, "data": state["entries"]})

    async def post_progress(request):
        body = await request.json()
        state["posted"].append(body)
        return web.json_response({"success": True, "data": body})

    async def get_stats(request):
        return web.json_response({"success": True, "data": {"total_study_time": 45}})

    async def post_question(request):
        state["questions"].append(await request.json())
        return web.json_response({"success": False, "error": "Question not found"}, status=404)

    async def health(request):
        return web.json_response({"status": "ok"})

    async def broken(request):
        return web.Response(text="<html>oops</html>", content_type="text/html")

    app = web.Application()
    app.add_routes([
        web.get("/api/progress", get_progress),
        web.post("/api/progress", post_progress),
        web.get("/api/stats", get_stats),
        web.post("/api/questions/progress", post_question),
        web.get("/api/health", health),
        web.get("/api/broken", broken),
    ])
    return app


@asynccontextmanager
async def running_client(state, token=TOKEN):
    server = test_utils.TestServer(make_app(state))
    await server.start_server()
    client = RemoteProgressClient(f"http://{server.host}:{server.port}/api/", token, timeout=5)
    try:
        yield client
    finally:
        await client.close()
        await server.close()


@pytest.fixture
def state():
    return {
        "entries": [{"track_id": "standard", "day_number": 1, "completed": True,
                     "tasks_completed": "{}", "updated_at": "2024-01-03T09:00:00Z"}],
        "posted": [],
        "questions": [],
    }


class TestRemoteProgressClient:

    @pytest.mark.asyncio
    async def test_get_progress_with_track_filter(self, state):
        async with running_client(state) as client:
            response = await client.get_progress("standard")
        assert response["success"] is True
        assert response["data"][0]["day_number"] == 1
        assert state["query"] == {"track_id": "standard"}

    @pytest.mark.asyncio
    async def test_update_progress_posts_row(self, state):
        entry = ProgressUpdateRequest(track_id="standard", day_number=2, completed=True,
                                      tasks_completed='{"standard-2-task-0": true}',
                                      completion_date="2024-01-10T12:00:00Z")
        async with running_client(state) as client:
            response = await client.update_progress(entry)
        assert response["success"] is True
        assert state["posted"] == [{
            "track_id": "standard",
            "day_number": 2,
            "completed": True,
            "tasks_completed": '{"standard-2-task-0": true}',
            "study_time": 0,
            "completion_date": "2024-01-10T12:00:00Z",
        }]

    @pytest.mark.asyncio
    async def test_unauthorized_clears_token(self, state):
        async with running_client(state, token="wrong") as client:
            response = await client.get_progress()
            assert response == {"success": False, "error": "Authentication required"}
            assert not client.is_authenticated

    @pytest.mark.asyncio
    async def test_http_error_is_failure_envelope(self, state):
        entry = QuestionProgressRequest(question_id="q1", studied_at="2024-01-10T12:00:00Z")
        async with running_client(state) as client:
            response = await client.track_question_progress(entry)
        assert response == {"success": False, "error": "Question not found"}
        assert state["questions"][0]["time_spent"] == 5

    @pytest.mark.asyncio
    async def test_non_json_response_is_failure(self, state):
        async with running_client(state) as client:
            response = await client.request("GET", "/broken")
        assert response["success"] is False

    @pytest.mark.asyncio
    async def test_health(self, state):
        async with running_client(state) as client:
            assert await client.is_available()

    @pytest.mark.asyncio
    async def test_unreachable_server(self, state):
        server = test_utils.TestServer(make_app(state))
        await server.start_server()
        base_url = f"http://{server.host}:{server.port}/api"
        await server.close()

        client = RemoteProgressClient(base_url, TOKEN, timeout=2)
        try:
            assert not await client.is_available()
            response = await client.get_stats()
            assert response["success"] is False
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_store_loads_from_server(self, state, clock):
        async with running_client(state) as client:
            store = ProgressStore(MemoryStorage(), remote=client, clock=clock)
            record = await store.load()
        assert record.source == "database"
        assert record.completed_days == {"standard-1": True}
        assert record.last_synced == "2024-01-03T09:00:00Z"
        assert record.analytics["totalStudyTime"] == 45
