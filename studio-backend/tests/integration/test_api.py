"""
Integration Tests: HTTP API

Drives the FastAPI app over ASGI against a started engine backed by the
in-memory generation backends from conftest.
"""

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient

from api.dependencies import set_studio_engine
from app import create_app
from config.settings import MonitoringSettings, Settings
from core.runtime.adapters import PythonRuntime
from core.runtime.descriptors import Category, RuntimeDescriptor, Status, Tier, build_table
from core.runtime.engine import StudioEngine

pytestmark = pytest.mark.integration


# =============================================================================
# Health
# =============================================================================

class TestHealth:
    """Test health endpoints."""

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["environment"] == "test"

    @pytest.mark.asyncio
    async def test_simple_health(self, client):
        response = await client.get("/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "1.0.0"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        response = await client.get("/v1/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["current_language"] == "python"
        assert data["runtimes"]["python"]["state"] == "loaded"
        assert data["ai"]["is_loaded"] is False

    @pytest.mark.asyncio
    async def test_detailed_health_without_engine(self, test_settings):
        app = create_app(test_settings)
        async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/v1/health/detailed")
            runtimes = await ac.get("/v1/runtimes")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert runtimes.status_code == 503


# =============================================================================
# Runtimes
# =============================================================================

class TestRuntimes:
    """Test runtime discovery, loading and execution."""

    @pytest.mark.asyncio
    async def test_list(self, client):
        response = await client.get("/v1/runtimes")

        data = response.json()
        assert response.status_code == 200
        assert data["count"] == len(data["runtimes"]) == data["stats"]["total"]
        assert data["stats"]["implemented"] == 4

    @pytest.mark.asyncio
    async def test_list_filters(self, client):
        response = await client.get("/v1/runtimes", params={"status": "implemented", "category": "database"})

        assert [r["id"] for r in response.json()["runtimes"]] == ["sqlite"]

    @pytest.mark.asyncio
    async def test_list_bad_filter(self, client):
        response = await client.get("/v1/runtimes", params={"tier": "gold"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get(self, client):
        loaded = (await client.get("/v1/runtimes/python")).json()
        idle = (await client.get("/v1/runtimes/yaml")).json()

        assert loaded["state"] == "loaded"
        assert loaded["cached"] is True
        assert idle["state"] == "unloaded"
        assert idle["cached"] is False

    @pytest.mark.asyncio
    async def test_unknown_runtime(self, client):
        response = await client.get("/v1/runtimes/cobol")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["type"] == "UnknownRuntimeError"
        assert error["code"] == 404
        assert "hint" in error

    @pytest.mark.asyncio
    async def test_planned_runtime(self, client):
        response = await client.post("/v1/runtimes/rust/load", headers={"X-Entitlement": "enterprise"})

        assert response.status_code == 501
        assert response.json()["error"]["type"] == "UnavailableError"

    @pytest.mark.asyncio
    async def test_bad_entitlement_header(self, client):
        response = await client.post("/v1/runtimes/python/load", headers={"X-Entitlement": "platinum"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_load_selects_language(self, client, engine):
        response = await client.post("/v1/runtimes/sqlite/load")

        assert response.status_code == 200
        assert response.json()["state"] == "loaded"
        assert engine.runtime_manager.current_language == "sqlite"

    @pytest.mark.asyncio
    async def test_load_without_select(self, client, engine):
        response = await client.post("/v1/runtimes/json/load", params={"select": "false"})

        assert response.status_code == 200
        assert engine.runtime_manager.current_language == "python"

    @pytest.mark.asyncio
    async def test_execute(self, client):
        response = await client.post("/v1/runtimes/python/execute", json={"code": "print('hi')\n40 + 2"})

        data = response.json()
        assert response.status_code == 200
        assert data["success"] is True
        assert data["output"] == "hi\n"
        assert data["return_value"] == 42

    @pytest.mark.asyncio
    async def test_execute_unserialisable_value(self, client):
        response = await client.post("/v1/runtimes/python/execute", json={"code": "object"})
        assert response.json()["return_value"] == "<class 'object'>"

    @pytest.mark.asyncio
    async def test_failed_execution_recorded_as_error(self, client, engine):
        response = await client.post("/v1/runtimes/python/execute", json={"code": "x = 1\nundefined_name"})

        data = response.json()
        assert response.status_code == 200
        assert data["success"] is False
        assert data["error"] == {"kind": "NameError", "message": "name 'undefined_name' is not defined", "line": 2}
        assert engine.context.recent_errors[0].kind == "NameError"

    @pytest.mark.asyncio
    async def test_execute_before_load(self, client):
        response = await client.post("/v1/runtimes/yaml/execute", json={"code": "a: 1"})

        assert response.status_code == 409
        assert response.json()["error"]["type"] == "NotLoadedError"

    @pytest.mark.asyncio
    async def test_release(self, client, engine):
        response = await client.delete("/v1/runtimes/python")

        assert response.status_code == 200
        assert response.json()["data"] == {"runtime_id": "python", "released": True}
        assert engine.runtime_manager.current_language is None

        again = await client.delete("/v1/runtimes/python")
        assert again.json()["data"]["released"] is False

        execute = await client.post("/v1/runtimes/python/execute", json={"code": "1"})
        assert execute.status_code == 409

    @pytest.mark.asyncio
    async def test_release_unknown(self, client):
        response = await client.delete("/v1/runtimes/cobol")
        assert response.status_code == 404


@pytest_asyncio.fixture
async def pro_client(test_settings):
    """Client over an engine whose table has a pro-tier implemented runtime."""
    table = build_table([
        RuntimeDescriptor("python", "Python", Category.LANGUAGE, Tier.FREE, Status.IMPLEMENTED, "0 KB"),
        RuntimeDescriptor("python-pro", "Python Pro", Category.LANGUAGE, Tier.PRO, Status.IMPLEMENTED, "0 KB"),
    ])
    engine = StudioEngine(
        test_settings,
        descriptors=table,
        factories={"python": PythonRuntime, "python-pro": PythonRuntime},
        backends=[],
    )
    await engine.start()
    set_studio_engine(engine)
    app = create_app(test_settings)
    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await engine.stop()


class TestEntitlement:
    """Test X-Entitlement gating."""

    @pytest.mark.asyncio
    async def test_free_caller_refused(self, pro_client):
        response = await pro_client.post("/v1/runtimes/python-pro/load", headers={"X-Entitlement": "free"})

        assert response.status_code == 403
        assert response.json()["error"]["type"] == "EntitlementError"

    @pytest.mark.asyncio
    async def test_default_entitlement_is_free(self, pro_client):
        response = await pro_client.post("/v1/runtimes/python-pro/load")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_pro_caller_allowed(self, pro_client):
        response = await pro_client.post("/v1/runtimes/python-pro/load", headers={"X-Entitlement": "Pro"})

        assert response.status_code == 200
        execute = await pro_client.post(
            "/v1/runtimes/python-pro/execute",
            json={"code": "1 + 1"},
            headers={"X-Entitlement": "enterprise"},
        )
        assert execute.json()["return_value"] == 2


# =============================================================================
# Models
# =============================================================================

class TestModels:
    """Test model catalog and NDJSON load progress."""

    @pytest.mark.asyncio
    async def test_list(self, client):
        data = (await client.get("/v1/models")).json()

        assert data["count"] == 3
        assert data["models"][0]["id"] == "vision-model"
        assert data["models"][0]["supports_multimodal"] is True

    @pytest.mark.asyncio
    async def test_load_streams_progress(self, client, ndjson):
        response = await client.post("/v1/models/load", json={"model_id": "chat-model"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        events = ndjson(response)
        assert events[0]["status"] == "initializing"
        assert events[-1] == {"status": "ready", "progress_percent": 100, "message": "chat-model ready"}

        status = (await client.get("/v1/models/status")).json()
        assert status["current_model"] == "chat-model"
        assert status["backend_id"] == "chat-completion"
        assert status["model"]["name"] == "Chat"

    @pytest.mark.asyncio
    async def test_load_already_active(self, client, ndjson, chat_backend):
        await client.post("/v1/models/load", json={"model_id": "chat-model"})
        response = await client.post("/v1/models/load", json={"model_id": "chat-model"})

        assert ndjson(response) == [{"status": "ready", "progress_percent": 100, "message": "Model already loaded"}]
        assert chat_backend.load_calls == 1

    @pytest.mark.asyncio
    async def test_load_failure_in_band(self, client, ndjson, chat_backend):
        chat_backend.fail_load = True

        response = await client.post("/v1/models/load", json={"model_id": "chat-model"})

        assert response.status_code == 200
        lines = ndjson(response)
        assert lines[-2]["status"] == "error"
        assert lines[-2]["error"] is True
        assert "refused to load" in lines[-2]["message"]
        assert all("error" not in line for line in lines[:-2])
        assert lines[-1]["error"]["type"] == "LoadError"
        assert lines[-1]["error"]["code"] == 503

    @pytest.mark.asyncio
    async def test_load_unknown_model(self, client):
        response = await client.post("/v1/models/load", json={"model_id": "nope"})

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "UnknownModelError"

    @pytest.mark.asyncio
    async def test_switch_unloads_previous(self, client, event_log):
        await client.post("/v1/models/load", json={"model_id": "vision-model"})
        await client.post("/v1/models/load", json={"model_id": "chat-model"})

        assert event_log.index("multimodal:unload-done") < event_log.index("chat-completion:load-start:chat-model")

    @pytest.mark.asyncio
    async def test_unload(self, client):
        await client.post("/v1/models/load", json={"model_id": "chat-model"})

        response = await client.post("/v1/models/unload")
        idle = await client.post("/v1/models/unload")

        assert response.json()["data"] == {"model_id": "chat-model"}
        assert idle.json()["message"] == "No model was loaded"


# =============================================================================
# Chat
# =============================================================================

class TestChat:
    """Test streamed assistant replies."""

    @pytest.mark.asyncio
    async def test_before_model_load(self, client):
        response = await client.post("/v1/chat/stream", json={"message": "hi"})

        assert response.status_code == 409
        assert response.json()["error"]["type"] == "NotLoadedError"

    @pytest.mark.asyncio
    async def test_stream(self, client, ndjson, chat_backend):
        await client.post("/v1/models/load", json={"model_id": "chat-model"})
        await client.put("/v1/context", json={"current_file": {"name": "main.py"}, "code": "x = 1", "language": "python"})

        response = await client.post("/v1/chat/stream", json={"message": "what is x?", "options": {"temperature": 0.1}})

        chunks = ndjson(response)
        assert [c["is_final"] for c in chunks] == [False, False, False, True]
        assert "".join(c["text"] for c in chunks) == "Hello, world"

        messages = chat_backend.seen_messages[0]
        assert messages[-1] == {"role": "user", "content": "what is x?"}
        assert "Current file: main.py (python)" in messages[1]["content"]
        assert chat_backend.seen_options[0].temperature == 0.1

    @pytest.mark.asyncio
    async def test_flags_override_defaults(self, client, chat_backend):
        await client.post("/v1/models/load", json={"model_id": "chat-model"})
        await client.put("/v1/context", json={"current_file": {"name": "main.py"}, "code": "x = 1"})

        await client.post(
            "/v1/chat/stream",
            json={"message": "hi", "flags": {"include_current_file": False}},
        )

        assert len(chat_backend.seen_messages[0]) == 2

    @pytest.mark.asyncio
    async def test_template(self, client, chat_backend):
        await client.post("/v1/models/load", json={"model_id": "chat-model"})

        await client.post(
            "/v1/chat/stream",
            json={"template": "fix", "code": "1/0", "error": "ZeroDivisionError", "language": "python"},
        )

        prompt = chat_backend.seen_messages[0][-1]["content"]
        assert "Error: ZeroDivisionError" in prompt

    @pytest.mark.asyncio
    async def test_template_missing_code(self, client):
        response = await client.post("/v1/chat/stream", json={"template": "explain"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, client):
        response = await client.post("/v1/chat/stream", json={"message": "   "})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_images_to_multimodal(self, client, ndjson, multimodal_backend):
        await client.post("/v1/models/load", json={"model_id": "vision-model"})

        response = await client.post(
            "/v1/chat/stream",
            json={"message": "what is this?", "images": ["data:image/png;base64,QUJD"]},
        )

        assert ndjson(response)[-1]["is_final"] is True
        assert len(multimodal_backend.seen_parts) == 1

    @pytest.mark.asyncio
    async def test_failure_mid_stream(self, client, ndjson, chat_backend):
        chat_backend.fail_after = 2
        await client.post("/v1/models/load", json={"model_id": "chat-model"})

        response = await client.post("/v1/chat/stream", json={"message": "hi"})

        lines = ndjson(response)
        assert [line.get("text") for line in lines[:2]] == ["Hello", ", "]
        assert lines[-1]["error"]["type"] == "GenerationError"
        assert not any(line.get("is_final") for line in lines)


# =============================================================================
# Context
# =============================================================================

class TestContext:
    """Test editor-state endpoints."""

    @pytest.mark.asyncio
    async def test_update_and_summary(self, client):
        response = await client.put("/v1/context", json={
            "current_file": {"name": "query.sql", "path": "/db/query.sql"},
            "code": "SELECT 1;",
            "language": "sqlite",
            "selection": "SELECT",
            "cursor": {"line": 1, "column": 6},
            "open_files": [{"name": "a.py"}, {"name": "a.py"}, {"name": "b.py"}],
        })

        assert response.status_code == 200
        assert response.json() == {
            "current_file": "query.sql",
            "language": "sqlite",
            "code_length": 9,
            "has_selection": True,
            "cursor_position": {"line": 1, "column": 6},
            "open_files_count": 2,
            "recent_errors_count": 0,
        }
        assert (await client.get("/v1/context/summary")).json() == response.json()

    @pytest.mark.asyncio
    async def test_code_only_update_keeps_file(self, client):
        await client.put("/v1/context", json={"current_file": {"name": "a.py"}, "code": "1"})
        response = await client.put("/v1/context", json={"code": "12345"})

        assert response.json()["current_file"] == "a.py"
        assert response.json()["code_length"] == 5

    @pytest.mark.asyncio
    async def test_errors(self, client, engine):
        for i in range(6):
            await client.post("/v1/context/errors", json={"message": f"e{i}", "line": i})

        assert (await client.get("/v1/context/summary")).json()["recent_errors_count"] == 5
        assert engine.context.recent_errors[0].message == "e5"

        cleared = await client.delete("/v1/context/errors")
        assert cleared.json()["recent_errors_count"] == 0

    @pytest.mark.asyncio
    async def test_negative_cursor_rejected(self, client):
        response = await client.put("/v1/context", json={"cursor": {"line": -1, "column": 0}})
        assert response.status_code == 422


# =============================================================================
# Metrics
# =============================================================================

class TestMetrics:
    """Test the Prometheus endpoint."""

    @pytest.mark.asyncio
    async def test_metrics_after_execution(self, client):
        await client.post("/v1/runtimes/python/execute", json={"code": "1"})

        response = await client.get("/v1/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "# TYPE studio_executions_total counter" in response.text
        assert 'studio_executions_total{runtime="python",status="success"}' in response.text

    @pytest.mark.asyncio
    async def test_metrics_disabled(self, engine):
        settings = Settings(environment="test", monitoring=MonitoringSettings(metrics_enabled=False))
        set_studio_engine(engine)
        app = create_app(settings)
        async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/v1/metrics")

        assert response.status_code == 404
