import pytest
from fastapi.testclient import TestClient

from relaydesk.config import settings
from relaydesk.database import get_db
from relaydesk.dependencies import get_agent_pool
from relaydesk.main import app
from relaydesk.models import Agent, LogDirection
from relaydesk.services import directory_store
from relaydesk.services.conversation_log_service import add_log_entry


@pytest.fixture
def client(session_factory, pool):
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_agent_pool] = lambda: pool
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestAgentsApi:
    def test_add_list_activate(self, client):
        assert client.post("/api/agents", json={"telegram_id": 111, "name": "Ann"}).json()["success"] is True
        client.post("/api/agents", json={"telegram_id": 222, "name": "Bob"})

        agents = client.get("/api/agents").json()
        assert [a["name"] for a in agents["agents"]] == ["Ann", "Bob"]
        assert agents["active_agent_id"] is None

        bob_id = agents["agents"][1]["id"]
        response = client.post(f"/api/agents/{bob_id}/activate")
        assert response.json() == {"success": True, "message": "Agent 'Bob' is now active"}
        assert client.get("/api/agents").json()["active_agent_id"] == bob_id

    def test_add_requires_fields(self, client):
        assert client.post("/api/agents", json={"telegram_id": 111}).status_code == 400
        assert client.post("/api/agents", json={"name": "Ann"}).status_code == 400

    def test_add_duplicate(self, client):
        client.post("/api/agents", json={"telegram_id": 111, "name": "Ann"})
        response = client.post("/api/agents", json={"telegram_id": 111, "name": "Ann"})
        assert response.json() == {"success": False, "message": "Agent already exists"}

    def test_deactivate(self, client, make_agent):
        agent = make_agent(111, "Ann", active=True)

        response = client.post(f"/api/agents/{agent.id}/deactivate")

        assert response.json()["message"] == "Agent 'Ann' is now offline"
        assert client.get("/api/agents").json()["active_agent_id"] is None

    def test_missing_agent_is_404(self, client):
        assert client.post("/api/agents/99/activate").status_code == 404
        assert client.post("/api/agents/99/deactivate").status_code == 404
        assert client.delete("/api/agents/99").status_code == 404

    def test_delete_cascades(self, client, db_session, pool, make_agent):
        agent = make_agent(111, "Ann")
        pool.add_admin(db_session, 111)

        response = client.delete(f"/api/agents/{agent.id}")

        assert response.json()["success"] is True
        db_session.expire_all()
        assert db_session.query(Agent).count() == 0
        assert directory_store.is_admin(db_session, 111) is False


class TestLogsApi:
    def test_filter_and_limit(self, client, db_session):
        for i in range(3):
            for user_id in (555, 777):
                add_log_entry(
                    db_session,
                    user_id=user_id,
                    user_name="U",
                    agent_id=1,
                    agent_name="Ann",
                    direction=LogDirection.USER_TO_AGENT,
                    message=f"{user_id}-{i}",
                )
        db_session.commit()

        logs = client.get("/api/logs", params={"user_id": 555, "limit": 2}).json()

        assert [entry["message"] for entry in logs] == ["555-2", "555-1"]
        assert logs[0]["direction"] == "user_to_agent"

    def test_empty(self, client):
        assert client.get("/api/logs").json() == []


class TestAdminsApi:
    def test_add_list_remove(self, client):
        assert client.post("/api/admins", json={"telegram_id": 5}).json()["success"] is True
        assert client.get("/api/admins").json() == [5]
        assert client.delete("/api/admins/5").json()["success"] is True
        assert client.delete("/api/admins/5").status_code == 404

    def test_add_requires_id(self, client):
        assert client.post("/api/admins", json={}).status_code == 400


class TestMaintenanceApi:
    def test_prune_requires_ttl(self, client, monkeypatch):
        monkeypatch.setattr(settings, "mapping_retention_days", None)
        assert client.post("/api/maintenance/prune-mappings").status_code == 400

    def test_prune_with_ttl(self, client):
        response = client.post("/api/maintenance/prune-mappings", params={"ttl_days": 30})
        assert response.json() == {"ttl_days": 30, "deleted": 0}


class TestAdminToken:
    def test_token_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_api_token", "tok")

        assert client.get("/api/agents").status_code == 401
        assert client.get("/api/agents", headers={"X-Admin-Token": "tok"}).status_code == 200
