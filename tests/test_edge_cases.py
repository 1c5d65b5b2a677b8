"""
Edge case and error handling tests.
"""

import pytest
import tempfile
import os

from agentrelay.exceptions import (
    AdmissionError,
    AgentRelayError,
    DeserializationError,
    SelectionError,
    StoreError,
    TransportError,
)
from agentrelay.orchestration import TaskResult, WorkflowResult, Strategy, content_digest
from agentrelay.orchestration.audit import canonical_json
from agentrelay.registry import Agent, PaymentToken, Reputation


class TestModelEdgeCases:
    """Test edge cases in data models."""

    def test_token_parse(self):
        assert PaymentToken.parse("SBTC") == PaymentToken.SBTC
        assert PaymentToken.parse("stx") == PaymentToken.STX
        assert PaymentToken.parse(PaymentToken.SBTC) == PaymentToken.SBTC
        with pytest.raises(ValueError):
            PaymentToken.parse("BTC")

    def test_agent_requires_capability(self):
        with pytest.raises(ValueError):
            Agent(id="a", name="A", owner="SP1", endpoint="https://a", capabilities=["", ""])

    def test_agent_dict_roundtrip(self):
        agent = Agent(
            id="a", name="A", owner="SP1", endpoint="https://a",
            capabilities=["x"], payment_tokens=["sBTC"], metadata={"k": "v"},
        )
        restored = Agent.from_dict(agent.to_dict())
        assert restored == agent

    def test_reputation_dict(self):
        data = Reputation(agent_id="a").to_dict()
        assert data["rating"] == 50
        assert data["last_activity"] is None

    def test_task_result_omits_empty_fields(self):
        ok = TaskResult("x", "a", "A", True, data={"v": 1}, time_ms=5).to_dict()
        assert "error" not in ok
        failed = TaskResult("x", "a", "A", False, error="boom").to_dict()
        assert "data" not in failed

    def test_workflow_counts(self):
        results = [
            TaskResult("x", "a", "A", True),
            TaskResult("y", "none", "No agent found", False, error="missing"),
        ]
        workflow = WorkflowResult(success=False, results=results, total_time_ms=3, strategy=Strategy.SEQUENTIAL)
        assert workflow.tasks_completed == 1
        assert workflow.to_dict()["strategy"] == "sequential"


class TestDigests:
    """Test audit digests."""

    def test_key_order_irrelevant(self):
        assert content_digest({"a": 1, "b": 2}) == content_digest({"b": 2, "a": 1})

    def test_different_values(self):
        assert content_digest({"a": 1}) != content_digest({"a": 2})

    def test_sha256_hex(self):
        digest = content_digest(None)
        assert len(digest) == 64
        assert canonical_json({"b": [1, 2], "a": "é"}) == '{"a":"é","b":[1,2]}'


class TestErrors:
    """Test the exception hierarchy."""

    def test_codes(self):
        assert AdmissionError("nope").code == "PAYMENT_REJECTED"
        assert SelectionError("x").message == "No agent found for capability: x"
        assert StoreError("disk").code == "STORE_ERROR"

    def test_hierarchy(self):
        err = DeserializationError("bad", status_code=200)
        assert isinstance(err, TransportError)
        assert isinstance(err, AgentRelayError)
        assert err.status_code == 200
        assert str(err) == "[DESERIALIZATION_ERROR] bad"


class TestClientFunctions:
    """Test the module-level convenience API."""

    @pytest.fixture(autouse=True)
    def temp_store(self):
        from agentrelay.registry import CapabilityStore
        from agentrelay.registry import client

        with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
            db_path = f.name

        client.use_store(CapabilityStore(db_path))
        yield
        client.use_store(None)
        os.unlink(db_path)

    def test_register_and_discover(self):
        from agentrelay.registry import (
            register_agent,
            discover_agents,
            find_best_agent,
            get_agent,
            get_reputation,
            get_agent_tasks,
            leaderboard,
            list_capabilities,
        )

        agent = register_agent("Oracle", "https://o", ["price_feed"], owner="SP1", payment_tokens=["sBTC"])

        assert get_agent(agent.id).name == "Oracle"
        assert get_reputation(agent.id).rating == 50
        assert [r.agent.id for r in discover_agents("price_feed")] == [agent.id]
        assert discover_agents("price_feed", payment_token="STX") == []
        assert find_best_agent("price_feed", "sBTC").agent.id == agent.id
        assert find_best_agent("price_feed") is None
        assert get_agent_tasks(agent.id) == []
        assert leaderboard()[0].agent.id == agent.id
        assert list_capabilities() == ["price_feed"]

    def test_default_store_from_env(self, tmp_path, monkeypatch):
        from agentrelay.registry import client

        db_path = str(tmp_path / "env.db")
        monkeypatch.setenv("AGENTRELAY_DB_PATH", db_path)
        client.use_store(None)

        store = client._get_store()
        assert store.db_path == db_path
