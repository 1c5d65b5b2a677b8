"""
Tests for the SQLite capability store.
"""

import pytest
import tempfile
import os
import uuid
from dataclasses import replace
from datetime import datetime, timedelta

from agentrelay.exceptions import StoreError
from agentrelay.registry import (
    Agent,
    CapabilityStore,
    PaymentToken,
    TaskRecord,
    TaskStatus,
)


@pytest.fixture
def temp_store():
    """Create a store with a temporary database."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    store = CapabilityStore(db_path=db_path)
    yield store

    # Cleanup
    os.unlink(db_path)


def make_task(provider_id, requester_id=None, started_at=None, status=TaskStatus.COMPLETED):
    return TaskRecord(
        id=str(uuid.uuid4()),
        provider_agent_id=provider_id,
        requester_agent_id=requester_id,
        task_type="price_feed",
        payment_txid="0xabc",
        payment_amount=1000,
        payment_token=PaymentToken.STX,
        status=status,
        request_hash="r" * 64,
        response_hash="s" * 64 if status == TaskStatus.COMPLETED else None,
        started_at=started_at or datetime.utcnow(),
        completed_at=datetime.utcnow(),
        error=None if status == TaskStatus.COMPLETED else "boom",
    )


class TestRegistration:
    """Test agent registration."""

    def test_register_and_get(self, temp_store):
        agent = temp_store.register_agent(
            name="Oracle",
            endpoint="https://oracle.example.com/",
            capabilities=["price_feed", "oracle"],
            owner="SP123",
            payment_address="SP456",
            payment_tokens=["STX", "sbtc"],
            metadata={"version": "1"},
        )

        fetched = temp_store.get_agent(agent.id)
        assert fetched is not None
        assert fetched.name == "Oracle"
        assert fetched.endpoint == "https://oracle.example.com"
        assert fetched.capabilities == ["price_feed", "oracle"]
        assert fetched.payment_tokens == [PaymentToken.STX, PaymentToken.SBTC]
        assert fetched.metadata == {"version": "1"}
        assert fetched.owner == "SP123"

    def test_registration_seeds_reputation(self, temp_store):
        agent = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        rep = temp_store.get_reputation(agent.id)
        assert rep.rating == 50
        assert rep.total_tasks == 0

    def test_default_token_is_stx(self, temp_store):
        agent = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        assert temp_store.get_agent(agent.id).payment_tokens == [PaymentToken.STX]

    def test_empty_capabilities_rejected(self, temp_store):
        with pytest.raises(ValueError):
            temp_store.register_agent("A", "https://a", [], owner="SP1")
        assert temp_store.count_agents() == 0

    def test_duplicate_capabilities_collapsed(self, temp_store):
        agent = temp_store.register_agent("A", "https://a", ["x", "x", "y"], owner="SP1")
        assert agent.capabilities == ["x", "y"]

    def test_duplicate_id_fails(self, temp_store):
        temp_store.register_agent("A", "https://a", ["x"], owner="SP1", agent_id="same")
        with pytest.raises(StoreError):
            temp_store.register_agent("B", "https://b", ["x"], owner="SP1", agent_id="same")
        assert temp_store.get_agent("same").name == "A"

    def test_get_missing(self, temp_store):
        assert temp_store.get_agent("nope") is None
        assert temp_store.get_reputation("nope") is None

    def test_insert_agent_and_reputation(self, temp_store):
        agent = Agent(id="manual", name="Manual", owner="SP1", endpoint="https://m", capabilities=["x"])
        temp_store.insert_agent(agent)
        temp_store.insert_reputation("manual", initial_rating=70)
        assert temp_store.get_reputation("manual").rating == 70

    def test_bad_endpoint_rejected(self, temp_store):
        for endpoint in ("not a url", "ftp://files.test", "https://bad.test:notaport", "https://"):
            with pytest.raises(ValueError):
                temp_store.register_agent("A", endpoint, ["x"], owner="SP1")
        assert temp_store.count_agents() == 0

    def test_endpoint_trailing_slash_trimmed(self, temp_store):
        agent = temp_store.register_agent("A", "https://a.test/api/", ["x"], owner="SP1")
        assert temp_store.get_agent(agent.id).endpoint == "https://a.test/api"


class TestQueryAgents:
    """Test joined agent queries."""

    def test_registration_order(self, temp_store):
        ids = [temp_store.register_agent(f"A{i}", "https://a", ["x"], owner="SP1").id for i in range(3)]
        assert [a.id for a, _ in temp_store.query_agents()] == ids

    def test_min_rating_filter(self, temp_store):
        low = temp_store.register_agent("Low", "https://a", ["x"], owner="SP1")
        high = temp_store.register_agent("High", "https://b", ["x"], owner="SP1")
        temp_store.update_reputation(low.id, lambda r: replace(r, rating=10))

        result = temp_store.query_agents(min_rating=50)
        assert [a.id for a, _ in result] == [high.id]

    def test_count(self, temp_store):
        temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        temp_store.register_agent("B", "https://b", ["y"], owner="SP1")
        assert temp_store.count_agents() == 2


class TestUpdateReputation:
    """Test atomic reputation updates."""

    def test_update_with_task(self, temp_store):
        agent = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        task = make_task(agent.id)

        updated = temp_store.update_reputation(
            agent.id, lambda r: replace(r, total_tasks=1, successful_tasks=1, rating=51), task
        )

        assert updated.rating == 51
        assert temp_store.get_reputation(agent.id).total_tasks == 1
        tasks = temp_store.query_tasks(agent.id)
        assert len(tasks) == 1
        assert tasks[0].id == task.id
        assert tasks[0].status == TaskStatus.COMPLETED

    def test_missing_agent_returns_none(self, temp_store):
        assert temp_store.update_reputation("ghost", lambda r: r) is None
        assert temp_store.query_tasks("ghost") == []

    def test_failed_task_insert_rolls_back_reputation(self, temp_store):
        agent = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        task = make_task(agent.id)
        temp_store.insert_task(task)

        # Same task ID again violates the primary key
        with pytest.raises(StoreError):
            temp_store.update_reputation(agent.id, lambda r: replace(r, total_tasks=1, failed_tasks=1, rating=0), task)

        rep = temp_store.get_reputation(agent.id)
        assert rep.total_tasks == 0
        assert rep.rating == 50

    def test_updater_error_rolls_back(self, temp_store):
        agent = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")

        def broken(rep):
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError):
            temp_store.update_reputation(agent.id, broken, make_task(agent.id))

        assert temp_store.query_tasks(agent.id) == []

    def test_reconcile_ratings(self, temp_store):
        agent = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        good = temp_store.register_agent("B", "https://b", ["x"], owner="SP1")
        temp_store.update_reputation(agent.id, lambda r: replace(r, total_tasks=1, successful_tasks=1, rating=99))

        assert temp_store.reconcile_ratings() == 1
        assert temp_store.get_reputation(agent.id).rating == 51
        assert temp_store.get_reputation(good.id).rating == 50
        assert temp_store.reconcile_ratings() == 0


class TestTasks:
    """Test the task audit trail."""

    def test_provider_or_requester(self, temp_store):
        a = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        b = temp_store.register_agent("B", "https://b", ["x"], owner="SP1")
        temp_store.insert_task(make_task(a.id))
        temp_store.insert_task(make_task(b.id, requester_id=a.id))

        assert len(temp_store.query_tasks(a.id)) == 2
        assert len(temp_store.query_tasks(b.id)) == 1

    def test_newest_first_and_limit(self, temp_store):
        a = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        base = datetime(2025, 1, 1)
        for i in range(5):
            temp_store.insert_task(make_task(a.id, started_at=base + timedelta(minutes=i)))

        tasks = temp_store.query_tasks(a.id, limit=3)
        assert len(tasks) == 3
        assert tasks[0].started_at == base + timedelta(minutes=4)
        assert tasks[2].started_at == base + timedelta(minutes=2)

    def test_failed_task_roundtrip(self, temp_store):
        a = temp_store.register_agent("A", "https://a", ["x"], owner="SP1")
        temp_store.insert_task(make_task(a.id, status=TaskStatus.FAILED))

        task = temp_store.query_tasks(a.id)[0]
        assert task.status == TaskStatus.FAILED
        assert task.response_hash is None
        assert task.error == "boom"
