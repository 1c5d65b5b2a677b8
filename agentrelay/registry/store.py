"""
CapabilityStore - SQLite persistence for agents, reputation and task records.
"""

import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import StoreError
from .models import (
    NEUTRAL_RATING,
    Agent,
    PaymentToken,
    Reputation,
    TaskRecord,
    TaskStatus,
    validate_endpoint,
)
from .reputation import compute_rating, is_consistent

logger = logging.getLogger(__name__)


def default_db_path() -> str:
    db_dir = Path.home() / ".agentrelay"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "registry.db")


class CapabilityStore:
    """
    Durable rows for the registry.

    Features:
    - Agents with their capabilities and accepted tokens
    - One reputation row per agent, seeded at the neutral rating
    - Append-only task audit trail
    - Atomic reputation read-modify-write (optionally paired with a task insert)

    Connections are thread-local, so the store can be driven from
    ``asyncio.to_thread`` workers.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.agentrelay/registry.db
        """
        if db_path is None:
            db_path = default_db_path()

        self.db_path = db_path
        self._local = threading.local()
        self._init_db()

    @property
    def _conn(self) -> sqlite3.Connection:
        """Thread-local database connection."""
        if not hasattr(self._local, 'conn'):
            try:
                self._local.conn = sqlite3.connect(self.db_path, timeout=10)
            except sqlite3.Error as e:
                raise StoreError(f"Cannot open database {self.db_path}: {e}")
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA foreign_keys = ON")
        return self._local.conn

    @contextmanager
    def _transaction(self):
        """Write transaction holding the database write lock until commit."""
        conn = self._conn
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Store transaction failed: %s", e)
            raise StoreError(str(e))
        except BaseException:
            conn.rollback()
            raise

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("Store query failed: %s", e)
            raise StoreError(str(e))

    def _init_db(self):
        """Initialize database schema."""
        try:
            self._conn.executescript("""
                CREATE TABLE IF NOT EXISTS agents (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    owner TEXT NOT NULL,
                    endpoint TEXT NOT NULL,
                    capabilities TEXT NOT NULL,
                    payment_address TEXT NOT NULL DEFAULT '',
                    payment_tokens TEXT NOT NULL DEFAULT '["STX"]',
                    metadata TEXT DEFAULT '{}',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_agents_owner ON agents(owner);
                CREATE INDEX IF NOT EXISTS idx_agents_name ON agents(name);

                CREATE TABLE IF NOT EXISTS reputation (
                    agent_id TEXT PRIMARY KEY REFERENCES agents(id),
                    total_tasks INTEGER DEFAULT 0,
                    successful_tasks INTEGER DEFAULT 0,
                    failed_tasks INTEGER DEFAULT 0,
                    total_earned_stx INTEGER DEFAULT 0,
                    total_earned_sbtc INTEGER DEFAULT 0,
                    avg_response_time_ms INTEGER DEFAULT 0,
                    rating INTEGER DEFAULT 50,
                    last_activity TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_reputation_rating ON reputation(rating);

                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    requester_agent_id TEXT,
                    provider_agent_id TEXT NOT NULL REFERENCES agents(id),
                    task_type TEXT NOT NULL,
                    payment_txid TEXT NOT NULL,
                    payment_amount INTEGER NOT NULL,
                    payment_token TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    request_hash TEXT NOT NULL,
                    response_hash TEXT,
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    error TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_tasks_provider ON tasks(provider_agent_id);
                CREATE INDEX IF NOT EXISTS idx_tasks_requester ON tasks(requester_agent_id);
                CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);
                CREATE INDEX IF NOT EXISTS idx_tasks_payment ON tasks(payment_txid);
            """)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot initialize schema: {e}")

    # ==================== Agents ====================

    def register_agent(
        self,
        name: str,
        endpoint: str,
        capabilities: list[str],
        owner: str,
        payment_address: str = "",
        payment_tokens: Optional[list] = None,
        metadata: Optional[dict] = None,
        agent_id: Optional[str] = None,
    ) -> Agent:
        """
        Register a new agent and seed its reputation.

        Args:
            name: Human-readable agent name
            endpoint: Base URL the orchestrator calls
            capabilities: Non-empty list of capability names
            owner: Address of the owning principal (the payer of the registration fee)
            payment_address: Where the agent receives payments
            payment_tokens: Accepted tokens (defaults to STX)
            metadata: Free-form metadata
            agent_id: Explicit ID (auto-generated if not provided)

        Returns:
            The registered Agent

        Raises:
            ValueError: if no capability is given or the endpoint is not an http(s) URL
        """
        now = datetime.utcnow()
        agent = Agent(
            id=agent_id or str(uuid.uuid4()),
            name=name,
            owner=owner,
            endpoint=validate_endpoint(endpoint),
            capabilities=capabilities,
            payment_address=payment_address,
            payment_tokens=payment_tokens or [PaymentToken.STX],
            metadata=metadata or {},
            created_at=now,
            updated_at=now,
        )

        with self._transaction() as conn:
            self._insert_agent(conn, agent)
            self._insert_reputation(conn, agent.id, NEUTRAL_RATING, now)

        logger.info("Registered agent %s (%s) with capabilities %s", agent.id, agent.name, agent.capabilities)
        return agent

    def insert_agent(self, agent: Agent) -> Agent:
        """Insert an agent row. Fails if the ID is already taken."""
        with self._transaction() as conn:
            self._insert_agent(conn, agent)
        return agent

    def _insert_agent(self, conn: sqlite3.Connection, agent: Agent):
        conn.execute("""
            INSERT INTO agents
            (id, name, owner, endpoint, capabilities, payment_address, payment_tokens, metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            agent.id,
            agent.name,
            agent.owner,
            agent.endpoint,
            json.dumps(agent.capabilities),
            agent.payment_address,
            json.dumps([t.value for t in agent.payment_tokens]),
            json.dumps(agent.metadata),
            agent.created_at.isoformat(),
            agent.updated_at.isoformat(),
        ))

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        """
        Get an agent by ID.

        Returns:
            Agent if found, None otherwise
        """
        rows = self._query("SELECT * FROM agents WHERE id = ?", (agent_id,))
        if rows:
            return self._row_to_agent(rows[0])
        return None

    def query_agents(self, min_rating: Optional[int] = None) -> list[tuple[Agent, Reputation]]:
        """
        Agents joined with their reputation, in registration order.

        Args:
            min_rating: Inclusive lower bound on the rating

        Returns:
            List of (Agent, Reputation) pairs
        """
        sql = """
            SELECT a.*, r.total_tasks, r.successful_tasks, r.failed_tasks,
                   r.total_earned_stx, r.total_earned_sbtc, r.avg_response_time_ms,
                   r.rating, r.last_activity
            FROM agents a
            JOIN reputation r ON a.id = r.agent_id
            WHERE 1=1
        """
        params = []

        if min_rating is not None:
            sql += " AND r.rating >= ?"
            params.append(min_rating)

        sql += " ORDER BY a.rowid ASC"

        rows = self._query(sql, tuple(params))
        return [(self._row_to_agent(row), self._row_to_reputation(row, row["id"])) for row in rows]

    def count_agents(self) -> int:
        return self._query("SELECT COUNT(*) FROM agents")[0][0]

    # ==================== Reputation ====================

    def insert_reputation(self, agent_id: str, initial_rating: int = NEUTRAL_RATING) -> Reputation:
        """Create the reputation row for an agent."""
        now = datetime.utcnow()
        with self._transaction() as conn:
            self._insert_reputation(conn, agent_id, initial_rating, now)
        return Reputation(agent_id=agent_id, rating=initial_rating, last_activity=now)

    def _insert_reputation(self, conn: sqlite3.Connection, agent_id: str, rating: int, now: datetime):
        conn.execute("""
            INSERT INTO reputation (agent_id, rating, last_activity)
            VALUES (?, ?, ?)
        """, (agent_id, rating, now.isoformat()))

    def get_reputation(self, agent_id: str) -> Optional[Reputation]:
        """
        Get an agent's reputation.

        Returns:
            Reputation if the agent is registered, None otherwise
        """
        rows = self._query("SELECT * FROM reputation WHERE agent_id = ?", (agent_id,))
        if rows:
            return self._row_to_reputation(rows[0], agent_id)
        return None

    def update_reputation(
        self,
        agent_id: str,
        updater: Callable[[Reputation], Reputation],
        task: Optional[TaskRecord] = None,
    ) -> Optional[Reputation]:
        """
        Atomically read, transform and write an agent's reputation.

        The row is read and written inside one ``BEGIN IMMEDIATE``
        transaction, so concurrent completions for the same agent cannot
        lose each other's counters. When ``task`` is given it is inserted in
        the same transaction: either both land or neither does.

        Args:
            agent_id: Agent whose reputation changes
            updater: Pure function from the current to the new reputation
            task: Audit record to write alongside

        Returns:
            The new reputation, or None if the agent has no reputation row
            (in which case nothing is written).
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM reputation WHERE agent_id = ?", (agent_id,)
            ).fetchone()
            if not row:
                logger.warning("No reputation row for agent %s", agent_id)
                return None

            updated = updater(self._row_to_reputation(row, agent_id))
            self._write_reputation(conn, updated)

            if task is not None:
                self._insert_task(conn, task)

        return updated

    def _write_reputation(self, conn: sqlite3.Connection, rep: Reputation):
        conn.execute("""
            UPDATE reputation
            SET total_tasks = ?, successful_tasks = ?, failed_tasks = ?,
                total_earned_stx = ?, total_earned_sbtc = ?,
                avg_response_time_ms = ?, rating = ?, last_activity = ?
            WHERE agent_id = ?
        """, (
            rep.total_tasks, rep.successful_tasks, rep.failed_tasks,
            rep.total_earned_stx, rep.total_earned_sbtc,
            rep.avg_response_time_ms, rep.rating,
            rep.last_activity.isoformat() if rep.last_activity else None,
            rep.agent_id,
        ))

    def reconcile_ratings(self) -> int:
        """
        Recompute every rating that disagrees with its counters.

        Returns:
            Number of rows fixed
        """
        fixed = 0
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM reputation").fetchall()
            for row in rows:
                rep = self._row_to_reputation(row, row["agent_id"])
                if is_consistent(rep):
                    continue
                rep.failed_tasks = max(0, rep.total_tasks - rep.successful_tasks)
                rep.rating = compute_rating(rep.successful_tasks, rep.total_tasks)
                self._write_reputation(conn, rep)
                fixed += 1

        if fixed:
            logger.warning("Reconciled %d inconsistent reputation rows", fixed)
        return fixed

    # ==================== Tasks ====================

    def insert_task(self, task: TaskRecord) -> TaskRecord:
        """Append a task record to the audit trail."""
        with self._transaction() as conn:
            self._insert_task(conn, task)
        return task

    def _insert_task(self, conn: sqlite3.Connection, task: TaskRecord):
        conn.execute("""
            INSERT INTO tasks (id, requester_agent_id, provider_agent_id, task_type,
                               payment_txid, payment_amount, payment_token, status,
                               request_hash, response_hash, started_at, completed_at, error)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            task.id,
            task.requester_agent_id,
            task.provider_agent_id,
            task.task_type,
            task.payment_txid,
            task.payment_amount,
            task.payment_token.value,
            task.status.value,
            task.request_hash,
            task.response_hash,
            task.started_at.isoformat(),
            task.completed_at.isoformat() if task.completed_at else None,
            task.error,
        ))

    def query_tasks(self, agent_id: str, limit: int = 50) -> list[TaskRecord]:
        """
        Task history where the agent was provider or requester, newest first.
        """
        rows = self._query("""
            SELECT * FROM tasks
            WHERE provider_agent_id = ? OR requester_agent_id = ?
            ORDER BY started_at DESC, rowid DESC
            LIMIT ?
        """, (agent_id, agent_id, limit))
        return [self._row_to_task(row) for row in rows]

    # ==================== Row mapping ====================

    def _row_to_agent(self, row: sqlite3.Row) -> Agent:
        """Convert database row to Agent object."""
        return Agent(
            id=row["id"],
            name=row["name"],
            owner=row["owner"],
            endpoint=row["endpoint"],
            capabilities=json.loads(row["capabilities"]),
            payment_address=row["payment_address"],
            payment_tokens=json.loads(row["payment_tokens"]),
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_reputation(self, row: sqlite3.Row, agent_id: str) -> Reputation:
        return Reputation(
            agent_id=agent_id,
            total_tasks=row["total_tasks"] or 0,
            successful_tasks=row["successful_tasks"] or 0,
            failed_tasks=row["failed_tasks"] or 0,
            total_earned_stx=row["total_earned_stx"] or 0,
            total_earned_sbtc=row["total_earned_sbtc"] or 0,
            avg_response_time_ms=row["avg_response_time_ms"] or 0,
            rating=row["rating"] if row["rating"] is not None else NEUTRAL_RATING,
            last_activity=datetime.fromisoformat(row["last_activity"]) if row["last_activity"] else None,
        )

    def _row_to_task(self, row: sqlite3.Row) -> TaskRecord:
        return TaskRecord(
            id=row["id"],
            requester_agent_id=row["requester_agent_id"],
            provider_agent_id=row["provider_agent_id"],
            task_type=row["task_type"],
            payment_txid=row["payment_txid"],
            payment_amount=row["payment_amount"],
            payment_token=PaymentToken.parse(row["payment_token"]),
            status=TaskStatus(row["status"]),
            request_hash=row["request_hash"],
            response_hash=row["response_hash"],
            started_at=datetime.fromisoformat(row["started_at"]),
            completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
            error=row["error"],
        )
