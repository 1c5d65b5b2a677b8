"""
Orchestrator - runs paid multi-agent workflows.

A workflow is admitted once by the payment gate, then its tasks are
executed under one of three strategies:

- sequential: one task at a time; a successful task's output is merged into
  the next task's input under ``previous_result``
- parallel: every task at once, results kept in request order; a store
  failure is raised only once every sibling task has settled
- best_agent: only the first task is run (multi-capability matching is not
  attempted)

Every attempted task updates the provider's reputation and writes an audit
record in the same store transaction, whether the call succeeded or not.
All tasks share the workflow's single payment; per-task rewards are the
nominal ``max_payment`` (or the configured default), not settled amounts.
"""

import asyncio
import logging
import time
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional

from ..config import RelayConfig
from ..exceptions import SelectionError, StoreError
from ..payments.gate import PaymentGate
from ..registry.models import RankedAgent, TaskRecord, TaskStatus
from ..registry.reputation import TaskOutcome, apply_outcome
from ..registry.selector import AgentSelector
from ..registry.store import CapabilityStore
from .audit import content_digest
from .invoker import AgentInvoker, InvocationResult
from .models import OrchestrationRequest, Strategy, TaskResult, TaskSpec, WorkflowResult

logger = logging.getLogger(__name__)

PREVIOUS_RESULT_KEY = "previous_result"
NO_AGENT_ID = "none"


def merge_previous(payload: Any, previous: Any) -> Any:
    """Input for the next sequential task, carrying the previous output."""
    if previous is None:
        return payload
    if isinstance(payload, dict):
        return {**payload, PREVIOUS_RESULT_KEY: previous}
    if payload is None:
        return {PREVIOUS_RESULT_KEY: previous}
    return {"input": payload, PREVIOUS_RESULT_KEY: previous}


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


class Orchestrator:
    """
    Selects agents, calls them and feeds the results back into reputation.

    Store access runs in worker threads so the event loop only ever waits on
    I/O. Reputation updates for the same agent are serialized by a per-agent
    lock; the store's write transaction makes each update atomic as well.
    """

    def __init__(
        self,
        store: CapabilityStore,
        gate: PaymentGate,
        invoker: Optional[AgentInvoker] = None,
        config: Optional[RelayConfig] = None,
    ):
        self.store = store
        self.gate = gate
        self.config = config or gate.config
        self.invoker = invoker or AgentInvoker(timeout=self.config.agent_timeout)
        self.selector = AgentSelector(store)
        self._agent_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def run(
        self,
        request: OrchestrationRequest,
        payment_reference: str,
        caller: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Admit and execute a workflow.

        Args:
            request: Tasks and strategy
            payment_reference: Transaction ID paying for the workflow
            caller: Caller identity; defaults to the payer of the transaction

        Returns:
            WorkflowResult with one TaskResult per attempted (or skipped) task.
            A rejected payment yields a single failed "orchestration" result.

        Raises:
            StoreError: the store failed; the workflow is abandoned
        """
        started = time.perf_counter()

        decision = await self.gate.admit(payment_reference)
        if not decision.accepted:
            return WorkflowResult(
                success=False,
                results=[TaskResult(
                    capability="orchestration",
                    agent_id="orchestrator",
                    agent_name="Orchestrator",
                    success=False,
                    error=decision.reason,
                )],
                total_time_ms=_elapsed_ms(started),
                strategy=request.strategy,
                caller=caller,
                admitted=False,
            )

        caller = caller or decision.payer
        reference = decision.reference
        logger.info(
            "Running %s workflow with %d task(s) for %s",
            request.strategy.value, len(request.tasks), caller,
        )

        if request.strategy == Strategy.SEQUENTIAL:
            results = await self._run_sequential(request.tasks, reference)
        elif request.strategy == Strategy.PARALLEL:
            results = await self._run_parallel(request.tasks, reference)
        else:
            results = await self._run_best_agent(request.tasks, reference)

        return WorkflowResult(
            success=all(r.success for r in results),
            results=results,
            total_time_ms=_elapsed_ms(started),
            strategy=request.strategy,
            caller=caller,
        )

    async def _run_sequential(self, tasks: list[TaskSpec], reference: str) -> list[TaskResult]:
        results = []
        previous = None

        for task in tasks:
            payload = merge_previous(task.input, previous)
            result = await self._execute(task, payload, reference)
            results.append(result)
            previous = result.data if result.success else None

        return results

    async def _run_parallel(self, tasks: list[TaskSpec], reference: str) -> list[TaskResult]:
        outcomes = await asyncio.gather(
            *(self._execute(task, task.input, reference) for task in tasks),
            return_exceptions=True,
        )

        # All siblings have settled; a store failure takes precedence.
        errors = [o for o in outcomes if isinstance(o, BaseException)]
        if errors:
            for error in errors:
                if isinstance(error, StoreError):
                    logger.error("Parallel workflow aborted: %s", error.message)
                    raise error
            raise errors[0]
        return list(outcomes)

    async def _run_best_agent(self, tasks: list[TaskSpec], reference: str) -> list[TaskResult]:
        if not tasks:
            return []
        task = tasks[0]
        return [await self._execute(task, task.input, reference)]

    async def _execute(self, task: TaskSpec, payload: Any, reference: str) -> TaskResult:
        """Select, invoke and record one task."""
        try:
            candidate = await asyncio.to_thread(
                self.selector.require_best, task.capability, self.config.default_payment_token
            )
        except SelectionError as e:
            logger.info("No agent found for capability %s", task.capability)
            return TaskResult(
                capability=task.capability,
                agent_id=NO_AGENT_ID,
                agent_name="No agent found",
                success=False,
                error=e.message,
            )

        agent = candidate.agent
        started_at = datetime.utcnow()
        invocation = await self.invoker.invoke(agent, task.capability, payload, reference)

        await self._record(candidate, task, payload, invocation, reference, started_at)

        return TaskResult(
            capability=task.capability,
            agent_id=agent.id,
            agent_name=agent.name,
            success=invocation.success,
            data=invocation.data,
            error=invocation.error,
            time_ms=invocation.response_time_ms,
        )

    async def _record(
        self,
        candidate: RankedAgent,
        task: TaskSpec,
        payload: Any,
        invocation: InvocationResult,
        reference: str,
        started_at: datetime,
    ):
        """Update reputation and write the audit record as one unit."""
        amount = task.max_payment if task.max_payment is not None else self.config.default_task_payment
        token = self.config.default_payment_token
        completed_at = datetime.utcnow()

        outcome = TaskOutcome(
            success=invocation.success,
            paid_amount=amount,
            token=token,
            response_time_ms=invocation.response_time_ms,
        )
        record = TaskRecord(
            id=str(uuid.uuid4()),
            provider_agent_id=candidate.agent.id,
            task_type=task.capability,
            payment_txid=reference,
            payment_amount=amount,
            payment_token=token,
            status=TaskStatus.COMPLETED if invocation.success else TaskStatus.FAILED,
            request_hash=content_digest(payload),
            response_hash=content_digest(invocation.data) if invocation.success else None,
            started_at=started_at,
            completed_at=completed_at,
            error=invocation.error,
        )

        async with self._agent_locks[candidate.agent.id]:
            await asyncio.to_thread(
                self.store.update_reputation,
                candidate.agent.id,
                lambda rep: apply_outcome(rep, outcome, now=completed_at),
                record,
            )

    async def find_best_agent(self, capability: str, payment_token=None) -> Optional[RankedAgent]:
        """Best agent for a capability without invoking it."""
        token = payment_token or self.config.default_payment_token
        return await asyncio.to_thread(self.selector.find_best, capability, token)
