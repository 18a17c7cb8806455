"""Transaction orchestrator — approve → act → confirm → settle."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable

from .models import (
    Approval,
    ContractCall,
    JobEvent,
    JobStatus,
    Step,
    StepKind,
    TransactionFailure,
    TransactionJob,
    classify_exception,
)

if TYPE_CHECKING:
    from ..config import AppConfig

logger = logging.getLogger(__name__)

Listener = Callable[[TransactionJob, JobEvent], Any]

_STEP_STATUSES = {
    StepKind.APPROVE: (JobStatus.APPROVING, JobStatus.AWAITING_APPROVAL_RECEIPT),
    StepKind.ACT: (JobStatus.ACTING, JobStatus.AWAITING_ACTION_RECEIPT),
}


def plan_steps(
    act_call: ContractCall,
    approval: Approval | None = None,
    current_allowance: int = 0,
    label: str = "",
) -> tuple[Step, ...]:
    """Build the step list for one action.

    The APPROVE step is skipped for native-asset flows and when the existing
    allowance already covers the amount.
    """
    act = Step(StepKind.ACT, act_call, label)
    if approval is None or approval.token.is_native or current_allowance >= approval.amount:
        return (act,)
    approve = Step(StepKind.APPROVE, approval.to_call(), f"Approve {approval.token.symbol}")
    return (approve, act)


class TransactionOrchestrator:
    """Drives a :class:`TransactionJob` through its steps on its own backend.

    Each job ends in exactly one terminal event (SUCCEEDED or FAILED), which
    is also delivered once to every registered listener.
    """

    def __init__(self, chain_id: int, settlement_delay: float = 2.0) -> None:
        self.chain_id = chain_id
        self.settlement_delay = settlement_delay
        self._listeners: list[Listener] = []

    @classmethod
    def from_config(cls, config: AppConfig) -> "TransactionOrchestrator":
        return cls(
            chain_id=config.chain.chain_id,
            settlement_delay=config.transactions.settlement_delay_seconds,
        )

    def add_listener(self, listener: Listener) -> None:
        """Register a callback for terminal events; sync or async callables."""
        self._listeners.append(listener)

    async def _dispatch(self, job: TransactionJob, event: JobEvent) -> None:
        for listener in self._listeners:
            try:
                result = listener(job, event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Transaction listener failed: %s", e)

    async def _finish(self, job: TransactionJob, event: JobEvent) -> JobEvent | None:
        if not job.announce():
            return None
        await self._dispatch(job, event)
        return event

    async def submit(self, job: TransactionJob) -> AsyncIterator[JobEvent]:
        """Run ``job`` and yield its lifecycle events, ending in one terminal event."""
        if job.status is not JobStatus.IDLE:
            raise ValueError(f"Job '{job.label}' has already been submitted")

        backend = job.backend
        logger.info(
            "Submitting '%s' via %s (%d step(s))", job.label, backend.name, len(job.steps)
        )

        try:
            await backend.request_switch(self.chain_id)

            for index, step in enumerate(job.steps):
                job.current_step_index = index
                sending, awaiting = _STEP_STATUSES[step.kind]

                job.status = sending
                yield JobEvent(job.label, sending, index)

                tx_hash = await backend.send(step.call)
                job.tx_hashes.append(tx_hash)
                job.status = awaiting
                logger.info("'%s' %s sent: %s", job.label, step.kind.value, tx_hash)
                yield JobEvent(job.label, awaiting, index, tx_hash=tx_hash)

                await backend.wait(tx_hash)
                logger.info("'%s' %s confirmed", job.label, step.kind.value)

            if self.settlement_delay > 0:
                await asyncio.sleep(self.settlement_delay)

        except Exception as e:
            failure: TransactionFailure = classify_exception(e)
            job.status = JobStatus.FAILED
            logger.error(
                "'%s' failed at step %d: %s",
                job.label, job.current_step_index, failure.message,
            )
            event = JobEvent(
                job.label,
                JobStatus.FAILED,
                job.current_step_index,
                tx_hash=failure.tx_hash or (job.tx_hashes[-1] if job.tx_hashes else None),
                failure=failure,
                message=failure.message,
            )
            if await self._finish(job, event):
                yield event
            return

        job.status = JobStatus.SUCCEEDED
        logger.info("'%s' succeeded", job.label)
        event = JobEvent(
            job.label,
            JobStatus.SUCCEEDED,
            job.current_step_index,
            tx_hash=job.tx_hashes[-1],
            message=f"{job.label or 'Transaction'} confirmed",
        )
        if await self._finish(job, event):
            yield event

    async def run(self, job: TransactionJob) -> JobEvent:
        """Drain :meth:`submit` and return the terminal event."""
        terminal: JobEvent | None = None
        async for event in self.submit(job):
            if event.terminal:
                terminal = event
        if terminal is None:
            raise RuntimeError(f"Job '{job.label}' ended without a terminal event")
        return terminal
