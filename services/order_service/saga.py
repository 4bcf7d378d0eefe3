"""
Minimal saga runner.

Steps run in order against a shared ``ctx`` dict. When one raises, the
compensations of the steps that already completed run newest first, and the
original exception propagates. A compensation that fails is logged for manual
follow-up; it never replaces the original error or stops the other
compensations.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from shared.observability import ecomm_saga_compensation_total

logger = structlog.get_logger(__name__)

SagaAction = Callable[[dict], Awaitable[None]]


@dataclass
class SagaStep:
    name: str
    action: SagaAction
    compensation: Optional[SagaAction] = None


class SagaOrchestrator:
    def __init__(self, name: str = "saga"):
        self.name = name
        self.steps: list[SagaStep] = []

    def add_step(self, name: str, action: SagaAction, compensation: Optional[SagaAction] = None):
        self.steps.append(SagaStep(name, action, compensation))
        return self

    async def execute(self, ctx: dict) -> dict:
        completed: list[SagaStep] = []
        for step in self.steps:
            try:
                await step.action(ctx)
            except Exception as exc:
                logger.error(
                    "saga_step_failed",
                    saga=self.name,
                    step=step.name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                await self._compensate(completed, ctx)
                raise
            completed.append(step)
        return ctx

    async def _compensate(self, completed: list[SagaStep], ctx: dict):
        undoable = [step for step in reversed(completed) if step.compensation is not None]
        if not undoable:
            return
        logger.info("saga_compensation_started", saga=self.name, steps=[s.name for s in undoable])
        for step in undoable:
            try:
                await step.compensation(ctx)
            except Exception as exc:
                logger.critical(
                    "saga_compensation_failed",
                    saga=self.name,
                    step=step.name,
                    error=str(exc),
                    manual_intervention=True,
                )
                continue
            ecomm_saga_compensation_total.labels(step_name=step.name).inc()
            logger.info("saga_compensation_succeeded", saga=self.name, step=step.name)
