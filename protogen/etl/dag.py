"""
Small DAG engine for ordering the stages of a compile run.

Demonstrates:
- Topological execution (Kahn's algorithm) with declaration order as tiebreak
- Context passing: each stage sees the merged outputs of its upstream stages
- Partial failure: a failed stage marks everything downstream as skipped
- Per-stage timing and a JSON-friendly run summary
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

StageFn = Callable[[dict[str, Any]], "dict[str, Any] | None"]


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Stage:
    """One step of a run and what happened when it executed."""

    name: str
    run_fn: StageFn
    depends_on: list[str] = field(default_factory=list)
    status: StageStatus = StageStatus.PENDING
    output: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    duration_ms: float = 0.0

    def summary(self) -> dict[str, Any]:
        if self.status == StageStatus.SKIPPED:
            return {"status": self.status.value}
        return {
            "status": self.status.value,
            "duration_ms": round(self.duration_ms, 2),
            "error": self.error,
        }


class DAG:
    """
    Stages connected by their dependencies.

    Usage:
        dag = DAG("compile")
        dag.add_stage("build_registry", build_registry)
        dag.add_stage("generate_datatypes", generate_datatypes, depends_on=["build_registry"])
        summary = dag.run({"definitions": definitions})
    """

    def __init__(self, name: str):
        self.name = name
        self.stages: dict[str, Stage] = {}

    def add_stage(
        self, name: str, run_fn: StageFn, depends_on: list[str] | None = None
    ) -> DAG:
        if name in self.stages:
            raise ValueError(f"Duplicate stage name: {name}")
        self.stages[name] = Stage(name=name, run_fn=run_fn, depends_on=list(depends_on or []))
        return self

    def execution_order(self) -> list[str]:
        """Stage names in dependency order; raises ValueError on unknown deps or cycles."""
        dependents: dict[str, list[str]] = {name: [] for name in self.stages}
        remaining: dict[str, int] = {}
        for stage in self.stages.values():
            for dependency in stage.depends_on:
                if dependency not in self.stages:
                    raise ValueError(
                        f"Stage '{stage.name}' depends on unknown stage '{dependency}'"
                    )
                dependents[dependency].append(stage.name)
            remaining[stage.name] = len(stage.depends_on)

        ready = deque(name for name, count in remaining.items() if count == 0)
        order: list[str] = []
        while ready:
            current = ready.popleft()
            order.append(current)
            for dependent in dependents[current]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    ready.append(dependent)

        if len(order) != len(self.stages):
            stuck = sorted(name for name, count in remaining.items() if count > 0)
            raise ValueError(f"Cycle detected between stages: {', '.join(stuck)}")
        return order

    def run(self, initial_context: dict[str, Any] | None = None) -> dict[str, Any]:
        order = self.execution_order()
        context = dict(initial_context or {})
        summary: dict[str, Any] = {"pipeline": self.name, "stages": {}}
        logger.info("Starting '%s' (%d stages)", self.name, len(order))

        for name in order:
            stage = self.stages[name]
            blocked_by = [
                dependency
                for dependency in stage.depends_on
                if self.stages[dependency].status in (StageStatus.FAILED, StageStatus.SKIPPED)
            ]
            if blocked_by:
                stage.status = StageStatus.SKIPPED
                logger.warning("Skipping '%s': upstream %s did not succeed", name, blocked_by)
                summary["stages"][name] = stage.summary()
                continue

            for dependency in stage.depends_on:
                context.update(self.stages[dependency].output)

            stage.status = StageStatus.RUNNING
            started = time.perf_counter()
            try:
                stage.output = stage.run_fn(context) or {}
                stage.status = StageStatus.SUCCESS
            except Exception as exc:
                stage.status = StageStatus.FAILED
                stage.error = f"{type(exc).__name__}: {exc}"
                logger.error("Stage '%s' failed: %s", name, stage.error)
            finally:
                stage.duration_ms = (time.perf_counter() - started) * 1000
            summary["stages"][name] = stage.summary()

        succeeded = all(stage.status == StageStatus.SUCCESS for stage in self.stages.values())
        summary["status"] = "completed" if succeeded else "failed"
        logger.info("Finished '%s': %s", self.name, summary["status"])
        return summary

    def output_of(self, name: str) -> dict[str, Any]:
        return self.stages[name].output
