# src/pipeline/dag_builder.py — v2
"""DAG builder: derive a staged execution plan from agent dependencies.

Produces a topologically sorted plan, restricted to the kinds a job
selects. A dependency on a kind outside the selection is an external
input (an artifact published by an earlier job), not an edge.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from manuscript_pipeline.core.models import PIPELINE_KINDS

logger = logging.getLogger(__name__)


class DAGError(Exception):
    """Raised when DAG construction fails (cycle, unknown kind)."""


@dataclass
class ExecutionPlan:
    """Ordered execution plan for one job.

    stages is a list of "levels": agents within the same level have no
    mutual dependencies and run concurrently. Levels execute sequentially.
    ``external`` lists kinds the plan reads but does not produce.
    """

    stages: list[list[str]] = field(default_factory=list)
    total_agents: int = 0
    external: list[str] = field(default_factory=list)

    @property
    def flat_order(self) -> list[str]:
        """Return a flat topological ordering (no concurrency info)."""
        return [agent for stage in self.stages for agent in stage]

    def next_after(self, kind: str) -> str | None:
        """The stage following ``kind`` in flat order, or None for the last."""
        order = self.flat_order
        index = order.index(kind)
        return order[index + 1] if index + 1 < len(order) else None


def build_dag(
    dependency_map: dict[str, list[str]],
    selected: list[str] | None = None,
) -> ExecutionPlan:
    """Build an execution DAG from agent dependency declarations.

    Uses Kahn's algorithm for topological sort with level detection.
    Each level contains agents whose dependencies are fully resolved
    by previous levels (or lie outside the selection).

    Args:
        dependency_map: agent_name -> list of dependency agent names.
        selected: Agents to plan for; defaults to every agent in the map.

    Raises:
        DAGError: A selected agent is unknown, or a cycle is detected.
    """
    chosen = set(dependency_map) if selected is None else set(selected)
    unknown = sorted(chosen - set(dependency_map))
    if unknown:
        raise DAGError(f"Unknown agent(s): {unknown}")
    if not chosen:
        return ExecutionPlan()

    in_degree: dict[str, int] = {a: 0 for a in chosen}
    dependents: dict[str, list[str]] = {a: [] for a in chosen}
    external: set[str] = set()

    for agent in chosen:
        for dep in dependency_map[agent]:
            if dep in chosen:
                dependents[dep].append(agent)
                in_degree[agent] += 1
            else:
                external.add(dep)

    # Kahn's algorithm with level tracking
    stages: list[list[str]] = []
    queue: list[str] = sorted(a for a, d in in_degree.items() if d == 0)
    processed = 0

    while queue:
        stages.append(queue)
        next_queue: list[str] = []
        for agent in queue:
            processed += 1
            for dependent in dependents[agent]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_queue.append(dependent)
        queue = sorted(next_queue)

    if processed != len(chosen):
        remaining = sorted(a for a in chosen if in_degree[a] > 0)
        raise DAGError(f"Cycle detected involving agents: {remaining}")

    plan = ExecutionPlan(stages=stages, total_agents=processed, external=sorted(external))
    logger.debug(
        "DAG built: %d agents in %d stages -> %s (external: %s)",
        plan.total_agents, len(plan.stages), plan.flat_order, plan.external,
    )
    return plan


def plan_for(
    dependency_map: dict[str, list[str]],
    pipeline: str,
    kinds: list[str] | None = None,
) -> ExecutionPlan:
    """Plan for a pipeline, optionally restricted to ``kinds``.

    Raises:
        DAGError: Unknown pipeline, or a kind the pipeline does not produce.
    """
    if pipeline not in PIPELINE_KINDS:
        raise DAGError(f"Unknown pipeline: {pipeline}")
    members = PIPELINE_KINDS[pipeline]
    if kinds:
        outside = [k for k in kinds if k not in members]
        if outside:
            raise DAGError(f"Pipeline '{pipeline}' does not produce {outside}")
        selected = [k for k in members if k in kinds]
    else:
        selected = list(members)
    return build_dag(dependency_map, selected)
