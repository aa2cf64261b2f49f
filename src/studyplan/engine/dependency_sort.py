"""Prerequisite ordering of a course's topics.

Kahn's algorithm over same-course edges. Ready topics are served in
ascending ``order_index`` (input position breaks ties). Topics that never
become ready sit on, or downstream of, a prerequisite cycle. They are
grouped into strongly connected components and appended in topological
order of those components, ``order_index`` order inside each. Only edges
inside a cycle that now point forward are reported as relaxed, so the
scheduler never waits on them forever and still waits on every other edge.
"""

from __future__ import annotations

import logging
from bisect import insort
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyOrder:
    topics: list[dict[str, Any]]
    has_cycles: bool = False
    cyclic_topic_ids: list[str] = field(default_factory=list)
    # (dependent_id, prerequisite_id) pairs whose prerequisite is placed later.
    relaxed_edges: frozenset[tuple[str, str]] = frozenset()


def _order_key(topic: dict[str, Any]) -> tuple[int, int]:
    return (int(topic.get("order_index") or 0), int(topic.get("position") or 0))


def same_course_prerequisites(topic: dict[str, Any], topic_ids: set[str] | dict[str, Any]) -> list[str]:
    """Distinct prerequisite ids present in ``topic_ids``, self references dropped."""
    topic_id = topic.get("topic_id")
    seen: list[str] = []
    for prereq in topic.get("prerequisite_ids") or []:
        if prereq == topic_id or prereq not in topic_ids or prereq in seen:
            continue
        seen.append(prereq)
    return seen


def sort_topics_by_dependencies(topics: list[dict[str, Any]]) -> DependencyOrder:
    """Return every topic exactly once, prerequisites first where possible."""
    by_id = {str(topic["topic_id"]): topic for topic in topics}
    in_degree = {topic_id: 0 for topic_id in by_id}
    dependents: dict[str, list[str]] = {topic_id: [] for topic_id in by_id}
    prerequisites: dict[str, list[str]] = {}

    for topic_id, topic in by_id.items():
        prerequisites[topic_id] = same_course_prerequisites(topic, by_id)
        for prereq in prerequisites[topic_id]:
            in_degree[topic_id] += 1
            dependents[prereq].append(topic_id)

    queue = sorted((topic for topic_id, topic in by_id.items() if in_degree[topic_id] == 0), key=_order_key)
    ordered: list[dict[str, Any]] = []
    while queue:
        current = queue.pop(0)
        ordered.append(current)
        for dependent_id in dependents[str(current["topic_id"])]:
            in_degree[dependent_id] -= 1
            if in_degree[dependent_id] == 0:
                insort(queue, by_id[dependent_id], key=_order_key)

    if len(ordered) == len(by_id):
        return DependencyOrder(topics=ordered)

    emitted = {str(topic["topic_id"]) for topic in ordered}
    remainder = [topic_id for topic_id in by_id if topic_id not in emitted]
    components = _strongly_connected(remainder, prerequisites)
    cyclic_ids = [
        str(topic["topic_id"])
        for topic in sorted(
            (by_id[topic_id] for component in components if len(component) > 1 for topic_id in component),
            key=_order_key,
        )
    ]
    logger.warning("Prerequisite cycle among topics %s; ordering them by order_index.", ", ".join(cyclic_ids))

    ordered.extend(_order_components(components, by_id, prerequisites))
    position = {str(topic["topic_id"]): idx for idx, topic in enumerate(ordered)}
    component_of = {topic_id: idx for idx, component in enumerate(components) for topic_id in component}
    relaxed = frozenset(
        (topic_id, prereq)
        for topic_id in remainder
        for prereq in prerequisites[topic_id]
        if component_of.get(prereq) == component_of[topic_id] and position[prereq] > position[topic_id]
    )
    return DependencyOrder(
        topics=ordered,
        has_cycles=True,
        cyclic_topic_ids=cyclic_ids,
        relaxed_edges=relaxed,
    )


def _reachable(start: str, edges: dict[str, list[str]], nodes: set[str]) -> set[str]:
    seen = {start}
    stack = [start]
    while stack:
        for nxt in edges[stack.pop()]:
            if nxt in nodes and nxt not in seen:
                seen.add(nxt)
                stack.append(nxt)
    return seen


def _strongly_connected(remainder: list[str], prerequisites: dict[str, list[str]]) -> list[frozenset[str]]:
    """Group the topics left over by Kahn into mutually reachable sets."""
    nodes = set(remainder)
    reach = {topic_id: _reachable(topic_id, prerequisites, nodes) for topic_id in remainder}
    components: list[frozenset[str]] = []
    assigned: set[str] = set()
    for topic_id in remainder:
        if topic_id in assigned:
            continue
        component = frozenset(other for other in reach[topic_id] if topic_id in reach[other])
        assigned |= component
        components.append(component)
    return components


def _order_components(
    components: list[frozenset[str]],
    by_id: dict[str, dict[str, Any]],
    prerequisites: dict[str, list[str]],
) -> list[dict[str, Any]]:
    """Topological order of the condensed graph; order_index inside a component."""
    component_of = {topic_id: idx for idx, component in enumerate(components) for topic_id in component}
    members = [sorted((by_id[topic_id] for topic_id in component), key=_order_key) for component in components]
    waiting: list[set[int]] = [set() for _ in components]
    unlocks: list[set[int]] = [set() for _ in components]
    for idx, component in enumerate(components):
        for topic_id in component:
            for prereq in prerequisites[topic_id]:
                source = component_of.get(prereq)
                if source is not None and source != idx:
                    waiting[idx].add(source)
                    unlocks[source].add(idx)

    def component_key(idx: int) -> tuple[int, int]:
        return _order_key(members[idx][0])

    ready = sorted((idx for idx in range(len(components)) if not waiting[idx]), key=component_key)
    result: list[dict[str, Any]] = []
    while ready:
        current = ready.pop(0)
        result.extend(members[current])
        for idx in unlocks[current]:
            waiting[idx].discard(current)
            if not waiting[idx]:
                insort(ready, idx, key=component_key)
    return result
