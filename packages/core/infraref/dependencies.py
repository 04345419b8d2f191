"""Remote-state dependency manager: the cross-template dependency graph.

Nodes are template ids; an edge ``consumer -> producer`` records that the
consumer reads one named output of the producer. The graph is kept acyclic:
every insertion is checked before it happens, never after.

Edges start PENDING when the producer has not frozen its outputs yet and
settle to RESOLVED or FAILED when it does. RESOLVED and FAILED are terminal.
"""

from __future__ import annotations

import heapq
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from infraref.errors import (
    CyclicDependencyError,
    DependencyError,
    InvalidEdgeTransition,
    SelfDependencyError,
    UnresolvedOutputError,
    format_path,
)
from infraref.outputs import DEFAULT_NAMESPACE, OutputRegistry

logger = logging.getLogger(__name__)


class EdgeState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


_TRANSITIONS = {
    EdgeState.PENDING: {EdgeState.RESOLVED, EdgeState.FAILED},
    EdgeState.RESOLVED: set(),
    EdgeState.FAILED: set(),
}


@dataclass(eq=False)
class DependencyEdge:
    consumer: str
    producer: str
    output_name: str
    state: EdgeState = EdgeState.PENDING
    error: str = ""

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.consumer, self.producer, self.output_name)

    @property
    def resolved(self) -> bool:
        return self.state is EdgeState.RESOLVED

    @property
    def pending(self) -> bool:
        return self.state is EdgeState.PENDING

    def _transition(self, target: EdgeState, error: str = "") -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidEdgeTransition(self, target)
        self.state = target
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        return {
            "consumer": self.consumer,
            "producer": self.producer,
            "output": self.output_name,
            "state": self.state.value,
            "error": self.error,
        }

    def __str__(self) -> str:
        return f"{self.consumer} -> {self.producer}.{self.output_name}"

    def __repr__(self) -> str:
        return f"DependencyEdge({self}, {self.state.value})"


@dataclass
class GraphNode:
    id: str
    namespace: str = DEFAULT_NAMESPACE
    frozen: bool = False


@dataclass
class GraphDump:
    """Full node/edge listing for rendering and operator tooling."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[DependencyEdge] = field(default_factory=list)

    def namespaces(self) -> list[str]:
        return list(dict.fromkeys(n.namespace for n in self.nodes))

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [{"id": n.id, "namespace": n.namespace, "frozen": n.frozen} for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


class DependencyManager:
    """Maintains the template dependency graph for one run.

    All mutations and reads go through one re-entrant lock, so a reader sees an
    edge either fully inserted or not at all.
    """

    def __init__(self, outputs: OutputRegistry | None = None):
        self.outputs = outputs if outputs is not None else OutputRegistry()
        self._lock = threading.RLock()
        # ordered set of template ids
        self._nodes: dict[str, None] = {}
        self._edges: dict[tuple[str, str, str], DependencyEdge] = {}
        # consumer -> {producer -> [edges]}
        self._producers: dict[str, dict[str, list[DependencyEdge]]] = {}
        # producer -> {consumer -> [edges]}
        self._consumers: dict[str, dict[str, list[DependencyEdge]]] = {}
        self.outputs.on_freeze(self._on_freeze)

    # --- mutation ---

    def add_template(self, template_id: str) -> None:
        """Make a template a node of the graph, even without edges."""
        with self._lock:
            self._nodes.setdefault(template_id, None)

    def depend_on(self, consumer: str, producer: str, output_name: str) -> DependencyEdge:
        """Record that ``consumer`` reads ``output_name`` from ``producer``.

        Returns the edge, RESOLVED if the producer is already frozen and has the
        output, PENDING if the producer has not frozen yet. Repeating a
        declaration returns the existing edge.
        """
        if consumer == producer:
            raise SelfDependencyError(consumer, output_name)

        with self._lock:
            existing = self._edges.get((consumer, producer, output_name))
            if existing is not None:
                return existing

            back_path = self._find_path(producer, consumer)
            if back_path is not None:
                cycle = back_path + [producer]
                logger.debug("Rejected %s -> %s: cycle %s", consumer, producer, format_path(cycle))
                raise CyclicDependencyError(cycle)

            if self.outputs.is_frozen(producer):
                if not self.outputs.has_output(producer, output_name):
                    raise UnresolvedOutputError([(consumer, producer, output_name)], reason="not declared by frozen template")
                edge = DependencyEdge(consumer, producer, output_name, EdgeState.RESOLVED)
            else:
                edge = DependencyEdge(consumer, producer, output_name, EdgeState.PENDING)

            self._insert(edge)

        logger.debug("Added edge %s (%s)", edge, edge.state.value)
        return edge

    def depend_on_many(self, consumer: str, requirements: Iterable[tuple[str, str]]) -> list[DependencyEdge]:
        """Declare several ``(producer, output_name)`` dependencies atomically.

        Every requirement is checked before any edge is inserted, so a failure
        leaves the graph untouched.
        """
        wanted = list(dict.fromkeys(requirements))
        with self._lock:
            for producer, output_name in wanted:
                if producer == consumer:
                    raise SelfDependencyError(consumer, output_name)
                if (consumer, producer, output_name) in self._edges:
                    continue
                back_path = self._find_path(producer, consumer)
                if back_path is not None:
                    raise CyclicDependencyError(back_path + [producer])
                if self.outputs.is_frozen(producer) and not self.outputs.has_output(producer, output_name):
                    raise UnresolvedOutputError([(consumer, producer, output_name)], reason="not declared by frozen template")
            return [self.depend_on(consumer, producer, output_name) for producer, output_name in wanted]

    def remove_template(self, template_id: str) -> None:
        """Tear down a template that nothing else depends on."""
        with self._lock:
            consumers = [c for c in self._consumers.get(template_id, {}) if c != template_id]
            if consumers:
                raise DependencyError(
                    f"Cannot remove template {template_id!r}: consumed by {', '.join(sorted(consumers))}"
                )
            for producer, edges in self._producers.pop(template_id, {}).items():
                self._consumers.get(producer, {}).pop(template_id, None)
                for edge in edges:
                    self._edges.pop(edge.key, None)
            self._consumers.pop(template_id, None)
            self._nodes.pop(template_id, None)
        self.outputs.discard(template_id)
        logger.info("Removed template %s from the dependency graph", template_id)

    def _insert(self, edge: DependencyEdge) -> None:
        self._nodes.setdefault(edge.consumer, None)
        self._nodes.setdefault(edge.producer, None)
        self._edges[edge.key] = edge
        self._producers.setdefault(edge.consumer, {}).setdefault(edge.producer, []).append(edge)
        self._consumers.setdefault(edge.producer, {}).setdefault(edge.consumer, []).append(edge)

    def _restore_edge(self, edge: DependencyEdge) -> None:
        """Insert a persisted edge, keeping its state. Still refuses cycles."""
        if edge.consumer == edge.producer:
            raise SelfDependencyError(edge.consumer, edge.output_name)
        with self._lock:
            back_path = self._find_path(edge.producer, edge.consumer)
            if back_path is not None:
                raise CyclicDependencyError(back_path + [edge.producer])
            self._insert(edge)

    def _on_freeze(self, template_id: str) -> None:
        """Settle every pending edge that targets a freshly frozen producer."""
        failed: list[DependencyEdge] = []
        with self._lock:
            for edges in self._consumers.get(template_id, {}).values():
                for edge in edges:
                    if not edge.pending:
                        continue
                    if self.outputs.has_output(template_id, edge.output_name):
                        edge._transition(EdgeState.RESOLVED)
                    else:
                        edge._transition(
                            EdgeState.FAILED,
                            f"output {edge.output_name!r} not declared by {template_id!r}",
                        )
                        failed.append(edge)
        if failed:
            for edge in failed:
                logger.warning("Dependency %s failed: %s", edge, edge.error)
            raise UnresolvedOutputError([e.key for e in failed], reason="not declared by frozen template")

    # --- queries ---

    def _find_path(self, start: str, goal: str) -> list[str] | None:
        """Shortest depends-on path from start to goal (inclusive), BFS over producers."""
        if start == goal:
            return [start]
        parents: dict[str, str] = {}
        visited = {start}
        queue = deque([start])
        while queue:
            node = queue.popleft()
            for producer in self._producers.get(node, {}):
                if producer in visited:
                    continue
                parents[producer] = node
                if producer == goal:
                    path = [goal]
                    while path[-1] != start:
                        path.append(parents[path[-1]])
                    return list(reversed(path))
                visited.add(producer)
                queue.append(producer)
        return None

    def blast_radius(self, template_id: str) -> set[str]:
        """Every template that depends on ``template_id``, directly or transitively."""
        with self._lock:
            return self._walk(template_id, self._consumers)

    def dependencies_of(self, template_id: str) -> set[str]:
        """Every template ``template_id`` depends on, directly or transitively."""
        with self._lock:
            return self._walk(template_id, self._producers)

    @staticmethod
    def _walk(start: str, adjacency: dict[str, dict[str, list[DependencyEdge]]]) -> set[str]:
        visited: set[str] = set()
        queue = deque(adjacency.get(start, {}))
        while queue:
            node = queue.popleft()
            if node in visited or node == start:
                continue
            visited.add(node)
            queue.extend(adjacency.get(node, {}))
        return visited

    def direct_consumers(self, template_id: str) -> list[str]:
        with self._lock:
            return list(self._consumers.get(template_id, {}))

    def direct_producers(self, template_id: str) -> list[str]:
        with self._lock:
            return list(self._producers.get(template_id, {}))

    def edges(
        self,
        consumer: str | None = None,
        producer: str | None = None,
        state: EdgeState | None = None,
    ) -> list[DependencyEdge]:
        with self._lock:
            return [
                e
                for e in self._edges.values()
                if (consumer is None or e.consumer == consumer)
                and (producer is None or e.producer == producer)
                and (state is None or e.state is state)
            ]

    def get_edge(self, consumer: str, producer: str, output_name: str) -> DependencyEdge | None:
        with self._lock:
            return self._edges.get((consumer, producer, output_name))

    def pending_edges(self) -> list[DependencyEdge]:
        return self.edges(state=EdgeState.PENDING)

    def failed_edges(self) -> list[DependencyEdge]:
        return self.edges(state=EdgeState.FAILED)

    def templates(self) -> list[str]:
        with self._lock:
            return list(self._nodes)

    def topological_order(self, templates: Iterable[str] | None = None) -> list[str]:
        """Evaluation order where every producer precedes its consumers.

        Only edges between the given templates count. Among templates that are
        ready at the same time, input order wins, so the result is stable.
        """
        with self._lock:
            order = list(dict.fromkeys(self._nodes if templates is None else templates))
            index = {t: i for i, t in enumerate(order)}
            indegree = {t: 0 for t in order}
            successors: dict[str, list[str]] = {t: [] for t in order}
            for consumer in order:
                for producer in self._producers.get(consumer, {}):
                    if producer in index:
                        indegree[consumer] += 1
                        successors[producer].append(consumer)

        ready = [index[t] for t in order if indegree[t] == 0]
        heapq.heapify(ready)
        result: list[str] = []
        while ready:
            node = order[heapq.heappop(ready)]
            result.append(node)
            for consumer in successors[node]:
                indegree[consumer] -= 1
                if indegree[consumer] == 0:
                    heapq.heappush(ready, index[consumer])

        if len(result) < len(order):
            placed = set(result)
            remaining = [t for t in order if t not in placed]
            raise CyclicDependencyError(self._cycle_among(remaining))
        return result

    def _cycle_among(self, remaining: list[str]) -> list[str]:
        """Follow producers inside ``remaining`` until a node repeats."""
        members = set(remaining)
        path = [remaining[0]]
        seen = {remaining[0]: 0}
        with self._lock:
            while True:
                current = path[-1]
                nxt = next(p for p in self._producers.get(current, {}) if p in members)
                if nxt in seen:
                    return path[seen[nxt] :] + [nxt]
                seen[nxt] = len(path)
                path.append(nxt)

    def check_consumer(self, template_id: str) -> None:
        """Raise if any dependency of ``template_id`` has failed."""
        failed = self.edges(consumer=template_id, state=EdgeState.FAILED)
        if failed:
            raise UnresolvedOutputError([e.key for e in failed], reason="producer froze without it")

    def assert_complete(self) -> None:
        """End-of-run check: pending edges (producer never frozen) are fatal, as are failed ones."""
        pending = self.pending_edges()
        failed = self.failed_edges()
        if pending:
            raise UnresolvedOutputError([e.key for e in pending + failed], reason="producer never frozen")
        if failed:
            raise UnresolvedOutputError([e.key for e in failed], reason="not declared by frozen template")

    def dump(self) -> GraphDump:
        with self._lock:
            nodes = [
                GraphNode(
                    id=t,
                    namespace=self.outputs.namespace_of(t) or DEFAULT_NAMESPACE,
                    frozen=self.outputs.is_frozen(t),
                )
                for t in self._nodes
            ]
            return GraphDump(nodes=nodes, edges=list(self._edges.values()))
