"""Blast radius analyzer: impact, single points of failure and critical path across templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from infraref.dependencies import DependencyManager
from infraref.outputs import DEFAULT_NAMESPACE


@dataclass
class TemplateImpact:
    template_id: str
    namespace: str = DEFAULT_NAMESPACE
    direct_dependents: list[str] = field(default_factory=list)
    transitive_dependents: list[str] = field(default_factory=list)
    blast_radius: int = 0  # templates affected by a change here
    is_spof: bool = False  # sole producer of some consumer
    depth: int = 0  # longest producer chain below this template


@dataclass
class AnalysisResult:
    templates: list[TemplateImpact] = field(default_factory=list)
    spofs: list[str] = field(default_factory=list)
    critical_path: list[str] = field(default_factory=list)
    total_templates: int = 0
    max_blast_radius: int = 0
    graph: dict[str, list[str]] = field(default_factory=dict)  # producer -> consumers
    reverse_graph: dict[str, list[str]] = field(default_factory=dict)  # consumer -> producers

    def get(self, template_id: str) -> TemplateImpact | None:
        return next((t for t in self.templates if t.template_id == template_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_templates": self.total_templates,
            "max_blast_radius": self.max_blast_radius,
            "spofs": self.spofs,
            "critical_path": self.critical_path,
            "templates": [
                {
                    "template_id": t.template_id,
                    "namespace": t.namespace,
                    "depth": t.depth,
                    "direct_dependents": t.direct_dependents,
                    "transitive_dependents": t.transitive_dependents,
                    "blast_radius": t.blast_radius,
                    "is_spof": t.is_spof,
                }
                for t in self.templates
            ],
            "graph": self.graph,
        }


class Analyzer:
    """Summarizes the dependency graph of a run for operators."""

    def analyze(self, manager: DependencyManager, template_id: str | None = None) -> AnalysisResult:
        """Analyze every template, or report only ``template_id`` (graph context stays full)."""
        dump = manager.dump()
        namespaces = {n.id: n.namespace for n in dump.nodes}
        ids = [n.id for n in dump.nodes]

        forward: dict[str, list[str]] = {t: [] for t in ids}
        reverse: dict[str, list[str]] = {t: [] for t in ids}
        for edge in dump.edges:
            if edge.consumer not in forward[edge.producer]:
                forward[edge.producer].append(edge.consumer)
                reverse[edge.consumer].append(edge.producer)

        depths = self._depths(manager, ids, reverse)

        impacts = []
        for tid in ids:
            transitive = manager.blast_radius(tid)
            impacts.append(
                TemplateImpact(
                    template_id=tid,
                    namespace=namespaces[tid],
                    direct_dependents=list(forward[tid]),
                    transitive_dependents=sorted(transitive),
                    blast_radius=len(transitive),
                    is_spof=self._is_spof(tid, forward, reverse),
                    depth=depths[tid],
                )
            )

        # stable sort keeps graph insertion order among equal radii
        impacts.sort(key=lambda x: x.blast_radius, reverse=True)

        result = AnalysisResult(
            templates=impacts,
            spofs=[i.template_id for i in impacts if i.is_spof],
            critical_path=self._find_critical_path(impacts, forward),
            total_templates=len(ids),
            max_blast_radius=impacts[0].blast_radius if impacts else 0,
            graph=forward,
            reverse_graph=reverse,
        )

        if template_id:
            filtered = [i for i in impacts if i.template_id == template_id]
            if filtered:
                result.templates = filtered
        return result

    @staticmethod
    def _depths(manager: DependencyManager, ids: list[str], reverse: dict[str, list[str]]) -> dict[str, int]:
        depths: dict[str, int] = {}
        for tid in manager.topological_order(ids):
            producers = reverse.get(tid, [])
            depths[tid] = max((depths[p] + 1 for p in producers), default=0)
        return depths

    @staticmethod
    def _is_spof(tid: str, forward: dict[str, list[str]], reverse: dict[str, list[str]]) -> bool:
        """True if this template is the only producer of any of its consumers."""
        for consumer in forward.get(tid, []):
            if reverse.get(consumer, []) == [tid]:
                return True
        return False

    def _find_critical_path(self, impacts: list[TemplateImpact], forward: dict[str, list[str]]) -> list[str]:
        """Longest chain of consumers, traced greedily from each root by blast radius."""
        if not impacts:
            return []
        impact_map = {i.template_id: i.blast_radius for i in impacts}
        best: list[str] = []
        for impact in impacts:
            path = self._trace_path(impact.template_id, forward, impact_map)
            if len(path) > len(best):
                best = path
        return best

    @staticmethod
    def _trace_path(start: str, forward: dict[str, list[str]], impact_map: dict[str, int]) -> list[str]:
        path = [start]
        visited = {start}
        current = start
        while True:
            unvisited = [d for d in forward.get(current, []) if d not in visited]
            if not unvisited:
                return path
            current = max(unvisited, key=lambda x: impact_map.get(x, 0))
            path.append(current)
            visited.add(current)
