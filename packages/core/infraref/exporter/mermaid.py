"""Mermaid flowchart exporter for the template dependency graph."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from infraref.dependencies import GraphDump

_CLASSDEFS = """\
    classDef frozen fill:#1e293b,stroke:#10b981,color:#f8fafc
    classDef open fill:#1e293b,stroke:#f59e0b,color:#f8fafc
    classDef impacted fill:#1e293b,stroke:#ef4444,color:#f8fafc"""

_LINK_STYLES = {
    "resolved": "stroke:#475569,stroke-width:2px",
    "pending": "stroke:#f59e0b,stroke-width:2px",
    "failed": "stroke:#ef4444,stroke-width:2px",
}


def _safe_id(raw: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_]", "_", raw)


def _node_ids(template_ids: Iterable[str]) -> dict[str, str]:
    """Unique mermaid ids; `net-a` and `net_a` must not share a node."""
    ids: dict[str, str] = {}
    used: set[str] = set()
    for raw in template_ids:
        base = candidate = _safe_id(raw)
        n = 2
        while candidate in used:
            candidate = f"{base}_{n}"
            n += 1
        used.add(candidate)
        ids[raw] = candidate
    return ids


def render(dump: "GraphDump", impacted: Iterable[str] | None = None) -> str:
    """Flowchart with producers on the left, one subgraph per namespace.

    Arrows point from producer to consumer. Pending edges are dashed.
    Templates in ``impacted`` (typically a blast radius) get their own class.
    """
    impacted = set(impacted or ())
    node_ids = _node_ids([n.id for n in dump.nodes])
    lines: list[str] = ["flowchart LR"]
    lines.append(_CLASSDEFS)

    for namespace in dump.namespaces():
        lines.append(f'    subgraph "{namespace}"')
        for node in dump.nodes:
            if node.namespace != namespace:
                continue
            node_id = node_ids[node.id]
            css = "impacted" if node.id in impacted else ("frozen" if node.frozen else "open")
            lines.append(f"        {node_id}[{node.id}]")
            lines.append(f"        class {node_id} {css}")
        lines.append("    end")

    if dump.edges:
        lines.append("")

    for edge in dump.edges:
        src = node_ids[edge.producer]
        tgt = node_ids[edge.consumer]
        arrow = "-.->" if edge.pending else "-->"
        lines.append(f"    {src} {arrow}|{edge.output_name}| {tgt}")

    for i, edge in enumerate(dump.edges):
        lines.append(f"    linkStyle {i} {_LINK_STYLES[edge.state.value]}")

    return "\n".join(lines)
