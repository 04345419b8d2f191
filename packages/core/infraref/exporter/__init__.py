"""Render the dependency graph for operators."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from infraref.dependencies import DependencyManager

FORMATS = ("mermaid", "json")


def export_graph(
    manager: DependencyManager,
    fmt: str = "mermaid",
    output: str | None = None,
    highlight: str | None = None,
) -> str:
    """Render the graph of ``manager`` in ``fmt``. Writes to ``output`` if given."""
    fmt = fmt.lower().strip()

    if fmt == "mermaid":
        from infraref.exporter.mermaid import render

        content = render(manager.dump(), impacted=manager.blast_radius(highlight) if highlight else None)
    elif fmt == "json":
        import json

        content = json.dumps(manager.dump().to_dict(), indent=2)
    else:
        raise ValueError(f"Unknown format: {fmt!r}. Choose from: {', '.join(FORMATS)}")

    if output:
        Path(output).write_text(content)
    return content
