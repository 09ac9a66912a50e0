"""Render the image dependency graph in the graphviz dot language."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Sequence
from typing import Protocol

GRAPH_DOT = "dib.dot"
GRAPH_PNG = "dib.png"

_HEADER = (
    "digraph images {\n",
    '  rankdir = "LR";\n',
    "  node[fontsize=10, shape=cds, height=0.4];\n",
    "  edge[fontsize=10, arrowhead=vee];\n",
    "\n",
)


class _Image(Protocol):
    name: str
    needs_rebuild: bool


class _Node(Protocol):
    image: _Image

    def children(self) -> Sequence[_Node]: ...


class _Graph(Protocol):
    def walk(self, visit: Callable[[_Node], None]) -> None: ...


def generate_raw_output(graph: _Graph | None) -> str:
    """Return the dot language source describing the graph."""
    lines = list(_HEADER)
    if graph is not None:

        def visit(node: _Node) -> None:
            image = node.image
            color = "red" if image.needs_rebuild else "white"
            lines.append(f'  "{image.name}" [fillcolor={color}, style=filled];\n')
            lines.extend(
                f'  "{image.name}" -> "{child.image.name}" [dir=forward];\n'
                for child in node.children()
            )

        graph.walk(visit)
    lines.append("}\n")
    return "".join(lines)


def generate_graph(graph: _Graph | None, report_root_dir: str) -> None:
    """Write dib.dot into the report directory and render it to dib.png with dot."""
    dot_file = os.path.join(report_root_dir, GRAPH_DOT)
    with open(dot_file, "w", encoding="utf-8") as handle:
        handle.write(generate_raw_output(graph))
    subprocess.run(
        ["dot", "-Tpng", GRAPH_DOT, "-o", GRAPH_PNG],
        cwd=report_root_dir,
        check=True,
        capture_output=True,
    )