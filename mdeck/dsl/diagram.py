"""
mdeck/dsl/diagram.py — Diagram mini-language

    ```@diagram
    - Client (icon: user, pos: 0,0)
    - API (icon: server, pos: 1,0)
    - DB (icon: database, pos: 2,0)
    - Client -> API: HTTPS
    - API -> DB: SQL
    ```

Edges may only reference nodes declared on an earlier line. Cycles are
fine; forward or unknown references are not.
"""

from __future__ import annotations

import re
from typing import Optional

from .errors import DiagramError
from .models import DiagramEdge, DiagramGraph, DiagramNode

DIAGRAM_TAG = "@diagram"
ARROW = "->"

RE_ITEM_PREFIX = re.compile(r"^[-+*]\s+")
RE_NODE_META = re.compile(r"^(?P<label>.*?)\s*\((?P<meta>[^()]*)\)\s*$")
RE_ICON = re.compile(r"\bicon\s*:\s*([\w.-]+)")
RE_POS = re.compile(r"\bpos\s*:\s*(-?\d+)\s*,\s*(-?\d+)")
RE_META_KEY = re.compile(r"\b(icon|pos)\s*:")


def parse_diagram(source: str) -> DiagramGraph:
    """Parse diagram source into a graph. Raises DiagramError on invalid input."""
    nodes: list[DiagramNode] = []
    edges: list[DiagramEdge] = []
    declared: set[str] = set()
    occupied: set[tuple[int, int]] = set()

    for lineno, raw in enumerate(source.split("\n"), start=1):
        line = RE_ITEM_PREFIX.sub("", raw.strip())
        if not line or line.startswith("%%"):
            continue

        if ARROW in line:
            edge = _parse_edge(line, lineno)
            for endpoint in (edge.source, edge.target):
                if endpoint not in declared:
                    raise DiagramError(
                        f"edge references undeclared node {endpoint!r}", line=lineno
                    )
            edges.append(edge)
            continue

        node = _parse_node(line, lineno, occupied)
        if node.label in declared:
            raise DiagramError(f"duplicate node label {node.label!r}", line=lineno)
        declared.add(node.label)
        occupied.add((node.col, node.row))
        nodes.append(node)

    return DiagramGraph(nodes=nodes, edges=edges)


def _parse_edge(line: str, lineno: int) -> DiagramEdge:
    source, _, rest = line.partition(ARROW)
    target, sep, label = rest.partition(":")
    source, target = source.strip(), target.strip()
    if not source or not target:
        raise DiagramError(f"malformed edge {line!r}", line=lineno)
    label_text: Optional[str] = label.strip() if sep else None
    return DiagramEdge(source=source, target=target, label=label_text or None)


def _parse_node(line: str, lineno: int, occupied: set[tuple[int, int]]) -> DiagramNode:
    label, icon, pos = line, None, None

    m = RE_NODE_META.match(line)
    if m and RE_META_KEY.search(m.group("meta")):
        label = m.group("label").strip()
        meta = m.group("meta")
        icon_m = RE_ICON.search(meta)
        if icon_m:
            icon = icon_m.group(1)
        if "pos" in meta:
            pos_m = RE_POS.search(meta)
            if not pos_m:
                raise DiagramError(f"invalid position in {meta!r}", line=lineno)
            pos = (int(pos_m.group(1)), int(pos_m.group(2)))

    if not label:
        raise DiagramError("node without a label", line=lineno)

    if pos is None:
        col = 0
        while (col, 0) in occupied:
            col += 1
        pos = (col, 0)

    return DiagramNode(label=label, icon=icon, col=pos[0], row=pos[1])
