"""
Claim dependency graph: cascade propagation and left-to-right layout
"""

import logging
from collections import deque
from itertools import islice
from typing import Dict, List, Mapping, Optional, Sequence

import networkx as nx

from .models import (
    AuditSentence,
    ClaimEdge,
    ClaimGraph,
    ClaimNode,
    ClaimStatus,
    NodeStatus,
)

logger = logging.getLogger(__name__)

# Layout grid
PADDING_X = 220
PADDING_Y = 100
OFFSET_X = 100
OFFSET_Y = 60

# Upper bound on the elementary cycles listed on ClaimGraph.cycles
MAX_REPORTED_CYCLES = 50


def build_dependency_digraph(
    claim_ids: Sequence[str],
    dependencies: Mapping[str, Sequence[str]]
) -> nx.DiGraph:
    """
    Directed graph with an edge upstream -> dependent for each dependency

    Unknown ids and duplicate dependencies are ignored.
    """
    g = nx.DiGraph()
    for claim_id in claim_ids:
        g.add_node(claim_id)
    for claim_id in claim_ids:
        for upstream in dependencies.get(claim_id, ()):
            if upstream in g and claim_id in g and not g.has_edge(upstream, claim_id):
                g.add_edge(upstream, claim_id, cascade=False)
    return g


def propagate_cascade(g: nx.DiGraph, contradicted: Sequence[str]) -> Dict[str, str]:
    """
    Multi-source BFS from every contradicted claim

    Marks traversed edges as cascade. A dependent that is not contradicted
    itself becomes a cascade node and the search continues from it; a
    contradicted dependent keeps its status but the edge into it is still
    marked.

    Returns:
        cascade node id -> id of the node that propagated to it
    """
    originally_contradicted = set(contradicted)
    visited = set(contradicted)
    queue = deque(contradicted)
    sources: Dict[str, str] = {}

    while queue:
        current = queue.popleft()
        for child in g.successors(current):
            if child in originally_contradicted:
                g.edges[current, child]['cascade'] = True
            elif child not in visited:
                g.edges[current, child]['cascade'] = True
                sources[child] = current
                visited.add(child)
                queue.append(child)
    return sources


def compute_depths(g: nx.DiGraph) -> Dict[str, int]:
    """
    Longest-path depth of every node, for layout only

    Kahn-style relaxation from the zero in-degree roots. Nodes the pass
    never settles (members of a cycle and their descendants) keep the
    deepest value relaxed into them, or 0 when none was.
    """
    remaining = dict(g.in_degree())
    depths: Dict[str, int] = {}
    queue = deque(n for n in g.nodes if remaining[n] == 0)
    for n in queue:
        depths[n] = 0

    while queue:
        current = queue.popleft()
        for child in g.successors(current):
            remaining[child] -= 1
            depths[child] = max(depths.get(child, 0), depths[current] + 1)
            if remaining[child] == 0:
                queue.append(child)

    return {n: depths.get(n, 0) for n in g.nodes}


def find_cycles(
    g: nx.DiGraph,
    order: Sequence[str],
    limit: int = MAX_REPORTED_CYCLES
) -> List[List[str]]:
    """
    Elementary cycles, each rotated to start at its earliest claim

    Enumeration stops after `limit` cycles, so a dense cyclic dependency
    map is reported in bounded time.
    """
    position = {claim_id: i for i, claim_id in enumerate(order)}
    cycles = []
    for cycle in islice(nx.simple_cycles(g), limit):
        start = min(range(len(cycle)), key=lambda i: position[cycle[i]])
        cycles.append(cycle[start:] + cycle[:start])
    cycles.sort(key=lambda c: [position[n] for n in c])
    return cycles


def layout(nodes: Sequence[ClaimNode]) -> None:
    """Place nodes in columns by depth, each column centred on OFFSET_Y"""
    columns: Dict[int, List[ClaimNode]] = {}
    for node in nodes:
        columns.setdefault(node.depth, []).append(node)

    for depth, group in columns.items():
        start_y = -(len(group) - 1) * PADDING_Y / 2 + OFFSET_Y
        for i, node in enumerate(group):
            node.x = float(depth * PADDING_X + OFFSET_X)
            node.y = float(start_y + i * PADDING_Y)


def build_claim_graph(
    sentences: Sequence[AuditSentence],
    dependencies: Optional[Mapping[str, Sequence[str]]] = None
) -> ClaimGraph:
    """
    Build the claim dependency graph and propagate contradictions

    Args:
        sentences: Verified claims
        dependencies: claim id -> ids of the upstream claims it depends on

    Returns:
        ClaimGraph with effective statuses, cascade edges, depths and layout.
        Cycles are tolerated and reported on ClaimGraph.cycles.
    """
    dependencies = dependencies or {}
    claim_ids = [s.id for s in sentences]
    g = build_dependency_digraph(claim_ids, dependencies)

    contradicted = [s.id for s in sentences if s.status == ClaimStatus.CONTRADICTED]
    sources = propagate_cascade(g, contradicted)
    depths = compute_depths(g)

    cycles = find_cycles(g, claim_ids)
    if cycles:
        logger.warning(
            "graph.cycles count=%d%s first=%s",
            len(cycles), "+" if len(cycles) >= MAX_REPORTED_CYCLES else "", "->".join(cycles[0])
        )

    # contradicted claims that propagated a cascade to at least one dependent
    root_causes = set(sources.values()) & set(contradicted)

    nodes = []
    for i, s in enumerate(sentences):
        cascade_source = sources.get(s.id)
        nodes.append(ClaimNode(
            id=s.id,
            label=f"C{i + 1}",
            text=s.text,
            original_status=s.status,
            effective_status=NodeStatus.CASCADE if cascade_source else NodeStatus.from_claim_status(s.status),
            confidence=s.confidence,
            depends_on=list(g.predecessors(s.id)),
            cascade_source=cascade_source,
            is_root_cause=s.id in root_causes,
            depth=depths[s.id]
        ))
    layout(nodes)

    edges = [
        ClaimEdge(source=u, target=v, is_cascade=bool(data.get('cascade')))
        for u, v, data in g.edges(data=True)
    ]
    logger.debug(
        "graph.built nodes=%d edges=%d cascades=%d",
        len(nodes), len(edges), len(sources)
    )
    return ClaimGraph(nodes=nodes, edges=edges, cycles=cycles)


def trace_root_cause(graph: ClaimGraph, node_id: str) -> List[str]:
    """
    Follow cascade sources back to the contradicted claim

    Returns:
        Path from the root cause to node_id; [node_id] when it is not a cascade
    """
    path = [node_id]
    node = graph.node(node_id)
    while node is not None and node.cascade_source and node.cascade_source not in path:
        path.append(node.cascade_source)
        node = graph.node(node.cascade_source)
    return list(reversed(path))
