# core/sparse/connectivity.py
"""
Derive a block sparsity pattern from element connectivity.

Every element couples all of its nodes with each other, so the pattern is the
union of one dense node clique per element.  Each node also couples to
itself, which guarantees that every block row owns its diagonal block (the
Dirichlet elimination in BSRMat.zero_rows relies on it).
"""
from typing import Iterable, List, Sequence

import networkx as nx
import numpy as np

from core.exceptions import PatternError
from core.sparse.pattern import BlockPattern, INDEX_DTYPE
from utils.logging_config import get_logger

logger = get_logger(__name__)


def connectivity_graph(nnodes: int, elements: Iterable[Sequence[int]]) -> nx.Graph:
    """
    Build the node adjacency graph of a mesh.

    Raises:
        PatternError if an element references a node outside [0, nnodes).
    """
    graph = nx.Graph()
    graph.add_nodes_from(range(nnodes))

    for k, elem in enumerate(elements):
        nodes = [int(n) for n in elem]
        bad = [n for n in nodes if n < 0 or n >= nnodes]
        if bad:
            raise PatternError(f"Element {k} references nodes {bad} outside [0, {nnodes})")
        # Full clique for a dense element matrix
        for i in range(len(nodes)):
            for j in range(i + 1, len(nodes)):
                if nodes[i] != nodes[j]:
                    graph.add_edge(nodes[i], nodes[j])
    return graph


def pattern_from_connectivity(nnodes: int, elements: Iterable[Sequence[int]]) -> BlockPattern:
    """
    Return the square BlockPattern (nnodes x nnodes blocks) touched by the
    given elements.  Columns are sorted ascending inside each row and the
    diagonal block is always present.
    """
    elements = [list(e) for e in elements]
    graph = connectivity_graph(nnodes, elements)

    rowp: List[int] = [0]
    cols: List[int] = []
    for node in range(nnodes):
        row = sorted(set(graph.neighbors(node)) | {node})
        cols.extend(row)
        rowp.append(len(cols))

    logger.debug("Pattern from %d elements: %d block rows, %d blocks",
                 len(elements), nnodes, len(cols))
    return BlockPattern(
        nbrows=nnodes,
        nbcols=nnodes,
        rowp=np.asarray(rowp, dtype=INDEX_DTYPE),
        cols=np.asarray(cols, dtype=INDEX_DTYPE),
    )
