"""
PURPOSE: Orders strategy-graph nodes so every producer precedes its consumers.

Depth-first post-order over the "target depends on source" adjacency. Roots
are visited in input order and dependencies in edge order, so nodes with no
dependency relationship keep their input order and repeated runs on the same
graph give the same sequence.

Only called after GraphValidator has confirmed the graph is acyclic. On a
cyclic graph the traversal still terminates, but the order is meaningless.

CALLED BY:
    - compiler/generator.py
"""

from typing import Dict, List, Sequence, Set, Tuple

from pinegraph.compiler.validator import build_dependency_graph
from pinegraph.schemas.graph import Edge, Node


class DependencyResolver:
    """
    PURPOSE: Topological sort of graph nodes.

    Stateless; safe to share.
    """

    def resolve(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> List[Node]:
        """
        PURPOSE: Return the nodes in dependency order.

        Args:
            nodes: Graph nodes in input order.
            edges: Graph edges in input order.

        Returns:
            List[Node]: Nodes such that for every edge source -> target, source
                comes before target.
        """
        graph = build_dependency_graph(nodes, edges)
        by_id: Dict[str, Node] = {}
        for node in nodes:
            by_id.setdefault(node.id, node)

        visited: Set[str] = set()
        ordered: List[Node] = []

        for node in nodes:
            if node.id in visited:
                continue
            visited.add(node.id)
            stack: List[Tuple[str, int]] = [(node.id, 0)]

            while stack:
                node_id, next_index = stack[-1]
                dependencies = graph.get(node_id, [])
                if next_index < len(dependencies):
                    stack[-1] = (node_id, next_index + 1)
                    dep = dependencies[next_index]
                    if dep not in visited:
                        visited.add(dep)
                        stack.append((dep, 0))
                else:
                    stack.pop()
                    ordered.append(by_id[node_id])

        return ordered
