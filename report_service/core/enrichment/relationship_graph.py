"""
Foreign-key graph over the schema for join path discovery
"""
import logging
from typing import Any, Dict, List, Tuple

import networkx as nx

from ...models import Relationship

logger = logging.getLogger(__name__)

JoinPath = List[Dict[str, Any]]


class RelationshipGraph:
    """
    Directed multigraph of table relationships.

    Every foreign key adds a ``direct`` edge from the referencing table to
    the referenced table and an ``inverse`` edge back. Path lookups are
    cached per (source, target, max_depth); the graph is not modified after
    construction.
    """

    def __init__(self, relationships: List[Relationship]):
        self.graph = nx.MultiDiGraph()
        self._path_cache: Dict[Tuple[str, str, int], List[JoinPath]] = {}

        for rel in relationships:
            self.graph.add_edge(
                rel.table,
                rel.referenced_table,
                direction="direct",
                from_column=rel.column,
                to_column=rel.referenced_column
            )
            self.graph.add_edge(
                rel.referenced_table,
                rel.table,
                direction="inverse",
                from_column=rel.referenced_column,
                to_column=rel.column
            )

        logger.debug(f"Relationship graph: {self.graph.number_of_nodes()} tables, "
                     f"{self.graph.number_of_edges()} edges")

    def neighbors(self, table: str) -> List[Dict[str, Any]]:
        """
        Tables one hop away from ``table``.

        Args:
            table: Table name

        Returns:
            Edge descriptions with target table, columns and direction
        """
        if table not in self.graph:
            return []
        return [
            {"table": target, **data}
            for _, target, data in self.graph.out_edges(table, data=True)
        ]

    def find_paths(self, source: str, target: str, max_depth: int = 3) -> List[JoinPath]:
        """
        All simple join paths from ``source`` to ``target``.

        A table has no path to itself. Each path is a list of hops with
        ``from``, ``to``, ``fromColumn``, ``toColumn`` and ``direction``.

        Args:
            source: Starting table
            target: Destination table
            max_depth: Maximum number of hops

        Returns:
            List of paths, shortest first
        """
        key = (source, target, max_depth)
        if key in self._path_cache:
            return self._path_cache[key]

        paths: List[JoinPath] = []
        if source != target and source in self.graph and target in self.graph and max_depth > 0:
            for edge_path in nx.all_simple_edge_paths(self.graph, source, target, cutoff=max_depth):
                hops = []
                for u, v, edge_key in edge_path:
                    data = self.graph.edges[u, v, edge_key]
                    hops.append({
                        "from": u,
                        "to": v,
                        "fromColumn": data["from_column"],
                        "toColumn": data["to_column"],
                        "direction": data["direction"],
                    })
                paths.append(hops)
            paths.sort(key=len)

        self._path_cache[key] = paths
        return paths

    def cache_size(self) -> int:
        return len(self._path_cache)
