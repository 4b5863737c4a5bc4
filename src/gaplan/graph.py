"""Precedence graph for gaplan.

Edges point from an item to the items it depends on: ``A -> B`` means A
depends on B and B must be scheduled first. Dependencies on unknown ids are
kept aside as orphaned edges instead of becoming graph edges.
"""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .logger import get_logger
from .models import WorkItem

logger = get_logger()


@dataclass(frozen=True)
class TopologicalOrder:
    """Result of a topological sort.

    ``ordered`` lists every id that can be scheduled, dependencies first.
    ``excluded`` holds the cyclic ids and the items blocked only by them.
    """

    ordered: tuple[str, ...]
    excluded: frozenset[str] = field(default_factory=frozenset)

    @property
    def valid(self) -> bool:
        return not self.excluded


@dataclass(frozen=True)
class OrphanedDependency:
    """An edge whose target is not a known item."""

    from_id: str
    to_id: str


@dataclass(frozen=True)
class DuplicateSummary:
    """A group of items sharing the same (normalized) summary."""

    summary: str
    item_ids: tuple[str, ...]


@dataclass(frozen=True)
class GraphStats:
    """Counts describing the graph and its diagnostics."""

    node_count: int
    edge_count: int
    cyclic_count: int
    orphaned_dependencies: int
    missing_assignees: int
    missing_sizes: int
    duplicate_summaries: int


def id_sort_key(item_id: str) -> tuple[int, int | str]:
    """Sort numeric ids numerically and everything else lexically after them."""
    if item_id.isdigit():
        return (0, int(item_id))
    return (1, item_id)


class PrecedenceGraph:
    """Directed dependency graph over work items."""

    def __init__(self) -> None:
        self._items: dict[str, WorkItem] = {}
        self._edges: dict[str, list[str]] = {}
        self._reverse: dict[str, list[str]] = {}
        self._orphaned: list[OrphanedDependency] = []

    @classmethod
    def build(
        cls,
        items: Iterable[WorkItem],
        extra_edges: Mapping[str, Iterable[str]] | None = None,
    ) -> PrecedenceGraph:
        """Build a graph from items and their declared dependencies.

        Args:
            items: Work items in input order (the order breaks ties in sorting)
            extra_edges: Optional additional ``item id -> dependency ids`` relation,
                merged with each item's own ``depends_on``

        Returns:
            The constructed graph
        """
        graph = cls()
        item_list = list(items)
        for item in item_list:
            if item.id in graph._items:
                logger.warning(f"Duplicate item id {item.id}; keeping the first definition")
                continue
            graph._items[item.id] = item
            graph._edges[item.id] = []
            graph._reverse[item.id] = []

        for item_id, item in graph._items.items():
            dep_ids = list(item.depends_on)
            if extra_edges and item_id in extra_edges:
                dep_ids.extend(str(dep) for dep in extra_edges[item_id])
            for dep_id in dep_ids:
                if dep_id in graph._edges[item_id]:
                    continue
                if dep_id not in graph._items:
                    graph._orphaned.append(OrphanedDependency(item_id, dep_id))
                    continue
                graph._edges[item_id].append(dep_id)
                graph._reverse[dep_id].append(item_id)

        logger.checks(
            f"Built precedence graph: {len(graph._items)} items, "
            f"{sum(len(d) for d in graph._edges.values())} edges, "
            f"{len(graph._orphaned)} orphaned dependencies"
        )
        return graph

    @property
    def nodes(self) -> list[str]:
        """Item ids in input order."""
        return list(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> WorkItem | None:
        return self._items.get(item_id)

    def items(self) -> list[WorkItem]:
        return list(self._items.values())

    def dependencies(self, item_id: str) -> list[str]:
        """Ids the item depends on (must finish before it starts)."""
        return list(self._edges.get(item_id, []))

    def dependents(self, item_id: str) -> list[str]:
        """Ids that depend on the item."""
        return list(self._reverse.get(item_id, []))

    def transitive_dependencies(self, item_id: str) -> set[str]:
        """All ids reachable through dependency edges, excluding the item itself."""
        seen: set[str] = set()
        queue = deque(self._edges.get(item_id, []))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(dep for dep in self._edges[current] if dep not in seen)
        seen.discard(item_id)
        return seen

    def _strongly_connected_components(self) -> list[list[str]]:
        """Tarjan's algorithm, iterative to stay clear of the recursion limit."""
        index_of: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        on_stack: set[str] = set()
        stack: list[str] = []
        components: list[list[str]] = []
        counter = 0

        for root in self._items:
            if root in index_of:
                continue
            work: list[tuple[str, int]] = [(root, 0)]
            while work:
                node, next_child = work.pop()
                if next_child == 0:
                    index_of[node] = lowlink[node] = counter
                    counter += 1
                    stack.append(node)
                    on_stack.add(node)

                children = self._edges[node]
                recursed = False
                for i in range(next_child, len(children)):
                    child = children[i]
                    if child not in index_of:
                        work.append((node, i + 1))
                        work.append((child, 0))
                        recursed = True
                        break
                    if child in on_stack:
                        lowlink[node] = min(lowlink[node], index_of[child])
                if recursed:
                    continue

                if lowlink[node] == index_of[node]:
                    component: list[str] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(component)

                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])

        return components

    def find_cycles(self) -> list[list[str]]:
        """Return each cycle (nontrivial SCC or self-loop) as a sorted id list."""
        cycles: list[list[str]] = []
        for component in self._strongly_connected_components():
            if len(component) > 1 or component[0] in self._edges[component[0]]:
                cycles.append(sorted(component, key=id_sort_key))
        cycles.sort(key=lambda c: id_sort_key(c[0]))
        return cycles

    def detect_cycles(self) -> set[str]:
        """Return the set of ids participating in at least one cycle."""
        return {item_id for cycle in self.find_cycles() for item_id in cycle}

    def blocked_by(self, excluded: Iterable[str]) -> set[str]:
        """Return ``excluded`` plus every item whose dependencies all lie in it.

        Applied repeatedly, so an item that only depends on such blocked items
        is blocked too. Items with at least one dependency outside the set
        keep their place.
        """
        blocked = set(excluded)
        pending = deque(blocked)
        while pending:
            current = pending.popleft()
            for dependent in self._reverse[current]:
                if dependent in blocked:
                    continue
                if all(dep in blocked for dep in self._edges[dependent]):
                    blocked.add(dependent)
                    pending.append(dependent)
        return blocked

    def topological_sort(self) -> TopologicalOrder:
        """Order items so that dependencies come first.

        Uses Kahn's in-degree elimination over the acyclic part of the graph.
        Cyclic ids are excluded, along with items that depend only on
        excluded items. Edges from an item that still has other dependencies
        into an excluded id are ignored, like orphaned edges. Ties are broken
        by input order, so the result is reproducible.
        """
        cyclic = self.detect_cycles()
        excluded = self.blocked_by(cyclic)

        position = {item_id: i for i, item_id in enumerate(self._items)}
        in_degree: dict[str, int] = {}
        for item_id in self._items:
            if item_id in excluded:
                continue
            in_degree[item_id] = sum(1 for dep in self._edges[item_id] if dep not in excluded)

        ready = [(position[i], i) for i, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        ordered: list[str] = []
        while ready:
            _, current = heapq.heappop(ready)
            ordered.append(current)
            for dependent in self._reverse[current]:
                if dependent in excluded:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, (position[dependent], dependent))

        if excluded:
            logger.checks(
                f"Excluded {len(excluded)} items from ordering: {len(cyclic)} in cycles, "
                f"{len(excluded) - len(cyclic)} blocked by them"
            )
        return TopologicalOrder(ordered=tuple(ordered), excluded=frozenset(excluded))

    def find_orphaned_dependencies(self) -> list[OrphanedDependency]:
        """Dependencies that point at unknown items, sorted by (from, to)."""
        return sorted(self._orphaned, key=lambda o: (id_sort_key(o.from_id), id_sort_key(o.to_id)))

    def _sorted_items(self) -> list[WorkItem]:
        return sorted(self._items.values(), key=lambda item: id_sort_key(item.id))

    def find_duplicate_summaries(self) -> list[DuplicateSummary]:
        """Groups of items whose lower-cased, trimmed summaries are identical."""
        groups: dict[str, list[str]] = {}
        for item in self._sorted_items():
            summary = item.summary.strip().lower()
            if not summary:
                continue
            groups.setdefault(summary, []).append(item.id)
        duplicates = [
            DuplicateSummary(summary=summary, item_ids=tuple(ids))
            for summary, ids in groups.items()
            if len(ids) > 1
        ]
        duplicates.sort(key=lambda d: id_sort_key(d.item_ids[0]))
        return duplicates

    def find_missing_assignees(self) -> list[WorkItem]:
        """Items without an owner."""
        return [item for item in self._sorted_items() if item.fixed_assignee is None]

    def find_missing_sizes(self) -> list[WorkItem]:
        """Open, non-meta items that have no size estimate."""
        return [
            item
            for item in self._sorted_items()
            if not item.is_resolved and not item.meta and item.size is None
        ]

    def find_untriaged_items(self) -> list[WorkItem]:
        """Open items with no severity set."""
        return [item for item in self._sorted_items() if not item.is_resolved and item.is_untriaged]

    def critical_path(self, sizes: Mapping[str, float] | None = None) -> list[str]:
        """Longest weighted dependency chain through the acyclic part of the graph.

        Args:
            sizes: Optional per-item weights; defaults to each item's size, or 1

        Returns:
            Item ids along the path, dependencies first
        """
        order = self.topological_sort().ordered
        if not order:
            return []

        def weight(item_id: str) -> float:
            if sizes and item_id in sizes:
                return sizes[item_id]
            size = self._items[item_id].size
            return size if size is not None else 1.0

        allowed = set(order)
        distance: dict[str, float] = {}
        predecessor: dict[str, str | None] = {}
        for item_id in order:
            best = 0.0
            best_dep: str | None = None
            for dep in self._edges[item_id]:
                if dep in allowed and distance[dep] > best:
                    best = distance[dep]
                    best_dep = dep
            distance[item_id] = best + weight(item_id)
            predecessor[item_id] = best_dep

        end = max(order, key=lambda i: distance[i])
        path: list[str] = []
        current: str | None = end
        while current is not None:
            path.append(current)
            current = predecessor[current]
        path.reverse()
        return path

    def stats(self) -> GraphStats:
        return GraphStats(
            node_count=len(self._items),
            edge_count=sum(len(deps) for deps in self._edges.values()),
            cyclic_count=len(self.detect_cycles()),
            orphaned_dependencies=len(self._orphaned),
            missing_assignees=len(self.find_missing_assignees()),
            missing_sizes=len(self.find_missing_sizes()),
            duplicate_summaries=len(self.find_duplicate_summaries()),
        )
