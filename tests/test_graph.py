"""Tests for the precedence graph."""

import pytest

from gaplan.graph import OrphanedDependency, PrecedenceGraph
from gaplan.models import WorkItem


def _item(item_id: str, *deps: str, **kwargs: object) -> WorkItem:
    return WorkItem(id=item_id, depends_on=deps, **kwargs)  # type: ignore[arg-type]


class TestBuild:
    """Test graph construction."""

    def test_edges_point_at_dependencies(self) -> None:
        graph = PrecedenceGraph.build([_item("1"), _item("2", "1"), _item("3", "1", "2")])

        assert graph.nodes == ["1", "2", "3"]
        assert graph.dependencies("3") == ["1", "2"]
        assert graph.dependents("1") == ["2", "3"]
        assert graph.transitive_dependencies("3") == {"1", "2"}
        assert graph.transitive_dependencies("1") == set()

    def test_unknown_dependency_is_orphaned_not_inserted(self) -> None:
        graph = PrecedenceGraph.build([_item("5", "99"), _item("2", "77", "5")])

        assert "99" not in graph
        assert graph.dependencies("5") == []
        assert graph.dependencies("2") == ["5"]
        assert graph.find_orphaned_dependencies() == [
            OrphanedDependency("2", "77"),
            OrphanedDependency("5", "99"),
        ]

    def test_extra_edges_are_merged_and_deduplicated(self) -> None:
        graph = PrecedenceGraph.build(
            [_item("a"), _item("b", "a"), _item("c")],
            extra_edges={"b": ["a", "c"]},
        )

        assert graph.dependencies("b") == ["a", "c"]

    def test_integer_ids_are_strings(self) -> None:
        graph = PrecedenceGraph.build([WorkItem(id=1), WorkItem(id=2, depends_on=[1])])  # type: ignore[arg-type]

        assert graph.dependencies("2") == ["1"]


class TestCycles:
    """Test cycle detection."""

    def test_acyclic_graph_has_no_cycles(self) -> None:
        graph = PrecedenceGraph.build([_item("1"), _item("2", "1")])

        assert graph.detect_cycles() == set()
        assert graph.find_cycles() == []

    def test_two_node_cycle(self) -> None:
        graph = PrecedenceGraph.build([_item("1", "2"), _item("2", "1"), _item("3")])

        assert graph.detect_cycles() == {"1", "2"}
        assert graph.find_cycles() == [["1", "2"]]

    def test_self_loop_is_a_cycle(self) -> None:
        graph = PrecedenceGraph.build([_item("1", "1"), _item("2")])

        assert graph.detect_cycles() == {"1"}

    def test_detection_does_not_modify_graph(self) -> None:
        graph = PrecedenceGraph.build([_item("1", "3"), _item("2", "1"), _item("3", "2")])
        before = {node: graph.dependencies(node) for node in graph.nodes}

        assert graph.detect_cycles() == {"1", "2", "3"}
        assert {node: graph.dependencies(node) for node in graph.nodes} == before

    def test_long_chain_does_not_hit_recursion_limit(self) -> None:
        items = [_item("0")] + [_item(str(i), str(i - 1)) for i in range(1, 5000)]
        graph = PrecedenceGraph.build(items)

        assert graph.detect_cycles() == set()
        assert len(graph.topological_sort().ordered) == 5000


class TestTopologicalSort:
    """Test dependency ordering."""

    def test_dependencies_come_first(self) -> None:
        graph = PrecedenceGraph.build([_item("a", "c"), _item("b", "c"), _item("c")])

        topo = graph.topological_sort()

        assert topo.valid
        assert topo.ordered == ("c", "a", "b")

    def test_ties_break_by_input_order(self) -> None:
        graph = PrecedenceGraph.build([_item("z"), _item("y"), _item("x")])

        assert graph.topological_sort().ordered == ("z", "y", "x")

    def test_order_is_reproducible(self) -> None:
        items = [_item("4", "2"), _item("3", "1"), _item("2"), _item("1"), _item("5", "3", "4")]

        first = PrecedenceGraph.build(items).topological_sort()
        second = PrecedenceGraph.build(items).topological_sort()

        assert first == second
        assert first.ordered == ("2", "4", "1", "3", "5")

    def test_cycle_members_and_items_blocked_by_them_are_excluded(self) -> None:
        graph = PrecedenceGraph.build(
            [
                _item("x", "a"),
                _item("a", "b"),
                _item("b", "a"),
                _item("c"),
                _item("y", "x"),
            ]
        )

        topo = graph.topological_sort()

        assert not topo.valid
        # x can only follow a, which never finishes; y only follows x
        assert topo.excluded == frozenset({"a", "b", "x", "y"})
        assert topo.ordered == ("c",)

    def test_item_with_another_dependency_keeps_its_place(self) -> None:
        graph = PrecedenceGraph.build(
            [_item("1", "2"), _item("2", "1"), _item("3", "1", "4"), _item("4"), _item("5", "4")]
        )

        topo = graph.topological_sort()

        assert topo.excluded == frozenset({"1", "2"})
        # The edge 3 -> 1 is ignored, 3 still waits for 4
        assert topo.ordered == ("4", "3", "5")

    def test_without_dependents_exactly_the_cycle_is_excluded(self) -> None:
        graph = PrecedenceGraph.build(
            [_item("1", "2"), _item("2", "1"), _item("3"), _item("4", "3")]
        )

        topo = graph.topological_sort()

        assert topo.excluded == frozenset({"1", "2"})
        assert topo.ordered == ("3", "4")

    def test_every_dependency_precedes_its_dependent(self) -> None:
        items = [
            _item("a", "d", "e"),
            _item("b", "a"),
            _item("c"),
            _item("d", "c"),
            _item("e"),
            _item("f", "b", "c"),
        ]
        graph = PrecedenceGraph.build(items)
        ordered = graph.topological_sort().ordered
        position = {item_id: i for i, item_id in enumerate(ordered)}

        assert set(ordered) == {"a", "b", "c", "d", "e", "f"}
        for item_id in ordered:
            for dep in graph.dependencies(item_id):
                assert position[dep] < position[item_id]


class TestDiagnostics:
    """Test data-quality diagnostics."""

    def test_duplicate_summaries_ignore_case_and_whitespace(self) -> None:
        graph = PrecedenceGraph.build(
            [
                _item("10", summary="Fix crash"),
                _item("2", summary="  fix CRASH "),
                _item("3", summary="Other"),
                _item("4", summary=""),
                _item("5", summary=""),
            ]
        )

        duplicates = graph.find_duplicate_summaries()

        assert len(duplicates) == 1
        assert duplicates[0].summary == "fix crash"
        assert duplicates[0].item_ids == ("2", "10")

    def test_missing_assignees_treat_placeholder_as_unassigned(self) -> None:
        graph = PrecedenceGraph.build(
            [
                _item("3", assignee="nobody@mozilla.org"),
                _item("1", assignee="alice@example.com"),
                _item("2"),
            ]
        )

        assert [i.id for i in graph.find_missing_assignees()] == ["2", "3"]

    def test_missing_sizes_skip_resolved_and_meta_items(self) -> None:
        graph = PrecedenceGraph.build(
            [
                _item("1"),
                _item("2", size=3.0),
                _item("3", status="RESOLVED"),
                _item("4", meta=True),
            ]
        )

        assert [i.id for i in graph.find_missing_sizes()] == ["1"]

    def test_untriaged_items(self) -> None:
        graph = PrecedenceGraph.build(
            [
                _item("1", severity="S2"),
                _item("2", severity="--"),
                _item("3"),
                _item("4", severity="N/A", status="VERIFIED"),
            ]
        )

        assert [i.id for i in graph.find_untriaged_items()] == ["2", "3"]

    def test_diagnostics_sort_ids_numerically(self) -> None:
        graph = PrecedenceGraph.build([_item("100"), _item("20"), _item("3")])

        assert [i.id for i in graph.find_missing_assignees()] == ["3", "20", "100"]

    def test_critical_path_follows_heaviest_chain(self) -> None:
        graph = PrecedenceGraph.build(
            [
                _item("a", size=1.0),
                _item("b", "a", size=5.0),
                _item("c", "a", size=1.0),
                _item("d", "b", "c", size=1.0),
            ]
        )

        assert graph.critical_path() == ["a", "b", "d"]

    def test_stats(self) -> None:
        graph = PrecedenceGraph.build([_item("1", "2"), _item("2", "1"), _item("3", "9")])

        stats = graph.stats()

        assert stats.node_count == 3
        assert stats.edge_count == 2
        assert stats.cyclic_count == 2
        assert stats.orphaned_dependencies == 1


@pytest.mark.parametrize(
    ("ids", "expected"),
    [
        (["b", "10", "a", "9"], ["9", "10", "a", "b"]),
        (["2", "1"], ["1", "2"]),
    ],
)
def test_missing_size_order_is_numeric_then_lexical(ids: list[str], expected: list[str]) -> None:
    graph = PrecedenceGraph.build([_item(i) for i in ids])

    assert [i.id for i in graph.find_missing_sizes()] == expected
