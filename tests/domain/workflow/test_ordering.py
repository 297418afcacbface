from __future__ import annotations

import itertools
from enum import StrEnum

import pytest

from chaintx.domain.workflow import (
    CyclicDependencyError,
    Relation,
    RelationGraph,
    persistence_order,
)


class Kind(StrEnum):
    COUNTRY = "country"
    RECEIVER = "receiver"
    MOUNTPOINT = "mountpoint"
    OPERATOR = "operator"
    AUDIT = "audit"


def _noop_setter(entity: object, parent_id: object) -> None:
    _ = (entity, parent_id)


def _graph(*edges: tuple[Kind, Kind]) -> RelationGraph[dict[str, str]]:
    graph: RelationGraph[dict[str, str]] = RelationGraph()
    for child, parent in edges:
        graph.add(
            Relation(
                child_type=child,
                parent_type=parent,
                id_setter=_noop_setter,
                parent_key=lambda record, parent=parent: record.get(parent),
            )
        )
    return graph


def _assert_respects(order: list[Kind], graph: RelationGraph[dict[str, str]]) -> None:
    position = {kind: index for index, kind in enumerate(order)}
    for relation in graph:
        if relation.child_type in position and relation.parent_type in position:
            assert position[relation.parent_type] < position[relation.child_type]


def test_chain_is_ordered_parent_first_regardless_of_registration_order() -> None:
    graph = _graph((Kind.RECEIVER, Kind.COUNTRY), (Kind.MOUNTPOINT, Kind.RECEIVER))

    order = persistence_order([Kind.MOUNTPOINT, Kind.RECEIVER, Kind.COUNTRY], graph)

    assert order == [Kind.COUNTRY, Kind.RECEIVER, Kind.MOUNTPOINT]


def test_every_permutation_of_an_acyclic_set_respects_all_edges() -> None:
    graph = _graph(
        (Kind.RECEIVER, Kind.COUNTRY),
        (Kind.RECEIVER, Kind.OPERATOR),
        (Kind.MOUNTPOINT, Kind.RECEIVER),
        (Kind.AUDIT, Kind.MOUNTPOINT),
        (Kind.AUDIT, Kind.COUNTRY),
    )
    kinds = list(Kind)

    for permutation in itertools.permutations(kinds):
        order = persistence_order(permutation, graph)
        assert sorted(order) == sorted(kinds)
        _assert_respects(order, graph)


def test_ties_follow_registration_order() -> None:
    graph = _graph((Kind.MOUNTPOINT, Kind.RECEIVER))

    first = persistence_order([Kind.OPERATOR, Kind.COUNTRY, Kind.RECEIVER, Kind.MOUNTPOINT], graph)
    second = persistence_order([Kind.COUNTRY, Kind.OPERATOR, Kind.RECEIVER, Kind.MOUNTPOINT], graph)

    assert first == [Kind.OPERATOR, Kind.COUNTRY, Kind.RECEIVER, Kind.MOUNTPOINT]
    assert second == [Kind.COUNTRY, Kind.OPERATOR, Kind.RECEIVER, Kind.MOUNTPOINT]


def test_edges_outside_the_requested_set_are_ignored() -> None:
    graph = _graph((Kind.RECEIVER, Kind.COUNTRY), (Kind.COUNTRY, Kind.RECEIVER))

    # the cycle only exists between COUNTRY and RECEIVER; leave COUNTRY out
    assert persistence_order([Kind.RECEIVER, Kind.MOUNTPOINT], graph) == [
        Kind.RECEIVER,
        Kind.MOUNTPOINT,
    ]


def test_cycle_among_requested_types_names_the_unresolved_subset() -> None:
    graph = _graph(
        (Kind.RECEIVER, Kind.COUNTRY),
        (Kind.MOUNTPOINT, Kind.RECEIVER),
        (Kind.RECEIVER, Kind.MOUNTPOINT),
    )

    with pytest.raises(CyclicDependencyError, match="Cyclic dependency") as excinfo:
        persistence_order([Kind.COUNTRY, Kind.RECEIVER, Kind.MOUNTPOINT], graph)

    assert set(excinfo.value.unresolved) == {Kind.RECEIVER, Kind.MOUNTPOINT}


def test_self_reference_is_a_cycle() -> None:
    graph = _graph((Kind.OPERATOR, Kind.OPERATOR))

    with pytest.raises(CyclicDependencyError) as excinfo:
        persistence_order([Kind.OPERATOR], graph)

    assert excinfo.value.unresolved == (Kind.OPERATOR,)


def test_duplicate_requested_types_are_ordered_once() -> None:
    order = persistence_order([Kind.COUNTRY, Kind.COUNTRY], _graph())

    assert order == [Kind.COUNTRY]
