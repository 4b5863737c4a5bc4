"""Genetic operators over schedule chromosomes.

Every operator returns new chromosomes and keeps item orders precedence
feasible: an item always appears after all of its dependencies.
"""

from __future__ import annotations

import heapq
import random
from collections.abc import Mapping, Sequence
from typing import TypeVar

from gaplan.exceptions import InvariantViolationError

from .core import Chromosome, Problem

T = TypeVar("T")


def locked_items(problem: Problem, fixed_assignment_bias: float) -> frozenset[str]:
    """Items whose resource never changes: fixed assignees held with certainty."""
    if fixed_assignment_bias < 1.0:
        return frozenset()
    return frozenset(item_id for item_id, fixed in problem.fixed.items() if fixed is not None)


def is_precedence_valid(order: Sequence[str], dependencies: Mapping[str, Sequence[str]]) -> bool:
    """Check that every item comes after all of its dependencies present in the order."""
    position = {item_id: i for i, item_id in enumerate(order)}
    for item_id, index in position.items():
        for dep_id in dependencies.get(item_id, ()):
            if dep_id in position and position[dep_id] > index:
                return False
    return True


def random_topological_order(problem: Problem, rng: random.Random) -> tuple[str, ...]:
    """Random topological refinement of the problem's items (randomized Kahn)."""
    remaining = {item_id: len(problem.dependencies[item_id]) for item_id in problem.order}
    dependents: dict[str, list[str]] = {item_id: [] for item_id in problem.order}
    for item_id in problem.order:
        for dep_id in problem.dependencies[item_id]:
            dependents[dep_id].append(item_id)

    ready = [item_id for item_id in problem.order if remaining[item_id] == 0]
    order: list[str] = []
    while ready:
        index = rng.randrange(len(ready))
        ready[index], ready[-1] = ready[-1], ready[index]
        current = ready.pop()
        order.append(current)
        for dependent in dependents[current]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                ready.append(dependent)

    if len(order) != len(problem.order):
        raise InvariantViolationError("Dependency cycle among schedulable items")
    return tuple(order)


def random_assignment(
    problem: Problem, rng: random.Random, fixed_assignment_bias: float = 1.0
) -> dict[str, str | None]:
    """Pick a feasible resource for every item.

    Items with a fixed assignee keep it with probability
    ``fixed_assignment_bias``; everything else draws uniformly from its
    candidates.
    """
    assignment: dict[str, str | None] = {}
    for item_id in problem.order:
        fixed = problem.fixed.get(item_id)
        if fixed is not None and rng.random() < fixed_assignment_bias:
            assignment[item_id] = fixed
        else:
            assignment[item_id] = rng.choice(problem.candidates[item_id])
    return assignment


def random_chromosome(
    problem: Problem, rng: random.Random, fixed_assignment_bias: float = 1.0
) -> Chromosome:
    return Chromosome(
        order=random_topological_order(problem, rng),
        assignment=random_assignment(problem, rng, fixed_assignment_bias),
    )


def repair_order(
    order: Sequence[str], dependencies: Mapping[str, Sequence[str]]
) -> tuple[str, ...]:
    """Rebuild an order so every item follows all of its dependencies.

    Items already in a valid position keep their relative order. An item met
    before one of its dependencies is held back and reinserted immediately
    after the last of its dependencies is placed.

    Raises:
        InvariantViolationError: If some items can never be placed (a cycle
            or a dependency missing from the order)
    """
    members = set(order)
    position = {item_id: i for i, item_id in enumerate(order)}
    placed: set[str] = set()
    missing: dict[str, int] = {}
    waiters: dict[str, list[str]] = {}
    repaired: list[str] = []

    def place(item_id: str) -> None:
        # Released waiters go in their original relative order
        released: list[tuple[int, str]] = [(position[item_id], item_id)]
        while released:
            _, current = heapq.heappop(released)
            repaired.append(current)
            placed.add(current)
            for waiter in waiters.pop(current, []):
                missing[waiter] -= 1
                if missing[waiter] == 0:
                    del missing[waiter]
                    heapq.heappush(released, (position[waiter], waiter))

    for item_id in order:
        unmet = [
            dep_id
            for dep_id in dependencies.get(item_id, ())
            if dep_id in members and dep_id not in placed
        ]
        if not unmet:
            place(item_id)
            continue
        missing[item_id] = len(unmet)
        for dep_id in unmet:
            waiters.setdefault(dep_id, []).append(item_id)

    if missing:
        raise InvariantViolationError(
            f"Cannot repair order: {len(missing)} items wait on dependencies that never appear"
        )
    return tuple(repaired)


def order_crossover(
    first: Sequence[str],
    second: Sequence[str],
    rng: random.Random,
    dependencies: Mapping[str, Sequence[str]],
) -> tuple[str, ...]:
    """Order crossover (OX) followed by precedence repair.

    The child keeps a random slice of ``first`` in place and fills the other
    positions with the remaining items in the order they appear in ``second``.
    """
    size = len(first)
    if size < 2:
        return tuple(first)
    left, right = sorted(rng.sample(range(size + 1), 2))
    segment = list(first[left:right])
    kept = set(segment)
    rest = [item_id for item_id in second if item_id not in kept]
    child = rest[:left] + segment + rest[left:]
    return repair_order(child, dependencies)


def assignment_crossover(
    first: Mapping[str, str | None],
    second: Mapping[str, str | None],
    item_ids: Sequence[str],
    rng: random.Random,
) -> dict[str, str | None]:
    """Two-point crossover over the assignments of ``item_ids``.

    Items outside ``item_ids`` (locked ones) keep the first parent's resource.
    """
    child = dict(first)
    if len(item_ids) < 2:
        return child
    left, right = sorted(rng.sample(range(len(item_ids) + 1), 2))
    for item_id in item_ids[left:right]:
        child[item_id] = second[item_id]
    return child


def crossover(
    first: Chromosome,
    second: Chromosome,
    problem: Problem,
    rng: random.Random,
    locked: frozenset[str] = frozenset(),
) -> tuple[Chromosome, Chromosome]:
    """Recombine two parents into two children."""
    unlocked = [item_id for item_id in problem.order if item_id not in locked]
    children = []
    for a, b in ((first, second), (second, first)):
        children.append(
            Chromosome(
                order=order_crossover(a.order, b.order, rng, problem.dependencies),
                assignment=assignment_crossover(a.assignment, b.assignment, unlocked, rng),
            )
        )
    return children[0], children[1]


def reassign(
    chromosome: Chromosome, item_id: str, problem: Problem, rng: random.Random
) -> Chromosome:
    """Move one item to a different feasible resource (unchanged if it has none)."""
    current = chromosome.assignment.get(item_id)
    options = [c for c in problem.candidates[item_id] if c != current]
    if not options:
        return chromosome
    return chromosome.with_assignment(item_id, rng.choice(options))


def mutate(
    chromosome: Chromosome,
    problem: Problem,
    rng: random.Random,
    rate: float,
    locked: frozenset[str] = frozenset(),
    reassign_probability: float = 0.5,
) -> Chromosome:
    """Per-gene mutation.

    Each position mutates with probability ``rate``: either its item moves to
    another feasible resource, or it swaps with the next item when the next
    item does not depend on it directly. Adjacent items can only conflict
    through a direct edge, so the swap check keeps the order valid.
    """
    order = list(chromosome.order)
    assignment = dict(chromosome.assignment)
    for index, item_id in enumerate(order):
        if rng.random() >= rate:
            continue
        if item_id not in locked and rng.random() < reassign_probability:
            current = assignment.get(item_id)
            options = [c for c in problem.candidates[item_id] if c != current]
            if options:
                assignment[item_id] = rng.choice(options)
            continue
        if index + 1 < len(order):
            following = order[index + 1]
            if item_id not in problem.dependencies[following]:
                order[index], order[index + 1] = following, item_id
    return Chromosome(order=tuple(order), assignment=assignment)


def tournament_select(ranked: Sequence[T], rng: random.Random, size: int) -> T:
    """Tournament selection over a population sorted best first."""
    contestants = [rng.randrange(len(ranked)) for _ in range(max(1, size))]
    return ranked[min(contestants)]


def proportional_select(ranked: Sequence[T], rng: random.Random) -> T:
    """Rank-proportional roulette over a population sorted best first.

    The best of n individuals gets weight n, the worst weight 1, which keeps
    selection pressure independent of the scale of the scores.
    """
    count = len(ranked)
    weights = [count - rank for rank in range(count)]
    return rng.choices(ranked, weights=weights, k=1)[0]
