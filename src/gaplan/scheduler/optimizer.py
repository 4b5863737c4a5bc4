"""Genetic optimizer: one run of the evolutionary search."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from gaplan.calendars import CalendarSet
from gaplan.exceptions import OptimizationError
from gaplan.logger import get_logger

from . import operators
from .config import OptimizerConfig, SelectionType
from .core import (
    Chromosome,
    Problem,
    ProgressUpdate,
    RunContext,
    RunResult,
    RunState,
    RunStatus,
    ScoreTriple,
)
from .decoder import ScheduleBuilder, schedule_entries
from .fitness import FitnessEvaluator
from .greedy import GreedyScheduler
from .protocols import FitnessModel, ScheduleDecoder

logger = get_logger()


@dataclass(frozen=True)
class Individual:
    """A chromosome together with its score."""

    chromosome: Chromosome
    score: ScoreTriple


def _rank(population: list[Individual]) -> list[Individual]:
    """Sort best first; the sort is stable so ties keep their relative order."""
    return sorted(population, key=lambda ind: ind.score.sort_key())


class GeneticOptimizer:
    """Runs one genetic search over a validated problem.

    The run moves INITIALIZING -> EVOLVING and ends CONVERGED (no improvement
    for ``convergence_patience`` generations), EXHAUSTED (every generation
    ran) or CANCELLED (the context's token fired). Broken invariants end the
    run FAILED; the error is reported in the result instead of raised.
    """

    def __init__(
        self,
        problem: Problem,
        config: OptimizerConfig | None = None,
        context: RunContext | None = None,
        *,
        decoder: ScheduleDecoder | None = None,
        fitness: FitnessModel | None = None,
    ) -> None:
        self.problem = problem
        self.config = config or OptimizerConfig()
        self.context = context or RunContext()
        self.rng = self.context.rng
        self.calendars = CalendarSet.build(
            problem.resources, problem.start_date, problem.skip_weekends
        )
        self.decoder: ScheduleDecoder = decoder or ScheduleBuilder(problem, self.calendars)
        self.evaluator = FitnessEvaluator(problem, self.config.makespan_scope)
        self.fitness: FitnessModel = fitness or self.evaluator
        self.locked = operators.locked_items(problem, self.config.fixed_assignment_bias)
        self.state = RunState.INITIALIZING
        self.warnings: list[str] = []

    def run(self) -> RunResult:
        """Evolve the population and report the best schedule found."""
        run_id = self.context.run_id
        try:
            return self._run()
        except OptimizationError as e:
            self.state = RunState.FAILED
            logger.error(f"Run {run_id} failed: {e}")
            result = RunResult.failure(run_id, str(e))
            result.warnings = list(self.warnings)
            return result

    def _run(self) -> RunResult:
        config = self.config
        run_id = self.context.run_id
        logger.checks(
            f"Run {run_id}: {self.problem.size} items, population {config.population_size}, "
            f"{config.generations} generations"
        )

        population = self._evaluate(self._initial_population())
        best = population[0]
        best_generation = 0
        history = [best.score]
        self._report(0, best.score, improved=True, population=population)

        self.state = RunState.EVOLVING
        generations_run = 0
        stale = 0
        for generation in range(1, config.generations + 1):
            if self.context.cancel is not None and self.context.cancel.is_cancelled():
                self.state = RunState.CANCELLED
                logger.changes(f"Run {run_id} cancelled at generation {generation}")
                break

            population = self._evaluate(self._next_generation(population))
            generations_run = generation

            improved = population[0].score.is_better_than(best.score)
            if improved:
                best = population[0]
                best_generation = generation
                stale = 0
                logger.changes(
                    f"Run {run_id} generation {generation}: "
                    f"{best.score.deadlines_met} deadlines met, "
                    f"lateness {best.score.total_lateness}, makespan {best.score.makespan}"
                )
            else:
                stale += 1
            history.append(best.score)
            self._report(generation, best.score, improved=improved, population=population)

            if config.convergence_patience and stale >= config.convergence_patience:
                self.state = RunState.CONVERGED
                logger.checks(f"Run {run_id} converged after {generation} generations")
                break
        else:
            self.state = RunState.EXHAUSTED

        schedule = self.decoder.decode(best.chromosome)
        return RunResult(
            run_id=run_id,
            status=RunStatus.COMPLETED,
            state=self.state,
            score=best.score,
            chromosome=best.chromosome,
            entries=schedule_entries(self.problem, schedule),
            milestones=self.evaluator.milestone_results(schedule),
            at_risk=self.evaluator.find_at_risk(schedule),
            best_found_at_generation=best_generation,
            generations_run=generations_run,
            history=history,
            warnings=list(self.warnings),
        )

    def _score(self, chromosome: Chromosome) -> ScoreTriple:
        return self.fitness.score(self.decoder.decode(chromosome))

    def _evaluate(self, chromosomes: Sequence[Chromosome]) -> list[Individual]:
        return _rank([Individual(c, self._score(c)) for c in chromosomes])

    def _initial_population(self) -> list[Chromosome]:
        """Greedy baseline first, then caller seeds, then random chromosomes.

        Elitism keeps the best individual, so a run never reports a schedule
        worse than the baseline.
        """
        population: list[Chromosome] = []
        if self.config.greedy_seed:
            population.append(GreedyScheduler(self.problem, self.calendars).build())
        for index, seed in enumerate(self.config.seed_population):
            if len(population) >= self.config.population_size:
                break
            chromosome = self._chromosome_from_seed(seed)
            if chromosome is None:
                message = f"Seed chromosome {index} does not fit the problem; ignored"
                logger.warning(message)
                self.warnings.append(message)
                continue
            population.append(chromosome)

        while len(population) < self.config.population_size:
            population.append(
                operators.random_chromosome(
                    self.problem, self.rng, self.config.fixed_assignment_bias
                )
            )
        return population

    def _chromosome_from_seed(self, seed: Mapping[str, object]) -> Chromosome | None:
        """Build a chromosome from a caller-supplied seed, or None if it does not fit.

        The order must be a permutation of the schedulable items; it is
        repaired if it breaks precedence. Missing or infeasible assignments
        are replaced with random feasible ones.
        """
        raw_order = seed.get("order")
        if not isinstance(raw_order, (list, tuple)):
            return None
        order = [str(item_id) for item_id in raw_order]
        if len(order) != self.problem.size or set(order) != set(self.problem.order):
            return None
        if not operators.is_precedence_valid(order, self.problem.dependencies):
            order = list(operators.repair_order(order, self.problem.dependencies))

        raw_assignment = seed.get("assignment")
        given = raw_assignment if isinstance(raw_assignment, Mapping) else {}
        assignment = operators.random_assignment(
            self.problem, self.rng, self.config.fixed_assignment_bias
        )
        for item_id in self.problem.order:
            if item_id in self.locked:
                continue
            resource_id = given.get(item_id)
            if resource_id in self.problem.candidates[item_id]:
                assignment[item_id] = resource_id
        return Chromosome(order=tuple(order), assignment=assignment)

    def _select(self, ranked: list[Individual]) -> Individual:
        if self.config.selection == SelectionType.PROPORTIONAL:
            return operators.proportional_select(ranked, self.rng)
        return operators.tournament_select(ranked, self.rng, self.config.tournament_size)

    def _next_generation(self, ranked: list[Individual]) -> list[Chromosome]:
        config = self.config
        elites = [ind.chromosome for ind in ranked[: config.elite_count]]
        if config.local_search_swaps:
            elites[0] = self._local_search(ranked[0]).chromosome

        offspring: list[Chromosome] = list(elites)
        while len(offspring) < config.population_size:
            first = self._select(ranked).chromosome
            second = self._select(ranked).chromosome
            if self.rng.random() < config.crossover_rate:
                children: Sequence[Chromosome] = operators.crossover(
                    first, second, self.problem, self.rng, self.locked
                )
            else:
                children = (first, second)
            for child in children:
                if len(offspring) >= config.population_size:
                    break
                offspring.append(
                    operators.mutate(
                        child,
                        self.problem,
                        self.rng,
                        config.mutation_rate,
                        self.locked,
                        config.reassign_probability,
                    )
                )
        return offspring

    def _local_search(self, best: Individual) -> Individual:
        """Hill-climb on resource assignments, keeping only strict improvements."""
        movable = [
            item_id
            for item_id in self.problem.order
            if item_id not in self.locked and len(self.problem.candidates[item_id]) > 1
        ]
        if not movable:
            return best
        current = best
        for _ in range(self.config.local_search_swaps):
            item_id = self.rng.choice(movable)
            candidate = operators.reassign(current.chromosome, item_id, self.problem, self.rng)
            score = self._score(candidate)
            if score.is_better_than(current.score):
                current = Individual(candidate, score)
        if current is not best:
            logger.debug(f"Local search improved best to {current.score}")
        return current

    def _report(
        self, generation: int, best: ScoreTriple, *, improved: bool, population: list[Individual]
    ) -> None:
        if self.context.progress is None:
            return
        if not improved and generation % self.config.progress_interval != 0:
            return
        average = sum(ind.score.makespan for ind in population) / len(population)
        self.context.progress(
            ProgressUpdate(
                run_id=self.context.run_id,
                generation=generation,
                best=best,
                improved=improved,
                average_makespan=average,
            )
        )
