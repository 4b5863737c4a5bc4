"""Configuration classes for the genetic scheduler."""

from enum import Enum

from pydantic import BaseModel, Field

from gaplan.effort import DEFAULT_SIZE_DAYS


class SelectionType(str, Enum):
    """How parents are picked for recombination."""

    TOURNAMENT = "tournament"
    PROPORTIONAL = "proportional"  # Rank-proportional roulette


class MakespanScope(str, Enum):
    """Which finish times the makespan objective is measured over."""

    ALL_ITEMS = "all_items"  # Latest finish among all scheduled items
    MILESTONE_ANCHORS = "milestone_anchors"  # Latest milestone completion


class OptimizerConfig(BaseModel):
    """Parameters of the genetic optimizer.

    Defaults trade search quality for speed: 40 x 100 finishes in a few
    seconds on a few hundred items.
    """

    population_size: int = 40
    generations: int = 100
    elite_count: int = 4  # Top individuals copied unchanged into the next generation
    tournament_size: int = 3
    selection: SelectionType = SelectionType.TOURNAMENT
    crossover_rate: float = 0.8
    mutation_rate: float = 0.1  # Per-gene probability
    reassign_probability: float = 0.5  # Share of mutations that reassign rather than swap
    local_search_swaps: int = 10  # Reassignments tried on the best individual per generation
    convergence_patience: int = 0  # Stop after this many stale generations (0 = never)
    fixed_assignment_bias: float = 1.0  # Probability an item keeps its fixed assignee

    makespan_scope: MakespanScope = MakespanScope.ALL_ITEMS
    skip_weekends: bool = True
    default_size_days: float = DEFAULT_SIZE_DAYS

    progress_interval: int = 10  # Emit progress every N generations (and on improvement)
    runs: int = 1  # Independent runs per request
    max_workers: int = 1  # Worker processes for multi-run requests (1 = in-process)
    seed: int | None = None  # Base random seed; run i uses seed + i

    greedy_seed: bool = True  # Start the population with the greedy baseline schedule
    seed_population: list[dict[str, object]] = Field(default_factory=list)

    def validation_errors(self) -> list[str]:
        """Describe every parameter that is out of range (empty when valid)."""
        errors: list[str] = []
        if self.population_size < 2:
            errors.append(f"population_size must be >= 2 (got {self.population_size})")
        if self.generations < 0:
            errors.append(f"generations must be >= 0 (got {self.generations})")
        if not 1 <= self.elite_count <= max(1, self.population_size):
            errors.append(
                f"elite_count must be between 1 and population_size (got {self.elite_count})"
            )
        if self.tournament_size < 1:
            errors.append(f"tournament_size must be >= 1 (got {self.tournament_size})")
        rates = ("crossover_rate", "mutation_rate", "reassign_probability", "fixed_assignment_bias")
        for name in rates:
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be between 0 and 1 (got {value})")
        if self.local_search_swaps < 0:
            errors.append(f"local_search_swaps must be >= 0 (got {self.local_search_swaps})")
        if self.convergence_patience < 0:
            errors.append(f"convergence_patience must be >= 0 (got {self.convergence_patience})")
        if self.default_size_days < 0:
            errors.append(f"default_size_days must be >= 0 (got {self.default_size_days})")
        if self.runs < 1:
            errors.append(f"runs must be >= 1 (got {self.runs})")
        if self.progress_interval < 1:
            errors.append(f"progress_interval must be >= 1 (got {self.progress_interval})")
        return errors
