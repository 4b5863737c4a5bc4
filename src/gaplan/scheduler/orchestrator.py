"""Multi-run orchestration: independent optimizer runs, optionally in parallel.

Runs share nothing but the immutable problem. In parallel mode the problem
and config are pickled to worker processes and each worker sends back its
``RunResult``; a run that crashes becomes a failed result without affecting
its siblings.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from concurrent.futures import ProcessPoolExecutor, as_completed

from gaplan.logger import current_verbosity, get_logger, setup_logger

from .config import OptimizerConfig
from .core import Problem, RunContext, RunResult
from .fitness import is_better_score
from .optimizer import GeneticOptimizer
from .protocols import CancellationToken, ProgressSink

logger = get_logger()


def run_seeds(base_seed: int | None, runs: int) -> list[int]:
    """Seeds for ``runs`` runs: ``base_seed + i``, or fresh random seeds."""
    if base_seed is None:
        source = random.SystemRandom()
        return [source.randrange(2**31) for _ in range(runs)]
    return [base_seed + i for i in range(runs)]


def execute_run(
    problem: Problem,
    config: OptimizerConfig,
    run_id: str,
    seed: int | None,
    cancel: CancellationToken | None = None,
    progress: ProgressSink | None = None,
) -> RunResult:
    """Execute one run in the current process, turning any crash into a failed result."""
    context = RunContext(run_id=run_id, rng=random.Random(seed), cancel=cancel, progress=progress)
    try:
        return GeneticOptimizer(problem, config, context).run()
    except Exception as e:  # noqa: BLE001 - a crashed run must not take its siblings down
        logger.error(f"Run {run_id} crashed: {e}")
        return RunResult.failure(run_id, f"{type(e).__name__}: {e}")


def _worker(
    problem: Problem, config: OptimizerConfig, run_id: str, seed: int | None, verbosity: int
) -> RunResult:
    """Entry point in a worker process."""
    setup_logger(verbosity)
    return execute_run(problem, config, run_id, seed)


def run_many(
    problem: Problem,
    config: OptimizerConfig,
    runs: int | None = None,
    seeds: Sequence[int | None] | None = None,
    max_workers: int | None = None,
    *,
    cancel: CancellationToken | None = None,
    progress: ProgressSink | None = None,
) -> list[RunResult]:
    """Execute independent runs and return their results in run order.

    Args:
        problem: Validated problem shared read-only by all runs
        config: Optimizer parameters
        runs: Number of runs (defaults to ``config.runs``)
        seeds: One seed per run (defaults to ``config.seed + i``)
        max_workers: Worker processes (defaults to ``config.max_workers``);
            1 or less runs everything sequentially in this process
        cancel: Cancellation token, honoured by in-process runs only
        progress: Progress sink, fed by in-process runs only

    Returns:
        One ``RunResult`` per run, ordered by run id
    """
    runs = runs if runs is not None else config.runs
    workers = max_workers if max_workers is not None else config.max_workers
    if seeds is None:
        seeds = run_seeds(config.seed, runs)
    if len(seeds) != runs:
        raise ValueError(f"Expected {runs} seeds, got {len(seeds)}")

    if workers <= 1 or runs == 1:
        return [
            execute_run(problem, config, str(i), seeds[i], cancel=cancel, progress=progress)
            for i in range(runs)
        ]

    results: list[RunResult | None] = [None] * runs
    verbosity = current_verbosity()
    logger.checks(f"Starting {runs} runs on {min(workers, runs)} worker processes")
    with ProcessPoolExecutor(max_workers=min(workers, runs)) as executor:
        future_to_index = {
            executor.submit(_worker, problem, config, str(i), seeds[i], verbosity): i
            for i in range(runs)
        }
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:  # noqa: BLE001 - e.g. a worker process died
                logger.error(f"Run {index} failed in its worker: {e}")
                results[index] = RunResult.failure(str(index), f"{type(e).__name__}: {e}")
    return [result for result in results if result is not None]


def pick_best(results: Sequence[RunResult]) -> RunResult | None:
    """Best completed run, or None if every run failed.

    Ties go to the lowest run id.
    """
    best: RunResult | None = None
    for result in results:
        if not result.completed or result.score is None:
            continue
        if best is None or is_better_score(result.score, best.score):
            best = result
    return best
