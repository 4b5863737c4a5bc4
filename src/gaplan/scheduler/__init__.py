"""Scheduler package - genetic optimization of milestone-driven schedules.

This package provides:
- RequestValidator: fail-fast checks that turn a request into a Problem
- ScheduleBuilder: deterministic chromosome -> schedule decoder
- FitnessEvaluator: lexicographic (deadlines met, lateness, makespan) scoring
- GreedyScheduler: milestone-first baseline schedule seeding each run
- GeneticOptimizer: one evolutionary run
- run_many / pick_best: independent runs, optionally in worker processes

The request/response layer lives in ``gaplan.scheduler.service`` and is not
imported here, so the message records can depend on this package.
"""

# Configuration
from .config import MakespanScope, OptimizerConfig, SelectionType

# Core dataclasses
from .core import (
    AtRiskItem,
    CancellationFlag,
    Chromosome,
    MilestoneResult,
    Problem,
    ProgressUpdate,
    RunContext,
    RunResult,
    RunState,
    RunStatus,
    Schedule,
    ScheduledItem,
    ScheduleEntry,
    ScoreTriple,
)

# Decoding and scoring
from .decoder import ScheduleBuilder, schedule_entries
from .fitness import FitnessEvaluator, is_better_score
from .greedy import GreedyScheduler

# Optimization
from .optimizer import GeneticOptimizer
from .orchestrator import pick_best, run_many

# Protocols
from .protocols import (
    AvailabilityModel,
    CancellationToken,
    FitnessModel,
    ProgressSink,
    ScheduleDecoder,
)

# Input validation
from .validator import RequestValidator

__all__ = [
    # Configuration
    "OptimizerConfig",
    "SelectionType",
    "MakespanScope",
    # Core dataclasses
    "Problem",
    "Chromosome",
    "Schedule",
    "ScheduledItem",
    "ScheduleEntry",
    "ScoreTriple",
    "MilestoneResult",
    "AtRiskItem",
    "RunState",
    "RunStatus",
    "RunResult",
    "RunContext",
    "ProgressUpdate",
    "CancellationFlag",
    # Protocols
    "AvailabilityModel",
    "ScheduleDecoder",
    "FitnessModel",
    "CancellationToken",
    "ProgressSink",
    # Decoding and scoring
    "ScheduleBuilder",
    "schedule_entries",
    "FitnessEvaluator",
    "is_better_score",
    "GreedyScheduler",
    # Optimization
    "GeneticOptimizer",
    "run_many",
    "pick_best",
    # Input validation
    "RequestValidator",
]
