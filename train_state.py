#!/usr/bin/env python3
"""
Train State Module

Per-train snapshot for the gravity rail simulation. One TrainState per
train; the phase state machine never edits a state in place, it returns a
fresh copy each step. The driver may overwrite `wagon_count` on a state it
holds (while the train is loading, or while the run is paused).

Phases cycle  loading → descending → unloading → ascending → loading
"""
from __future__ import annotations

import numbers
from dataclasses import dataclass

from train_config import DEFAULT_CONFIG

# ── Phases ───────────────────────────────────────────────────────────
LOADING = "loading"
DESCENDING = "descending"
UNLOADING = "unloading"
ASCENDING = "ascending"

PHASES = (LOADING, DESCENDING, UNLOADING, ASCENDING)


@dataclass
class TrainState:
    phase: str
    wagon_count: int

    # Position along the current track (0 = start, 1 = end)
    track_progress: float = 0.0
    altitude: float = 0.0           # m
    speed: float = 0.0              # m/s

    water_fraction: float = 0.0     # 0..1 of tank capacity
    phase_timer: float = 0.0        # s since entering phase

    # This cycle (J)
    energy_generated: float = 0.0
    energy_consumed_ascent: float = 0.0

    # Instantaneous (W)
    instant_power_generated: float = 0.0
    instant_power_consumed: float = 0.0

    # Cumulative across cycles
    total_energy_generated: float = 0.0     # J
    total_energy_consumed: float = 0.0      # J
    total_cycles: int = 0
    total_water_moved: float = 0.0          # kg

    # Scratch, recomputed every step
    total_mass: float = 0.0         # kg
    dynamo_force: float = 0.0       # N


def check_wagon_count(wagon_count):
    """Reject anything that is not an integer >= 1."""
    if isinstance(wagon_count, bool) or not isinstance(wagon_count, numbers.Integral):
        raise ValueError(f"wagon_count must be an integer, got {wagon_count!r}")
    if wagon_count < 1:
        raise ValueError(f"wagon_count must be at least 1, got {wagon_count}")
    return int(wagon_count)


def create_state(wagon_count=None, config=DEFAULT_CONFIG):
    """Fresh train at the summit, empty, about to start loading.

    Args:
        wagon_count: Number of tank wagons (int >= 1). None selects
                     config.default_wagon_count.
        config: TrainConfig

    Returns:
        TrainState in the loading phase

    Raises:
        ValueError: wagon_count is not a positive integer
    """
    if wagon_count is None:
        wagon_count = config.default_wagon_count
    wagon_count = check_wagon_count(wagon_count)
    return TrainState(
        phase=LOADING,
        wagon_count=wagon_count,
        altitude=config.summit_altitude,
    )
