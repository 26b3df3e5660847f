#!/usr/bin/env python3
"""
Phase State Machine — one train through the four-phase cycle

  loading     fill at the summit, linear in time
  descending  dynamo-braked run down the helix (train_physics, DOWN)
  unloading   drain at the valley, linear in time
  ascending   motored climb back up (train_physics, UP)

step() is a pure function: it copies the input, never edits it, and makes
at most one phase transition per call. The energy of a finished motion
phase is folded into the cumulative totals at its exit.
"""
import math
from dataclasses import replace

import train_physics as phys
from train_config import DEFAULT_CONFIG
from train_state import ASCENDING, DESCENDING, LOADING, UNLOADING


def _check_dt(dt):
    if not math.isfinite(dt):
        raise ValueError(f"dt must be finite, got {dt!r}")
    if dt < 0:
        raise ValueError(f"dt must not be negative, got {dt!r}")


_FINITE_FIELDS = (
    "speed", "track_progress", "altitude", "water_fraction", "phase_timer",
    "energy_generated", "energy_consumed_ascent",
    "instant_power_generated", "instant_power_consumed",
    "total_energy_generated", "total_energy_consumed", "total_water_moved",
)


def _check_finite(s, dt):
    for name in _FINITE_FIELDS:
        if not math.isfinite(getattr(s, name)):
            raise ValueError(f"dt={dt!r} overflows {name} in phase {s.phase}")
    return s


# =============================================================================
# PHASE HANDLERS
# =============================================================================

def _loading(s, dt, config):
    s.speed = 0.0
    s.instant_power_generated = 0.0
    s.instant_power_consumed = 0.0
    s.phase_timer += dt
    s.water_fraction = min(1.0, s.phase_timer / config.load_time)
    s.altitude = config.summit_altitude
    s.track_progress = 0.0

    if s.water_fraction >= 1.0:
        s.phase = DESCENDING
        s.phase_timer = 0.0
        s.water_fraction = 1.0
        s.energy_generated = 0.0
    return s


def _descending(s, dt, config):
    s = phys.simulate_motion(s, dt, phys.DOWN, config)

    if s.track_progress >= 1.0:
        s.track_progress = 1.0
        s.speed = 0.0
        s.altitude = config.valley_altitude
        s.phase = UNLOADING
        s.phase_timer = 0.0
        # Bank this descent
        s.total_energy_generated += s.energy_generated
    return s


def _unloading(s, dt, config):
    s.speed = 0.0
    s.instant_power_generated = 0.0
    s.instant_power_consumed = 0.0
    s.phase_timer += dt
    s.water_fraction = max(0.0, 1.0 - s.phase_timer / config.unload_time)
    s.altitude = config.valley_altitude

    if s.water_fraction <= 0.0:
        s.phase = ASCENDING
        s.phase_timer = 0.0
        s.water_fraction = 0.0
        s.track_progress = 0.0
        s.energy_consumed_ascent = 0.0
        s.total_water_moved += s.wagon_count * config.wagon_water_capacity
    return s


def _ascending(s, dt, config):
    s = phys.simulate_motion(s, dt, phys.UP, config)

    if s.track_progress >= 1.0:
        s.track_progress = 0.0
        s.speed = 0.0
        s.altitude = config.summit_altitude
        s.phase = LOADING
        s.phase_timer = 0.0
        # Cycle complete
        s.total_energy_consumed += s.energy_consumed_ascent
        s.total_cycles += 1
    return s


_HANDLERS = {
    LOADING: _loading,
    DESCENDING: _descending,
    UNLOADING: _unloading,
    ASCENDING: _ascending,
}


# =============================================================================
# STEP
# =============================================================================

def step(state, dt, config=DEFAULT_CONFIG):
    """Advance one train by dt simulated seconds.

    Args:
        state: TrainState (not modified)
        dt: Time step in seconds, finite and >= 0
        config: TrainConfig

    Returns:
        New TrainState

    Raises:
        ValueError: dt is negative or not finite, the phase is unknown, or
            dt is so large that the result would not be finite
    """
    _check_dt(dt)
    handler = _HANDLERS.get(state.phase)
    if handler is None:
        raise ValueError(f"Unknown phase: {state.phase!r}")

    s = replace(state)
    s.total_mass = phys.total_mass(s, config)
    return _check_finite(handler(s, dt, config), dt)


def run_for(state, duration, dt, config=DEFAULT_CONFIG):
    """Step a train forward by ceil(duration / dt) steps of size dt."""
    _check_dt(dt)
    if dt == 0:
        raise ValueError("dt must be positive to cover a duration")
    for _ in range(math.ceil(duration / dt)):
        state = step(state, dt, config)
    return state
