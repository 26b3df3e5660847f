#!/usr/bin/env python3
"""
Gravity Rail Configuration Module

Closed-cycle "gravity battery" railway. A train of water tank wagons fills
at the summit, descends a helical track while regenerative dynamos brake it,
drains at the valley and climbs back up empty on a second helix. The descent
harvests more energy than the lighter ascent consumes; the surplus feeds a
datacenter on the valley floor.

Key design features:
  - Descending and ascending helices share the same per-turn geometry
  - Dynamo braking regulates the descent speed (no friction brakes)
  - Aerodynamic drag uses a fixed drag area, independent of load
  - Two trains can run in anti-phase on a shared catenary

All parameters live in one frozen TrainConfig. The module-level constants
are its defaults; tests and tuning runs build their own instance with
dataclasses.replace() instead of patching globals.
"""
from __future__ import annotations

import math
import sys
from dataclasses import dataclass, fields, replace

import yaml

# ── Physical constants ───────────────────────────────────────────────
G = 9.81                        # m/s² gravity
J_PER_MWH = 3.6e9               # J in one MWh
KMH = 1.0 / 3.6                 # km/h → m/s

# ── Mountain ─────────────────────────────────────────────────────────
SUMMIT_ALT = 2400.0             # m, loading station
VALLEY_ALT = 400.0              # m, unloading station, datacenter

# ── Track geometry ───────────────────────────────────────────────────
# Resulting grade ≈ 8.8 %: steep, but within the range of Swiss mountain
# lines (Brünig 12 %). Standard adhesion limit is ~8-9 %.
HELIX_TURNS_DOWN = 12
HELIX_TURNS_UP = 12
HELIX_RADIUS = 300.0            # m

# ── Train ────────────────────────────────────────────────────────────
LOCO_MASS = 84_000.0            # kg, Re 460 class locomotive
WAGON_EMPTY_MASS = 22_000.0     # kg, empty tank wagon
WAGON_WATER_CAPACITY = 60_000.0 # kg, 60 m³ per wagon
DEFAULT_WAGON_COUNT = 8

# ── Efficiency and resistance ────────────────────────────────────────
DYNAMO_EFFICIENCY = 0.88
MOTOR_EFFICIENCY = 0.90
ROLLING_RESISTANCE = 0.002      # steel wheel on steel rail

# F_air = AERO_CDA × v², from 0.5 × ρ × Cd × A
#   ρ ≈ 1.0 kg/m³ (mean over 400-2400 m), Cd ≈ 1.8, A ≈ 12 m²
AERO_CDA = 11.0                 # N/(m/s)²

# ── Speed regulation ─────────────────────────────────────────────────
MAX_SPEED_DOWN = 60 * KMH
MAX_SPEED_UP = 45 * KMH
TARGET_SPEED_DOWN = 50 * KMH
TARGET_SPEED_UP = 40 * KMH

BRAKE_GAIN = 2.0                # 1/(m/s), tanh slope of the braking law
BRAKE_FRACTION_MIN = 0.10
BRAKE_FRACTION_MAX = 0.95
ASCENT_ACCEL_GAIN = 0.3         # 1/s, proportional term towards target

# ── Stations ─────────────────────────────────────────────────────────
LOAD_TIME = 300.0               # s to fill all wagons
UNLOAD_TIME = 180.0             # s to drain all wagons

# ── Dual-train probe ─────────────────────────────────────────────────
PROBE_DT = 1.0                  # s
PROBE_TIME_LIMIT = 86_400.0     # s, one simulated day


@dataclass(frozen=True)
class TrainConfig:
    """Physical and track parameters for one simulation run."""
    # Mountain
    g: float = G
    summit_altitude: float = SUMMIT_ALT
    valley_altitude: float = VALLEY_ALT

    # Track
    helix_turns_down: int = HELIX_TURNS_DOWN
    helix_turns_up: int = HELIX_TURNS_UP
    helix_radius: float = HELIX_RADIUS

    # Train
    loco_mass: float = LOCO_MASS
    wagon_empty_mass: float = WAGON_EMPTY_MASS
    wagon_water_capacity: float = WAGON_WATER_CAPACITY
    default_wagon_count: int = DEFAULT_WAGON_COUNT

    # Efficiency and resistance
    dynamo_efficiency: float = DYNAMO_EFFICIENCY
    motor_efficiency: float = MOTOR_EFFICIENCY
    rolling_resistance: float = ROLLING_RESISTANCE
    aero_cda: float = AERO_CDA

    # Speed regulation
    max_speed_down: float = MAX_SPEED_DOWN
    max_speed_up: float = MAX_SPEED_UP
    target_speed_down: float = TARGET_SPEED_DOWN
    target_speed_up: float = TARGET_SPEED_UP
    brake_gain: float = BRAKE_GAIN
    brake_fraction_min: float = BRAKE_FRACTION_MIN
    brake_fraction_max: float = BRAKE_FRACTION_MAX
    ascent_accel_gain: float = ASCENT_ACCEL_GAIN

    # Stations
    load_time: float = LOAD_TIME
    unload_time: float = UNLOAD_TIME

    # Dual-train probe
    probe_dt: float = PROBE_DT
    probe_time_limit: float = PROBE_TIME_LIMIT

    @property
    def height_diff(self) -> float:
        """Summit-to-valley drop (m)"""
        return self.summit_altitude - self.valley_altitude

    @property
    def height_per_turn(self) -> float:
        """Height change per helix turn (m), set by the descending helix"""
        return self.height_diff / self.helix_turns_down

    @property
    def circumference(self) -> float:
        return 2.0 * math.pi * self.helix_radius

    @property
    def track_length_per_turn(self) -> float:
        """L_turn = √((2πr)² + Δh_turn²)"""
        return math.sqrt(self.circumference**2 + self.height_per_turn**2)

    @property
    def total_track_down(self) -> float:
        return self.track_length_per_turn * self.helix_turns_down

    @property
    def total_track_up(self) -> float:
        return self.track_length_per_turn * self.helix_turns_up

    @property
    def track_angle(self) -> float:
        """Grade angle θ = atan(Δh_turn / 2πr) in radians"""
        return math.atan(self.height_per_turn / self.circumference)

    def validate(self) -> "TrainConfig":
        """Raise ValueError for a physically meaningless configuration."""
        if self.summit_altitude <= self.valley_altitude:
            raise ValueError("summit_altitude must be above valley_altitude")
        if self.helix_turns_down < 1 or self.helix_turns_up < 1:
            raise ValueError("helix turn counts must be at least 1")
        for name in ("g", "helix_radius", "loco_mass", "wagon_water_capacity",
                     "load_time", "unload_time", "probe_dt", "probe_time_limit",
                     "max_speed_down", "max_speed_up"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.wagon_empty_mass < 0:
            raise ValueError("wagon_empty_mass must not be negative")
        for name in ("dynamo_efficiency", "motor_efficiency"):
            eta = getattr(self, name)
            if not 0.0 < eta <= 1.0:
                raise ValueError(f"{name} must be in (0, 1], got {eta}")
        if not 0.0 <= self.brake_fraction_min <= self.brake_fraction_max <= 1.0:
            raise ValueError("brake fraction limits must satisfy 0 <= min <= max <= 1")
        if self.max_speed_down < self.target_speed_down:
            raise ValueError("max_speed_down is below target_speed_down")
        if self.max_speed_up < self.target_speed_up:
            raise ValueError("max_speed_up is below target_speed_up")
        if self.default_wagon_count < 1:
            raise ValueError("default_wagon_count must be at least 1")
        return self


DEFAULT_CONFIG = TrainConfig()


# ── YAML overrides ───────────────────────────────────────────────────

def _coerce_like(current, value, key):
    """Coerce a YAML value to the type of the field it replaces."""
    if isinstance(current, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "on", "1")
        return bool(value)
    if isinstance(current, int):
        try:
            # allow "12" and "1.2e1"
            return int(float(value))
        except (TypeError, ValueError):
            raise ValueError(f"{key}: expected int-like value, got {value!r}")
    if isinstance(current, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key}: expected float-like value, got {value!r}")
    return value


def load_config_from_yaml(path, base=DEFAULT_CONFIG):
    """Return a copy of `base` with fields overridden from a YAML mapping.

    Speeds in the file are in m/s, like every other field. Unknown keys are
    reported on stderr and ignored.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")

    known = {f.name for f in fields(TrainConfig)}
    overrides = {}
    for k, v in data.items():
        if k not in known:
            print(f"Warning: unknown config key '{k}' ignored.", file=sys.stderr)
            continue
        overrides[k] = _coerce_like(getattr(base, k), v, k)
    return replace(base, **overrides).validate()


# ── Report ───────────────────────────────────────────────────────────

def print_config(config=DEFAULT_CONFIG, wagon_count=None):
    # Local import: train_physics imports this module.
    from train_physics import theoretical_cycle_energy

    c = config
    n = wagon_count or c.default_wagon_count
    full = c.loco_mass + n * (c.wagon_empty_mass + c.wagon_water_capacity)
    empty = c.loco_mass + n * c.wagon_empty_mass
    th = theoretical_cycle_energy(n, c)
    sep = "=" * 76
    print(f"\n{sep}")
    print("GRAVITY RAIL CONFIGURATION")
    print(sep)
    print(f"  Summit                 {c.summit_altitude:>8.0f} m       Valley        {c.valley_altitude:>8.0f} m")
    print(f"  Helix turns down/up    {c.helix_turns_down:>4}/{c.helix_turns_up:<4}       Radius        {c.helix_radius:>8.0f} m")
    print(f"  Grade                  {math.tan(c.track_angle)*100:>8.2f} %       Track/turn    {c.track_length_per_turn:>8.1f} m")
    print(f"  Track down             {c.total_track_down/1000:>8.2f} km      Track up      {c.total_track_up/1000:>8.2f} km")
    print(f"\n  TRAIN: loco {c.loco_mass/1000:.0f}t + {n} × ({c.wagon_empty_mass/1000:.0f}t "
          f"+ {c.wagon_water_capacity/1000:.0f}t water)")
    print(f"    Full {full/1000:.0f} t, empty {empty/1000:.0f} t")
    print(f"    Speed down {c.target_speed_down*3.6:.0f} km/h (max {c.max_speed_down*3.6:.0f}), "
          f"up {c.target_speed_up*3.6:.0f} km/h (max {c.max_speed_up*3.6:.0f})")
    print(f"    η_dynamo {c.dynamo_efficiency:.2f}, η_motor {c.motor_efficiency:.2f}, "
          f"μ {c.rolling_resistance}, C_air {c.aero_cda:.1f} N·s²/m²")
    print(f"\n  IDEAL CYCLE: generated {th['generated_MWh']:.2f} MWh, "
          f"consumed {th['consumed_MWh']:.2f} MWh, "
          f"surplus {th['surplus_MWh']:.2f} MWh (ratio {th['ratio']:.2f})")
    print(sep)


if __name__ == "__main__":
    print_config()
