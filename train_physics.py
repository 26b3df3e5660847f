#!/usr/bin/env python3
"""
Gravity Rail Physics Module — force balance on the helix

One integration step for a single train moving along one directed track
(descent or ascent). The helix is treated as a straight incline of constant
grade θ, which is exact for the along-track force components.

Key equations:
  F_gravity = m g sin θ            (driving on descent, opposing on ascent)
  F_rolling = μ m g cos θ          (always opposing)
  F_air     = C v²                 (always opposing, C independent of load)
  P_dynamo  = η_dynamo F_dynamo v

The integrator is explicit Euler with speed clamping. It has no internal
stability control: callers keep dt small (the batch driver sub-steps).
"""
import math
from dataclasses import replace

from train_config import DEFAULT_CONFIG, J_PER_MWH

DOWN = "down"
UP = "up"

# ═════════════════════════════════════════════════════════════════════
# MASS AND FORCES
# ═════════════════════════════════════════════════════════════════════

def total_mass(state, config=DEFAULT_CONFIG):
    """m = m_loco + n × (m_wagon + f_water × m_water)"""
    train = config.loco_mass + state.wagon_count * config.wagon_empty_mass
    water = state.water_fraction * state.wagon_count * config.wagon_water_capacity
    return train + water


def track_forces(m, v, config=DEFAULT_CONFIG):
    """Along-track force components for mass m at speed v.

    Returns:
        (F_gravity, F_rolling, F_air) in N, all non-negative magnitudes
    """
    theta = config.track_angle
    F_gravity = m * config.g * math.sin(theta)
    F_rolling = config.rolling_resistance * m * config.g * math.cos(theta)
    F_air = config.aero_cda * v * v
    return F_gravity, F_rolling, F_air


def brake_fraction(v, config=DEFAULT_CONFIG):
    """Share of the available descent force taken by the dynamos.

    0.5 + 0.5 tanh(k (v - v_target)), clamped to [f_min, f_max]. Above
    target the train brakes harder, below target it brakes less; the
    upper clamp keeps some net driving force so the train never stalls.
    """
    err = v - config.target_speed_down
    f = 0.5 + 0.5 * math.tanh(err * config.brake_gain)
    return max(config.brake_fraction_min, min(config.brake_fraction_max, f))


# ═════════════════════════════════════════════════════════════════════
# MOTION STEP
# ═════════════════════════════════════════════════════════════════════

def _descend(s, dt, config):
    m = s.total_mass
    F_gravity, F_rolling, F_air = track_forces(m, s.speed, config)

    F_available = F_gravity - F_rolling - F_air
    F_dynamo = max(0.0, F_available * brake_fraction(s.speed, config))
    F_net = F_available - F_dynamo

    accel = F_net / m
    speed = max(0.0, min(config.max_speed_down, s.speed + accel * dt))

    dist = speed * dt
    progress = min(1.0, s.track_progress + dist / config.total_track_down)

    return replace(
        s,
        speed=speed,
        track_progress=progress,
        altitude=config.summit_altitude - progress * config.height_diff,
        energy_generated=s.energy_generated + F_dynamo * dist * config.dynamo_efficiency,
        instant_power_generated=F_dynamo * speed * config.dynamo_efficiency,
        instant_power_consumed=0.0,
        dynamo_force=F_dynamo,
    )


def _ascend(s, dt, config):
    m = s.total_mass
    F_gravity, F_rolling, F_air = track_forces(m, s.speed, config)

    # Gentle proportional pull towards target speed
    F_accel = m * max(0.0, config.target_speed_up - s.speed) * config.ascent_accel_gain
    F_motor = (F_gravity + F_rolling + F_air + F_accel) / config.motor_efficiency

    F_net = F_motor * config.motor_efficiency - F_gravity - F_rolling - F_air
    accel = F_net / m
    speed = max(0.0, min(config.max_speed_up, s.speed + accel * dt))

    dist = speed * dt
    progress = min(1.0, s.track_progress + dist / config.total_track_up)

    return replace(
        s,
        speed=speed,
        track_progress=progress,
        altitude=config.valley_altitude + progress * config.height_diff,
        energy_consumed_ascent=s.energy_consumed_ascent + F_motor * dist,
        instant_power_consumed=F_motor * speed,
        instant_power_generated=0.0,
        dynamo_force=0.0,
    )


def simulate_motion(state, dt, direction, config=DEFAULT_CONFIG):
    """Advance a moving train by dt seconds.

    Args:
        state: TrainState with total_mass already set for this step
        dt: Time step (s), small enough to be quasi-static
        direction: DOWN or UP
        config: TrainConfig

    Returns:
        New TrainState with speed, track_progress, altitude, the phase
        energy accumulator and instantaneous powers updated
    """
    if direction == DOWN:
        return _descend(state, dt, config)
    if direction == UP:
        return _ascend(state, dt, config)
    raise ValueError(f"Unknown direction: {direction!r}")


# ═════════════════════════════════════════════════════════════════════
# IDEAL CYCLE
# ═════════════════════════════════════════════════════════════════════

def theoretical_cycle_energy(wagon_count, config=DEFAULT_CONFIG):
    """Loss-free energy budget of one cycle, efficiencies only.

    E_down = m_full g Δh η_dynamo,   E_up = m_empty g Δh / η_motor

    Returns:
        dict with generated_MWh, consumed_MWh, surplus_MWh, ratio
    """
    c = config
    full = c.loco_mass + wagon_count * (c.wagon_empty_mass + c.wagon_water_capacity)
    empty = c.loco_mass + wagon_count * c.wagon_empty_mass
    E_down = full * c.g * c.height_diff * c.dynamo_efficiency
    E_up = empty * c.g * c.height_diff / c.motor_efficiency
    return {
        "generated_MWh": E_down / J_PER_MWH,
        "consumed_MWh": E_up / J_PER_MWH,
        "surplus_MWh": (E_down - E_up) / J_PER_MWH,
        "ratio": E_down / E_up if E_up > 0 else 0.0,
    }
