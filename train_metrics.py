#!/usr/bin/env python3
"""
Metrics Projection — display units from a TrainState

W → MW, J → MWh, kg of water → megalitres, m/s → km/h. Cumulative totals
include the in-progress accumulator while its phase is running, so they
rise smoothly instead of jumping at phase exits.
"""
from __future__ import annotations

from dataclasses import dataclass

from train_config import J_PER_MWH
from train_state import ASCENDING, DESCENDING


@dataclass(frozen=True)
class Metrics:
    # Instantaneous (MW)
    power_generated_mw: float
    power_consumed_mw: float
    power_surplus_mw: float

    # This cycle (MWh)
    cycle_generated_mwh: float
    cycle_consumed_mwh: float
    cycle_surplus_mwh: float

    # Cumulative (MWh)
    total_generated_mwh: float
    total_consumed_mwh: float
    total_surplus_mwh: float

    efficiency: float               # % of generated energy left over
    total_cycles: int
    total_water_ml: float           # megalitres
    speed_kmh: float
    altitude: float                 # m
    water_percent: float
    dynamo_output_kw: float
    phase: str


def efficiency_percent(generated, consumed):
    """(gen - con) / gen × 100, 0 when nothing has been generated.

    Goes negative when the climbs cost more than the descents return.
    """
    if generated > 0:
        return (generated - consumed) / generated * 100.0
    return 0.0


def get_metrics(state):
    gen_cycle = state.energy_generated
    con_cycle = state.energy_consumed_ascent

    total_gen = state.total_energy_generated
    if state.phase == DESCENDING:
        total_gen += state.energy_generated
    total_con = state.total_energy_consumed
    if state.phase == ASCENDING:
        total_con += state.energy_consumed_ascent

    return Metrics(
        power_generated_mw=state.instant_power_generated / 1e6,
        power_consumed_mw=state.instant_power_consumed / 1e6,
        power_surplus_mw=(state.instant_power_generated - state.instant_power_consumed) / 1e6,
        cycle_generated_mwh=gen_cycle / J_PER_MWH,
        cycle_consumed_mwh=con_cycle / J_PER_MWH,
        cycle_surplus_mwh=(gen_cycle - con_cycle) / J_PER_MWH,
        total_generated_mwh=total_gen / J_PER_MWH,
        total_consumed_mwh=total_con / J_PER_MWH,
        total_surplus_mwh=(total_gen - total_con) / J_PER_MWH,
        efficiency=efficiency_percent(total_gen, total_con),
        total_cycles=state.total_cycles,
        total_water_ml=state.total_water_moved / 1e6,
        speed_kmh=state.speed * 3.6,
        altitude=state.altitude,
        water_percent=state.water_fraction * 100.0,
        dynamo_output_kw=state.instant_power_generated / 1e3,
        phase=state.phase,
    )
