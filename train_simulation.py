#!/usr/bin/env python3
"""
Gravity Rail Simulation - Batch run loop, reporting and plotting

Runs one train, or two trains in anti-phase sharing a catenary, through
repeated load / descend / unload / climb cycles and reports the energy
balance seen by the datacenter at the valley.

The Simulation class is a display-free stand-in for an interactive front
end: it owns the simulated clock, time acceleration with sub-stepping, and
the start / pause / reset / wagon-count controls. run_simulation() drives
it with a fixed frame interval and records one sample per frame.

Usage:
    python train_simulation.py [options]

Options:
    --wagons=N          Tank wagons per train (default from config)
    --single            One train only (no anti-phase partner)
    --duration=S        Simulated seconds to run
    --speed=X           Time acceleration (simulated s per real s)
    --frame-dt=S        Real seconds per frame (clamped to 0.1)
    --config=FILE       YAML file overriding TrainConfig fields
    --plot=k1,k2        Graph keywords, or 'all'
    --outdir=DIR        Directory for graphs and CSV
    --save-csv          Save the time series to CSV
    --no-graphs         Skip graph generation
    --quiet             No progress lines

Graph keywords:
    power  speed  altitude  water  energy  catenary  combined
"""
from __future__ import annotations

import argparse
import csv
import json
import math
import os
import sys
from dataclasses import asdict
from typing import Dict, List, Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
from tabulate import tabulate

import train_config as cfg
from train_dual import (BUFFER_EPSILON_MW, combine_metrics,
                        create_offset_state)
from train_metrics import get_metrics
from train_phases import step
from train_state import LOADING, check_wagon_count, create_state

MAX_FRAME_DT = 0.1              # s, longest real frame honoured
SUBSTEP_SPEED = 5.0             # one extra sub-step per 5× acceleration
GRAPH_DIR = "graphs"


def format_clock(seconds):
    """Simulated time as HH:MM:SS."""
    total = int(math.floor(seconds))
    hrs, rem = divmod(total, 3600)
    mins, secs = divmod(rem, 60)
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


# =============================================================================
# DRIVER
# =============================================================================

class Simulation:
    """Clock, controls and train states for one run."""

    def __init__(self, wagon_count=None, dual=True, sim_speed=1.0,
                 config=cfg.DEFAULT_CONFIG):
        self.config = config
        self.dual = dual
        self.sim_speed = 1.0
        self.set_sim_speed(sim_speed)
        self.wagon_count = config.default_wagon_count
        self.running = False
        self.clock = 0.0
        self.state_a = None
        self.state_b = None
        self.reset(wagon_count)

    # --- controls ---

    def start(self):
        self.running = True

    def pause(self):
        self.running = False

    def reset(self, wagon_count=None):
        """Discard both trains and build fresh ones. Leaves the run paused."""
        if wagon_count is not None:
            self.wagon_count = check_wagon_count(wagon_count)
        self.running = False
        self.clock = 0.0
        self.state_a = create_state(self.wagon_count, self.config)
        self.state_b = (create_offset_state(self.wagon_count, self.config)
                        if self.dual else None)

    def set_sim_speed(self, sim_speed):
        if not math.isfinite(sim_speed) or sim_speed < 1.0:
            raise ValueError(f"sim_speed must be >= 1, got {sim_speed!r}")
        self.sim_speed = float(sim_speed)

    def set_wagon_count(self, wagon_count):
        """New wagon count for trains that may take it.

        A train accepts the change while it is loading, or any time the run
        is paused. Returns the labels of the trains that took it.
        """
        self.wagon_count = check_wagon_count(wagon_count)
        applied = []
        for label, s in self.trains().items():
            if s.phase == LOADING or not self.running:
                s.wagon_count = self.wagon_count
                applied.append(label)
        return applied

    # --- stepping ---

    def trains(self) -> Dict[str, object]:
        out = {"A": self.state_a}
        if self.state_b is not None:
            out["B"] = self.state_b
        return out

    def substeps(self):
        return max(1, math.ceil(self.sim_speed / SUBSTEP_SPEED))

    def advance(self, real_dt):
        """Advance by one frame of real_dt wall-clock seconds.

        Returns the simulated seconds covered (0 while paused).
        """
        if not self.running:
            return 0.0
        real_dt = max(0.0, min(real_dt, MAX_FRAME_DT))
        sim_dt = real_dt * self.sim_speed

        n = self.substeps()
        sub_dt = sim_dt / n
        for _ in range(n):
            self.state_a = step(self.state_a, sub_dt, self.config)
            if self.state_b is not None:
                self.state_b = step(self.state_b, sub_dt, self.config)

        self.clock += sim_dt
        return sim_dt

    def metrics(self):
        """Metrics for a single train, CombinedMetrics for a pair."""
        m_a = get_metrics(self.state_a)
        if self.state_b is None:
            return m_a
        return combine_metrics(m_a, get_metrics(self.state_b))

    def format_clock(self):
        return format_clock(self.clock)


# =============================================================================
# DATA COLLECTION
# =============================================================================

class SimData:
    """Collects one sample per frame."""

    FIELDS = [
        "time",
        "phase_a", "speed_a", "altitude_a", "water_a", "P_gen_a", "P_con_a",
        "phase_b", "speed_b", "altitude_b", "water_b", "P_gen_b", "P_con_b",
        "P_gen", "P_con", "P_surplus", "P_catenary", "buffer_active",
        "E_gen", "E_con", "E_surplus", "efficiency", "cycles", "water_ML",
    ]

    def __init__(self, dual=True):
        self.dual = dual
        for name in self.FIELDS:
            setattr(self, name, [])

    def record(self, **kwargs):
        for key, val in kwargs.items():
            getattr(self, key).append(val)

    def __len__(self):
        return len(self.time)

    def sample(self, sim):
        """Record the current state of a Simulation."""
        m = sim.metrics()
        if sim.state_b is None:
            a, b = m, None
            catenary = 0.0
            buffer_active = m.power_surplus_mw < -BUFFER_EPSILON_MW
        else:
            a, b = m.train_a, m.train_b
            catenary = m.catenary_transfer_mw
            buffer_active = m.buffer_active

        self.record(
            time=sim.clock,
            phase_a=a.phase, speed_a=a.speed_kmh, altitude_a=a.altitude,
            water_a=a.water_percent, P_gen_a=a.power_generated_mw,
            P_con_a=a.power_consumed_mw,
            phase_b=b.phase if b else "", speed_b=b.speed_kmh if b else 0.0,
            altitude_b=b.altitude if b else 0.0,
            water_b=b.water_percent if b else 0.0,
            P_gen_b=b.power_generated_mw if b else 0.0,
            P_con_b=b.power_consumed_mw if b else 0.0,
            P_gen=m.power_generated_mw, P_con=m.power_consumed_mw,
            P_surplus=m.power_surplus_mw, P_catenary=catenary,
            buffer_active=buffer_active,
            E_gen=m.total_generated_mwh, E_con=m.total_consumed_mwh,
            E_surplus=m.total_surplus_mwh, efficiency=m.efficiency,
            cycles=m.total_cycles, water_ML=m.total_water_ml,
        )


# =============================================================================
# MAIN SIMULATION LOOP
# =============================================================================

def run_simulation(config=cfg.DEFAULT_CONFIG, wagon_count=None, duration=14_400.0,
                   sim_speed=50.0, frame_dt=MAX_FRAME_DT, dual=True,
                   verbose=True, progress_interval=900.0):
    """Run the batch simulation.

    Args:
        config: TrainConfig
        wagon_count: Wagons per train, None for the config default
        duration: Simulated seconds to cover
        sim_speed: Time acceleration
        frame_dt: Real seconds per frame
        dual: Two trains in anti-phase
        verbose: Print banner, progress and phase changes
        progress_interval: Simulated seconds between progress lines

    Returns:
        (SimData, summary dict)
    """
    config.validate()
    if wagon_count is not None:
        wagon_count = check_wagon_count(wagon_count)
    if verbose:
        cfg.print_config(config, wagon_count)

    sim = Simulation(wagon_count, dual=dual, sim_speed=sim_speed, config=config)
    data = SimData(dual=dual)
    data.sample(sim)

    if verbose:
        print(f"\nStarting simulation ({'dual' if dual else 'single'} train, "
              f"{sim.wagon_count} wagons, {sim.sim_speed:.0f}× speed, "
              f"{sim.substeps()} sub-steps/frame)...")
        for label, s in sim.trains().items():
            print(f"  Train {label}: {s.phase} at {s.altitude:.0f} m")
        print("-" * 72)

    prev_phase = {label: s.phase for label, s in sim.trains().items()}
    next_report = progress_interval
    frames = 0

    sim.start()
    try:
        while sim.clock < duration:
            if sim.advance(frame_dt) <= 0.0:
                break
            frames += 1
            data.sample(sim)

            for label, s in sim.trains().items():
                if s.phase != prev_phase[label] and verbose:
                    print(f"  [{label}] {sim.format_clock()}  "
                          f"{prev_phase[label]} → {s.phase} @ {s.altitude:.0f} m")
                prev_phase[label] = s.phase

            if verbose and sim.clock >= next_report:
                m = sim.metrics()
                print(f"  t={sim.format_clock()}  gen={m.power_generated_mw:>6.2f} MW  "
                      f"con={m.power_consumed_mw:>6.2f} MW  "
                      f"net={m.power_surplus_mw:>+7.2f} MW  "
                      f"E={m.total_surplus_mwh:>7.2f} MWh  cycles={m.total_cycles}")
                next_report += progress_interval
    except KeyboardInterrupt:
        print("\nSimulation interrupted by user.", file=sys.stderr)
    sim.pause()

    summary = summarize(sim, data, frames)
    if verbose:
        print_report(sim, data, summary)
    return data, summary


def summarize(sim, data, frames):
    m = sim.metrics()
    p_surplus = np.asarray(data.P_surplus, dtype=float)
    buffer = np.asarray(data.buffer_active, dtype=bool)
    return {
        "config": asdict(sim.config),
        "results": {
            "dual": sim.dual,
            "wagon_count": sim.wagon_count,
            "time_elapsed_s": sim.clock,
            "frames": frames,
            "total_cycles": m.total_cycles,
            "total_generated_MWh": m.total_generated_mwh,
            "total_consumed_MWh": m.total_consumed_mwh,
            "total_surplus_MWh": m.total_surplus_mwh,
            "efficiency_pct": m.efficiency,
            "water_moved_ML": m.total_water_ml,
            "peak_generation_MW": float(np.max(data.P_gen)) if len(data) else 0.0,
            "mean_surplus_MW": float(np.mean(p_surplus)) if len(data) else 0.0,
            "buffer_active_fraction": float(np.mean(buffer)) if len(data) else 0.0,
        },
    }


def print_report(sim, data, summary):
    r = summary["results"]
    print(f"\n{'=' * 72}")
    print("SIMULATION COMPLETE")
    print(f"{'=' * 72}")
    print(f"  Simulated time         {sim.format_clock():>10}  ({sim.clock/3600:.2f} h)")
    print(f"  Peak generation        {r['peak_generation_MW']:>10.2f} MW")
    print(f"  Mean net power         {r['mean_surplus_MW']:>10.2f} MW")
    print(f"  Buffer active          {r['buffer_active_fraction']*100:>10.1f} % of frames")

    rows = []
    m = sim.metrics()
    per_train = [("A", m)] if sim.state_b is None else [("A", m.train_a), ("B", m.train_b)]
    for label, t in per_train:
        rows.append([label, t.phase, t.total_cycles, t.total_generated_mwh,
                     t.total_consumed_mwh, t.total_surplus_mwh, t.efficiency,
                     t.total_water_ml])
    if sim.state_b is not None:
        rows.append(["A+B", "", m.total_cycles, m.total_generated_mwh,
                     m.total_consumed_mwh, m.total_surplus_mwh, m.efficiency,
                     m.total_water_ml])
    print()
    print(tabulate(rows, headers=["Train", "Phase", "Cycles", "Gen MWh", "Con MWh",
                                  "Net MWh", "Eff %", "Water ML"],
                   floatfmt=".2f"))
    print()
    print(json.dumps(summary, indent=2))


# =============================================================================
# PLOTTING
# =============================================================================

def make_time_array(data):
    """Convert time to hours for plotting."""
    return np.asarray(data.time, dtype=float) / 3600.0


def _save(fig, filename, outdir):
    os.makedirs(outdir, exist_ok=True)
    fig.savefig(os.path.join(outdir, filename), dpi=150)
    plt.close(fig)
    print(f"  Saved {filename}")


def plot_series(data, series, ylabel, title, filename, outdir):
    """Generic single-panel plot of one or more (label, values, color)."""
    fig, ax = plt.subplots(figsize=(12, 6))
    t_h = make_time_array(data)
    for label, values, color in series:
        ax.plot(t_h, values, label=label, color=color, linewidth=1.2)
    ax.set_xlabel("Time (h)", fontsize=11)
    ax.set_ylabel(ylabel, fontsize=11)
    ax.set_title(title, fontsize=13)
    ax.grid(True, alpha=0.3)
    if len(series) > 1:
        ax.legend(loc="upper right")
    fig.tight_layout()
    _save(fig, filename, outdir)


def _per_train(data, name, color_a, color_b):
    series = [("Train A", getattr(data, name + "_a"), color_a)]
    if data.dual:
        series.append(("Train B", getattr(data, name + "_b"), color_b))
    return series


def plot_catenary(data, outdir):
    fig, ax = plt.subplots(figsize=(12, 6))
    t_h = make_time_array(data)
    surplus = np.asarray(data.P_surplus, dtype=float)
    ax.plot(t_h, data.P_catenary, color='#F4A261', lw=1.2, label="Catenary transfer")
    ax.plot(t_h, surplus, color='#457B9D', lw=1.2, label="Net to datacenter")
    ax.fill_between(t_h, surplus, 0.0, where=np.asarray(data.buffer_active, dtype=bool),
                    color='#E63946', alpha=0.25, label="Buffer supplying")
    ax.axhline(0.0, color='black', lw=0.6)
    ax.set_xlabel("Time (h)")
    ax.set_ylabel("Power (MW)")
    ax.set_title("Catenary Transfer and Net Power")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="upper right")
    fig.tight_layout()
    _save(fig, "gr_catenary.png", outdir)


def plot_combined(data, outdir):
    """Combined 2×3 overview."""
    t_h = make_time_array(data)
    fig, axes = plt.subplots(2, 3, figsize=(18, 10))
    fig.suptitle("Gravity Rail — Overview", fontsize=15, y=0.98)

    panels = [
        (axes[0, 0], _per_train(data, "altitude", '#1976D2', '#E65100'), "Altitude (m)"),
        (axes[0, 1], _per_train(data, "speed", '#1976D2', '#E65100'), "Speed (km/h)"),
        (axes[0, 2], _per_train(data, "water", '#1976D2', '#E65100'), "Water (%)"),
        (axes[1, 0], [("Generated", data.P_gen, '#06D6A0'),
                      ("Consumed", data.P_con, '#E63946')], "Power (MW)"),
        (axes[1, 1], [("Net", data.P_surplus, '#457B9D')], "Net Power (MW)"),
        (axes[1, 2], [("Generated", data.E_gen, '#06D6A0'),
                      ("Consumed", data.E_con, '#E63946'),
                      ("Net", data.E_surplus, '#457B9D')], "Energy (MWh)"),
    ]
    for ax, series, ylabel in panels:
        for label, values, color in series:
            ax.plot(t_h, values, color=color, linewidth=1.0, label=label)
        ax.set_ylabel(ylabel, fontsize=9)
        ax.grid(True, alpha=0.3)
        ax.tick_params(labelsize=8)
        if len(series) > 1:
            ax.legend(fontsize=7, loc="upper right")
    for ax in axes[1]:
        ax.set_xlabel("Time (h)", fontsize=9)

    fig.tight_layout(rect=[0, 0, 1, 0.96])
    _save(fig, "gr_combined.png", outdir)


GRAPH_REGISTRY = {
    "power": lambda d, o: plot_series(
        d, [("Generated", d.P_gen, '#06D6A0'), ("Consumed", d.P_con, '#E63946'),
            ("Net", d.P_surplus, '#457B9D')],
        "Power (MW)", "Dynamo Output and Motor Demand", "gr_power.png", o),
    "speed": lambda d, o: plot_series(
        d, _per_train(d, "speed", '#1976D2', '#E65100'),
        "Speed (km/h)", "Train Speed", "gr_speed.png", o),
    "altitude": lambda d, o: plot_series(
        d, _per_train(d, "altitude", '#1976D2', '#E65100'),
        "Altitude (m)", "Train Altitude", "gr_altitude.png", o),
    "water": lambda d, o: plot_series(
        d, _per_train(d, "water", '#1976D2', '#E65100'),
        "Water (%)", "Tank Fill Level", "gr_water.png", o),
    "energy": lambda d, o: plot_series(
        d, [("Generated", d.E_gen, '#06D6A0'), ("Consumed", d.E_con, '#E63946'),
            ("Net", d.E_surplus, '#457B9D')],
        "Energy (MWh)", "Cumulative Energy", "gr_energy.png", o),
    "catenary": lambda d, o: plot_catenary(d, o),
    "combined": lambda d, o: plot_combined(d, o),
}


def generate_graphs(data, graph_keys, outdir=GRAPH_DIR):
    """Generate requested graphs."""
    print("\nGenerating graphs...")
    if "all" in graph_keys:
        graph_keys = list(GRAPH_REGISTRY.keys())

    for key in graph_keys:
        if key in GRAPH_REGISTRY:
            try:
                GRAPH_REGISTRY[key](data, outdir)
            except Exception as e:
                print(f"  [error] {key}: {e}", file=sys.stderr)
        else:
            print(f"  [unknown] {key}", file=sys.stderr)


# =============================================================================
# CSV EXPORT
# =============================================================================

def save_csv(data, outdir=GRAPH_DIR, filename="gr_timeseries.csv"):
    """Save the recorded time series to CSV. Returns the path."""
    os.makedirs(outdir, exist_ok=True)
    path = os.path.join(outdir, filename)
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(SimData.FIELDS)
        columns = [getattr(data, name) for name in SimData.FIELDS]
        writer.writerows(zip(*columns))
    print(f"  Saved {path}")
    return path


# =============================================================================
# COMMAND-LINE INTERFACE
# =============================================================================

def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(
        description="Gravity rail simulator (water-laden descent, dynamo braking, empty ascent)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    p.add_argument("--config", type=str, default=None,
                   help="YAML config file with TrainConfig overrides")
    p.add_argument("--wagons", type=int, default=None,
                   help="Tank wagons per train (default: config value)")
    p.add_argument("--single", action="store_true",
                   help="Run one train instead of an anti-phase pair")
    p.add_argument("--duration", type=float, default=14_400.0,
                   help="Simulated time to run [s]")
    p.add_argument("--speed", type=float, default=50.0,
                   help="Time acceleration (simulated s per real s)")
    p.add_argument("--frame-dt", type=float, default=MAX_FRAME_DT,
                   help="Real seconds per frame")
    p.add_argument("--progress-interval", type=float, default=900.0,
                   help="Simulated seconds between progress lines")
    p.add_argument("--plot", type=str, default="combined",
                   help="Comma-separated graph keywords, or 'all'")
    p.add_argument("--outdir", type=str, default=GRAPH_DIR,
                   help="Directory for graphs and CSV")
    p.add_argument("--save-csv", action="store_true", help="Save time series to CSV")
    p.add_argument("--no-graphs", action="store_true", help="Skip graph generation")
    p.add_argument("--quiet", action="store_true", help="Suppress banner, progress lines and the final report")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    config = cfg.DEFAULT_CONFIG
    if args.config:
        config = cfg.load_config_from_yaml(args.config, config)

    data, _ = run_simulation(
        config=config,
        wagon_count=args.wagons,
        duration=args.duration,
        sim_speed=args.speed,
        frame_dt=args.frame_dt,
        dual=not args.single,
        verbose=not args.quiet,
        progress_interval=args.progress_interval,
    )

    if not args.no_graphs:
        keys = [k.strip() for k in args.plot.split(",") if k.strip()]
        generate_graphs(data, keys, args.outdir)

    if args.save_csv:
        save_csv(data, args.outdir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
