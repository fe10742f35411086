"""Run an orrery mission headless.

Flies one mission against the built-in Solar System (or a JSON
configuration), prints the event log and summary, and optionally writes
results, the spacecraft track and plots into an output directory.

Usage:
  python -m orrery --list
  python -m orrery --mission grand-tour --time-scale 50
  python -m orrery --mission earth-mars-direct --out build/reports --plot
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import numpy as np

from .core.config import ConfigurationError, create_solar_system_config, load_config
from .scenarios.mission_run import MissionScenario, MissionScenarioConfig


def _write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    def _default(o: Any):
        # Numpy types
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, np.generic):
            return o.item()
        if isinstance(o, Enum):
            return o.value
        if is_dataclass(o):
            return asdict(o)
        return str(o)

    path.write_text(json.dumps(obj, indent=2, sort_keys=True, default=_default) + "\n", encoding="utf-8")


def _write_track_csv(path: Path, scenario: MissionScenario) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["elapsed", "progress", "x", "y", "z"])
        rows = zip(scenario.time_history, scenario.progress_history, scenario.position_history)
        for t, p, position in rows:
            xyz = position.tolist() if position is not None else ["", "", ""]
            writer.writerow([t, p, *xyz])


def _list_missions(config_path: Optional[str]) -> None:
    config = load_config(config_path) if config_path else create_solar_system_config()
    for mission in config.missions:
        print(f"{mission.id:24s} {mission.difficulty:8s} {len(mission.waypoints)} waypoints, "
              f"duration {mission.total_duration:.0f}  {mission.name}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="orrery", description="Run an orrery mission headless")
    parser.add_argument("--mission", default="earth-mars-direct", help="Mission id (default: earth-mars-direct)")
    parser.add_argument("--config", default=None, help="JSON configuration file (default: built-in Solar System)")
    parser.add_argument("--time-scale", type=float, default=1.0, help="Simulation time per real second")
    parser.add_argument("--dt", type=float, default=0.5, help="Real seconds per tick")
    parser.add_argument("--max-duration", type=float, default=None, help="Real-time limit in seconds")
    parser.add_argument("--out", default=None, help="Write results/track/plots into this directory")
    parser.add_argument("--plot", action="store_true", help="Save plots (requires --out)")
    parser.add_argument("--list", action="store_true", help="List available missions and exit")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print the summary")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.dt <= 0:
        parser.error("--dt must be positive")
    if args.plot and not args.out:
        parser.error("--plot requires --out")

    try:
        if args.list:
            _list_missions(args.config)
            return 0

        scenario = MissionScenario(MissionScenarioConfig(
            mission_id=args.mission,
            time_scale=args.time_scale,
            real_delta_seconds=args.dt,
            max_duration=args.max_duration,
            config_path=args.config,
            quiet=args.quiet,
        ))
        results = scenario.run()
    except (ConfigurationError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    print(scenario.get_summary())

    if args.out:
        out_dir = Path(args.out)
        _write_json(out_dir / f"{args.mission}_results.json",
                    {"results": results, "events": scenario.events,
                     "reports": list(scenario.simulator.reports)})
        _write_track_csv(out_dir / f"{args.mission}_track.csv", scenario)

        if args.plot:
            # Force headless plotting
            import matplotlib

            matplotlib.use("Agg")
            import matplotlib.pyplot as plt

            fig = scenario.plot_results()
            fig.savefig(out_dir / f"{args.mission}_track.png", dpi=160)
            plt.close(fig)

    return 0 if results["success"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
