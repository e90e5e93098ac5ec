"""
Walk-forward evaluation CLI entrypoint.

Usage:
    python -m training.cli.run_walk_forward --config configs/example_run.yaml --output results/example
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure project root on path
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from config.run import RunConfig  # noqa: E402
from training.pipeline import WalkForwardPipeline  # noqa: E402
from training.validation.walk_forward import WalkForwardScheduler  # noqa: E402
from data.loader import PanelLoader  # noqa: E402
from data.time_index import TimeIndex  # noqa: E402
from utils.logger import get_training_logger, setup_logger  # noqa: E402


def write_outputs(result, output_dir: Path) -> None:
    """Write stitched scores, diagnostics and backtest summaries."""
    output_dir.mkdir(parents=True, exist_ok=True)
    wf = result.walk_forward

    wf.scores.to_frame().to_csv(output_dir / "scores.csv", index=False)

    diagnostics = {
        "cancelled": wf.cancelled,
        "windows": [
            {
                "window_id": w.window_id,
                "is_start": w.is_start,
                "is_end": w.is_end,
                "oos_start": w.oos_start,
                "oos_end": w.oos_end,
            }
            for w in wf.windows
        ],
        "degraded_windows": wf.degraded_windows,
        "selected_params": {str(k): v for k, v in wf.selected_params.items()},
        "diagnostics": [d.to_dict() for d in wf.diagnostics],
    }
    with open(output_dir / "diagnostics.json", "w") as f:
        json.dump(diagnostics, f, indent=2, default=str)

    if result.backtest is not None:
        with open(output_dir / "backtest_metrics.json", "w") as f:
            json.dump(result.backtest.metrics.to_dict(), f, indent=2)
        result.backtest.equity.rename("equity").to_csv(output_dir / "equity.csv")
    if result.cost_sweep is not None:
        result.cost_sweep.to_csv(output_dir / "cost_sweep.csv")


def main():
    parser = argparse.ArgumentParser(description="Run a walk-forward evaluation from a run config.")
    parser.add_argument("--config", required=True, help="Path to run YAML config.")
    parser.add_argument("--output", default=None, help="Output directory (default: results/<run name>).")
    parser.add_argument("--dry-run", action="store_true", help="Load config and data, schedule windows, then exit.")
    parser.add_argument("--log-dir", default=None, help="Also write JSON logs to this directory.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    setup_logger(level=logging.DEBUG if args.verbose else logging.INFO, log_dir=args.log_dir)
    logger = get_training_logger()
    cfg = RunConfig.from_yaml(args.config)

    if args.dry_run:
        features = PanelLoader(cfg.data).load_features()
        time_index = TimeIndex.from_panel(features, cfg.data.date_column)
        schedule = WalkForwardScheduler.from_config(cfg.walk_forward).schedule(time_index)
        for window in schedule:
            logger.info(window.describe(time_index))
        logger.info(f"Dry run completed: config loaded and {len(schedule)} windows scheduled.")
        return 0

    pipeline = WalkForwardPipeline(cfg)
    result = pipeline.run()

    output_dir = Path(args.output) if args.output else Path("results") / cfg.name
    write_outputs(result, output_dir)

    logger.info(
        f"Completed. Outputs written to {output_dir}",
        extra_data={
            "scores": len(result.walk_forward.scores),
            "degraded_windows": result.walk_forward.degraded_windows,
        },
    )
    if result.backtest is not None:
        print(result.backtest.metrics.summary())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
