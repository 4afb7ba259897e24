"""Entry point for the tunnel monitoring simulation."""

from __future__ import annotations

import argparse
import logging
import threading
from pathlib import Path

from tunnelwatch.core.kernel import TunnelKernel
from tunnelwatch.utils.config import DEFAULT_CONFIG_PATH, load_simulation_config
from tunnelwatch.utils.logging import configure_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the simulation runner."""

    parser = argparse.ArgumentParser(
        description="Run the tunnel traffic simulation with AI incident detection"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to the scenario configuration file",
    )
    parser.add_argument(
        "--ticks",
        type=int,
        default=None,
        help="Maximum number of simulation ticks to execute (default: run until stopped)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the random number generator (overrides the scenario file)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file",
    )
    parser.add_argument(
        "--mode",
        default="headless",
        choices=["headless", "visual", "report", "dash"],
        help="Execution mode: headless logging, matplotlib dashboard, offline report, or Dash control center",
    )
    parser.add_argument(
        "--history",
        type=int,
        default=240,
        help="Number of ticks retained in visual dashboard plots (visual mode only)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    configure_logging(args.log_level, args.log_file)
    logger = logging.getLogger(__name__)

    if args.ticks is not None and args.ticks <= 0:
        args.ticks = None

    if not args.config.exists():
        parser_hint = f"Try copying {DEFAULT_CONFIG_PATH}"
        raise FileNotFoundError(f"Configuration file not found: {args.config}. {parser_hint}")

    config = load_simulation_config(args.config)
    if args.seed is not None:
        config["seed"] = args.seed

    if args.mode == "report" and args.ticks is None:
        args.ticks = int(config.get("report_ticks", 1800))
        logger.info("Report mode without tick limit; defaulting to %d ticks.", args.ticks)

    kernel = TunnelKernel(config=config, max_ticks=args.ticks)

    logger.info(
        "Starting tunnel simulation (tick_duration=%.3fs, max_ticks=%s)",
        kernel.tick_duration,
        "∞" if kernel.max_ticks is None else kernel.max_ticks,
    )

    kernel.bootstrap()

    if args.mode == "visual":
        _run_with_dashboard(kernel, args, logger)
    elif args.mode == "report":
        _run_with_report(kernel, logger)
    elif args.mode == "dash":
        _run_with_dash(kernel, logger)
    else:
        _run_headless(kernel, logger)


def _run_headless(kernel: TunnelKernel, logger: logging.Logger) -> None:
    try:
        kernel.run()
    except KeyboardInterrupt:
        logger.warning("Simulation interrupted by user")
    except Exception:
        logger.exception("Unexpected error in simulation loop")
        raise
    finally:
        logger.info("Shutting down simulation")
        kernel.shutdown()
        snapshot = kernel.snapshot()
        logger.info(
            "Final state: t=%.1fs vehicles=%d alerts=%d incident=%s",
            snapshot.elapsed,
            snapshot.vehicle_count,
            len(snapshot.alerts),
            snapshot.incident_detected,
        )


def _run_with_dashboard(kernel: TunnelKernel, args: argparse.Namespace, logger: logging.Logger) -> None:
    from tunnelwatch.viz.dashboard import SimulationDashboard

    generation = kernel.start()
    kernel_thread = threading.Thread(
        target=kernel.run, args=(generation,), name="KernelThread", daemon=True
    )
    kernel_thread.start()
    logger.info("Kernel running in background thread; launching dashboard")

    dashboard = SimulationDashboard(kernel=kernel, history=args.history)
    try:
        dashboard.start()
    except KeyboardInterrupt:
        logger.warning("Dashboard interrupted by user")
    finally:
        logger.info("Stopping simulation and dashboard")
        kernel.shutdown()
        kernel_thread.join(timeout=3)


def _run_with_report(kernel: TunnelKernel, logger: logging.Logger) -> None:
    from tunnelwatch.viz.report import TelemetryRecorder, render_static_dashboard
    import matplotlib.pyplot as plt

    generation = kernel.start()
    kernel_thread = threading.Thread(
        target=kernel.run, args=(generation,), name="KernelThread", daemon=True
    )
    kernel_thread.start()
    logger.info("Kernel running in background thread; recording metrics")

    recorder = TelemetryRecorder(kernel)
    records = {}
    try:
        records = recorder.record(timeout=0.5)
    except KeyboardInterrupt:
        logger.warning("Recording interrupted by user")
    finally:
        kernel.shutdown()
        kernel_thread.join(timeout=3)

    if not kernel.is_running():
        logger.info("Simulation completed with %d alerts; rendering report", len(recorder.alerts))
        fig = render_static_dashboard(records or recorder.data, list(recorder.alerts.values()))
        fig.canvas.manager.set_window_title("Tunnel Monitoring Report")
        plt.show()


def _run_with_dash(kernel: TunnelKernel, logger: logging.Logger) -> None:
    from tunnelwatch.core.controller import SimulationController
    from tunnelwatch.viz.server import build_dashboard_app

    controller = SimulationController(kernel)
    app = build_dashboard_app(controller)

    try:
        logger.info("Starting Dash control center on http://127.0.0.1:8050")
        app.run(debug=False, use_reloader=False)
    except KeyboardInterrupt:
        logger.warning("Dash server interrupted by user")
    finally:
        controller.stop()


if __name__ == "__main__":
    main()
