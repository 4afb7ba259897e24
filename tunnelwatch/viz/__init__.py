"""Visualization front ends built on simulation snapshots."""

from tunnelwatch.viz.camera import CameraView
from tunnelwatch.viz.dashboard import SimulationDashboard, create_plot_config, draw_tunnel
from tunnelwatch.viz.report import TelemetryRecorder, render_static_dashboard
from tunnelwatch.viz.server import build_dashboard_app

__all__ = [
    "CameraView",
    "SimulationDashboard",
    "TelemetryRecorder",
    "render_static_dashboard",
    "create_plot_config",
    "draw_tunnel",
    "build_dashboard_app",
]
