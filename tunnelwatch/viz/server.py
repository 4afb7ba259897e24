"""Dash application providing live controls and a monitoring view of the tunnel."""

from __future__ import annotations

import logging
from typing import Any

import dash
from dash import Dash, Output, Input, dcc, html
import plotly.graph_objs as go

from tunnelwatch.core.controller import SimulationController
from tunnelwatch.core.models import CAMERA_ZONES, LANE_COUNT, Severity, TunnelSnapshot, VehicleType
from tunnelwatch.viz.camera import CameraView

logger = logging.getLogger(__name__)

SEVERITY_STYLES = {
    Severity.CRITICAL: {"borderLeft": "4px solid #ef4444", "background": "rgba(127, 29, 29, 0.3)"},
    Severity.WARNING: {"borderLeft": "4px solid #eab308", "background": "rgba(113, 63, 18, 0.3)"},
    Severity.INFO: {"borderLeft": "4px solid #3b82f6", "background": "rgba(30, 58, 138, 0.3)"},
}


def build_dashboard_app(controller: SimulationController, camera: CameraView | None = None) -> Dash:
    camera = camera or CameraView()
    dash_app = dash.Dash(__name__, title="Tunnel Monitoring Control Center")

    dash_app.layout = html.Div(
        className="app-container",
        children=[
            html.Div(
                className="header",
                children=[
                    html.H1("Tunnel Monitoring System"),
                    html.P("Real-time ITS monitoring and AI-powered incident detection"),
                    html.Div(id="status-indicator", className="status-indicator"),
                    html.Div(id="time-display", className="tick-display"),
                ],
            ),
            html.Div(
                className="controls",
                children=[
                    html.Button("Start", id="start-btn", n_clicks=0, className="btn btn-start"),
                    html.Button("Pause/Resume", id="pause-btn", n_clicks=0, className="btn btn-pause"),
                    html.Button("Reset", id="reset-btn", n_clicks=0, className="btn"),
                    dcc.RadioItems(
                        id="camera-select",
                        options=[{"label": zone.id, "value": zone.index} for zone in CAMERA_ZONES],
                        value=camera.zone.index,
                        inline=True,
                    ),
                ],
            ),
            html.Div(
                className="main",
                children=[
                    dcc.Graph(id="tunnel-view"),
                    dcc.Graph(id="environment-chart"),
                ],
            ),
            html.Div(
                className="sidebar",
                children=[
                    html.Div(
                        id="incident-banner",
                        className="incident-banner",
                        style={"display": "none"},
                        children=[
                            html.H3("INCIDENT DETECTED"),
                            html.P("AI system has identified anomalies. Review camera feeds and insights below."),
                            html.Button("Acknowledge", id="ack-btn", n_clicks=0, className="btn btn-emergency"),
                        ],
                    ),
                    html.H3("Sensors"),
                    html.Div(id="sensor-readout", className="sensor-readout"),
                    html.H3("AI Insights"),
                    html.Div(id="insight-list", className="log-content"),
                    html.H3("System Status"),
                    html.Div(id="system-status", className="system-status"),
                ],
            ),
            dcc.Interval(id="state-poll", interval=250, n_intervals=0),
        ],
    )

    register_callbacks(dash_app, controller, camera)
    return dash_app


def register_callbacks(app: Dash, controller: SimulationController, camera: CameraView) -> None:
    @app.callback(
        Output("camera-select", "value"),
        Input("camera-select", "value"),
        prevent_initial_call=True,
    )
    def select_camera(value: int) -> int:
        try:
            return camera.select_zone(int(value)).index
        except ValueError:
            logger.warning("Rejected camera zone selection %r", value)
            return camera.zone.index

    @app.callback(
        Output("status-indicator", "children"),
        Output("time-display", "children"),
        Output("tunnel-view", "figure"),
        Output("environment-chart", "figure"),
        Output("incident-banner", "style"),
        Output("sensor-readout", "children"),
        Output("insight-list", "children"),
        Output("system-status", "children"),
        Input("state-poll", "n_intervals"),
    )
    def refresh_state(_interval: int):
        snapshot = controller.snapshot()
        status = "Running" if snapshot.running else "Stopped"
        banner_style = {"display": "block"} if snapshot.incident_detected else {"display": "none"}

        return (
            f"Status: {status}",
            f"{snapshot.elapsed:.1f}s | Vehicles: {snapshot.vehicle_count}",
            build_tunnel_figure(snapshot, camera),
            _build_environment_chart(controller.get_history().get("environment", [])),
            banner_style,
            _sensor_readout(snapshot),
            _insight_items(snapshot),
            _system_status(snapshot),
        )

    @app.callback(
        Output("start-btn", "n_clicks"),
        Input("start-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def handle_start(_clicks: int):
        controller.start()
        return _clicks

    @app.callback(
        Output("pause-btn", "n_clicks"),
        Input("pause-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def handle_pause(_clicks: int):
        controller.toggle_pause()
        return _clicks

    @app.callback(
        Output("reset-btn", "n_clicks"),
        Input("reset-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def handle_reset(_clicks: int):
        controller.reset()
        return 0

    @app.callback(
        Output("ack-btn", "n_clicks"),
        Input("ack-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def handle_acknowledge(_clicks: int):
        controller.acknowledge_incident()
        return 0


def build_tunnel_figure(snapshot: TunnelSnapshot, camera: CameraView) -> go.Figure:
    """Top-down tunnel view: lanes across, tunnel progress downwards."""

    fig = go.Figure()
    zone = camera.zone
    fig.add_hrect(y0=zone.lower, y1=zone.upper, fillcolor="#3b82f6", opacity=0.12, line_width=0)

    for vehicle_type in VehicleType:
        vehicles = [vehicle for vehicle in snapshot.vehicles if vehicle.type is vehicle_type]
        if not vehicles:
            continue
        fig.add_trace(
            go.Scatter(
                x=[vehicle.lane + 1 for vehicle in vehicles],
                y=[vehicle.position for vehicle in vehicles],
                mode="markers",
                name=vehicle_type.value,
                text=[f"{vehicle.id} {vehicle.temperature:.0f}°C" for vehicle in vehicles],
                marker={
                    "symbol": "square" if vehicle_type is VehicleType.TRUCK else "circle",
                    "size": 18 if vehicle_type is VehicleType.TRUCK else 14,
                    "color": [vehicle.color for vehicle in vehicles],
                    "line": {
                        "color": ["#ef4444" if vehicle.detected else "#60a5fa" for vehicle in vehicles],
                        "width": [3 if camera.in_view(vehicle) or vehicle.detected else 0 for vehicle in vehicles],
                    },
                },
            )
        )

    fig.update_layout(
        title=f"Tunnel view ({zone.id} selected)",
        template="plotly_dark",
        xaxis={"range": [0.5, LANE_COUNT + 0.5], "dtick": 1, "title": "Lane"},
        yaxis={"range": [100, 0], "title": "Progress (%)"},
        showlegend=True,
    )
    return fig


def _build_environment_chart(history: list[tuple[int, dict[str, Any]]]) -> go.Figure:
    fig = go.Figure()
    metric_series: dict[str, tuple[list[int], list[float]]] = {}
    for tick, metrics in history:
        for key, value in metrics.items():
            if not isinstance(value, (int, float)):
                continue
            xs, ys = metric_series.setdefault(key, ([], []))
            xs.append(tick)
            ys.append(float(value))

    for key, (xs, ys) in metric_series.items():
        fig.add_trace(go.Scatter(x=xs, y=ys, mode="lines", name=key))

    fig.update_layout(title="Environmental Sensors", template="plotly_dark")
    return fig


def _sensor_readout(snapshot: TunnelSnapshot) -> list[html.Div]:
    env = snapshot.environment
    return [
        html.Div(f"Air Quality: {env.air_quality:.0f}%"),
        html.Div(f"Temperature: {env.temperature:.1f}°C"),
        html.Div(f"Visibility: {env.visibility:.0f}%"),
    ]


def _insight_items(snapshot: TunnelSnapshot) -> list[html.Div] | html.P:
    if not snapshot.alerts:
        return html.P("No incidents detected. System monitoring...")
    return [
        html.Div(
            className="insight",
            style=SEVERITY_STYLES[alert.severity],
            children=[
                html.P(alert.message),
                html.Small(f"{alert.timestamp} {alert.zone or ''}".strip()),
            ],
        )
        for alert in snapshot.alerts
    ]


def _system_status(snapshot: TunnelSnapshot) -> list[html.Div]:
    online = sum(1 for zone in CAMERA_ZONES if zone.active)
    return [
        html.Div(f"CCTV Cameras: {online}/{len(CAMERA_ZONES)} Online"),
        html.Div(f"AI Detection: {'Active' if snapshot.running else 'Standby'}"),
        html.Div(f"Ventilation: {snapshot.ventilation_level:.0f}%"),
        html.Div("Emergency Systems: Ready"),
    ]
