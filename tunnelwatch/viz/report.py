"""Offline reporting helpers for the tunnel simulation."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, DefaultDict, List, Tuple

import matplotlib.pyplot as plt

from tunnelwatch.core.kernel import TunnelKernel
from tunnelwatch.core.models import Alert
from tunnelwatch.viz.dashboard import create_plot_config

NumericPoint = Tuple[int, float]
MetricSeries = DefaultDict[str, DefaultDict[str, List[NumericPoint]]]


class TelemetryRecorder:
    """Collect metrics events and raised alerts for offline analysis."""

    def __init__(self, kernel: TunnelKernel) -> None:
        self.kernel = kernel
        self.data: MetricSeries = defaultdict(lambda: defaultdict(list))
        self.alerts: dict[str, Alert] = {}

    def record(self, timeout: float = 0.5) -> MetricSeries:
        """Block until the simulation stops and return captured metrics."""

        while True:
            event = self.kernel.metrics_stream(timeout=timeout)
            if event is None:
                if not self.kernel.is_running():
                    break
                continue

            event_type = event.get("type")
            if event_type == "shutdown":
                break

            if event_type == "alert":
                alert = event["alert"]
                self.alerts[alert.id] = alert
                continue

            if event_type != "metrics":
                continue

            subsystem = str(event.get("subsystem", ""))
            metrics = event.get("metrics", {})
            tick = int(event.get("tick", 0))

            for key, value in metrics.items():
                if isinstance(value, bool):
                    numeric = 1.0 if value else 0.0
                elif isinstance(value, (int, float)):
                    numeric = float(value)
                else:
                    continue
                self.data[subsystem][key].append((tick, numeric))

        return self.data


def render_static_dashboard(
    records: MetricSeries,
    alerts: list[Alert] | None = None,
    title: str = "Tunnel Monitoring Report",
) -> plt.Figure:
    """Render a static report from recorded metrics and alerts."""

    fig, axes = plt.subplots(2, 2, figsize=(12, 8))
    fig.suptitle(title, fontsize=16)
    config = create_plot_config([axes[0][0], axes[0][1], axes[1][0]])

    for subsystem, subsystem_cfg in config.items():
        axis = subsystem_cfg["axis"]
        axis.set_title(subsystem_cfg["title"])
        axis.set_xlabel("Tick")
        axis.set_ylabel(subsystem_cfg["ylabel"])
        axis.grid(True, linestyle="--", linewidth=0.5, alpha=0.6)

        subsystem_data = records.get(subsystem, {})
        for metric_name, props in subsystem_cfg["metrics"].items():
            points = subsystem_data.get(metric_name, [])
            if not points:
                continue

            points.sort(key=lambda p: p[0])
            ticks, values = zip(*points)
            axis.plot(ticks, values, label=props["label"], color=props["color"])

        if subsystem_cfg["metrics"]:
            axis.legend(loc="upper right")

    _render_alert_table(axes[1][1], sorted(alerts or [], key=lambda alert: alert.sequence))

    plt.tight_layout()
    return fig


def _render_alert_table(axis: Any, alerts: list[Alert]) -> None:
    axis.axis("off")
    axis.set_title("Alerts raised")
    if not alerts:
        axis.text(0.5, 0.5, "No incidents detected", ha="center", va="center")
        return
    rows = [[alert.timestamp, alert.severity.value, alert.zone or "", alert.message] for alert in alerts[-12:]]
    table = axis.table(cellText=rows, colLabels=["Time", "Severity", "Zone", "Message"], loc="upper center")
    table.auto_set_font_size(False)
    table.set_fontsize(7)
