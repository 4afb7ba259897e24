"""Matplotlib-based live dashboard for the tunnel simulation."""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Tuple

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation
from matplotlib.axes import Axes

from tunnelwatch.core.kernel import TunnelKernel
from tunnelwatch.core.models import CAMERA_ZONES, LANE_COUNT, TUNNEL_LENGTH, TunnelSnapshot, VehicleType
from tunnelwatch.viz.camera import CameraView

Number = float


def create_plot_config(axes: List[Axes]) -> Dict[str, Dict[str, Any]]:
    ax_traffic, ax_environment, ax_alerts = axes

    return {
        "traffic": {
            "axis": ax_traffic,
            "metrics": {
                "vehicles": {"label": "Vehicles", "color": "tab:blue"},
                "avg_speed": {"label": "Avg speed (%/tick)", "color": "tab:orange"},
            },
            "title": "Traffic",
            "ylabel": "Value",
        },
        "environment": {
            "axis": ax_environment,
            "metrics": {
                "air_quality": {"label": "Air quality (%)", "color": "tab:green"},
                "temperature": {"label": "Temperature (°C)", "color": "tab:red"},
                "visibility": {"label": "Visibility (%)", "color": "tab:cyan"},
            },
            "title": "Environmental Sensors",
            "ylabel": "Reading",
        },
        "detection": {
            "axis": ax_alerts,
            "metrics": {
                "warnings_total": {"label": "Warnings", "color": "tab:olive"},
                "critical_total": {"label": "Critical", "color": "tab:red"},
            },
            "title": "AI Insights",
            "ylabel": "Alerts raised",
        },
    }


def draw_tunnel(axis: Axes, snapshot: TunnelSnapshot, camera: CameraView) -> None:
    """Render the snapshot as a top-down tunnel with one column per lane."""

    axis.clear()
    axis.set_title(f"Tunnel ({camera.zone.id} selected) t={snapshot.elapsed:.1f}s")
    axis.set_xlim(0.5, LANE_COUNT + 0.5)
    axis.set_ylim(TUNNEL_LENGTH, 0)
    axis.set_xticks(range(1, LANE_COUNT + 1))
    axis.set_xlabel("Lane")
    axis.set_ylabel("Progress (%)")
    for zone in CAMERA_ZONES:
        axis.axhline(zone.upper, color="gray", linestyle="--", linewidth=0.5)
    axis.axhspan(camera.zone.lower, camera.zone.upper, color="tab:blue", alpha=0.1)

    for vehicle in snapshot.vehicles:
        axis.scatter(
            vehicle.lane + 1,
            vehicle.position,
            c=vehicle.color,
            marker="s" if vehicle.type is VehicleType.TRUCK else "o",
            s=120 if camera.in_view(vehicle) else 60,
            edgecolors="red" if vehicle.detected else "none",
            linewidths=2,
        )


class SimulationDashboard:
    """Render the tunnel and live plots of subsystem metrics."""

    def __init__(self, kernel: TunnelKernel, history: int = 240, camera: CameraView | None = None) -> None:
        self.kernel = kernel
        self.history = history
        self.camera = camera or CameraView()
        self._running = True

        self._series: Dict[str, Dict[str, Deque[Tuple[int, Number]]]] = defaultdict(
            lambda: defaultdict(lambda: deque(maxlen=self.history))
        )
        self._fig, axes = plt.subplots(2, 2, figsize=(12, 8))
        self._tunnel_axis = axes[0][0]
        self._line_map: Dict[Tuple[str, str], Any] = {}
        self._plot_config = create_plot_config([axes[0][1], axes[1][0], axes[1][1]])

        self._fig.suptitle("Tunnel Monitoring Dashboard", fontsize=16)
        self._fig.canvas.mpl_connect("close_event", self._on_close)
        self._fig.canvas.mpl_connect("key_press_event", self._on_key)

        self._init_axes()
        self._animation: FuncAnimation | None = None

    def start(self) -> None:
        """Start the dashboard's animation loop."""

        self._animation = FuncAnimation(
            self._fig,
            self._update,
            interval=100,
            blit=False,
            cache_frame_data=False,
        )
        plt.tight_layout()
        plt.show()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _init_axes(self) -> None:
        for subsystem, config in self._plot_config.items():
            axis = config["axis"]
            axis.set_title(config["title"])
            axis.set_xlabel("Tick")
            axis.set_ylabel(config["ylabel"])
            axis.grid(True, linestyle="--", linewidth=0.5, alpha=0.6)

            for metric, props in config["metrics"].items():
                (line,) = axis.plot([], [], label=props["label"], color=props["color"])
                self._line_map[(subsystem, metric)] = line

            axis.legend(loc="upper right")

    def _on_close(self, _event: Any) -> None:
        self._running = False

    def _on_key(self, event: Any) -> None:
        # Number keys 1-4 switch the highlighted camera.
        if event.key in {"1", "2", "3", "4"}:
            self.camera.select_zone(int(event.key))
        elif event.key == "a":
            self.kernel.acknowledge_incident()

    def _update(self, _frame: int) -> List[Any]:
        if not self._running:
            plt.close(self._fig)
            return list(self._line_map.values())

        self._drain_metrics_queue()
        self._refresh_plots()
        draw_tunnel(self._tunnel_axis, self.kernel.snapshot(), self.camera)
        return list(self._line_map.values())

    def _drain_metrics_queue(self) -> None:
        event = self.kernel.metrics_stream(timeout=0.05)
        while event:
            if event.get("type") == "shutdown":
                self._running = False
                break
            if event.get("type") == "metrics":
                tick = int(event.get("tick", 0))
                subsystem = str(event.get("subsystem", ""))
                metrics = event.get("metrics", {})
                for key, value in metrics.items():
                    if not isinstance(value, (int, float, bool)):
                        continue
                    self._series[subsystem][key].append((tick, float(value)))
            event = self.kernel.metrics_stream(timeout=0.0)

    def _refresh_plots(self) -> None:
        for subsystem, config in self._plot_config.items():
            axis = config["axis"]
            updated = False
            for metric in config["metrics"].keys():
                line = self._line_map[(subsystem, metric)]
                points = list(self._series[subsystem][metric])
                if points:
                    ticks, values = zip(*points)
                else:
                    ticks, values = [], []
                line.set_data(ticks, values)
                updated = updated or bool(points)

            if updated:
                axis.relim()
                axis.autoscale_view(True, True, True)
                xmin, xmax = axis.get_xlim()
                if xmin == xmax:
                    axis.set_xlim(xmin - 1, xmax + 1)
