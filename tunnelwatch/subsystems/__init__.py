"""Subsystem package exports."""

from tunnelwatch.subsystems.base import Subsystem, TickFrame
from tunnelwatch.subsystems.detection import AnomalyDetector, IncidentDetector
from tunnelwatch.subsystems.environment import EnvironmentalSignal, EnvironmentMonitor
from tunnelwatch.subsystems.traffic import MotionIntegrator, TrafficManager, VehicleGenerator

__all__ = [
    "AnomalyDetector",
    "EnvironmentMonitor",
    "EnvironmentalSignal",
    "IncidentDetector",
    "MotionIntegrator",
    "Subsystem",
    "TickFrame",
    "TrafficManager",
    "VehicleGenerator",
]
