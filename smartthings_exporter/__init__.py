"""Prometheus exporter for SmartThings sensor readings."""

__version__ = "0.3.0"
