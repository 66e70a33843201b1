"""Scheduling and conflict-resolution core for a home-services booking platform."""

__version__ = "0.1.0"
