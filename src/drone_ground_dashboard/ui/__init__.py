"""Textual presentation layer for the drone ground dashboard."""

from .app import DroneDashboardApp

__all__ = ["DroneDashboardApp"]
