"""Tracking backends and interface."""

from .base import NullTracker, Tracker
from .mlflow import MLflowTracker

__all__ = ["MLflowTracker", "NullTracker", "Tracker"]
