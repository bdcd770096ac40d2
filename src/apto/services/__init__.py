"""Service module exports."""

from . import stats, streaks, tracker

__all__ = ["stats", "streaks", "tracker"]
