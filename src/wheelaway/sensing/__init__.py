"""Sensing module for wheelaway.

Contains the scheduler that drives the capture -> classify -> actuate
cycle for the duration of a monitoring session.

Public API:
    SensingScheduler -- Session state machine and cycle driver
"""

from wheelaway.sensing.scheduler import MIN_INTERVAL_MS, SensingScheduler

__all__ = ["MIN_INTERVAL_MS", "SensingScheduler"]
