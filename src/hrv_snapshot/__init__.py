"""
HRV Snapshot - Health metric aggregation and rolling history.

Collects heart-rate variability, resting heart rate, sleep, mindfulness,
steps and active energy from pluggable sources, keeps a 30-day history per
metric and persists the HRV history across restarts.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
