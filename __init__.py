"""
Foldline - walk-forward evaluation for panel models

Rolls in-sample/out-of-sample windows over a time-indexed panel, tunes on
purged and embargoed folds, guards every fit against look-ahead and
stitches the out-of-sample scores into one leakage-free record.
"""

__version__ = "0.1.0"
__author__ = "Foldline Team"
