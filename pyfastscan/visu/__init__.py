"""
Visualisation helpers for PyFastScan.

Available Functions:
- occupancy_volume: bin counts reshaped to a (D, D, D) volume
- occupancy_slice: one slice (or a projection) of that volume
- plot_occupancy: matplotlib rendering of a slice

matplotlib is only imported when plotting.

Author: B.G.
"""

from .occupancy import occupancy_slice, occupancy_volume, plot_occupancy

__all__ = [
    "occupancy_slice",
    "occupancy_volume",
    "plot_occupancy",
]
