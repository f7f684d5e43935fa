"""
Global defaults and configuration parameters for PyFastScan.

This module centralises the default values used when building a DeviceContext
and when bucketing point clouds. Unlike runtime state, nothing here is mutated
by the library: the values act as defaults only, and every core operation reads
its effective configuration from the DeviceContext it is handed.

Constant Categories:
- Device Constants: work-group sizing used to derive the scan block size
- Grid Constants: bins per axis for the two point-cloud consumers
- Neighbour Constants: search radius for fixed-radius neighbour queries
- Scan Constants: hierarchy depth supported by the scan engine

Usage:
    import pyfastscan.constants as cte

    ctx = pf.device.DeviceContext(max_workgroup_size=cte.DEFAULT_WORKGROUP_SIZE)
    result = pf.binning.bucket_sort(ctx, points, cte.NN_BINS_DIM)

Author: B.G.
"""

#########################################
###### DEVICE CONSTANTS #################
#########################################

# Maximum number of threads in one work-group when the caller does not say.
# Each thread scans two elements, so the scan block holds twice this value.
# Must be a power of two. 1024 keeps a 100^3 grid within the two-level scan.
DEFAULT_WORKGROUP_SIZE = 1024


#########################################
###### GRID CONSTANTS ###################
#########################################

# Bins per axis of the uniform grid used for nearest-neighbour search
NN_BINS_DIM = 100

# Bins per axis of the uniform grid used for per-cell statistics
STATS_BINS_DIM = 40


#########################################
###### NEIGHBOUR CONSTANTS ##############
#########################################

# Search radius for fixed-radius neighbour queries, in normalised units
RADIUS = 0.01


#########################################
###### SCAN CONSTANTS ###################
#########################################

# Block-local scan plus one scan of the block totals
MAX_SCAN_LEVELS = 2
