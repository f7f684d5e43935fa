"""
Error taxonomy for the scan engine.

Every stage failure aborts the whole count -> scan -> scatter pipeline. Nothing
is retried. Exceptions raised by Taichi are translated at the dispatch seam
(see device.context.DeviceContext.dispatch) and chained with ``raise ... from``.

Author: B.G.
"""


class ScanEngineError(RuntimeError):
    """Base class for every failure reported by the engine."""


class AllocationFailure(ScanEngineError):
    """A device buffer could not be created."""


class KernelCompileFailure(ScanEngineError):
    """A kernel failed to compile. The Taichi diagnostic is kept verbatim."""


class ArgumentBindingFailure(ScanEngineError):
    """A kernel was invoked with arguments it cannot bind (programming error)."""


class DispatchFailure(ScanEngineError):
    """The device rejected or failed a dispatch."""


class CapacityExceeded(ScanEngineError):
    """
    The dataset needs more scan levels than the engine supports.

    Attributes:
        element_count: number of elements requested
        capacity: largest element count the two-level scan accepts
    """

    def __init__(self, element_count, capacity):
        self.element_count = element_count
        self.capacity = capacity
        super().__init__(
            f"Data size prefix sum exceeds limits: {element_count} elements, "
            f"two-level scan holds at most {capacity}"
        )


class PointOutOfGrid(ValueError):
    """
    Points lie outside the normalised [0, 1) cube.

    Binning such points would produce a bin index outside the grid. This is a
    caller precondition, checked on the host before anything is dispatched.
    """

    def __init__(self, count, first_index):
        self.count = count
        self.first_index = first_index
        super().__init__(
            f"{count} point(s) outside [0, 1)^3, first offending index {first_index}"
        )
