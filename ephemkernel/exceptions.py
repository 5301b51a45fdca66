"""
Error taxonomy for the ephemeris-kernel engine.

Lookup misses (unknown body, no covering segment, unknown pool variable)
are not errors: they come back as ``None``.
"""


class KernelError(Exception):
    """Base class for errors raised by ephemkernel."""


class InvalidArgumentError(KernelError, ValueError):
    """Malformed construction input or call argument."""


class UnknownFrameError(KernelError, ValueError):
    """Frame number outside the known catalog, or a frame that cannot be resolved."""


class KernelFormatError(KernelError, ValueError):
    """Kernel file whose structure cannot be read."""


class UnsupportedSegmentTypeError(KernelFormatError):
    """SPK segment of a data type this engine does not extract."""
