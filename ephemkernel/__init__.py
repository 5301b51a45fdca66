"""
ephemkernel: binary ephemeris-kernel engine.

Reads DAF/SPK kernel files, keeps a kernel-variable pool with change
tracking, registers SPK segments per body, and resolves rotations between
reference frames.
"""

from .exceptions import (
    KernelError,
    InvalidArgumentError,
    UnknownFrameError,
    KernelFormatError,
    UnsupportedSegmentTypeError,
)
from .daf import KernelFileInfo, DafFile, DafState, read_file_info
from .pool import KernelPool, PoolEntry, Watcher
from .spk import SpkSegment, SpkBody, SegmentRegistry, SpkReader, ChebyshevRecord
from .frames import InertialFrameDef, FrameResolver
from .spice import KernelSession, SpiceKernelInfo

__version__ = "1.0.0"

__all__ = [
    'KernelError',
    'InvalidArgumentError',
    'UnknownFrameError',
    'KernelFormatError',
    'UnsupportedSegmentTypeError',
    'KernelFileInfo',
    'DafFile',
    'DafState',
    'read_file_info',
    'KernelPool',
    'PoolEntry',
    'Watcher',
    'SpkSegment',
    'SpkBody',
    'SegmentRegistry',
    'SpkReader',
    'ChebyshevRecord',
    'InertialFrameDef',
    'FrameResolver',
    'KernelSession',
    'SpiceKernelInfo',
]
