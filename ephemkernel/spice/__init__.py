"""
Session module tying the kernel stores together.

Provides:
- KernelSession: load/unload kernels, look up segments, states and rotations
- SpiceKernelInfo: which file supplies loaded data
"""

from .kernel_session import KernelSession, SpiceKernelInfo

__all__ = [
    'KernelSession',
    'SpiceKernelInfo',
]
