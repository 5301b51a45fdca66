"""
Frames module.

Provides:
- InertialFrameDef: built-in or explicit inertial frame definitions
- FrameResolver: frame numbering and rotation composition through J2000
"""

from .frame_catalog import (
    InertialFrameDef,
    FrameResolver,
    KernelFrame,
    BUILTIN_INERTIAL_FRAMES,
    BUILTIN_FRAME_COUNT,
    ROOT_FRAME,
    UNKNOWN_FRAME_NUMBER,
)

__all__ = [
    'InertialFrameDef',
    'FrameResolver',
    'KernelFrame',
    'BUILTIN_INERTIAL_FRAMES',
    'BUILTIN_FRAME_COUNT',
    'ROOT_FRAME',
    'UNKNOWN_FRAME_NUMBER',
]
