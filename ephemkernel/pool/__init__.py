"""
Kernel pool module.

Provides:
- KernelPool: named numeric/textual variables with update counters
- Watcher: change detection on one pool variable
- parse_text_kernel: reader for text-kernel data blocks
"""

from .kernel_pool import KernelPool, PoolEntry, Watcher, NUMERIC, TEXTUAL
from .text_kernel_parser import Assignment, parse_text_kernel

__all__ = [
    'KernelPool',
    'PoolEntry',
    'Watcher',
    'NUMERIC',
    'TEXTUAL',
    'Assignment',
    'parse_text_kernel',
]
