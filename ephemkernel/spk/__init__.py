"""
SPK module.

Provides:
- SpkSegment, SpkBody: segment/body value types
- Expense policies for the reuse-expense counter
- SegmentRegistry: body -> segment lists with covering-segment lookup
- SpkReader: load SPK files and extract Chebyshev coefficient records
"""

from .segments import (
    SpkSegment,
    SpkBody,
    ExpensePolicy,
    ResetExpensePolicy,
    DecayExpensePolicy,
    KeepExpensePolicy,
    EXPENSE_POLICIES,
    build_descriptor,
)
from .segment_registry import SegmentRegistry
from .spk_reader import SpkReader, ChebyshevRecord

__all__ = [
    'SpkSegment',
    'SpkBody',
    'ExpensePolicy',
    'ResetExpensePolicy',
    'DecayExpensePolicy',
    'KeepExpensePolicy',
    'EXPENSE_POLICIES',
    'build_descriptor',
    'SegmentRegistry',
    'SpkReader',
    'ChebyshevRecord',
]
