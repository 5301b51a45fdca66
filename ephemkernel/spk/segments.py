"""
SPK segment and body value types, and the reuse-expense policies.

A segment descriptor is the decoded fixed-size array::

    [start_et, end_et, body, center, frame, type, begin_address, end_address]
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..exceptions import InvalidArgumentError

DESCRIPTOR_SIZE = 8

START_ET = 0
END_ET = 1
BODY = 2
CENTER = 3
FRAME = 4
DATA_TYPE = 5
BEGIN_ADDRESS = 6
END_ADDRESS = 7


def build_descriptor(start_et: float, end_et: float, body: int, center: int, frame: int,
                     data_type: int, begin_address: int = 0, end_address: int = 0) -> Tuple[float, ...]:
    """Descriptor tuple from its named fields."""
    return (float(start_et), float(end_et), float(body), float(center), float(frame),
            float(data_type), float(begin_address), float(end_address))


@dataclass(frozen=True)
class SpkSegment:
    """
    One SPK segment as discovered in a loaded file.

    Equality is by value: handle, descriptor contents and source id.
    """
    handle: int
    descriptor: Tuple[float, ...]
    source_id: str

    def __post_init__(self):
        if self.source_id is None:
            raise InvalidArgumentError("SpkSegment requires a source id")
        descriptor = tuple(float(d) for d in self.descriptor)
        if len(descriptor) != DESCRIPTOR_SIZE:
            raise InvalidArgumentError(
                f"SpkSegment descriptor must hold {DESCRIPTOR_SIZE} values, got {len(descriptor)}"
            )
        if descriptor[START_ET] > descriptor[END_ET]:
            raise InvalidArgumentError(
                f"Segment '{self.source_id}' starts after it ends "
                f"({descriptor[START_ET]} > {descriptor[END_ET]})"
            )
        object.__setattr__(self, "descriptor", descriptor)

    @property
    def start_et(self) -> float:
        return self.descriptor[START_ET]

    @property
    def end_et(self) -> float:
        return self.descriptor[END_ET]

    @property
    def body(self) -> int:
        return int(self.descriptor[BODY])

    @property
    def center(self) -> int:
        return int(self.descriptor[CENTER])

    @property
    def frame(self) -> int:
        return int(self.descriptor[FRAME])

    @property
    def data_type(self) -> int:
        return int(self.descriptor[DATA_TYPE])

    @property
    def begin_address(self) -> int:
        return int(self.descriptor[BEGIN_ADDRESS])

    @property
    def end_address(self) -> int:
        return int(self.descriptor[END_ADDRESS])

    def covers(self, et: float) -> bool:
        return self.start_et <= et <= self.end_et


@dataclass(unsafe_hash=True)
class SpkBody:
    """
    A body seen in at least one segment.

    Only ``body_id`` takes part in equality and hashing, so the cache
    bookkeeping below can change while the body is used as a key.
    """
    body_id: int
    expense: int = field(default=0, compare=False)
    # Last covering segment and the open interval in which it stays the answer
    previous_segment: Optional[SpkSegment] = field(default=None, compare=False, repr=False)
    lower_bound: float = field(default=float("-inf"), compare=False, repr=False)
    upper_bound: float = field(default=float("inf"), compare=False, repr=False)

    def remember(self, segment: SpkSegment, lower: float, upper: float):
        self.previous_segment = segment
        self.lower_bound = lower
        self.upper_bound = upper

    def forget(self):
        self.previous_segment = None
        self.lower_bound = float("-inf")
        self.upper_bound = float("inf")

    def can_reuse(self, et: float) -> bool:
        return self.previous_segment is not None and self.lower_bound < et < self.upper_bound


class ExpensePolicy(ABC):
    """
    How a body's reuse-expense counter evolves across lookups.

    A lookup for the same body as the previous lookup is a repeat; any
    other lookup is a switch.
    """

    name = "abstract"

    def on_repeat(self, expense: int) -> int:
        return expense + 1

    @abstractmethod
    def on_switch(self, expense: int) -> int:
        """New counter for a body that is being queried after a different one."""


class ResetExpensePolicy(ExpensePolicy):
    """Switching to a body restarts its counter at zero."""

    name = "reset"

    def on_switch(self, expense: int) -> int:
        return 0


class DecayExpensePolicy(ExpensePolicy):
    """Switching to a body scales its prior counter by ``decay_factor``."""

    name = "decay"

    def __init__(self, decay_factor: float = 0.5):
        if not 0.0 <= decay_factor <= 1.0:
            raise InvalidArgumentError(f"Decay factor must lie in [0, 1], got {decay_factor}")
        self.decay_factor = decay_factor

    def on_switch(self, expense: int) -> int:
        return int(expense * self.decay_factor)


class KeepExpensePolicy(ExpensePolicy):
    """Switching leaves the counter untouched; it only ever grows."""

    name = "keep"

    def on_switch(self, expense: int) -> int:
        return expense


EXPENSE_POLICIES = {
    ResetExpensePolicy.name: ResetExpensePolicy,
    DecayExpensePolicy.name: DecayExpensePolicy,
    KeepExpensePolicy.name: KeepExpensePolicy,
}

