"""
Body/segment registry with reuse-expense bookkeeping.

Segments are kept per body in registration order. When segments overlap,
the one registered last wins, matching the rule that a later kernel
overrides an earlier one.
"""

import logging
import threading
from typing import Dict, List, Optional

from ..exceptions import InvalidArgumentError
from .segments import ExpensePolicy, ResetExpensePolicy, SpkBody, SpkSegment


class SegmentRegistry:
    """
    Maps body ids to their segment lists.

    Every lookup through segments_for() updates the body's expense counter:
    a repeat lookup of the same body increments it, a switch from another
    body passes it through the configured ExpensePolicy. The registry never
    evicts anything; a cache layer above it can rank bodies by expense.
    """

    def __init__(self, policy: Optional[ExpensePolicy] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.policy = policy if policy is not None else ResetExpensePolicy()
        self._lock = threading.RLock()
        self._bodies: Dict[int, SpkBody] = {}
        self._segments: Dict[int, List[SpkSegment]] = {}
        self._last_queried: Optional[int] = None

    def register_segment(self, body_id: int, segment: SpkSegment):
        """Append ``segment`` to the segment list of ``body_id``."""
        if segment.body != body_id:
            raise InvalidArgumentError(
                f"Segment '{segment.source_id}' belongs to body {segment.body}, not {body_id}"
            )
        with self._lock:
            body = self._bodies.get(body_id)
            if body is None:
                body = SpkBody(body_id)
                self._bodies[body_id] = body
                self._segments[body_id] = []
                self.logger.debug(f"New body {body_id}")
            self._segments[body_id].append(segment)
            body.forget()

    def _count_lookup(self, body_id: int, body: SpkBody):
        if self._last_queried == body_id:
            body.expense = self.policy.on_repeat(body.expense)
        else:
            body.expense = self.policy.on_switch(body.expense)
            self._last_queried = body_id

    def segments_for(self, body_id: int) -> Optional[List[SpkSegment]]:
        """Segments of ``body_id`` in registration order, or None for an unknown body."""
        with self._lock:
            body = self._bodies.get(body_id)
            if body is None:
                return None
            self._count_lookup(body_id, body)
            return list(self._segments[body_id])

    def find_covering_segment(self, body_id: int, et: float) -> Optional[SpkSegment]:
        """
        Segment of ``body_id`` whose time span contains ``et``.

        The newest covering segment is returned. The body remembers the hit
        and the interval around ``et`` in which no newer segment takes over,
        so the next lookup inside that interval skips the list walk.

        Returns:
            The segment, or None if the body is unknown or nothing covers ``et``.
        """
        with self._lock:
            body = self._bodies.get(body_id)
            if body is None:
                return None
            self._count_lookup(body_id, body)
            if body.can_reuse(et):
                self.logger.debug(f"Body {body_id}: reusing segment '{body.previous_segment.source_id}' at {et}")
                return body.previous_segment

            lower, upper = float("-inf"), float("inf")
            for segment in reversed(self._segments[body_id]):
                if et > segment.end_et:
                    lower = max(lower, segment.end_et)
                elif et < segment.start_et:
                    upper = min(upper, segment.start_et)
                else:
                    body.remember(segment, max(lower, segment.start_et), min(upper, segment.end_et))
                    return segment

            body.forget()
            self.logger.debug(f"Body {body_id}: no segment covers {et}")
            return None

    def get_body(self, body_id: int) -> Optional[SpkBody]:
        with self._lock:
            return self._bodies.get(body_id)

    def expense_of(self, body_id: int) -> Optional[int]:
        with self._lock:
            body = self._bodies.get(body_id)
            return body.expense if body is not None else None

    def bodies(self) -> List[int]:
        with self._lock:
            return sorted(self._bodies)

    def remove_handle(self, handle: int) -> int:
        """
        Drop every segment read through ``handle``.

        Bodies left without segments are removed.

        Returns:
            Number of segments removed.
        """
        removed = 0
        with self._lock:
            for body_id in list(self._segments):
                kept = [s for s in self._segments[body_id] if s.handle != handle]
                removed += len(self._segments[body_id]) - len(kept)
                if not kept:
                    del self._segments[body_id]
                    del self._bodies[body_id]
                    if self._last_queried == body_id:
                        self._last_queried = None
                elif len(kept) != len(self._segments[body_id]):
                    self._segments[body_id] = kept
                    self._bodies[body_id].forget()
        self.logger.debug(f"Removed {removed} segment(s) of handle {handle}")
        return removed

    def clear(self):
        with self._lock:
            self._bodies.clear()
            self._segments.clear()
            self._last_queried = None

    def __len__(self) -> int:
        with self._lock:
            return sum(len(s) for s in self._segments.values())
