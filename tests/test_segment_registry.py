import threading

import numpy as np
import pytest

from ephemkernel.exceptions import InvalidArgumentError
from ephemkernel.spk import (
    EXPENSE_POLICIES,
    DecayExpensePolicy,
    KeepExpensePolicy,
    ResetExpensePolicy,
    SegmentRegistry,
    SpkBody,
    SpkSegment,
    build_descriptor,
)


def segment(body, start, end, source, handle=1, data_type=2):
    return SpkSegment(handle, build_descriptor(start, end, body, 3, 1, data_type, 1, 100), source)


def test_spk_body_equality_excludes_expense():
    a, b = SpkBody(399, expense=0), SpkBody(399, expense=17)
    assert a == b
    assert hash(a) == hash(b)
    assert SpkBody(399) != SpkBody(301)
    assert len({a, b}) == 1

    lookup = {a: "earth"}
    b.expense += 5
    assert lookup[b] == "earth"


def test_spk_segment_equality_is_structural():
    first = np.array([0.0, 10.0, 399, 3, 1, 2, 1, 100])
    second = np.array([0.0, 10.0, 399, 3, 1, 2, 1, 100])
    assert first is not second
    assert SpkSegment(1, first, "A") == SpkSegment(1, second, "A")
    assert hash(SpkSegment(1, first, "A")) == hash(SpkSegment(1, list(second), "A"))
    assert SpkSegment(1, first, "A") != SpkSegment(2, first, "A")
    assert SpkSegment(1, first, "A") != SpkSegment(1, first, "B")


def test_spk_segment_validation():
    with pytest.raises(InvalidArgumentError):
        SpkSegment(1, build_descriptor(0, 10, 399, 3, 1, 2), None)
    with pytest.raises(InvalidArgumentError):
        SpkSegment(1, (0.0, 10.0, 399.0), "short")
    with pytest.raises(InvalidArgumentError):
        SpkSegment(1, build_descriptor(10, 0, 399, 3, 1, 2), "backwards")


def test_spk_segment_fields():
    s = segment(399, 0.0, 10.0, "A", data_type=3)
    assert (s.body, s.center, s.frame, s.data_type) == (399, 3, 1, 3)
    assert (s.begin_address, s.end_address) == (1, 100)
    assert s.covers(0.0) and s.covers(10.0) and not s.covers(10.5)


def test_last_registered_segment_wins_on_overlap():
    registry = SegmentRegistry()
    t0, t1, t2 = 0.0, 100.0, 200.0
    a = segment(399, t0, t1, "kernel A")
    b = segment(399, t1, t2, "kernel B")
    c = segment(399, t0, t2, "kernel C")
    for s in (a, b, c):
        registry.register_segment(399, s)

    assert registry.find_covering_segment(399, (t0 + t1) / 2) == c
    assert registry.find_covering_segment(399, (t1 + t2) / 2) == c
    assert registry.segments_for(399) == [a, b, c]


def test_non_overlapping_segments_are_found():
    registry = SegmentRegistry()
    a = segment(399, 0.0, 100.0, "A")
    b = segment(399, 100.0, 200.0, "B")
    registry.register_segment(399, a)
    registry.register_segment(399, b)
    assert registry.find_covering_segment(399, 50.0) == a
    assert registry.find_covering_segment(399, 150.0) == b
    # Shared boundary belongs to the newer segment
    assert registry.find_covering_segment(399, 100.0) == b


def test_misses_return_none():
    registry = SegmentRegistry()
    registry.register_segment(399, segment(399, 0.0, 100.0, "A"))
    assert registry.segments_for(10) is None
    assert registry.find_covering_segment(10, 50.0) is None
    assert registry.find_covering_segment(399, 500.0) is None
    assert registry.find_covering_segment(399, -1.0) is None


def test_register_rejects_mismatched_body():
    registry = SegmentRegistry()
    with pytest.raises(InvalidArgumentError):
        registry.register_segment(301, segment(399, 0.0, 1.0, "A"))
    assert len(registry) == 0


def test_segments_for_returns_a_copy():
    registry = SegmentRegistry()
    registry.register_segment(399, segment(399, 0.0, 1.0, "A"))
    registry.segments_for(399).clear()
    assert len(registry.segments_for(399)) == 1


def test_reuse_window_is_invalidated_by_new_segment():
    registry = SegmentRegistry()
    a = segment(399, 0.0, 100.0, "A")
    registry.register_segment(399, a)
    assert registry.find_covering_segment(399, 10.0) == a
    assert registry.get_body(399).can_reuse(20.0)
    assert registry.find_covering_segment(399, 20.0) == a

    newer = segment(399, 15.0, 30.0, "newer")
    registry.register_segment(399, newer)
    assert not registry.get_body(399).can_reuse(20.0)
    assert registry.find_covering_segment(399, 20.0) == newer
    assert registry.find_covering_segment(399, 50.0) == a


def test_reuse_window_excludes_newer_segments():
    registry = SegmentRegistry()
    old = segment(399, 0.0, 100.0, "old")
    newer = segment(399, 40.0, 60.0, "newer")
    registry.register_segment(399, old)
    registry.register_segment(399, newer)

    assert registry.find_covering_segment(399, 10.0) == old
    body = registry.get_body(399)
    assert (body.lower_bound, body.upper_bound) == (0.0, 40.0)
    assert registry.find_covering_segment(399, 45.0) == newer
    assert registry.find_covering_segment(399, 80.0) == old


def test_reset_policy_counts_repeats():
    registry = SegmentRegistry()
    registry.register_segment(399, segment(399, 0.0, 1.0, "earth"))
    registry.register_segment(301, segment(301, 0.0, 1.0, "moon"))

    registry.segments_for(399)
    assert registry.expense_of(399) == 0


def test_covering_lookup_walks_the_stored_list(monkeypatch):
    registry = SegmentRegistry()
    earth = segment(399, 0.0, 10.0, "earth")
    registry.register_segment(399, earth)

    def copy_forbidden(body_id):
        raise AssertionError("segment list copied")

    monkeypatch.setattr(registry, "segments_for", copy_forbidden)
    assert registry.find_covering_segment(399, 1.0) is earth
    assert registry.find_covering_segment(399, 2.0) is earth
    assert registry.find_covering_segment(399, 20.0) is None
    assert registry.expense_of(399) == 2
    registry.segments_for(399)
    registry.find_covering_segment(399, 0.5)
    assert registry.expense_of(399) == 2

    registry.segments_for(301)
    assert registry.expense_of(301) == 0
    assert registry.expense_of(399) == 2

    registry.segments_for(399)
    assert registry.expense_of(399) == 0


def test_expense_untouched_by_misses_and_registration():
    registry = SegmentRegistry()
    registry.register_segment(399, segment(399, 0.0, 1.0, "earth"))
    registry.segments_for(399)
    registry.segments_for(399)
    registry.segments_for(12345)
    registry.register_segment(399, segment(399, 1.0, 2.0, "more"))
    registry.segments_for(399)
    assert registry.expense_of(399) == 2
    assert registry.expense_of(12345) is None


@pytest.mark.parametrize("policy, expected", [
    (ResetExpensePolicy(), 0),
    (DecayExpensePolicy(0.5), 2),
    (DecayExpensePolicy(0.0), 0),
    (KeepExpensePolicy(), 4),
])
def test_switch_policies(policy, expected):
    registry = SegmentRegistry(policy)
    registry.register_segment(399, segment(399, 0.0, 1.0, "earth"))
    registry.register_segment(301, segment(301, 0.0, 1.0, "moon"))
    registry.segments_for(399)
    registry.get_body(399).expense = 3
    registry.segments_for(399)
    assert registry.expense_of(399) == 4

    registry.segments_for(301)
    registry.segments_for(399)
    assert registry.expense_of(399) == expected


def test_decay_factor_validated():
    with pytest.raises(InvalidArgumentError):
        DecayExpensePolicy(1.5)


def test_policy_table():
    assert set(EXPENSE_POLICIES) == {"reset", "decay", "keep"}
    assert isinstance(EXPENSE_POLICIES["decay"](), DecayExpensePolicy)


def test_remove_handle():
    registry = SegmentRegistry()
    registry.register_segment(399, segment(399, 0.0, 10.0, "A", handle=1))
    registry.register_segment(399, segment(399, 0.0, 10.0, "B", handle=2))
    registry.register_segment(301, segment(301, 0.0, 10.0, "M", handle=2))

    assert registry.find_covering_segment(399, 5.0).source_id == "B"
    assert registry.remove_handle(2) == 2
    assert registry.bodies() == [399]
    assert registry.find_covering_segment(399, 5.0).source_id == "A"
    assert registry.segments_for(301) is None
    assert registry.remove_handle(2) == 0


def test_clear():
    registry = SegmentRegistry()
    registry.register_segment(399, segment(399, 0.0, 10.0, "A"))
    registry.clear()
    assert len(registry) == 0
    assert registry.segments_for(399) is None


def test_concurrent_lookups_count_every_repeat():
    registry = SegmentRegistry(KeepExpensePolicy())
    registry.register_segment(399, segment(399, 0.0, 10.0, "A"))

    def worker():
        for _ in range(250):
            registry.segments_for(399)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    # First lookup is a switch, every later one a repeat
    assert registry.expense_of(399) == 999
