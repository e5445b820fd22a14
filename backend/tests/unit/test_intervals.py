"""Tests for the half-open interval helpers."""

from datetime import time

import pytest

from slotbook.core.intervals import (
    find_overlapping_pair,
    format_range,
    intervals_overlap,
    parse_time,
    to_minutes,
)


class TestIntervalsOverlap:
    def test_overlapping_ranges(self):
        assert intervals_overlap(time(9), time(11), time(10), time(12)) is True

    def test_overlap_is_symmetric(self):
        pairs = [
            ((time(9), time(11)), (time(10), time(12))),
            ((time(9), time(10)), (time(10), time(11))),
            ((time(8), time(13)), (time(9), time(10))),
            ((time(14), time(15)), (time(9), time(10))),
        ]
        for (s1, e1), (s2, e2) in pairs:
            assert intervals_overlap(s1, e1, s2, e2) == intervals_overlap(s2, e2, s1, e1)

    def test_touching_edges_do_not_overlap(self):
        assert intervals_overlap(time(9), time(10), time(10), time(11)) is False
        assert intervals_overlap(time(10), time(11), time(9), time(10)) is False

    def test_containment_overlaps(self):
        assert intervals_overlap(time(9), time(17), time(12), time(13)) is True

    def test_identical_ranges_overlap(self):
        assert intervals_overlap(time(9), time(10), time(9), time(10)) is True


class TestParsing:
    def test_parse_hh_mm(self):
        assert parse_time("09:30") == time(9, 30)

    def test_parse_hh_mm_ss(self):
        assert parse_time("23:59:59") == time(23, 59, 59)

    def test_parse_passes_time_through(self):
        assert parse_time(time(8, 15)) == time(8, 15)

    @pytest.mark.parametrize("raw", ["9", "ab:cd", "10:00:00:00", ""])
    def test_parse_rejects_garbage(self, raw):
        with pytest.raises(ValueError):
            parse_time(raw)

    def test_to_minutes(self):
        assert to_minutes("01:30") == 90
        assert to_minutes(time(0, 0)) == 0

    def test_format_range(self):
        assert format_range(time(9), time(10, 30)) == "09:00-10:30"


class TestFindOverlappingPair:
    def test_no_overlap(self):
        ranges = [(time(9), time(10)), (time(10), time(11)), (time(11), time(12))]
        assert find_overlapping_pair(ranges) is None

    def test_reports_first_pair(self):
        ranges = [(time(9), time(10)), (time(12), time(13)), (time(9, 30), time(10, 30))]
        assert find_overlapping_pair(ranges) == (0, 2)

    def test_empty(self):
        assert find_overlapping_pair([]) is None
