"""
Unit tests for hunk coalescing.

Tests gap and size limits, ordering and merged ranges.
"""

from conftest import make_hunk

from warden.diff.coalescer import (
    MERGE_SEPARATOR,
    HunkCoalescer,
    calculate_gap,
    coalesce_hunks,
    merge_hunks,
    would_coalesce_reduce,
)


# =============================================================================
# UNIT TESTS: merge_hunks() / calculate_gap()
# =============================================================================

class TestMergeHunks:
    """Tests for merging two hunks."""

    def test_merged_range_spans_both(self):
        a = make_hunk(10, 5)
        b = make_hunk(20, 3)
        merged = merge_hunks(a, b)

        assert merged.new_start == 10
        assert merged.new_count == 13
        assert merged.content == a.content + MERGE_SEPARATOR + b.content
        assert merged.lines == a.lines + b.lines

    def test_overlapping_ranges_union(self):
        """Overlaps produce the union, not a sum."""
        merged = merge_hunks(make_hunk(10, 10), make_hunk(12, 3))
        assert (merged.new_start, merged.new_count) == (10, 10)

    def test_header_from_first(self):
        merged = merge_hunks(make_hunk(1, 1, header="def a():"), make_hunk(5, 1, header="def b():"))
        assert merged.header == "def a():"

    def test_calculate_gap(self):
        assert calculate_gap(make_hunk(10, 5), make_hunk(20, 1)) == 5
        assert calculate_gap(make_hunk(10, 5), make_hunk(15, 1)) == 0


# =============================================================================
# UNIT TESTS: coalesce()
# =============================================================================

class TestCoalesce:
    """Tests for the greedy coalescing pass."""

    def test_close_hunks_merge(self):
        """Hunks within the gap limit become one unit."""
        result = coalesce_hunks([make_hunk(10, 5), make_hunk(25, 5), make_hunk(40, 5)])

        assert len(result) == 1
        assert (result[0].new_start, result[0].new_count) == (10, 35)

    def test_distant_hunks_stay_separate(self):
        hunks = [make_hunk(10, 5), make_hunk(100, 5)]
        assert coalesce_hunks(hunks) == hunks

    def test_gap_boundary(self):
        """A gap exactly at the limit merges; one more line does not."""
        assert len(coalesce_hunks([make_hunk(1, 1), make_hunk(32, 1)], max_gap_lines=30)) == 1
        assert len(coalesce_hunks([make_hunk(1, 1), make_hunk(33, 1)], max_gap_lines=30)) == 2

    def test_size_limit(self):
        """Merging stops before the combined content exceeds the limit."""
        big = "+" + "x" * 90
        hunks = [make_hunk(1, 1, big), make_hunk(3, 1, big), make_hunk(5, 1, big)]
        limit = len(hunks[0].content) * 2 + 10

        result = coalesce_hunks(hunks, max_chunk_size=limit)

        assert len(result) == 2
        assert [h.new_start for h in result] == [1, 5]

    def test_oversized_hunk_emitted_as_is(self):
        """A single hunk larger than the limit is not split or dropped."""
        huge = make_hunk(1, 1, "+" + "x" * 500)
        small = make_hunk(3, 1)

        result = coalesce_hunks([huge, small], max_chunk_size=100)

        assert result == [huge, small]

    def test_unsorted_input(self):
        """Output is ordered by new-file start line."""
        result = coalesce_hunks([make_hunk(200, 1), make_hunk(10, 1)])
        assert [h.new_start for h in result] == [10, 200]

    def test_stable_on_ties(self):
        first = make_hunk(10, 1, "+first")
        second = make_hunk(10, 1, "+second")

        result = coalesce_hunks([first, second], max_chunk_size=10)

        assert result == [first, second]

    def test_empty_and_single(self):
        """Zero or one hunk comes back unchanged."""
        hunk = make_hunk(1, 1)
        assert coalesce_hunks([]) == []
        assert coalesce_hunks([hunk]) == [hunk]

    def test_never_increases_count(self):
        hunks = [make_hunk(i * 7 + 1, 2) for i in range(20)]
        result = HunkCoalescer(max_gap_lines=3, max_chunk_size=60).coalesce(hunks)

        assert 1 <= len(result) <= len(hunks)
        assert all(
            result[i].new_start < result[i + 1].new_start for i in range(len(result) - 1)
        )

    def test_input_not_mutated(self):
        hunks = [make_hunk(20, 1), make_hunk(1, 1)]
        snapshot = list(hunks)
        coalesce_hunks(hunks)
        assert hunks == snapshot


class TestWouldReduce:
    """Tests for the reduction check."""

    def test_reduces(self):
        assert would_coalesce_reduce([make_hunk(1, 1), make_hunk(5, 1)])

    def test_does_not_reduce(self):
        assert not would_coalesce_reduce([make_hunk(1, 1), make_hunk(500, 1)])

    def test_single_hunk(self):
        assert not would_coalesce_reduce([make_hunk(1, 1)])
