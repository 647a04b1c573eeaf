#!/usr/bin/env python3
"""
ABOUTME: Tests for splitting selections into block-confined segments
"""

import sys
from pathlib import Path

TESTS_DIR = Path(__file__).parent
sys.path.insert(0, str(TESTS_DIR))

import pytest

from _highlight_helpers import (
    EmptySelection, OutOfRange, TreeLocation,
    create_editor, create_editor_with_runs, runs,
)


class TestSingleBlock:
    """Selections inside one block"""

    def test_single_segment(self):
        """A selection inside one run yields one segment"""
        editor = create_editor()
        segments = editor.build_segments(0, 5)
        assert len(segments) == 1
        assert segments[0].text == "Hello"
        assert segments[0].start == TreeLocation(runs(editor)[0], 0)
        assert segments[0].end == TreeLocation(runs(editor)[0], 5)

    def test_spanning_several_runs(self):
        """Runs of the same block collapse into a single segment"""
        editor = create_editor_with_runs(("Hel", "lo ", "world."))
        segments = editor.build_segments(1, 8)
        assert len(segments) == 1
        assert segments[0].text == "ello wo"
        assert segments[0].start.leaf.text == "Hel"
        assert segments[0].start.offset == 1
        assert segments[0].end.leaf.text == "world."
        assert segments[0].end.offset == 2

    def test_reversed_ends_are_ordered(self):
        """End before start is treated as the same selection"""
        editor = create_editor()
        assert editor.build_segments(5, 0)[0].text == "Hello"

    def test_accepts_tree_locations(self):
        """TreeLocations and positions may be mixed"""
        editor = create_editor()
        first = runs(editor)[0]
        segments = editor.build_segments(TreeLocation(first, 6), 12)
        assert segments[0].text == "world."

    def test_drops_whitespace_only_runs(self):
        """Whitespace-only runs at the selection edge are trimmed away"""
        editor = create_editor_with_runs(("Hello", " ", "world"))
        segments = editor.build_segments(5, 11)
        assert len(segments) == 1
        assert segments[0].text == "world"
        assert segments[0].start.leaf.text == "world"


class TestCrossBlock:
    """Selections crossing block boundaries"""

    def test_one_segment_per_block(self):
        """Each touched block gets its own segment"""
        editor = create_editor(["One two.", "Three four.", "Five six."])
        segments = editor.build_segments(4, 32)
        assert [s.text for s in segments] == ["two.", "Three four.", "Five six."]

    def test_segment_blocks_differ(self):
        """Segments report the block they belong to"""
        editor = create_editor()
        segments = editor.build_segments(6, 26)
        blocks = editor.container.findall('p')
        assert segments[0].block is blocks[0]
        assert segments[1].block is blocks[1]

    def test_joined_texts_match_selection(self):
        """Segment texts joined by the separator equal the selected substring"""
        editor = create_editor()
        segments = editor.build_segments(6, 26)
        assert "\n\n".join(s.text for s in segments) == editor.flat_text()[6:26]

    def test_separator_only_selection_is_empty(self):
        """Selecting only the separator raises EmptySelection"""
        editor = create_editor()
        with pytest.raises(EmptySelection):
            editor.build_segments(12, 14)

    def test_verbose_reports_cross_block(self, capsys):
        """Verbose mode prints a cross-block diagnostic"""
        editor = create_editor(verbose=True)
        editor.build_segments(6, 26)
        assert "[Cross-block]" in capsys.readouterr().out


class TestErrors:
    """Error cases"""

    def test_collapsed_selection(self):
        """Start equal to end is an empty selection"""
        editor = create_editor()
        with pytest.raises(EmptySelection):
            editor.build_segments(3, 3)

    def test_out_of_range(self):
        """Positions outside the text raise OutOfRange"""
        editor = create_editor()
        with pytest.raises(OutOfRange):
            editor.build_segments(0, 100)

    def test_builder_does_not_mutate(self):
        """Building segments leaves the container untouched"""
        editor = create_editor()
        before = len(runs(editor))
        editor.build_segments(3, 20)
        assert len(runs(editor)) == before
        assert editor.find_markers() == []
