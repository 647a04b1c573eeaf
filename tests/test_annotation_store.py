#!/usr/bin/env python3
"""
ABOUTME: Tests for the in-memory annotation store and its group index
"""

import sys
from pathlib import Path

TESTS_DIR = Path(__file__).parent
sys.path.insert(0, str(TESTS_DIR))

import pytest
from lxml import etree

from _highlight_helpers import NotFound, engine

AnnotationStore = engine.AnnotationStore
Segment = engine.Segment


def make_segment(text: str, with_marker: bool = False) -> Segment:
    marker = etree.Element('mark') if with_marker else None
    return Segment(start=None, end=None, text=text, marker=marker)


class TestCreate:
    """Tests for AnnotationStore.create"""

    def test_single_segment_has_no_group(self):
        """One segment means no group id"""
        store = AnnotationStore()
        annotation = store.create([make_segment("foo")], ['grammar'])
        assert annotation.group_id is None
        assert annotation.id.startswith("highlight-")
        assert annotation.original_text == "foo"

    def test_multi_segment_shares_group(self):
        """Several segments get one fresh group id"""
        store = AnnotationStore()
        annotation = store.create([make_segment("world."), make_segment("Goodbye now.")], ['grammar'])
        assert annotation.group_id.startswith("group-")
        assert annotation.original_text == "world.\n\nGoodbye now."
        assert store.find_by_group(annotation.group_id) is annotation

    def test_custom_separator(self):
        """original_text uses the store separator"""
        store = AnnotationStore(separator=" | ")
        annotation = store.create([make_segment("a"), make_segment("b")], ['grammar'])
        assert annotation.original_text == "a | b"

    def test_categories_normalized(self):
        """Comma strings and duplicates are normalized, order kept"""
        store = AnnotationStore()
        annotation = store.create([make_segment("x")], "spelling, grammar, spelling")
        assert annotation.categories == ['spelling', 'grammar']
        assert annotation.primary_category == 'spelling'

    def test_requires_category(self):
        """Empty category sets are rejected"""
        store = AnnotationStore()
        with pytest.raises(ValueError):
            store.create([make_segment("x")], [])
        assert len(store) == 0

    def test_requires_segments(self):
        """An annotation needs at least one segment"""
        store = AnnotationStore()
        with pytest.raises(ValueError):
            store.create([], ['grammar'])

    def test_duplicate_id_rejected(self):
        """Reusing a live id fails"""
        store = AnnotationStore()
        store.create([make_segment("x")], ['grammar'], annotation_id="highlight-1")
        with pytest.raises(ValueError):
            store.create([make_segment("y")], ['grammar'], annotation_id="highlight-1")

    def test_marker_owned_once(self):
        """A marker may back only one annotation"""
        store = AnnotationStore()
        segment = make_segment("x", with_marker=True)
        store.create([segment], ['grammar'])
        with pytest.raises(ValueError):
            store.create([Segment(None, None, text="x", marker=segment.marker)], ['spelling'])


class TestUpdate:
    """Tests for AnnotationStore.update"""

    def test_partial_merge(self):
        """Only given fields change"""
        store = AnnotationStore()
        annotation = store.create([make_segment("foo")], ['grammar'],
                                  correction_text="fix", explanation_text="why")
        store.update(annotation.id, explanation_text="because")
        assert annotation.correction_text == "fix"
        assert annotation.explanation_text == "because"
        assert annotation.categories == ['grammar']

    def test_category_change_sets_primary(self):
        """The new first category becomes primary"""
        store = AnnotationStore()
        annotation = store.create([make_segment("foo")], ['grammar'])
        store.update(annotation.id, categories=['vocabulary', 'grammar'])
        assert annotation.primary_category == 'vocabulary'

    def test_invalid_update_changes_nothing(self):
        """A failing update leaves every field untouched"""
        store = AnnotationStore()
        annotation = store.create([make_segment("foo")], ['grammar'])
        with pytest.raises(ValueError):
            store.update(annotation.id, categories=[], correction_text="changed")
        assert annotation.correction_text == ""
        assert annotation.categories == ['grammar']

    def test_segment_replacement_regroups(self):
        """Replacing segments adds or drops the group id"""
        store = AnnotationStore()
        annotation = store.create([make_segment("a")], ['grammar'])
        store.update(annotation.id, segments=[make_segment("a"), make_segment("b")])
        group_id = annotation.group_id
        assert group_id is not None
        assert store.find_by_group(group_id) is annotation

        store.update(annotation.id, segments=[make_segment("a")])
        assert annotation.group_id is None
        with pytest.raises(NotFound):
            store.find_by_group(group_id)

    def test_unknown_id(self):
        """Updating a missing id raises NotFound"""
        store = AnnotationStore()
        with pytest.raises(NotFound):
            store.update("highlight-missing", correction_text="x")


class TestRemoveAndLookup:
    """Tests for remove and the lookups"""

    def test_remove_returns_segments(self):
        """remove hands back the freed segments"""
        store = AnnotationStore()
        segments = [make_segment("a"), make_segment("b")]
        annotation = store.create(segments, ['grammar'])
        freed = store.remove(annotation.id)
        assert [s.text for s in freed] == ["a", "b"]
        assert annotation.id not in store
        with pytest.raises(NotFound):
            store.find_by_group(annotation.group_id)

    def test_get_missing(self):
        """get raises NotFound, which is also a KeyError"""
        store = AnnotationStore()
        with pytest.raises(KeyError):
            store.get("nope")

    def test_not_found_message_unquoted(self):
        """NotFound keeps a readable message"""
        store = AnnotationStore()
        with pytest.raises(NotFound) as excinfo:
            store.get("nope")
        assert str(excinfo.value) == "Annotation not found: nope"

    def test_find_by_marker(self):
        """Any marker of an annotation resolves to it"""
        store = AnnotationStore()
        segments = [make_segment("a", True), make_segment("b", True)]
        annotation = store.create(segments, ['grammar'])
        assert store.find_by_marker(segments[1].marker) is annotation
        with pytest.raises(NotFound):
            store.find_by_marker(etree.Element('mark'))

    def test_iteration_and_len(self):
        """The store iterates over live annotations"""
        store = AnnotationStore()
        first = store.create([make_segment("a")], ['grammar'])
        second = store.create([make_segment("b")], ['spelling'])
        assert len(store) == 2
        assert list(store) == [first, second]
