#!/usr/bin/env python3
"""
ABOUTME: Tests for the category table and style resolution
"""

import sys
from pathlib import Path

TESTS_DIR = Path(__file__).parent
sys.path.insert(0, str(TESTS_DIR))

import importlib

import _highlight_helpers  # noqa: F401  (puts the scripts directory on sys.path)

styles = importlib.import_module("highlight_engine.styles")


class TestResolve:
    """Tests for resolve()"""

    def test_single_category(self):
        """Primary category provides color and background"""
        spec = styles.resolve(['grammar'])
        assert spec.color == '#FF8C00'
        assert spec.background_color == 'rgba(255, 140, 0, 0.3)'
        assert spec.border_bottom is None
        assert not spec.is_multi

    def test_secondary_indicator(self):
        """The second category adds a dashed underline and inset outline"""
        spec = styles.resolve(['grammar', 'spelling'])
        assert spec.color == '#FF8C00'
        assert spec.border_bottom == '2px dashed #DC143C'
        assert spec.box_shadow == 'inset 0 0 0 1px #DC143C'
        assert spec.is_multi

    def test_third_category_ignored(self):
        """Only the second category drives the secondary indicator"""
        assert styles.resolve(['grammar', 'spelling', 'fluency']) == \
            styles.resolve(['grammar', 'spelling'])

    def test_unknown_secondary_uses_default(self):
        """An unknown second category falls back to the default color"""
        spec = styles.resolve(['grammar', 'made-up'])
        assert spec.border_bottom == '2px dashed #666'

    def test_delete_category(self):
        """Delete renders as bold strike-through"""
        css = styles.resolve(['delete']).to_css()
        assert css == ('color: #000000; text-decoration: line-through; '
                       'font-weight: bold; cursor: pointer;')

    def test_css_is_deterministic(self):
        """Same categories always give the same inline style"""
        first = styles.resolve('fluency, vocabulary').to_css()
        second = styles.resolve(['fluency', 'vocabulary']).to_css()
        assert first == second
        assert first == ('color: #000000; background-color: #87CEEB; '
                         'border-bottom: 2px dashed #00A36C; '
                         'box-shadow: inset 0 0 0 1px #00A36C; cursor: pointer;')

    def test_empty(self):
        """No categories gives a bare style"""
        assert styles.resolve([]).to_css() == 'cursor: pointer;'


class TestCategoryHelpers:
    """Tests for labels, swatches and legacy mapping"""

    def test_labels(self):
        assert styles.category_label('mechanics') == 'Mechanics Error'
        assert styles.category_label('other') == 'other'

    def test_swatch_prefers_background(self):
        """Black-text categories use their background as swatch"""
        assert styles.category_swatch('fluency') == '#87CEEB'
        assert styles.category_swatch('spelling') == '#DC143C'

    def test_marker_class(self):
        assert styles.marker_class(['vocabulary', 'grammar']) == 'highlight-vocabulary'
        assert styles.marker_class([]) == ''

    def test_legacy_mapping(self):
        """Legacy class names map to category ids"""
        assert styles.map_legacy_category('highlight-grammar') == 'grammar'
        assert styles.map_legacy_category('big highlight-spelling') == 'spelling'
        assert styles.map_legacy_category('grammar') == 'grammar'
        assert styles.map_legacy_category('') == ''
