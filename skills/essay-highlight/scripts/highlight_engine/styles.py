"""
Category table and visual style resolution for highlight markers.

The table is static; resolve() is a pure function of the ordered category
set so that re-rendering a marker always yields the same inline style.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from .common import CLASS_PREFIX, normalize_categories


CATEGORIES: Dict[str, Dict[str, str]] = {
    'grammar': {
        'name': 'Grammar Error',
        'color': '#FF8C00',
        'background_color': 'rgba(255, 140, 0, 0.3)',
    },
    'vocabulary': {
        'name': 'Vocabulary Error',
        'color': '#00A36C',
        'background_color': 'rgba(0, 163, 108, 0.3)',
    },
    'mechanics': {
        'name': 'Mechanics Error',
        'color': '#000000',
        'background_color': '#D3D3D3',
        'swatch': '#D3D3D3',
    },
    'spelling': {
        'name': 'Spelling Error',
        'color': '#DC143C',
        'background_color': 'rgba(220, 20, 60, 0.3)',
    },
    'fluency': {
        'name': 'Fluency Error',
        'color': '#000000',
        'background_color': '#87CEEB',
        'swatch': '#87CEEB',
    },
    'delete': {
        'name': 'Delete Word',
        'color': '#000000',
        'text_decoration': 'line-through',
        'font_weight': 'bold',
    },
}

# Used when the second category has no color of its own
DEFAULT_SECONDARY_COLOR = '#666'


@dataclass(frozen=True)
class StyleSpec:
    """Inline style of a marker"""
    color: Optional[str] = None
    background_color: Optional[str] = None
    text_decoration: Optional[str] = None
    font_weight: Optional[str] = None
    border_bottom: Optional[str] = None
    box_shadow: Optional[str] = None

    def to_css(self) -> str:
        """Render as a deterministic inline style string."""
        parts = []
        for prop, value in (
            ('color', self.color),
            ('background-color', self.background_color),
            ('text-decoration', self.text_decoration),
            ('font-weight', self.font_weight),
            ('border-bottom', self.border_bottom),
            ('box-shadow', self.box_shadow),
        ):
            if value:
                parts.append(f'{prop}: {value};')
        parts.append('cursor: pointer;')
        return ' '.join(parts)

    @property
    def is_multi(self) -> bool:
        return self.border_bottom is not None


def resolve(categories) -> StyleSpec:
    """
    Resolve the visual style for an ordered category set.

    The primary (first) category provides color, background and decoration.
    With two or more categories, the second category's color adds a dashed
    underline and an inset outline. Categories after the second are not
    reflected in the style.
    """
    categories = normalize_categories(categories)
    if not categories:
        return StyleSpec()

    primary = CATEGORIES.get(categories[0], {})
    border_bottom = None
    box_shadow = None
    if len(categories) > 1:
        secondary_color = CATEGORIES.get(categories[1], {}).get('color') or DEFAULT_SECONDARY_COLOR
        border_bottom = f'2px dashed {secondary_color}'
        box_shadow = f'inset 0 0 0 1px {secondary_color}'

    return StyleSpec(
        color=primary.get('color'),
        background_color=primary.get('background_color'),
        text_decoration=primary.get('text_decoration'),
        font_weight=primary.get('font_weight'),
        border_bottom=border_bottom,
        box_shadow=box_shadow,
    )


def category_label(category: str) -> str:
    """Display name of a category, the id itself when unknown."""
    data = CATEGORIES.get(category)
    return data['name'] if data else category


def category_swatch(category: str) -> str:
    """Color used for legend chips."""
    data = CATEGORIES.get(category, {})
    return data.get('swatch') or data.get('color') or DEFAULT_SECONDARY_COLOR


def marker_class(categories) -> str:
    categories = normalize_categories(categories)
    return f'{CLASS_PREFIX}{categories[0]}' if categories else ''


def map_legacy_category(value: str) -> str:
    """
    Map a legacy class name to a category id.

    Examples:
        "highlight-grammar" -> "grammar"
        "highlight-spelling other" -> "spelling"
        "grammar" -> "grammar"
    """
    for token in (value or '').split():
        if token.startswith(CLASS_PREFIX) and len(token) > len(CLASS_PREFIX):
            return token[len(CLASS_PREFIX):]
    return (value or '').strip()
