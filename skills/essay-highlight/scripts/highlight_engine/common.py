#!/usr/bin/env python3
"""
ABOUTME: Shared constants, data classes and errors for the highlight engine
ABOUTME: Describes the essay container model (blocks, runs, markers)
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# ============================================================
# Constants
# ============================================================

# Element tags of the container model
BLOCK_TAG = 'p'
RUN_TAG = 'r'
MARKER_TAG = 'mark'

# Text placed between blocks; also joins segment texts in original_text
PARAGRAPH_SEPARATOR = '\n\n'

# Marker attributes (names kept compatible with the rendered essay HTML)
ATTR_ID = 'id'
ATTR_ANNOTATION_ID = 'data-annotation-id'
ATTR_CATEGORY = 'data-category'
ATTR_TYPE = 'data-type'
ATTR_CORRECTION = 'data-correction'
ATTR_EXPLANATION = 'data-explanation'
ATTR_ORIGINAL_TEXT = 'data-original-text'
ATTR_GROUP_ID = 'data-group-id'
ATTR_EXCLUDE = 'data-exclude-from-pdf'
ATTR_CLASS = 'class'
ATTR_STYLE = 'style'
ATTR_TITLE = 'title'

CLASS_PREFIX = 'highlight-'

STATUS_APPLIED = 'Highlight applied successfully.'
STATUS_EMPTY = 'Selection is empty. Select some text to highlight.'
STATUS_ERROR = 'Error applying highlight. Try selecting plain text only.'


# ============================================================
# Errors
# ============================================================

class HighlightError(Exception):
    """Base class for highlight engine errors"""


class OutOfRange(HighlightError, IndexError):
    """Position or location is outside the container (programmer error)"""


class EmptySelection(HighlightError, ValueError):
    """Selection collapses to nothing after whitespace trimming"""


class NotFound(HighlightError, KeyError):
    """Annotation id, group id or marker is unknown to the store"""

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ''


class SessionAlreadyActive(HighlightError, RuntimeError):
    """A resize session is already open for this editor"""


class StaleResize(HighlightError, RuntimeError):
    """Container changed under an open resize session"""


# ============================================================
# Data Classes
# ============================================================

@dataclass(frozen=True)
class TreeLocation:
    """A text run (leaf) and an offset inside its text"""
    leaf: object                 # lxml <r> element
    offset: int

    def __eq__(self, other):
        if not isinstance(other, TreeLocation):
            return NotImplemented
        # lxml elements compare by identity
        return self.leaf is other.leaf and self.offset == other.offset

    def __hash__(self):
        return hash((id(self.leaf), self.offset))


@dataclass
class Segment:
    """Block-confined sub-range of an annotation"""
    start: Optional[TreeLocation]
    end: Optional[TreeLocation]
    block: object = None         # block element (or the leaf itself for loose runs)
    text: str = ''
    marker: object = None        # <mark> element once rendered


@dataclass
class Annotation:
    """Categorized correction attached to one or more segments"""
    id: str
    categories: List[str]
    correction_text: str = ''
    explanation_text: str = ''
    excluded_from_export: bool = False
    original_text: str = ''
    group_id: Optional[str] = None
    segments: List[Segment] = field(default_factory=list)

    @property
    def primary_category(self) -> str:
        return self.categories[0]

    @property
    def markers(self) -> List:
        return [s.marker for s in self.segments if s.marker is not None]


@dataclass
class AnnotationResult:
    """Result of importing one exported annotation record"""
    success: bool
    record: Dict
    annotation: Optional[Annotation] = None
    error_message: Optional[str] = None
    warning: bool = False  # Applied, but not at the recorded position


# ============================================================
# Helper Functions
# ============================================================

def new_annotation_id() -> str:
    return f"highlight-{uuid.uuid4().hex[:12]}"


def new_group_id() -> str:
    return f"group-{uuid.uuid4().hex[:12]}"


def normalize_categories(categories) -> List[str]:
    """
    Normalize categories into an ordered set.

    Accepts a list/tuple or a comma separated string (the marker attribute
    format). Blank entries and duplicates are dropped, first occurrence wins.

    Examples:
        "grammar, spelling" -> ['grammar', 'spelling']
        ['grammar', 'grammar', ''] -> ['grammar']
    """
    if categories is None:
        return []
    if isinstance(categories, str):
        categories = categories.split(',')
    result = []
    for category in categories:
        category = (category or '').strip()
        if category and category not in result:
            result.append(category)
    return result


def require_categories(categories) -> List[str]:
    """Normalize categories and reject an empty set"""
    normalized = normalize_categories(categories)
    if not normalized:
        raise ValueError("At least one category is required")
    return normalized


def format_text_preview(text: str, max_len: int = 30) -> str:
    """
    Format text for log output: remove newlines and truncate.

    Args:
        text: Text to format
        max_len: Maximum length before truncation

    Returns:
        Clean, truncated text with "..." suffix if truncated
    """
    clean = ' '.join((text or '').split())
    if len(clean) > max_len:
        return clean[:max_len] + "..."
    return clean


def build_tooltip(correction_text: str, explanation_text: str) -> str:
    """Tooltip shown on hover: correction and explanation, 'None' when blank"""
    return (f"Correction: {correction_text or 'None'}\n"
            f"Explanation: {explanation_text or 'None'}")
