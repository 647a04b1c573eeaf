"""
ABOUTME: Highlight engine for annotating essay text with categorized corrections
ABOUTME: Maps flat character positions onto a tree of runs and renders <mark> markers
"""

from .common import (
    Annotation,
    AnnotationResult,
    EmptySelection,
    HighlightError,
    NotFound,
    OutOfRange,
    Segment,
    SessionAlreadyActive,
    StaleResize,
    TreeLocation,
)
from .container import build_container, container_from_html, container_to_html, flatten
from .editor import AnnotationEditor, load_jsonl
from .resize import ResizeSession
from .store import AnnotationStore
from .styles import CATEGORIES, StyleSpec, category_label, resolve

__all__ = [
    'Annotation',
    'AnnotationEditor',
    'AnnotationResult',
    'AnnotationStore',
    'CATEGORIES',
    'EmptySelection',
    'HighlightError',
    'NotFound',
    'OutOfRange',
    'ResizeSession',
    'Segment',
    'SessionAlreadyActive',
    'StaleResize',
    'StyleSpec',
    'TreeLocation',
    'build_container',
    'category_label',
    'container_from_html',
    'container_to_html',
    'flatten',
    'load_jsonl',
    'resolve',
]
