#!/usr/bin/env python3
"""
ABOUTME: Shared helpers for highlight engine tests.
"""

import sys
import importlib
from pathlib import Path
from lxml import etree

# Add skills/essay-highlight/scripts directory to path (must be before import)
_scripts_dir = Path(__file__).parent.parent / 'skills' / 'essay-highlight' / 'scripts'
sys.path.insert(0, str(_scripts_dir))

engine = importlib.import_module("highlight_engine")
AnnotationEditor = engine.AnnotationEditor
TreeLocation = engine.TreeLocation
build_container = engine.build_container

_common_module = importlib.import_module("highlight_engine.common")
OutOfRange = _common_module.OutOfRange
EmptySelection = _common_module.EmptySelection
NotFound = _common_module.NotFound
SessionAlreadyActive = _common_module.SessionAlreadyActive
StaleResize = _common_module.StaleResize

SCRIPTS_DIR = _scripts_dir
TEMPLATE_PATH = _scripts_dir.parent / 'assets' / 'legend_template.html'

SCENARIO_TEXT = "Hello world.\n\nGoodbye now."


# ============================================================
# Container Helper Functions
# ============================================================

def create_run(text: str) -> etree.Element:
    run = etree.Element('r')
    run.text = text
    return run


def create_block(*texts: str) -> etree.Element:
    """
    Create a <p> block holding one run per text.

    Args:
        texts: Run texts in order

    Returns:
        lxml Element representing <p>
    """
    block = etree.Element('p')
    for text in texts:
        block.append(create_run(text))
    return block


def create_editor(paragraphs=None, verbose: bool = False, **kwargs) -> AnnotationEditor:
    """
    Create an editor over plain paragraphs joined by the paragraph separator.

    Defaults to the two-paragraph scenario essay "Hello world.\\n\\nGoodbye now.".
    """
    if paragraphs is None:
        paragraphs = ["Hello world.", "Goodbye now."]
    return AnnotationEditor(build_container(paragraphs), verbose=verbose, **kwargs)


def create_editor_with_runs(*blocks, separator: str = "\n\n") -> AnnotationEditor:
    """
    Create an editor whose blocks hold several runs each.

    Args:
        blocks: Tuples of run texts, one tuple per block
    """
    container = etree.Element('essay')
    for idx, texts in enumerate(blocks):
        if idx > 0 and separator:
            container.append(create_run(separator))
        container.append(create_block(*texts))
    return AnnotationEditor(container)


def marker_texts(editor: AnnotationEditor) -> list:
    """Texts of all markers in document order."""
    return [editor.marker_text(m) for m in editor.find_markers()]


def runs(editor: AnnotationEditor) -> list:
    return list(editor.container.iter('r'))
