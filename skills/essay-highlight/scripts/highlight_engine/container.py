"""Build, parse and serialize essay containers (blocks of text runs)."""

from typing import Iterator, List, Optional

from lxml import etree
from lxml import html as lxml_html

from .common import BLOCK_TAG, MARKER_TAG, PARAGRAPH_SEPARATOR, RUN_TAG
from xml_utils import sanitize_xml_string


def make_run(text: str) -> etree._Element:
    """Create a text run element."""
    run = etree.Element(RUN_TAG)
    run.text = sanitize_xml_string(text)
    return run


def build_container(paragraphs: List[str], separator: str = PARAGRAPH_SEPARATOR,
                    tag: str = 'essay') -> etree._Element:
    """
    Build a container from plain paragraph strings.

    Each paragraph becomes a <p> block holding a single run. The separator is
    stored as a loose run between blocks so that it takes part in character
    positions, the way the rendered essay keeps newlines between paragraphs.

    Args:
        paragraphs: Paragraph texts in order
        separator: Text inserted between consecutive blocks ('' for none)
        tag: Tag of the container element

    Returns:
        lxml Element representing the container
    """
    container = etree.Element(tag)
    for idx, text in enumerate(paragraphs):
        if idx > 0 and separator:
            container.append(make_run(separator))
        block = etree.SubElement(container, BLOCK_TAG)
        if text:
            block.append(make_run(text))
    return container


def iter_leaves(elem) -> Iterator[etree._Element]:
    """Yield text runs under elem in document order (any nesting depth)."""
    return elem.iter(RUN_TAG)


def flatten(container) -> str:
    """Concatenate the text of every run in document order."""
    return ''.join(run.text or '' for run in iter_leaves(container))


def _append_text(parent, text: str) -> None:
    """Append text to parent as a run, merging with a trailing run."""
    if not text:
        return
    if len(parent) and parent[-1].tag == RUN_TAG:
        parent[-1].text = (parent[-1].text or '') + sanitize_xml_string(text)
    else:
        parent.append(make_run(text))


def _convert_inline(src, dest) -> None:
    """
    Convert HTML inline content of src into runs/markers under dest.

    <mark> elements are kept (attributes preserved), <br> becomes '\\n',
    any other inline tag is flattened to its text.
    """
    _append_text(dest, src.text)
    for child in src:
        _convert_element(child, dest)
        _append_text(dest, child.tail)


def _convert_element(child, dest) -> None:
    """Convert one HTML inline element (without its tail) under dest."""
    if not isinstance(child.tag, str):
        # Comments and processing instructions carry no text
        return
    tag = child.tag.lower()
    if tag == MARKER_TAG:
        marker = etree.SubElement(dest, MARKER_TAG)
        for key, value in child.attrib.items():
            marker.set(key, value)
        _convert_inline(child, marker)
    elif tag == 'br':
        _append_text(dest, '\n')
    else:
        _convert_inline(child, dest)


def _find_essay_root(doc, container_class: Optional[str]):
    """Locate the essay container inside a parsed HTML document."""
    if container_class:
        found = doc.xpath(
            f'//*[contains(concat(" ", normalize-space(@class), " "), " {container_class} ")]'
        )
        if found:
            return found[0]
    body = doc.find('.//body')
    return body if body is not None else doc


def container_from_html(html_text: str, container_class: Optional[str] = None,
                        tag: str = 'essay') -> etree._Element:
    """
    Parse rendered essay HTML into a container.

    Block children (<p>, <div>, headings, list items) become <p> blocks;
    whitespace between blocks is kept as loose runs so offsets match the
    rendered text. Loose non-whitespace text is wrapped into its own block.

    Args:
        html_text: HTML fragment or full page
        container_class: Optional class name of the essay element in a page
        tag: Tag of the resulting container element

    Returns:
        lxml Element representing the container
    """
    if not html_text or not html_text.strip():
        return etree.Element(tag)

    doc = lxml_html.fromstring(f'<div>{html_text}</div>') \
        if '<html' not in html_text.lower() else lxml_html.document_fromstring(html_text)
    root = _find_essay_root(doc, container_class)
    # Fragment whose only content is the essay wrapper element itself
    while root is doc and len(root) == 1 and root[0].tag in ('div', 'article', 'section') \
            and not (root.text or '').strip() and not (root[0].tail or '').strip():
        root = doc = root[0]

    container = etree.Element(tag)
    block_tags = {'p', 'div', 'li', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'blockquote', 'pre'}

    def add_loose_text(text):
        if not text:
            return
        if text.strip():
            block = etree.SubElement(container, BLOCK_TAG)
            _append_text(block, text)
        else:
            _append_text(container, text)

    add_loose_text(root.text)
    for child in root:
        if isinstance(child.tag, str) and child.tag.lower() in block_tags:
            block = etree.SubElement(container, BLOCK_TAG)
            _convert_inline(child, block)
        elif isinstance(child.tag, str):
            block = etree.SubElement(container, BLOCK_TAG)
            _convert_element(child, block)
        add_loose_text(child.tail)
    return container


def _emit_text(dest, last, text: str):
    """Append text after last (or into dest), turning newlines into <br>."""
    lines = text.split('\n')
    for index, line in enumerate(lines):
        if index:
            last = etree.SubElement(dest, 'br')
        if not line:
            continue
        if last is None:
            dest.text = (dest.text or '') + line
        else:
            last.tail = (last.tail or '') + line
    return last


def _render_inline(src, dest) -> None:
    """Render runs/markers of src as HTML text, <br> and <mark> children of dest."""
    last = None
    for child in src:
        if child.tag == RUN_TAG:
            last = _emit_text(dest, last, child.text or '')
        elif child.tag == MARKER_TAG:
            mark = etree.SubElement(dest, MARKER_TAG)
            for key, value in child.attrib.items():
                mark.set(key, value)
            _render_inline(child, mark)
            last = mark


def container_to_html(container, container_class: Optional[str] = 'formatted-essay-content') -> str:
    """
    Serialize a container to HTML.

    Runs become plain text with newlines inside blocks written as <br>, and
    markers keep their attributes. Loose runs between blocks are emitted as
    text so the rendered text equals flatten(container).
    """
    div = etree.Element('div')
    if container_class:
        div.set('class', container_class)
    last = None
    for child in container:
        if child.tag == RUN_TAG:
            if last is None:
                div.text = (div.text or '') + (child.text or '')
            else:
                last.tail = (last.tail or '') + (child.text or '')
        elif child.tag == BLOCK_TAG:
            para = etree.SubElement(div, 'p')
            _render_inline(child, para)
            last = para
    return etree.tostring(div, encoding='unicode', method='html')
