"""
This mixin class wraps segments with <mark> markers and unwraps them again.

Markers may nest: a selection that fully covers an existing marker wraps it,
and removing an outer marker leaves inner markers in place.
"""

from typing import List, Optional

from lxml import etree

from .common import (
    ATTR_ANNOTATION_ID,
    ATTR_CATEGORY,
    ATTR_CLASS,
    ATTR_CORRECTION,
    ATTR_EXCLUDE,
    ATTR_EXPLANATION,
    ATTR_GROUP_ID,
    ATTR_ID,
    ATTR_ORIGINAL_TEXT,
    ATTR_STYLE,
    ATTR_TITLE,
    ATTR_TYPE,
    CLASS_PREFIX,
    MARKER_TAG,
    RUN_TAG,
    Annotation,
    OutOfRange,
    Segment,
    TreeLocation,
    build_tooltip,
    format_text_preview,
    normalize_categories,
)
from .container import iter_leaves
from .styles import marker_class, resolve
from xml_utils import sanitize_xml_string


class MarkerRenderMixin:
    # ------------------------------------------------------------
    # Run splitting
    # ------------------------------------------------------------

    def _split_run(self, run, offset: int):
        """
        Split a run at offset; the right part becomes a new following run.

        Returns:
            The run holding text[offset:] (run itself when offset is 0)
        """
        text = run.text or ''
        if offset <= 0:
            return run
        if offset >= len(text):
            return None
        right = etree.Element(RUN_TAG)
        for key, value in run.attrib.items():
            right.set(key, value)
        right.text = text[offset:]
        run.text = text[:offset]
        parent = run.getparent()
        parent.insert(parent.index(run) + 1, right)
        return right

    def _isolate_segment(self, segment: Segment) -> List:
        """
        Split boundary runs so the segment covers whole runs.

        Returns:
            Runs covered by the segment, in document order
        """
        start_run, start_offset = segment.start.leaf, segment.start.offset
        end_run, end_offset = segment.end.leaf, segment.end.offset

        # Split the end first so the start offset stays valid on a shared run
        if end_offset < len(end_run.text or ''):
            self._split_run(end_run, end_offset)
        if start_offset > 0:
            first = self._split_run(start_run, start_offset)
        else:
            first = start_run
        last = first if end_run is start_run else end_run

        # Loose runs are grouped by themselves; their split parts are siblings
        if segment.block is None or segment.block.tag == RUN_TAG:
            scope = first.getparent()
        else:
            scope = segment.block
        runs = []
        collecting = False
        for run in scope.iter(RUN_TAG):
            if run is first:
                collecting = True
            if collecting:
                runs.append(run)
            if run is last:
                break
        return runs

    # ------------------------------------------------------------
    # Marker attributes
    # ------------------------------------------------------------

    def _new_marker(self, annotation: Annotation, index: int):
        marker = etree.Element(MARKER_TAG)
        marker.set(ATTR_ID, annotation.id if index == 0 else f"{annotation.id}-{index}")
        self.refresh_marker(marker, annotation)
        return marker

    def refresh_marker(self, marker, annotation: Annotation) -> None:
        """Write every annotation attribute and the style onto a marker."""
        marker.set(ATTR_ANNOTATION_ID, annotation.id)
        marker.set(ATTR_CORRECTION, sanitize_xml_string(annotation.correction_text))
        marker.set(ATTR_EXPLANATION, sanitize_xml_string(annotation.explanation_text))
        marker.set(ATTR_ORIGINAL_TEXT, sanitize_xml_string(annotation.original_text))
        marker.set(ATTR_EXCLUDE, 'true' if annotation.excluded_from_export else 'false')
        marker.set(ATTR_TITLE, sanitize_xml_string(
            build_tooltip(annotation.correction_text, annotation.explanation_text)))
        if annotation.group_id:
            marker.set(ATTR_GROUP_ID, annotation.group_id)
        elif ATTR_GROUP_ID in marker.attrib:
            del marker.attrib[ATTR_GROUP_ID]
        self.restyle(marker, annotation.categories)

    def restyle(self, marker, categories) -> None:
        """Recompute class and inline style without touching text or position."""
        categories = normalize_categories(categories)
        marker.set(ATTR_CATEGORY, ','.join(categories))
        marker.set(ATTR_TYPE, categories[0] if categories else '')
        # Keep unrelated classes, replace any highlight-* class
        classes = [c for c in (marker.get(ATTR_CLASS) or '').split()
                   if not c.startswith(CLASS_PREFIX)]
        new_class = marker_class(categories)
        if new_class:
            classes.append(new_class)
        marker.set(ATTR_CLASS, ' '.join(classes))
        marker.set(ATTR_STYLE, resolve(categories).to_css())

    # ------------------------------------------------------------
    # Wrapping
    # ------------------------------------------------------------

    def _child_towards(self, ancestor, elem):
        """Child of ancestor that is elem or contains it."""
        current = elem
        while current is not None and current.getparent() is not ancestor:
            current = current.getparent()
        return current

    def _lowest_common_ancestor(self, first, last):
        ancestors = []
        node = first.getparent()
        while node is not None:
            ancestors.append(node)
            node = node.getparent()
        node = last.getparent()
        while node is not None:
            if any(node is a for a in ancestors):
                return node
            node = node.getparent()
        return None

    def _edge_run(self, elem, last: bool = False):
        """First (or last) non-empty run at or under elem."""
        runs = [r for r in iter_leaves(elem) if r.text]
        if not runs:
            return None
        return runs[-1] if last else runs[0]

    def _try_single_wrap(self, runs: List, marker) -> bool:
        """
        Wrap runs with one marker if they form whole siblings.

        The wrap is possible when, under the lowest common ancestor of the
        first and last run, the sibling range from the child holding the
        first run to the child holding the last run contains exactly the
        covered runs. A marker that ends up fully covered is wrapped as a
        whole, so the new marker becomes its ancestor.

        Returns:
            True if wrapped, False if the geometry does not allow it
        """
        first, last = runs[0], runs[-1]
        if first is last:
            ancestor = first.getparent()
            first_child = last_child = first
        else:
            ancestor = self._lowest_common_ancestor(first, last)
            if ancestor is None:
                return False
            first_child = self._child_towards(ancestor, first)
            last_child = self._child_towards(ancestor, last)
            if self._edge_run(first_child) is not first or \
                    self._edge_run(last_child, last=True) is not last:
                return False

        # Lift through markers that are fully covered
        while ancestor.tag == MARKER_TAG and ancestor is not self.container \
                and first_child is ancestor[0] and last_child is ancestor[-1]:
            first_child = last_child = ancestor
            ancestor = ancestor.getparent()

        start_idx = ancestor.index(first_child)
        end_idx = ancestor.index(last_child)
        children = ancestor[start_idx:end_idx + 1]
        ancestor.insert(start_idx, marker)
        for child in children:
            marker.append(child)
        return True

    def apply(self, annotation: Annotation, segments: List[Segment]) -> List[Segment]:
        """
        Render segments of an annotation as markers.

        Each segment gets a single marker when possible; otherwise every
        non-whitespace run of the segment gets its own marker (per-run
        fallback), which always succeeds because runs sit inside one block.

        Args:
            annotation: Owning annotation (attributes are copied to markers)
            segments: Segments from build_segments()

        Returns:
            Rendered segments, one per marker node

        Raises:
            OutOfRange: A segment location is not part of the container
        """
        # Validate all locations before mutating anything
        for segment in segments:
            self.to_character_position(segment.start)
            self.to_character_position(segment.end)

        rendered = []
        for segment in segments:
            runs = self._isolate_segment(segment)
            if not runs:
                continue
            marker = self._new_marker(annotation, len(rendered))
            if self._try_single_wrap(runs, marker):
                rendered.append(self._rendered_segment(marker, segment.block))
                continue

            if self.verbose:
                print(f"  [Fallback] Per-run wrap for '{format_text_preview(segment.text)}'")
            for run in runs:
                if not (run.text or '').strip():
                    continue
                marker = self._new_marker(annotation, len(rendered))
                self._try_single_wrap([run], marker)
                rendered.append(self._rendered_segment(marker, segment.block))
        return rendered

    def _rendered_segment(self, marker, block) -> Segment:
        runs = list(iter_leaves(marker))
        return Segment(
            start=TreeLocation(runs[0], 0),
            end=TreeLocation(runs[-1], len(runs[-1].text or '')),
            block=block,
            text=''.join(r.text or '' for r in runs),
            marker=marker,
        )

    # ------------------------------------------------------------
    # Unwrapping
    # ------------------------------------------------------------

    def _merge_adjacent_runs(self, parent) -> None:
        """Merge consecutive sibling runs that share attributes."""
        previous = None
        for child in list(parent):
            if child.tag == RUN_TAG and previous is not None \
                    and dict(previous.attrib) == dict(child.attrib):
                previous.text = (previous.text or '') + (child.text or '')
                parent.remove(child)
                continue
            previous = child if child.tag == RUN_TAG else None

    def unwrap(self, marker) -> None:
        """
        Replace a marker by its children, then merge adjacent runs.

        Descendant markers stay intact.
        """
        parent = marker.getparent()
        if parent is None:
            raise OutOfRange("Marker is not attached to the container")
        idx = parent.index(marker)
        for offset, child in enumerate(list(marker)):
            parent.insert(idx + offset, child)
        parent.remove(marker)
        self._merge_adjacent_runs(parent)

    def unwrap_all(self, markers: List) -> None:
        """Unwrap every marker of a group; checks all before removing any."""
        for marker in markers:
            if not self._is_in_container(marker):
                raise OutOfRange("Marker is not part of the container")
        for marker in markers:
            self.unwrap(marker)

    def find_markers(self, root=None) -> List:
        """All marker elements in document order."""
        root = self.container if root is None else root
        return list(root.iter(MARKER_TAG))

    def marker_text(self, marker) -> str:
        return ''.join(r.text or '' for r in iter_leaves(marker))

    def outermost_marker(self, run) -> Optional[object]:
        """Outermost marker containing a run, None for plain text."""
        found = None
        node = run.getparent()
        while node is not None and node is not self.container:
            if node.tag == MARKER_TAG:
                found = node
            node = node.getparent()
        return found
