"""Annotation editor composed from focused mixins."""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

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
    ATTR_TYPE,
    PARAGRAPH_SEPARATOR,
    STATUS_APPLIED,
    STATUS_EMPTY,
    STATUS_ERROR,
    Annotation,
    AnnotationResult,
    EmptySelection,
    HighlightError,
    OutOfRange,
    Segment,
    SessionAlreadyActive,
    TreeLocation,
    format_text_preview,
    normalize_categories,
    require_categories,
)
from .container import iter_leaves
from .offset_mapping import OffsetMappingMixin
from .render import MarkerRenderMixin
from .resize import ResizeSession
from .segment_builder import SegmentBuilderMixin
from .store import AnnotationStore
from .styles import map_legacy_category
from xml_utils import attr_to_bool


class AnnotationEditor(OffsetMappingMixin, SegmentBuilderMixin, MarkerRenderMixin):
    def __init__(self, container, verbose: bool = False,
                 exclude_new_from_export: bool = False,
                 separator: str = PARAGRAPH_SEPARATOR):
        """
        Args:
            container: lxml element holding <p> blocks of <r> runs
            verbose: Print diagnostic lines
            exclude_new_from_export: New annotations start excluded from
                export (the "remove all from PDF" switch)
            separator: Joins segment texts in original_text
        """
        if container is None:
            raise ValueError("Container is required")
        self.container = container
        self.verbose = verbose
        self.exclude_new_from_export = exclude_new_from_export
        self.separator = separator
        self.store = AnnotationStore(separator=separator)
        self.status_message = ''

        # Single-writer discipline: at most one resize session
        self._active_session: Optional[ResizeSession] = None

    # ------------------------------------------------------------
    # Internal rendering helpers
    # ------------------------------------------------------------

    def _render_annotation(self, annotation: Annotation, segments: List[Segment]) -> None:
        """Render fresh segments for an annotation and record them in the store."""
        original_text = self.separator.join(s.text for s in segments)
        self.store.update(annotation.id, original_text=original_text)
        rendered = self.apply(annotation, segments)
        group_before = annotation.group_id
        self.store.update(annotation.id, segments=rendered, original_text=original_text)
        if annotation.group_id != group_before:
            for marker in annotation.markers:
                self.refresh_marker(marker, annotation)

    def _refresh_annotation_markers(self, annotation: Annotation) -> None:
        for marker in annotation.markers:
            self.refresh_marker(marker, annotation)

    def annotation_span(self, annotation: Annotation) -> Optional[Tuple[int, int]]:
        """Flat (start, end) from the first marker's start to the last marker's end."""
        spans = [self._marker_span(m) for m in annotation.markers]
        spans = [s for s in spans if s is not None]
        if not spans:
            return None
        return min(s[0] for s in spans), max(s[1] for s in spans)

    # ------------------------------------------------------------
    # Creation / edit / removal
    # ------------------------------------------------------------

    def create_annotation(self, start, end, categories,
                          correction_text: str = '',
                          explanation_text: str = '') -> Annotation:
        """
        Highlight a selection.

        Args:
            start: Selection start (TreeLocation or character position)
            end: Selection end (TreeLocation or character position)
            categories: Ordered categories, primary first

        Returns:
            The rendered Annotation

        Raises:
            EmptySelection: Selection holds only whitespace (no change made)
            OutOfRange: Selection ends are outside the container
        """
        categories = require_categories(categories)
        try:
            segments = self.build_segments(start, end)
        except EmptySelection:
            self.status_message = STATUS_EMPTY
            raise
        except OutOfRange:
            self.status_message = STATUS_ERROR
            raise

        annotation = self.store.create(
            segments, categories,
            correction_text=correction_text,
            explanation_text=explanation_text,
            excluded_from_export=self.exclude_new_from_export,
        )
        self._render_annotation(annotation, segments)
        self.status_message = STATUS_APPLIED
        if self.verbose:
            print(f"  [Create] {annotation.id} ({','.join(categories)}): "
                  f"'{format_text_preview(annotation.original_text)}' "
                  f"in {len(annotation.segments)} segment(s)")
        return annotation

    def get_annotation(self, annotation_id: str) -> Annotation:
        return self.store.get(annotation_id)

    def update_annotation(self, annotation_id: str, categories=None,
                          correction_text: Optional[str] = None,
                          explanation_text: Optional[str] = None,
                          excluded_from_export: Optional[bool] = None) -> Annotation:
        """
        Edit categories, correction, explanation or export flag.

        Changes apply to every segment of the annotation; text and
        positions are not touched.

        Raises:
            NotFound: Unknown annotation id
        """
        annotation = self.store.update(
            annotation_id,
            categories=categories,
            correction_text=correction_text,
            explanation_text=explanation_text,
            excluded_from_export=excluded_from_export,
        )
        self._refresh_annotation_markers(annotation)
        if self.verbose:
            print(f"  [Update] {annotation.id} ({','.join(annotation.categories)})")
        return annotation

    def unwrap_all(self, markers: List) -> None:
        super().unwrap_all(markers)
        self._sync_segment_bounds()

    def _sync_segment_bounds(self) -> None:
        """Point stored segment locations at the runs their markers hold now."""
        for annotation in self.store:
            for segment in annotation.segments:
                if segment.marker is None or not self._is_in_container(segment.marker):
                    continue
                leaves = list(iter_leaves(segment.marker))
                if not leaves:
                    continue
                segment.start = TreeLocation(leaves[0], 0)
                segment.end = TreeLocation(leaves[-1], len(leaves[-1].text or ''))

    def remove_annotation(self, annotation_id: str) -> None:
        """
        Remove an annotation and unwrap all of its markers.

        Raises:
            NotFound: Unknown annotation id
            OutOfRange: A marker was detached from the container externally
        """
        annotation = self.store.get(annotation_id)
        markers = annotation.markers
        # Check before deleting from the store so a failure changes nothing
        for marker in markers:
            if not self._is_in_container(marker):
                raise OutOfRange("Marker is not part of the container")
        if self._active_session is not None and \
                self._active_session.annotation_id == annotation_id:
            self._active_session.cancel()
        self.store.remove(annotation_id)
        self.unwrap_all(markers)
        if self.verbose:
            print(f"  [Remove] {annotation_id}: unwrapped {len(markers)} marker(s)")

    def resolve_marker(self, marker) -> Annotation:
        """
        Resolve a clicked marker to its annotation.

        Every marker of a group resolves to the same annotation, whose first
        segment is its primary one.
        """
        group_id = marker.get(ATTR_GROUP_ID)
        if group_id and self.store.has_group(group_id):
            return self.store.find_by_group(group_id)
        return self.store.find_by_marker(marker)

    # ------------------------------------------------------------
    # Resize sessions
    # ------------------------------------------------------------

    def begin_resize(self, annotation_id: str) -> ResizeSession:
        """
        Open the resize session for an annotation.

        Raises:
            SessionAlreadyActive: Another session is open
            NotFound: Unknown annotation id
        """
        if self._active_session is not None and self._active_session.active:
            raise SessionAlreadyActive(
                f"Resize already active for {self._active_session.annotation_id}")
        annotation = self.store.get(annotation_id)
        session = ResizeSession(self, annotation)
        self._active_session = session
        return session

    @property
    def active_session(self) -> Optional[ResizeSession]:
        return self._active_session

    def _release_session(self, session: ResizeSession) -> None:
        if self._active_session is session:
            self._active_session = None

    # ------------------------------------------------------------
    # Queries and bulk operations
    # ------------------------------------------------------------

    def annotations(self) -> List[Annotation]:
        """Annotations ordered by their position in the text."""
        def sort_key(annotation):
            span = self.annotation_span(annotation)
            return span if span is not None else (len(self.flat_text()), 0)
        return sorted(self.store, key=sort_key)

    def annotations_by_category(self, category: str) -> List[Annotation]:
        return [a for a in self.annotations() if category in a.categories]

    def clear_all(self) -> int:
        """Remove every annotation; returns how many were removed."""
        removed = 0
        for annotation in self.annotations():
            self.remove_annotation(annotation.id)
            removed += 1
        return removed

    def set_all_excluded(self, excluded: bool) -> None:
        """Toggle export exclusion for all annotations and new ones."""
        self.exclude_new_from_export = bool(excluded)
        for annotation in self.store:
            self.update_annotation(annotation.id, excluded_from_export=excluded)

    def adopt_existing_markers(self) -> List[Annotation]:
        """
        Register markers already present in the container.

        Used for reloaded essays and legacy markers. Markers sharing a
        data-group-id become one annotation; a marker without categories
        takes its category from a highlight-* class. Missing ids are
        generated and every adopted marker is restyled.

        Returns:
            Newly registered annotations
        """
        owned = set()
        for annotation in self.store:
            owned.update(id(m) for m in annotation.markers)

        groups: Dict[str, List] = {}
        order: List[str] = []
        singles = []
        for marker in self.find_markers():
            if id(marker) in owned:
                continue
            group_id = marker.get(ATTR_GROUP_ID)
            if group_id:
                if group_id not in groups:
                    groups[group_id] = []
                    order.append(('group', group_id))
                groups[group_id].append(marker)
            else:
                order.append(('single', len(singles)))
                singles.append(marker)

        adopted = []
        for kind, key in order:
            markers = groups[key] if kind == 'group' else [singles[key]]
            annotation = self._adopt_markers(markers, key if kind == 'group' else None)
            if annotation is not None:
                adopted.append(annotation)
        if self.verbose:
            print(f"  [Adopt] Registered {len(adopted)} existing highlight(s)")
        return adopted

    def _adopt_markers(self, markers: List, group_id: Optional[str]) -> Optional[Annotation]:
        first = markers[0]
        categories = normalize_categories(first.get(ATTR_CATEGORY) or first.get(ATTR_TYPE))
        if not categories:
            legacy = map_legacy_category(first.get(ATTR_CLASS) or '')
            categories = normalize_categories(legacy)
        if not categories:
            if self.verbose:
                print("  [Warning] Skipping marker without category")
            return None

        segments = [self._rendered_segment(m, self._find_block(m)) for m in markers
                    if self.marker_text(m)]
        if not segments:
            return None

        annotation_id = first.get(ATTR_ANNOTATION_ID) or first.get(ATTR_ID)
        if not annotation_id or annotation_id in self.store:
            annotation_id = None
        if group_id and self.store.has_group(group_id):
            group_id = None
        original_text = first.get(ATTR_ORIGINAL_TEXT)
        excluded = attr_to_bool(first.get(ATTR_EXCLUDE))

        annotation = self.store.create(
            segments, categories,
            correction_text=first.get(ATTR_CORRECTION) or '',
            explanation_text=first.get(ATTR_EXPLANATION) or '',
            excluded_from_export=excluded,
            annotation_id=annotation_id,
            group_id=group_id,
        )
        if original_text:
            self.store.update(annotation.id, original_text=original_text)
        for idx, marker in enumerate(annotation.markers):
            marker.set(ATTR_ID, annotation.id if idx == 0 else f"{annotation.id}-{idx}")
            self.refresh_marker(marker, annotation)
        return annotation

    # ------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------

    def export_all(self) -> List[Dict]:
        """Flat snapshot of every annotation, in text order."""
        records = []
        for annotation in self.annotations():
            span = self.annotation_span(annotation)
            start, end = span if span is not None else (None, None)
            records.append({
                'id': annotation.id,
                'categories': list(annotation.categories),
                'correctionText': annotation.correction_text,
                'explanationText': annotation.explanation_text,
                'originalText': annotation.original_text,
                'excludedFromExport': annotation.excluded_from_export,
                'groupId': annotation.group_id,
                'position': {'start': start, 'end': end},
            })
        return records

    def _locate_record(self, record: Dict) -> Tuple[Optional[Tuple[int, int]], bool]:
        """
        Find where an exported record should go in the current text.

        Returns:
            ((start, end) or None, moved) where moved is True when the text
            was found by search instead of at the recorded position
        """
        flat = self.flat_text()
        original = record.get('originalText') or ''
        position = record.get('position') or {}
        start, end = position.get('start'), position.get('end')
        if isinstance(start, int) and isinstance(end, int) and 0 <= start < end <= len(flat):
            if not original or self._selection_text(start, end) == original:
                return (start, end), False
        if original:
            # Blocks may be joined by anything between them in the container
            parts = [re.escape(part) for part in original.split(self.separator)]
            for match in re.finditer(r'\s*'.join(parts), flat):
                if self._selection_text(match.start(), match.end()) == original:
                    return (match.start(), match.end()), True
        return None, False

    def _selection_text(self, start: int, end: int) -> Optional[str]:
        """Text an annotation over [start, end) would record, or None."""
        try:
            segments = self.build_segments(start, end)
        except (EmptySelection, OutOfRange):
            return None
        return self.separator.join(s.text for s in segments)

    def import_all(self, records: List[Dict]) -> List[AnnotationResult]:
        """
        Re-apply exported records, best effort.

        Each record is applied at its recorded position when the text there
        still matches, otherwise at the first occurrence of its original
        text. Records that cannot be placed are reported, not raised.
        """
        results = []
        for record in records:
            span, moved = self._locate_record(record)
            if span is None:
                results.append(AnnotationResult(
                    success=False, record=record,
                    error_message="Original text not found"))
                continue
            try:
                annotation = self.create_annotation(
                    span[0], span[1], record.get('categories') or [],
                    correction_text=record.get('correctionText') or '',
                    explanation_text=record.get('explanationText') or '',
                )
                if 'excludedFromExport' in record:
                    self.update_annotation(
                        annotation.id, excluded_from_export=bool(record['excludedFromExport']))
            except (HighlightError, ValueError) as e:
                results.append(AnnotationResult(
                    success=False, record=record, error_message=str(e)))
                continue
            results.append(AnnotationResult(
                success=True, record=record, annotation=annotation,
                error_message="Applied at searched position" if moved else None,
                warning=moved))

        failed = sum(1 for r in results if not r.success)
        if failed:
            print(f"  [Warning] {failed} highlight(s) could not be imported")
        return results

    def legend_entries(self) -> List[Dict]:
        """
        Numbered highlight list shown next to the essay and in exports.

        Excluded annotations are listed too (flagged), annotations with blank
        text are skipped.
        """
        entries = []
        number = 1
        for annotation in self.annotations():
            text = (annotation.original_text or '').strip()
            if not text:
                continue
            entries.append({
                'number': number,
                'text': text,
                'categories': list(annotation.categories),
                'correction': annotation.correction_text.strip(),
                'explanation': annotation.explanation_text.strip(),
                'elementId': annotation.id,
                'isExcluded': annotation.excluded_from_export,
            })
            number += 1
        return entries

    def export_jsonl(self, path, source: str = '') -> Path:
        """Write a meta line followed by one exported record per line."""
        path = Path(path)
        records = self.export_all()
        with open(path, 'w', encoding='utf-8') as f:
            meta = {
                'type': 'meta',
                'source_file': source,
                'exported_at': datetime.now(timezone.utc).isoformat(),
                'count': len(records),
            }
            f.write(json.dumps(meta, ensure_ascii=False) + '\n')
            for record in records:
                f.write(json.dumps(record, ensure_ascii=False) + '\n')
        return path


def load_jsonl(path) -> Tuple[Dict, List[Dict]]:
    """
    Load an export file written by export_jsonl().

    Returns:
        Tuple of (meta dict, list of records)
    """
    meta = {}
    records = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            data = json.loads(line)
            if data.get('type') == 'meta':
                meta = data
            else:
                records.append(data)
    return meta, records
