"""In-memory annotation store with a group index."""

from typing import Dict, Iterator, List, Optional

from .common import (
    ATTR_ANNOTATION_ID,
    PARAGRAPH_SEPARATOR,
    Annotation,
    NotFound,
    Segment,
    new_annotation_id,
    new_group_id,
    require_categories,
)


class AnnotationStore:
    """
    Canonical id -> Annotation map.

    create/update/remove are the only mutators. Annotations spanning more
    than one segment get a group id shared by all their segments, indexed
    so that any segment resolves back to its owning annotation.
    """

    def __init__(self, separator: str = PARAGRAPH_SEPARATOR):
        self.separator = separator
        self._annotations: Dict[str, Annotation] = {}
        self._groups: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._annotations.values()))

    def __contains__(self, annotation_id) -> bool:
        return annotation_id in self._annotations

    def _join_text(self, segments: List[Segment]) -> str:
        return self.separator.join(s.text for s in segments)

    def create(self, segments: List[Segment], categories,
               correction_text: str = '', explanation_text: str = '',
               excluded_from_export: bool = False,
               annotation_id: Optional[str] = None,
               group_id: Optional[str] = None) -> Annotation:
        """
        Register a new annotation for the given segments.

        Args:
            segments: Segments from the segment builder (at least one)
            categories: Ordered categories, primary first
            annotation_id: Reuse an existing id (reloaded markers only)
            group_id: Reuse an existing group id (reloaded markers only)

        Returns:
            The new Annotation
        """
        if not segments:
            raise ValueError("An annotation needs at least one segment")
        categories = require_categories(categories)
        annotation_id = annotation_id or new_annotation_id()
        if annotation_id in self._annotations:
            raise ValueError(f"Duplicate annotation id: {annotation_id}")
        self._check_markers_free(segments, None)

        if len(segments) > 1:
            group_id = group_id or new_group_id()
        else:
            group_id = None

        annotation = Annotation(
            id=annotation_id,
            categories=categories,
            correction_text=correction_text or '',
            explanation_text=explanation_text or '',
            excluded_from_export=bool(excluded_from_export),
            original_text=self._join_text(segments),
            group_id=group_id,
            segments=list(segments),
        )
        self._annotations[annotation_id] = annotation
        if group_id:
            self._groups[group_id] = annotation_id
        return annotation

    def get(self, annotation_id: str) -> Annotation:
        annotation = self._annotations.get(annotation_id)
        if annotation is None:
            raise NotFound(f"Annotation not found: {annotation_id}")
        return annotation

    def update(self, annotation_id: str, categories=None,
               correction_text: Optional[str] = None,
               explanation_text: Optional[str] = None,
               excluded_from_export: Optional[bool] = None,
               segments: Optional[List[Segment]] = None,
               original_text: Optional[str] = None) -> Annotation:
        """
        Merge a partial update into an annotation in place.

        Only fields that are not None change. Replacing segments
        recomputes the group id: a fresh group when there are now several
        segments and none existed, no group when only one is left.
        """
        annotation = self.get(annotation_id)

        # Validate everything before touching the annotation
        if categories is not None:
            categories = require_categories(categories)
        if segments is not None:
            if not segments:
                raise ValueError("An annotation needs at least one segment")
            self._check_markers_free(segments, annotation_id)

        if categories is not None:
            annotation.categories = categories
        if correction_text is not None:
            annotation.correction_text = correction_text
        if explanation_text is not None:
            annotation.explanation_text = explanation_text
        if excluded_from_export is not None:
            annotation.excluded_from_export = bool(excluded_from_export)
        if segments is not None:
            annotation.segments = list(segments)
            if len(segments) > 1 and not annotation.group_id:
                annotation.group_id = new_group_id()
                self._groups[annotation.group_id] = annotation_id
            elif len(segments) == 1 and annotation.group_id:
                self._groups.pop(annotation.group_id, None)
                annotation.group_id = None
            if original_text is None:
                original_text = self._join_text(segments)
        if original_text is not None:
            annotation.original_text = original_text
        return annotation

    def remove(self, annotation_id: str) -> List[Segment]:
        """Delete an annotation and return its segments for unwrapping."""
        annotation = self.get(annotation_id)
        del self._annotations[annotation_id]
        if annotation.group_id:
            self._groups.pop(annotation.group_id, None)
        return list(annotation.segments)

    def has_group(self, group_id: str) -> bool:
        return group_id in self._groups

    def find_by_group(self, group_id: str) -> Annotation:
        annotation_id = self._groups.get(group_id)
        if annotation_id is None:
            raise NotFound(f"Group not found: {group_id}")
        return self._annotations[annotation_id]

    def find_by_marker(self, marker) -> Annotation:
        """Resolve any rendered marker to the annotation that owns it."""
        annotation_id = marker.get(ATTR_ANNOTATION_ID)
        if annotation_id in self._annotations:
            annotation = self._annotations[annotation_id]
            if any(m is marker for m in annotation.markers):
                return annotation
        for annotation in self._annotations.values():
            if any(m is marker for m in annotation.markers):
                return annotation
        raise NotFound("Marker is not owned by any annotation")

    def _check_markers_free(self, segments: List[Segment], owner_id: Optional[str]) -> None:
        """A marker node may back only one live annotation."""
        new_markers = [s.marker for s in segments if s.marker is not None]
        if not new_markers:
            return
        for annotation in self._annotations.values():
            if annotation.id == owner_id:
                continue
            for marker in annotation.markers:
                if any(marker is m for m in new_markers):
                    raise ValueError(
                        f"Marker already belongs to annotation {annotation.id}")
