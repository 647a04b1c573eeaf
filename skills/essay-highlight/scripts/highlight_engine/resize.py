"""
Resize session for a single annotation.

A session captures the container's flat text when it opens and tracks a
start/end pair in character units against that fixed snapshot. Pointer or
keyboard input is translated to characters by the caller. Nothing in the
container changes until commit().
"""

from .common import (
    Annotation,
    EmptySelection,
    NotFound,
    OutOfRange,
    StaleResize,
    format_text_preview,
)


class ResizeSession:
    def __init__(self, editor, annotation: Annotation):
        self.editor = editor
        self.container = editor.container
        self.annotation_id = annotation.id
        self.full_text = editor.flat_text()

        span = editor.annotation_span(annotation)
        if span is None:
            raise StaleResize(f"Annotation {annotation.id} has no rendered markers")
        self.original_start, self.original_end = span
        self.current_start = self.original_start
        self.current_end = self.original_end
        self.active = True

    # ------------------------------------------------------------
    # Context manager: leaving without commit() cancels
    # ------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.active:
            self.cancel()
        return False

    def _ensure_open(self) -> None:
        if not self.active:
            raise StaleResize("Resize session is closed")

    def _close(self) -> None:
        self.active = False
        self.editor._release_session(self)

    # ------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------

    def _clamp(self, pos: int) -> int:
        return max(0, min(int(pos), len(self.full_text)))

    def move_start(self, new_pos: int) -> bool:
        """
        Move the start; ignored unless it stays before the current end.

        Positions outside the text are clamped to it first, so move_start(-5)
        moves the start to 0.
        """
        self._ensure_open()
        new_pos = self._clamp(new_pos)
        if new_pos >= self.current_end:
            return False
        self.current_start = new_pos
        return True

    def move_end(self, new_pos: int) -> bool:
        """
        Move the end; ignored unless it stays after the current start.

        Positions past the text are clamped to its length first.
        """
        self._ensure_open()
        new_pos = self._clamp(new_pos)
        if new_pos <= self.current_start:
            return False
        self.current_end = new_pos
        return True

    @property
    def is_changed(self) -> bool:
        return (self.current_start, self.current_end) != (self.original_start, self.original_end)

    def preview_text(self) -> str:
        return self.full_text[self.current_start:self.current_end]

    # ------------------------------------------------------------
    # Commit / cancel
    # ------------------------------------------------------------

    def commit(self) -> Annotation:
        """
        Apply the new range to the annotation.

        Steps: unwrap every marker of the annotation, map the new range
        back to run locations on the unwrapped container, rebuild segments
        and render them under the same annotation id.

        Returns:
            The annotation (unchanged when the range did not move)

        Raises:
            StaleResize: The container or annotation changed since begin;
                the session is closed and must be reopened
            EmptySelection: The new range holds only whitespace; the
                session stays open
        """
        self._ensure_open()
        editor = self.editor

        try:
            annotation = editor.store.get(self.annotation_id)
        except NotFound as e:
            self._close()
            raise StaleResize(f"Annotation {self.annotation_id} no longer exists") from e

        if not self.is_changed:
            self._close()
            return annotation

        if editor.flat_text() != self.full_text:
            self._close()
            raise StaleResize("Container text changed during resize")
        markers = annotation.markers
        if not markers or not all(editor._is_in_container(m) for m in markers):
            self._close()
            raise StaleResize("Annotation markers are no longer in the container")
        if not self.preview_text().strip():
            raise EmptySelection("Resized range contains no text to highlight")

        editor.unwrap_all(markers)
        try:
            start = editor.to_tree_location(self.current_start)
            end = editor.to_tree_location(self.current_end)
            segments = editor.build_segments(start, end)
        except (OutOfRange, EmptySelection) as e:
            # Put the annotation back where it was before failing
            editor._render_annotation(
                annotation, editor.build_segments(self.original_start, self.original_end))
            self._close()
            raise StaleResize(f"Cannot resolve resized range: {e}") from e

        editor._render_annotation(annotation, segments)
        if editor.verbose:
            print(f"  [Resize] {annotation.id}: [{self.original_start}, {self.original_end}) -> "
                  f"[{self.current_start}, {self.current_end}) "
                  f"'{format_text_preview(annotation.original_text)}'")
        self._close()
        return annotation

    def cancel(self) -> None:
        """Discard the session; the container is not touched."""
        if self.active:
            self._close()

