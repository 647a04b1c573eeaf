"""Conversion between flat character positions and run locations."""

from typing import Dict, List, Optional, Tuple

from .common import BLOCK_TAG, OutOfRange, TreeLocation
from .container import flatten, iter_leaves


class OffsetMappingMixin:
    def _collect_runs_info(self) -> Tuple[List[Dict], str]:
        """
        Collect run info for every text run of the container.

        Returns:
            Tuple of (runs_info, combined_text)
            runs_info: [{'text': str, 'start': int, 'end': int,
                         'elem': run, 'block_elem': block or None}, ...]
            combined_text: flatten(container)
        """
        runs_info = []
        pos = 0
        for run in iter_leaves(self.container):
            text = run.text or ''
            runs_info.append({
                'text': text,
                'start': pos,
                'end': pos + len(text),
                'elem': run,
                'block_elem': self._find_block(run),
            })
            pos += len(text)
        combined_text = ''.join(r['text'] for r in runs_info)
        return runs_info, combined_text

    def _find_block(self, elem):
        """Find the block ancestor of elem, None for loose runs."""
        parent = elem.getparent()
        while parent is not None and parent is not self.container:
            if parent.tag == BLOCK_TAG:
                return parent
            parent = parent.getparent()
        return None

    def _is_in_container(self, elem) -> bool:
        """Check that elem is attached somewhere under the container."""
        parent = elem.getparent() if elem is not None else None
        while parent is not None:
            if parent is self.container:
                return True
            parent = parent.getparent()
        return False

    def flat_text(self) -> str:
        return flatten(self.container)

    def to_character_position(self, location: TreeLocation) -> int:
        """
        Convert a run location into a flat character position.

        Sums the lengths of all runs preceding location.leaf in document
        order, plus location.offset.

        Raises:
            OutOfRange: leaf is not part of the container, or offset is
                outside the run text
        """
        pos = 0
        for run in iter_leaves(self.container):
            text = run.text or ''
            if run is location.leaf:
                if not 0 <= location.offset <= len(text):
                    raise OutOfRange(
                        f"Offset {location.offset} outside run of length {len(text)}")
                return pos + location.offset
            pos += len(text)
        raise OutOfRange("Run is not part of the container")

    def to_tree_location(self, pos: int) -> TreeLocation:
        """
        Convert a flat character position into a run location.

        Walks runs until the running total exceeds pos, so a position on a
        run boundary resolves to the start of the following run. The total
        length resolves to the end of the last run.

        Raises:
            OutOfRange: pos is negative, beyond the text, or the container
                holds no text
        """
        if pos < 0:
            raise OutOfRange(f"Position {pos} is negative")
        total = 0
        last_run = None
        for run in iter_leaves(self.container):
            length = len(run.text or '')
            if length == 0:
                continue
            if total + length > pos:
                return TreeLocation(run, pos - total)
            total += length
            last_run = run
        if pos == total and last_run is not None:
            return TreeLocation(last_run, len(last_run.text or ''))
        raise OutOfRange(f"Position {pos} outside text of length {total}")

    def _resolve_location(self, value) -> TreeLocation:
        """Accept a TreeLocation or a character position."""
        if isinstance(value, TreeLocation):
            # Validates leaf membership and offset
            self.to_character_position(value)
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Expected TreeLocation or int, got {type(value).__name__}")
        return self.to_tree_location(value)

    def _resolve_position(self, value) -> int:
        """Accept a TreeLocation or a character position, return the position."""
        if isinstance(value, TreeLocation):
            return self.to_character_position(value)
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Expected TreeLocation or int, got {type(value).__name__}")
        total = len(self.flat_text())
        if not 0 <= value <= total:
            raise OutOfRange(f"Position {value} outside text of length {total}")
        return value

    def _marker_span(self, marker) -> Optional[Tuple[int, int]]:
        """Flat (start, end) covered by a marker, None if it holds no runs."""
        runs = list(iter_leaves(marker))
        if not runs:
            return None
        start = self.to_character_position(TreeLocation(runs[0], 0))
        length = sum(len(r.text or '') for r in runs)
        return start, start + length
