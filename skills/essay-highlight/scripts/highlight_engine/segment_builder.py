"""Decompose a selection into block-confined segments."""

from typing import Dict, List

from .common import EmptySelection, Segment, TreeLocation


class SegmentBuilderMixin:
    def _find_affected_runs(self, runs_info: List[Dict],
                            match_start: int, match_end: int) -> List[Dict]:
        """Find runs that overlap with the target text range"""
        affected = []
        for info in runs_info:
            if info['end'] > match_start and info['start'] < match_end:
                affected.append(info)
        return affected

    def _group_runs_by_block(self, runs: List[Dict]) -> List[Dict]:
        """
        Group consecutive runs by their block in document order.

        Loose runs (no block ancestor) form a group of their own.

        Returns:
            List of dicts: [{'block_elem': block, 'runs': [...]}]
        """
        groups = []
        for run in runs:
            key = run.get('block_elem')
            if key is None:
                key = run['elem']
            if groups and groups[-1]['block_elem'] is key:
                groups[-1]['runs'].append(run)
            else:
                groups.append({'block_elem': key, 'runs': [run]})
        return groups

    def build_segments(self, start, end) -> List[Segment]:
        """
        Split a selection into one segment per block it touches.

        Strategy:
        1. Resolve both ends to flat positions and order them
        2. Clamp every overlapping run to the selection
        3. Drop clamped runs whose text is empty or whitespace only
        4. Group the remaining runs by block; each group is one segment
           from the first run's clamped start to the last run's clamped end

        Args:
            start: Selection start (TreeLocation or character position)
            end: Selection end (TreeLocation or character position)

        Returns:
            Ordered list of segments (at least one)

        Raises:
            OutOfRange: An end is outside the container
            EmptySelection: Nothing but whitespace is selected
        """
        match_start = self._resolve_position(start)
        match_end = self._resolve_position(end)
        if match_end < match_start:
            match_start, match_end = match_end, match_start

        runs_info, combined_text = self._collect_runs_info()
        affected = self._find_affected_runs(runs_info, match_start, match_end)

        clamped = []
        for info in affected:
            local_start = max(match_start, info['start']) - info['start']
            local_end = min(match_end, info['end']) - info['start']
            piece = info['text'][local_start:local_end]
            if not piece.strip():
                continue
            clamped.append(dict(info, local_start=local_start, local_end=local_end))

        if not clamped:
            raise EmptySelection("Selection contains no text to highlight")

        segments = []
        for group in self._group_runs_by_block(clamped):
            first_run = group['runs'][0]
            last_run = group['runs'][-1]
            seg_start = first_run['start'] + first_run['local_start']
            seg_end = last_run['start'] + last_run['local_end']
            segments.append(Segment(
                start=TreeLocation(first_run['elem'], first_run['local_start']),
                end=TreeLocation(last_run['elem'], last_run['local_end']),
                block=group['block_elem'],
                text=combined_text[seg_start:seg_end],
            ))

        if self.verbose and len(segments) > 1:
            print(f"  [Cross-block] Selection split into {len(segments)} segments")
        return segments
