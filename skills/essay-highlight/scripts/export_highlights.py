#!/usr/bin/env python3
"""
ABOUTME: Exports highlights of an annotated essay to JSONL and re-applies them
ABOUTME: Reads essay HTML, registers its <mark> markers, writes export records
"""

import argparse
import os
import sys
from pathlib import Path

from highlight_engine import AnnotationEditor, container_from_html, container_to_html, load_jsonl
from highlight_engine.common import format_text_preview


def _env_flag(name: str) -> bool:
    return os.getenv(name, '').strip().lower() in ('1', 'true', 'yes')


DEFAULT_CONTAINER_CLASS = os.getenv('HIGHLIGHT_CONTAINER_CLASS', 'formatted-essay-content')


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Export essay highlights to JSONL, optionally applying a previous export"
    )
    parser.add_argument('essay', help='Essay HTML file (with or without highlights)')
    parser.add_argument('-o', '--output',
                        help='Export file path (default: <essay>_highlights.jsonl)')
    parser.add_argument('--apply', metavar='JSONL',
                        help='Highlights export to apply to the essay before exporting')
    parser.add_argument('--html-output',
                        help='Write the annotated essay HTML here '
                             '(default with --apply: <essay>_highlighted.html)')
    parser.add_argument('--container-class', default=DEFAULT_CONTAINER_CLASS,
                        help='Class of the essay element in a full HTML page '
                             '(default: $HIGHLIGHT_CONTAINER_CLASS or formatted-essay-content)')
    parser.add_argument('--exclude-new', action='store_true', default=_env_flag('HIGHLIGHT_EXCLUDE_NEW'),
                        help='Mark applied highlights as excluded from PDF export '
                             '(default: $HIGHLIGHT_EXCLUDE_NEW)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')

    args = parser.parse_args()

    try:
        essay_path = Path(args.essay)
        if not essay_path.exists():
            raise FileNotFoundError(f"Essay file not found: {args.essay}")

        container = container_from_html(
            essay_path.read_text(encoding='utf-8'), container_class=args.container_class)
        editor = AnnotationEditor(
            container, verbose=args.verbose, exclude_new_from_export=args.exclude_new)

        adopted = editor.adopt_existing_markers()
        print(f"Source file: {essay_path}")
        print(f"Existing highlights: {len(adopted)}")

        html_output = args.html_output
        if args.apply:
            meta, records = load_jsonl(args.apply)
            print(f"Applying {len(records)} highlight(s) from {args.apply}")
            if meta.get('source_file'):
                print(f"  Exported from: {meta['source_file']}")
            if args.verbose:
                print("-" * 50)

            results = editor.import_all(records)
            success_count = sum(1 for r in results if r.success and not r.warning)
            warning_count = sum(1 for r in results if r.success and r.warning)
            fail_count = sum(1 for r in results if not r.success)

            if warning_count > 0:
                print("\nWarning items (applied at a different position):")
                for r in results:
                    if r.success and r.warning:
                        preview = format_text_preview(r.record.get('originalText', ''))
                        print(f"  - [{r.record.get('id', '?')}] {r.error_message}: {preview}")

            if fail_count > 0:
                print("\nFailed items:")
                for r in results:
                    if not r.success:
                        preview = format_text_preview(r.record.get('originalText', ''))
                        print(f"  - [{r.record.get('id', '?')}] {r.error_message}: {preview}")

            print("-" * 50)
            print(f"Completed: {success_count} succeeded, {warning_count} warnings, {fail_count} failed")
            if html_output is None:
                html_output = str(essay_path.with_name(f"{essay_path.stem}_highlighted.html"))

        if html_output:
            Path(html_output).write_text(
                container_to_html(editor.container, args.container_class), encoding='utf-8')
            print(f"Annotated essay saved to: {html_output}")

        output = args.output or str(essay_path.with_name(f"{essay_path.stem}_highlights.jsonl"))
        editor.export_jsonl(output, source=essay_path.name)
        print(f"Exported {len(editor.store)} highlight(s) to: {output}")
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
