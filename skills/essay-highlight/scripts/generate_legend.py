#!/usr/bin/env python3
"""
ABOUTME: Generates the highlights legend (HTML and Excel) for an annotated essay
ABOUTME: Lists every highlight with its categories, correction and explanation
"""

import argparse
import json
import os
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path

try:
    from jinja2 import Environment
except ImportError:
    print("Error: jinja2 not installed. Run: pip install jinja2", file=sys.stderr)
    sys.exit(1)

# Optional Excel support
try:
    from openpyxl import Workbook
    from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
    from openpyxl.utils import get_column_letter
    EXCEL_AVAILABLE = True
except ImportError:
    EXCEL_AVAILABLE = False

from highlight_engine import AnnotationEditor, container_from_html, container_to_html
from highlight_engine.styles import CATEGORIES, category_label, category_swatch
from xml_utils import sanitize_xml_string

DEFAULT_TEMPLATE = Path(__file__).resolve().parent.parent / 'assets' / 'legend_template.html'
DEFAULT_CONTAINER_CLASS = os.getenv('HIGHLIGHT_CONTAINER_CLASS', 'formatted-essay-content')


def generate_legend_data(editor: AnnotationEditor, include_excluded: bool = True) -> dict:
    """
    Build legend data from an editor with registered annotations.

    Args:
        editor: Editor holding the annotated essay
        include_excluded: Keep highlights excluded from export (flagged)

    Returns:
        Dictionary with entries, category counts and the essay HTML
    """
    entries = []
    category_counts = Counter()
    for entry in editor.legend_entries():
        if entry['isExcluded'] and not include_excluded:
            continue
        entry = dict(entry)
        entry['labels'] = [category_label(c) for c in entry['categories']]
        entry['swatch'] = category_swatch(entry['categories'][0])
        entries.append(entry)
        for category in entry['categories']:
            category_counts[category] += 1

    # Renumber after filtering so the legend stays consecutive
    for number, entry in enumerate(entries, 1):
        entry['number'] = number

    categories = [
        {'id': key, 'name': value['name'], 'swatch': category_swatch(key),
         'count': category_counts.get(key, 0)}
        for key, value in CATEGORIES.items()
    ]
    return {
        'generated_at': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        'entry_count': len(entries),
        'entries': entries,
        'categories': categories,
        'category_counts': dict(category_counts),
        'essay_html': container_to_html(editor.container),
    }


def render_legend(data: dict, template_path: str, trusted_html: bool = False) -> str:
    """
    Render the HTML legend from data using a Jinja2 template.

    Args:
        data: Legend data dictionary
        template_path: Path to Jinja2 template file
        trusted_html: If True, disable HTML escaping (use only for trusted inputs)

    Returns:
        Rendered HTML string
    """
    if not template_path:
        raise ValueError("Template path is required.")
    template_file = Path(template_path)
    if not template_file.exists():
        raise FileNotFoundError(f"Template file not found: {template_path}")
    template_str = template_file.read_text(encoding='utf-8')

    env = Environment(autoescape=not trusted_html)
    template = env.from_string(template_str)
    return template.render(**data)


def generate_excel_legend(data: dict, output_path: str) -> None:
    """
    Write the legend entries to an Excel workbook.

    Raises:
        ImportError: If openpyxl is not installed
    """
    if not EXCEL_AVAILABLE:
        raise ImportError("openpyxl not installed. Run: pip install openpyxl")

    wb = Workbook()
    ws = wb.active
    ws.title = "Highlights"

    headers = ["#", "Highlighted Text", "Categories", "Correction", "Explanation", "Excluded"]

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        cell.border = thin_border

    content_alignment = Alignment(vertical="top", wrap_text=True)

    for row_idx, entry in enumerate(data['entries'], 2):
        row_data = [
            entry['number'],
            entry['text'],
            ', '.join(entry.get('labels') or entry['categories']),
            entry['correction'],
            entry['explanation'],
            'Yes' if entry['isExcluded'] else '',
        ]
        for col_idx, value in enumerate(row_data, 1):
            safe_value = sanitize_xml_string(value) if isinstance(value, str) else value
            cell = ws.cell(row=row_idx, column=col_idx, value=safe_value)
            cell.alignment = content_alignment
            cell.border = thin_border

        # Tint the text cell with the primary category color
        swatch = (entry.get('swatch') or '').lstrip('#')
        if len(swatch) == 6:
            ws.cell(row=row_idx, column=2).fill = PatternFill(
                start_color=swatch, end_color=swatch, fill_type="solid")

    column_widths = [6, 40, 25, 30, 50, 10]
    for col_idx, width in enumerate(column_widths, 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    ws.freeze_panes = "A2"
    wb.save(output_path)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate the highlights legend for an annotated essay"
    )
    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Annotated essay HTML file"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default="highlights_legend.html",
        help="Output HTML file path (default: highlights_legend.html)"
    )
    parser.add_argument(
        "--template", "-t",
        type=str,
        default=str(DEFAULT_TEMPLATE),
        help="Path to Jinja2 HTML template (default: bundled legend template)"
    )
    parser.add_argument(
        "--container-class",
        type=str,
        default=DEFAULT_CONTAINER_CLASS,
        help="Class of the essay element in a full HTML page "
             "(default: $HIGHLIGHT_CONTAINER_CLASS or formatted-essay-content)"
    )
    parser.add_argument(
        "--skip-excluded",
        action="store_true",
        help="Leave out highlights excluded from PDF export"
    )
    parser.add_argument(
        "--trusted-html",
        action="store_true",
        help="Render legend without HTML escaping (only for trusted inputs)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Also output legend data as JSON"
    )
    parser.add_argument(
        "--excel",
        action="store_true",
        help="Also output legend as Excel file (.xlsx)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print detailed highlight information"
    )

    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {args.input}", file=sys.stderr)
        return 1
    if not Path(args.template).exists():
        print(f"Error: Template file not found: {args.template}", file=sys.stderr)
        return 1

    print(f"Loading essay: {args.input}")
    container = container_from_html(
        input_path.read_text(encoding='utf-8'), container_class=args.container_class)
    editor = AnnotationEditor(container, verbose=args.verbose)
    adopted = editor.adopt_existing_markers()
    print(f"Found {len(adopted)} highlight(s)")

    data = generate_legend_data(editor, include_excluded=not args.skip_excluded)
    data['source_file'] = input_path.name

    html = render_legend(data, args.template, trusted_html=args.trusted_html)
    output_path = Path(args.output)
    output_path.write_text(html, encoding='utf-8')
    print(f"HTML legend saved to: {output_path}")

    if args.json:
        json_path = output_path.with_suffix('.json')
        json_data = {k: v for k, v in data.items() if k != 'essay_html'}
        json_path.write_text(json.dumps(json_data, indent=2, ensure_ascii=False), encoding='utf-8')
        print(f"JSON data saved to: {json_path}")

    if args.excel:
        if not EXCEL_AVAILABLE:
            print("Warning: openpyxl not installed. Skipping Excel output.", file=sys.stderr)
            print("Install with: pip install openpyxl", file=sys.stderr)
        else:
            excel_path = output_path.with_suffix('.xlsx')
            generate_excel_legend(data, str(excel_path))
            print(f"Excel legend saved to: {excel_path}")

    print("\n--- Summary ---")
    print(f"Highlights listed: {data['entry_count']}")
    print(f"By category: {data['category_counts']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
