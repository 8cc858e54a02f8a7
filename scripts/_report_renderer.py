"""Multi-page PDF report for a spot elevation batch run."""

import os
from datetime import datetime

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
import numpy as np

from _report_styles import (
    PALETTE, APPROACH_COLORS, PAGE_WIDTH, PAGE_HEIGHT, MARGIN_TOP, MARGIN_LEFT,
    CONTENT_WIDTH, apply_style, get_rate_color
)

ROWS_PER_PAGE = 18
APPROACH_DEFAULT = 'placed'


def render_report(report, match_records, output_path, style_cfg=None):
    """Render the batch report to a PDF.

    Args:
        report: dict from BatchReport.to_dict()
        match_records: list of MatchOutcome dicts
        output_path: str - Output PDF file path
        style_cfg: dict - optional [report.style] settings

    Returns:
        str - Path to generated PDF
    """
    style = apply_style(style_cfg)
    dirpath = os.path.dirname(output_path)
    if dirpath:
        os.makedirs(dirpath, exist_ok=True)

    pages = [('Placement Summary', render_summary, report)]
    messages = report.get('messages', [])
    for start in range(0, len(messages), ROWS_PER_PAGE):
        pages.append(('Failures & Diagnostics', render_messages,
                      (start, messages[start:start + ROWS_PER_PAGE])))
    for start in range(0, len(match_records), ROWS_PER_PAGE):
        pages.append(('Face Match Log', render_match_log,
                      match_records[start:start + ROWS_PER_PAGE]))

    with PdfPages(output_path) as pdf:
        for page_num, (title, renderer, data) in enumerate(pages, start=1):
            fig = _new_page()
            _render_section_header(fig, title, style)
            renderer(fig, data, style)
            _render_footer(fig, page_num, len(pages))
            pdf.savefig(fig)
            plt.close(fig)

    return output_path


# === Helper functions ===

def _new_page():
    """Create a new A4 landscape figure."""
    fig = plt.figure(figsize=(PAGE_WIDTH, PAGE_HEIGHT))
    fig.patch.set_facecolor('white')
    return fig


def _render_section_header(fig, title, style):
    """Render section header bar at top of page."""
    ax = fig.add_axes([MARGIN_LEFT/PAGE_WIDTH, (PAGE_HEIGHT - MARGIN_TOP)/PAGE_HEIGHT,
                       CONTENT_WIDTH/PAGE_WIDTH, 0.04])
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    ax.fill_between([0, 1], 0, 1, color=style['header_color'], alpha=0.9)
    ax.text(0.02, 0.5, title, fontsize=12, fontweight='bold', color='white',
            va='center', ha='left')
    ax.axis('off')


def _render_footer(fig, page_num, total_pages):
    fig.text(0.5, 0.02, f'Page {page_num} / {total_pages}',
             ha='center', va='bottom', fontsize=8, color='#999999')
    fig.text(0.95, 0.02, datetime.now().strftime('%Y-%m-%d %H:%M'),
             ha='right', va='bottom', fontsize=7, color='#bbbbbb')


def _style_table(table, style):
    """Apply professional styling to a matplotlib table."""
    table.auto_set_font_size(False)
    table.set_fontsize(8)

    for key, cell in table.get_celld().items():
        row, col = key
        cell.set_edgecolor(PALETTE['grid'])
        cell.set_linewidth(0.5)

        if row == 0:  # Header
            cell.set_facecolor(style['header_color'])
            cell.set_text_props(color='white', fontweight='bold')
            cell.set_height(0.06)
        else:
            if row % 2 == 0:
                cell.set_facecolor(PALETTE['row_stripe'])
            else:
                cell.set_facecolor('white')
            cell.set_height(0.04)


# === Page renderers ===

def render_summary(fig, report, style):
    total = report.get('total_success', 0)
    attempted = report.get('attempted', 0)
    fig.text(0.5, 0.80, f"{total} / {attempted} spot elevations placed",
             fontsize=16, fontweight='bold', ha='center',
             color=get_rate_color(total, attempted))
    fig.text(0.5, 0.76, f"Mode: {report.get('mode', 'N/A')}  |  "
             f"Issues: {len(report.get('messages', []))}",
             fontsize=10, ha='center', color=PALETTE['text_secondary'])

    per_view = report.get('per_view', [])
    ax = fig.add_axes([0.12, 0.12, 0.76, 0.56])
    if not per_view:
        ax.axis('off')
        ax.text(0.5, 0.5, 'No views processed', ha='center', va='center',
                fontsize=12, color='#999999')
        return

    names = [v['view_name'] for v in per_view]
    segments = approach_counts(per_view, report.get('attempts', []))
    y = np.arange(len(names))
    left = np.zeros(len(names))
    for key, counts in segments.items():
        if not counts.any():
            continue
        ax.barh(y, counts, left=left, color=APPROACH_COLORS[key],
                label=key.replace('_', ' '))
        left += counts
    ax.set_yticks(y)
    ax.set_yticklabels(names)
    ax.invert_yaxis()
    ax.set_xlabel('Elements attempted')
    for yi, v in zip(y, per_view):
        ax.text(left[yi], yi, f" {v['success']}", va='center', fontsize=8)
    if left.any():
        ax.legend(loc='lower right', fontsize=8, frameon=False)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)


def approach_counts(per_view, attempts):
    """Per-view counts by winning approach, plus failures.

    Falls back to the plain success count when attempts are not available.
    """
    index = {v['view_id']: i for i, v in enumerate(per_view)}
    segments = {key: np.zeros(len(per_view)) for key in APPROACH_COLORS}
    if not attempts:
        segments[APPROACH_DEFAULT] = np.array(
            [float(v['success']) for v in per_view])
        return segments
    for a in attempts:
        i = index.get(a.get('view_id'))
        if i is None:
            continue
        key = a.get('approach') if a.get('success') else 'failed'
        if key not in segments:
            key = APPROACH_DEFAULT
        segments[key][i] += 1
    return segments


def message_rows(messages, start=0):
    """Table rows numbered from the message's position in the full list."""
    return [[str(start + i + 1), m[:140]] for i, m in enumerate(messages)]


def render_messages(fig, page, style):
    start, messages = page
    ax = fig.add_axes([MARGIN_LEFT/PAGE_WIDTH, 0.08, CONTENT_WIDTH/PAGE_WIDTH, 0.75])
    ax.axis('off')
    rows = message_rows(messages, start)
    table = ax.table(cellText=rows, colLabels=['#', 'Message'],
                     loc='upper center', cellLoc='left', colWidths=[0.05, 0.95])
    _style_table(table, style)


def render_match_log(fig, records, style):
    ax = fig.add_axes([MARGIN_LEFT/PAGE_WIDTH, 0.08, CONTENT_WIDTH/PAGE_WIDTH, 0.75])
    ax.axis('off')
    rows = []
    for rec in records:
        score = rec.get('best_score')
        rows.append([
            str(rec.get('element_id')),
            str(rec.get('view_id')),
            f"{score:.3f}" if score is not None else '-',
            'yes' if rec.get('face_found') else 'no',
            rec.get('note', ''),
            str(len(rec.get('evaluations', []))),
        ])
    table = ax.table(cellText=rows,
                     colLabels=['Element', 'View', 'Best score', 'Found',
                                'Note', 'Candidates'],
                     loc='upper center', cellLoc='left',
                     colWidths=[0.18, 0.18, 0.12, 0.08, 0.32, 0.12])
    _style_table(table, style)
