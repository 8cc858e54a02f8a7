"""Colors, page geometry and rcParams for the placement PDF report."""

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib import font_manager

from _spot_strategy import APPROACH_EXACT, APPROACH_TRANSFORM, APPROACH_ANY_FACE

PALETTE = {
    'header_bg': '#2c3e50',
    'accent': '#3498db',
    'text_primary': '#2c3e50',
    'text_secondary': '#7f8c8d',
    'success': '#27ae60',
    'warning': '#f39c12',
    'error': '#e74c3c',
    'page_bg': '#ffffff',
    'row_stripe': '#f8f9fa',
    'grid': '#dee2e6',
}

# Bar segments in the per-view chart, in chain order
APPROACH_COLORS = {
    APPROACH_EXACT: '#2c3e50',
    APPROACH_TRANSFORM: '#3498db',
    APPROACH_ANY_FACE: '#95a5a6',
    'placed': '#1abc9c',          # success without per-approach detail
    'failed': '#e74c3c',
}

# A4 landscape, inches
PAGE_WIDTH = 11.69
PAGE_HEIGHT = 8.27
MARGIN_TOP = 0.8
MARGIN_LEFT = 0.6
MARGIN_RIGHT = 0.6
CONTENT_WIDTH = PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT


def apply_style(style_cfg=None):
    """Set rcParams from [report.style] (font, header_color, accent_color)."""
    cfg = style_cfg or {}
    installed = {f.name for f in font_manager.fontManager.ttflist}
    font = cfg.get('font')
    if font not in installed:
        font = 'sans-serif'

    plt.rcParams.update({
        'font.family': font,
        'font.size': 9,
        'axes.labelsize': 9,
        'figure.facecolor': PALETTE['page_bg'],
        'axes.facecolor': PALETTE['page_bg'],
        'text.color': PALETTE['text_primary'],
    })

    return {
        'header_color': cfg.get('header_color', PALETTE['header_bg']),
        'accent_color': cfg.get('accent_color', PALETTE['accent']),
        'font_family': font,
    }


def get_rate_color(success, attempted):
    """Green >= 80% placed, amber >= 50%, red below; grey when nothing ran."""
    if attempted <= 0:
        return PALETTE['text_secondary']
    rate = success / attempted
    if rate >= 0.8:
        return PALETTE['success']
    elif rate >= 0.5:
        return PALETTE['warning']
    return PALETTE['error']
