"""
Diagnostics recorded alongside extraction: JS-heavy page detection and
field-level selector logs.
"""
import logging
from typing import Any, Dict, Optional

from boards.extractors.base import SelectorOutcome
from core.models import TRACKED_FIELDS
from core.results import is_present

logger = logging.getLogger(__name__)

JS_HEAVY_TEXT_THRESHOLD = 1500
VERY_LOW_TEXT = 200

SPA_MARKERS = (
    '__NEXT_DATA__',
    'data-reactroot',
    'id="app"',
    'id="root"',
)


def js_heavy_diagnosis(html_content: Optional[str], cleaned_html: Optional[str]) -> Dict[str, Any]:
    """
    Whether a page looks rendered client-side, with the signals used.

    Pages with enough extracted text are never JS-heavy; below the threshold a
    SPA marker or almost no text makes them so.
    """
    text_length = len(cleaned_html or '')
    html = html_content or ''
    found_markers = [m for m in SPA_MARKERS if m in html]

    if text_length >= JS_HEAVY_TEXT_THRESHOLD:
        js_heavy, reason = False, 'text_above_threshold'
    elif found_markers:
        js_heavy, reason = True, 'spa_marker_detected'
    elif text_length < VERY_LOW_TEXT:
        js_heavy, reason = True, 'very_low_text'
    else:
        js_heavy, reason = False, 'below_threshold'

    return {
        'js_heavy': js_heavy,
        'reason': reason,
        'text_length': text_length,
        'threshold': JS_HEAVY_TEXT_THRESHOLD,
        'html_size': len(html.encode('utf-8')),
        'spa_markers_found': found_markers,
    }


def selector_field_results(outcome: SelectorOutcome) -> Dict[str, Dict[str, Any]]:
    """Field results over the tracked fields, including ones the extractor never tries"""
    results = {}
    for name in TRACKED_FIELDS:
        detail = outcome.field_results.get(name)
        if detail is None:
            value = outcome.data.get(name)
            detail = {
                'success': is_present(value),
                'value': value,
                'selector': None,
                'selectors_tried': outcome.selectors_tried.get(name, []),
            }
        results[name] = detail
    return results
