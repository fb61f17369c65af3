"""
Writes extracted data back to the listing.

update_preliminary() is used by intermediate steps and only fills blank
fields. update_final() is used when a run ends on a result: extracted values
win, custom sections are merged and scraped_data records how the data was
obtained.
"""

import logging
from typing import Any, Dict, List

from core.models import Listing, utcnow
from core.results import ExtractionResult, is_present

logger = logging.getLogger(__name__)

LISTING_FIELDS = (
    'title', 'company_name', 'description', 'location', 'remote_type',
    'salary_min', 'salary_max', 'salary_currency', 'requirements',
    'responsibilities', 'benefits', 'about_company', 'company_culture',
)

PLACEHOLDER_COMPANY_NAMES = ("unknown company", "unknown")


def is_placeholder_company(name) -> bool:
    if not is_present(name):
        return True
    lowered = name.strip().lower()
    return any(placeholder in lowered for placeholder in PLACEHOLDER_COMPANY_NAMES)


def _split(data: Dict[str, Any]):
    """Listing columns vs. everything else (kept under custom_sections)"""
    fields = {k: v for k, v in data.items() if k in LISTING_FIELDS and is_present(v)}
    extra = dict(data.get('custom_sections') or {})
    for key, value in data.items():
        if key not in LISTING_FIELDS and key != 'custom_sections' and is_present(value):
            extra[key] = value
    return fields, extra


def update_preliminary(context, data: Dict[str, Any]) -> List[str]:
    """
    Fill blank listing fields from an intermediate result.

    Returns:
        Names of the fields that changed
    """
    listing: Listing = context.listing
    fields, extra = _split(data)
    changed = []

    for name, value in fields.items():
        current = getattr(listing, name)
        if name == 'company_name':
            if is_placeholder_company(current):
                listing.company_name = value
                changed.append(name)
        elif not is_present(current):
            setattr(listing, name, value)
            changed.append(name)

    new_sections = {k: v for k, v in extra.items() if k not in (listing.custom_sections or {})}
    if new_sections:
        listing.custom_sections = {**(listing.custom_sections or {}), **new_sections}
        changed.append('custom_sections')

    if changed:
        context.store.save_listing(listing)
        logger.info(f"[listing_updater] Listing {listing.id} preliminary update: {changed}")
    return changed


def build_scraped_metadata(context, result: ExtractionResult) -> Dict[str, Any]:
    metadata = result.metadata or {}
    return {
        'status': "completed" if result.accepted else "partial",
        'extraction_method': result.method or "ai",
        'provider': result.provider,
        'model': metadata.get('model'),
        'confidence_score': result.confidence,
        'tokens_used': metadata.get('tokens_used'),
        'extracted_at': utcnow().isoformat(),
        'duration_seconds': context.elapsed_seconds(),
    }


def update_final(context, result: ExtractionResult) -> List[str]:
    """
    Merge a run's final result into the listing.

    Extracted values replace existing ones; blank values never clear a field.
    A placeholder company name is always replaced.
    """
    listing: Listing = context.listing
    fields, extra = _split(result.data)
    changed = []

    for name, value in fields.items():
        if getattr(listing, name) != value:
            setattr(listing, name, value)
            changed.append(name)

    if extra:
        listing.custom_sections = {**(listing.custom_sections or {}), **extra}
        changed.append('custom_sections')

    scraped = dict(listing.scraped_data or {})
    scraped.update(build_scraped_metadata(context, result))
    listing.scraped_data = scraped
    context.store.save_listing(listing)

    logger.info(
        f"[listing_updater] Listing {listing.id} final update via {result.method}/{result.provider}: {changed}"
    )
    return changed
