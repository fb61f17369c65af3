"""
Tests for writing extracted data back to listings.
"""

import pytest

from core.event_recorder import EventRecorder
from core.models import Attempt
from core.results import PartialSuccess, Success
from pipeline.context import RunContext
from pipeline.listing_updater import is_placeholder_company, update_final, update_preliminary


@pytest.fixture
def context(store, settings, make_listing):
    def _make(**fields):
        listing = make_listing("https://example.com/jobs/9", listing_id=9, **fields)
        attempt = store.create_attempt(Attempt(listing_id=listing.id, url=listing.url))
        return RunContext(
            listing=listing,
            attempt=attempt,
            store=store,
            settings=settings,
            event_recorder=EventRecorder(store, attempt),
        )
    return _make


class TestPlaceholderCompany:
    @pytest.mark.parametrize("name", [None, "", "Unknown", "Unknown Company", "  unknown company (imported) "])
    def test_placeholders(self, name):
        assert is_placeholder_company(name)

    def test_real_name(self):
        assert not is_placeholder_company("Acme")


class TestUpdatePreliminary:
    """Test update_preliminary()."""

    def test_fills_only_blank_fields(self, context):
        ctx = context(title="Existing title", location=None)

        changed = update_preliminary(ctx, {
            'title': "New title",
            'location': "Lisbon",
            'description': "",
        })

        assert changed == ['location']
        assert ctx.listing.title == "Existing title"
        assert ctx.listing.location == "Lisbon"
        assert ctx.listing.description is None
        assert ctx.listing.updated_at is not None

    def test_replaces_placeholder_company(self, context):
        ctx = context(company_name="Unknown Company")
        update_preliminary(ctx, {'company_name': "Acme"})
        assert ctx.listing.company_name == "Acme"

    def test_keeps_real_company(self, context):
        ctx = context(company_name="Acme")
        assert update_preliminary(ctx, {'company_name': "Acme Holdings"}) == []
        assert ctx.listing.company_name == "Acme"

    def test_extra_keys_go_to_custom_sections(self, context):
        ctx = context(custom_sections={'team': "Platform"})

        update_preliminary(ctx, {'team': "Other", 'employment_type': "FULL_TIME"})

        assert ctx.listing.custom_sections == {'team': "Platform", 'employment_type': "FULL_TIME"}

    def test_nothing_to_change_does_not_save(self, context):
        ctx = context(title="Engineer")
        assert update_preliminary(ctx, {'title': "Engineer"}) == []
        assert ctx.listing.updated_at is None


class TestUpdateFinal:
    """Test update_final()."""

    def test_values_replace_and_metadata_recorded(self, context):
        ctx = context(title="Old", description="Old description", custom_sections={'team': "Platform"})
        result = Success(
            data={
                'title': "Senior Engineer",
                'company_name': "Acme",
                'description': "New description",
                'location': None,
                'custom_sections': {'departments': ["Engineering"]},
            },
            confidence=0.9,
            method="api",
            provider="greenhouse",
        )

        changed = update_final(ctx, result)

        assert set(changed) == {'title', 'company_name', 'description', 'custom_sections'}
        assert ctx.listing.title == "Senior Engineer"
        assert ctx.listing.custom_sections == {'team': "Platform", 'departments': ["Engineering"]}
        scraped = ctx.listing.scraped_data
        assert scraped['status'] == "completed"
        assert scraped['extraction_method'] == "api"
        assert scraped['provider'] == "greenhouse"
        assert scraped['confidence_score'] == 0.9
        assert 'extracted_at' in scraped

    def test_blank_values_never_clear(self, context):
        ctx = context(location="Berlin")
        update_final(ctx, Success(data={'location': ""}, confidence=0.9, method="html"))
        assert ctx.listing.location == "Berlin"

    def test_partial_result_status(self, context):
        ctx = context()
        result = PartialSuccess(
            data={'title': "Engineer", 'company_name': "Acme"},
            confidence=0.3,
            method="ai",
            provider="openrouter",
            metadata={'model': "gpt-4o-mini", 'tokens_used': 900},
        )

        update_final(ctx, result)

        assert ctx.listing.scraped_data['status'] == "partial"
        assert ctx.listing.scraped_data['model'] == "gpt-4o-mini"
        assert ctx.listing.scraped_data['tokens_used'] == 900
