"""
Tests for board selector extractors and the extractor registry.
"""

import pytest

from boards.extractors import ExtractorRegistry, SelectorExtractor, get_extractor_registry, weighted_confidence
from boards.extractors.ashby import AshbyExtractor
from boards.extractors.base import MISSING_REQUIRED_CAP, section_text
from boards.extractors.greenhouse import GreenhouseExtractor
from boards.types import BoardType
from core.results import Failure, PartialSuccess, Success
from pipeline.observability import selector_field_results

GREENHOUSE_HTML = """
<html><head><title>Job Application for Senior Backend Engineer at Acme Corp</title></head>
<body>
<div id="app_body">
  <h1 class="app-title">Senior Backend Engineer</h1>
  <span class="company-name">at Acme Corp</span>
  <div class="location">Remote - US</div>
  <div id="content">
    <p>Acme builds payment infrastructure used by thousands of businesses worldwide.</p>
    <h3>Responsibilities</h3>
    <ul><li>Design and ship APIs</li><li>Own services in production</li></ul>
    <h3>Requirements</h3>
    <ul><li>5+ years of Python</li><li>Experience with PostgreSQL</li></ul>
    <h3>Benefits</h3>
    <ul><li>Health insurance</li><li>Remote stipend</li></ul>
  </div>
</div>
</body></html>
"""

GREENHOUSE_NO_COMPANY_HTML = """
<html><body>
<h1 class="app-title">Data Analyst</h1>
<div class="location">Berlin</div>
<div id="content">
  <p>Analyse marketplace data and build dashboards for the operations team.</p>
  <h3>Responsibilities</h3><ul><li>Build dashboards</li></ul>
  <h3>Requirements</h3><ul><li>SQL</li></ul>
  <h3>Benefits</h3><ul><li>Learning budget</li></ul>
</div>
<section id="about-us"><p>We are a marketplace for used electronics.</p></section>
<section class="our-values"><p>Ownership, candour and curiosity.</p></section>
</body></html>
"""

ASHBY_HTML = """
<html><head><title>Platform Engineer @ Nimbus Labs</title></head>
<body>
<div class="ashby-job-posting-heading">Platform Engineer</div>
<div class="ashby-job-posting-right-pane">
  <p>Nimbus Labs is hiring a platform engineer to scale our Kubernetes infrastructure across regions.</p>
</div>
</body></html>
"""


class TestWeightedConfidence:
    def test_all_fields(self):
        data = {name: "x" for name in (
            'title', 'company_name', 'description', 'location', 'requirements',
            'responsibilities', 'benefits', 'about_company', 'company_culture',
        )}
        assert weighted_confidence(data) == 1.0

    def test_missing_required_is_capped(self):
        data = {name: "x" for name in (
            'title', 'description', 'location', 'requirements', 'responsibilities',
            'benefits', 'about_company', 'company_culture',
        )}
        assert weighted_confidence(data) == MISSING_REQUIRED_CAP

    def test_blank_values_do_not_count(self):
        assert weighted_confidence({'title': "  ", 'description': ""}) == 0.0


class TestSectionText:
    def test_stops_at_next_heading(self):
        from bs4 import BeautifulSoup
        soup = BeautifulSoup(GREENHOUSE_HTML, 'lxml')
        text = section_text(soup, ('requirement',))
        assert "5+ years of Python" in text
        assert "Health insurance" not in text

    def test_bold_label_sections(self):
        from bs4 import BeautifulSoup
        html = """
        <div>
          <p><strong>What you'll do</strong></p>
          <ul><li>Lead the data team</li></ul>
          <p><strong>Benefits</strong></p>
          <ul><li>Equity</li></ul>
        </div>
        """
        soup = BeautifulSoup(html, 'lxml')
        assert section_text(soup, ("what you'll do",)) == "Lead the data team"
        assert section_text(soup, ('benefit',)) == "Equity"

    def test_no_match(self):
        from bs4 import BeautifulSoup
        assert section_text(BeautifulSoup("<p>Hello</p>", 'lxml'), ('benefit',)) is None


class TestGreenhouseExtractor:
    """Test GreenhouseExtractor."""

    def test_full_page_is_accepted(self):
        outcome = GreenhouseExtractor().extract(GREENHOUSE_HTML, "https://boards.greenhouse.io/acme/jobs/1")

        assert isinstance(outcome.result, Success)
        assert outcome.data['title'] == "Senior Backend Engineer"
        assert outcome.data['company_name'] == "Acme Corp"
        assert outcome.data['location'] == "Remote - US"
        assert "Design and ship APIs" in outcome.data['responsibilities']
        assert "PostgreSQL" in outcome.data['requirements']
        assert "Remote stipend" in outcome.data['benefits']
        assert outcome.confidence == pytest.approx(0.9)
        assert outcome.missing_fields == []

    def test_field_results_record_selectors(self):
        outcome = GreenhouseExtractor().extract(GREENHOUSE_HTML)
        assert outcome.field_results['title']['selector'] == "h1.app-title"
        assert outcome.field_results['requirements']['selector'] == "section_heading"
        assert outcome.field_results['about_company']['success'] is False
        assert outcome.selectors_tried['title'] == ["h1.app-title"]

    def test_missing_company_caps_confidence(self):
        outcome = GreenhouseExtractor().extract(GREENHOUSE_NO_COMPANY_HTML)

        assert 'about_company' in outcome.data
        assert 'company_culture' in outcome.data
        assert outcome.confidence == MISSING_REQUIRED_CAP
        assert isinstance(outcome.result, PartialSuccess)
        assert outcome.missing_fields == ['company_name']
        assert outcome.result.required_data.keys() == {'title', 'description'}

    def test_board_override_cannot_lift_cap(self):
        """A post_process score above the threshold is still capped while company is missing."""
        class GenerousExtractor(GreenhouseExtractor):
            def post_process(self, soup, data, confidence):
                return data, 0.95

        outcome = GenerousExtractor().extract(GREENHOUSE_NO_COMPANY_HTML)

        assert outcome.confidence == MISSING_REQUIRED_CAP
        assert not outcome.result.accepted

    def test_empty_html(self):
        outcome = GreenhouseExtractor().extract("   ")
        assert isinstance(outcome.result, Failure)
        assert outcome.error == "No HTML provided"

    def test_to_dict(self):
        data = GreenhouseExtractor().extract(GREENHOUSE_HTML).to_dict()
        assert data['board_type'] == "greenhouse"
        assert data['accepted'] is True
        assert data['extractor_kind'] == "job_board_selectors"


class TestAshbyExtractor:
    """Test AshbyExtractor overrides."""

    def test_company_from_title_and_structured_cap(self):
        outcome = AshbyExtractor().extract(ASHBY_HTML)

        assert outcome.data['title'] == "Platform Engineer"
        assert outcome.data['company_name'] == "Nimbus Labs"
        assert 'description' in outcome.data
        assert outcome.confidence == pytest.approx(0.65)
        assert not outcome.result.accepted

    def test_short_description_is_dropped(self):
        html = ASHBY_HTML.replace(
            "Nimbus Labs is hiring a platform engineer to scale our Kubernetes infrastructure across regions.",
            "Apply now.",
        )
        outcome = AshbyExtractor().extract(html)
        assert 'description' not in outcome.data
        assert outcome.missing_fields == ['description']
        assert outcome.confidence <= MISSING_REQUIRED_CAP

    def test_company_from_logo_alt(self):
        html = """
        <html><head><title>Platform Engineer</title></head><body>
        <div class="ashby-job-posting-header"><img src="/logo.png" alt="Nimbus Labs"></div>
        <h1>Platform Engineer</h1>
        </body></html>
        """
        outcome = AshbyExtractor().extract(html)
        assert outcome.data['company_name'] == "Nimbus Labs"


class TestExtractorRegistry:
    """Test ExtractorRegistry."""

    def test_builtin_boards_registered(self):
        registry = get_extractor_registry()
        for board in (BoardType.GREENHOUSE, BoardType.LEVER, BoardType.ASHBY, BoardType.WORKABLE,
                      BoardType.SMARTRECRUITERS, BoardType.JOBVITE, BoardType.ICIMS, BoardType.BAMBOOHR):
            assert registry.supports(board)
        assert isinstance(registry.get(BoardType.GREENHOUSE), GreenhouseExtractor)

    def test_limited_boards_have_no_extractor(self):
        registry = get_extractor_registry()
        assert registry.get(BoardType.LINKEDIN) is None
        assert registry.get(BoardType.INDEED) is None

    def test_unknown_board_gets_generic_selectors(self):
        extractor = ExtractorRegistry().get(BoardType.UNKNOWN)
        assert isinstance(extractor, SelectorExtractor)
        assert extractor.board_type == BoardType.UNKNOWN

    def test_register_limited_board_raises(self):
        with pytest.raises(ValueError):
            ExtractorRegistry().register(SelectorExtractor(BoardType.GLASSDOOR))

    def test_list_extractors(self):
        names = {item['board_type'] for item in get_extractor_registry().list_extractors()}
        assert {'greenhouse', 'ashby'} <= names


class TestSelectorFieldResults:
    def test_covers_tracked_fields(self):
        outcome = GreenhouseExtractor().extract(GREENHOUSE_HTML)
        results = selector_field_results(outcome)

        assert results['title']['success'] is True
        assert results['salary_min']['success'] is False
        assert results['remote_type']['selector'] is None
