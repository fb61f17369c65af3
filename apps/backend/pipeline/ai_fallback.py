"""
AI fallback extraction.

AIExtractor walks the configured LLM providers as the last resort of the
waterfall. AIPostProcessor enriches Greenhouse API results whose description
carries salary or section content the API does not expose as fields.
"""

import asyncio
import logging
import re
from collections import Counter
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.results import CONFIDENCE_THRESHOLD, ExtractionResult, Failure, classify, is_present
from core.salary_validator import normalize as normalize_salary

from .llm_providers import LLMProvider, ProviderResponse

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 60_000
MAX_RATE_LIMIT_WAIT = 60

EXTRACTION_SYSTEM_PROMPT = (
    "You are an expert at extracting structured job listing data from HTML. "
    "You are given a job listing URL and the text content of the job listing. "
    "Return only valid JSON."
)

EXTRACTION_PROMPT = """Extract the following information from this job listing and return it as JSON:

Required fields:
- title: Job title
- company: Company name (the organization posting the job)
- description: Full job description (text only, no HTML)
- requirements: Required qualifications and skills
- responsibilities: Key responsibilities and duties
- location: Office location or "Remote"
- remote_type: one of "on_site", "hybrid", or "remote"

Optional fields (use null if not found):
- about_company: A concise "About the company" section
- company_culture: Company values/culture section
- salary_min: Minimum annual salary as number
- salary_max: Maximum annual salary as number
- salary_currency: Currency code (e.g., "USD", "EUR")
- benefits: Benefits package description
- custom_sections: Any additional structured data as a JSON object

Also provide:
- confidence_score: Your confidence in the extraction accuracy (0.0 to 1.0)
- notes: Any extraction challenges or uncertainties

Job Listing URL: {url}

Content:
{content}

Return only valid JSON with no additional commentary."""

POSTPROCESS_SYSTEM_PROMPT = (
    "You are an expert at extracting structured job posting information and producing "
    "clean Markdown for display. Never include HTML tags in the markdown output."
)

POSTPROCESS_PROMPT = """Given the job posting content below, extract missing structured information and produce a clean Markdown version suitable for display.

IMPORTANT:
- Return ONLY valid JSON (no code fences).
- Only extract what is present in the content. If something isn't present, return null/[] accordingly.
- Use ## for main sections and - for bullet lists in job_markdown.

Return JSON with this schema:
{{
  "job_markdown": String,
  "compensation_text": String|null,
  "salary_min": Number|null,
  "salary_max": Number|null,
  "salary_currency": String|null,
  "interview_process": String|null,
  "responsibilities_bullets": [String],
  "requirements_bullets": [String],
  "benefits_bullets": [String],
  "confidence_score": Number
}}

Job URL: {url}

Job Content:
{content}"""

TEXT_FIELDS = (
    'title', 'company_name', 'description', 'location', 'remote_type',
    'requirements', 'responsibilities', 'benefits', 'about_company', 'company_culture',
)
REMOTE_TYPES = ('remote', 'hybrid', 'on_site')
# Extra model output kept under custom_sections
EXTRA_FIELDS = ('equity_info', 'perks', 'notes')

COMPENSATION_RE = re.compile(r'compensation|salary|usd|eur|\$\s*\d', re.IGNORECASE)


def as_bullets(value: Any) -> Optional[str]:
    """Render a list as '- item' lines; strings pass through"""
    if isinstance(value, list):
        items = [str(item).strip() for item in value if item and str(item).strip()]
        return '\n'.join(f"- {item}" for item in items) or None
    if isinstance(value, str):
        return value.strip() or None
    return None


def validated_salary(data: Dict[str, Any], context_text: Optional[str] = None) -> Dict[str, Any]:
    """salary_min/max/currency if the validator accepts them, else {}"""
    if data.get('salary_min') is None and data.get('salary_max') is None:
        return {}
    validation = normalize_salary(
        data.get('salary_min'), data.get('salary_max'), data.get('salary_currency'), context_text
    )
    if not validation.valid:
        logger.info(f"[ai_fallback] Dropping salary: {validation.reason}")
        return {}
    return {
        'salary_min': validation.min,
        'salary_max': validation.max,
        'salary_currency': validation.currency,
    }


def normalize_ai_data(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map model output onto listing fields"""
    raw = dict(raw)
    if 'company_name' not in raw and 'company' in raw:
        raw['company_name'] = raw.pop('company')

    data: Dict[str, Any] = {}
    for name in TEXT_FIELDS:
        value = as_bullets(raw.get(name))
        if value:
            data[name] = value

    remote_type = (data.get('remote_type') or '').lower().replace('-', '_').replace(' ', '_')
    if remote_type:
        if remote_type == 'onsite':
            remote_type = 'on_site'
        if remote_type in REMOTE_TYPES:
            data['remote_type'] = remote_type
        else:
            data.pop('remote_type')

    data.update(validated_salary(raw, raw.get('compensation_text')))

    custom = raw.get('custom_sections') if isinstance(raw.get('custom_sections'), dict) else {}
    custom = dict(custom)
    for name in EXTRA_FIELDS:
        if is_present(raw.get(name)):
            custom[name] = raw[name]
    if custom:
        data['custom_sections'] = custom
    return data


def dominant_error_type(errors: List[Dict[str, Any]]) -> Optional[str]:
    """Most frequent provider error kind; the earliest wins ties"""
    if not errors:
        return None
    return Counter(e['error_type'] for e in errors).most_common(1)[0][0]


class AIExtractor:
    """
    Ordered provider chain for job extraction.

    The first response without error and with confidence >= 0.7 wins. Otherwise
    the best low-confidence response is returned so the caller can still
    persist partial data. Rate-limited providers are waited on (at most 60s)
    and skipped.
    """

    def __init__(
        self,
        providers: List[LLMProvider],
        threshold: float = CONFIDENCE_THRESHOLD,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None
    ):
        self.providers = providers
        self.threshold = threshold
        self.sleep = sleep or asyncio.sleep

    def build_prompt(self, content: str, url: str) -> str:
        return EXTRACTION_PROMPT.format(url=url, content=content[:MAX_PROMPT_CHARS])

    async def extract(self, content: str, url: str) -> ExtractionResult:
        if not content or not content.strip():
            return Failure(reason="No HTML content available", method="ai")

        available = [p for p in self.providers if p.available()]
        if not available:
            return Failure(reason="No AI providers configured", method="ai")

        prompt = self.build_prompt(content, url)
        best: Optional[ProviderResponse] = None
        errors: List[Dict[str, Any]] = []

        for provider in available:
            response = await provider.run(prompt, EXTRACTION_SYSTEM_PROMPT)

            if not response.ok:
                errors.append({
                    'provider': provider.name,
                    'error_type': response.error_kind,
                    'rate_limited': response.rate_limited,
                    'error': response.error,
                })

            if response.rate_limited:
                if response.retry_after and response.retry_after > 0:
                    wait = min(response.retry_after, MAX_RATE_LIMIT_WAIT)
                    logger.info(f"[ai_fallback] {provider.name} rate limited, waiting {wait}s")
                    await self.sleep(wait)
                continue

            if response.error:
                logger.warning(f"[ai_fallback] {provider.name} failed: {response.error}")
                continue

            if response.confidence >= self.threshold:
                logger.info(f"[ai_fallback] {provider.name} succeeded (confidence={response.confidence:.2f})")
                return self._to_result(response, errors)

            logger.info(f"[ai_fallback] {provider.name} low confidence ({response.confidence:.2f})")
            if best is None or response.confidence > best.confidence:
                best = response

        if best is not None:
            return self._to_result(best, errors)

        error_type = dominant_error_type(errors)
        reason = "All providers failed or returned low confidence"
        if error_type:
            reason = f"{reason} ({error_type})"
        return Failure(reason=reason, method="ai",
                       metadata={'error_type': error_type, 'provider_errors': errors})

    def _to_result(self, response: ProviderResponse, errors: List[Dict[str, Any]]) -> ExtractionResult:
        data = normalize_ai_data(response.data)
        metadata = {
            'model': response.model,
            'tokens_used': response.tokens,
            'latency_ms': response.latency_ms,
            'notes': response.data.get('notes'),
            'provider_errors': errors,
        }
        return classify(data, response.confidence, method="ai", provider=response.provider,
                        metadata=metadata, threshold=self.threshold)


class AIPostProcessor:
    """Backfills salary and section fields of Greenhouse API results"""

    def __init__(self, providers: List[LLMProvider]):
        self.providers = providers

    @staticmethod
    def applies(result: ExtractionResult) -> bool:
        data = result.data
        if result.provider != 'greenhouse' or not is_present(data.get('description')):
            return False
        missing_salary = not is_present(data.get('salary_min')) and not is_present(data.get('salary_max'))
        missing_sections = not is_present(data.get('requirements')) and not is_present(data.get('responsibilities'))
        return missing_salary or missing_sections or bool(COMPENSATION_RE.search(data['description']))

    async def process(self, result: ExtractionResult, url: str) -> ExtractionResult:
        """Enriched result, or the original one on any failure"""
        if not self.applies(result):
            return result
        try:
            return await self._process(result, url)
        except Exception as e:
            logger.warning(f"[ai_fallback] Postprocess failed for {url}: {e}")
            return result

    async def _process(self, result: ExtractionResult, url: str) -> ExtractionResult:
        prompt = POSTPROCESS_PROMPT.format(url=url, content=result.data['description'][:MAX_PROMPT_CHARS])
        response = None
        for provider in self.providers:
            if not provider.available():
                continue
            response = await provider.run(prompt, POSTPROCESS_SYSTEM_PROMPT)
            if response.ok:
                break
            response = None
        if response is None:
            logger.info(f"[ai_fallback] No postprocess response for {url}")
            return result

        raw = response.data
        data = dict(result.data)

        if not is_present(data.get('salary_min')) and not is_present(data.get('salary_max')):
            data.update(validated_salary(raw, raw.get('compensation_text')))

        for name in ('requirements', 'responsibilities', 'benefits'):
            if not is_present(data.get(name)):
                bullets = as_bullets(raw.get(f"{name}_bullets"))
                if bullets:
                    data[name] = bullets

        custom = dict(data.get('custom_sections') or {})
        for name in ('job_markdown', 'compensation_text', 'interview_process'):
            if is_present(raw.get(name)):
                custom[name] = raw[name]
        if custom:
            data['custom_sections'] = custom

        metadata = dict(result.metadata)
        metadata['postprocessed_by'] = response.provider
        logger.info(f"[ai_fallback] Postprocessed {url} via {response.provider}")
        return classify(data, result.confidence, method=result.method, provider=result.provider, metadata=metadata)
