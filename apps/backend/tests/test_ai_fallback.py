"""
Tests for LLM providers, AI extraction and Greenhouse postprocessing.
"""

import json

import httpx
import pytest

from core.errors import ProviderError
from core.results import Failure, PartialSuccess, Success
from pipeline.ai_fallback import (
    AIExtractor,
    AIPostProcessor,
    as_bullets,
    normalize_ai_data,
)
from pipeline.llm_providers import (
    AnthropicProvider,
    OllamaProvider,
    OpenRouterProvider,
    ProviderResponse,
    parse_json_content,
)

AI_DATA = {
    'title': "Staff Engineer",
    'company': "Hooli",
    'description': "Lead the storage team.",
    'requirements': ["Go", "Distributed systems"],
    'location': "Mountain View, CA",
    'remote_type': "On-site",
    'salary_min': 180000,
    'salary_max': 240000,
    'salary_currency': "usd",
    'equity_info': "0.1% over four years",
    'notes': "Salary taken from the compensation section",
    'confidence_score': 0.85,
}


class FakeProvider:
    """Provider stub returning queued responses"""

    def __init__(self, name, *responses, available=True):
        self.name = name
        self.responses = list(responses)
        self._available = available
        self.prompts = []

    def available(self):
        return self._available

    async def run(self, prompt, system_message=None):
        self.prompts.append(prompt)
        return self.responses.pop(0)


def chat_completion(content, tokens=512, model="openai/gpt-4o-mini"):
    return {
        'model': model,
        'choices': [{'message': {'role': 'assistant', 'content': content}}],
        'usage': {'total_tokens': tokens},
    }


class TestParseJsonContent:
    def test_code_fenced_json(self):
        assert parse_json_content('```json\n{"title": "Engineer"}\n```') == {'title': "Engineer"}

    def test_no_json(self):
        with pytest.raises(ProviderError):
            parse_json_content("I could not find a job posting on this page.")

    def test_empty(self):
        with pytest.raises(ProviderError):
            parse_json_content("  ")


class TestProviders:
    """Test provider request and response handling over MockTransport."""

    @pytest.mark.asyncio
    async def test_openrouter_success(self, mock_client):
        seen = {}

        def handler(request):
            seen['url'] = str(request.url)
            seen['auth'] = request.headers['authorization']
            seen['body'] = json.loads(request.content)
            return httpx.Response(200, json=chat_completion(json.dumps(AI_DATA)))

        provider = OpenRouterProvider("sk-test", "openai/gpt-4o-mini", mock_client(handler))
        response = await provider.run("Extract this", "Return JSON")

        assert seen['url'] == "https://openrouter.ai/api/v1/chat/completions"
        assert seen['auth'] == "Bearer sk-test"
        assert seen['body']['messages'][0] == {'role': 'system', 'content': "Return JSON"}
        assert response.ok
        assert response.confidence == 0.85
        assert response.tokens == 512
        assert response.data['title'] == "Staff Engineer"

    @pytest.mark.asyncio
    async def test_rate_limited(self, mock_client):
        def handler(request):
            return httpx.Response(429, headers={'retry-after': "12"}, text="slow down")

        response = await OpenRouterProvider("sk-test", "m", mock_client(handler)).run("p")

        assert response.rate_limited
        assert response.retry_after == 12.0
        assert not response.ok
        assert response.error_kind == "rate_limit"

    @pytest.mark.asyncio
    async def test_http_error_status(self, mock_client):
        def handler(request):
            return httpx.Response(500, text="upstream exploded")

        response = await OpenRouterProvider("sk-test", "m", mock_client(handler)).run("p")

        assert response.error == "HTTP 500: upstream exploded"
        assert response.error_kind == "http_error"

    @pytest.mark.asyncio
    async def test_unusable_output(self, mock_client):
        def handler(request):
            return httpx.Response(200, json=chat_completion("Sorry, no JSON today"))

        response = await OpenRouterProvider("sk-test", "m", mock_client(handler)).run("p")

        assert response.error.startswith("Unusable response")
        assert response.error_kind == "parse_error"

    @pytest.mark.asyncio
    async def test_transport_failures_are_classified(self, mock_client):
        def timing_out(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        def dropping(request):
            raise httpx.ReadError("connection reset", request=request)

        timeout = await OpenRouterProvider("sk-test", "m", mock_client(timing_out)).run("p")
        network = await OpenRouterProvider("sk-test", "m", mock_client(dropping)).run("p")

        assert timeout.error_kind == "timeout"
        assert network.error_kind == "network"
        assert network.error.startswith("Request failed")

    @pytest.mark.asyncio
    async def test_anthropic_request_shape(self, mock_client):
        seen = {}

        def handler(request):
            seen['headers'] = request.headers
            seen['body'] = json.loads(request.content)
            return httpx.Response(200, json={
                'model': "claude-3-haiku-20240307",
                'content': [{'type': 'text', 'text': json.dumps({'title': "X", 'confidence_score': 0.4})}],
                'usage': {'input_tokens': 300, 'output_tokens': 40},
            })

        response = await AnthropicProvider("key", "claude-3-haiku-20240307", mock_client(handler)).run("p", "sys")

        assert seen['headers']['x-api-key'] == "key"
        assert seen['headers']['anthropic-version'] == "2023-06-01"
        assert seen['body']['system'] == "sys"
        assert response.tokens == 340
        assert response.confidence == 0.4

    @pytest.mark.asyncio
    async def test_ollama(self, mock_client):
        def handler(request):
            assert str(request.url) == "http://localhost:11434/api/chat"
            return httpx.Response(200, json={
                'model': "llama3.1",
                'message': {'role': 'assistant', 'content': '{"title": "Y", "confidence": 0.9}'},
                'prompt_eval_count': 100,
                'eval_count': 20,
            })

        response = await OllamaProvider("http://localhost:11434/", "llama3.1", mock_client(handler)).run("p")

        assert response.confidence == 0.9
        assert response.tokens == 120

    @pytest.mark.asyncio
    async def test_unconfigured_provider_makes_no_request(self, mock_client):
        def handler(request):
            raise AssertionError("no request expected")

        response = await OpenRouterProvider(None, "m", mock_client(handler)).run("p")

        assert response.error == "Provider not configured"
        assert response.error_kind == "not_configured"


class TestNormalizeAiData:
    def test_maps_model_output(self):
        data = normalize_ai_data(AI_DATA)

        assert data['company_name'] == "Hooli"
        assert data['requirements'] == "- Go\n- Distributed systems"
        assert data['remote_type'] == "on_site"
        assert data['salary_min'] == 180000
        assert data['salary_currency'] == "USD"
        assert data['custom_sections']['equity_info'] == "0.1% over four years"
        assert 'confidence_score' not in data

    def test_implausible_salary_dropped(self):
        data = normalize_ai_data(dict(AI_DATA, salary_min=45, salary_max=60))
        assert 'salary_min' not in data

    def test_unknown_remote_type_dropped(self):
        assert 'remote_type' not in normalize_ai_data({'remote_type': "flexible"})

    def test_as_bullets(self):
        assert as_bullets(["a", " ", "b"]) == "- a\n- b"
        assert as_bullets("  text ") == "text"
        assert as_bullets([]) is None


class TestAIExtractor:
    """Test the provider chain."""

    @pytest.mark.asyncio
    async def test_first_confident_provider_wins(self):
        first = FakeProvider("openrouter", ProviderResponse("openrouter", data=AI_DATA, confidence=0.85, model="m1"))
        second = FakeProvider("anthropic")

        result = await AIExtractor([first, second]).extract("page text", "https://hooli.com/jobs/1")

        assert isinstance(result, Success)
        assert result.method == "ai"
        assert result.provider == "openrouter"
        assert result.metadata['model'] == "m1"
        assert "https://hooli.com/jobs/1" in first.prompts[0]
        assert second.prompts == []

    @pytest.mark.asyncio
    async def test_rate_limit_waits_and_moves_on(self):
        waits = []

        async def fake_sleep(seconds):
            waits.append(seconds)

        limited = FakeProvider("openrouter", ProviderResponse("openrouter", rate_limited=True, retry_after=300))
        backup = FakeProvider("anthropic", ProviderResponse("anthropic", data=AI_DATA, confidence=0.9))

        result = await AIExtractor([limited, backup], sleep=fake_sleep).extract("page text", "u")

        assert waits == [60]
        assert result.provider == "anthropic"

    @pytest.mark.asyncio
    async def test_best_low_confidence_returned(self):
        low = FakeProvider("openrouter", ProviderResponse("openrouter", data=AI_DATA, confidence=0.3))
        lower = FakeProvider("openai", ProviderResponse("openai", data=AI_DATA, confidence=0.2))
        broken = FakeProvider("ollama", ProviderResponse("ollama", error="Timeout: read timed out"))

        result = await AIExtractor([low, lower, broken]).extract("page text", "u")

        assert isinstance(result, PartialSuccess)
        assert result.confidence == 0.3
        assert result.provider == "openrouter"
        assert result.data['title'] == "Staff Engineer"

    @pytest.mark.asyncio
    async def test_all_fail(self):
        broken = FakeProvider("openrouter", ProviderResponse("openrouter", error="HTTP 500: boom"))

        result = await AIExtractor([broken]).extract("page text", "u")

        assert isinstance(result, Failure)
        assert result.reason == "All providers failed or returned low confidence (provider_error)"
        assert result.metadata['provider_errors'] == [
            {'provider': "openrouter", 'error_type': "provider_error", 'rate_limited': False, 'error': "HTTP 500: boom"},
        ]

    @pytest.mark.asyncio
    async def test_rate_limit_kind_is_reported(self):
        async def fake_sleep(seconds):
            pass

        limited = FakeProvider("openrouter", ProviderResponse(
            "openrouter", rate_limited=True, retry_after=5, error="Rate limited", error_type="rate_limit"))
        timed_out = FakeProvider("ollama", ProviderResponse("ollama", error="Timeout: read timed out", error_type="timeout"))
        also_limited = FakeProvider("anthropic", ProviderResponse("anthropic", rate_limited=True))

        result = await AIExtractor([limited, timed_out, also_limited], sleep=fake_sleep).extract("page text", "u")

        assert isinstance(result, Failure)
        assert result.metadata['error_type'] == "rate_limit"
        assert result.reason.endswith("(rate_limit)")
        assert [(e['provider'], e['error_type'], e['rate_limited']) for e in result.metadata['provider_errors']] == [
            ("openrouter", "rate_limit", True),
            ("ollama", "timeout", False),
            ("anthropic", "rate_limit", True),
        ]

    @pytest.mark.asyncio
    async def test_partial_result_keeps_provider_errors(self):
        broken = FakeProvider("openrouter", ProviderResponse("openrouter", error="HTTP 502: bad gateway", error_type="http_error"))
        low = FakeProvider("anthropic", ProviderResponse("anthropic", data=AI_DATA, confidence=0.3))

        result = await AIExtractor([broken, low]).extract("page text", "u")

        assert isinstance(result, PartialSuccess)
        assert result.metadata['provider_errors'][0]['error_type'] == "http_error"

    @pytest.mark.asyncio
    async def test_no_content_or_providers(self):
        assert (await AIExtractor([FakeProvider("x")]).extract("  ", "u")).reason == "No HTML content available"
        unavailable = FakeProvider("openrouter", available=False)
        assert (await AIExtractor([unavailable]).extract("text", "u")).reason == "No AI providers configured"


class TestAIPostProcessor:
    """Test AIPostProcessor."""

    def api_result(self, **data):
        base = {
            'title': "Backend Engineer",
            'company_name': "Acme",
            'description': "<p>The base salary range is $150,000 - $180,000.</p>",
        }
        base.update(data)
        return Success(data=base, confidence=0.9, method="api", provider="greenhouse")

    def test_applies_only_to_greenhouse(self):
        lever = Success(data={'description': "salary"}, confidence=0.9, method="api", provider="lever")
        assert not AIPostProcessor([]).applies(lever)
        assert AIPostProcessor([]).applies(self.api_result())

    @pytest.mark.asyncio
    async def test_backfills_fields(self):
        raw = {
            'job_markdown': "## About\nBuild things",
            'compensation_text': "The base salary range is $150,000 - $180,000.",
            'salary_min': 150000,
            'salary_max': 180000,
            'salary_currency': "USD",
            'interview_process': None,
            'requirements_bullets': ["Python", "PostgreSQL"],
            'responsibilities_bullets': [],
            'benefits_bullets': ["401k"],
            'confidence_score': 0.8,
        }
        provider = FakeProvider("openrouter", ProviderResponse("openrouter", data=raw, confidence=0.8))

        result = await AIPostProcessor([provider]).process(self.api_result(), "https://boards.greenhouse.io/acme/jobs/1")

        assert isinstance(result, Success)
        assert result.method == "api"
        assert result.confidence == 0.9
        assert result.data['salary_min'] == 150000
        assert result.data['requirements'] == "- Python\n- PostgreSQL"
        assert 'responsibilities' not in result.data
        assert result.data['custom_sections']['job_markdown'].startswith("## About")
        assert 'interview_process' not in result.data['custom_sections']
        assert result.metadata['postprocessed_by'] == "openrouter"

    @pytest.mark.asyncio
    async def test_existing_fields_kept(self):
        raw = {'requirements_bullets': ["Other"], 'salary_min': 1, 'salary_currency': "USD"}
        provider = FakeProvider("openrouter", ProviderResponse("openrouter", data=raw))
        original = self.api_result(requirements="Existing", salary_min=100000, salary_currency="USD")

        result = await AIPostProcessor([provider]).process(original, "u")

        assert result.data['requirements'] == "Existing"
        assert result.data['salary_min'] == 100000

    @pytest.mark.asyncio
    async def test_failure_returns_original(self):
        class Exploding(FakeProvider):
            async def run(self, prompt, system_message=None):
                raise RuntimeError("socket closed")

        original = self.api_result()
        result = await AIPostProcessor([Exploding("openrouter")]).process(original, "u")

        assert result is original

    @pytest.mark.asyncio
    async def test_no_usable_response_returns_original(self):
        provider = FakeProvider("openrouter", ProviderResponse("openrouter", error="HTTP 500: boom"))
        original = self.api_result()

        assert await AIPostProcessor([provider]).process(original, "u") is original
