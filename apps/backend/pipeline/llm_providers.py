"""
LLM providers used by AI extraction.

Each provider turns (prompt, system message) into a ProviderResponse and never
raises for expected failures: HTTP errors, timeouts, rate limits and
unparseable output all come back as response fields.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from core.config import Settings
from core.errors import ProviderError
from core.net import HTTPClient, HTTPResponse

logger = logging.getLogger(__name__)

PROVIDER_TIMEOUT = 90.0
MAX_OUTPUT_TOKENS = 4000
TEMPERATURE = 0.1


@dataclass
class ProviderResponse:
    provider: str
    content: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    tokens: Optional[int] = None
    model: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    rate_limited: bool = False
    retry_after: Optional[float] = None
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.rate_limited

    @property
    def error_kind(self) -> Optional[str]:
        """rate_limit, timeout, network, http_error, parse_error or not_configured"""
        if self.rate_limited:
            return "rate_limit"
        if self.error is None:
            return None
        return self.error_type or "provider_error"


def parse_json_content(content: Optional[str]) -> Dict[str, Any]:
    """
    JSON object from model output, tolerating code fences and chatter.

    Raises:
        ProviderError: no JSON object in the output
    """
    if not content or not content.strip():
        raise ProviderError("Empty response")
    match = re.search(r'\{.*\}', content, re.DOTALL)
    if not match:
        raise ProviderError("No JSON found in response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ProviderError(f"Invalid JSON: {e}")
    if not isinstance(data, dict):
        raise ProviderError("Response JSON is not an object")
    return data


def _confidence(data: Dict[str, Any]) -> float:
    raw = data.get('confidence_score', data.get('confidence'))
    try:
        return max(0.0, min(1.0, float(raw)))
    except (TypeError, ValueError):
        return 0.0


def _retry_after(response: HTTPResponse) -> Optional[float]:
    value = response.headers.get('retry-after') or response.headers.get('Retry-After')
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class LLMProvider(ABC):
    """Base class for chat-completion style providers"""

    name: str = ""

    def __init__(self, model: str, http_client: Optional[HTTPClient] = None):
        self.model = model
        self.http_client = http_client or HTTPClient(timeout=PROVIDER_TIMEOUT)

    @abstractmethod
    def available(self) -> bool:
        """Credentials or endpoint configured"""

    @abstractmethod
    def endpoint(self) -> str:
        pass

    @abstractmethod
    def build_request(self, prompt: str, system_message: Optional[str]) -> Dict[str, Any]:
        """(headers, payload) for the provider API"""

    @abstractmethod
    def parse_response(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Extract {'content', 'tokens'} from the provider response body"""

    async def run(self, prompt: str, system_message: Optional[str] = None) -> ProviderResponse:
        """
        Send a prompt and parse the model's JSON answer.

        Returns:
            ProviderResponse; failures are reported in error / rate_limited
        """
        if not self.available():
            return ProviderResponse(provider=self.name, model=self.model, error="Provider not configured",
                                    error_type="not_configured")

        request = self.build_request(prompt, system_message)
        try:
            response = await self.http_client.post_json(
                self.endpoint(), request['payload'], headers=request.get('headers')
            )
        except httpx.TimeoutException as e:
            logger.warning(f"[llm] {self.name} request timed out: {e}")
            return ProviderResponse(provider=self.name, model=self.model, error=f"Timeout: {e}",
                                    error_type="timeout")
        except httpx.HTTPError as e:
            logger.warning(f"[llm] {self.name} request failed: {e}")
            return ProviderResponse(provider=self.name, model=self.model, error=f"Request failed: {e}",
                                    error_type="network")

        if response.status_code == 429:
            retry_after = _retry_after(response)
            logger.warning(f"[llm] {self.name} rate limited (retry_after={retry_after})")
            return ProviderResponse(
                provider=self.name, model=self.model, rate_limited=True,
                retry_after=retry_after, error="Rate limited", error_type="rate_limit",
                latency_ms=response.elapsed_ms,
            )
        if not response.ok:
            return ProviderResponse(
                provider=self.name, model=self.model,
                error=f"HTTP {response.status_code}: {response.text[:200]}",
                error_type="http_error",
                latency_ms=response.elapsed_ms,
            )

        try:
            parsed = self.parse_response(json.loads(response.text))
            data = parse_json_content(parsed['content'])
        except (ProviderError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"[llm] {self.name} returned unusable output: {e}")
            return ProviderResponse(
                provider=self.name, model=self.model, error=f"Unusable response: {e}",
                error_type="parse_error",
                latency_ms=response.elapsed_ms,
            )

        return ProviderResponse(
            provider=self.name,
            content=parsed['content'],
            data=data,
            confidence=_confidence(data),
            tokens=parsed.get('tokens'),
            model=parsed.get('model') or self.model,
            latency_ms=response.elapsed_ms,
        )

    def __repr__(self):
        return f"<{self.__class__.__name__}(model={self.model})>"


def _chat_messages(prompt: str, system_message: Optional[str]) -> List[Dict[str, str]]:
    messages = []
    if system_message:
        messages.append({"role": "system", "content": system_message})
    messages.append({"role": "user", "content": prompt})
    return messages


class OpenRouterProvider(LLMProvider):
    name = "openrouter"

    def __init__(self, api_key: Optional[str], model: str, http_client: Optional[HTTPClient] = None):
        super().__init__(model, http_client)
        self.api_key = api_key

    def available(self) -> bool:
        return bool(self.api_key)

    def endpoint(self) -> str:
        return "https://openrouter.ai/api/v1/chat/completions"

    def build_request(self, prompt, system_message):
        return {
            'headers': {"Authorization": f"Bearer {self.api_key}"},
            'payload': {
                "model": self.model,
                "messages": _chat_messages(prompt, system_message),
                "temperature": TEMPERATURE,
                "max_tokens": MAX_OUTPUT_TOKENS,
            },
        }

    def parse_response(self, body):
        usage = body.get('usage') or {}
        return {
            'content': body['choices'][0]['message']['content'],
            'tokens': usage.get('total_tokens'),
            'model': body.get('model'),
        }


class OpenAIProvider(OpenRouterProvider):
    """OpenAI chat completions (same wire shape as OpenRouter)"""

    name = "openai"

    def endpoint(self) -> str:
        return "https://api.openai.com/v1/chat/completions"


class AnthropicProvider(LLMProvider):
    name = "anthropic"
    API_VERSION = "2023-06-01"

    def __init__(self, api_key: Optional[str], model: str, http_client: Optional[HTTPClient] = None):
        super().__init__(model, http_client)
        self.api_key = api_key

    def available(self) -> bool:
        return bool(self.api_key)

    def endpoint(self) -> str:
        return "https://api.anthropic.com/v1/messages"

    def build_request(self, prompt, system_message):
        payload = {
            "model": self.model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "temperature": TEMPERATURE,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_message:
            payload["system"] = system_message
        return {
            'headers': {"x-api-key": self.api_key, "anthropic-version": self.API_VERSION},
            'payload': payload,
        }

    def parse_response(self, body):
        text = ''.join(block.get('text', '') for block in body['content'] if block.get('type') == 'text')
        usage = body.get('usage') or {}
        tokens = None
        if usage:
            tokens = (usage.get('input_tokens') or 0) + (usage.get('output_tokens') or 0)
        return {'content': text, 'tokens': tokens, 'model': body.get('model')}


class OllamaProvider(LLMProvider):
    name = "ollama"

    def __init__(self, base_url: Optional[str], model: str, http_client: Optional[HTTPClient] = None):
        super().__init__(model, http_client)
        self.base_url = (base_url or '').rstrip('/')

    def available(self) -> bool:
        return bool(self.base_url)

    def endpoint(self) -> str:
        return f"{self.base_url}/api/chat"

    def build_request(self, prompt, system_message):
        return {
            'payload': {
                "model": self.model,
                "messages": _chat_messages(prompt, system_message),
                "stream": False,
                "format": "json",
                "options": {"temperature": TEMPERATURE},
            },
        }

    def parse_response(self, body):
        tokens = None
        if 'eval_count' in body:
            tokens = (body.get('prompt_eval_count') or 0) + (body.get('eval_count') or 0)
        return {'content': body['message']['content'], 'tokens': tokens, 'model': body.get('model')}


def build_providers(settings: Settings, http_client: Optional[HTTPClient] = None) -> List[LLMProvider]:
    """Configured providers in AI_PROVIDER_ORDER"""
    factories = {
        'openrouter': lambda: OpenRouterProvider(settings.openrouter_api_key, settings.openrouter_model, http_client),
        'anthropic': lambda: AnthropicProvider(settings.anthropic_api_key, settings.anthropic_model, http_client),
        'openai': lambda: OpenAIProvider(settings.openai_api_key, settings.openai_model, http_client),
        'ollama': lambda: OllamaProvider(settings.ollama_base_url, settings.ollama_model, http_client),
    }
    providers = []
    for name in settings.configured_providers():
        if name in factories:
            providers.append(factories[name]())
        else:
            logger.warning(f"[llm] Unknown provider in AI_PROVIDER_ORDER: {name}")
    return providers
