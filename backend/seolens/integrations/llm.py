"""
LLM Integration Client

Content-analysis providers behind one contract, ``analyze(prompt)``:
- Local LLM via LM Studio (OpenAI-compatible API)
- OpenAI API
- Anthropic API

The implementation is chosen once from configuration by
``create_llm_client``; callers never branch on the vendor.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from seolens.config import Settings, settings
from seolens.core.exceptions import AnalysisError

logger = logging.getLogger(__name__)

SEO_SYSTEM_PROMPT = "You are an SEO expert. Return ONLY valid JSON without any markdown formatting."

OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_DEFAULT_MODEL = "claude-3-5-haiku-latest"


class LLMProvider(str, Enum):
    LOCAL = "local"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class Message(BaseModel):
    role: str  # system, user, assistant
    content: str


class LLMResponse(BaseModel):
    content: str
    model: str
    usage: Optional[Dict[str, int]] = None
    finish_reason: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        if not self.usage:
            return 0
        if "total_tokens" in self.usage:
            return self.usage["total_tokens"]
        return self.usage.get("prompt_tokens", 0) + self.usage.get("completion_tokens", 0)


@dataclass
class LLMConfig:
    provider: LLMProvider
    base_url: str
    api_key: str
    model: str
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout: float = 60.0


@dataclass
class ProviderResult:
    """Text returned by a content-analysis provider."""
    text: str
    tokens_used: int
    provider: str
    model: str


class LLMClient:
    """Base content-analysis provider over an HTTP chat API."""

    # USD per 1000 tokens, used for usage accounting
    COST_PER_1K_TOKENS = 0.01

    def __init__(
        self,
        config: LLMConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider_name(self) -> str:
        return self.config.provider.value

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                headers=self._get_headers(),
                transport=self.transport,
            )
        return self._client

    def _get_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send chat completion request."""
        raise NotImplementedError

    async def analyze(self, prompt: str) -> ProviderResult:
        """
        Run one analysis prompt.

        Raises:
            AnalysisError: if the provider call fails or returns an unexpected shape
        """
        messages = [
            Message(role="system", content=SEO_SYSTEM_PROMPT),
            Message(role="user", content=prompt),
        ]
        try:
            response = await self.chat(messages, json_mode=True)
        except (httpx.HTTPError, AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"[LLM] {self.provider_name} call failed: {e}")
            raise AnalysisError(f"{self.provider_name} analysis failed: {e}") from e

        logger.info(
            f"[LLM] {self.provider_name} ({response.model}) used {response.total_tokens} tokens"
        )
        return ProviderResult(
            text=response.content,
            tokens_used=response.total_tokens,
            provider=self.provider_name,
            model=response.model,
        )

    def estimate_cost(self, tokens: int) -> float:
        return tokens / 1000 * self.COST_PER_1K_TOKENS

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class OpenAICompatibleClient(LLMClient):
    """Chat completions API (OpenAI and LM Studio)."""

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        if self.config.api_key and self.config.api_key != "not-needed":
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        client = await self._get_client()
        url = f"{self.config.base_url}/chat/completions"

        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature if temperature is not None else self.config.temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }

        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        response = await client.post(url, json=payload)
        response.raise_for_status()
        data = response.json()

        choice = data["choices"][0]
        return LLMResponse(
            content=choice["message"]["content"] or "",
            model=data.get("model", self.config.model),
            usage=data.get("usage"),
            finish_reason=choice.get("finish_reason"),
        )


class AnthropicClient(LLMClient):
    """Anthropic Messages API."""

    COST_PER_1K_TOKENS = 0.003

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        headers["x-api-key"] = self.config.api_key
        headers["anthropic-version"] = "2023-06-01"
        return headers

    async def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        client = await self._get_client()
        url = f"{self.config.base_url}/messages"

        # Extract system message if present
        system_message = None
        chat_messages = []
        for m in messages:
            if m.role == "system":
                system_message = m.content
            else:
                chat_messages.append({"role": m.role, "content": m.content})

        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": chat_messages,
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": temperature if temperature is not None else self.config.temperature,
        }

        if system_message:
            payload["system"] = system_message

        response = await client.post(url, json=payload)
        response.raise_for_status()
        data = response.json()

        content = "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )
        usage = data.get("usage", {})
        return LLMResponse(
            content=content,
            model=data.get("model", self.config.model),
            usage={
                "prompt_tokens": usage.get("input_tokens", 0),
                "completion_tokens": usage.get("output_tokens", 0),
            },
            finish_reason=data.get("stop_reason"),
        )


def create_llm_client(
    config_settings: Settings = settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Optional[LLMClient]:
    """
    Build the configured content-analysis provider.

    Returns None when the provider needs credentials that are not set, in
    which case content analysis falls back to default signals.
    """
    try:
        provider = LLMProvider(config_settings.LLM_PROVIDER.lower())
    except ValueError:
        logger.warning(f"[LLM] Unknown provider '{config_settings.LLM_PROVIDER}', AI analysis disabled")
        return None

    api_key = config_settings.llm_api_key
    if provider != LLMProvider.LOCAL and not api_key:
        logger.info(f"[LLM] No API key for {provider.value}, AI analysis disabled")
        return None

    base_url = config_settings.LLM_BASE_URL.rstrip("/")
    model = config_settings.LLM_MODEL

    if provider == LLMProvider.ANTHROPIC:
        if base_url == OPENAI_DEFAULT_BASE_URL:
            base_url = ANTHROPIC_DEFAULT_BASE_URL
        if model.startswith("gpt"):
            model = ANTHROPIC_DEFAULT_MODEL
        client_class = AnthropicClient
    else:
        client_class = OpenAICompatibleClient

    config = LLMConfig(
        provider=provider,
        base_url=base_url,
        api_key=api_key,
        model=model,
        timeout=config_settings.LLM_TIMEOUT,
    )
    logger.info(f"[LLM] Using {provider.value} provider with model {model}")
    return client_class(config, transport=transport)
