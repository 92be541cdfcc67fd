"""
OpenRouter chat-completions client for vision models.

OpenRouter speaks the OpenAI API, so requests go through the openai SDK with
its own retries disabled; this client retries rate limits, server errors and
network failures itself and reports token cost per call.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from openai import OpenAI, APIConnectionError, APIStatusError, APITimeoutError

from homematch.config.settings import settings
from homematch.modules.vibes.schemas import TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_VIBES_MODEL = "qwen/qwen3-vl-8b-instruct"
PRICING_FALLBACK_MODEL = "openai/gpt-4o-mini"

# USD per 1M tokens
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "qwen/qwen3-vl-8b-instruct": {"input": 0.064, "output": 0.4},
    "qwen/qwen2.5-vl-32b-instruct": {"input": 0.2, "output": 0.6},
    "meta-llama/llama-3.2-11b-vision-instruct": {"input": 0.05, "output": 0.05},
    "google/gemma-3-27b-it:free": {"input": 0, "output": 0},
    "openai/gpt-4o-mini": {"input": 0.15, "output": 0.6},
    "openai/gpt-4o": {"input": 2.5, "output": 10},
    "anthropic/claude-3-haiku": {"input": 0.25, "output": 1.25},
    "anthropic/claude-3-sonnet": {"input": 3, "output": 15},
}

DEFAULT_RETRY_AFTER_SEC = 5


class OpenRouterError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    pricing = MODEL_PRICING.get(model) or MODEL_PRICING[PRICING_FALLBACK_MODEL]
    return (prompt_tokens / 1_000_000) * pricing["input"] + (completion_tokens / 1_000_000) * pricing["output"]


def create_vision_message(prompt: str, image_urls: List[str], detail: str = "low") -> Dict[str, Any]:
    content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
    for url in image_urls:
        content.append({"type": "image_url", "image_url": {"url": url, "detail": detail}})
    return {"role": "user", "content": content}


class OpenRouterClient:
    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        max_retries: int = 3,
        timeout_sec: float = 120.0,
        client: Optional[OpenAI] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.default_model = default_model or DEFAULT_VIBES_MODEL
        self.max_retries = max_retries
        self._sleep = sleep
        self.client = client or OpenAI(
            base_url=base_url or "https://openrouter.ai/api/v1",
            api_key=api_key,
            timeout=timeout_sec,
            max_retries=0,
            default_headers={
                "HTTP-Referer": "https://homematch.pro",
                "X-Title": "HomeMatch Property Vibes",
            },
        )

    def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        response_format: Optional[Dict[str, str]] = None,
    ) -> Tuple[str, TokenUsage, float]:
        """Run one completion. Returns (content, usage, estimated cost in USD)."""
        model = model or self.default_model
        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            kwargs["response_format"] = response_format

        start = time.monotonic()
        response = self._create_with_retry(kwargs)

        usage = TokenUsage(
            promptTokens=getattr(response.usage, "prompt_tokens", 0) or 0,
            completionTokens=getattr(response.usage, "completion_tokens", 0) or 0,
            totalTokens=getattr(response.usage, "total_tokens", 0) or 0,
        )
        cost = estimate_cost(model, usage.promptTokens, usage.completionTokens)
        logger.debug(
            f"Model: {model}, Tokens: {usage.totalTokens}, Cost: ${cost:.4f}, "
            f"Time: {int((time.monotonic() - start) * 1000)}ms"
        )
        content = response.choices[0].message.content if response.choices else None
        return content or "", usage, cost

    def _create_with_retry(self, kwargs: Dict[str, Any]):
        attempt = 1
        while True:
            try:
                return self.client.chat.completions.create(**kwargs)
            except APIStatusError as e:
                status = e.status_code
                if status == 429 and attempt < self.max_retries:
                    wait = self._retry_after(e)
                    logger.warning(f"Rate limited. Waiting {wait}s before retry {attempt + 1}/{self.max_retries}")
                    self._sleep(wait)
                elif status >= 500 and attempt < self.max_retries:
                    wait = 2 ** attempt
                    logger.warning(f"Server error {status}. Retrying in {wait}s...")
                    self._sleep(wait)
                else:
                    raise OpenRouterError(f"OpenRouter API error: {status} - {e.message}", status) from e
            except APITimeoutError as e:
                raise OpenRouterError("Request timed out", 408) from e
            except APIConnectionError as e:
                if attempt >= self.max_retries:
                    raise OpenRouterError(f"Request failed: {e}") from e
                wait = 2 ** attempt
                logger.warning(f"Network error. Retrying in {wait}s... ({e})")
                self._sleep(wait)
            attempt += 1

    @staticmethod
    def _retry_after(error: APIStatusError) -> float:
        header = error.response.headers.get("retry-after") if error.response is not None else None
        try:
            return float(header) if header else DEFAULT_RETRY_AFTER_SEC
        except ValueError:
            return DEFAULT_RETRY_AFTER_SEC


def create_openrouter_client(api_key: Optional[str] = None, model: Optional[str] = None) -> OpenRouterClient:
    key = api_key or settings.openrouter_api_key
    if not key:
        raise ValueError("OpenRouter API key is required. Set OPENROUTER_API_KEY environment variable.")
    return OpenRouterClient(
        api_key=key,
        base_url=settings.openrouter_base_url,
        default_model=model or settings.openrouter_model or DEFAULT_VIBES_MODEL,
        max_retries=settings.openrouter_max_retries,
        timeout_sec=settings.openrouter_timeout_sec,
    )
