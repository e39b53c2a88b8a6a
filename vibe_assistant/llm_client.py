# vibe_assistant/llm_client.py

import logging
import time
from typing import Any, Dict, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from openai import OpenAI

logger = logging.getLogger("vibe_assistant")

_ROLES = (
    (SystemMessage, "system"),
    (HumanMessage, "user"),
    (AIMessage, "assistant"),
)


def _role_for(message: BaseMessage) -> str:
    for message_type, role in _ROLES:
        if isinstance(message, message_type):
            return role
    return "user"


class ChatLlmClient:
    """
    Chat completions over an OpenAI-compatible API (OpenAI itself, or OpenRouter when
    a base_url is given):

        text = llm.invoke([SystemMessage(...), HumanMessage(...)], temperature=0.3)

    No retries: openai SDK errors reach the caller, which maps them to user messages.
    """

    def __init__(
        self,
        model_name: str,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        max_tokens: int = 64000,
        client: Any = None,
    ):
        self.model_name = model_name
        self.max_tokens = max_tokens

        if client is None:
            options: Dict[str, Any] = {
                "api_key": api_key,
                "base_url": base_url,
                "default_headers": default_headers,
                "timeout": timeout,
            }
            client = OpenAI(max_retries=0, **{k: v for k, v in options.items() if v})
        self._client = client

    def invoke(
        self,
        messages: Sequence[BaseMessage],
        *,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        started = time.monotonic()
        response = self._client.chat.completions.create(
            model=self.model_name,
            messages=[{"role": _role_for(m), "content": str(m.content)} for m in messages],
            temperature=temperature,
            max_tokens=max_tokens or self.max_tokens,
        )

        text = (response.choices[0].message.content or "").strip()
        usage = getattr(response, "usage", None)
        logger.debug(
            "LLM call model=%s took %.2fs (%d chars, %s tokens)",
            self.model_name, time.monotonic() - started, len(text),
            getattr(usage, "total_tokens", "?"),
        )
        return text

    @classmethod
    def from_settings(cls, settings) -> "ChatLlmClient":
        api_key = settings.llm_api_key
        if not api_key:
            # some free OpenRouter models accept any key; OpenAI answers 401
            logger.warning("No API key configured for model %s", settings.model_name)
            api_key = "sk-or-v1-dummy" if settings.uses_openrouter else "missing-api-key"
        logger.info(
            "Using %s model: %s",
            "OpenRouter" if settings.uses_openrouter else "OpenAI",
            settings.model_name,
        )
        return cls(
            settings.model_name,
            api_key=api_key,
            base_url=settings.llm_base_url,
            default_headers=settings.llm_default_headers,
            timeout=settings.llm_timeout,
            max_tokens=settings.max_tokens,
        )
