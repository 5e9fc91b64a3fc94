"""OpenAI-compatible decision oracle.

Sends one chat completion per candidate message with the allowed tools attached
and returns the model's tool selections. Works against any server speaking the
OpenAI chat completions API (vLLM, LM Studio, llama.cpp, OpenAI itself).
"""

from __future__ import annotations

from typing import Any, List

from openai import AsyncOpenAI

from modstream.configuration.ai_settings import AISettings
from modstream.datatypes.oracle_datatypes import OracleRequest, OracleResponse, OracleToolCall
from modstream.moderation.errors import OracleCallFailed
from modstream.util.logger import get_logger

logger = get_logger("openai_oracle")


def normalize_base_url(base_url: str) -> str:
    """Return ``base_url`` with a trailing ``/v1`` path segment."""
    url = base_url.rstrip("/")
    if not url.endswith("/v1"):
        url += "/v1"
    return url


class OpenAIOracle:
    """Decision oracle backed by an AsyncOpenAI client."""

    def __init__(self, settings: AISettings, client: Any | None = None) -> None:
        self._settings = settings
        self._model_name = settings.model_name
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=normalize_base_url(settings.base_url),
        )
        logger.info(
            "[ORACLE] Initialized with base_url=%s, model=%s",
            settings.base_url,
            self._model_name,
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    async def complete(self, request: OracleRequest) -> OracleResponse:
        """Submit one decision request and return the raw tool selections.

        Raises:
            OracleCallFailed: The response has no choices.
        """
        kwargs: dict[str, Any] = {
            "model": self._model_name,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }
        if request.tools:
            kwargs["tools"] = request.tools
            kwargs["tool_choice"] = "auto"

        response = await self._client.chat.completions.create(**kwargs)

        if not response.choices:
            raise OracleCallFailed("no choices in oracle response")

        message = response.choices[0].message
        tool_calls: List[OracleToolCall] = []
        for call in message.tool_calls or []:
            function = getattr(call, "function", None)
            if function is None:
                continue
            tool_calls.append(OracleToolCall(name=function.name, arguments=function.arguments or ""))

        logger.debug(
            "[ORACLE] %d tool call(s) returned: %s",
            len(tool_calls),
            ", ".join(call.name for call in tool_calls) or "none",
        )
        return OracleResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            model=getattr(response, "model", None),
        )
