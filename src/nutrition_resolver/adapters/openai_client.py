"""OpenAI Responses API client for text completions."""

from dataclasses import dataclass
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from nutrition_resolver.errors import UpstreamUnavailable


class LlmClient(Protocol):
    """Interface for free-text LLM completions."""

    async def complete(
        self,
        *,
        model: str,
        instructions: str,
        prompt: str,
        web_search: bool = False,
        max_output_tokens: int | None = None,
    ) -> str:
        """Return the model's text output."""


@dataclass
class OpenAILlmClient(LlmClient):
    """LLM client backed by the OpenAI Responses API."""

    client: AsyncOpenAI
    store: bool = False

    @classmethod
    def create(cls, api_key: str, store: bool = False) -> "OpenAILlmClient":
        """Create an OpenAI LLM client."""
        return cls(client=AsyncOpenAI(api_key=api_key), store=store)

    async def complete(
        self,
        *,
        model: str,
        instructions: str,
        prompt: str,
        web_search: bool = False,
        max_output_tokens: int | None = None,
    ) -> str:
        """Call the Responses API, optionally grounded with web search."""
        request_payload: dict[str, object] = {
            "model": model,
            "instructions": instructions,
            "input": prompt,
            "store": self.store,
        }
        if web_search:
            request_payload["tools"] = [{"type": "web_search"}]
        if max_output_tokens:
            request_payload["max_output_tokens"] = max_output_tokens

        try:
            response = await self.client.responses.create(**request_payload)
        except OpenAIError as exc:
            raise UpstreamUnavailable(
                f"OpenAI request failed: {exc}",
                status_code=getattr(exc, "status_code", None),
            ) from exc
        output_text = response.output_text
        if not output_text:
            raise UpstreamUnavailable("OpenAI returned an empty response")
        return output_text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
