"""OpenAI Responses API client for face matching."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from eventlens.services.matching import MatchClient


@dataclass
class OpenAIMatchClient(MatchClient):
    """Match client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIMatchClient":
        """Create an OpenAI match client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def find_matches(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        reference_data_urls: list[str],
        candidate_data_urls: list[str],
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Send reference images, then candidates, then the instructions."""
        content: list[dict[str, object]] = [
            {"type": "input_image", "image_url": url}
            for url in [*reference_data_urls, *candidate_data_urls]
        ]
        content.append({"type": "input_text", "text": prompt})
        request_payload: dict[str, object] = {
            "model": model,
            "input": [{"role": "user", "content": content}],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "face_matches",
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return json.loads(output_text)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
