"""OpenAI Responses API client for condition diet analysis."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from nutrition_planner.services.conditions import ConditionAnalysisClient


@dataclass
class OpenAIConditionClient(ConditionAnalysisClient):
    """Condition analysis backed by OpenAI structured outputs."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIConditionClient":
        """Create an OpenAI condition analysis client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def analyze(
        self,
        *,
        model: str,
        prompt: str,
        schema: dict[str, object],
    ) -> dict[str, object]:
        """Call OpenAI Responses API and parse the JSON output."""
        response = await self.client.responses.create(
            model=model,
            input=[
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": prompt}],
                }
            ],
            text={
                "format": {
                    "type": "json_schema",
                    "name": "condition_diet",
                    "strict": True,
                    "schema": schema,
                }
            },
            store=False,
        )
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return json.loads(output_text)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
