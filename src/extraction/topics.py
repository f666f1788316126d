"""Claude-powered topic extraction for podcast transcripts."""

from __future__ import annotations

import json
from typing import Any

from anthropic import AsyncAnthropic

from src.retrieval.generation import truncate_to_token_limit

MAX_TOPICS = 10

# Tool definition for Claude structured output
TOPICS_TOOL: dict[str, Any] = {
    "name": "store_topics",
    "description": (
        "Store the main topics discussed in a podcast transcript. "
        "Call this once with all topics."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "topics": {
                "type": "array",
                "description": "5-10 short topic names, 2-4 words each.",
                "items": {"type": "string"},
            },
        },
        "required": ["topics"],
    },
}

SYSTEM_PROMPT = (
    "You are a podcast analysis assistant. Extract the 5-10 main topics "
    "discussed in the transcript provided. Each topic is a short phrase of "
    "2-4 words. Use the store_topics tool to return your results."
)


async def extract_topics(client: AsyncAnthropic, model: str, transcript: str) -> list[str]:
    """Extract up to ten topic strings from a transcript using Claude.

    Returns an empty list for an empty transcript without calling the model.
    """
    if not transcript or not transcript.strip():
        return []

    response = await client.messages.create(
        model=model,
        max_tokens=500,
        system=SYSTEM_PROMPT,
        tools=[TOPICS_TOOL],  # type: ignore[list-item]
        tool_choice={"type": "tool", "name": "store_topics"},
        messages=[
            {
                "role": "user",
                "content": (
                    "Extract topics from this podcast transcript:\n\n"
                    f"{truncate_to_token_limit(transcript)}"
                ),
            }
        ],
    )
    return _parse_tool_response(response)


def _parse_tool_response(response: Any) -> list[str]:
    """Collect string topics from the store_topics tool_use block."""
    topics: list[str] = []

    for block in response.content:
        if block.type != "tool_use" or block.name != "store_topics":
            continue

        data = block.input
        if isinstance(data, str):
            data = json.loads(data)

        topics.extend(t.strip() for t in data.get("topics", []) if isinstance(t, str) and t.strip())

    return topics[:MAX_TOPICS]
