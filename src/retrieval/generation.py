"""Claude-powered answer generation over retrieved podcast chunks."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from src.retrieval.search import SearchResult

# Rough context budget: 1 token ≈ 4 characters.
MAX_CONTEXT_TOKENS = 12000
MAX_HISTORY_MESSAGES = 10
SOURCE_PREVIEW_CHARS = 200

SYSTEM_PROMPT = (
    "You are a helpful assistant answering questions about podcast content. "
    "Use the provided context to answer questions accurately.\n\n"
    "Rules:\n"
    "- Only answer based on the provided context. If the context doesn't "
    "contain enough information to answer, say so.\n"
    "- Cite your sources using [Source N] notation.\n"
    "- Be concise and direct."
)


def truncate_to_token_limit(text: str, max_tokens: int = MAX_CONTEXT_TOKENS) -> str:
    max_chars = max_tokens * 4
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def format_context(results: Sequence[SearchResult]) -> str:
    """Render results as numbered ``[Source N - title]`` blocks."""
    return "\n\n".join(
        f"[Source {i + 1} - {r.podcast_title}]\n{r.content}" for i, r in enumerate(results)
    )


def format_sources(results: Sequence[SearchResult]) -> list[dict[str, Any]]:
    """Citation payloads with content cut to a short preview."""
    sources: list[dict[str, Any]] = []
    for r in results:
        preview = r.content[:SOURCE_PREVIEW_CHARS]
        if len(r.content) > SOURCE_PREVIEW_CHARS:
            preview += "..."
        sources.append(
            {
                "podcast_id": r.podcast_id,
                "podcast_title": r.podcast_title,
                "content": preview,
                "start_time": r.start_time,
                "similarity": r.similarity,
            }
        )
    return sources


async def generate_answer(
    client: AsyncAnthropic,
    model: str,
    question: str,
    results: Sequence[SearchResult],
    history: Sequence[dict[str, str]] | None = None,
) -> dict[str, Any]:
    """Generate an answer using Claude with source attribution.

    Args:
        client: Anthropic client.
        model: Model name.
        question: The user's question.
        results: Retrieved chunks, best first.
        history: Earlier ``{"role", "content"}`` turns; only the last ten are sent.

    Returns:
        Dictionary with answer, sources, model, and usage info.
    """
    context = truncate_to_token_limit(format_context(results))

    messages: list[dict[str, str]] = [
        {"role": m["role"], "content": m["content"]}
        for m in (history or [])[-MAX_HISTORY_MESSAGES:]
    ]
    messages.append(
        {
            "role": "user",
            "content": f"Context from podcast transcripts:\n\n{context}\n\nQuestion: {question}",
        }
    )

    response = await client.messages.create(
        model=model,
        max_tokens=1024,
        system=SYSTEM_PROMPT,
        messages=messages,  # type: ignore[arg-type]
    )

    # response.content[0] is a union of block types; we only request plain text.
    block = response.content[0]
    if not isinstance(block, TextBlock):
        raise ValueError(f"Expected TextBlock from Claude, got {type(block).__name__}")

    return {
        "answer": block.text.strip(),
        "sources": format_sources(results),
        "model": response.model,
        "usage": {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        },
    }
