"""Supabase storage for podcasts and their transcript chunks."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, cast

from postgrest import CountMethod
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from src.errors import PersistenceError
from src.status import PodcastStatus

logger = logging.getLogger(__name__)

PODCASTS_TABLE = "podcasts"
CHUNKS_TABLE = "podcast_chunks"
MATCH_FUNCTION = "match_chunks"


async def get_supabase_client(url: str, key: str) -> AsyncClient:
    """Create an async Supabase client."""
    return await acreate_client(url, key)


class PodcastStore:
    """Reads and writes podcast rows and chunk rows.

    Every chunk read filters on the owning user through the ``podcasts``
    join; chunks are only ever deleted or inserted, never updated.
    """

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    # -- podcasts -----------------------------------------------------------

    async def get_podcast(self, podcast_id: str) -> dict[str, Any] | None:
        """Return the podcast row, or None if it does not exist."""
        try:
            result = (
                await self._client.table(PODCASTS_TABLE)
                .select("id, user_id, title, status, audio_url, transcript, transcript_words")
                .eq("id", podcast_id)
                .limit(1)
                .execute()
            )
        except APIError as exc:
            raise PersistenceError(f"Failed to fetch podcast {podcast_id}: {exc.message}") from exc
        rows = cast(list[dict[str, Any]], result.data)
        return rows[0] if rows else None

    async def update_podcast(self, podcast_id: str, values: dict[str, Any]) -> None:
        """Update arbitrary podcast columns and bump ``updated_at``."""
        payload = {**values, "updated_at": datetime.now(UTC).isoformat()}
        try:
            await self._client.table(PODCASTS_TABLE).update(payload).eq("id", podcast_id).execute()
        except APIError as exc:
            raise PersistenceError(f"Failed to update podcast {podcast_id}: {exc.message}") from exc

    async def set_status(
        self,
        podcast_id: str,
        status: PodcastStatus,
        error_message: str | None = None,
    ) -> None:
        """Write the processing status. Transition rules are checked by callers."""
        await self.update_podcast(
            podcast_id, {"status": status.value, "error_message": error_message}
        )

    async def list_podcasts_by_status(self, statuses: list[PodcastStatus]) -> list[dict[str, Any]]:
        try:
            result = (
                await self._client.table(PODCASTS_TABLE)
                .select("id, user_id, title, status")
                .in_("status", [s.value for s in statuses])
                .order("created_at", desc=True)
                .execute()
            )
        except APIError as exc:
            raise PersistenceError(f"Failed to list podcasts: {exc.message}") from exc
        return cast(list[dict[str, Any]], result.data)

    async def get_podcast_titles(self, podcast_ids: list[str]) -> dict[str, str]:
        if not podcast_ids:
            return {}
        try:
            result = (
                await self._client.table(PODCASTS_TABLE)
                .select("id, title")
                .in_("id", podcast_ids)
                .execute()
            )
        except APIError as exc:
            raise PersistenceError(f"Failed to fetch podcast titles: {exc.message}") from exc
        return {r["id"]: r["title"] for r in cast(list[dict[str, Any]], result.data)}

    # -- chunks -------------------------------------------------------------

    async def delete_chunks(self, podcast_id: str) -> None:
        """Delete every chunk of a podcast. A podcast with no chunks is a no-op."""
        try:
            await self._client.table(CHUNKS_TABLE).delete().eq("podcast_id", podcast_id).execute()
        except APIError as exc:
            raise PersistenceError(
                f"Failed to delete chunks for podcast {podcast_id}: {exc.message}"
            ) from exc

    async def insert_chunks(self, rows: list[dict[str, Any]]) -> None:
        """Insert one batch of chunk rows."""
        if not rows:
            return
        try:
            await self._client.table(CHUNKS_TABLE).insert(rows).execute()
        except APIError as exc:
            raise PersistenceError(f"Failed to insert chunks: {exc.message}") from exc

    async def count_chunks(self, podcast_id: str) -> int:
        try:
            result = (
                await self._client.table(CHUNKS_TABLE)
                .select("id", count=CountMethod.exact)
                .eq("podcast_id", podcast_id)
                .execute()
            )
        except APIError as exc:
            raise PersistenceError(
                f"Failed to count chunks for podcast {podcast_id}: {exc.message}"
            ) from exc
        return result.count or 0

    async def match_chunks(
        self,
        query_embedding: list[float],
        user_id: str,
        match_count: int,
        match_threshold: float,
        podcast_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Nearest-neighbour search through the ``match_chunks`` SQL function.

        Errors propagate unchanged so the caller can fall back.
        """
        result = await self._client.rpc(
            MATCH_FUNCTION,
            {
                "query_embedding": query_embedding,
                "match_threshold": match_threshold,
                "match_count": match_count,
                "filter_user_id": user_id,
                "filter_podcast_id": podcast_id,
            },
        ).execute()
        # Supabase .data is typed as JSON (broad union); cast to concrete type.
        return cast(list[dict[str, Any]], result.data or [])

    async def list_user_chunks(
        self,
        user_id: str,
        limit: int,
        podcast_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Most recent chunks from podcasts owned by *user_id*."""
        query = (
            self._client.table(CHUNKS_TABLE)
            .select(
                "id, podcast_id, content, start_time, end_time, chunk_index, "
                "podcasts!inner(title, user_id)"
            )
            .eq("podcasts.user_id", user_id)
        )
        if podcast_id:
            query = query.eq("podcast_id", podcast_id)
        try:
            result = await query.order("created_at", desc=True).limit(limit).execute()
        except APIError as exc:
            raise PersistenceError(f"Failed to read chunks for user: {exc.message}") from exc
        return cast(list[dict[str, Any]], result.data or [])
