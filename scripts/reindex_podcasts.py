"""Re-index podcasts stuck in processing (or left in error) from the command line."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import configure_logging, get_settings
from src.ingestion.pipeline import run_indexing_job
from src.retry import deadline_after
from src.services import build_services
from src.status import PodcastStatus


async def reindex_podcasts(
    podcast_ids: list[str],
    user_id: str | None,
    stuck: bool,
    timeout: float | None,
) -> int:
    """Re-index the given podcasts (or every stuck one) and return the error count."""
    services = await build_services(get_settings())

    targets: list[tuple[str, str]] = []
    for podcast_id in podcast_ids:
        podcast = await services.store.get_podcast(podcast_id)
        if podcast is None:
            print(f"  SKIP {podcast_id} -- not found")
            continue
        targets.append((podcast_id, user_id or podcast["user_id"]))

    if stuck:
        rows = await services.store.list_podcasts_by_status(
            [PodcastStatus.PROCESSING, PodcastStatus.ERROR]
        )
        targets.extend((row["id"], row["user_id"]) for row in rows)

    errors = 0
    for i, (podcast_id, owner_id) in enumerate(targets):
        try:
            count = await run_indexing_job(
                services.writer,
                services.store,
                podcast_id,
                owner_id,
                deadline=deadline_after(timeout),
            )
            print(f"  [{i + 1}/{len(targets)}] Reindexed {podcast_id} -- {count} chunks")
        except Exception as e:
            errors += 1
            print(f"  [{i + 1}/{len(targets)}] ERROR {podcast_id}: {e}")

    print(f"\nDone! Reindexed {len(targets) - errors} podcasts, {errors} errors.")
    return errors


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("podcast_ids", nargs="*")
    parser.add_argument("--user-id", default=None, help="Owner to act as (defaults to the podcast's owner)")
    parser.add_argument("--stuck", action="store_true", help="Also reindex every processing/error podcast")
    parser.add_argument("--timeout", type=float, default=None, help="Per-podcast deadline in seconds")
    args = parser.parse_args()

    if not args.podcast_ids and not args.stuck:
        parser.error("pass podcast ids or --stuck")

    configure_logging()
    failed = asyncio.run(reindex_podcasts(args.podcast_ids, args.user_id, args.stuck, args.timeout))
    sys.exit(1 if failed else 0)
