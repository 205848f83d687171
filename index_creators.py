#!/usr/bin/env python3
"""
Creator Index Script
Rebuilds the LanceDB creator vector index from the Postgres creator tables,
or looks up indexed creators by id.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from app.config import settings
from app.core.creator_store import CreatorStore
from app.core.embeddings import EmbeddingClient
from app.core.vector_index import CreatorVectorIndex, vector_id_for
from app.services.indexing import CreatorIndexer


def format_record(record: dict) -> str:
    """Format an indexed creator for display"""
    metadata = record.get("metadata", {})
    output = []
    output.append(f"Creator: {metadata.get('creator_name', 'N/A')} ({metadata.get('creator_id', 'N/A')})")
    output.append(f"Niche: {metadata.get('niche', 'N/A')} | Tier: {metadata.get('tier', 'N/A')}")
    output.append(f"Platform: {metadata.get('primary_platform', 'N/A')}")
    output.append(f"Followers: {metadata.get('follower_count', 'N/A')}")
    output.append(f"Engagement: {metadata.get('engagement_rate', 'N/A')}")
    output.append(f"Sponsored post rate: {metadata.get('sponsored_post_rate', 'N/A')}")
    output.append(f"Vector dimension: {len(record.get('values') or [])}")
    return "\n".join(output)


async def rebuild(args: argparse.Namespace) -> int:
    store = CreatorStore(args.database_url)
    index = CreatorVectorIndex(args.db_path, args.table)
    indexer = CreatorIndexer(index, EmbeddingClient(), batch_size=args.batch_size)

    try:
        if args.ids:
            creators = []
            for creator_id in args.ids:
                creator = await store.get_by_id(creator_id)
                if creator is None:
                    print(f"Creator not found: {creator_id}")
                    continue
                creators.append(creator)
            results = await indexer.embed_creators(creators)
        else:
            results = await indexer.rebuild_from_store(store, page_size=args.page_size, limit=args.limit)
    finally:
        await store.close()

    print(f"\nEmbedding completed. Success: {results['successful']}, Failed: {results['failed']}")
    for error in results["errors"]:
        print(f"  • {error['creator_id']} ({error['creator_name']}): {error['error']}")
    return 0 if results["failed"] == 0 else 1


async def show(args: argparse.Namespace) -> int:
    index = CreatorVectorIndex(args.db_path, args.table)
    records = await index.fetch(vector_id_for(creator_id) for creator_id in args.ids)
    if not records:
        print("No results found.")
        return 1

    if args.json:
        print(json.dumps(records, indent=2, default=str))
    else:
        for i, record in enumerate(records.values(), 1):
            print(f"\nResult {i}:")
            print("-" * 30)
            print(format_record(record))
    return 0


async def stats(args: argparse.Namespace) -> int:
    index = CreatorVectorIndex(args.db_path, args.table)
    print(json.dumps(await index.stats(), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    parser = argparse.ArgumentParser(description="Maintain the creator vector index")
    parser.add_argument("--db-path", default=settings.LANCEDB_PATH, help="Path to LanceDB database")
    parser.add_argument("--table", default=settings.VECTOR_TABLE_NAME, help="Vector table name")
    subparsers = parser.add_subparsers(dest="command", required=True)

    rebuild_parser = subparsers.add_parser("rebuild", help="Embed creators from Postgres into the index")
    rebuild_parser.add_argument("--database-url", default=settings.DATABASE_URL, help="Postgres DSN")
    rebuild_parser.add_argument("--ids", nargs="*", help="Only embed these creator ids")
    rebuild_parser.add_argument("--limit", type=int, default=None, help="Maximum creators to embed")
    rebuild_parser.add_argument("--page-size", type=int, default=100, help="Creators fetched per page")
    rebuild_parser.add_argument("--batch-size", type=int, default=settings.INDEX_BATCH_SIZE)
    rebuild_parser.set_defaults(handler=rebuild)

    show_parser = subparsers.add_parser("show", help="Show indexed creators by id")
    show_parser.add_argument("ids", nargs="+", help="Creator ids")
    show_parser.add_argument("--json", action="store_true", help="Output results in JSON format")
    show_parser.set_defaults(handler=show)

    stats_parser = subparsers.add_parser("stats", help="Print index statistics")
    stats_parser.set_defaults(handler=stats)

    args = parser.parse_args(argv)
    return asyncio.run(args.handler(args))


if __name__ == "__main__":
    sys.exit(main())
