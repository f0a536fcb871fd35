#!/usr/bin/env python3
"""
Knowledge Base Preview Script

Runs the context pipeline for one query against Box attachments and prints
the resolved files and the combined text the assistant would receive.
Useful for checking folder permissions, ranking and extraction output.

Usage:
    python scripts/preview_context.py "balance sheet Q2" --folder 12345 [--file 678] [--client widget]
"""

import sys
import asyncio
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


async def run(args) -> int:
    from assistant.common.config import load_config, resolve_client_kind, ConfigError
    from assistant.common.schemas import AttachmentRef
    from assistant.pipeline import build_pipeline

    try:
        config = load_config()
    except ConfigError as e:
        print(f"[Preview] ERROR: invalid configuration: {e}")
        return 1

    pipeline = build_pipeline(config)
    if not pipeline.box_client.is_configured:
        print("[Preview] ERROR: BOX_ACCESS_TOKEN is not set")
        await pipeline.aclose()
        return 1

    refs = [AttachmentRef(type="box_file", id=f) for f in args.file]
    refs += [AttachmentRef(type="box_folder", id=f) for f in args.folder]
    client_kind = resolve_client_kind(args.client)

    try:
        files = await pipeline.resolver.resolve_attachments(args.query, refs, client_kind)
        print(f"[Preview] Resolved {len(files)} file(s) for client '{client_kind}':")
        for f in files:
            print(f"  - {f.name} ({f.id}, {f.size or '?'} bytes)")

        if args.resolve_only:
            return 0

        kb = await pipeline.orchestrator.extract_text_for_client(args.query, refs, client_kind, resolved=files)
        print(f"[Preview] Source: {kb.source}, {len(kb.combined_text)} chars, partial={kb.partial}")
        print(f"[Preview] Citations: {', '.join(kb.citations) or '(none)'}")
        print()
        print(kb.combined_text[:args.max_print] if kb.combined_text else "(empty knowledge base)")
    finally:
        await pipeline.aclose()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Preview the assistant knowledge base for a query")
    parser.add_argument("query", help="User query used for ranking")
    parser.add_argument("--file", action="append", default=[], help="Box file id (repeatable)")
    parser.add_argument("--folder", action="append", default=[], help="Box folder id (repeatable)")
    parser.add_argument("--client", default="assistant", choices=["widget", "assistant"], help="Client kind")
    parser.add_argument("--resolve-only", action="store_true", help="Only list the resolved files")
    parser.add_argument("--max-print", type=int, default=4000, help="Characters of combined text to print")
    args = parser.parse_args()

    if not args.file and not args.folder:
        parser.error("at least one --file or --folder is required")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
