#!/usr/bin/env python3
"""
Process a reel locally (no API server)

Builds the same browser pool, queue and pipeline the API uses, runs one
post URL through it and writes the knowledge artifact as JSON.

Usage:
    python3 scripts/process_reel_cli.py <url> [options]

Examples:
    python3 scripts/process_reel_cli.py "https://www.instagram.com/reel/C8abc123xyz/"
    python3 scripts/process_reel_cli.py "https://www.instagram.com/p/C8abc123xyz/" --output reel.json
    python3 scripts/process_reel_cli.py "https://www.instagram.com/reel/C8abc123xyz/" --verbose

Options:
    --output FILE   Write the artifact JSON to FILE instead of stdout
    --verbose       Log at DEBUG level

Environment Variables:
    ANTHROPIC_API_KEY           Caption analysis, entities and summary
    DEEPGRAM_API_KEY            Transcription
    OPENAI_API_KEY              Frame OCR
    SUPABASE_URL                Frame and thumbnail storage
    SUPABASE_SERVICE_ROLE_KEY   Frame and thumbnail storage
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.services.reel_service import ReelService
from core.config import Config
from core.errors import PipelineError, ReelPipelineError
from core.url_utils import validate_post_url


def format_timings(timings: dict) -> str:
    parts = [f"{key[:-3]}={value}ms" for key, value in timings.items() if key != 'total_ms']
    return ", ".join(parts)


async def process_reel(url: str) -> dict:
    """Run one URL through a locally built service and return the artifact dict"""
    service = ReelService.from_config()
    try:
        artifact = await service.submit(url, requester="cli")
    finally:
        await service.shutdown()
    return artifact.to_dict()


def main():
    parser = argparse.ArgumentParser(
        description='Process a reel locally and print its knowledge artifact',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('url', help='Post URL to process')
    parser.add_argument('--output', '-o', help='Write the artifact JSON to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    args = parser.parse_args()

    load_dotenv('.env.local')
    if args.verbose:
        os.environ['LOG_LEVEL'] = 'DEBUG'
    Config.setup_logging(Path(__file__).parent.parent / 'logs', 'cli.log')

    try:
        url = validate_post_url(args.url)
    except ReelPipelineError as e:
        print(f"❌ {e.message}")
        sys.exit(2)

    print(f"\n🎬 Processing: {url}\n")

    try:
        result = asyncio.run(process_reel(url))
    except PipelineError as e:
        print(f"❌ Failed at step '{e.step}': {e.root_cause}")
        sys.exit(1)
    except ReelPipelineError as e:
        print(f"❌ {e.error_code}: {e.message}")
        sys.exit(1)
    except ValueError as e:
        # Missing API keys surface here from the client constructors
        print(f"❌ Configuration error: {e}")
        sys.exit(1)

    output = json.dumps(result, indent=2, ensure_ascii=False, default=str)
    if args.output:
        Path(args.output).write_text(output, encoding='utf-8')
        print(f"💾 Saved artifact to {args.output}")
    else:
        print(output)

    timings = result.get('timings', {})
    print()
    print(f"✅ Processing complete: {result['summary']['title']}")
    print(f"   Total: {timings.get('total_ms', 0) / 1000:.1f}s ({format_timings(timings)})")
    degraded = result.get('processing', {}).get('degraded_stages') or []
    if degraded:
        print(f"   ⚠️ Degraded stages: {', '.join(degraded)}")


if __name__ == "__main__":
    main()
