#!/usr/bin/env python3
"""Watch the HRM server time from the command line.

Subscribes to the shared server-time stream and prints every refresh,
or fetches the time once.  Several ``--consumers`` can be attached to
show that they share a single request per refresh interval.

Usage
-----
::

    export HRM_API_URL="https://metrics.example.com"   # optional
    python scripts/watch_server_time.py --count 3

Options::

    --once               Fetch once (bypasses the shared stream) and exit
    --count N            Stop after N refreshes (default: run until Ctrl+C)
    --interval SECONDS   Override the refresh interval
    --consumers N        Number of subscribers attached to the stream
    --json               Output raw payloads as JSON
    --links              Also print the sibling application links
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from hrmtime import FetchFailed, ServerTime, TimeClient, TimeClientConfig  # noqa: E402


def _render(server_time: ServerTime, *, json_mode: bool, consumer: int | None = None) -> str:
    if json_mode:
        data: dict[str, Any] = dict(server_time.raw)
        if consumer is not None:
            data["consumer"] = consumer
        return json.dumps(data, default=str, ensure_ascii=False)
    prefix = f"[{consumer}] " if consumer is not None else ""
    version = f" v{server_time.schema_version}" if server_time.schema_version else ""
    return f"{prefix}{server_time.source_label}{version}: {server_time.format_local()}"


async def _watch(client: TimeClient, *, consumers: int, count: int | None, json_mode: bool) -> None:
    stream = client.server_time_stream()
    subscriptions = [stream.subscribe() for _ in range(consumers)]

    async def _consume(index: int) -> None:
        received = 0
        async for server_time in subscriptions[index]:
            print(_render(server_time, json_mode=json_mode, consumer=index if consumers > 1 else None))
            received += 1
            if count is not None and received >= count:
                subscriptions[index].cancel()

    try:
        await asyncio.gather(*(_consume(i) for i in range(consumers)))
    finally:
        for subscription in subscriptions:
            subscription.cancel()
        print(f"fetches issued: {stream.fetch_count}", file=sys.stderr)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Watch the HRM server time.")
    parser.add_argument("--once", action="store_true", help="Fetch once and exit")
    parser.add_argument("--count", type=int, help="Stop after N refreshes")
    parser.add_argument("--interval", type=float, help="Refresh interval in seconds")
    parser.add_argument("--consumers", type=int, default=1, help="Number of stream subscribers")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output raw payloads as JSON")
    parser.add_argument("--links", action="store_true", help="Print sibling application links")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {}
    if args.interval is not None:
        overrides["refresh_interval"] = args.interval
    config = TimeClientConfig.from_env(**overrides)

    print(f"endpoint: {config.resolve_base_url()}{config.time_path}", file=sys.stderr)
    if args.links:
        for name, url in config.service_links().items():
            print(f"  {name:<10} {url}", file=sys.stderr)

    async with TimeClient(config) as client:
        if args.once:
            try:
                server_time = await client.fetch_once()
            except FetchFailed as exc:
                print(f"fetch failed: {exc}", file=sys.stderr)
                return 1
            print(_render(server_time, json_mode=args.json_mode))
            return 0

        await _watch(client, consumers=max(1, args.consumers), count=args.count, json_mode=args.json_mode)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
