#!/usr/bin/env python3
"""Watch the live earnings event stream of a running EarnPulse server.

Optionally starts polling a subject first:

    python scripts/watch_stream.py --subject "Acme" --interval-ms 60000
"""

import argparse
import asyncio

import httpx
import orjson


def print_frame(event: str, data: str) -> None:
    try:
        payload = orjson.loads(data)
    except orjson.JSONDecodeError:
        payload = data

    if event == "heartbeat":
        print(".", end="", flush=True)
        return

    print(f"\n{'=' * 60}")
    print(f"Event: {event}")
    if isinstance(payload, dict):
        for key in ("subject", "status", "revenue", "eps", "guidance", "message", "summary"):
            if payload.get(key) is not None:
                print(f"{key}: {payload[key]}")
    else:
        print(payload)
    print(f"{'=' * 60}")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Print frames from the live earnings stream")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Server base URL")
    parser.add_argument("--subject", help="Start polling this subject before watching")
    parser.add_argument("--interval-ms", type=int, help="Polling interval for --subject")
    args = parser.parse_args()

    live_url = f"{args.base_url.rstrip('/')}/api/v1/earnings/live"

    async with httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None)) as client:
        if args.subject:
            body: dict[str, object] = {"subject": args.subject}
            if args.interval_ms:
                body["interval_ms"] = args.interval_ms
            resp = await client.post(f"{live_url}/start", json=body)
            resp.raise_for_status()
            print(f"Polling {args.subject}: {resp.json()['active_sessions']}")

        print(f"Connecting to {live_url}/stream ... (Ctrl+C to stop)")
        async with client.stream("GET", f"{live_url}/stream") as resp:
            resp.raise_for_status()
            event, data = "message", ""
            async for line in resp.aiter_lines():
                if line.startswith("event: "):
                    event = line[len("event: ") :]
                elif line.startswith("data: "):
                    data = line[len("data: ") :]
                elif not line:
                    if data:
                        print_frame(event, data)
                    event, data = "message", ""


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nStopped")
