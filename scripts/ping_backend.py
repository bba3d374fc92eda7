#!/usr/bin/env python3
"""Ping the hosted backend so an idle free-tier project is not paused.

Usage:
  python scripts/ping_backend.py --base-url https://your-project.example.co --api-key KEY

Environment fallbacks:
  BACKEND_URL, BACKEND_ANON_KEY
"""
from __future__ import annotations

import argparse
import os
import sys

import httpx


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Showroom backend keep-alive ping")
    parser.add_argument("--base-url", default=os.getenv("BACKEND_URL", "http://127.0.0.1:54321"))
    parser.add_argument("--api-key", default=os.getenv("BACKEND_ANON_KEY"))
    parser.add_argument("--table", default="cars")
    parser.add_argument("--quiet", action="store_true")
    return parser.parse_args(argv)


def exit_with(message: str, code: int = 1) -> None:
    print(message, file=sys.stderr)
    raise SystemExit(code)


def ping(client: httpx.Client, table: str) -> int:
    response = client.get(f"/rest/v1/{table}", params={"select": "id", "limit": "1"})
    return response.status_code


def main(argv: list[str] | None = None, transport: httpx.BaseTransport | None = None) -> None:
    args = parse_args(argv)

    if not args.api_key:
        exit_with("Missing API key (use --api-key or BACKEND_ANON_KEY)")

    headers = {"apikey": args.api_key, "Authorization": f"Bearer {args.api_key}"}
    with httpx.Client(
        base_url=args.base_url.rstrip("/"), timeout=10.0, headers=headers, transport=transport
    ) as client:
        try:
            status = ping(client, args.table)
        except httpx.HTTPError as exc:
            exit_with(f"Ping failed: {exc}")

    if status != 200:
        exit_with(f"Ping failed: HTTP {status}")
    if not args.quiet:
        print(f"Ping status: {status}")


if __name__ == "__main__":
    main()
