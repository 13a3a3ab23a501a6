#!/usr/bin/env python3
"""
Send a request through the proxy and print the response as it streams in.

Usage:
    python scripts/send_request.py                              # GET /api/tags
    python scripts/send_request.py --generate                   # Streaming POST /api/generate
    python scripts/send_request.py --path /echo/x --token wrong # Expect 401
"""
from __future__ import annotations

import argparse
import json
import sys

import httpx


def main():
    parser = argparse.ArgumentParser(description="Send a request through authproxy")
    parser.add_argument("--url", default="http://localhost:8080", help="Proxy base URL")
    parser.add_argument("--token", default="secret123", help="Bearer token")
    parser.add_argument("--path", default="/api/tags", help="Request path and query")
    parser.add_argument("--generate", action="store_true", help="POST a streaming /api/generate")
    parser.add_argument("--model", default="llama3", help="Model name for --generate")
    parser.add_argument("--insecure", action="store_true", help="Skip TLS certificate checks")
    args = parser.parse_args()

    headers = {"Authorization": f"Bearer {args.token}"}
    method, path, content = "GET", args.path, None
    if args.generate:
        method, path = "POST", "/api/generate"
        content = json.dumps({"model": args.model, "prompt": "Hello"}).encode()

    with httpx.Client(base_url=args.url, timeout=None, verify=not args.insecure) as client:
        with client.stream(method, path, headers=headers, content=content) as response:
            print(f"HTTP {response.status_code} {response.headers.get('content-type', '')}")
            for chunk in response.iter_raw():
                sys.stdout.write(chunk.decode("utf-8", errors="replace"))
                sys.stdout.flush()
    print()


if __name__ == "__main__":
    main()
