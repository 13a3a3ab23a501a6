#!/usr/bin/env python3
"""
Mock upstream server for trying out the proxy locally.

Mimics a few Ollama endpoints:
- GET  /api/tags     - returns a static model list
- POST /api/generate - streams NDJSON lines, one every half second
- ANY  /echo/...     - echoes method, path, query and headers it received

Run with: python scripts/mock_upstream.py
Listens on: http://localhost:11434
"""
from __future__ import annotations

import asyncio
import json
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
import uvicorn

app = FastAPI(title="Mock Upstream Server", description="Test server for authproxy")


def log_request(request: Request):
    """Log the incoming request line."""
    timestamp = datetime.now().strftime("%H:%M:%S")
    auth = "present" if "authorization" in request.headers else "absent"
    print(f"[{timestamp}] {request.method} {request.url.path} | Authorization: {auth}")


@app.get("/api/tags")
async def tags(request: Request):
    """Static model list."""
    log_request(request)
    return JSONResponse({"models": [{"name": "llama3:latest"}, {"name": "mistral:latest"}]})


@app.post("/api/generate")
async def generate(request: Request):
    """Stream a fake generation one word at a time."""
    log_request(request)
    data = await request.json()
    words = f"Mock answer for model {data.get('model', 'unknown')}".split()

    async def lines():
        for word in words:
            yield json.dumps({"response": word + " ", "done": False}) + "\n"
            await asyncio.sleep(0.5)
        yield json.dumps({"response": "", "done": True}) + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")


@app.api_route("/echo/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def echo(request: Request, path: str):
    """Echo what the proxy sent us."""
    log_request(request)
    body = await request.body()
    return JSONResponse({
        "method": request.method,
        "path": request.url.path,
        "query": request.url.query,
        "headers": dict(request.headers),
        "body_length": len(body),
    })


if __name__ == "__main__":
    print("\nMock Upstream Server")
    print("=" * 50)
    print("Listening on http://localhost:11434")
    print("Endpoints:")
    print("  GET  /api/tags     - Model list")
    print("  POST /api/generate - Streaming NDJSON")
    print("  ANY  /echo/...     - Request echo")
    print("=" * 50 + "\n")

    uvicorn.run(app, host="127.0.0.1", port=11434, log_level="warning")
