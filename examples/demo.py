#!/usr/bin/env python3
"""
smartlog demo
=============
Runs a small Starlette service behind ServerLoggingMiddleware. The handler
looks a user up in SQLite through a TracedCursor and calls a (mocked)
downstream API through LoggingTransport, so every log line for the request
shares one log id.

Run:
    pip install -e .
    python examples/demo.py

What you'll see:
    1. "Request received" / "Response sent" with redacted headers and bodies
    2. "Query Trace" and a truncated "Query Result"
    3. "Client request sent" / "Client response received" carrying the same log_id
    4. OpenTelemetry spans and metrics printed by the console exporter
"""

import sqlite3

import httpx
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from smartlog import (
    Config,
    ExporterType,
    HttpInstruments,
    LoggingTransport,
    LogConfig,
    QueryConfig,
    QueryLogger,
    QueryResultLogger,
    ServerLoggingMiddleware,
    TracedCursor,
    get_logger,
    init_telemetry,
    new_logger,
    shutdown_telemetry,
)


def _billing_api(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"plan": "pro", "api_token": "downstream-secret"})


def build_app(cfg: Config) -> Starlette:
    log = new_logger(cfg)
    instruments = HttpInstruments()

    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.execute("CREATE TABLE users (ID INTEGER PRIMARY KEY, Name TEXT, Email TEXT, Notes TEXT)")
    conn.execute(
        "INSERT INTO users VALUES (1, 'Alice', 'alice@example.com', ?)",
        ("long free-form notes " * 40,),
    )

    billing = httpx.Client(
        transport=LoggingTransport(
            httpx.MockTransport(_billing_api),
            log,
            cfg.redact_keys,
            instruments,
        ),
        base_url="http://billing.internal",
    )

    async def get_user(request: Request) -> JSONResponse:
        cursor = TracedCursor(conn.cursor(), QueryLogger(log, cfg.query), QueryResultLogger(log, cfg.query))
        row = cursor.execute(
            "SELECT ID, Name, Email, Notes FROM users WHERE ID = ?",
            (int(request.path_params["user_id"]),),
        ).fetchone()
        if row is None:
            return JSONResponse({"error": "not found"}, status_code=404)

        plan = billing.get(f"/plans/{row[0]}").json()["plan"]
        get_logger(log).info("User resolved", extra={"fields": {"user_id": row[0]}})
        return JSONResponse({"id": row[0], "name": row[1], "plan": plan, "session_token": "s3cr3t"})

    return Starlette(
        routes=[Route("/users/{user_id}", get_user)],
        middleware=[Middleware(ServerLoggingMiddleware, logger=log, cfg=cfg, instruments=instruments)],
    )


def main() -> None:
    cfg = Config(
        service_name="demo-service",
        env="demo",
        log=LogConfig(filename="logs/demo.log", console_level="DEBUG"),
        redact_keys=["Authorization", "session_token", "api_token"],
        query=QueryConfig(log_query_result=True, log_result_max_bytes=80),
    )
    tracer_provider, meter_provider = init_telemetry(
        service_name=cfg.service_name,
        exporter=ExporterType.CONSOLE,
        metric_export_interval_ms=1_000,
        env=cfg.env,
    )

    client = TestClient(build_app(cfg))
    response = client.get("/users/1", headers={"Authorization": "Bearer demo", "X-Request-ID": "demo-req-1"})
    print(f"\nstatus={response.status_code} X-Request-ID={response.headers['X-Request-ID']}")
    print(f"body={response.json()}\n")

    shutdown_telemetry(tracer_provider, meter_provider)


if __name__ == "__main__":
    main()
