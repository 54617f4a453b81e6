"""CLI: ``python -m telemetry_api``."""

from __future__ import annotations

import argparse
import logging

import uvicorn

from common.config import get_settings

from .main import create_app


def main(argv=None) -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(prog="telemetry_api", description="Room telemetry ingest service")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=settings.http_port)
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument(
        "--no-ingress",
        action="store_true",
        help="serve the API and WebSocket without connecting to any broker",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger(__name__).info(
        "[STARTUP] env=%s remote_ingest=%s broker=%s",
        settings.app_env,
        settings.remote_ingest_enabled,
        settings.broker.display,
    )

    app = create_app(settings, start_ingress=not args.no_ingress)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
