"""Command-line interface for the users service."""

from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from contextlib import suppress
from typing import Sequence

import httpx

from usersapi.chat import DEFAULT_CHAT_HOST, DEFAULT_CHAT_PORT, run_chat_server
from usersapi.config import ServiceConfig, load_config

logger = logging.getLogger("usersapi.main")

_DEFAULT_HEALTH_TIMEOUT = 2.0


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Users REST API utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: from configuration)")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: from configuration, 3000)",
    )

    health_parser = subparsers.add_parser(
        "healthcheck", help="Probe a running instance and exit non-zero when it is unhealthy"
    )
    health_parser.add_argument(
        "--url",
        default=None,
        help="Health endpoint to probe (default: http://localhost:<port>/health)",
    )
    health_parser.add_argument(
        "--timeout",
        type=float,
        default=_DEFAULT_HEALTH_TIMEOUT,
        help="Seconds to wait for a response (default: 2)",
    )

    chat_parser = subparsers.add_parser("chat", help="Start the TCP chat relay")
    chat_parser.add_argument("--host", default=DEFAULT_CHAT_HOST, help="Bind address for the relay")
    chat_parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_CHAT_PORT,
        help=f"Port for the chat relay (default: {DEFAULT_CHAT_PORT})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "healthcheck", "chat"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _serve(config: ServiceConfig, *, host: str | None, port: int | None) -> None:
    from usersapi.api import create_app
    import uvicorn

    bind_host = host or config.host
    bind_port = port or config.port
    logger.info("Starting users API on http://%s:%s", bind_host, bind_port)

    app = create_app(config=config)
    uvicorn.run(
        app,
        host=bind_host,
        port=bind_port,
        log_level=config.log_level.lower(),
    )


def _chat(host: str, port: int) -> None:
    logger.info("Starting chat relay on %s:%s", host, port)
    with suppress(KeyboardInterrupt):
        asyncio.run(run_chat_server(host, port))


def _healthcheck(url: str, timeout: float) -> int:
    try:
        response = httpx.get(url, timeout=timeout)
    except httpx.HTTPError as exc:
        logger.error("Health check against %s failed: %s", url, exc)
        return 1
    if response.status_code != 200:
        logger.error("Health check against %s returned HTTP %s", url, response.status_code)
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    args = _parse_args(argv)

    if args.command == "serve":
        _serve(config, host=args.host, port=args.port)
    elif args.command == "healthcheck":
        url = args.url or f"http://localhost:{config.port}/health"
        return _healthcheck(url, args.timeout)
    elif args.command == "chat":
        _chat(args.host, args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
