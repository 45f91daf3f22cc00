from __future__ import annotations

import argparse
import logging
from typing import List, Optional

import uvicorn

from ..config import EngineConfig
from ..protocol.uci.loop import run_uci


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blindfold", description="Chess rules and search core")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the local HTTP binding")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("uci", help="Speak UCI on stdin/stdout")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    config = EngineConfig.from_env()
    if args.command == "serve":
        uvicorn.run(
            "blindfold_core.protocol.http.app:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            log_level=config.log_level.lower(),
        )
    else:
        # stdout carries the protocol, so logs stay on stderr
        logging.basicConfig(level=config.log_level)
        run_uci(config=config)


if __name__ == "__main__":
    main()
