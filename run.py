#!/usr/bin/env python3
"""Run the Linkboard API server: ``python run.py [--host H] [--port P] [--reload]``."""

import argparse

import uvicorn

APP = "linkboard.main:app"
LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Linkboard API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="info")
    return parser


def uvicorn_options(args: argparse.Namespace) -> dict:
    return {
        "host": args.host,
        "port": args.port,
        "reload": args.reload,
        # reload runs a single process
        "workers": 1 if args.reload else args.workers,
        "log_level": args.log_level,
    }


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    print(f"Linkboard listening on http://{args.host}:{args.port} (docs at /docs)")
    uvicorn.run(APP, **uvicorn_options(args))


if __name__ == "__main__":
    main()
