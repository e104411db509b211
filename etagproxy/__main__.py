from __future__ import annotations

import argparse
import logging
import sys
import typing as tp

import uvicorn

from etagproxy._config import get_default_config_paths, load_config
from etagproxy._exceptions import ConfigurationError
from etagproxy.asgi import create_app

logger = logging.getLogger("etagproxy")

DEFAULT_CONFIG_PATHS = ("config/defaults.yml", "config/local.yml")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="etagproxy", description="Caching reverse proxy for a single upstream.")
    parser.add_argument(
        "-c",
        "--config",
        action="append",
        dest="configs",
        metavar="PATH",
        help="YAML config file, may be repeated; later files override earlier ones",
    )
    parser.add_argument("--host", help="Override server.host")
    parser.add_argument("--port", type=int, help="Override server.port")
    return parser


def main(argv: tp.Optional[tp.Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    paths = args.configs or get_default_config_paths() or list(DEFAULT_CONFIG_PATHS)

    try:
        config = load_config(*paths)
    except ConfigurationError as exc:
        print(f"etagproxy: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info("Listening to %s:%d", host, port)

    uvicorn.run(create_app(config), host=host, port=port, log_level=config.log_level.lower(), lifespan="on")
    return 0


if __name__ == "__main__":
    sys.exit(main())
