import argparse
import logging

from aiohttp import web

from liveserver.binder import bind_listener
from liveserver.config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    ServerConfig,
    StartupError,
    resolve_root,
)
from liveserver.server import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="live-server",
        description="Serve a directory and reload the browser when files change",
    )
    parser.add_argument("root", nargs="?", default=".", help="directory to serve and watch")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="first port to try")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="only log warnings and errors")
    return parser.parse_args(argv)


def configure_logging(args):
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args)

    try:
        root = resolve_root(args.root)
        sock, port = bind_listener(args.host, args.port)
    except StartupError as err:
        logger.error("%s", err)
        return 1

    config = ServerConfig(host=args.host, port=port, root=root)
    logger.info("Serving %s", config.root)
    logger.info("Listening on %s", config.url)
    web.run_app(create_app(config), sock=sock, print=None)
    return 0
