"""Main entry point for the SmartThings exporter."""
from typing import List, Optional
import argparse
import getpass
import logging
import os
import sys

from prometheus_client import CollectorRegistry
from pythonjsonlogger.json import JsonFormatter

from smartthings_exporter import __version__
from smartthings_exporter.config import load_config, load_register_config
from smartthings_exporter.errors import ExporterError, RegisterError, TokenError
from smartthings_exporter.exporter import create_exporter
from smartthings_exporter.oauth import OAuthCallbackServer, OAuthConfig
from smartthings_exporter.oauth_token import load_token
from smartthings_exporter.web import ExporterWebApp

logger = logging.getLogger("smartthings_exporter")

COMMANDS = ("register", "start")
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: str, log_format: str = "text"):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt=LOG_DATE_FORMAT,
            rename_fields={"asctime": "ts", "levelname": "level", "name": "logger"}
        ))
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    logging.basicConfig(level=level, handlers=[handler], force=True)

    # Reduce noise from some libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smartthings_exporter",
        description="Smartthings exporter for Prometheus"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    register_parser = subparsers.add_parser(
        "register",
        help="Register smartthings_exporter with Smartthings and output the token."
    )
    register_parser.add_argument(
        "--register.listen-port",
        dest="listen_port",
        type=int,
        help="The port to listen on for the OAuth register (default: 4567)."
    )
    register_parser.add_argument(
        "--smartthings.oauth-client",
        dest="oauth_client",
        required=True,
        help="Smartthings OAuth client ID."
    )
    register_parser.add_argument("--log.level", dest="log_level", default="INFO", help="Log level.")
    register_parser.set_defaults(func=register)

    start_parser = subparsers.add_parser("start", help="Start the smartthings_exporter (default).")
    start_parser.add_argument(
        "--config.file",
        dest="config_file",
        help="Optional YAML configuration file; flags override its values."
    )
    start_parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        help="Address to listen on for web interface and telemetry (default: :9499)."
    )
    start_parser.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        help="Path under which to expose metrics (default: /metrics)."
    )
    start_parser.add_argument(
        "--smartthings.oauth-client",
        dest="oauth_client",
        help="Smartthings OAuth client ID."
    )
    start_parser.add_argument(
        "--smartthings.oauth-token.file",
        dest="oauth_token_file",
        help="File containing the Smartthings OAuth token."
    )
    start_parser.add_argument(
        "--smartthings.timeout",
        dest="timeout",
        type=float,
        help="Timeout in seconds for SmartThings API requests (default: none)."
    )
    start_parser.add_argument("--log.level", dest="log_level", help="Log level (default: INFO).")
    start_parser.add_argument(
        "--log.format",
        dest="log_format",
        choices=["text", "json"],
        help="Log format (default: text)."
    )
    start_parser.set_defaults(func=monitor)

    return parser


def read_secret() -> str:
    """Prompt for the OAuth client secret without echo."""
    if not sys.stdin.isatty():
        raise RegisterError("Reading the Smartthings OAuth secret requires an interactive terminal")
    try:
        secret = getpass.getpass("Enter your Smartthings OAuth secret: ", stream=sys.stderr)
    except EOFError:
        raise RegisterError("No Smartthings OAuth secret entered")
    if not secret:
        raise RegisterError("No Smartthings OAuth secret entered")
    return secret


def register(args: argparse.Namespace):
    """Run the OAuth flow and print the token JSON to stdout."""
    setup_logging(args.log_level)
    config = load_register_config(args.listen_port, args.oauth_client)
    logger.info("Registering smartthings_exporter with Smartthings")

    secret = read_secret()
    server = OAuthCallbackServer(OAuthConfig(config.oauth_client, secret), config.listen_port)

    print(f"Please login by visiting: http://localhost:{config.listen_port}", file=sys.stderr)
    token = server.fetch_token()
    print(token.to_json())


def monitor(args: argparse.Namespace):
    """Load the token, verify the API and serve metrics until terminated."""
    config = load_config(
        args.config_file,
        overrides={
            "web": {
                "listen_address": args.listen_address,
                "telemetry_path": args.telemetry_path,
            },
            "smartthings": {
                "oauth_client": args.oauth_client,
                "oauth_token_file": args.oauth_token_file,
                "timeout": args.timeout,
            },
            "logging": {
                "level": args.log_level,
                "format": args.log_format,
            },
        }
    )
    setup_logging(config.logging.level, config.logging.format)
    logger.info(f"Starting smartthings_exporter (version {__version__})")

    token_path = os.path.abspath(config.smartthings.oauth_token_file)
    token = load_token(token_path)
    if not token.valid():
        raise TokenError(f"OAuth token in {token_path} is empty or expired; run 'register' again")

    registry = CollectorRegistry()
    create_exporter(config.smartthings, token, registry)

    ExporterWebApp(registry, config.web.telemetry_path).run(config.web.host, config.web.port)


def main(argv: Optional[List[str]] = None) -> int:
    """Main function. Returns the process exit status."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in COMMANDS + ("-h", "--help", "--version"):
        argv.insert(0, "start")

    args = build_parser().parse_args(argv)
    setup_logging(getattr(args, "log_level", None) or "INFO")

    try:
        args.func(args)
    except ExporterError as e:
        logger.error(f"{e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
