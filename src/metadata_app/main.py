# Entry point of the metadata emulator.
import argparse
import logging
import os
import sys
from pathlib import Path

# Add the 'src' directory to the Python path
sys.path.append(str(Path(__file__).resolve().parent.parent))

import colorlog
from dotenv import load_dotenv
from rich.console import Console

from credential_library import __version__
from credential_library.utils.paths import get_data_file, get_logs_dir
from metadata_app.config import (
    EXIT_CODE_INTERNAL_ERROR,
    EXIT_CODE_INVALID_CONFIGURATION,
    ServerConfig,
    load_config,
)
from metadata_app.config_exceptions import ConfigLoadError, ConfigValidationError

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Emulates the GCE metadata server with local Google credentials."
    )
    parser.add_argument(
        "--host",
        "-H",
        type=str,
        default=None,
        help="Address to bind: specify 0.0.0.0 to accept remote connections especially inside docker.",
    )
    parser.add_argument("--port", "-p", type=int, default=None, help="Port to bind.")
    parser.add_argument(
        "--scopes",
        type=str,
        default=None,
        help="Comma separated default scopes of issued tokens.",
    )
    parser.add_argument(
        "--project", type=str, default=None, help="Project id to report instead of the credential's."
    )
    parser.add_argument(
        "--cloudsdk-config",
        type=str,
        default=None,
        help="gcloud configuration directory (defaults to $CLOUDSDK_CONFIG).",
    )
    parser.add_argument(
        "--google-application-credentials",
        type=str,
        default=None,
        help="Credentials JSON file used in preference to any other source.",
    )
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file.")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level: Trace, Debug, Info, Warning, Error.",
    )
    parser.add_argument(
        "--log-root",
        type=str,
        default=None,
        help="Also write logs to <log-root>/logs/metadata_emulator.log.",
    )
    parser.add_argument(
        "--version", "-v", action="store_true", help="Show version and exit."
    )
    return parser


def configure_logging(level: int = logging.WARNING, log_root: str = ""):
    """Configure the root logger with a colored console handler and an optional file handler."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(levelname)s%(reset)s %(message)s", log_colors=LOG_COLORS
        )
    )
    root_logger.addHandler(console_handler)

    if log_root:
        file_handler = logging.FileHandler(
            get_logs_dir(log_root) / "metadata_emulator.log", encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(file_handler)

    # Silence other noisy loggers by setting their level higher than root
    logging.getLogger("uvicorn").setLevel(max(level, logging.WARNING))
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def print_banner(config: ServerConfig):
    console = Console()
    console.rule(f"GCE metadata emulator {__version__}")
    console.print(f"Listening on [bold]{config.host}:{config.port}[/bold]")
    console.print(f"Scopes: {', '.join(config.scopes)}")
    if config.project:
        console.print(f"Project: {config.project}")
    if config.google_application_credentials:
        console.print(f"Credentials file: {config.google_application_credentials}")
    if config.cloudsdk_config:
        console.print(f"Cloud SDK config: {config.cloudsdk_config}")
    console.rule()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.version:
        print(f"metadata-emulator {__version__}")
        return 0

    # Errors before the configured level is known go to the console.
    configure_logging(logging.WARNING)

    load_dotenv(get_data_file(".env"), override=False)

    cli_values = {
        "host": args.host,
        "port": args.port,
        "scopes": args.scopes,
        "project": args.project,
        "cloudsdk_config": args.cloudsdk_config,
        "google_application_credentials": args.google_application_credentials,
        "log_level": args.log_level,
        "log_root": args.log_root,
    }
    try:
        config = load_config(cli=cli_values, env_vars=os.environ, config_file=args.config)
    except (ConfigLoadError, ConfigValidationError) as e:
        logging.error(f"Failed to parse configurations: {e}")
        return EXIT_CODE_INVALID_CONFIGURATION

    try:
        configure_logging(config.log_level_value, config.log_root)
    except OSError as e:
        logging.error(f"Failed to configure logging: {e}")
        return EXIT_CODE_INVALID_CONFIGURATION

    from metadata_app.server import create_app

    print_banner(config)
    app = create_app(config)

    import uvicorn

    try:
        uvicorn.run(app, host=config.host, port=config.port, access_log=False)
    except Exception as e:
        logging.error(f"Failed to launch server: {e}")
        return EXIT_CODE_INTERNAL_ERROR
    return 0


if __name__ == "__main__":
    sys.exit(main())
