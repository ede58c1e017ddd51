"""serverpulse entry point."""

import argparse
from pathlib import Path

import uvicorn

from .config.manager import initialize_config
from .gateway.http_server import create_app
from .observability.log_setup import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Game server status relay")
    parser.add_argument("--config", type=Path, default=None, help="TOML config file")
    parser.add_argument("--env-file", type=Path, default=None, help=".env file")
    args = parser.parse_args()

    config = initialize_config(args.config, args.env_file)
    configure_logging(config.get("logging.level"), config.get("logging.file_path"))

    uvicorn.run(
        create_app(config),
        host=config.get("http.host"),
        port=config.get("http.port"),
        log_level=config.get("logging.level").lower(),
    )


if __name__ == "__main__":
    main()
