"""
Main entry point for the cluster agent.
Parses command-line arguments, sets up logging and configuration, and runs
the agent until the operator exits or a fatal error occurs.
"""
import argparse
import logging
import sys
from typing import List, Optional

from cluster_agent.config import ConfigManager
from cluster_agent.core import Agent, EXIT_FAILURE
from cluster_agent.errors import ConfigurationError
from cluster_agent.protocol import DispatchLayout
from cluster_agent.ui import display_error
from cluster_agent.utils.logger import ROOT_LOGGER_NAME, get_logger, setup_logger
from cluster_agent.version import __app_name__, __version__

logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cluster-agent",
        description="Cluster shell agent: submit commands to the coordinator and execute dispatched ones.")
    parser.add_argument('--version', action='version', version=f"{__app_name__} {__version__}")
    parser.add_argument('--config', '-c', help='Path to a JSON configuration file.')
    parser.add_argument('--server-host', help='Coordinator address.')
    parser.add_argument('--server-port', type=int, help='Coordinator port.')
    parser.add_argument('--listen-host', help='Interface the request listener binds.')
    parser.add_argument('--listen-port', type=int, help='Port the coordinator dispatches requests to.')
    parser.add_argument('--dispatch-layout', choices=[layout.value for layout in DispatchLayout],
                        help='Byte layout of execution requests sent by the coordinator.')
    parser.add_argument('--log-level', help='Console log level (e.g. INFO, DEBUG).')
    parser.add_argument('--log-file', help='Write a rotating log file at this path.')
    parser.add_argument('--no-home', action='store_true',
                        help="Stay in the current directory instead of the user's home directory.")
    return parser


def _cli_overrides(args: argparse.Namespace) -> dict:
    overrides = {
        'server.host': args.server_host,
        'server.port': args.server_port,
        'listener.host': args.listen_host,
        'listener.port': args.listen_port,
        'listener.dispatch_layout': args.dispatch_layout,
        'logging.console_level': args.log_level,
        'logging.file_path': args.log_file,
    }
    if args.no_home:
        overrides['agent.start_in_home'] = False
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    """
    Runs the agent and returns its exit status.
    """
    args = build_parser().parse_args(argv)

    try:
        config = ConfigManager(config_path=args.config, overrides=_cli_overrides(args))
    except ConfigurationError as e:
        display_error(f"Invalid configuration: {e}")
        return EXIT_FAILURE

    setup_logger(
        name=ROOT_LOGGER_NAME,
        console_level_name=config.get('logging.console_level'),
        file_level_name=config.get('logging.file_level'),
        log_file_path=config.get('logging.file_path'),
    )
    logger.info(f"{__app_name__} {__version__} starting.")

    try:
        exit_code = Agent(config).run()
    except Exception as e:
        logger.critical(f"Unexpected error while running the agent: {e}", exc_info=True)
        display_error(f"FATAL ERROR: {e}")
        exit_code = EXIT_FAILURE
    finally:
        logging.shutdown()
    return exit_code


if __name__ == '__main__':
    sys.exit(main())
