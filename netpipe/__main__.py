import argparse
import logging
import sys

from typing import List, Optional

from .app import MODES, Application
from .config import Settings
from .exceptions import NetPipeError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="netpipe", description="netpipe echo server")

    parser.add_argument(
        "-m", "--mode",
        choices=MODES,
        default="both",
        help="Which echo services to run"
    )
    parser.add_argument(
        "--tcp-address",
        type=str,
        help="TCP listen address, e.g. 127.0.0.1:4207"
    )
    parser.add_argument(
        "--udp-address",
        type=str,
        help="UDP listen address, e.g. 127.0.0.1:4208"
    )
    parser.add_argument(
        "--log-output",
        choices=("stdout", "stderr", "file"),
        help="Where the log writer sends records"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Log writer threshold (FATAL, ERROR, WARN, INFO, DEBUG, TRACE)"
    )
    parser.add_argument(
        "--logs-dir",
        type=str,
        help="Directory for log files when --log-output=file"
    )

    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Build Settings with command line values overriding the environment."""
    overrides = {
        "tcp_address": args.tcp_address,
        "udp_address": args.udp_address,
        "log_output": args.log_output,
        "log_level": args.log_level,
        "logs_dir": args.logs_dir,
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def starter(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = logging.getLogger("app-starter")

    try:
        app = Application(settings_from_args(args))
        app.run(args.mode)

    except KeyboardInterrupt:
        pass

    except NetPipeError as e:
        logger.critical(f"Failed to run netpipe: {e}")
        print(f"netpipe: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(starter())
