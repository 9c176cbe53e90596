import os
import sys
import logging
import argparse

from . import __version__
from .support.logging import *
from .device import FDEDeviceError
from .device.hardware import ProgramSession
from .protocol.bitstream import BitstreamParsingError, decode_bitstream_file


# When running as `-m fdeprog.cli`, `__name__` is `__main__`, and the real name
# can be retrieved from `__loader__.name`.
logger = logging.getLogger(__loader__.name)


def get_argparser():
    parser = argparse.ArgumentParser(
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        description="FDE FPGA programmer tool")
    parser.add_argument(
        "-V", "--version", action="version", version=f"fdeprog {__version__}",
        help="show version and exit")
    parser.add_argument(
        "-v", "--verbose", default=0, action="count",
        help="increase logging verbosity")
    parser.add_argument(
        "-q", "--quiet", default=0, action="count",
        help="decrease logging verbosity")
    parser.add_argument(
        "-L", "--log-file", metavar="FILE", type=argparse.FileType("w"),
        help="save log messages at highest verbosity to FILE")
    parser.add_argument(
        "--no-shorten", default=False, action="store_true",
        help="do not shorten data dumps in logs")

    subparsers = parser.add_subparsers(dest="action", metavar="COMMAND")
    subparsers.required = True

    p_program = subparsers.add_parser(
        "program", help="load a bitstream into the FPGA")
    p_program.add_argument(
        "bitstream", metavar="BITSTREAM",
        help="read bitstream from the specified file")

    subparsers.add_parser(
        "info", help="show programmer configuration")

    p_decode = subparsers.add_parser(
        "decode", help="decode a bitstream file without a device")
    p_decode.add_argument(
        "bitstream", metavar="BITSTREAM",
        help="read bitstream from the specified file")

    return parser


class TerminalFormatter(logging.Formatter):
    DEFAULT_COLORS = {
        "TRACE"   : "\033[0m",
        "DEBUG"   : "\033[36m",
        "INFO"    : "\033[1m",
        "WARNING" : "\033[1;33m",
        "ERROR"   : "\033[1;31m",
        "CRITICAL": "\033[1;41m",
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.colors = dict(self.DEFAULT_COLORS)
        for color_override in os.getenv("FDEPROG_COLORS", "").split(":"):
            if color_override:
                level, color = color_override.split("=", 2)
                self.colors[level] = f"\033[{color}m"

    def format(self, record):
        color = self.colors.get(record.levelname, "")
        # fdeprog.device.hardware → device.hardware
        record.name = record.name.replace("fdeprog.", "")
        return f"{color}{super().format(record)}\033[0m"


def create_logger(args):
    root_logger = logging.getLogger()

    term_formatter_args = {"style": "{",
        "fmt": "{levelname[0]:s}: {name:s}: {message:s}"}
    term_handler = logging.StreamHandler()
    if sys.stderr.isatty() and sys.platform != 'win32':
        term_handler.setFormatter(TerminalFormatter(**term_formatter_args))
    else:
        term_handler.setFormatter(logging.Formatter(**term_formatter_args))
    root_logger.addHandler(term_handler)

    level = logging.INFO + args.quiet * 10 - args.verbose * 10
    if level < 0 or args.no_shorten:
        dump_hex.limit = dump_words.limit = None

    if args.log_file:
        file_formatter_args = {"style": "{",
            "fmt": "[{asctime:s}] {levelname:s}: {name:s}: {message:s}"}
        file_handler = logging.StreamHandler(args.log_file)
        file_handler.setFormatter(logging.Formatter(**file_formatter_args))
        root_logger.addHandler(file_handler)
        term_handler.setLevel(max(level, 1))
        root_logger.setLevel(logging.TRACE)
    else:
        root_logger.setLevel(max(level, 1))


def main(argv=None):
    args = get_argparser().parse_args(argv)
    create_logger(args)

    try:
        if args.action == "decode":
            words = decode_bitstream_file(args.bitstream)
            for word in words:
                print(f"{word:04x}")
            return 0

        with ProgramSession() as session:
            session.initialize()

            if args.action == "info":
                print(f"FIFO size:  {session.config.fifo_size} words")
                print(f"Programmed: {'yes' if session.config.is_programmed else 'no'}")

            if args.action == "program":
                session.program(args.bitstream)

    # Device-related errors
    except FDEDeviceError as e:
        logger.error(e)
        return 1

    # Input-related errors
    except (OSError, BitstreamParsingError) as e:
        logger.error(e)
        return 2

    # User interruption
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return 130 # 128 + SIGINT

    return 0


# This entry point is invoked via `console_scripts.fdeprog` when installing the package.
def run_main():
    sys.exit(main())


# This entry point is invoked when running `python -m fdeprog.cli`.
if __name__ == "__main__":
    run_main()
