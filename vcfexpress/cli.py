import argparse

from vcfexpress.common import HumanReadableDefaultsFormatter

from . import __version__
from .modules import filter


def main():
    parser = argparse.ArgumentParser(
        description="VCF/BCF filter and formatting tool "
        "leveraging Python expressions.",
        formatter_class=HumanReadableDefaultsFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(
        dest="command",
        description="valid subcommands",
        required=True,
    )
    filter.add_subcommand(subparsers)

    args = parser.parse_args()
    if args.command == "filter":
        filter.execute(args)
    else:
        raise ValueError(f"Unknown subcommand {args.command}")
