import argparse
import contextlib
import shlex
import sys
from collections import defaultdict

from .backend.backend_cyvcf2 import Cyvcf2Reader, Cyvcf2Writer
from .backend.backend_pysam import PysamReader, PysamWriter
from .backend.base import Backend, VCFReader
from .errors import VariantIOError


class HumanReadableDefaultsFormatter(argparse.HelpFormatter):
    """Appends defaults to the help of options that have a meaningful one."""

    def _get_help_string(self, action):
        help = action.help or ""
        if (
            "%(default)" not in help
            and action.default not in (None, False, [], {}, argparse.SUPPRESS)
            and action.option_strings
        ):
            help += " (default: %(default)s)"
        return help


def add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--overwrite-number-info",
        nargs=1,
        action=AppendKeyValuePair,
        metavar="FIELD=NUMBER",
        default={},
        help="Overwrite the number specification for INFO fields "
        "given in the VCF header. "
        "Example: `--overwrite-number-info AF=.`",
    )
    parser.add_argument(
        "--overwrite-number-format",
        nargs=1,
        action=AppendKeyValuePair,
        metavar="FIELD=NUMBER",
        default={},
        help="Overwrite the number specification for FORMAT fields "
        "given in the VCF header. "
        "Example: `--overwrite-number-format DP=2`",
    )
    parser.add_argument(
        "--backend",
        default="pysam",
        type=Backend.from_string,
        choices=[Backend.pysam, Backend.cyvcf2],
        help="Set the backend library.",
    )


def swap_quotes(s: str) -> str:
    return s.replace('"', '\\"').replace("'", '"').replace('\\"', "'")


def single_outer(s: str) -> bool:
    if '"' in s and "'" in s:
        return s.index('"') > s.index("'")
    elif '"' in s:
        return True
    elif "'" in s:
        return False
    return True


def normalize(s: str) -> str:
    return shlex.quote(swap_quotes(s) if not single_outer(s) else s)


class AppendKeyValuePair(argparse.Action):
    def __call__(self, parser, namespace, values, option_string=None):
        assert len(values) == 1
        if not hasattr(namespace, self.dest) or getattr(namespace, self.dest) is None:
            setattr(namespace, self.dest, {})
        value = values[0].strip()
        if "=" not in value:
            parser.error(f"{option_string} expects KEY=VALUE, got '{value}'")
        key, value = value.split("=", 1)
        getattr(namespace, self.dest)[key.strip()] = value.strip()


def input_path(path: str) -> str:
    return "-" if path == "stdin" else path


def create_reader(
    filename: str,
    backend: Backend = Backend.pysam,
    overwrite_number=None,
) -> VCFReader:
    if overwrite_number is None:
        overwrite_number = defaultdict(dict)
    filename = input_path(filename)
    try:
        if backend == Backend.pysam:
            return PysamReader(filename, overwrite_number)
        elif backend == Backend.cyvcf2:
            return Cyvcf2Reader(filename, overwrite_number)
    except (OSError, ValueError) as e:
        raise VariantIOError(filename, e) from e
    raise ValueError(f"{backend} is not a known backend.")


def create_writer(
    filename: str,
    fmt: str,
    template: VCFReader,
    backend: Backend = Backend.pysam,
):
    try:
        if backend == Backend.pysam:
            return PysamWriter(filename, fmt, template)
        elif backend == Backend.cyvcf2:
            return Cyvcf2Writer(filename, fmt, template)
    except (OSError, ValueError) as e:
        raise VariantIOError(filename, e) from e
    raise ValueError(f"{backend} is not a known backend.")


@contextlib.contextmanager
def smart_open(filename=None, *args, **kwargs):
    try:
        fh = (
            open(filename, *args, **kwargs)
            if filename and filename != "-"
            else sys.stdout
        )
    except OSError as e:
        raise VariantIOError(filename, e.strerror or e) from e

    try:
        yield fh
    finally:
        if fh is not sys.stdout:
            fh.close()
