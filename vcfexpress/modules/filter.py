import sys
from sys import stderr

import yaml

from .. import __version__
from ..backend.base import VCFReader
from ..common import add_common_arguments, create_reader, normalize
from ..engine.engine_python import PythonEngine
from ..errors import handle_vcfexpress_error
from ..header import HeaderBinding, HeaderTypeCache
from ..output import STRUCTURED_FORMATS, create_sink
from ..pipeline import ExpressionPipeline


def add_subcommand(subparsers):
    parser = subparsers.add_parser(
        "filter",
        help="Filter, modify or render variants with Python expressions.",
    )
    parser.add_argument(
        "path",
        help="The file containing the variants, or '-'/'stdin' for STDIN.",
    )
    parser.add_argument(
        "--expression",
        "-e",
        action="append",
        default=[],
        metavar="EXPR",
        help="Boolean filter expression; may be repeated. A record passes if "
        "any expression is True, evaluated in order until the first True one. "
        "Without expressions, every record passes.",
    )
    parser.add_argument(
        "--set-expression",
        "-s",
        action="append",
        default=[],
        metavar="TAG=EXPR",
        help="Compute the INFO field TAG from EXPR for every record; "
        "may be repeated. Example: `-s 'AFmax=max(info(\"AF\"))'`",
    )
    parser.add_argument(
        "--template",
        "-t",
        default=None,
        help="Render passing records as text lines using this f-string "
        "template, e.g. '{chrom}:{pos}'.",
    )
    parser.add_argument(
        "--prelude",
        "-p",
        action="append",
        default=[],
        metavar="FILE",
        help="Python script run once before the first record with a mutable "
        "`header` in scope; may be repeated. "
        "Takes the place of the `--lua-prelude` option of the Lua-based vcfexpress.",
    )
    parser.add_argument(
        "--library",
        "-l",
        action="append",
        default=[],
        metavar="FILE",
        help="Python script whose definitions are available to expressions "
        "and templates; may be repeated. "
        "Takes the place of the `--lua` option of the Lua-based vcfexpress.",
    )
    parser.add_argument(
        "--output",
        "-o",
        default="-",
        help="Output file, if not specified, output is written to STDOUT. "
        "A '.bcf' suffix selects BCF, a '.gz' suffix compressed VCF.",
    )
    parser.add_argument(
        "--output-fmt",
        "-O",
        default=None,
        choices=list(STRUCTURED_FORMATS),
        help="Structured output format; overrides the output suffix. "
        "Cannot be combined with --template.",
    )
    parser.add_argument(
        "--sandbox",
        "-b",
        default=False,
        action="store_true",
        help="Restrict expressions and scripts to a whitelist of builtins, "
        "without access to modules, files or dunder attributes.",
    )
    parser.add_argument(
        "--expose-header",
        default=False,
        action="store_true",
        help="Make the (read-only) `header` available to expressions.",
    )
    parser.add_argument(
        "--statistics",
        metavar="FILE",
        default=None,
        help="Write statistics to this file.",
    )
    add_common_arguments(parser)


def record_command(reader: VCFReader):
    # NOTE: If .modules.filter.execute might be used as a library function
    #       in the future, we should not record sys.argv directly below.
    cmd_parts = [normalize(arg) if " " in arg else arg for arg in sys.argv[1:]]
    reader.header.add_generic("vcfexpressVersion", __version__)
    reader.header.add_generic("vcfexpressCmd", "vcfexpress " + " ".join(cmd_parts))


def write_statistics(pipeline: ExpressionPipeline, filename: str):
    with open(filename, "w") as out:
        yaml.dump(pipeline.statistics(), out, sort_keys=False)


@handle_vcfexpress_error
def execute(args) -> None:
    overwrite_number = {
        "INFO": dict(args.overwrite_number_info),
        "FORMAT": dict(args.overwrite_number_format),
    }
    with create_reader(
        args.path,
        backend=args.backend,
        overwrite_number=overwrite_number,
    ) as reader:
        cache = HeaderTypeCache(reader.header)
        engine = PythonEngine(sandbox=args.sandbox)

        for path in args.library:
            engine.load_library(path)

        header = HeaderBinding(cache, mutable=True)
        for path in args.prelude:
            engine.run_prelude(path, header)
        header.release()

        if args.template is None:
            record_command(reader)

        with create_sink(
            args.output,
            template=args.template is not None,
            reader=reader,
            output_fmt=args.output_fmt,
            backend=args.backend,
        ) as sink:
            pipeline = ExpressionPipeline(
                engine,
                cache,
                expressions=args.expression,
                set_expressions=args.set_expression,
                template=args.template,
                sink=sink,
                expose_header=args.expose_header,
            )
            pipeline.run(reader)

    if pipeline.n_evaluated == 0:
        print("Warning: the input contains no records.", file=stderr)

    if args.statistics is not None:
        write_statistics(pipeline, args.statistics)
