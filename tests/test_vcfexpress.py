import argparse
import os
from itertools import zip_longest
from pathlib import Path

import pytest
import yaml

from vcfexpress import __version__, errors
from vcfexpress.backend.base import Backend
from vcfexpress.common import create_reader
from vcfexpress.modules import filter

FILTER_CASES = Path(__file__).parent.joinpath("testcases/filter")

# options whose values are paths relative to the case directory
PATH_OPTIONS = {"prelude", "library"}


def test_version():
    assert __version__ != "unknown"


def idfn(val):
    if isinstance(val, os.PathLike):
        return "-".join(os.path.normpath(val).split(os.sep)[-2:])
    return str(val)


def load_config(path: Path) -> dict:
    with open(path.joinpath("config.yaml")) as config_fp:
        return yaml.load(config_fp, Loader=yaml.FullLoader) or {}


def cases():
    for d in sorted(os.listdir(FILTER_CASES)):
        if d.startswith("."):
            continue
        path = FILTER_CASES.joinpath(d)
        backends = load_config(path).get("backends", ["pysam", "cyvcf2"])
        for backend in backends:
            yield path, Backend[backend]


@pytest.mark.parametrize("testcase,backend", cases(), ids=idfn)
def test_command(testcase: Path, backend: Backend, tmp_path: Path):
    config = load_config(testcase)
    expected_exception = config.pop("raises", None)
    config.pop("backends", None)
    config.setdefault("output", str(tmp_path / "out"))
    if config["output"] != "-" and not os.path.isabs(config["output"]):
        config["output"] = str(tmp_path / config["output"])

    command = parse_command_config(config, testcase)
    command += ["--backend", str(backend)]
    args = construct_parser().parse_args(command)

    if expected_exception is not None:
        exception = getattr(errors, expected_exception)
        with pytest.raises(exception):
            filter.execute.__wrapped__(args)
        return

    filter.execute(args)
    if "template" in config:
        with open(path_or_fail(config["output"])) as actual, open(
            testcase / "expected.txt"
        ) as expected:
            assert actual.read() == expected.read()
        return

    expected = str(testcase.joinpath("expected.vcf"))
    with create_reader(config["output"], backend=backend) as vcf_actual:
        with create_reader(expected, backend=backend) as vcf_expected:
            for r1, r2 in zip_longest(vcf_actual, vcf_expected):
                assert r1 == r2

            assert vcf_actual.header.get_generic("vcfexpressVersion") == __version__
            assert vcf_actual.header.contains_generic("vcfexpressCmd")


def path_or_fail(path: str) -> str:
    assert os.path.exists(path), f"no output was written to {path}"
    return path


def test_error_exits_with_message(capsys):
    path = FILTER_CASES.joinpath("unknown_info_field")
    args = construct_parser().parse_args(
        parse_command_config(load_config(path) | {"output": os.devnull}, path)
    )
    with pytest.raises(SystemExit) as exit_info:
        filter.execute(args)
    assert exit_info.value.code == 1
    assert "Error: No INFO field 'XYZ' declared in the header" in (
        capsys.readouterr().err
    )


def test_statistics(tmp_path: Path):
    path = FILTER_CASES.joinpath("multiple_expressions")
    stats = tmp_path / "stats.yaml"
    command = parse_command_config(
        load_config(path) | {"output": str(tmp_path / "out.vcf")}, path
    )
    args = construct_parser().parse_args([*command, "--statistics", str(stats)])
    filter.execute(args)

    with open(stats) as f:
        summary = yaml.safe_load(f)
    assert summary == {
        "records evaluated": 3,
        "records passed": 2,
        "passes per expression": {"qual < 10": 1, 'info("DP") > 20': 1},
    }


def construct_parser():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(
        dest="command",
        description="valid subcommands",
        required=True,
    )
    filter.add_subcommand(subparsers)
    return parser


def parse_command_config(config: dict, case_path: Path) -> list[str]:
    command = ["filter", str(case_path.joinpath("test.vcf"))]
    for key, value in config.items():
        if key in ("backends", "raises"):
            continue
        arg = config_key_to_arg(key)
        if isinstance(value, bool):
            if value:
                command.append(arg)
            continue
        for item in value if isinstance(value, list) else [value]:
            if key in PATH_OPTIONS:
                item = case_path.joinpath(item)
            command += [arg, str(item)]
    return command


def config_key_to_arg(key: str) -> str:
    """Convert a config key to an argument name."""
    return f"--{key.replace('_', '-')}"


def test_case_configs_load():
    for d in sorted(os.listdir(FILTER_CASES)):
        config = load_config(FILTER_CASES.joinpath(d))
        assert isinstance(config, dict), d
        assert set(config.get("backends", [])) <= {b.name for b in Backend}


def test_help_names_replaced_options(capsys):
    with pytest.raises(SystemExit):
        construct_parser().parse_args(["filter", "--help"])
    out = "".join(capsys.readouterr().out.split())
    assert "--lua-prelude" in out
    assert "--lua`" in out
