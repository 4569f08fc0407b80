from pathlib import Path

import pytest

from vcfexpress.common import create_reader
from vcfexpress.header import HeaderTypeCache

TEST_VCF = Path(__file__).parent.joinpath("testcases/filter/no_expression/test.vcf")


@pytest.fixture
def reader():
    with create_reader(str(TEST_VCF)) as reader:
        yield reader


@pytest.fixture
def records(reader):
    return list(reader)


@pytest.fixture
def cache(reader):
    return HeaderTypeCache(reader.header)
