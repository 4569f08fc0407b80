import pytest

from vcfexpress.backend.base import Backend
from vcfexpress.common import create_reader
from vcfexpress.errors import (
    BindingExpiredError,
    FieldNotFoundError,
    TypeMismatchError,
    UnknownSampleError,
    UnknownTagError,
)
from vcfexpress.header import HeaderTypeCache
from vcfexpress.variant import VariantBinding


@pytest.fixture
def first(records, cache):
    return VariantBinding(records[0], cache)


def test_site_fields(first):
    assert first.chrom == "chr1"
    assert first.pos == 6
    assert first.start == 6
    assert first.stop == first.end == 7
    assert first.qual == 50
    assert first.id == "rs1234"
    assert first.REF == "A"
    assert first.ALT == ["AT"]
    assert first.filters == ["PASS"]
    assert first.FILTER == "PASS"
    assert first.samples == ["NA12878", "NA12879"]


def test_missing_id(records, cache):
    assert VariantBinding(records[2], cache).id == "."


def test_info(first):
    assert first.info("DP") == 10
    assert first.info("GENE") == "ABC"
    assert first.info("AF") == [0.25]
    assert first.info("AFx", 0) == 0.5
    assert first.info("DB") is True


def test_info_absent(records, cache):
    second = VariantBinding(records[1], cache)
    assert second.info("GENE") is None
    assert second.info("DB") is False
    assert second.info("AF", 1) == pytest.approx(0.2)
    with pytest.raises(IndexError):
        second.info("AF", 2)


def test_info_one_based(records, cache):
    second = VariantBinding(records[1], cache, index_base=1)
    assert second.info("AF", 1) == pytest.approx(0.1)
    assert str(second.genotypes[1]) == "0/2"


def test_unknown_names(first):
    with pytest.raises(UnknownTagError):
        first.info("XYZ")
    with pytest.raises(UnknownSampleError):
        first.sample("NA00001")
    with pytest.raises(FieldNotFoundError) as e:
        first.depth
    assert str(e.value) == "field 'depth' variant.depth not found"
    with pytest.raises(FieldNotFoundError):
        first.chrom = "chr2"


def test_format(first):
    assert first.format("DP") == [12, 8]
    assert first.format("AD") == [[6, 6], [0, 8]]
    assert first.format("GT") == [[0, 1], [1, 1]]


def test_format_absent(records, cache):
    assert VariantBinding(records[1], cache).format("AD") is None


def test_sample(first):
    sample = first.sample("NA12878")
    assert sample.GT == [0, 1]
    assert sample.phase == [False, True]
    assert sample["DP"] == 12
    assert sample.AD == [6, 6]
    with pytest.raises(UnknownTagError):
        sample.XD


def test_sample_missing_values(records, cache):
    sample = VariantBinding(records[1], cache).sample("NA12879")
    assert sample.GT == [None, None]
    assert sample.DP is None
    assert sample.AD is None


def test_genotypes(first):
    genotypes = first.genotypes
    assert len(genotypes) == 2
    assert str(genotypes[0]) == "0|1"
    assert str(genotypes[1]) == "1/1"
    assert genotypes[0].alleles == [0, 1]


def test_setters(records, cache):
    binding = VariantBinding(records[0], cache)
    binding.id = "renamed"
    binding.pos = 9
    binding.qual = 12.5
    binding.ALT = ["G", "T"]
    binding.REF = "C"
    binding.filters = ["q10"]
    assert binding.id == "renamed"
    assert binding.pos == 9
    assert binding.qual == 12.5
    assert binding.REF == "C"
    assert binding.ALT == ["G", "T"]
    assert binding.FILTER == "q10"

    record = records[0]
    assert record.start == 9
    assert record.alleles == ("C", "G", "T")


def test_setter_types(first):
    with pytest.raises(TypeMismatchError):
        first.pos = "7"
    with pytest.raises(TypeMismatchError):
        first.pos = True
    with pytest.raises(TypeMismatchError):
        first.ALT = [1]


def test_released_binding(records, cache):
    with VariantBinding(records[0], cache) as binding:
        genotypes = binding.genotypes
    with pytest.raises(BindingExpiredError):
        binding.chrom
    with pytest.raises(BindingExpiredError):
        binding.info("DP")
    # decoded views stay usable
    assert str(genotypes[0]) == "0|1"


VARIABLE_FLOAT_VCF = """\
##fileformat=VCFv4.2
##contig=<ID=chr1,length=1000>
##FORMAT=<ID=VAF,Number=.,Type=Float,Description="Variant allele fractions">
#CHROM	POS	ID	REF	ALT	QUAL	FILTER	INFO	FORMAT	S1	S2	S3
chr1	7	.	A	C,T	.	.	.	VAF	0.5,0.25	0.125	.
"""


@pytest.mark.parametrize("backend", list(Backend), ids=str)
def test_variable_length_float_format(backend, tmp_path):
    path = tmp_path / "vaf.vcf"
    path.write_text(VARIABLE_FLOAT_VCF)
    with create_reader(str(path), backend=backend) as reader:
        cache = HeaderTypeCache(reader.header)
        (record,) = list(reader)
        binding = VariantBinding(record, cache)
        assert binding.format("VAF") == [[0.5, 0.25], [0.125], [None]]
        assert binding.sample("S2").VAF == [0.125]
