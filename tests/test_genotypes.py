import pytest

from vcfexpress.genotypes import (
    MISSING,
    VECTOR_END,
    GenotypeAllele,
    GenotypeBuffer,
    GenotypeCall,
    Genotypes,
    decode,
    encode,
    format_call,
)


@pytest.mark.parametrize("allele", [0, 1, 2, 17, 255])
@pytest.mark.parametrize("phased", [False, True])
def test_roundtrip(allele, phased):
    assert decode(encode(allele, phased)) == (allele, phased)


def test_missing_allele():
    assert decode(0) == GenotypeAllele(None, False)
    assert decode(1) == GenotypeAllele(None, True)
    assert encode(None, False) == 0


def test_htslib_codes():
    # "0|1" as stored by htslib
    assert encode(0, False) == 2
    assert encode(1, True) == 5


def test_separator_belongs_to_following_allele():
    call = [
        GenotypeAllele(0, False),
        GenotypeAllele(1, True),
        GenotypeAllele(1, False),
    ]
    assert format_call(call) == "0|1/1"


def test_first_phase_flag_is_not_rendered():
    assert format_call([GenotypeAllele(0, True), GenotypeAllele(1, False)]) == "0/1"


def test_call_from_codes_skips_padding():
    call = GenotypeCall.from_codes([encode(1, False), VECTOR_END])
    assert str(call) == "1"
    assert call.alleles == [1]
    assert str(GenotypeCall.from_codes([MISSING])) == "."


def test_call_alleles_and_phase():
    call = GenotypeCall.from_codes([2, 5])
    assert call.alleles == [0, 1]
    assert call.phase == [False, True]
    assert str(call) == "0|1"
    assert str(GenotypeCall.from_codes([0, 0])) == "./."


def test_view():
    buffer = GenotypeBuffer([[2, 5], [4, 4]])
    genotypes = Genotypes(buffer)
    assert len(genotypes) == 2
    assert str(genotypes[0]) == "0|1"
    assert str(genotypes[-1]) == "1/1"
    assert str(genotypes) == "0|1\t1/1"
    assert [call.alleles for call in genotypes] == [[0, 1], [1, 1]]
    with pytest.raises(IndexError):
        genotypes[2]


def test_view_one_based():
    genotypes = Genotypes(GenotypeBuffer([[2, 5], [4, 4]]), index_base=1)
    assert str(genotypes[1]) == "0|1"
    assert str(genotypes[2]) == "1/1"
    assert str(genotypes[-1]) == "1/1"
    with pytest.raises(IndexError):
        genotypes[0]
    with pytest.raises(IndexError):
        genotypes[3]


def test_views_share_buffer():
    buffer = GenotypeBuffer([[2, 5]])
    assert Genotypes(buffer)[0] is Genotypes(buffer)[0]
