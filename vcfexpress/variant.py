from typing import Any, Callable, Dict, Optional, Tuple

from .backend.base import VCFRecord
from .errors import (
    BindingExpiredError,
    FieldNotFoundError,
    TypeMismatchError,
    UnknownSampleError,
    UnknownTagError,
)
from .genotypes import GenotypeBuffer, GenotypeCall, Genotypes
from .header import HeaderTypeCache, TagSpec, ValueType


class SampleValues(dict):
    """FORMAT values of one sample, accessible as items or attributes.

    Declared tags without a value on the record map to ``None``.
    """

    __slots__ = ()

    def __getattr__(self, name: str):
        if name.startswith("__"):
            raise AttributeError(name)
        return self[name]

    def __missing__(self, key):
        raise UnknownTagError(key, "FORMAT")


class VariantBinding:
    """Lease on one record for the duration of one evaluation.

    Guest code sees the record through the fields registered in ``FIELDS``
    and the ``info``, ``format`` and ``sample`` methods. Once released,
    every access raises ``BindingExpiredError``.
    """

    __slots__ = ("_record", "_cache", "_index_base", "_released", "_genotypes")

    FIELDS: Dict[str, Tuple[Callable, Optional[Callable]]] = {}

    def __init__(self, record: VCFRecord, cache: HeaderTypeCache, index_base=0):
        object.__setattr__(self, "_record", record)
        object.__setattr__(self, "_cache", cache)
        object.__setattr__(self, "_index_base", index_base)
        object.__setattr__(self, "_released", False)
        object.__setattr__(self, "_genotypes", None)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def release(self):
        object.__setattr__(self, "_released", True)

    def _checked(self) -> VCFRecord:
        if self._released:
            raise BindingExpiredError(self._record.record_idx)
        return self._record

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            getter, _ = VariantBinding.FIELDS[name]
        except KeyError:
            raise FieldNotFoundError(name) from None
        return getter(self)

    def __setattr__(self, name: str, value: Any):
        try:
            _, setter = VariantBinding.FIELDS[name]
        except KeyError:
            raise FieldNotFoundError(name) from None
        if setter is None:
            raise FieldNotFoundError(name, "is read-only")
        setter(self, value)

    def _resolve(self, tag: str, kind: str) -> TagSpec:
        try:
            return self._cache.resolve(tag, kind)
        except UnknownTagError as e:
            raise UnknownTagError(tag, kind, self._record) from e

    def _element(self, values: list, index: int, tag: str):
        pos = index - self._index_base
        if not 0 <= pos < len(values):
            raise IndexError(
                f"index {index} out of bounds for '{tag}' with {len(values)} values"
            )
        return values[pos]

    def info(self, tag: str, index: int | None = None):
        """Value of an INFO tag; ``None`` if declared but absent."""
        record = self._checked()
        spec = self._resolve(tag, "INFO")
        if spec.value_type is ValueType.Flag:
            return record.has_info_flag(tag)
        values = record.info_values(tag)
        if values is None:
            return None
        if index is not None:
            return self._element(values, index, tag)
        if spec.cardinality.is_scalar:
            return values[0]
        return values

    def format(self, tag: str):
        """Values of a FORMAT tag for all samples, in header order."""
        record = self._checked()
        spec = self._resolve(tag, "FORMAT")
        if tag == "GT":
            return [call.alleles for call in self._genotype_buffer().snapshot()]
        values = record.format_values(tag)
        if values is None:
            return None
        if spec.cardinality.is_scalar:
            return [sample[0] for sample in values]
        return values

    def sample(self, name: str) -> SampleValues:
        record = self._checked()
        try:
            idx = self._cache.sample_index(name)
        except UnknownSampleError as e:
            raise UnknownSampleError(name, record) from e
        result = SampleValues()
        for tag in record.header.formats:
            if tag == "GT":
                buffer = self._genotype_buffer()
                call = buffer.get(idx) if len(buffer) else GenotypeCall()
                result["GT"] = call.alleles
                result["phase"] = call.phase
                continue
            values = record.format_values(tag)
            if values is None:
                result[tag] = None
            elif self._resolve(tag, "FORMAT").cardinality.is_scalar:
                result[tag] = values[idx][0]
            else:
                result[tag] = values[idx]
        return result

    def _genotype_buffer(self) -> GenotypeBuffer:
        if self._genotypes is None:
            codes = self._checked().genotype_codes() or []
            object.__setattr__(self, "_genotypes", GenotypeBuffer(codes))
        return self._genotypes  # type: ignore

    def __str__(self) -> str:
        return str(self._checked()).rstrip("\n")

    def __repr__(self) -> str:
        state = "released" if self._released else "bound"
        return f"{self.__class__.__name__}({self._record.record_idx}, {state})"


def _expect(target: str, value: Any, types: tuple, expected: str):
    if not isinstance(value, types) or (isinstance(value, bool) and bool not in types):
        raise TypeMismatchError(target, expected, value)
    return value


def _set_pos(binding: VariantBinding, value):
    binding._checked().set_start(_expect("pos", value, (int,), "Integer"))


def _set_qual(binding: VariantBinding, value):
    if value is not None:
        value = float(_expect("qual", value, (int, float), "Float"))
    binding._checked().set_quality(value)


def _get_id(binding: VariantBinding) -> str:
    return binding._checked().id or "."


def _set_id(binding: VariantBinding, value):
    value = _expect("id", value, (str,), "String")
    binding._checked().set_id(None if value == "." else value)


def _set_ref(binding: VariantBinding, value):
    record = binding._checked()
    record.set_alleles(_expect("REF", value, (str,), "String"), record.alt_alleles)


def _get_alt(binding: VariantBinding) -> list[str]:
    return list(binding._checked().alt_alleles) or ["."]


def _set_alt(binding: VariantBinding, value):
    if isinstance(value, str):
        value = [value]
    alts = [_expect("ALT", alt, (str,), "String") for alt in value]
    record = binding._checked()
    record.set_alleles(record.reference_allele, [] if alts == ["."] else alts)


def _set_filters(binding: VariantBinding, value):
    if isinstance(value, str):
        value = [value]
    binding._checked().set_filters(
        [_expect("filters", name, (str,), "String") for name in value]
    )


def _get_filter(binding: VariantBinding) -> str | None:
    filters = binding._checked().filter
    return filters[0] if filters else None


def _set_filter(binding: VariantBinding, value):
    _set_filters(binding, [] if value is None else [value])


def _get_stop(binding: VariantBinding) -> int:
    record = binding._checked()
    return record.start + len(record.reference_allele)


VariantBinding.FIELDS.update(
    {
        "chrom": (lambda b: b._checked().contig, None),
        "pos": (lambda b: b._checked().start, _set_pos),
        "start": (lambda b: b._checked().start, _set_pos),
        "stop": (_get_stop, None),
        "end": (_get_stop, None),
        "qual": (lambda b: b._checked().quality, _set_qual),
        "id": (_get_id, _set_id),
        "REF": (lambda b: b._checked().reference_allele, _set_ref),
        "ALT": (_get_alt, _set_alt),
        "filters": (lambda b: b._checked().filter, _set_filters),
        "FILTER": (_get_filter, _set_filter),
        "genotypes": (
            lambda b: Genotypes(b._genotype_buffer(), b._index_base),
            None,
        ),
        "samples": (lambda b: b._cache.samples, None),
    }
)
