from enum import Enum
from typing import Any, Mapping, NamedTuple

from .backend.base import VCFHeader
from .errors import (
    ConfigError,
    InvalidHeaderRecordError,
    ReadOnlyHeaderError,
    UnknownSampleError,
    UnknownTagError,
)


class ValueType(Enum):
    Integer = "Integer"
    Float = "Float"
    String = "String"
    Flag = "Flag"
    Character = "Character"

    def __str__(self):
        return self.value

    @staticmethod
    def from_string(s: str) -> "ValueType":
        try:
            return ValueType(s)
        except ValueError as ve:
            raise ConfigError(f"Unsupported header Type '{s}'.") from ve


class CardinalityKind(Enum):
    FIXED = "fixed"
    PER_ALT_ALLELE = "A"
    PER_ALLELE = "R"
    PER_GENOTYPE = "G"
    VARIABLE = "."


class Cardinality(NamedTuple):
    kind: CardinalityKind
    count: int | None = None

    @staticmethod
    def from_number(number: str | int) -> "Cardinality":
        number = str(number).strip()
        if number.isdigit():
            return Cardinality(CardinalityKind.FIXED, int(number))
        try:
            return Cardinality(CardinalityKind(number))
        except ValueError as ve:
            raise ConfigError(f"Unsupported header Number '{number}'.") from ve

    @property
    def is_scalar(self) -> bool:
        return self.kind is CardinalityKind.FIXED and self.count == 1

    def __str__(self):
        if self.kind is CardinalityKind.FIXED:
            return str(self.count)
        return self.kind.value


class TagSpec(NamedTuple):
    tag: str
    value_type: ValueType
    cardinality: Cardinality


class HeaderTypeCache:
    """Resolves and memoizes the declared type and cardinality of header tags.

    The header is only mutated while prelude scripts run, before the
    per-record loop; each mutation invalidates the entry of the affected
    tag. During the record loop the cache is effectively read-only.
    """

    __slots__ = ("_header", "_tags", "_sample_index")

    def __init__(self, header: VCFHeader):
        self._header = header
        self._tags: dict[tuple[str, str], TagSpec] = {}
        self._sample_index: dict[str, int] | None = None

    @property
    def header(self) -> VCFHeader:
        return self._header

    def resolve(self, tag: str, kind: str = "INFO") -> TagSpec:
        key = (kind, tag)
        try:
            return self._tags[key]
        except KeyError:
            pass
        category = self._header.infos if kind == "INFO" else self._header.formats
        try:
            meta = category[tag]
        except KeyError as ke:
            raise UnknownTagError(tag, kind) from ke
        spec = self._tags[key] = TagSpec(
            tag,
            ValueType.from_string(meta["Type"]),
            Cardinality.from_number(meta["Number"]),
        )
        return spec

    def invalidate(self, tag: str):
        self._tags.pop(("INFO", tag), None)
        self._tags.pop(("FORMAT", tag), None)

    @property
    def samples(self) -> list[str]:
        return list(self._header.samples)

    def sample_index(self, name: str) -> int:
        if self._sample_index is None:
            self.refresh_samples()
        try:
            return self._sample_index[name]  # type: ignore
        except KeyError as ke:
            raise UnknownSampleError(name) from ke

    def refresh_samples(self):
        self._sample_index = {
            name: idx for idx, name in enumerate(self._header.samples)
        }


def _require(kind: str, spec: Mapping[str, Any], keys: tuple[str, ...]) -> list:
    values = []
    for key in keys:
        if key not in spec:
            raise InvalidHeaderRecordError(kind, key, dict(spec))
        values.append(str(spec[key]))
    return values


class HeaderBinding:
    """The `header` object seen by guest scripts.

    It is mutable only while a prelude runs; afterwards it is a read-only
    view on the schema.
    """

    __slots__ = ("_cache", "_mutable")

    def __init__(self, cache: HeaderTypeCache, mutable: bool = False):
        self._cache = cache
        self._mutable = mutable

    def _check_mutable(self, operation: str):
        if not self._mutable:
            raise ReadOnlyHeaderError(operation)

    def release(self):
        self._mutable = False

    @property
    def samples(self) -> list[str]:
        return self._cache.samples

    @samples.setter
    def samples(self, samples: list[str]):
        self._check_mutable("set header.samples")
        known = set(self._cache.samples)
        for sample in samples:
            if sample not in known:
                raise UnknownSampleError(sample)
        self._cache.header.subset_samples(list(samples))
        self._cache.refresh_samples()

    @property
    def infos(self) -> dict[str, dict[str, str]]:
        return {key: dict(meta) for key, meta in self._cache.header.infos.items()}

    @property
    def formats(self) -> dict[str, dict[str, str]]:
        return {key: dict(meta) for key, meta in self._cache.header.formats.items()}

    @property
    def filters(self) -> list[str]:
        return list(self._cache.header.filters)

    def _validated(self, kind: str, spec: Mapping[str, Any] | None, kwargs) -> list:
        spec = {**(spec or {}), **kwargs}
        tag, number, typ, description = _require(
            kind, spec, ("ID", "Number", "Type", "Description")
        )
        # fail early on malformed Number/Type
        Cardinality.from_number(number)
        ValueType.from_string(typ)
        return [tag, number, typ, description]

    def add_info(self, spec: Mapping[str, Any] | None = None, **kwargs):
        self._check_mutable("add an INFO field")
        tag, number, typ, description = self._validated("INFO", spec, kwargs)
        self._cache.header.add_info(tag, number, typ, description)
        self._cache.invalidate(tag)

    def add_format(self, spec: Mapping[str, Any] | None = None, **kwargs):
        self._check_mutable("add a FORMAT field")
        tag, number, typ, description = self._validated("FORMAT", spec, kwargs)
        self._cache.header.add_format(tag, number, typ, description)
        self._cache.invalidate(tag)

    def add_filter(self, spec: Mapping[str, Any] | None = None, **kwargs):
        self._check_mutable("add a FILTER")
        tag, description = _require(
            "FILTER", {**(spec or {}), **kwargs}, ("ID", "Description")
        )
        self._cache.header.add_filter(tag, description)

    def __str__(self) -> str:
        return str(self._cache.header)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(samples={self.samples!r})"
