"""Packed genotype codes, as stored by htslib.

Each allele of a call is one signed integer: ``(allele + 1) << 1 | phased``.
A code of ``0`` (or ``1``) is a missing allele, and ``VECTOR_END`` pads
calls of samples with a lower ploidy than the record's maximum.
"""

import threading
from typing import Iterable, Iterator, NamedTuple, Sequence

VECTOR_END = -(2**31) + 1
MISSING = -(2**31)


class GenotypeAllele(NamedTuple):
    index: int | None
    phased: bool

    def __str__(self) -> str:
        return "." if self.index is None else str(self.index)


def decode(code: int) -> GenotypeAllele:
    index = (code >> 1) - 1
    return GenotypeAllele(None if index < 0 else index, bool(code & 1))


def encode(index: int | None, phased: bool) -> int:
    allele = -1 if index is None else index
    return ((allele + 1) << 1) | int(phased)


class GenotypeCall(tuple):
    """The alleles of one sample at one record."""

    __slots__ = ()

    @classmethod
    def from_codes(cls, codes: Iterable[int]) -> "GenotypeCall":
        return cls(
            decode(code) for code in codes if code not in (VECTOR_END, MISSING)
        )

    @property
    def alleles(self) -> list[int | None]:
        return [allele.index for allele in self]

    @property
    def phase(self) -> list[bool]:
        return [allele.phased for allele in self]

    def __str__(self) -> str:
        return format_call(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({format_call(self)!r})"


def format_call(call: Sequence[GenotypeAllele]) -> str:
    # the first allele is never prefixed;
    # each following allele carries its own separator
    if not call:
        return "."
    parts = [str(call[0])]
    for allele in call[1:]:
        parts.append("|" if allele.phased else "/")
        parts.append(str(allele))
    return "".join(parts)


class GenotypeBuffer:
    """Decoded calls of all samples of one record, shared by every view on them."""

    __slots__ = ("_lock", "_calls")

    def __init__(self, codes: Iterable[Iterable[int]]):
        self._lock = threading.Lock()
        self._calls = [GenotypeCall.from_codes(sample) for sample in codes]

    def __len__(self) -> int:
        with self._lock:
            return len(self._calls)

    def get(self, idx: int) -> GenotypeCall:
        with self._lock:
            return self._calls[idx]

    def snapshot(self) -> list[GenotypeCall]:
        with self._lock:
            return list(self._calls)


class Genotypes:
    """Indexable, sized view on a GenotypeBuffer.

    Views hold decoded copies only, so they stay valid after the
    variant binding that created them has been released.
    """

    __slots__ = ("_buffer", "_index_base")

    def __init__(self, buffer: GenotypeBuffer, index_base: int = 0):
        self._buffer = buffer
        self._index_base = index_base

    def __len__(self) -> int:
        return len(self._buffer)

    def __getitem__(self, idx: int) -> GenotypeCall:
        if not isinstance(idx, int):
            raise TypeError(f"genotype indices must be integers, not {type(idx)}")
        n = len(self._buffer)
        pos = idx - self._index_base if idx >= 0 else idx
        if pos >= n or pos < -n or (idx >= 0 and pos < 0):
            raise IndexError(f"index out of bounds: {idx} in len: {n}")
        return self._buffer.get(pos)

    def __iter__(self) -> Iterator[GenotypeCall]:
        yield from self._buffer.snapshot()

    def __str__(self) -> str:
        return "\t".join(map(str, self._buffer.snapshot()))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._buffer.snapshot()!r})"
