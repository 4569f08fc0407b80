from abc import abstractmethod, abstractproperty
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple


class Backend(Enum):
    pysam = 0
    cyvcf2 = 1

    def __str__(self):
        return self.name.lower()

    def __repr__(self):
        return str(self)

    @staticmethod
    def from_string(s):
        try:
            return Backend[s]
        except KeyError:
            return s


class VCFHeader:
    """Schema of a variant file: tag declarations, filters and samples.

    ``generation`` is bumped on every mutation, so writers can tell whether
    records were produced under a different header than their own.
    """

    generation: int

    @abstractproperty
    def samples(self) -> List[str]:
        raise NotImplementedError

    @abstractproperty
    def filters(self) -> List[str]:
        raise NotImplementedError

    @abstractproperty
    def infos(self) -> Dict[str, Dict[str, str]]:
        raise NotImplementedError

    @abstractproperty
    def formats(self) -> Dict[str, Dict[str, str]]:
        raise NotImplementedError

    @abstractmethod
    def add_info(self, id: str, number: str, type: str, description: str):
        raise NotImplementedError

    @abstractmethod
    def add_format(self, id: str, number: str, type: str, description: str):
        raise NotImplementedError

    @abstractmethod
    def add_filter(self, id: str, description: str):
        raise NotImplementedError

    @abstractmethod
    def add_generic(self, key: str, value: str):
        raise NotImplementedError

    @abstractmethod
    def contains_generic(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_generic(self, key: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def subset_samples(self, samples: List[str]):
        raise NotImplementedError

    @abstractmethod
    def __str__(self) -> str:
        raise NotImplementedError

    @staticmethod
    def _overwrite_numbers(
        categories: Dict[str, Dict[str, Dict[str, str]]],
        overwrite_number: Dict[str, Dict[str, str]],
    ):
        for category, items in overwrite_number.items():
            for key, value in items.items():
                if key in categories[category]:
                    categories[category][key]["Number"] = value


class VCFRecord:
    """Backend-neutral view on one native record.

    Positions are 0-based. Absent values are ``None``; list-valued getters
    return ``None`` for absent tags and keep ``None`` for missing elements.
    """

    __slots__ = ("_raw_record", "record_idx", "_header")

    @abstractmethod
    def __init__(self, record, record_idx: int, header: VCFHeader):
        self._raw_record = record
        self.record_idx = record_idx
        self._header = header

    @property
    def header(self) -> VCFHeader:
        return self._header

    @abstractproperty
    def contig(self) -> str:
        raise NotImplementedError

    @abstractproperty
    def start(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def set_start(self, start: int):
        raise NotImplementedError

    @abstractproperty
    def stop(self) -> int:
        raise NotImplementedError

    @abstractproperty
    def id(self) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set_id(self, id: Optional[str]):
        raise NotImplementedError

    @property
    def alleles(self) -> Tuple[str, ...]:
        return self.reference_allele, *self.alt_alleles

    @abstractproperty
    def reference_allele(self) -> str:
        raise NotImplementedError

    @abstractproperty
    def alt_alleles(self) -> Tuple[str, ...]:
        raise NotImplementedError

    @abstractmethod
    def set_alleles(self, ref: str, alts: Sequence[str]):
        raise NotImplementedError

    @abstractproperty
    def quality(self) -> Optional[float]:
        raise NotImplementedError

    @abstractmethod
    def set_quality(self, quality: Optional[float]):
        raise NotImplementedError

    @abstractproperty
    def filter(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def set_filters(self, filters: Sequence[str]):
        raise NotImplementedError

    @abstractmethod
    def info_values(self, tag: str) -> Optional[list]:
        raise NotImplementedError

    @abstractmethod
    def has_info_flag(self, tag: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def set_info(self, tag: str, values: list):
        raise NotImplementedError

    @abstractmethod
    def set_info_flag(self, tag: str, present: bool):
        raise NotImplementedError

    @abstractmethod
    def clear_info(self, tag: str):
        raise NotImplementedError

    @abstractmethod
    def format_values(self, tag: str) -> Optional[List[list]]:
        """One list of values per sample, or None if the tag is absent."""
        raise NotImplementedError

    @abstractmethod
    def genotype_codes(self) -> Optional[List[List[int]]]:
        """Packed allele codes per sample, or None without a GT field."""
        raise NotImplementedError

    @abstractmethod
    def __str__(self):
        return self._raw_record.__str__()

    def __repr__(self):
        return str(self)

    def __eq__(self, other: object):
        if not isinstance(other, VCFRecord):
            return NotImplemented
        return all(
            (
                self.contig == other.contig,
                self.id == other.id,
                self.alleles == other.alleles,
                self.start == other.start,
                self.quality == other.quality,
                set(self.filter) == set(other.filter),
                all(
                    self.info_values(key) == other.info_values(key)
                    for key in self.header.infos
                    if self.header.infos[key]["Type"] != "Flag"
                ),
                all(
                    self.has_info_flag(key) == other.has_info_flag(key)
                    for key in self.header.infos
                    if self.header.infos[key]["Type"] == "Flag"
                ),
                all(
                    self.format_values(key) == other.format_values(key)
                    for key in self.header.formats
                    if key != "GT"
                ),
                self.genotype_codes() == other.genotype_codes(),
            ),
        )


class VCFReader:
    __slots__ = ("_file",)

    @abstractmethod
    def __init__(self, filename: str):
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self._file.close()

    def __iter__(self) -> Iterator[VCFRecord]:
        return self

    @property
    def file(self):
        return self._file

    @abstractmethod
    def __next__(self) -> VCFRecord:
        raise NotImplementedError

    @property
    def header(self) -> VCFHeader:
        return self._header  # type: ignore


class VCFWriter:
    __slots__ = ("_file",)

    @abstractmethod
    def __init__(self, filename: str, fmt: str, template: VCFReader):
        raise NotImplementedError

    @abstractproperty
    def generation(self) -> int:
        """Generation of the header this writer was created from."""
        raise NotImplementedError

    @abstractmethod
    def write(self, record: VCFRecord):
        raise NotImplementedError

    @abstractmethod
    def translate(self, record: VCFRecord):
        """Re-map the header references of a record to this writer's header."""
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self._file.close()
