from collections import OrderedDict, defaultdict
from math import isnan
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from cyvcf2.cyvcf2 import VCF, Variant, Writer  # type: ignore

from vcfexpress.backend.base import (
    VCFHeader,
    VCFReader,
    VCFRecord,
    VCFWriter,
)

from ..genotypes import encode

# cyvcf2 hands out htslib's sentinels for missing integers
INT32_MISSING = np.iinfo(np.int32).min
INT32_VECTOR_END = INT32_MISSING + 1
# htslib marks missing floats and vector ends with distinct NaN payloads
FLOAT32_VECTOR_END_BITS = 0x7F800002


def _strip_vector_end(row) -> np.ndarray:
    row = np.atleast_1d(row)
    if row.dtype == np.float32:
        return row[row.view(np.uint32) != FLOAT32_VECTOR_END_BITS]
    if np.issubdtype(row.dtype, np.integer):
        return row[row != INT32_VECTOR_END]
    return row


def _scalar(value):
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, float) and isnan(value):
        return None
    if isinstance(value, int) and value == INT32_MISSING:
        return None
    if value == ".":
        return None
    return value


class Cyvcf2Reader(VCFReader):
    __slots__ = (
        "filename",
        "_iter_file",
        "_header",
        "_current_record_idx",
    )

    def __init__(
        self,
        filename: str | Path,
        overwrite_number: Dict[str, Dict[str, str]] | None = None,
    ):
        if overwrite_number is None:
            overwrite_number = {}
        self.filename = filename
        self._file = VCF(str(self.filename))
        self._header = Cyvcf2Header(self, overwrite_number)
        self._current_record_idx = 0
        self._iter_file = None

    def __next__(self):
        if self._iter_file is None:
            self._iter_file = self._file.__iter__()
        self._current_record_idx += 1
        return Cyvcf2Record(
            self._iter_file.__next__(),
            self._current_record_idx,
            self._header,
        )


class Cyvcf2Header(VCFHeader):
    __slots__ = ("_reader", "_data_category", "_metadata_generic", "generation")

    def __init__(
        self,
        reader: Cyvcf2Reader,
        overwrite_number: Dict[str, Dict[str, str]],
    ):
        self._reader = reader
        self._data_category: defaultdict[str | None, OrderedDict] = defaultdict(
            OrderedDict
        )
        self._metadata_generic = dict()
        self.generation = 0

        for r in reader._file.header_iter():
            if r.type == "GENERIC":
                continue
            d = r.info()
            if "ID" in d:
                self._data_category[r.type][d["ID"]] = d

        specific_keys = {r.type for r in reader._file.header_iter()} | {"contig"}
        _generic_entries = [
            r.lstrip("#").split("=", 1)
            for r in reader._file.raw_header.split("\n")
            if r.startswith("##")
        ]
        for k, v in _generic_entries:
            if k not in specific_keys:
                self._metadata_generic[k] = v

        self._overwrite_numbers(self._data_category, overwrite_number)

    def contains_generic(self, key: str) -> bool:
        return key in self._metadata_generic

    def get_generic(self, key: str) -> str:
        return self._metadata_generic[key]

    @property
    def infos(self):
        return self._data_category["INFO"]

    @property
    def formats(self):
        return self._data_category["FORMAT"]

    @property
    def filters(self) -> List[str]:
        return list(self._data_category["FILTER"])

    @property
    def samples(self) -> List[str]:
        return list(self._reader._file.samples)

    def _add_typed(self, key: str, id: str, number: str, type: str, description):
        meta = {"ID": id, "Number": number, "Type": type, "Description": description}
        if key == "INFO":
            self._reader._file.add_info_to_header(meta)
        else:
            self._reader._file.add_format_to_header(meta)
        self._data_category[key][id] = meta
        self.generation += 1

    def add_info(self, id: str, number: str, type: str, description: str):
        self._add_typed("INFO", id, number, type, description)

    def add_format(self, id: str, number: str, type: str, description: str):
        self._add_typed("FORMAT", id, number, type, description)

    def add_filter(self, id: str, description: str):
        self._reader._file.add_filter_to_header({"ID": id, "Description": description})
        self._data_category["FILTER"][id] = {"ID": id, "Description": description}
        self.generation += 1

    def add_generic(self, key: str, value: str):
        self._metadata_generic[key] = value
        self._reader._file.add_to_header(f"##{key}={value}")

    def subset_samples(self, samples: List[str]):
        self._reader._file.set_samples(samples)
        self.generation += 1

    def __str__(self) -> str:
        return self._reader._file.raw_header


class Cyvcf2Record(VCFRecord):
    __slots__ = ()

    def __init__(self, record: Variant, record_idx: int, header: Cyvcf2Header):
        super().__init__(record, record_idx, header)

    @property
    def contig(self) -> str:
        return self._raw_record.CHROM or ""

    @property
    def start(self) -> int:
        return self._raw_record.start

    def set_start(self, start: int):
        self._raw_record.set_pos(start)

    @property
    def stop(self) -> int:
        return self._raw_record.end

    @property
    def id(self) -> Optional[str]:
        return self._raw_record.ID

    def set_id(self, id: Optional[str]):
        self._raw_record.ID = "." if id is None else id

    @property
    def reference_allele(self) -> str:
        return self._raw_record.REF

    @property
    def alt_alleles(self) -> Tuple[str, ...]:
        return tuple(self._raw_record.ALT)

    def set_alleles(self, ref: str, alts: Sequence[str]):
        self._raw_record.REF = ref
        self._raw_record.ALT = list(alts)

    @property
    def quality(self) -> Optional[float]:
        return self._raw_record.QUAL

    def set_quality(self, quality: Optional[float]):
        self._raw_record.QUAL = quality

    @property
    def filter(self) -> List[str]:
        return list(self._raw_record.FILTERS)

    def set_filters(self, filters: Sequence[str]):
        # cyvcf2 needs a semicolon separated string
        self._raw_record.FILTER = ";".join(filters) if filters else None

    def _is_string_list(self, tag: str) -> bool:
        meta = self._header.infos[tag]
        return meta["Type"] in ("String", "Character") and meta["Number"] != "1"

    def info_values(self, tag: str) -> Optional[list]:
        value = self._raw_record.INFO.get(tag)
        if value is None:
            return None
        # for some reason cyvcf2 doesn't split String lists, a known circumstance
        if isinstance(value, str) and self._is_string_list(tag):
            return [_scalar(v) for v in value.split(",")]
        if isinstance(value, tuple):
            return [_scalar(v) for v in value]
        return [_scalar(value)]

    def has_info_flag(self, tag: str) -> bool:
        return self._raw_record.INFO.get(tag) is not None

    def set_info(self, tag: str, values: list):
        if self._is_string_list(tag):
            self._raw_record.INFO[tag] = ",".join(map(str, values))
        elif self._header.infos[tag]["Number"] == "1":
            self._raw_record.INFO[tag] = values[0]
        else:
            self._raw_record.INFO[tag] = tuple(values)

    def set_info_flag(self, tag: str, present: bool):
        if present:
            self._raw_record.INFO[tag] = True
        else:
            self.clear_info(tag)

    def clear_info(self, tag: str):
        if self._raw_record.INFO.get(tag) is not None:
            del self._raw_record.INFO[tag]

    def format_values(self, tag: str) -> Optional[List[list]]:
        if tag not in self._raw_record.FORMAT:
            return None
        array = self._raw_record.format(tag)
        if array is None:
            return None
        meta = self._header.formats[tag]
        values = []
        for row in array:
            if meta["Type"] in ("String", "Character"):
                text = _scalar(row if np.ndim(row) == 0 else row[0])
                if text is None:
                    values.append([None])
                elif meta["Number"] != "1":
                    values.append([_scalar(v) for v in text.split(",")])
                else:
                    values.append([text])
                continue
            values.append([_scalar(v) for v in _strip_vector_end(row)])
        return values

    def genotype_codes(self) -> Optional[List[List[int]]]:
        if "GT" not in self._raw_record.FORMAT:
            return None
        codes = []
        for *alleles, phased in self._raw_record.genotypes:
            codes.append(
                [
                    encode(None if allele < 0 else allele, bool(phased) and i > 0)
                    for i, allele in enumerate(alleles)
                ]
            )
        return codes

    def __str__(self):
        return self._raw_record.__str__()


class Cyvcf2Writer(VCFWriter):
    __slots__ = ("_generation",)

    def __init__(self, filename: str | Path, fmt: str, template: VCFReader):
        self._file = Writer(str(filename), template.file, mode=f"w{fmt}")
        self._generation = template.header.generation

    @property
    def generation(self) -> int:
        return self._generation

    def translate(self, record: VCFRecord):
        # cyvcf2 records are always rendered against the writer's own header
        pass

    def write(self, record: VCFRecord):
        self._file.write_record(record._raw_record)
