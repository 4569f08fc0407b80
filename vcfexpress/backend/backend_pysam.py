from collections import OrderedDict, defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pysam
from pysam import VariantRecord
from pysam.libcbcf import VariantHeader

from vcfexpress.backend.base import (
    VCFHeader,
    VCFReader,
    VCFRecord,
    VCFWriter,
)

from ..genotypes import encode


def _as_list(value) -> Optional[list]:
    if value is None:
        return None
    if isinstance(value, tuple):
        return list(value)
    return [value]


class PysamRecord(VCFRecord):
    def __init__(self, record: VariantRecord, record_idx: int, header: VCFHeader):
        super().__init__(record, record_idx, header)

    @property
    def contig(self) -> str:
        return self._raw_record.chrom or ""

    @property
    def start(self) -> int:
        return self._raw_record.start

    def set_start(self, start: int):
        self._raw_record.pos = start + 1

    @property
    def stop(self) -> int:
        return self._raw_record.stop

    @property
    def id(self) -> Optional[str]:
        return self._raw_record.id

    def set_id(self, id: Optional[str]):
        self._raw_record.id = "." if id is None else id

    @property
    def reference_allele(self) -> str:
        return self._raw_record.ref

    @property
    def alt_alleles(self) -> Tuple[str, ...]:
        return tuple(self._raw_record.alts or ())

    def set_alleles(self, ref: str, alts: Sequence[str]):
        self._raw_record.alleles = (ref, *alts)

    @property
    def quality(self) -> Optional[float]:
        return self._raw_record.qual

    def set_quality(self, quality: Optional[float]):
        self._raw_record.qual = quality

    @property
    def filter(self) -> List[str]:
        return list(self._raw_record.filter)

    def set_filters(self, filters: Sequence[str]):
        self._raw_record.filter.clear()
        for name in filters:
            self._raw_record.filter.add(name)

    def info_values(self, tag: str) -> Optional[list]:
        try:
            return _as_list(self._raw_record.info[tag])
        except KeyError:
            return None

    def has_info_flag(self, tag: str) -> bool:
        return tag in self._raw_record.info

    def set_info(self, tag: str, values: list):
        if self._header.infos[tag]["Number"] == "1":
            self._raw_record.info[tag] = values[0]
        else:
            self._raw_record.info[tag] = tuple(values)

    def set_info_flag(self, tag: str, present: bool):
        if present:
            self._raw_record.info[tag] = True
        else:
            self.clear_info(tag)

    def clear_info(self, tag: str):
        if tag in self._raw_record.info:
            del self._raw_record.info[tag]

    def format_values(self, tag: str) -> Optional[List[list]]:
        if tag not in self._raw_record.format:
            return None
        return [
            _as_list(sample[tag]) or [None]
            for sample in self._raw_record.samples.values()
        ]

    def genotype_codes(self) -> Optional[List[List[int]]]:
        if "GT" not in self._raw_record.format:
            return None
        codes = []
        for sample in self._raw_record.samples.values():
            phased = sample.phased
            codes.append(
                [
                    encode(allele, phased and i > 0)
                    for i, allele in enumerate(sample["GT"] or ())
                ]
            )
        return codes

    def __str__(self):
        return self._raw_record.__str__()


class PysamReader(VCFReader):
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
        self._file = pysam.VariantFile(str(self.filename))
        self._header = PysamHeader(self._file, overwrite_number)
        self._current_record_idx = 0
        self._iter_file = None

    def __next__(self):
        if self._iter_file is None:
            self._iter_file = self._file.__iter__()
        self._current_record_idx += 1
        return PysamRecord(
            self._iter_file.__next__(),
            self._current_record_idx,
            self._header,
        )


class PysamHeader(VCFHeader):
    __slots__ = (
        "_file",
        "_raw_header",
        "_metadata_category",
        "_metadata_generic",
        "generation",
    )

    def __init__(self, file: pysam.VariantFile, overwrite_number=None):
        if overwrite_number is None:
            overwrite_number = {}
        self._file = file
        self._raw_header: VariantHeader = file.header
        self._metadata_category: defaultdict[str | None, OrderedDict] = defaultdict(
            OrderedDict
        )
        self._metadata_generic = dict()
        self.generation = 0

        for r in self._raw_header.records:
            if r.type == "GENERIC":
                self._metadata_generic[r.key] = r.value
                continue
            d = dict(r)
            if "ID" in d:
                self._metadata_category[r.type][d["ID"]] = d

        self._overwrite_numbers(self._metadata_category, overwrite_number)

    def contains_generic(self, key: str) -> bool:
        return key in self._metadata_generic

    def get_generic(self, key: str) -> str:
        return self._metadata_generic[key]

    @property
    def infos(self):
        return self._metadata_category["INFO"]

    @property
    def formats(self):
        return self._metadata_category["FORMAT"]

    @property
    def samples(self) -> List[str]:
        return list(self._raw_header.samples)

    @property
    def filters(self) -> List[str]:
        return list(self._raw_header.filters)

    def _add_typed(self, key: str, id: str, number: str, type: str, description):
        self._raw_header.add_meta(
            key=key,
            items=[
                ("ID", id),
                ("Number", number),
                ("Type", type),
                ("Description", description),
            ],
        )
        self._metadata_category[key][id] = {
            "ID": id,
            "Number": number,
            "Type": type,
            "Description": description,
        }
        self.generation += 1

    def add_info(self, id: str, number: str, type: str, description: str):
        self._add_typed("INFO", id, number, type, description)

    def add_format(self, id: str, number: str, type: str, description: str):
        self._add_typed("FORMAT", id, number, type, description)

    def add_filter(self, id: str, description: str):
        self._raw_header.add_meta(
            key="FILTER",
            items=[("ID", id), ("Description", description)],
        )
        self.generation += 1

    def add_generic(self, key: str, value: str):
        self._raw_header.add_meta(key, value)
        self._metadata_generic[key] = value

    def subset_samples(self, samples: List[str]):
        self._file.subset_samples(samples)
        self.generation += 1

    def __str__(self) -> str:
        return str(self._raw_header)


class PysamWriter(VCFWriter):
    __slots__ = ("filename", "_file", "_generation")

    def __init__(self, filename: str | Path, fmt: str, template: VCFReader):
        self.filename = filename
        header = template.header
        self._file = pysam.VariantFile(
            str(self.filename),
            f"w{fmt}",  # type: ignore
            header=header._raw_header,  # type: ignore
        )
        self._generation = header.generation

    @property
    def generation(self) -> int:
        return self._generation

    def translate(self, record: VCFRecord):
        record._raw_record.translate(self._file.header)

    def write(self, record: VCFRecord):
        self._file.write(record._raw_record)
