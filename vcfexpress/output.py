from abc import abstractmethod
from contextlib import ExitStack
from pathlib import Path
from typing import TextIO

from .backend.base import Backend, VCFReader, VCFRecord, VCFWriter
from .common import create_writer, smart_open
from .errors import ConfigError


class Structured:
    __slots__ = ("record",)

    def __init__(self, record: VCFRecord):
        self.record = record

    def __repr__(self):
        return f"Structured({self.record.record_idx})"


class Text:
    __slots__ = ("text",)

    def __init__(self, text: str):
        self.text = text

    def __eq__(self, other):
        return isinstance(other, Text) and self.text == other.text

    def __repr__(self):
        return f"Text({self.text!r})"


class _Suppressed:
    __slots__ = ()

    def __repr__(self):
        return "SUPPRESSED"


SUPPRESSED = _Suppressed()

OutputEvent = Structured | Text | _Suppressed

STRUCTURED_FORMATS = {
    "vcf": "",
    "compressed-vcf": "z",
    "bcf": "b",
    "uncompressed-bcf": "u",
}


class OutputSink:
    """Destination of the records (or lines) a pipeline lets through."""

    structured: bool

    @abstractmethod
    def emit(self, event: OutputEvent):
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class StructuredWriter(OutputSink):
    structured = True

    def __init__(self, writer: VCFWriter):
        self._writer = writer

    def emit(self, event: OutputEvent):
        if event is SUPPRESSED:
            return
        if not isinstance(event, Structured):
            raise ConfigError("A structured output cannot write text lines.")
        record = event.record
        if record.header.generation != self._writer.generation:  # type: ignore
            self._writer.translate(record)
        self._writer.write(record)

    def close(self):
        self._writer.close()


class _TextWriter(OutputSink):
    structured = False

    def __init__(self):
        self._stack = ExitStack()
        self._handle: TextIO = self._open()

    @abstractmethod
    def _open(self) -> TextIO:
        raise NotImplementedError

    def emit(self, event: OutputEvent):
        if event is SUPPRESSED:
            return
        if not isinstance(event, Text):
            raise ConfigError("A text output cannot write variant records.")
        print(event.text, file=self._handle)

    def close(self):
        self._stack.close()


class TextFileWriter(_TextWriter):
    def __init__(self, path: str | Path):
        self.path = str(path)
        super().__init__()

    def _open(self) -> TextIO:
        return self._stack.enter_context(smart_open(self.path, "w"))


class TextStdoutWriter(_TextWriter):
    def _open(self) -> TextIO:
        return self._stack.enter_context(smart_open("-"))


def structured_format(output: str, output_fmt: str | None) -> str:
    if output_fmt is not None:
        return STRUCTURED_FORMATS[output_fmt]
    if output.endswith(".bcf"):
        return "b"
    if output.endswith(".gz"):
        return "z"
    return ""


def create_sink(
    output: str,
    template: bool,
    reader: VCFReader | None = None,
    output_fmt: str | None = None,
    backend: Backend = Backend.pysam,
) -> OutputSink:
    """Pick the sink matching the template/output combination.

    A template always renders text; asking for a structured format at the
    same time is a configuration error.
    """
    if template:
        if output_fmt is not None:
            raise ConfigError(
                f"A template renders text; it cannot be written as '{output_fmt}'."
            )
        if output.endswith((".bcf", ".gz")):
            raise ConfigError(
                f"A template renders text; '{output}' requests structured output."
            )
        if output == "-":
            return TextStdoutWriter()
        return TextFileWriter(output)

    if reader is None:
        raise ConfigError("A structured output needs the input's header.")
    fmt = structured_format(output, output_fmt)
    return StructuredWriter(create_writer(output, fmt, reader, backend))
