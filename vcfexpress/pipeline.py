from sys import stderr
from typing import Any, Iterable, NamedTuple, Sequence

from .backend.base import VCFRecord
from .engine.base import CompiledExpression, ExpressionKind, ScriptEngine
from .errors import (
    ConfigError,
    ExpressionError,
    NonBoolTypeError,
    TypeMismatchError,
    VcfExpressError,
)
from .header import HeaderBinding, HeaderTypeCache, TagSpec, ValueType
from .output import SUPPRESSED, OutputEvent, OutputSink, Structured, Text
from .variant import VariantBinding

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class SetExpression(NamedTuple):
    tag: str
    spec: TagSpec
    compiled: CompiledExpression


def _coerce_scalar(tag: str, value_type: ValueType, value: Any):
    if value_type is ValueType.Integer:
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeMismatchError(tag, "Integer", value)
        # the lowest two values are htslib's missing and end-of-vector markers
        if not INT32_MIN + 2 <= value <= INT32_MAX:
            raise TypeMismatchError(tag, "32bit Integer", value)
        return value
    if value_type is ValueType.Float:
        if not isinstance(value, int | float) or isinstance(value, bool):
            raise TypeMismatchError(tag, "Float", value)
        return float(value)
    if isinstance(value, bool):
        raise TypeMismatchError(tag, str(value_type), value)
    if isinstance(value, int | float):
        return str(value)
    if not isinstance(value, str):
        raise TypeMismatchError(tag, str(value_type), value)
    return value


def coerce(tag: str, spec: TagSpec, value: Any) -> bool | list | None:
    """Convert a set-expression result to what the tag's declaration allows.

    Returns None (clear the tag), a bool for flags, or a list of values.
    """
    if value is None:
        return None
    if spec.value_type is ValueType.Flag:
        if not isinstance(value, bool):
            raise TypeMismatchError(tag, "Flag (bool)", value)
        return value
    if isinstance(value, list | tuple):
        if spec.cardinality.is_scalar:
            raise TypeMismatchError(tag, f"a single {spec.value_type}", value)
        return [_coerce_scalar(tag, spec.value_type, v) for v in value]
    return [_coerce_scalar(tag, spec.value_type, value)]


class ExpressionPipeline:
    """Runs set-expressions, filters and an optional template on each record.

    Set-expressions are evaluated for every record, before any filter.
    Filters are evaluated in order until the first one returns ``True``.
    If a filter passed and a template is configured, the template renders
    the record as a line of text. Staged set-expression values are written
    to the record once the evaluation has finished.
    """

    def __init__(
        self,
        engine: ScriptEngine,
        cache: HeaderTypeCache,
        expressions: Sequence[str] = (),
        set_expressions: Sequence[str] = (),
        template: str | None = None,
        sink: OutputSink | None = None,
        expose_header: bool = False,
    ) -> None:
        if sink is not None:
            if template is not None and sink.structured:
                raise ConfigError(
                    "A template renders text and cannot be combined "
                    "with a structured output."
                )
            if template is None and not sink.structured:
                raise ConfigError("A text output requires a template.")
        self._engine = engine
        self._cache = cache
        self._sink = sink
        self._header = HeaderBinding(cache) if expose_header else None

        self.filters = [
            engine.compile(expression, ExpressionKind.FILTER)
            for expression in (list(expressions) or ["True"])
        ]
        self.set_expressions = [self._compile_set(s) for s in set_expressions]
        self.template = (
            engine.compile(template, ExpressionKind.TEMPLATE)
            if template is not None
            else None
        )

        self.n_evaluated = 0
        self.n_passed = 0
        self.filter_passes = [0] * len(self.filters)
        self._reported_clears: set[str] = set()

    def _compile_set(self, text: str) -> SetExpression:
        if "=" not in text:
            raise ConfigError(
                f"The set-expression '{text}' must have the form TAG=EXPRESSION."
            )
        tag, expression = text.split("=", 1)
        tag = tag.strip()
        spec = self._cache.resolve(tag, "INFO")
        return SetExpression(
            tag, spec, self._engine.compile(expression.strip(), ExpressionKind.SET)
        )

    def _invoke(
        self, compiled: CompiledExpression, binding: VariantBinding, idx: int
    ) -> Any:
        try:
            return self._engine.invoke(compiled, binding, self._header)
        except VcfExpressError as e:
            raise e.add_context(compiled.source, idx)
        except Exception as e:
            raise ExpressionError(
                compiled.source, f"{type(e).__name__}: {e}", idx
            ) from e

    def evaluate(self, idx: int, record: VCFRecord) -> OutputEvent:
        self.n_evaluated += 1
        staged: list[tuple[SetExpression, Any]] = []
        passed: int | None = None
        text: str | None = None

        with VariantBinding(record, self._cache, self._engine.index_base) as binding:
            for set_expression in self.set_expressions:
                value = self._invoke(set_expression.compiled, binding, idx)
                try:
                    value = coerce(set_expression.tag, set_expression.spec, value)
                except VcfExpressError as e:
                    raise e.add_context(set_expression.compiled.source, idx)
                staged.append((set_expression, value))

            for i, expression in enumerate(self.filters):
                keep = self._invoke(expression, binding, idx)
                if not isinstance(keep, bool):
                    raise NonBoolTypeError(expression.source, keep).add_context(
                        expression.source, idx
                    )
                if keep:
                    passed = i
                    break

            if passed is not None and self.template is not None:
                text = self._render(binding, idx)

        self._write_back(idx, record, staged)

        if passed is None:
            return SUPPRESSED
        self.n_passed += 1
        self.filter_passes[passed] += 1
        if self.template is not None:
            return Text(text)  # type: ignore
        return Structured(record)

    def _render(self, binding: VariantBinding, idx: int) -> str:
        value = self._invoke(self.template, binding, idx)  # type: ignore
        if isinstance(value, int | float) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            source = self.template.source  # type: ignore
            raise TypeMismatchError(source, "String", value).add_context(source, idx)
        return value

    def _write_back(
        self,
        idx: int,
        record: VCFRecord,
        staged: list[tuple[SetExpression, Any]],
    ):
        for set_expression, value in staged:
            tag = set_expression.tag
            try:
                if value is None:
                    self._report_clear(idx, tag)
                    record.clear_info(tag)
                elif set_expression.spec.value_type is ValueType.Flag:
                    record.set_info_flag(tag, value)
                else:
                    record.set_info(tag, value)
            except (ValueError, TypeError, KeyError) as e:
                raise ExpressionError(
                    set_expression.compiled.source,
                    f"cannot store {value!r} in INFO field '{tag}': {e}",
                    idx,
                ) from e

    def _report_clear(self, idx: int, tag: str):
        if tag in self._reported_clears:
            return
        self._reported_clears.add(tag)
        print(
            f"Warning: the set-expression for '{tag}' returned None "
            f"in record {idx}, removing the field. "
            "Further occurrences are not reported.",
            file=stderr,
        )

    def run(self, records: Iterable[VCFRecord]):
        if self._sink is None:
            raise ConfigError("The pipeline has no output to write to.")
        for record in records:
            self._sink.emit(self.evaluate(record.record_idx, record))

    def statistics(self) -> dict[str, Any]:
        return {
            "records evaluated": self.n_evaluated,
            "records passed": self.n_passed,
            "passes per expression": {
                expression.source: n
                for expression, n in zip(self.filters, self.filter_passes)
            },
        }
