import functools
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from vcfexpress.backend.base import VCFRecord


def _record_context(record: "VCFRecord | None") -> str:
    if record is None:
        return ""
    return f" in record {record.record_idx}:\n{str(record).rstrip()}"


class VcfExpressError(Exception):
    """Basic exception for errors raised by vcfexpress"""

    # (expression source, record index) of the evaluation that failed
    context: tuple[str, int] | None = None

    def add_context(self, expression: str, record_idx: int) -> "VcfExpressError":
        if self.context is None:
            self.context = (expression, record_idx)
        return self

    def __str__(self) -> str:
        if self.context is None:
            return self.args[0]
        expression, record_idx = self.context
        return (
            f"{self.args[0]}\n"
            f"(while evaluating '{expression}' on record {record_idx})"
        )


class ConfigError(VcfExpressError):
    """Conflicting construction options"""


class VariantIOError(VcfExpressError):
    """Reading or writing variant data failed"""

    def __init__(self, path: str, reason: Any) -> None:
        super().__init__(f"Could not access '{path}': {reason}")
        self.path = path


class UnknownTagError(VcfExpressError, KeyError):
    """Tag not declared in the header"""

    def __init__(self, tag: str, kind: str, record=None) -> None:
        super().__init__(
            f"No {kind} field '{tag}' declared in the header{_record_context(record)}",
        )
        self.tag = tag
        self.kind = kind
        self.record = record


class UnknownSampleError(VcfExpressError, KeyError):
    """Unknown Sample"""

    def __init__(self, sample: str, record=None) -> None:
        super().__init__(
            f"No sample with name '{sample}'{_record_context(record)}",
        )
        self.sample = sample
        self.record = record


class FieldNotFoundError(VcfExpressError, AttributeError):
    """Unknown or read-only variant field"""

    def __init__(self, field: str, reason: str = "not found") -> None:
        super().__init__(f"field '{field}' variant.{field} {reason}")
        self.field = field


class TypeMismatchError(VcfExpressError, TypeError):
    """A value does not fit the declared type of its target"""

    def __init__(self, target: str, expected: str, value: Any) -> None:
        super().__init__(
            f"Cannot use {type(value).__name__} ({value!r}) as {expected} "
            f"for '{target}'.",
        )
        self.target = target
        self.expected = expected
        self.value = value


class NonBoolTypeError(TypeMismatchError):
    def __init__(self, expression: str, value: Any):
        VcfExpressError.__init__(
            self,
            f"The expression '{expression}' does not evaluate to bool, "
            f"but to {type(value)} ({value}).\n"
            "If you wish to use truthy values, "
            "explicitly wrap the expression in `bool(…)`, "
            "or aggregate multiple values via `any(…)` or `all(…)`.",
        )
        self.target = expression
        self.expected = "bool"
        self.value = value


class ExpressionError(VcfExpressError):
    """Expression failed to compile or raised while being evaluated"""

    def __init__(
        self, expression: str, reason: Any, record_idx: int | None = None
    ) -> None:
        where = "" if record_idx is None else f" (record {record_idx})"
        super().__init__(
            f"The provided expression '{expression}' failed{where}. Reason: {reason}",
        )
        self.expression = expression
        self.record_idx = record_idx
        if record_idx is not None:
            self.context = (expression, record_idx)

    def __str__(self) -> str:
        return self.args[0]


class InvalidHeaderRecordError(VcfExpressError):
    def __init__(self, kind: str, key: str, spec: Any) -> None:
        super().__init__(
            f"must specify {key} in the argument to add_{kind.lower()}. "
            f"got {spec!r}",
        )
        self.kind = kind
        self.key = key


class ReadOnlyHeaderError(VcfExpressError):
    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Cannot {operation}: the header can only be modified in a prelude script.",
        )


class BindingExpiredError(VcfExpressError):
    def __init__(self, record_idx: int) -> None:
        super().__init__(
            f"The variant binding of record {record_idx} was used after its "
            "evaluation finished. Do not keep references to `variant` around.",
        )
        self.record_idx = record_idx


def handle_vcfexpress_error(func):
    """
    Decorator to handle VcfExpressError exceptions and print a user-friendly message.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except VcfExpressError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    return wrapper
