from abc import abstractmethod
from enum import Enum
from types import CodeType
from typing import Any, NamedTuple

from ..header import HeaderBinding
from ..variant import VariantBinding


class ExpressionKind(Enum):
    FILTER = "filter"
    SET = "set-expression"
    TEMPLATE = "template"

    def __str__(self):
        return self.value


class CompiledExpression(NamedTuple):
    source: str
    kind: ExpressionKind
    code: CodeType


class ScriptEngine:
    """Contract between the expression pipeline and a guest language.

    Expressions are compiled once and invoked once per record, with the
    record's binding passed in explicitly.
    """

    # index of the first element of a sequence, as seen by the guest
    index_base: int = 0

    @abstractmethod
    def compile(
        self, source: str, kind: ExpressionKind = ExpressionKind.FILTER
    ) -> CompiledExpression:
        raise NotImplementedError

    @abstractmethod
    def invoke(
        self,
        compiled: CompiledExpression,
        binding: VariantBinding,
        header: HeaderBinding | None = None,
    ) -> Any:
        raise NotImplementedError

    @abstractmethod
    def load_library(self, path: str):
        raise NotImplementedError

    @abstractmethod
    def run_prelude(self, path: str, header: HeaderBinding):
        raise NotImplementedError
