import ast
import builtins
from ctypes import c_float
from typing import Any

from ..errors import ExpressionError, VariantIOError, VcfExpressError
from ..globals import allowed_globals
from ..header import HeaderBinding
from ..variant import VariantBinding
from .base import CompiledExpression, ExpressionKind, ScriptEngine

BINDING_METHODS = frozenset(("info", "format", "sample"))


class WrapFloat32Visitor(ast.NodeTransformer):
    def visit_Constant(self, node):
        if not isinstance(node.value, float):
            return node

        return ast.Constant(c_float(node.value).value)


def as_fstring(template: str) -> str:
    try:
        tree = ast.parse(template, mode="eval")
        if isinstance(tree.body, ast.JoinedStr):
            return template
    except SyntaxError:
        pass
    return "f" + repr(template)


class ExpressionScope(dict):
    """Globals of a single evaluation.

    Only ``__builtins__``, ``variant`` and ``header`` are stored; all other
    names are looked up on the binding first and in the engine namespace
    second. Field values are never cached, so writes through ``variant``
    are visible to the rest of the expression.
    """

    __slots__ = ("_binding", "_namespace")

    def __init__(
        self,
        binding: VariantBinding,
        namespace: dict[str, Any],
        builtins: dict[str, Any],
        header: HeaderBinding | None = None,
    ) -> None:
        super().__init__()
        self._binding = binding
        self._namespace = namespace
        self["__builtins__"] = builtins
        self["variant"] = binding
        if header is not None:
            self["header"] = header

    def __missing__(self, name: str):
        if name in BINDING_METHODS or name in VariantBinding.FIELDS:
            return getattr(self._binding, name)
        return self._namespace[name]


class PythonEngine(ScriptEngine):
    """Evaluates guest code as Python expressions.

    With ``sandbox`` set, guest code has no builtins besides the whitelist
    in ``vcfexpress.globals`` and cannot reach dunder attributes.
    """

    index_base = 0

    def __init__(self, sandbox: bool = False) -> None:
        self.sandbox = sandbox
        self._builtins: dict[str, Any] = {} if sandbox else dict(vars(builtins))
        self.namespace: dict[str, Any] = {
            name: obj
            for name, obj in allowed_globals.items()
            if not name.startswith("__")
        }
        self.namespace["__builtins__"] = self._builtins

    def _check_source(self, source: str, origin: str):
        if self.sandbox and ".__" in source:
            raise ExpressionError(origin, "The expression must not contain '.__'")

    def compile(
        self, source: str, kind: ExpressionKind = ExpressionKind.FILTER
    ) -> CompiledExpression:
        self._check_source(source, source)
        text = as_fstring(source) if kind is ExpressionKind.TEMPLATE else source
        try:
            # parse the expression, obtaining an AST
            source_ast = ast.parse(text, mode="eval")
        except SyntaxError as se:
            raise ExpressionError(
                source,
                "The expression has to be syntactically correct.",
            ) from se

        # VCF floats are 32bit, so comparisons against python's 64bit floats
        # need the constants rounded the same way (c_float(0.6) > 0.6).
        source_ast = WrapFloat32Visitor().visit(source_ast)
        source_ast = ast.fix_missing_locations(source_ast)
        code = compile(source_ast, filename=f"<{kind}>", mode="eval")
        return CompiledExpression(source, kind, code)

    def invoke(
        self,
        compiled: CompiledExpression,
        binding: VariantBinding,
        header: HeaderBinding | None = None,
    ) -> Any:
        scope = ExpressionScope(binding, self.namespace, self._builtins, header)
        return eval(compiled.code, scope)

    def _exec_file(self, path: str):
        try:
            with open(path) as f:
                source = f.read()
        except OSError as e:
            raise VariantIOError(path, e.strerror or e) from e
        self._check_source(source, path)
        try:
            exec(compile(source, filename=path, mode="exec"), self.namespace)
        except VcfExpressError:
            raise
        except Exception as e:
            raise ExpressionError(path, f"{type(e).__name__}: {e}") from e

    def load_library(self, path: str):
        self._exec_file(path)

    def run_prelude(self, path: str, header: HeaderBinding):
        self.namespace["header"] = header
        try:
            self._exec_file(path)
        finally:
            del self.namespace["header"]
