import math
import re

# The builtins list below was generated with:
#    python -c 'print(
#        *sorted(o for o in dir(__builtins__) if o.islower() and not o.startswith("_")),
#        sep="\n",
#    )'
from typing import Any, Dict, Iterable

from .genotypes import GenotypeCall

_builtins = {
    obj.__name__: obj
    for obj in (
        abs,
        all,
        any,
        # # ascii,
        # bin,
        bool,
        # # breakpoint,
        # # bytearray,
        # # bytes,
        # # callable,
        chr,
        # # classmethod,
        # # compile,
        # # complex,
        # # copyright,
        # # credits,
        # # delattr,
        dict,
        # # dir,
        # divmod,
        enumerate,
        # # eval,
        # # exec,
        # # exit,
        filter,
        float,
        format,
        # frozenset,
        # # getattr,
        # # globals,
        # # hasattr,
        # # hash,
        # # help,
        # hex,
        # # id,
        # # input,
        int,
        isinstance,
        # # issubclass,
        iter,
        len,
        # # license,
        list,
        # # locals,
        map,
        max,
        # # memoryview,
        min,
        next,
        # # object,
        # oct,
        # # open,
        ord,
        # pow,
        # # print,
        # # property,
        # # quit,
        range,
        # # repr,
        reversed,
        round,
        set,
        # # setattr,
        # # slice,
        sorted,
        # # staticmethod,
        str,
        sum,
        # # super,
        tuple,
        # # type,
        # # vars,
        zip,
    )
}


_modules = {mod.__name__: mod for mod in (re,)}

_math_exports = {
    name: mod for name, mod in vars(math).items() if not name.startswith("__")
}

_explicit_clear = {
    "__builtins__": {},
    "__builtin__": {},
    "__file__": None,
    "__name__": None,
    "__doc__": None,
    "__package__": None,
}


def _called(call: GenotypeCall) -> list[int]:
    return [allele for allele in call.alleles if allele is not None]


def is_hom(call: GenotypeCall) -> bool:
    alleles = _called(call)
    return bool(alleles) and all(a == alleles[0] for a in alleles[1:])


def is_het(call: GenotypeCall) -> bool:
    alleles = _called(call)
    return any(a != alleles[0] for a in alleles[1:])


def is_hom_ref(call: GenotypeCall) -> bool:
    alleles = _called(call)
    return bool(alleles) and all(a == 0 for a in alleles)


def is_hom_var(call: GenotypeCall) -> bool:
    alleles = _called(call)
    return bool(alleles) and all(a != 0 for a in alleles) and is_hom(call)


def has_ref(call: GenotypeCall) -> bool:
    return 0 in _called(call)


def has_var(call: GenotypeCall) -> bool:
    return any(a != 0 for a in _called(call))


def _counter(predicate):
    def count(genotypes: Iterable[GenotypeCall]) -> int:
        return sum(predicate(call) for call in genotypes)

    count.__name__ = f"count_{predicate.__name__.removeprefix('is_')}"
    return count


_genotype_functions: Dict[str, Any] = {
    func.__name__: func
    for func in (
        is_hom,
        is_het,
        is_hom_ref,
        is_hom_var,
        has_ref,
        has_var,
        *map(_counter, (is_hom, is_het, is_hom_ref, is_hom_var)),
    )
}

allowed_globals = {
    **_builtins,
    **_modules,
    **_math_exports,
    **_genotype_functions,
    **_explicit_clear,
}
