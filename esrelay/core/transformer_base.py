# esrelay/core/transformer_base.py
from __future__ import annotations

import ast
import threading
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from simpleeval import EvalWithCompoundTypes

from .config import DataConfig
from .cursor_base import SourceDocument
from .exceptions import MultipleAccessError
from .registry import Registry

Record = Dict[str, Any]
Context = Dict[str, Any]


class ExpressionEngine(Protocol):
    def evaluate(self, expression: str, context: Mapping[str, Any]) -> Any:
        ...


_engines = Registry("script type")


def register_engine(name: str, cls: type) -> None:
    _engines.register(name, cls)


def get_engine(script_type: str) -> ExpressionEngine:
    """Instantiate the engine registered for ``script_type``. Raises ConfigError if unknown."""
    return _engines.create(script_type)


FUNCTIONS = {
    f.__name__: f
    for f in (
        abs, all, any, bool, dict, enumerate, float, int, len, list, max, min, range,
        round, set, sorted, str, sum, tuple, zip,
    )
}


class PythonExpressionEngine:
    """
    Evaluates Python-syntax expressions with simpleeval, the context keys as names, e.g.
    ``source["title"]`` or ``source.get("tags", [])[:3]``.

    Only the callables in ``FUNCTIONS`` can be called by name; attributes starting with ``_``
    are rejected (``FeatureNotAvailable``), as are imports, lambdas and assignments.
    Parsed trees are cached per expression string.
    """

    def __init__(self, functions: Optional[Mapping[str, Any]] = None) -> None:
        self.functions = dict(FUNCTIONS if functions is None else functions)
        self._lock = threading.Lock()
        self._cache: Dict[str, ast.AST] = {}

    def _parse(self, evaluator: EvalWithCompoundTypes, expression: str) -> ast.AST:
        with self._lock:
            tree = self._cache.get(expression)
            if tree is None:
                tree = evaluator.parse(expression)
                self._cache[expression] = tree
            return tree

    def evaluate(self, expression: str, context: Mapping[str, Any]) -> Any:
        # evaluators keep per-call state, one per evaluation
        evaluator = EvalWithCompoundTypes(names=dict(context), functions=self.functions)
        return evaluator.eval(expression, previously_parsed=self._parse(evaluator, expression))


register_engine("python", PythonExpressionEngine)


def build_context(
    params: Mapping[str, str],
    doc: SourceDocument,
    config: DataConfig,
    output: Record,
) -> Context:
    """
    Per-document evaluation context: the run parameters plus the hit metadata, the raw hit and
    its source, the crawl config, and the output record under construction.
    """
    context: Context = dict(params)
    context.update(
        {
            "index": doc.index,
            "id": doc.id,
            "version": doc.version,
            "clusterAlias": doc.cluster_alias,
            "primaryTerm": doc.primary_term,
            "score": doc.score,
            "seqNo": doc.seq_no,
            "hit": doc.hit,
            "source": doc.source,
            "crawlingConfig": config,
        }
    )
    context["crawlingContext"] = {"doc": output}
    return context


class RecordTransformer:
    """
    Routes each (field, expression) pair of the script map into the output record.
    The output record is the one referenced by ``context["crawlingContext"]["doc"]``.
    """

    def __init__(self, engine: Optional[ExpressionEngine] = None) -> None:
        self.engine: ExpressionEngine = engine or PythonExpressionEngine()

    def evaluate(self, script_map: Mapping[str, str], context: Context) -> Record:
        output: Record = context["crawlingContext"]["doc"]
        failures: List[Tuple[str, BaseException]] = []
        for field_name, expression in script_map.items():
            try:
                value = self.convert_value(expression, context)
            except Exception as e:
                failures.append((field_name, e))
                continue
            # None keeps whatever the defaults put there
            if value is not None:
                output[field_name] = value

        if failures:
            names = ", ".join(name for name, _ in failures)
            raise MultipleAccessError(
                f"Failed to evaluate {len(failures)} field(s): {names}",
                [e for _, e in failures],
            )
        return output

    def convert_value(self, expression: str, context: Context) -> Any:
        if not expression or not expression.strip():
            return ""
        return self.engine.evaluate(expression, context)


__all__ = [
    "ExpressionEngine",
    "PythonExpressionEngine",
    "RecordTransformer",
    "build_context",
    "get_engine",
    "register_engine",
]
