"""Model formulas with an "all remaining columns" wildcard.

Formulas use patsy's term algebra (``+``, ``-``, ``:``, ``*``, ``/``,
``**``, ``I(...)``, ``C(...)``, ``Q("odd name")``, ``0 +`` / ``- 1``)
plus one addition that patsy lacks: a bare ``.`` stands for every column
of the data that the response does not reference.  ``~ .`` selects all
columns, ``y ~ . - b`` all but ``b``, and ``~ . * .`` all pairwise
interactions.

A :class:`Formula` is just the two sides as text.  The wildcard is only
resolved when a schema is available (:meth:`Formula.expand`), so the same
``Formula`` can be stored on a fitted model and re-expanded later.
"""

from __future__ import annotations

import ast
import builtins
import io
import keyword
import logging
import tokenize
from collections.abc import Sequence
from dataclasses import dataclass

import patsy
import patsy.builtins
from patsy import ModelDesc, PatsyError

from .exceptions import FormulaError

logger = logging.getLogger(__name__)

WILDCARD = "."

# Tokens after which a ``.`` is in operand position, i.e. a wildcard
# rather than attribute access or part of a number.
_OPERATOR_TOKENS = frozenset({"(", "+", "-", "*", "/", ":", "**", ",", "|", "%"})

# Names that resolve inside a patsy evaluation environment without
# coming from the data.
_NON_COLUMN_NAMES = (
    frozenset(dir(builtins)) | frozenset(patsy.builtins.__all__) | {"np", "numpy"}
)


def quote_name(name: str) -> str:
    """Return *name* as a patsy term, quoting it with ``Q()`` if needed."""
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    return f"Q({name!r})"


@dataclass(frozen=True)
class Formula:
    """A model formula split into response and right-hand side.

    Attributes:
        response: Left-hand side expression, or ``None`` for a
            response-less formula (``~ a + b``).
        terms: Right-hand side term expression.  May contain the
            ``.`` wildcard.
    """

    response: str | None
    terms: str

    @classmethod
    def parse(cls, value: str | Formula) -> Formula:
        """Build a :class:`Formula` from a string such as ``"y ~ a + b"``.

        A string without ``~`` is read as a response-less right-hand
        side.  Existing ``Formula`` instances are returned as-is.

        Raises:
            FormulaError: If *value* is not a string, has more than one
                ``~``, or has an empty right-hand side.
        """
        if isinstance(value, Formula):
            return value
        if not isinstance(value, str):
            raise FormulaError(
                f"formula must be a string or Formula, got {type(value).__name__}."
            )
        text = " ".join(value.split())
        if text.count("~") > 1:
            raise FormulaError(f"formula {value!r} has more than one '~'.")
        if "~" in text:
            lhs, rhs = (part.strip() for part in text.split("~"))
        else:
            lhs, rhs = "", text.strip()
        if not rhs:
            raise FormulaError(f"formula {value!r} has no right-hand side terms.")
        return cls(response=lhs or None, terms=rhs)

    def __str__(self) -> str:
        if self.response is None:
            return f"~ {self.terms}"
        return f"{self.response} ~ {self.terms}"

    @property
    def has_response(self) -> bool:
        return self.response is not None

    @property
    def has_wildcard(self) -> bool:
        return bool(_wildcard_spans(self.terms))

    def without_response(self) -> Formula:
        """Return the same right-hand side with no response."""
        return Formula(response=None, terms=self.terms)

    # ---- Schema-dependent views ------------------------------------

    def response_variables(self, columns: Sequence[str] | None = None) -> list[str]:
        """Data columns referenced by the response expression."""
        if self.response is None:
            return []
        codes = _factor_codes(f"{self.response} ~ 1", side="lhs")
        return _referenced_names(codes, columns)

    def expand_terms(self, columns: Sequence[str]) -> str:
        """Return the right-hand side with ``.`` replaced by the columns
        of *columns* that the response does not reference.

        Raises:
            FormulaError: If the wildcard matches no columns.
        """
        spans = _wildcard_spans(self.terms)
        if not spans:
            return self.terms
        excluded = set(self.response_variables(columns))
        remaining = [c for c in columns if c not in excluded]
        if not remaining:
            raise FormulaError(f"'.' in {str(self)!r} matches no columns.")
        replacement = "(" + " + ".join(quote_name(c) for c in remaining) + ")"
        # Splice from the right so earlier offsets stay valid.
        text = self.terms
        for start, end in reversed(spans):
            text = text[:start] + replacement + text[end:]
        logger.debug("Expanded %r to %r", self.terms, text)
        return text

    def expand(self, columns: Sequence[str]) -> str:
        """Return the whole formula as a patsy string with ``.`` expanded."""
        terms = self.expand_terms(columns)
        if self.response is None:
            return f"~ {terms}"
        return f"{self.response} ~ {terms}"

    def variables(self, columns: Sequence[str] | None = None) -> list[str]:
        """Data columns the right-hand side needs, in first-use order.

        When *columns* is given, the wildcard is expanded against it and
        only names found in it are returned.  Without *columns*, the
        wildcard cannot be resolved, and every free name that is not a
        builtin, a patsy helper or ``np`` is returned.
        """
        if columns is None:
            if self.has_wildcard:
                raise FormulaError(
                    f"cannot list variables of {str(self)!r} without a schema."
                )
            terms = self.terms
        else:
            terms = self.expand_terms(columns)
        codes = _factor_codes(f"~ {terms}", side="rhs")
        return _referenced_names(codes, columns)


ALL_COLUMNS = Formula(response=None, terms=WILDCARD)
"""Response-less formula selecting every column (``~ .``)."""


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _wildcard_spans(terms: str) -> list[tuple[int, int]]:
    """Character spans of every ``.`` in operand position."""
    spans: list[tuple[int, int]] = []
    previous: tokenize.TokenInfo | None = None
    try:
        for tok in tokenize.generate_tokens(io.StringIO(terms).readline):
            if tok.type in (tokenize.NEWLINE, tokenize.NL, tokenize.ENDMARKER):
                continue
            if tok.type == tokenize.OP and tok.string == WILDCARD:
                if previous is None or (
                    previous.type == tokenize.OP and previous.string in _OPERATOR_TOKENS
                ):
                    spans.append((tok.start[1], tok.end[1]))
            previous = tok
    except (tokenize.TokenError, SyntaxError) as exc:
        raise FormulaError(f"cannot tokenize formula terms {terms!r}: {exc}") from exc
    return spans


def _factor_codes(formula: str, *, side: str) -> list[str]:
    """Python code of every factor on one side of a patsy formula."""
    try:
        desc = ModelDesc.from_formula(formula)
    except PatsyError as exc:
        raise FormulaError(f"cannot parse formula {formula!r}: {exc}") from exc
    termlist = desc.lhs_termlist if side == "lhs" else desc.rhs_termlist
    codes: list[str] = []
    for term in termlist:
        for factor in term.factors:
            code = factor.name()
            if code not in codes:
                codes.append(code)
    return codes


class _NameCollector(ast.NodeVisitor):
    """Collect free variable names, skipping called function names and
    unpacking ``Q("...")`` string arguments."""

    def __init__(self) -> None:
        self.names: list[str] = []

    def _add(self, name: str) -> None:
        if name not in self.names:
            self.names.append(name)

    def visit_Name(self, node: ast.Name) -> None:
        self._add(node.id)

    def visit_Call(self, node: ast.Call) -> None:
        if isinstance(node.func, ast.Name):
            if node.func.id == "Q":
                for arg in node.args:
                    if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
                        self._add(arg.value)
                return
        else:
            self.visit(node.func)
        for arg in node.args:
            self.visit(arg)
        for kw in node.keywords:
            self.visit(kw.value)


def _referenced_names(codes: Sequence[str], columns: Sequence[str] | None) -> list[str]:
    collector = _NameCollector()
    for code in codes:
        try:
            collector.visit(ast.parse(code, mode="eval"))
        except SyntaxError as exc:
            raise FormulaError(f"cannot parse formula term {code!r}: {exc}") from exc
    if columns is not None:
        known = set(columns)
        return [n for n in collector.names if n in known]
    return [n for n in collector.names if n not in _NON_COLUMN_NAMES]
