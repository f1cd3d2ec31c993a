"""
Expression compilation for graph functions.

User-typed expressions (plain text like ``x^2 - 1`` or LaTeX such as
``\\frac{1}{2}x^{2}``) are normalised, parsed with sympy and lambdified
into an :class:`Evaluator`. Compilation is fallible: invalid text yields
None from :func:`compile_expression` rather than raising, since editors
constantly hold half-typed expressions.

Supported vocabulary:
- operators ``+ - * / ^`` (``^`` is power), parentheses, implicit
  multiplication (``2x``, ``3(x+1)``)
- constants ``pi`` and ``e``
- ``sin cos tan asin acos atan sqrt abs exp pow``, ``ln`` (natural) and
  ``log`` (base 10)
- the single variable ``x``
"""

from functools import lru_cache
from typing import Callable, Optional
import math
import re

import sympy as sp
from sympy.parsing.sympy_parser import (
    parse_expr,
    standard_transformations,
    implicit_multiplication,
    convert_xor,
)


X = sp.Symbol('x')

ALLOWED_PATTERN = re.compile(r'^[0-9xX+\-*/^().,\sA-Za-z_]+$')

FUNCTION_NAMES = (
    'asin', 'acos', 'atan', 'sin', 'cos', 'tan',
    'sqrt', 'abs', 'exp', 'pow', 'ln', 'log', 'pi',
)
FUNCTION_NAME_PATTERN = re.compile(r'\b(' + '|'.join(FUNCTION_NAMES) + r')\b', re.IGNORECASE)

# Identifier directly followed by an opening parenthesis
CALL_PATTERN = re.compile(r'\b([A-Za-z_]\w*)\s*\(')

# LaTeX commands passed through unchanged as plain function names
LATEX_PASSTHROUGH = ('sin', 'cos', 'tan', 'asin', 'acos', 'atan', 'abs', 'exp',
                     'sqrt', 'ln', 'log', 'pi')

TRANSFORMATIONS = standard_transformations + (implicit_multiplication, convert_xor)


class ExpressionError(ValueError):
    """Raised by :func:`parse_expression` for text that cannot be compiled."""


def _log10(arg, **options):
    return sp.log(arg) / sp.log(10)


LOCAL_NAMES = {
    'x': X,
    'pi': sp.pi,
    'e': sp.E,
    'ln': sp.log,
    'log': _log10,
    'sin': sp.sin,
    'cos': sp.cos,
    'tan': sp.tan,
    'asin': sp.asin,
    'acos': sp.acos,
    'atan': sp.atan,
    'sqrt': sp.sqrt,
    'abs': sp.Abs,
    'exp': sp.exp,
    'pow': sp.Pow,
}

# Names referenced by the code sympy generates while parsing
GLOBAL_NAMES = {
    '__builtins__': {},
    'Symbol': sp.Symbol,
    'Integer': sp.Integer,
    'Float': sp.Float,
    'Rational': sp.Rational,
    'Function': sp.Function,
    'Add': sp.Add,
    'Mul': sp.Mul,
    'Pow': sp.Pow,
}


class Evaluator:
    """
    A compiled single-variable expression.

    Calling it never raises: math domain errors, division by zero, overflow
    and complex results all come back as NaN.
    """

    def __init__(self, expr: sp.Expr, source: str = ""):
        self.expr = expr
        self.source = source
        self._fn: Callable[[float], object] = sp.lambdify(X, expr, modules='math')

    def __call__(self, x: float) -> float:
        try:
            value = self._fn(x)
        except (ArithmeticError, ValueError, TypeError):
            return math.nan
        if isinstance(value, complex):
            return math.nan
        try:
            return float(value)
        except (TypeError, ValueError):
            return math.nan

    def transformed(self, offset_x: float = 0.0, offset_y: float = 0.0,
                    scale_y: float = 1.0) -> 'Evaluator':
        """Evaluator of ``scale_y * f(x - offset_x) + offset_y``."""
        shifted = self.expr.subs(X, X - sp.Float(offset_x)) if offset_x else self.expr
        expr = sp.Float(scale_y) * shifted + sp.Float(offset_y)
        return Evaluator(expr, self.source)

    def __repr__(self):
        return f"Evaluator({self.source!r})"


def _extract_brace_group(text: str, start: int) -> Optional[tuple[str, int]]:
    """Return (content, index of closing brace) for a group opening at start."""
    if start >= len(text) or text[start] != '{':
        return None
    depth = 0
    for i in range(start, len(text)):
        if text[i] == '{':
            depth += 1
        elif text[i] == '}':
            depth -= 1
            if depth == 0:
                return (text[start + 1:i], i)
    return None


def _skip_spaces(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] == ' ':
        pos += 1
    return pos


def convert_latex_to_expression(text: str) -> str:
    """
    Translate the LaTeX produced by the math field into plain expression text.

    Handles ``\\frac``, ``\\sqrt``, ``\\left``/``\\right``, ``^{...}``,
    brace groups, ``\\cdot``/``\\times``, ``\\mathrm{...}`` and the named
    function commands. Unknown commands are dropped; an unbalanced group
    stops the conversion at that point.
    """
    output = []
    i = 0
    n = len(text)

    while i < n:
        if text.startswith('\\frac', i):
            i = _skip_spaces(text, i + 5)
            numerator = _extract_brace_group(text, i)
            if numerator is None:
                break
            i = _skip_spaces(text, numerator[1] + 1)
            denominator = _extract_brace_group(text, i)
            if denominator is None:
                break
            i = denominator[1] + 1
            output.append(
                f"({convert_latex_to_expression(numerator[0])})"
                f"/({convert_latex_to_expression(denominator[0])})"
            )
            continue

        if text.startswith('\\sqrt', i):
            i = _skip_spaces(text, i + 5)
            radicand = _extract_brace_group(text, i)
            if radicand is None:
                break
            i = radicand[1] + 1
            output.append(f"sqrt({convert_latex_to_expression(radicand[0])})")
            continue

        if text.startswith('\\left', i):
            i += 5
            continue
        if text.startswith('\\right', i):
            i += 6
            continue

        ch = text[i]
        if ch == '^':
            if i + 1 < n and text[i + 1] == '{':
                power = _extract_brace_group(text, i + 1)
                if power is None:
                    break
                output.append(f"^({convert_latex_to_expression(power[0])})")
                i = power[1] + 1
                continue
            output.append('^')
            i += 1
            continue

        if ch == '{':
            group = _extract_brace_group(text, i)
            if group is None:
                break
            output.append(f"({convert_latex_to_expression(group[0])})")
            i = group[1] + 1
            continue

        if ch == '\\':
            j = i + 1
            while j < n and text[j].isalpha():
                j += 1
            command = text[i + 1:j]
            if command in ('cdot', 'times'):
                output.append('*')
            elif command in LATEX_PASSTHROUGH:
                output.append(command)
            elif command == 'mathrm':
                k = _skip_spaces(text, j)
                group = _extract_brace_group(text, k)
                if group is not None:
                    output.append(convert_latex_to_expression(group[0]))
                    i = group[1] + 1
                    continue
            i = j
            continue

        if ch in ' \n\t':
            i += 1
            continue

        output.append(ch)
        i += 1

    return ''.join(output)


def normalize_expression(expression: str) -> str:
    """Trim, and convert from LaTeX when the text contains LaTeX markup."""
    trimmed = expression.strip()
    if not trimmed:
        return ''
    if not re.search(r'[\\{}]', trimmed):
        return trimmed
    return convert_latex_to_expression(trimmed)


def parse_expression(expression: str) -> sp.Expr:
    """
    Parse expression text into a sympy expression in ``x``.

    Raises:
        ExpressionError: empty text, characters outside the vocabulary,
            calls to unknown functions, syntax errors, or free variables
            other than ``x``.
    """
    raw = normalize_expression(expression)
    if not raw:
        raise ExpressionError("Empty expression")
    if not ALLOWED_PATTERN.match(raw) or '__' in raw:
        raise ExpressionError(f"Unsupported characters in expression: {expression!r}")

    text = FUNCTION_NAME_PATTERN.sub(lambda m: m.group(1).lower(), raw)
    text = re.sub(r'\bX\b', 'x', text)

    # Implicit multiplication would read foo(x) as foo*x
    unknown = sorted({
        name for name in CALL_PATTERN.findall(text)
        if name not in FUNCTION_NAMES and name not in ('x', 'e')
    })
    if unknown:
        raise ExpressionError(f"Unknown functions in expression {expression!r}: {', '.join(unknown)}")

    try:
        expr = parse_expr(
            text,
            local_dict=dict(LOCAL_NAMES),
            global_dict=dict(GLOBAL_NAMES),
            transformations=TRANSFORMATIONS,
            evaluate=False,
        )
    except Exception as e:
        raise ExpressionError(f"Cannot parse expression {expression!r}: {e}") from e

    if not isinstance(expr, sp.Expr):
        raise ExpressionError(f"Not a scalar expression: {expression!r}")

    extra = expr.free_symbols - {X}
    if extra:
        names = ', '.join(sorted(str(s) for s in extra))
        raise ExpressionError(f"Unknown variables in expression {expression!r}: {names}")

    # Integers become floats so huge integer powers overflow instead of hanging
    integers = expr.atoms(sp.Integer)
    if integers:
        expr = expr.xreplace({i: sp.Float(i) for i in integers})
    return expr


@lru_cache(maxsize=256)
def compile_expression(expression: str) -> Optional[Evaluator]:
    """
    Compile expression text into an evaluator of ``x``.

    Returns:
        The evaluator, or None when the text is not a valid expression.
    """
    try:
        expr = parse_expression(expression)
    except ExpressionError:
        return None
    try:
        return Evaluator(expr, expression)
    except (NotImplementedError, NameError, SyntaxError, TypeError, ValueError):
        # Parsed, but lambdify has no numeric printer for it
        return None
