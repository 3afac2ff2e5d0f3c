# covid_odata/domain/odata/sql.py
"""Compile OData expression trees into SQLAlchemy column expressions."""
import operator
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import Date, and_, distinct, extract, func, literal, not_, null, or_
from sqlalchemy.sql.elements import ClauseElement

from covid_odata.domain.odata.apply import AggregateExpression
from covid_odata.domain.odata.edm import ENTITY_SETS, EntitySet, NavigationProperty, StructuralProperty
from covid_odata.domain.odata.errors import ODataError
from covid_odata.domain.odata.expressions import (
    BinaryOp,
    FunctionCall,
    Literal,
    PropertyPath,
    UnaryOp,
)

_COMPARISONS = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
}
_ARITHMETIC = {
    "add": operator.add,
    "sub": operator.sub,
    "mul": operator.mul,
    "div": operator.truediv,
    "mod": operator.mod,
}

BOOLEAN = "Edm.Boolean"
STRING = "Edm.String"
INTEGER_TYPES = ("Edm.Int32", "Edm.Int64")
NUMERIC_TYPES = INTEGER_TYPES + ("Edm.Decimal", "Edm.Double")
DATE_TYPES = ("Edm.Date", "Edm.DateTimeOffset")

# name -> (argument types, result type)
_FUNCTION_TYPES = {
    "contains": ((STRING, STRING), BOOLEAN),
    "startswith": ((STRING, STRING), BOOLEAN),
    "endswith": ((STRING, STRING), BOOLEAN),
    "tolower": ((STRING,), STRING),
    "toupper": ((STRING,), STRING),
    "trim": ((STRING,), STRING),
    "length": ((STRING,), "Edm.Int32"),
    "concat": ((STRING, STRING), STRING),
    "year": (("Edm.Date",), "Edm.Int32"),
    "month": (("Edm.Date",), "Edm.Int32"),
    "day": (("Edm.Date",), "Edm.Int32"),
}


def path_label(path: PropertyPath) -> str:
    return "__".join(path.segments)


class EntityResolver:
    """Resolves property paths against an entity set, recording the joins they need."""

    def __init__(self, entity_set: EntitySet):
        self.entity_set = entity_set
        self.joins: List[NavigationProperty] = []

    def _lookup(self, path: PropertyPath):
        es = self.entity_set
        head = path.segments[0]

        if len(path.segments) == 1:
            prop = es.get_property(head)
            if prop is not None:
                return es, prop, None
            if es.get_navigation(head) is not None:
                raise ODataError(f"Navigation property '{head}' cannot be used as a value.")
            raise ODataError(f"Could not find a property named '{head}' on type '{es.type_name}'.")

        nav = es.get_navigation(head)
        if nav is None:
            raise ODataError(f"Could not find a navigation property named '{head}' on type '{es.type_name}'.")
        if nav.collection:
            raise ODataError(f"Collection navigation property '{head}' cannot be traversed in a path.")
        if len(path.segments) > 2:
            raise ODataError(f"Property path '{path}' is too deep.")

        target = ENTITY_SETS[nav.target]
        name = path.segments[1]
        prop: Optional[StructuralProperty] = target.get_property(name)
        if prop is None:
            raise ODataError(f"Could not find a property named '{name}' on type '{target.type_name}'.")
        return target, prop, nav

    def edm_type(self, path: PropertyPath) -> str:
        _, prop, _ = self._lookup(path)
        return prop.edm_type

    def resolve(self, path: PropertyPath):
        owner, prop, nav = self._lookup(path)
        if nav is not None and nav not in self.joins:
            self.joins.append(nav)
        return owner.column(prop.name).__clause_element__()

    def apply_joins(self, stmt):
        for nav in self.joins:
            stmt = stmt.join(getattr(self.entity_set.model, nav.attribute))
        return stmt


class SubqueryResolver:
    """Resolves paths against the labelled output columns of an `$apply` subquery."""

    def __init__(self, subquery, labels: Dict[str, str], types: Dict[str, str]):
        self.subquery = subquery
        self.labels = labels  # "Region/Name" -> "Region__Name"
        self.types = types  # "Region/Name" -> "Edm.String"

    def _label(self, path: PropertyPath) -> str:
        key = str(path)
        if key not in self.labels:
            raise ODataError(f"Property '{key}' is not available after $apply.")
        return key

    def edm_type(self, path: PropertyPath) -> str:
        return self.types[self._label(path)]

    def resolve(self, path: PropertyPath):
        return self.subquery.c[self.labels[self._label(path)]]


def as_clause(value):
    if isinstance(value, ClauseElement):
        return value
    if value is None:
        return null()
    return literal(value)


def _coerce_for(column, value):
    """Convert a raw literal to match a Date column."""
    if isinstance(column, ClauseElement) and isinstance(getattr(column, "type", None), Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError:
                raise ODataError(f"'{value}' is not a valid Edm.Date value.")
    return value


# ---------------------------------------------------------------------------
# Type checking
# ---------------------------------------------------------------------------

def _literal_type(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, int):
        return "Edm.Int32" if -2 ** 31 <= value < 2 ** 31 else "Edm.Int64"
    if isinstance(value, float):
        return "Edm.Double"
    if isinstance(value, datetime):
        return "Edm.DateTimeOffset"
    if isinstance(value, date):
        return "Edm.Date"
    return STRING


def _comparable(left: str, right: str, left_node, right_node) -> bool:
    if left == right:
        return True
    if left in NUMERIC_TYPES and right in NUMERIC_TYPES:
        return True
    if left in DATE_TYPES and right in DATE_TYPES:
        return True
    # quoted dates are accepted against Edm.Date properties
    if left in DATE_TYPES and right == STRING and isinstance(right_node, Literal):
        return True
    if right in DATE_TYPES and left == STRING and isinstance(left_node, Literal):
        return True
    return False


def expression_type(node, resolver) -> Optional[str]:
    """Edm type an expression evaluates to; None for the null literal.

    Raises ODataError when an operator or function gets operands of the wrong type.
    """
    if isinstance(node, Literal):
        return _literal_type(node.value)
    if isinstance(node, PropertyPath):
        return resolver.edm_type(node)
    if isinstance(node, UnaryOp):
        operand = expression_type(node.operand, resolver)
        if node.op == "not":
            if operand != BOOLEAN:
                raise ODataError(f"The 'not' operator requires an Edm.Boolean operand, found '{operand}'.")
            return BOOLEAN
        if operand not in NUMERIC_TYPES:
            raise ODataError(f"The '-' operator requires a numeric operand, found '{operand}'.")
        return operand
    if isinstance(node, BinaryOp):
        return _binary_type(node, resolver)
    if isinstance(node, FunctionCall):
        return _function_type(node, resolver)
    raise ODataError(f"Unsupported expression node {node!r}.")


def _binary_type(node: BinaryOp, resolver) -> str:
    left = expression_type(node.left, resolver)
    right = expression_type(node.right, resolver)

    if node.op in ("and", "or"):
        if left != BOOLEAN or right != BOOLEAN:
            raise ODataError(
                f"The '{node.op}' operator requires Edm.Boolean operands, found '{left}' and '{right}'."
            )
        return BOOLEAN

    if node.op in _COMPARISONS:
        if left is None or right is None:
            if node.op not in ("eq", "ne"):
                raise ODataError(f"null cannot be used with the '{node.op}' operator.")
            return BOOLEAN
        if not _comparable(left, right, node.left, node.right):
            raise ODataError(
                f"Operands of types '{left}' and '{right}' cannot be compared with the '{node.op}' operator."
            )
        if node.op not in ("eq", "ne") and BOOLEAN in (left, right):
            raise ODataError(f"Edm.Boolean operands cannot be used with the '{node.op}' operator.")
        return BOOLEAN

    if node.op in _ARITHMETIC:
        if left is None or right is None:
            raise ODataError(f"null cannot be used with the '{node.op}' operator.")
        if left not in NUMERIC_TYPES or right not in NUMERIC_TYPES:
            raise ODataError(
                f"The '{node.op}' operator requires numeric operands, found '{left}' and '{right}'."
            )
        if left in INTEGER_TYPES and right in INTEGER_TYPES:
            return "Edm.Int64" if "Edm.Int64" in (left, right) else "Edm.Int32"
        return "Edm.Double" if "Edm.Double" in (left, right) else "Edm.Decimal"

    raise ODataError(f"Unsupported operator '{node.op}'.")


def _function_type(node: FunctionCall, resolver) -> str:
    if node.name not in _FUNCTION_TYPES:
        raise ODataError(f"Unknown function '{node.name}'.")
    expected, result = _FUNCTION_TYPES[node.name]
    for position, (arg, want) in enumerate(zip(node.args, expected), start=1):
        found = expression_type(arg, resolver)
        if found != want:
            raise ODataError(
                f"Argument {position} of '{node.name}' must be of type '{want}', found '{found}'."
            )
    return result


def compile_filter(node, resolver):
    """Compile a `$filter` or `filter()` expression, which must be boolean."""
    found = expression_type(node, resolver)
    if found != BOOLEAN:
        raise ODataError(f"The filter expression must evaluate to Edm.Boolean, found '{found}'.")
    return compile_expression(node, resolver)


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------

def compile_expression(node, resolver):
    """Return a SQLAlchemy expression, or a plain Python value for bare literals."""
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, PropertyPath):
        return resolver.resolve(node)
    if isinstance(node, UnaryOp):
        operand = compile_expression(node.operand, resolver)
        if node.op == "not":
            return not_(as_clause(operand))
        return -as_clause(operand)
    if isinstance(node, BinaryOp):
        return _compile_binary(node, resolver)
    if isinstance(node, FunctionCall):
        return _compile_function(node, resolver)
    raise ODataError(f"Unsupported expression node {node!r}.")


def _compile_binary(node: BinaryOp, resolver):
    left = compile_expression(node.left, resolver)
    right = compile_expression(node.right, resolver)

    if node.op == "and":
        return and_(as_clause(left), as_clause(right))
    if node.op == "or":
        return or_(as_clause(left), as_clause(right))

    if node.op in _COMPARISONS:
        if node.op in ("eq", "ne") and (left is None or right is None):
            other = right if left is None else left
            if other is None:
                return literal(node.op == "eq")
            clause = as_clause(other)
            return clause.is_(None) if node.op == "eq" else clause.is_not(None)
        if left is None or right is None:
            raise ODataError(f"null cannot be used with the '{node.op}' operator.")
        right = _coerce_for(left, right)
        left = _coerce_for(right, left)
        if not isinstance(left, ClauseElement):
            left = as_clause(left)
        return _COMPARISONS[node.op](left, right)

    if node.op in _ARITHMETIC:
        if left is None or right is None:
            raise ODataError(f"null cannot be used with the '{node.op}' operator.")
        if not isinstance(left, ClauseElement):
            left = as_clause(left)
        if node.op == "div" and _integral(node.left, resolver) and _integral(node.right, resolver):
            # integer division truncates
            return operator.floordiv(left, right)
        return _ARITHMETIC[node.op](left, right)

    raise ODataError(f"Unsupported operator '{node.op}'.")


def _integral(node, resolver) -> bool:
    return expression_type(node, resolver) in INTEGER_TYPES


def _compile_function(node: FunctionCall, resolver):
    args = [compile_expression(a, resolver) for a in node.args]
    name = node.name

    if name in ("contains", "startswith", "endswith"):
        target, needle = args
        if not isinstance(target, ClauseElement):
            target = as_clause(target)
        method = getattr(target, name)
        if isinstance(needle, str):
            return method(needle, autoescape=True)
        return method(as_clause(needle))

    arg = as_clause(args[0])
    if name == "tolower":
        return func.lower(arg)
    if name == "toupper":
        return func.upper(arg)
    if name == "trim":
        return func.trim(arg)
    if name == "length":
        return func.length(arg)
    if name == "concat":
        return arg.concat(as_clause(args[1]))
    if name in ("year", "month", "day"):
        return extract(name, arg)
    raise ODataError(f"Unknown function '{name}'.")


def aggregate_type(agg: AggregateExpression, resolver) -> str:
    if agg.method in ("count", "countdistinct"):
        return "Edm.Int64"
    source = resolver.edm_type(agg.path)
    if agg.method in ("sum", "average") and source not in NUMERIC_TYPES:
        raise ODataError(f"Cannot apply '{agg.method}' to '{agg.path}' of type '{source}'.")
    return "Edm.Decimal" if agg.method == "average" else source


def compile_aggregate(agg: AggregateExpression, resolver):
    if agg.method == "count":
        return func.count().label(agg.alias)
    aggregate_type(agg, resolver)
    column = resolver.resolve(agg.path)
    if agg.method == "sum":
        expr = func.sum(column)
    elif agg.method == "min":
        expr = func.min(column)
    elif agg.method == "max":
        expr = func.max(column)
    elif agg.method == "average":
        expr = func.avg(column)
    else:
        expr = func.count(distinct(column))
    return expr.label(agg.alias)
