# covid_odata/domain/odata/apply.py
"""Parser for the `$apply` data-aggregation option (filter / groupby / aggregate)."""
from dataclasses import dataclass
from typing import Optional, Tuple

from covid_odata.domain.odata.errors import ODataError
from covid_odata.domain.odata.expressions import ExpressionParser, PropertyPath

AGGREGATE_METHODS = ("sum", "min", "max", "average", "countdistinct")


@dataclass(frozen=True)
class AggregateExpression:
    alias: str
    method: str  # one of AGGREGATE_METHODS or "count" for `$count as X`
    path: Optional[PropertyPath] = None


@dataclass(frozen=True)
class FilterTransformation:
    expression: object


@dataclass(frozen=True)
class GroupByTransformation:
    paths: Tuple[PropertyPath, ...]
    aggregates: Tuple[AggregateExpression, ...] = ()


@dataclass(frozen=True)
class AggregateTransformation:
    aggregates: Tuple[AggregateExpression, ...]


def parse_apply(text: str) -> tuple:
    if not text or not text.strip():
        raise ODataError("The $apply query option must not be empty.")

    parser = ExpressionParser(text)
    transformations = [_parse_transformation(parser)]
    while parser.peek().kind == "SLASH":
        parser.advance()
        transformations.append(_parse_transformation(parser))
    parser.expect_end()

    grouping = [t for t in transformations if not isinstance(t, FilterTransformation)]
    if len(grouping) > 1:
        raise ODataError("Only one groupby or aggregate transformation is supported in $apply.")
    return tuple(transformations)


def _parse_transformation(parser: ExpressionParser):
    tok = parser.expect("IDENT")
    name = tok.value
    parser.expect("LPAREN")

    if name == "filter":
        node = parser.parse_expression()
        parser.expect("RPAREN")
        return FilterTransformation(node)

    if name == "groupby":
        parser.expect("LPAREN")
        paths = [parser.parse_path()]
        while parser.peek().kind == "COMMA":
            parser.advance()
            paths.append(parser.parse_path())
        parser.expect("RPAREN")
        aggregates: Tuple[AggregateExpression, ...] = ()
        if parser.peek().kind == "COMMA":
            parser.advance()
            parser.expect("IDENT", "aggregate")
            parser.expect("LPAREN")
            aggregates = _parse_aggregate_list(parser)
        parser.expect("RPAREN")
        return GroupByTransformation(tuple(paths), aggregates)

    if name == "aggregate":
        return AggregateTransformation(_parse_aggregate_list(parser))

    raise ODataError(f"Unsupported $apply transformation '{name}'.")


def _parse_aggregate_list(parser: ExpressionParser) -> Tuple[AggregateExpression, ...]:
    """Parse `item, item, ...)`; the opening parenthesis is already consumed."""
    items = [_parse_aggregate_item(parser)]
    while parser.peek().kind == "COMMA":
        parser.advance()
        items.append(_parse_aggregate_item(parser))
    parser.expect("RPAREN")

    aliases = [a.alias for a in items]
    if len(set(aliases)) != len(aliases):
        raise ODataError("Aggregate aliases must be unique.")
    return tuple(items)


def _parse_aggregate_item(parser: ExpressionParser) -> AggregateExpression:
    if parser.at_keyword("$count"):
        parser.advance()
        parser.expect("IDENT", "as")
        return AggregateExpression(alias=parser.expect("IDENT").value, method="count")

    path = parser.parse_path()
    parser.expect("IDENT", "with")
    method = parser.expect("IDENT").value
    if method not in AGGREGATE_METHODS:
        raise ODataError(f"Unsupported aggregation method '{method}'.")
    parser.expect("IDENT", "as")
    alias = parser.expect("IDENT").value
    return AggregateExpression(alias=alias, method=method, path=path)
