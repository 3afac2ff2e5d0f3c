# covid_odata/domain/odata/query_options.py
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from covid_odata.domain.odata.apply import FilterTransformation, parse_apply
from covid_odata.domain.odata.edm import ENTITY_SETS, EntitySet
from covid_odata.domain.odata.errors import ODataError
from covid_odata.domain.odata.expressions import (
    ExpressionParser,
    PropertyPath,
    parse_filter,
    split_top_level,
)

SUPPORTED_OPTIONS = (
    "$filter",
    "$orderby",
    "$top",
    "$skip",
    "$count",
    "$select",
    "$expand",
    "$apply",
    "$format",
)
SINGLE_ENTITY_OPTIONS = ("$select", "$expand", "$format")


@dataclass(frozen=True)
class OrderByItem:
    path: PropertyPath
    descending: bool = False


@dataclass(frozen=True)
class ExpandItem:
    navigation: str
    select: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class QueryOptions:
    filter: object = None
    orderby: Tuple[OrderByItem, ...] = ()
    top: Optional[int] = None
    skip: Optional[int] = None
    count: bool = False
    select: Optional[Tuple[str, ...]] = None
    expand: Tuple[ExpandItem, ...] = ()
    apply: tuple = field(default_factory=tuple)


def parse_query_options(
    params: Mapping[str, str],
    entity_set: EntitySet,
    max_top: Optional[int] = None,
    allowed: Tuple[str, ...] = SUPPORTED_OPTIONS,
) -> QueryOptions:
    """Validate raw query-string values and turn them into a `QueryOptions`."""
    for name in params:
        if not name.startswith("$"):
            continue
        if name not in SUPPORTED_OPTIONS:
            raise ODataError(f"The query parameter '{name}' is not supported.")
        if name not in allowed:
            raise ODataError(f"The query parameter '{name}' is not allowed on this resource.")

    fmt = params.get("$format")
    if fmt is not None and fmt.split(";")[0].strip().lower() not in ("json", "application/json"):
        raise ODataError(f"The format '{fmt}' is not supported.")

    apply = parse_apply(params["$apply"]) if "$apply" in params else ()
    grouped = any(not isinstance(t, FilterTransformation) for t in apply)
    if grouped and ("$select" in params or "$expand" in params):
        raise ODataError("$select and $expand cannot be combined with an $apply grouping.")

    return QueryOptions(
        filter=parse_filter(params["$filter"]) if "$filter" in params else None,
        orderby=_parse_orderby(params["$orderby"]) if "$orderby" in params else (),
        top=_parse_top(params.get("$top"), max_top),
        skip=_parse_non_negative("$skip", params.get("$skip")),
        count=_parse_bool("$count", params.get("$count")),
        select=_parse_select(params["$select"], entity_set) if "$select" in params else None,
        expand=_parse_expand(params["$expand"], entity_set) if "$expand" in params else (),
        apply=apply,
    )


def _parse_non_negative(name: str, raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ODataError(f"Invalid value '{raw}' for {name} query option; an integer is required.")
    if value < 0:
        raise ODataError(f"Invalid value '{raw}' for {name} query option; it must be non-negative.")
    return value


def _parse_top(raw: Optional[str], max_top: Optional[int]) -> Optional[int]:
    top = _parse_non_negative("$top", raw)
    if top is not None and max_top is not None and top > max_top:
        raise ODataError(
            f"The limit of '{max_top}' for Top query has been exceeded. "
            f"The value from the incoming request is '{top}'."
        )
    return top


def _parse_bool(name: str, raw: Optional[str]) -> bool:
    if raw is None:
        return False
    lowered = raw.strip().lower()
    if lowered not in ("true", "false"):
        raise ODataError(f"Invalid value '{raw}' for {name} query option; 'true' or 'false' expected.")
    return lowered == "true"


def _parse_orderby(raw: str) -> Tuple[OrderByItem, ...]:
    items = []
    for part in split_top_level(raw):
        if not part:
            raise ODataError("Empty item in $orderby.")
        parser = ExpressionParser(part)
        path = parser.parse_path()
        descending = False
        if parser.at_keyword("asc", "desc"):
            descending = parser.advance().value == "desc"
        parser.expect_end()
        items.append(OrderByItem(path, descending))
    return tuple(items)


def _parse_select(raw: str, entity_set: EntitySet) -> Tuple[str, ...]:
    names = []
    for name in split_top_level(raw):
        if name == "*":
            return tuple(p.name for p in entity_set.properties)
        if entity_set.get_property(name) is None:
            raise ODataError(
                f"Could not find a property named '{name}' on type '{entity_set.type_name}'."
            )
        if name not in names:
            names.append(name)
    return tuple(names)


def _parse_expand(raw: str, entity_set: EntitySet) -> Tuple[ExpandItem, ...]:
    items = []
    for part in split_top_level(raw):
        name, _, nested = part.partition("(")
        name = name.strip()
        nav = entity_set.get_navigation(name)
        if nav is None:
            raise ODataError(
                f"Could not find a navigation property named '{name}' on type '{entity_set.type_name}'."
            )
        select = None
        if nested:
            if not nested.endswith(")"):
                raise ODataError(f"Unbalanced parentheses in $expand item '{part}'.")
            target = ENTITY_SETS[nav.target]
            for option in split_top_level(nested[:-1], ";"):
                key, _, value = option.partition("=")
                if key.strip() != "$select":
                    raise ODataError(f"Nested option '{key.strip()}' is not supported in $expand.")
                select = _parse_select(value, target)
        items.append(ExpandItem(nav.name, select))
    return tuple(items)
