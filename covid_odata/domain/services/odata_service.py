# covid_odata/domain/services/odata_service.py
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote, urlencode

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from covid_odata.domain.odata.apply import FilterTransformation, GroupByTransformation
from covid_odata.domain.odata.edm import ENTITY_SETS, EntitySet
from covid_odata.domain.odata.errors import ODataError, ResourceNotFound
from covid_odata.domain.odata.query_options import ExpandItem, QueryOptions
from covid_odata.domain.odata.sql import (
    EntityResolver,
    SubqueryResolver,
    aggregate_type,
    as_clause,
    compile_aggregate,
    compile_filter,
    path_label,
)

logger = logging.getLogger(__name__)

# left unescaped in nextLink query strings
_LINK_SAFE_CHARS = "$,()/':"


@dataclass
class QueryResult:
    value: List[Dict[str, Any]]
    context: str
    count: Optional[int] = None
    next_skip: Optional[int] = None
    next_top: Optional[int] = None


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def to_json_value(value):
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def serialize_entity(
    entity_set: EntitySet,
    obj,
    select: Optional[Tuple[str, ...]] = None,
    expand: Tuple[ExpandItem, ...] = (),
) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for prop in entity_set.properties:
        if select is None or prop.name in select:
            out[prop.name] = to_json_value(getattr(obj, prop.attribute))

    for item in expand:
        nav = entity_set.get_navigation(item.navigation)
        target = ENTITY_SETS[nav.target]
        related = getattr(obj, nav.attribute)
        if nav.collection:
            key_attr = target.get_property(target.key).attribute
            out[nav.name] = [
                serialize_entity(target, r, item.select)
                for r in sorted(related, key=lambda r: getattr(r, key_attr))
            ]
        else:
            out[nav.name] = serialize_entity(target, related, item.select) if related is not None else None
    return out


def _context_fragment(entity_set: EntitySet, options: QueryOptions) -> str:
    parts = list(options.select or ())
    for item in options.expand:
        parts.append(f"{item.navigation}({','.join(item.select or ())})")
    if not parts:
        return entity_set.name
    return f"{entity_set.name}({','.join(parts)})"


# ---------------------------------------------------------------------------
# Statement building
# ---------------------------------------------------------------------------

def _split_apply(apply: tuple):
    """Split `$apply` into (filters before grouping, grouping, filters after grouping)."""
    before, grouping, after = [], None, []
    for t in apply:
        if isinstance(t, FilterTransformation):
            (after if grouping is not None else before).append(t)
        else:
            grouping = t
    return before, grouping, after


def _order_clauses(options: QueryOptions, resolver) -> list:
    clauses = []
    for item in options.orderby:
        column = resolver.resolve(item.path)
        clauses.append(column.desc() if item.descending else column.asc())
    return clauses


def _entity_statement(entity_set: EntitySet, options: QueryOptions):
    resolver = EntityResolver(entity_set)
    before, _, _ = _split_apply(options.apply)

    conditions = [compile_filter(t.expression, resolver) for t in before]
    if options.filter is not None:
        conditions.append(compile_filter(options.filter, resolver))
    orders = _order_clauses(options, resolver)
    if not any(str(item.path) == entity_set.key for item in options.orderby):
        orders.append(entity_set.key_column.asc())

    stmt = resolver.apply_joins(select(entity_set.model))
    if conditions:
        stmt = stmt.where(and_(*[as_clause(c) for c in conditions]))
    return stmt, orders


def _aggregate_statement(entity_set: EntitySet, options: QueryOptions):
    resolver = EntityResolver(entity_set)
    before, grouping, after = _split_apply(options.apply)

    labels: Dict[str, str] = {}
    types: Dict[str, str] = {}
    group_columns, output_columns = [], []
    if isinstance(grouping, GroupByTransformation):
        for path in grouping.paths:
            column = resolver.resolve(path)
            labels[str(path)] = path_label(path)
            types[str(path)] = resolver.edm_type(path)
            group_columns.append(column)
            output_columns.append(column.label(path_label(path)))
    for agg in grouping.aggregates:
        if agg.alias in labels:
            raise ODataError(f"Aggregate alias '{agg.alias}' collides with a grouped property.")
        labels[agg.alias] = agg.alias
        types[agg.alias] = aggregate_type(agg, resolver)
        output_columns.append(compile_aggregate(agg, resolver))

    conditions = [compile_filter(t.expression, resolver) for t in before]
    inner = resolver.apply_joins(select(*output_columns).select_from(entity_set.model))
    if conditions:
        inner = inner.where(and_(*[as_clause(c) for c in conditions]))
    if group_columns:
        inner = inner.group_by(*group_columns)

    applied = inner.subquery("applied")
    outer_resolver = SubqueryResolver(applied, labels, types)

    post = [compile_filter(t.expression, outer_resolver) for t in after]
    if options.filter is not None:
        post.append(compile_filter(options.filter, outer_resolver))
    orders = _order_clauses(options, outer_resolver)
    # grouped columns give a stable order for paging
    ordered = {str(item.path) for item in options.orderby}
    if isinstance(grouping, GroupByTransformation):
        for path in grouping.paths:
            if str(path) not in ordered:
                orders.append(applied.c[path_label(path)].asc())

    stmt = select(applied)
    if post:
        stmt = stmt.where(and_(*[as_clause(c) for c in post]))
    return stmt, orders, labels


def _page(stmt, options: QueryOptions, page_size: int):
    take = page_size if options.top is None else min(options.top, page_size)
    if options.skip:
        stmt = stmt.offset(options.skip)
    # one extra row tells us whether a next page exists
    return stmt.limit(take + 1), take


def _split_page(rows: list, take: int, options: QueryOptions):
    has_more = len(rows) > take
    rows = rows[:take]
    if not has_more or (options.top is not None and options.top <= take):
        return rows, None, None
    next_skip = (options.skip or 0) + take
    next_top = options.top - take if options.top is not None else None
    return rows, next_skip, next_top


async def _count(db: AsyncSession, stmt) -> int:
    return await db.scalar(select(func.count()).select_from(stmt.subquery()))


def _shape_row(row: Mapping[str, Any], labels: Dict[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, label in labels.items():
        segments = key.split("/")
        target = out
        for segment in segments[:-1]:
            target = target.setdefault(segment, {})
        target[segments[-1]] = to_json_value(row[label])
    return out


def _aggregate_context(entity_set: EntitySet, labels: Dict[str, str]) -> str:
    parts: List[str] = []
    nested: Dict[str, List[str]] = {}
    for key in labels:
        head, _, rest = key.partition("/")
        if rest:
            if head not in nested:
                nested[head] = []
                parts.append(head)
            nested[head].append(rest)
        else:
            parts.append(key)
    rendered = [f"{p}({','.join(nested[p])})" if p in nested else p for p in parts]
    return f"{entity_set.name}({','.join(rendered)})"


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

async def query_collection(
    db: AsyncSession,
    entity_set: EntitySet,
    options: QueryOptions,
    page_size: int,
) -> QueryResult:
    """Run a collection query with server-driven paging."""
    _, grouping, _ = _split_apply(options.apply)

    if grouping is None:
        stmt, orders = _entity_statement(entity_set, options)
        count = await _count(db, stmt) if options.count else None
        stmt = stmt.order_by(*orders)
        for item in options.expand:
            nav = entity_set.get_navigation(item.navigation)
            stmt = stmt.options(selectinload(getattr(entity_set.model, nav.attribute)))
        stmt, take = _page(stmt, options, page_size)
        rows = list((await db.execute(stmt)).scalars().all())
        rows, next_skip, next_top = _split_page(rows, take, options)
        value = [serialize_entity(entity_set, r, options.select, options.expand) for r in rows]
        context = _context_fragment(entity_set, options)
    else:
        stmt, orders, labels = _aggregate_statement(entity_set, options)
        count = await _count(db, stmt) if options.count else None
        stmt, take = _page(stmt.order_by(*orders), options, page_size)
        rows = list((await db.execute(stmt)).mappings().all())
        rows, next_skip, next_top = _split_page(rows, take, options)
        value = [_shape_row(r, labels) for r in rows]
        context = _aggregate_context(entity_set, labels)

    logger.debug(f"{entity_set.name}: {len(value)} rows (next skip: {next_skip})")
    return QueryResult(value=value, context=context, count=count, next_skip=next_skip, next_top=next_top)


async def count_collection(db: AsyncSession, entity_set: EntitySet, options: QueryOptions) -> int:
    """Row count after `$apply` and `$filter`, ignoring paging."""
    _, grouping, _ = _split_apply(options.apply)
    if grouping is None:
        stmt, _ = _entity_statement(entity_set, options)
    else:
        stmt, _, _ = _aggregate_statement(entity_set, options)
    return await _count(db, stmt)


async def get_entity(
    db: AsyncSession,
    entity_set: EntitySet,
    key: int,
    options: QueryOptions,
) -> QueryResult:
    stmt = select(entity_set.model).where(entity_set.key_column == key)
    for item in options.expand:
        nav = entity_set.get_navigation(item.navigation)
        stmt = stmt.options(selectinload(getattr(entity_set.model, nav.attribute)))
    obj = (await db.execute(stmt)).scalars().first()
    if obj is None:
        raise ResourceNotFound(f"No {entity_set.type_name} with key '{key}' was found.")
    return QueryResult(
        value=[serialize_entity(entity_set, obj, options.select, options.expand)],
        context=f"{_context_fragment(entity_set, options)}/$entity",
    )


def build_payload(
    result: QueryResult,
    service_root: str,
    request_url: str,
    params: Mapping[str, str],
) -> Dict[str, Any]:
    """Wrap a collection result in the OData JSON envelope."""
    payload: Dict[str, Any] = {"@odata.context": f"{service_root}/$metadata#{result.context}"}
    if result.count is not None:
        payload["@odata.count"] = result.count
    payload["value"] = result.value
    if result.next_skip is not None:
        payload["@odata.nextLink"] = next_link(request_url, params, result)
    return payload


def next_link(request_url: str, params: Mapping[str, str], result: QueryResult) -> str:
    query = dict(params)
    query["$skip"] = str(result.next_skip)
    if result.next_top is not None:
        query["$top"] = str(result.next_top)
    return f"{request_url}?{urlencode(query, quote_via=quote, safe=_LINK_SAFE_CHARS)}"
