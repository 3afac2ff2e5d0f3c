# tests/test_query_parsing.py
from datetime import date

import pytest

from covid_odata.domain.odata.apply import (
    AggregateExpression,
    AggregateTransformation,
    FilterTransformation,
    GroupByTransformation,
    parse_apply,
)
from covid_odata.domain.odata.edm import CASES, REGIONS
from covid_odata.domain.odata.errors import ODataError
from covid_odata.domain.odata.expressions import (
    BinaryOp,
    FunctionCall,
    Literal,
    PropertyPath,
    UnaryOp,
    parse_filter,
    split_top_level,
    tokenize,
)
from covid_odata.domain.odata.query_options import ExpandItem, OrderByItem, parse_query_options
from covid_odata.domain.odata.sql import EntityResolver, expression_type


def path(*segments):
    return PropertyPath(tuple(segments))


class TestFilterParser:
    def test_precedence_and_binds_tighter_than_or(self):
        node = parse_filter("RegionId eq 1 or RegionId eq 2 and DeathCases gt 0")
        assert node.op == "or"
        assert node.right.op == "and"

    def test_arithmetic_precedence(self):
        node = parse_filter("ConfirmedCases sub RecoveredCases mul 2 gt 10")
        assert node == BinaryOp(
            "gt",
            BinaryOp("sub", path("ConfirmedCases"), BinaryOp("mul", path("RecoveredCases"), Literal(2))),
            Literal(10),
        )

    def test_literals(self):
        node = parse_filter("RecordedDate ge 2021-01-02 and Region/Name eq 'Cote d''Ivoire'")
        assert node.left.right == Literal(date(2021, 1, 2))
        assert node.right == BinaryOp("eq", path("Region", "Name"), Literal("Cote d'Ivoire"))

    def test_null_and_booleans(self):
        assert parse_filter("RecoveredCases eq null").right == Literal(None)
        assert parse_filter("true").value is True

    def test_not_and_negation(self):
        node = parse_filter("not (Id eq -1)")
        assert isinstance(node, UnaryOp) and node.op == "not"
        assert node.operand.right == Literal(-1)
        assert parse_filter("-Id lt 0").left == UnaryOp("neg", path("Id"))

    def test_functions(self):
        node = parse_filter("contains(tolower(Region/Name),'us')")
        assert node == FunctionCall("contains", (FunctionCall("tolower", (path("Region", "Name"),)), Literal("us")))

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "Id eq",
            "Id eq 1)",
            "(Id eq 1",
            "Id eq 1 extra",
            "substringof('a',Name)",
            "length(Name, 2) eq 1",
            "Cases/any(c: c/Id eq 1)",
            "Name eq 'unterminated",
            "RecordedDate eq 2021-13-01",
        ],
    )
    def test_rejects_malformed_expressions(self, text):
        with pytest.raises(ODataError) as exc:
            parse_filter(text)
        assert exc.value.status_code == 400

    def test_tokenize_reports_position(self):
        with pytest.raises(ODataError, match="position 3"):
            tokenize("Id # 1")


def test_split_top_level_respects_parentheses_and_quotes():
    assert split_top_level("Region($select=Name,Id), Id") == ["Region($select=Name,Id)", "Id"]
    assert split_top_level("'a,b',c") == ["'a,b'", "c"]


class TestApplyParser:
    def test_groupby_with_aggregates(self):
        (t,) = parse_apply("groupby((RecordedDate),aggregate(ConfirmedCases with sum as Total,$count as N))")
        assert t == GroupByTransformation(
            (path("RecordedDate"),),
            (
                AggregateExpression("Total", "sum", path("ConfirmedCases")),
                AggregateExpression("N", "count"),
            ),
        )

    def test_filter_pipeline(self):
        first, second = parse_apply("filter(RegionId eq 1)/aggregate(DeathCases with max as M)")
        assert isinstance(first, FilterTransformation)
        assert second == AggregateTransformation((AggregateExpression("M", "max", path("DeathCases")),))

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "groupby(RecordedDate)",
            "aggregate(ConfirmedCases with median as M)",
            "aggregate(ConfirmedCases with sum as A,DeathCases with sum as A)",
            "groupby((RegionId))/groupby((RecordedDate))",
            "compute(Id add 1 as X)",
        ],
    )
    def test_rejects_unsupported_apply(self, text):
        with pytest.raises(ODataError):
            parse_apply(text)


class TestQueryOptions:
    def test_full_option_set(self):
        options = parse_query_options(
            {
                "$filter": "Id gt 1",
                "$orderby": "RecordedDate desc,Id",
                "$top": "10",
                "$skip": "5",
                "$count": "true",
                "$select": "Id,ConfirmedCases,Id",
                "$expand": "Region($select=Name)",
                "other": "ignored",
            },
            CASES,
            max_top=100,
        )
        assert options.orderby == (OrderByItem(path("RecordedDate"), True), OrderByItem(path("Id"), False))
        assert (options.top, options.skip, options.count) == (10, 5, True)
        assert options.select == ("Id", "ConfirmedCases")
        assert options.expand == (ExpandItem("Region", ("Name",)),)

    def test_select_star(self):
        assert parse_query_options({"$select": "*"}, REGIONS).select == ("Name", "Id")

    def test_top_limit_message(self):
        with pytest.raises(ODataError) as exc:
            parse_query_options({"$top": "251"}, REGIONS, max_top=250)
        assert exc.value.message == (
            "The limit of '250' for Top query has been exceeded. The value from the incoming request is '251'."
        )

    def test_nested_expand_options_other_than_select(self):
        with pytest.raises(ODataError):
            parse_query_options({"$expand": "Cases($top=1)"}, REGIONS)

    def test_filter_only_apply_keeps_select(self):
        options = parse_query_options({"$apply": "filter(RegionId eq 1)", "$select": "Id"}, CASES)
        assert options.select == ("Id",)
        assert isinstance(options.apply[0], FilterTransformation)

    def test_grouping_apply_rejects_select(self):
        with pytest.raises(ODataError, match="grouping"):
            parse_query_options({"$apply": "groupby((RegionId))", "$select": "Id"}, CASES)


class TestExpressionTypes:
    @pytest.mark.parametrize(
        "text, entity_set, expected",
        [
            ("ConfirmedCases div 100", CASES, "Edm.Int64"),
            ("Id div 2", CASES, "Edm.Int32"),
            ("ConfirmedCases div 2.5", CASES, "Edm.Double"),
            ("length(Name)", REGIONS, "Edm.Int32"),
            ("concat(Name,'!')", REGIONS, "Edm.String"),
            ("month(RecordedDate) eq 1", CASES, "Edm.Boolean"),
            ("RecoveredCases eq null", CASES, "Edm.Boolean"),
        ],
    )
    def test_inferred_types(self, text, entity_set, expected):
        assert expression_type(parse_filter(text), EntityResolver(entity_set)) == expected

    @pytest.mark.parametrize(
        "text, entity_set",
        [
            ("Name eq 1", REGIONS),
            ("RecordedDate eq 5", CASES),
            ("contains(ConfirmedCases,'1')", CASES),
            ("not ConfirmedCases", CASES),
            ("-Region/Name eq 'x'", CASES),
            ("Id eq 1 or 2", CASES),
            ("RegionId lt true", CASES),
            ("DeathCases gt null", CASES),
        ],
    )
    def test_mismatched_operands(self, text, entity_set):
        with pytest.raises(ODataError) as exc:
            expression_type(parse_filter(text), EntityResolver(entity_set))
        assert exc.value.status_code == 400
