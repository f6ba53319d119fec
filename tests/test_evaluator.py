"""
Tests for the report evaluator pipeline.
"""
import pandas as pd
import pytest

from delivery_reports.evaluator import ReportSpec, evaluate
from delivery_reports.exceptions import DataError, SchemaMismatchError, SpecificationError
from delivery_reports.transformation.calculations import count, sum_
from delivery_reports.transformation.expressions import col, param
from delivery_reports.transformation.joins import Join
from delivery_reports.transformation.windows import Window, desc, over, rank


def test_scan_is_ordered_by_primary_key(tables):
    shuffled = tables['orders'].iloc[::-1]
    result = evaluate(ReportSpec(source='orders', select=('order_id',)), {'orders': shuffled})
    assert [row[0] for row in result.rows] == list(range(1, 13))


def test_inputs_are_not_modified(tables, as_of):
    before = {name: df.copy() for name, df in tables.items()}
    spec = ReportSpec(
        source='orders',
        joins=(Join('restaurants', 'restaurant_id'),),
        derive={'month': col('order_date').year_month()},
        group_by=('city',),
        aggregates={'revenue': sum_('total_amount')},
    )
    evaluate(spec, tables, as_of=as_of)
    for name, df in tables.items():
        pd.testing.assert_frame_equal(df, before[name])


def test_pipeline_stage_order(tables, as_of):
    # where runs before grouping, having after windows, limit last
    spec = ReportSpec(
        source='orders',
        joins=(Join('restaurants', 'restaurant_id'),),
        where=col('total_amount') >= 300,
        group_by=('restaurant_name',),
        aggregates={'orders': count(), 'revenue': sum_('total_amount')},
        windows={'position': rank([desc('revenue')])},
        having=col('position') <= 2,
        select={'name': col('restaurant_name'), 'orders': col('orders'), 'position': col('position')},
        order_by=('position',),
        limit=1,
    )
    result = evaluate(spec, tables, as_of=as_of)
    assert result.columns == ['name', 'orders', 'position']
    assert result.rows == [('Tandoor House', 5, 1)]


def test_sort_ties_broken_by_remaining_columns(tables):
    spec = ReportSpec(
        source='orders',
        group_by=('order_item',),
        aggregates={'orders': count()},
        order_by=(desc('orders'),),
    )
    result = evaluate(spec, tables)
    assert result.rows == [
        ('Butter Chicken', 3),
        ('Chicken Biryani', 3),
        ('Masala Dosa', 3),
        ('Dal Makhani', 1),
        ('Mutton Rogan Josh', 1),
        ('Paneer Butter Masala', 1),
    ]


def test_nested_spec_as_source(tables):
    per_customer = ReportSpec(
        source='orders',
        group_by=('customer_id',),
        aggregates={'spent': sum_('total_amount')},
    )
    spec = ReportSpec(
        source=per_customer,
        where=col('spent') > 1000,
        aggregates={'customers': count()},
    )
    assert spec.tables() == {'orders'}
    assert evaluate(spec, tables).rows == [(3,)]


def test_global_aggregate_over_no_rows(tables):
    spec = ReportSpec(
        source='orders',
        where=col('total_amount') > 1000000,
        aggregates={'orders': count(), 'revenue': sum_('total_amount')},
    )
    assert evaluate(spec, tables).rows == [(0, None)]


def test_window_over_empty_groups(tables):
    spec = ReportSpec(
        source='orders',
        where=col('total_amount') < 0,
        group_by=('restaurant_id',),
        aggregates={'orders': count(), 'revenue': sum_('total_amount')},
        windows={'all_orders': over('sum', 'orders'), 'average': over('avg', 'revenue')},
    )
    result = evaluate(spec, tables)
    assert result.columns == ['restaurant_id', 'orders', 'revenue', 'all_orders', 'average']
    assert result.rows == []


def test_parameters_and_as_of(tables, as_of):
    spec = ReportSpec(
        source='orders',
        where=(col('order_date') >= param('as_of').months_before(6)) & (col('total_amount') > param('floor')),
        select=('order_id',),
    )
    result = evaluate(spec, tables, as_of=as_of, params={'floor': 200})
    assert result.rows == [(3,), (8,), (9,), (11,)]


def test_result_records_and_frame(tables):
    spec = ReportSpec(source='customers', select=('customer_id', 'customer_name'), limit=2)
    result = evaluate(spec, tables, report_id='first_customers')
    assert result.records() == [
        {'customer_id': 1, 'customer_name': 'Arjun Mehta'},
        {'customer_id': 2, 'customer_name': 'Priya Sharma'},
    ]
    assert list(result.to_frame().columns) == ['customer_id', 'customer_name']
    assert len(result) == 2


class TestErrors:

    def test_unknown_table(self, tables):
        with pytest.raises(SchemaMismatchError) as excinfo:
            evaluate(ReportSpec(source='warranty'), tables, report_id='claims')
        assert excinfo.value.report_id == 'claims'
        assert excinfo.value.table == 'warranty'

    def test_unknown_column_names_report(self, tables):
        spec = ReportSpec(source='orders', where=col('price') > 10)
        with pytest.raises(SchemaMismatchError) as excinfo:
            evaluate(spec, tables, report_id='pricey')
        assert excinfo.value.report_id == 'pricey'
        assert excinfo.value.column == 'price'
        assert 'report=pricey' in str(excinfo.value)

    def test_unknown_sort_column(self, tables):
        spec = ReportSpec(source='orders', select=('order_id',), order_by=('order_date',))
        with pytest.raises(SchemaMismatchError):
            evaluate(spec, tables)

    def test_null_order_date(self, tables):
        tables['orders'].loc[3, 'order_date'] = None
        with pytest.raises(DataError) as excinfo:
            evaluate(ReportSpec(source='orders'), tables, report_id='broken')
        assert excinfo.value.column == 'order_date'
        assert excinfo.value.report_id == 'broken'

    def test_rank_without_order(self, tables):
        spec = ReportSpec(source='orders', windows={'position': Window('rank')})
        with pytest.raises(SpecificationError):
            evaluate(spec, tables)

    def test_missing_as_of(self, tables):
        spec = ReportSpec(source='orders', where=col('order_date') <= param('as_of'))
        with pytest.raises(SpecificationError):
            evaluate(spec, tables)

    def test_negative_limit(self, tables):
        with pytest.raises(SpecificationError):
            evaluate(ReportSpec(source='orders', limit=-1), tables)
