"""
The twenty food-delivery reports.
"""
from delivery_reports.evaluator import ReportSpec
from delivery_reports.reports.catalog import ReportCatalog, ReportDefinition, ReportParameter
from delivery_reports.transformation.calculations import avg, count, count_if, max_, min_, sum_
from delivery_reports.transformation.expressions import col, minutes_between, param, when
from delivery_reports.transformation.joins import Join
from delivery_reports.transformation.windows import asc, dense_rank, desc, lag, over, rank

DELIVERED = 'Delivered'

with_customers = Join('customers', 'customer_id')
with_restaurants = Join('restaurants', 'restaurant_id')
with_deliveries = Join('deliveries', 'order_id')

in_last_year = (
    (col('order_date') >= param('as_of').months_before(12))
    & (col('order_date') <= param('as_of'))
)
delivered = (col('delivery_status') == DELIVERED) & col('rider_id').not_null()
delivery_minutes = minutes_between(col('order_time'), col('delivery_time'))


def ratio_percent(numerator, denominator):
    return (col(numerator) / col(denominator) * 100).round(2)


TOP_DISHES_FOR_CUSTOMER = ReportDefinition(
    number=1,
    name='top_dishes_for_customer',
    title="Most frequently ordered dishes of one customer over the last year",
    spec=ReportSpec(
        source='orders',
        joins=(with_customers,),
        where=(col('customer_name') == param('customer_name')) & in_last_year,
        group_by=('customer_name', 'order_item'),
        aggregates={'total_orders': count()},
        windows={'rank': dense_rank([desc('total_orders')])},
        having=col('rank') <= param('top_n'),
        select={
            'customer_name': col('customer_name'),
            'dish': col('order_item'),
            'total_orders': col('total_orders'),
            'rank': col('rank'),
        },
        order_by=('rank',),
    ),
    columns=(('customer_name', 'str'), ('dish', 'str'), ('total_orders', 'int'), ('rank', 'int')),
    parameters=(
        ReportParameter('customer_name', 'str', 'Arjun Mehta', "Customer to report on"),
        ReportParameter('top_n', 'int', 5, "Number of dish ranks to keep", minimum=1),
    ),
)

POPULAR_TIME_SLOTS = ReportDefinition(
    number=2,
    name='popular_time_slots',
    title="Order volume by two-hour time slot",
    spec=ReportSpec(
        source='orders',
        derive={
            'start_hour': col('order_time').time_slot(2),
            'end_hour': col('start_hour') + 2,
        },
        group_by=('start_hour', 'end_hour'),
        aggregates={'total_orders': count()},
        select=('start_hour', 'end_hour', 'total_orders'),
        order_by=(desc('total_orders'),),
    ),
    columns=(('start_hour', 'int'), ('end_hour', 'int'), ('total_orders', 'int')),
)

AVERAGE_ORDER_VALUE = ReportDefinition(
    number=3,
    name='average_order_value',
    title="Average order value of customers with many orders",
    spec=ReportSpec(
        source='orders',
        joins=(with_customers,),
        group_by=('customer_id', 'customer_name'),
        aggregates={'total_orders': count(), 'aov': avg('total_amount')},
        having=col('total_orders') > param('min_orders'),
        select={
            'customer_name': col('customer_name'),
            'total_orders': col('total_orders'),
            'aov': col('aov').round(2),
        },
        order_by=(desc('aov'),),
    ),
    columns=(('customer_name', 'str'), ('total_orders', 'int'), ('aov', 'float')),
    parameters=(
        ReportParameter('min_orders', 'int', 750, "Customers need more orders than this", minimum=0),
    ),
)

HIGH_VALUE_CUSTOMERS = ReportDefinition(
    number=4,
    name='high_value_customers',
    title="Customers whose total spend exceeds a threshold",
    spec=ReportSpec(
        source='orders',
        joins=(with_customers,),
        group_by=('customer_id', 'customer_name'),
        aggregates={'total_spent': sum_('total_amount')},
        having=col('total_spent') > param('min_spent'),
        select=('customer_id', 'customer_name', 'total_spent'),
        order_by=(desc('total_spent'),),
    ),
    columns=(('customer_id', 'int'), ('customer_name', 'str'), ('total_spent', 'float')),
    parameters=(
        ReportParameter('min_spent', 'float', 100000, "Spend threshold", minimum=0),
    ),
)

ORDERS_WITHOUT_DELIVERY = ReportDefinition(
    number=5,
    name='orders_without_delivery',
    title="Orders that were placed but never delivered",
    spec=ReportSpec(
        source='orders',
        joins=(
            Join('deliveries', 'order_id', how='left'),
            Join('restaurants', 'restaurant_id', how='left'),
        ),
        where=col('delivery_id').is_null(),
        select=('order_id', 'restaurant_name', 'city', 'order_date'),
        order_by=('order_id',),
    ),
    columns=(('order_id', 'int'), ('restaurant_name', 'str'), ('city', 'str'), ('order_date', 'date')),
)

RESTAURANT_REVENUE_RANKING = ReportDefinition(
    number=6,
    name='restaurant_revenue_ranking',
    title="Restaurant revenue over the last year, ranked within each city",
    spec=ReportSpec(
        source='orders',
        joins=(with_restaurants,),
        where=in_last_year,
        group_by=('restaurant_id', 'restaurant_name', 'city'),
        aggregates={'total_revenue': sum_('total_amount')},
        windows={'rank': rank([desc('total_revenue')], partition_by=['city'])},
        select=('restaurant_name', 'city', 'total_revenue', 'rank'),
        order_by=('city', 'rank'),
    ),
    columns=(('restaurant_name', 'str'), ('city', 'str'), ('total_revenue', 'float'), ('rank', 'int')),
)

MOST_POPULAR_DISH_BY_CITY = ReportDefinition(
    number=7,
    name='most_popular_dish_by_city',
    title="Most ordered dish in each city",
    spec=ReportSpec(
        source='orders',
        joins=(with_restaurants,),
        group_by=('city', 'order_item'),
        aggregates={'total_orders': count()},
        windows={'rank': rank([desc('total_orders')], partition_by=['city'])},
        having=col('rank') == 1,
        select={
            'city': col('city'),
            'dish': col('order_item'),
            'total_orders': col('total_orders'),
            'rank': col('rank'),
        },
        order_by=('city',),
    ),
    columns=(('city', 'str'), ('dish', 'str'), ('total_orders', 'int'), ('rank', 'int')),
)

CUSTOMER_CHURN = ReportDefinition(
    number=8,
    name='customer_churn',
    title="Customers who ordered in the previous year but not in the current one",
    spec=ReportSpec(
        source='orders',
        joins=(with_customers,),
        derive={'order_year': col('order_date').year()},
        group_by=('customer_id', 'customer_name'),
        aggregates={
            'previous_year_orders': count_if(col('order_year') == param('previous_year')),
            'current_year_orders': count_if(col('order_year') == param('current_year')),
        },
        having=(col('previous_year_orders') > 0) & (col('current_year_orders') == 0),
        select=('customer_id', 'customer_name', 'previous_year_orders'),
        order_by=('customer_id',),
    ),
    columns=(('customer_id', 'int'), ('customer_name', 'str'), ('previous_year_orders', 'int')),
    parameters=(
        ReportParameter('current_year', 'int', lambda as_of: as_of.year, "Year with no orders"),
        ReportParameter('previous_year', 'int', lambda as_of: as_of.year - 1, "Year with orders"),
    ),
)

CANCELLATION_RATE_COMPARISON = ReportDefinition(
    number=9,
    name='cancellation_rate_comparison',
    title="Share of undelivered orders per restaurant, current versus previous year",
    spec=ReportSpec(
        source='orders',
        joins=(
            Join('deliveries', 'order_id', how='left'),
            Join('restaurants', 'restaurant_id', how='left'),
        ),
        derive={'order_year': col('order_date').year()},
        where=(col('order_year') == param('current_year')) | (col('order_year') == param('previous_year')),
        group_by=('restaurant_id', 'restaurant_name'),
        aggregates={
            'current_orders': count_if(col('order_year') == param('current_year')),
            'current_not_delivered': count_if(
                (col('order_year') == param('current_year')) & col('delivery_id').is_null()
            ),
            'previous_orders': count_if(col('order_year') == param('previous_year')),
            'previous_not_delivered': count_if(
                (col('order_year') == param('previous_year')) & col('delivery_id').is_null()
            ),
        },
        select={
            'restaurant_id': col('restaurant_id'),
            'restaurant_name': col('restaurant_name'),
            'current_year_ratio': ratio_percent('current_not_delivered', 'current_orders'),
            'previous_year_ratio': ratio_percent('previous_not_delivered', 'previous_orders'),
        },
        order_by=('restaurant_id',),
    ),
    columns=(
        ('restaurant_id', 'int'),
        ('restaurant_name', 'str'),
        ('current_year_ratio', 'float'),
        ('previous_year_ratio', 'float'),
    ),
    parameters=(
        ReportParameter('current_year', 'int', lambda as_of: as_of.year, "Current year"),
        ReportParameter('previous_year', 'int', lambda as_of: as_of.year - 1, "Year to compare with"),
    ),
)

RIDER_AVERAGE_DELIVERY_TIME = ReportDefinition(
    number=10,
    name='rider_average_delivery_time',
    title="Average delivery time of each rider",
    spec=ReportSpec(
        source='orders',
        joins=(with_deliveries,),
        derive={'delivery_minutes': delivery_minutes},
        where=delivered & col('delivery_minutes').not_null(),
        group_by=('rider_id',),
        aggregates={'deliveries': count(), 'avg_delivery_minutes': avg('delivery_minutes')},
        select={
            'rider_id': col('rider_id'),
            'deliveries': col('deliveries'),
            'avg_delivery_minutes': col('avg_delivery_minutes').round(2),
        },
        order_by=('rider_id',),
    ),
    columns=(('rider_id', 'int'), ('deliveries', 'int'), ('avg_delivery_minutes', 'float')),
)

RESTAURANT_MONTHLY_GROWTH = ReportDefinition(
    number=11,
    name='restaurant_monthly_growth',
    title="Month-over-month growth of delivered orders per restaurant",
    spec=ReportSpec(
        source='orders',
        joins=(with_deliveries,),
        derive={'month': col('order_date').year_month()},
        where=col('delivery_status') == DELIVERED,
        group_by=('restaurant_id', 'month'),
        aggregates={'delivered_orders': count()},
        windows={
            'previous_month_orders': lag(
                'delivered_orders', [asc('month')], partition_by=['restaurant_id']
            ),
        },
        select={
            'restaurant_id': col('restaurant_id'),
            'month': col('month'),
            'delivered_orders': col('delivered_orders'),
            'previous_month_orders': col('previous_month_orders'),
            'growth_ratio': (
                (col('delivered_orders') - col('previous_month_orders'))
                / col('previous_month_orders') * 100
            ).round(2),
        },
        order_by=('restaurant_id', 'month'),
    ),
    columns=(
        ('restaurant_id', 'int'),
        ('month', 'str'),
        ('delivered_orders', 'int'),
        ('previous_month_orders', 'int'),
        ('growth_ratio', 'float'),
    ),
)

# overall average order value, attached to every order row
orders_with_aov = ReportSpec(
    source='orders',
    windows={'overall_aov': over('avg', 'total_amount')},
)

customer_categories = ReportSpec(
    source=orders_with_aov,
    joins=(with_customers,),
    group_by=('customer_id', 'customer_name'),
    aggregates={
        'total_orders': count(),
        'total_spent': sum_('total_amount'),
        'overall_aov': max_('overall_aov'),
    },
    select={
        'customer_id': col('customer_id'),
        'customer_name': col('customer_name'),
        'total_orders': col('total_orders'),
        'total_spent': col('total_spent'),
        'category': when(col('total_spent') > col('overall_aov'), 'GOLD').otherwise('SILVER'),
    },
    order_by=('customer_id',),
)


def customer_segmentation_spec(params):
    if params['per_customer']:
        return customer_categories
    return ReportSpec(
        source=customer_categories,
        group_by=('category',),
        aggregates={
            'total_orders': sum_('total_orders'),
            'total_revenue': sum_('total_spent'),
        },
        order_by=('category',),
    )


def customer_segmentation_columns(params):
    if params['per_customer']:
        return (
            ('customer_id', 'int'),
            ('customer_name', 'str'),
            ('total_orders', 'int'),
            ('total_spent', 'float'),
            ('category', 'str'),
        )
    return (('category', 'str'), ('total_orders', 'int'), ('total_revenue', 'float'))


CUSTOMER_SEGMENTATION = ReportDefinition(
    number=12,
    name='customer_segmentation',
    title="GOLD and SILVER customers by spend against the average order value",
    spec=customer_segmentation_spec,
    columns=customer_segmentation_columns,
    parameters=(
        ReportParameter('per_customer', 'bool', False, "List every customer instead of segment totals"),
    ),
)

RIDER_MONTHLY_EARNINGS = ReportDefinition(
    number=13,
    name='rider_monthly_earnings',
    title="Monthly earnings of each rider as a share of order value",
    spec=ReportSpec(
        source='orders',
        joins=(with_deliveries,),
        derive={'month': col('order_date').year_month()},
        where=col('rider_id').not_null(),
        group_by=('rider_id', 'month'),
        aggregates={'revenue': sum_('total_amount')},
        select={
            'rider_id': col('rider_id'),
            'month': col('month'),
            'revenue': col('revenue'),
            'earnings': (col('revenue') * param('commission_rate')).round(2),
        },
        order_by=('rider_id', 'month'),
    ),
    columns=(('rider_id', 'int'), ('month', 'str'), ('revenue', 'float'), ('earnings', 'float')),
    parameters=(
        ReportParameter('commission_rate', 'float', 0.08, "Rider share of the order amount", minimum=0),
    ),
)

RIDER_RATINGS = ReportDefinition(
    number=14,
    name='rider_ratings',
    title="Star ratings per rider derived from delivery time",
    spec=ReportSpec(
        source='orders',
        joins=(with_deliveries,),
        derive={
            'delivery_minutes': delivery_minutes,
            'stars': when(col('delivery_minutes') < 15, '5-star')
            .when(col('delivery_minutes') <= 20, '4-star')
            .otherwise('3-star'),
        },
        where=delivered & col('delivery_minutes').not_null(),
        group_by=('rider_id', 'stars'),
        aggregates={'total_ratings': count()},
        order_by=(asc('rider_id'), desc('stars')),
    ),
    columns=(('rider_id', 'int'), ('stars', 'str'), ('total_ratings', 'int')),
)

PEAK_DAY_BY_RESTAURANT = ReportDefinition(
    number=15,
    name='peak_day_by_restaurant',
    title="Busiest day of the week for each restaurant",
    spec=ReportSpec(
        source='orders',
        joins=(with_restaurants,),
        derive={'day_of_week': col('order_date').day_name()},
        group_by=('restaurant_id', 'restaurant_name', 'day_of_week'),
        aggregates={'total_orders': count()},
        windows={'rank': rank([desc('total_orders')], partition_by=['restaurant_id'])},
        having=col('rank') == 1,
        select=('restaurant_name', 'day_of_week', 'total_orders', 'rank'),
        order_by=('restaurant_name',),
    ),
    columns=(('restaurant_name', 'str'), ('day_of_week', 'str'), ('total_orders', 'int'), ('rank', 'int')),
)

CUSTOMER_LIFETIME_VALUE = ReportDefinition(
    number=16,
    name='customer_lifetime_value',
    title="Total orders and revenue of each customer",
    spec=ReportSpec(
        source='orders',
        joins=(with_customers,),
        group_by=('customer_id', 'customer_name'),
        aggregates={'total_orders': count(), 'total_spent': sum_('total_amount')},
        order_by=(desc('total_spent'),),
    ),
    columns=(('customer_id', 'int'), ('customer_name', 'str'), ('total_orders', 'int'), ('total_spent', 'float')),
)

MONTHLY_SALES_TREND = ReportDefinition(
    number=17,
    name='monthly_sales_trend',
    title="Monthly sales compared with the previous month",
    spec=ReportSpec(
        source='orders',
        derive={'year': col('order_date').year(), 'month': col('order_date').month()},
        group_by=('year', 'month'),
        aggregates={'total_sale': sum_('total_amount')},
        windows={'previous_month_sale': lag('total_sale', [asc('year'), asc('month')])},
        order_by=('year', 'month'),
    ),
    columns=(('year', 'int'), ('month', 'int'), ('total_sale', 'float'), ('previous_month_sale', 'float')),
)

rider_average_minutes = ReportSpec(
    source='orders',
    joins=(with_deliveries,),
    derive={'delivery_minutes': delivery_minutes},
    where=delivered & col('delivery_minutes').not_null(),
    group_by=('rider_id',),
    aggregates={'avg_minutes': avg('delivery_minutes')},
)

RIDER_EFFICIENCY = ReportDefinition(
    number=18,
    name='rider_efficiency',
    title="Fastest and slowest rider average delivery times",
    spec=ReportSpec(
        source=rider_average_minutes,
        aggregates={
            'fastest_avg_minutes': min_('avg_minutes'),
            'slowest_avg_minutes': max_('avg_minutes'),
        },
        select={
            'fastest_avg_minutes': col('fastest_avg_minutes').round(2),
            'slowest_avg_minutes': col('slowest_avg_minutes').round(2),
        },
    ),
    columns=(('fastest_avg_minutes', 'float'), ('slowest_avg_minutes', 'float')),
)

SEASONAL_ITEM_DEMAND = ReportDefinition(
    number=19,
    name='seasonal_item_demand',
    title="Orders of each dish per season",
    spec=ReportSpec(
        source='orders',
        derive={'season': col('order_date').season()},
        group_by=('order_item', 'season'),
        aggregates={'total_orders': count()},
        select={
            'dish': col('order_item'),
            'season': col('season'),
            'total_orders': col('total_orders'),
        },
        order_by=(asc('dish'), desc('total_orders')),
    ),
    columns=(('dish', 'str'), ('season', 'str'), ('total_orders', 'int')),
)

CITY_REVENUE_RANKING = ReportDefinition(
    number=20,
    name='city_revenue_ranking',
    title="Cities ranked by revenue for one year",
    spec=ReportSpec(
        source='orders',
        joins=(with_restaurants,),
        where=col('order_date').year() == param('year'),
        group_by=('city',),
        aggregates={'total_revenue': sum_('total_amount')},
        windows={'rank': rank([desc('total_revenue')])},
        order_by=('rank',),
    ),
    columns=(('city', 'str'), ('total_revenue', 'float'), ('rank', 'int')),
    parameters=(
        ReportParameter('year', 'int', lambda as_of: as_of.year - 1, "Calendar year to rank"),
    ),
)

REPORTS = (
    TOP_DISHES_FOR_CUSTOMER,
    POPULAR_TIME_SLOTS,
    AVERAGE_ORDER_VALUE,
    HIGH_VALUE_CUSTOMERS,
    ORDERS_WITHOUT_DELIVERY,
    RESTAURANT_REVENUE_RANKING,
    MOST_POPULAR_DISH_BY_CITY,
    CUSTOMER_CHURN,
    CANCELLATION_RATE_COMPARISON,
    RIDER_AVERAGE_DELIVERY_TIME,
    RESTAURANT_MONTHLY_GROWTH,
    CUSTOMER_SEGMENTATION,
    RIDER_MONTHLY_EARNINGS,
    RIDER_RATINGS,
    PEAK_DAY_BY_RESTAURANT,
    CUSTOMER_LIFETIME_VALUE,
    MONTHLY_SALES_TREND,
    RIDER_EFFICIENCY,
    SEASONAL_ITEM_DEMAND,
    CITY_REVENUE_RANKING,
)


def default_catalog():
    return ReportCatalog(REPORTS)
