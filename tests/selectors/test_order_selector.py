"""
Tests for OrderSelector listings and dashboard statistics.
"""

from datetime import date
from decimal import Decimal

import pytest

from procurement_kernel.domain.dtos import OrderFilters
from procurement_kernel.domain.order_status import OrderStatus
from procurement_kernel.exceptions import ValidationError
from procurement_kernel.models.supplier import Supplier
from procurement_kernel.selectors.order_selector import stats_window


@pytest.fixture
def seeded_orders(purchasing, order_factory, product_factory, item_ids, test_actor_id):
    """
    Four orders across two months:

    march_1   2024-03-01  ordered     10.00
    march_10  2024-03-10  partial     40.00
    march_15  2024-03-15  delivered    6.00
    feb_20    2024-02-20  cancelled    3.00
    """
    product = product_factory("Gasket")
    orders = {
        "march_1": order_factory([(product, 10, 1)], order_date=date(2024, 3, 1)),
        "march_10": order_factory([(product, 20, 2)], order_date=date(2024, 3, 10)),
        "march_15": order_factory([(product, 3, 2)], order_date=date(2024, 3, 15)),
        "feb_20": order_factory([(product, 3, 1)], order_date=date(2024, 2, 20)),
    }
    purchasing.receive(
        orders["march_10"], {item_ids(orders["march_10"])[product.id]: 5}, actor_id=test_actor_id
    )
    purchasing.receive(
        orders["march_15"], {item_ids(orders["march_15"])[product.id]: 3}, actor_id=test_actor_id
    )
    purchasing.cancel_order(orders["feb_20"], actor_id=test_actor_id)
    return orders


class TestListOrders:

    def test_newest_first(self, purchasing, seeded_orders):
        rows = purchasing.list_orders()

        assert [row.po_id for row in rows] == [
            seeded_orders["march_15"],
            seeded_orders["march_10"],
            seeded_orders["march_1"],
            seeded_orders["feb_20"],
        ]
        assert rows[0].supplier_name == "Acme Wholesale"
        assert rows[0].created_by_name == "Jamie Doe"

    def test_same_day_ordered_by_number_descending(self, purchasing, order_factory, product):
        first = order_factory([(product, 1, 1)])
        second = order_factory([(product, 1, 1)])

        assert [row.po_id for row in purchasing.list_orders()] == [second, first]

    @pytest.mark.parametrize("status", [OrderStatus.PARTIAL, "partial"])
    def test_filter_by_status(self, purchasing, seeded_orders, status):
        rows = purchasing.list_orders(OrderFilters(status=status))

        assert [row.po_id for row in rows] == [seeded_orders["march_10"]]
        assert rows[0].status == OrderStatus.PARTIAL

    def test_unknown_status_filter(self, purchasing, seeded_orders):
        with pytest.raises(ValidationError) as exc_info:
            purchasing.list_orders(OrderFilters(status="shipped"))

        assert exc_info.value.field == "status"

    def test_filter_by_inclusive_date_range(self, purchasing, seeded_orders):
        rows = purchasing.list_orders(
            OrderFilters(date_from=date(2024, 3, 1), date_to=date(2024, 3, 10))
        )

        assert {row.po_id for row in rows} == {seeded_orders["march_1"], seeded_orders["march_10"]}

    def test_filter_by_supplier(self, purchasing, session, supplier, seeded_orders):
        other = Supplier(supplier_code="SUP-002", supplier_name="Other Co")
        session.add(other)
        session.commit()

        assert purchasing.list_orders(OrderFilters(supplier_id=other.id)) == []
        assert len(purchasing.list_orders(OrderFilters(supplier_id=supplier.id))) == 4

    def test_limit_and_offset(self, purchasing, seeded_orders):
        page = purchasing.list_orders(limit=2, offset=1)

        assert [row.po_id for row in page] == [seeded_orders["march_10"], seeded_orders["march_1"]]
        assert len(purchasing.list_orders(offset=3)) == 1

    @pytest.mark.parametrize("kwargs", [{"limit": -1}, {"offset": -1}])
    def test_negative_paging_rejected(self, purchasing, kwargs):
        with pytest.raises(ValidationError):
            purchasing.list_orders(**kwargs)


class TestOrderStats:

    def test_month(self, purchasing, seeded_orders):
        stats = purchasing.order_stats("month")

        assert (stats.date_from, stats.date_to) == (date(2024, 3, 1), date(2024, 3, 15))
        assert stats.total_orders == 3
        assert stats.total_amount == Decimal("56.00")
        assert stats.pending_orders == 2
        assert stats.delivered_orders == 1

    def test_today(self, purchasing, seeded_orders):
        stats = purchasing.order_stats("today")

        assert stats.total_orders == 1
        assert stats.delivered_orders == 1
        assert stats.pending_orders == 0

    def test_year_includes_cancelled(self, purchasing, seeded_orders):
        stats = purchasing.order_stats("year")

        assert stats.total_orders == 4
        assert stats.total_amount == Decimal("59.00")

    def test_explicit_day(self, purchasing, seeded_orders):
        stats = purchasing.order_stats("month", today=date(2024, 2, 29))

        assert stats.total_orders == 1
        assert stats.pending_orders == 0

    def test_later_orders_in_period_not_counted(
        self, purchasing, seeded_orders, order_factory, product
    ):
        order_factory([(product, 1, "100.00")], order_date=date(2024, 3, 20))
        order_factory([(product, 1, "100.00")], order_date=date(2024, 11, 2))

        month = purchasing.order_stats("month")
        year = purchasing.order_stats("year")

        assert month.total_orders == 3
        assert month.total_amount == Decimal("56.00")
        assert year.total_orders == 4
        assert year.date_to == date(2024, 3, 15)

    def test_empty_window(self, purchasing):
        stats = purchasing.order_stats("year", today=date(2020, 6, 1))

        assert stats.total_orders == 0
        assert stats.total_amount == Decimal("0")

    def test_unknown_period(self, purchasing):
        with pytest.raises(ValidationError) as exc_info:
            purchasing.order_stats("week")

        assert exc_info.value.field == "period"


class TestStatsWindow:

    @pytest.mark.parametrize(
        "period, today, expected",
        [
            ("today", date(2024, 2, 29), (date(2024, 2, 29), date(2024, 2, 29))),
            ("month", date(2024, 2, 10), (date(2024, 2, 1), date(2024, 2, 10))),
            ("month", date(2024, 3, 1), (date(2024, 3, 1), date(2024, 3, 1))),
            ("year", date(2024, 7, 4), (date(2024, 1, 1), date(2024, 7, 4))),
        ],
    )
    def test_window(self, period, today, expected):
        assert stats_window(period, today) == expected
