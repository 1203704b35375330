"""
Tests for OrderNumberingService and the underlying SequenceService.

Covers:
- PO-YYYYMMDD-NNN format and daily reset
- Reservation versus preview
- Business timezone boundaries
- Counter rows instead of MAX()+1
"""

from datetime import date, datetime, timezone

from sqlalchemy import select

from procurement_kernel.config import KernelSettings
from procurement_kernel.models.sequence_counter import SequenceCounter
from procurement_kernel.services.order_numbering import OrderNumberingService
from procurement_kernel.services.purchasing_service import PurchasingService
from procurement_kernel.services.sequence_service import SequenceService


class TestOrderNumberFormat:

    def test_first_number_of_the_day(self, purchasing):
        assert purchasing.next_order_number() == "PO-20240315-001"

    def test_numbers_increase(self, purchasing):
        numbers = [purchasing.next_order_number() for _ in range(3)]

        assert numbers == ["PO-20240315-001", "PO-20240315-002", "PO-20240315-003"]

    def test_counter_resets_each_day(self, purchasing, clock):
        purchasing.next_order_number()
        purchasing.next_order_number()

        clock.advance(24 * 3600)

        assert purchasing.next_order_number() == "PO-20240316-001"

    def test_width_grows_past_padding(self, session, clock):
        numbering = OrderNumberingService(session, clock, KernelSettings(po_number_width=1))
        numbers = [numbering.next_order_number() for _ in range(10)]

        assert numbers[0] == "PO-20240315-1"
        assert numbers[-1] == "PO-20240315-10"

    def test_custom_prefix(self, session, clock):
        numbering = OrderNumberingService(session, clock, KernelSettings(po_number_prefix="BUY"))

        assert numbering.next_order_number() == "BUY-20240315-001"


class TestReservation:

    def test_peek_does_not_reserve(self, purchasing):
        assert purchasing.peek_next_order_number() == "PO-20240315-001"
        assert purchasing.peek_next_order_number() == "PO-20240315-001"
        assert purchasing.next_order_number() == "PO-20240315-001"
        assert purchasing.peek_next_order_number() == "PO-20240315-002"

    def test_created_orders_use_the_counter(self, purchasing, order_factory, product_factory):
        first = order_factory([(product_factory(), 1, 1)])
        reserved = purchasing.next_order_number()
        second = order_factory([(product_factory(), 1, 1)])

        assert purchasing.get_order(first).po_number == "PO-20240315-001"
        assert reserved == "PO-20240315-002"
        assert purchasing.get_order(second).po_number == "PO-20240315-003"

    def test_rolled_back_number_is_reissued(self, session, clock):
        numbering = OrderNumberingService(session, clock)
        assert numbering.next_order_number() == "PO-20240315-001"
        session.rollback()

        assert numbering.next_order_number() == "PO-20240315-001"


class TestBusinessTimezone:

    def test_day_follows_business_timezone(self, session, clock):
        """23:30 UTC on the 15th is already the 16th in Tokyo."""
        clock.set_time(datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc))
        settings = KernelSettings(business_timezone="Asia/Tokyo")
        numbering = OrderNumberingService(session, clock, settings)

        assert numbering.business_date() == date(2024, 3, 16)
        assert numbering.next_order_number() == "PO-20240316-001"

    def test_order_stats_default_to_business_day(self, session, clock):
        clock.set_time(datetime(2024, 3, 31, 23, 30, tzinfo=timezone.utc))
        purchasing = PurchasingService(
            session, clock=clock, settings=KernelSettings(business_timezone="Asia/Tokyo")
        )

        stats = purchasing.order_stats("month")

        assert stats.date_from == date(2024, 4, 1)


class TestSequenceService:
    """Counter rows, never MAX()+1."""

    def test_counter_row_created_on_first_use(self, session):
        sequences = SequenceService(session)

        assert sequences.current_value("widgets") is None
        assert sequences.next_value("widgets") == 1
        assert sequences.next_value("widgets") == 2

        counter = session.execute(
            select(SequenceCounter).where(SequenceCounter.name == "widgets")
        ).scalar_one()
        assert counter.current_value == 2

    def test_sequences_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value("a")
        sequences.next_value("a")

        assert sequences.next_value("b") == 1
        assert sequences.current_value("a") == 2

    def test_day_counters_are_named_by_date(self):
        assert OrderNumberingService.counter_name(date(2024, 3, 15)) == "po_number:20240315"

    def test_allocations_survive_commit(self, session):
        count = 5
        sequences = SequenceService(session)
        values = [sequences.next_value(SequenceService.INVENTORY_TRANSACTION) for _ in range(count)]
        session.commit()

        assert values == list(range(1, count + 1))
        assert SequenceService(session).current_value(SequenceService.INVENTORY_TRANSACTION) == count
