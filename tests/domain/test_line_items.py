"""Tests for line items, requisition numbers and the deterministic clock."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.domain.items import LineItem, items_total
from procurement_kernel.domain.transaction_ids import (
    TRANSACTION_ID_PATTERN,
    child_transaction_id,
    generate_transaction_id,
)
from procurement_kernel.exceptions import InvalidLineItemError


class TestLineItem:

    def test_total_is_quantity_times_unit_price(self):
        item = LineItem("Toner cartridge", Decimal("2"), Decimal("250.00"))

        assert item.total == Decimal("500.00")

    def test_float_input_converted_through_str(self):
        item = LineItem("Paper", 3, 0.1)

        assert item.unit_price == Decimal("0.1")
        assert item.total == Decimal("0.3")

    @pytest.mark.parametrize(
        "description, quantity, unit_price, message",
        [
            ("", 1, 1, "description is required"),
            ("   ", 1, 1, "description is required"),
            ("Paper", 0, 1, "greater than zero"),
            ("Paper", -1, 1, "greater than zero"),
            ("Paper", 1, -5, "cannot be negative"),
            ("Paper", "lots", 1, "must be a number"),
            ("Paper", 1, "NaN", "finite"),
        ],
    )
    def test_invalid_items_rejected(self, description, quantity, unit_price, message):
        with pytest.raises(InvalidLineItemError, match=message):
            LineItem(description, quantity, unit_price)

    def test_zero_unit_price_allowed(self):
        assert LineItem("Free sample", 1, 0).total == Decimal("0")

    def test_snapshot_is_json_safe(self):
        item = LineItem("Paper", Decimal("10"), Decimal("50.00"))
        snapshot = item.snapshot()

        assert snapshot["id"] == str(item.id)
        assert snapshot["total"] == "500.00"
        assert all(isinstance(value, str) for value in snapshot.values())

    @given(
        st.lists(
            st.tuples(
                st.integers(min_value=1, max_value=1000),
                st.decimals(min_value=Decimal("0"), max_value=Decimal("100000"), places=2),
            ),
            max_size=20,
        )
    )
    def test_items_total_is_sum_of_item_totals(self, rows):
        items = [LineItem(f"item {n}", q, p) for n, (q, p) in enumerate(rows)]

        expected = Decimal("0")
        for quantity, price in rows:
            expected += Decimal(quantity) * price
        assert items_total(items) == expected


class TestTransactionIds:

    def test_generated_id_format(self):
        txn = generate_transaction_id(datetime(2026, 3, 2, tzinfo=timezone.utc))

        assert txn.startswith("PR-20260302-")
        assert TRANSACTION_ID_PATTERN.match(txn)

    def test_child_ids_are_numbered_from_one(self):
        assert child_transaction_id("PR-20260302-ABCD", 1) == "PR-20260302-ABCD-1"
        assert TRANSACTION_ID_PATTERN.match(child_transaction_id("PR-20260302-ABCD", 12))

    def test_child_index_must_be_positive(self):
        with pytest.raises(ValueError):
            child_transaction_id("PR-20260302-ABCD", 0)


class TestDeterministicClock:

    def test_fixed_until_advanced(self):
        start = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        clock = DeterministicClock(start)

        assert clock.now() == start
        assert clock.now() == start
        clock.advance_days(8)
        assert clock.now() == start + timedelta(days=8)
