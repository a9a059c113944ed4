"""Tests for quote workflow derivation and supplier dashboard counters."""

from decimal import Decimal

import pytest

from procurement_engines.quote_overview import (
    QuoteWorkflowStatus,
    derive_quote_workflow_status,
    summarize_supplier_activity,
)


class TestDeriveQuoteWorkflowStatus:

    @pytest.mark.parametrize(
        "requests, quotes, expected",
        [
            ([], [], QuoteWorkflowStatus.PENDING_REVIEW),
            (["PENDING"], [], QuoteWorkflowStatus.QUOTE_SENT),
            (["DECLINED"], [], QuoteWorkflowStatus.QUOTE_SENT),
            (["PENDING", "ACCEPTED"], [], QuoteWorkflowStatus.QUOTE_ACCEPTED),
            (["QUOTED"], ["SUBMITTED"], QuoteWorkflowStatus.QUOTE_SUBMITTED),
            (["QUOTED", "QUOTED"], ["REJECTED", "ACCEPTED"], QuoteWorkflowStatus.COMPLETED),
            (["QUOTED"], ["INVOICE_UPLOADED"], QuoteWorkflowStatus.COMPLETED),
        ],
    )
    def test_most_advanced_stage_wins(self, requests, quotes, expected):
        assert derive_quote_workflow_status(requests, quotes) == expected


class TestSummarizeSupplierActivity:

    def test_counts_and_accepted_value(self):
        activity = summarize_supplier_activity(
            ["PENDING", "PENDING", "ACCEPTED", "QUOTED"],
            [
                ("SUBMITTED", Decimal("100.00")),
                ("ACCEPTED", Decimal("1500.00")),
                ("INVOICE_UPLOADED", Decimal("250.50")),
                ("REJECTED", Decimal("999.00")),
            ],
        )

        assert activity.pending_requests == 2
        assert activity.submitted_quotes == 1
        assert activity.accepted_quotes == 2
        assert activity.total_accepted_value == Decimal("1750.50")

    def test_no_activity(self):
        activity = summarize_supplier_activity([], [])

        assert activity.pending_requests == 0
        assert activity.total_accepted_value == Decimal("0")
