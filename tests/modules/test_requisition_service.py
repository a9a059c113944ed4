"""
Tests for RequisitionService.

Covers creation and HOD routing, HOD and finance decisions with their
guards, the finance split, organization scoping and the history search.
"""

from datetime import date
from decimal import Decimal

import pytest

from procurement_engines.split import SplitGroup
from procurement_kernel.domain.actor import Role
from procurement_kernel.domain.items import LineItem
from procurement_kernel.exceptions import (
    CategoryNotFoundError,
    GuardRejectedError,
    InvalidLineItemError,
    InvalidSplitError,
    InvalidTransitionError,
    NotAuthorizedError,
    RequisitionNotFoundError,
)
from procurement_modules.categories.models import CategoryType
from procurement_modules.categories.service import CategoryService
from procurement_modules.requisitions.models import (
    HistoryAction,
    HistoryQuery,
    RequisitionStatus,
    Urgency,
)


def split_in_two(pr):
    paper, toner, chair = pr.items
    return [
        SplitGroup((paper.id, toner.id), "Stationery budget"),
        SplitGroup((chair.id,), "Furniture budget"),
    ]


# =============================================================================
# Creation
# =============================================================================


class TestCreateRequisition:

    def test_routes_to_hod_when_organization_has_hod(self, requisition_service, employee, hod, make_draft):
        pr = requisition_service.create_requisition(employee, make_draft())

        assert pr.status == RequisitionStatus.PENDING_HOD_APPROVAL
        assert pr.hod_status == "Pending"
        assert pr.finance_status == "Pending"
        assert pr.history[0].action == HistoryAction.PR_CREATED
        assert pr.history[0].details == "Submitted for HOD approval"

    def test_routes_to_finance_without_hod(self, finance_queue_pr):
        assert finance_queue_pr.status == RequisitionStatus.PENDING_FINANCE_APPROVAL
        assert finance_queue_pr.hod_status == "N/A"
        assert finance_queue_pr.history[0].details == (
            "Submitted directly for Finance approval (no HOD in organization)"
        )

    def test_hod_joining_reroutes_next_requisition(self, request, requisition_service, employee, make_draft):
        before = requisition_service.create_requisition(employee, make_draft())
        request.getfixturevalue("hod")

        after = requisition_service.create_requisition(employee, make_draft())

        assert before.status == RequisitionStatus.PENDING_FINANCE_APPROVAL
        assert after.status == RequisitionStatus.PENDING_HOD_APPROVAL
        assert requisition_service.get_requisition(employee, before.id).status == (
            RequisitionStatus.PENDING_FINANCE_APPROVAL
        )

    def test_losing_the_hod_reroutes_next_requisition(
        self, requisition_service, administration_service, employee, hod, admin, make_draft,
    ):
        before = requisition_service.create_requisition(employee, make_draft())
        administration_service.change_member_role(admin, hod.user_id, Role.EMPLOYEE)

        after = requisition_service.create_requisition(employee, make_draft())

        assert before.status == RequisitionStatus.PENDING_HOD_APPROVAL
        assert after.status == RequisitionStatus.PENDING_FINANCE_APPROVAL
        assert after.hod_status == "N/A"

    def test_total_is_sum_of_items(self, finance_queue_pr):
        assert finance_queue_pr.total_amount == Decimal("1500")
        assert finance_queue_pr.total_amount == finance_queue_pr.items_total
        assert [i.description for i in finance_queue_pr.items] == [
            "A4 paper (box)", "Toner cartridge", "Desk chair",
        ]

    def test_requester_fields_come_from_actor(self, finance_queue_pr, employee, clock):
        assert finance_queue_pr.requested_by_id == employee.user_id
        assert finance_queue_pr.requested_by_name == "Thandi Mokoena"
        assert finance_queue_pr.requested_by_department == "Operations"
        assert finance_queue_pr.currency == "ZAR"
        assert finance_queue_pr.submitted_at == clock.now()
        assert finance_queue_pr.transaction_id.startswith("PR-20260302-")

    def test_empty_items_rejected(self, requisition_service, employee, make_draft):
        with pytest.raises(InvalidLineItemError):
            requisition_service.create_requisition(employee, make_draft(items=()))

    def test_supplier_cannot_create(self, requisition_service, supplier, make_draft):
        with pytest.raises(NotAuthorizedError):
            requisition_service.create_requisition(supplier, make_draft())

    def test_creation_is_logged(self, requisition_service, employee, make_draft, captured_logs):
        pr = requisition_service.create_requisition(employee, make_draft())

        records = [r for r in captured_logs() if r["message"] == "requisition_created"]
        assert len(records) == 1
        assert records[0]["pr_id"] == str(pr.id)
        assert records[0]["total_amount"] == str(pr.total_amount)


# =============================================================================
# HOD decisions
# =============================================================================


class TestHodDecisions:

    @pytest.fixture
    def hod_queue_pr(self, requisition_service, employee, hod, make_draft):
        return requisition_service.create_requisition(employee, make_draft())

    def test_approve_moves_to_finance_queue(self, requisition_service, hod_queue_pr, hod):
        pr = requisition_service.hod_approve(hod, hod_queue_pr.id, "  Needed for Q2  ")

        assert pr.status == RequisitionStatus.PENDING_FINANCE_APPROVAL
        assert pr.hod_status == "Approved"
        entry = pr.history[-1]
        assert entry.action == HistoryAction.HOD_APPROVED
        assert entry.user_id == hod.user_id
        assert entry.user_name == "Pieter Naidoo"
        assert entry.details == "Needed for Q2"
        assert [e.position for e in pr.history] == [1, 2]

    def test_decline_is_final(self, requisition_service, hod_queue_pr, hod):
        pr = requisition_service.hod_decline(hod, hod_queue_pr.id, "Not in budget")

        assert pr.status == RequisitionStatus.HOD_DECLINED
        assert pr.is_terminal
        with pytest.raises(InvalidTransitionError, match="Cannot hod approve while status is HOD_DECLINED"):
            requisition_service.hod_approve(hod, hod_queue_pr.id, "Changed my mind")

    @pytest.mark.parametrize("comments", ["", "   ", None])
    def test_comment_required(self, requisition_service, hod_queue_pr, hod, comments):
        with pytest.raises(GuardRejectedError, match="Comments are required"):
            requisition_service.hod_approve(hod, hod_queue_pr.id, comments)

        pr = requisition_service.get_requisition(hod, hod_queue_pr.id)
        assert pr.status == RequisitionStatus.PENDING_HOD_APPROVAL
        assert len(pr.history) == 1

    def test_employee_cannot_approve(self, requisition_service, hod_queue_pr, employee):
        with pytest.raises(NotAuthorizedError):
            requisition_service.hod_approve(employee, hod_queue_pr.id, "Looks fine")

    def test_finance_cannot_act_in_hod_queue(self, requisition_service, hod_queue_pr, finance, category):
        with pytest.raises(InvalidTransitionError):
            requisition_service.finance_approve(finance, hod_queue_pr.id, category.id, "Early")


# =============================================================================
# Finance decisions
# =============================================================================


class TestFinanceDecisions:

    def test_approve_assigns_category(self, approved_pr, category, finance):
        assert approved_pr.status == RequisitionStatus.FINANCE_APPROVED
        assert approved_pr.finance_status == "Approved"
        assert approved_pr.category_id == category.id
        assert approved_pr.history[-1].action == HistoryAction.FINANCE_APPROVED
        assert approved_pr.history[-1].user_name == "Ayesha Khan"

    def test_approve_requires_category(self, requisition_service, finance_queue_pr, finance):
        with pytest.raises(GuardRejectedError, match="category must be selected"):
            requisition_service.finance_approve(finance, finance_queue_pr.id, None, "Budget available")

    def test_category_of_other_organization_rejected(
        self, session, requisition_service, finance_queue_pr, finance, outsider,
    ):
        foreign = CategoryService(session).create_category(outsider, "Travel", CategoryType.EXPENSE)

        with pytest.raises(CategoryNotFoundError):
            requisition_service.finance_approve(finance, finance_queue_pr.id, foreign.id, "Budget available")

        pr = requisition_service.get_requisition(finance, finance_queue_pr.id)
        assert pr.status == RequisitionStatus.PENDING_FINANCE_APPROVAL
        assert pr.category_id is None

    def test_decline(self, requisition_service, finance_queue_pr, finance):
        pr = requisition_service.finance_decline(finance, finance_queue_pr.id, "Duplicate request")

        assert pr.status == RequisitionStatus.FINANCE_DECLINED
        assert pr.finance_status == "Declined"
        assert pr.history[-1].details == "Duplicate request"

    def test_approved_pr_cannot_be_declined(self, requisition_service, approved_pr, finance):
        with pytest.raises(InvalidTransitionError, match="FINANCE_APPROVED"):
            requisition_service.finance_decline(finance, approved_pr.id, "Too late")

    def test_hod_cannot_finance_approve(self, requisition_service, finance_queue_pr, hod, category):
        with pytest.raises(NotAuthorizedError):
            requisition_service.finance_approve(hod, finance_queue_pr.id, category.id, "ok")


# =============================================================================
# Split
# =============================================================================


class TestSplitRequisition:

    def test_split_creates_numbered_children(self, requisition_service, finance_queue_pr, finance):
        children = requisition_service.split_requisition(
            finance, finance_queue_pr.id, split_in_two(finance_queue_pr), "Budget lines differ",
        )

        txn = finance_queue_pr.transaction_id
        assert [c.transaction_id for c in children] == [f"{txn}-1", f"{txn}-2"]
        assert [c.total_amount for c in children] == [Decimal("1000"), Decimal("500")]
        assert sum((c.total_amount for c in children), Decimal("0")) == finance_queue_pr.total_amount
        for child in children:
            assert child.status == RequisitionStatus.PENDING_FINANCE_APPROVAL
            assert child.parent_pr_id == finance_queue_pr.id
            assert child.requested_by_id == finance_queue_pr.requested_by_id
            assert child.hod_status == "Approved"
            assert child.history[0].action == HistoryAction.PR_SPLIT_CREATED_BY_FINANCE
        assert children[0].history[0].details == f"Split from {txn} by Finance. Stationery budget"

    def test_parent_becomes_split(self, requisition_service, finance_queue_pr, finance):
        requisition_service.split_requisition(
            finance, finance_queue_pr.id, split_in_two(finance_queue_pr), "Budget lines differ",
        )

        parent = requisition_service.get_requisition(finance, finance_queue_pr.id)
        assert parent.status == RequisitionStatus.SPLIT
        assert parent.finance_status == "Split"
        assert parent.history[-1].action == HistoryAction.PR_SPLIT_BY_FINANCE
        assert parent.history[-1].details == "Split into 2 child PRs by Finance. Budget lines differ"
        assert len(requisition_service.list_children(finance, parent.id)) == 2

    def test_child_items_reference_parent_items(self, requisition_service, finance_queue_pr, finance):
        children = requisition_service.split_requisition(
            finance, finance_queue_pr.id, split_in_two(finance_queue_pr),
        )

        assert [i.description for i in children[0].items] == ["A4 paper (box)", "Toner cartridge"]
        assert {i.id for i in children[0].items}.isdisjoint({i.id for i in finance_queue_pr.items})

    def test_invalid_split_writes_nothing(self, requisition_service, finance_queue_pr, finance):
        paper, toner, _ = finance_queue_pr.items
        with pytest.raises(InvalidSplitError, match="Desk chair"):
            requisition_service.split_requisition(
                finance,
                finance_queue_pr.id,
                [SplitGroup((paper.id,), "a"), SplitGroup((toner.id,), "b")],
            )

        parent = requisition_service.get_requisition(finance, finance_queue_pr.id)
        assert parent.status == RequisitionStatus.PENDING_FINANCE_APPROVAL
        assert len(parent.history) == 1
        assert requisition_service.list_children(finance, parent.id) == []

    def test_child_cannot_be_split_again(self, requisition_service, finance, make_draft, employee):
        items = (
            LineItem("Laptop", 1, 20000),
            LineItem("Dock", 1, 3000),
            LineItem("Monitor", 2, 4000),
        )
        parent = requisition_service.create_requisition(employee, make_draft(items=items))
        laptop, dock, monitor = parent.items
        children = requisition_service.split_requisition(
            finance,
            parent.id,
            [SplitGroup((laptop.id, dock.id), "Computing"), SplitGroup((monitor.id,), "Displays")],
        )
        child = children[0]
        first, second = child.items

        with pytest.raises(GuardRejectedError, match="cannot be split again"):
            requisition_service.split_requisition(
                finance, child.id, [SplitGroup((first.id,), "a"), SplitGroup((second.id,), "b")],
            )

    def test_split_children_can_be_approved(self, requisition_service, finance_queue_pr, finance, category):
        children = requisition_service.split_requisition(
            finance, finance_queue_pr.id, split_in_two(finance_queue_pr),
        )

        approved = requisition_service.finance_approve(finance, children[1].id, category.id, "Go ahead")
        assert approved.status == RequisitionStatus.FINANCE_APPROVED

    def test_split_parent_is_final(self, requisition_service, finance_queue_pr, finance, category):
        requisition_service.split_requisition(finance, finance_queue_pr.id, split_in_two(finance_queue_pr))

        with pytest.raises(InvalidTransitionError):
            requisition_service.finance_approve(finance, finance_queue_pr.id, category.id, "Approve parent")

    def test_employee_cannot_split(self, requisition_service, finance_queue_pr, employee):
        with pytest.raises(NotAuthorizedError):
            requisition_service.split_requisition(employee, finance_queue_pr.id, split_in_two(finance_queue_pr))


# =============================================================================
# Scoping and queries
# =============================================================================


class TestOrganizationScoping:

    def test_other_organization_sees_not_found(self, requisition_service, finance_queue_pr, outsider):
        with pytest.raises(RequisitionNotFoundError, match="Purchase requisition not found"):
            requisition_service.get_requisition(outsider, finance_queue_pr.id)

    def test_other_organization_cannot_decide(self, requisition_service, finance_queue_pr, outsider):
        with pytest.raises(RequisitionNotFoundError):
            requisition_service.finance_decline(outsider, finance_queue_pr.id, "Not ours")

    def test_queue_is_scoped(self, requisition_service, finance_queue_pr, finance, outsider):
        statuses = [RequisitionStatus.PENDING_FINANCE_APPROVAL]

        assert [p.id for p in requisition_service.list_for_status(finance, statuses)] == [finance_queue_pr.id]
        assert requisition_service.list_for_status(outsider, statuses) == []


class TestSearchHistory:

    @pytest.fixture
    def history(self, requisition_service, employee, finance, make_draft, clock):
        created = [
            requisition_service.create_requisition(employee, make_draft(urgency=Urgency.NORMAL)),
            requisition_service.create_requisition(employee, make_draft(urgency=Urgency.URGENT)),
        ]
        clock.advance_days(3)
        created.append(requisition_service.create_requisition(employee, make_draft(urgency=Urgency.URGENT)))
        requisition_service.finance_decline(finance, created[0].id, "Duplicate")
        return created

    def test_default_page_has_everything_newest_first(self, requisition_service, history, finance):
        page = requisition_service.search_history(finance)

        assert page.total_count == 3
        assert page.page_size == 20
        assert page.items[0].id == history[2].id

    def test_pagination(self, requisition_service, history, finance):
        first = requisition_service.search_history(finance, HistoryQuery(page=1, page_size=2))
        second = requisition_service.search_history(finance, HistoryQuery(page=2, page_size=2))

        assert first.page_count == 2
        assert len(first.items) == 2
        assert len(second.items) == 1
        assert {p.id for p in first.items + second.items} == {p.id for p in history}

    def test_filter_by_status_and_urgency(self, requisition_service, history, finance):
        declined = requisition_service.search_history(
            finance, HistoryQuery(statuses=(RequisitionStatus.FINANCE_DECLINED,)),
        )
        urgent = requisition_service.search_history(finance, HistoryQuery(urgency=Urgency.URGENT))

        assert [p.id for p in declined.items] == [history[0].id]
        assert urgent.total_count == 2

    def test_date_range_is_inclusive(self, requisition_service, history, finance):
        page = requisition_service.search_history(
            finance, HistoryQuery(date_from=date(2026, 3, 5), date_to=date(2026, 3, 5)),
        )

        assert [p.id for p in page.items] == [history[2].id]

    def test_search_by_transaction_id_or_requester(self, requisition_service, history, finance):
        by_txn = requisition_service.search_history(
            finance, HistoryQuery(search=history[1].transaction_id.lower()),
        )
        by_name = requisition_service.search_history(finance, HistoryQuery(search="MOKOENA"))

        assert [p.id for p in by_txn.items] == [history[1].id]
        assert by_name.total_count == 3

    def test_like_wildcards_are_literal(self, requisition_service, history, finance):
        page = requisition_service.search_history(finance, HistoryQuery(search="%"))

        assert page.total_count == 0

    def test_invalid_page_rejected(self):
        with pytest.raises(ValueError):
            HistoryQuery(page=0)


class TestStatusAlerts:

    def test_finance_alerted_for_new_finance_queue_pr(
        self, requisition_service, change_feed, employee, finance, organization, make_draft,
    ):
        received = []
        change_feed.subscribe(organization.id, received.append, role=Role.FINANCE)

        pr = requisition_service.create_requisition(employee, make_draft())

        assert [a.message for a in received] == [f"PR #{pr.transaction_id} is ready for finance review"]

    def test_requester_alerted_on_decision(
        self, requisition_service, change_feed, finance_queue_pr, finance, employee, organization,
    ):
        received = []
        change_feed.subscribe(organization.id, received.append, user_id=employee.user_id)

        requisition_service.finance_decline(finance, finance_queue_pr.id, "No budget")

        assert [a.message for a in received] == [
            f"Your PR #{finance_queue_pr.transaction_id} status changed to: Finance Declined"
        ]

    def test_no_alert_for_rolled_back_change(
        self, requisition_service, change_feed, finance_queue_pr, finance, organization,
    ):
        received = []
        change_feed.subscribe(organization.id, received.append, role=Role.ADMIN)

        with pytest.raises(GuardRejectedError):
            requisition_service.finance_decline(finance, finance_queue_pr.id, "")

        assert received == []
