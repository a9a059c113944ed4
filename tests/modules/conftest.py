"""
Shared fixtures for module tests.

Provides the organization directory (members, supplier, category) and one
fixture per module service.  All user ids are deterministic.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares which members it depends on, so a test that does not request
``hod`` runs in an organization without an HOD.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from procurement_kernel.domain.actor import Role
from procurement_kernel.domain.items import LineItem
from procurement_kernel.models.directory import SupplierLinkStatus
from procurement_kernel.selectors.directory import DirectorySelector
from procurement_kernel.services.directory_service import DirectoryService
from procurement_modules.administration.service import AdministrationService
from procurement_modules.categories.models import CategoryType
from procurement_modules.categories.service import CategoryService
from procurement_modules.invitations.service import InvitationService
from procurement_modules.invoices.service import InvoiceService
from procurement_modules.messaging.service import MessagingService
from procurement_modules.quotations.models import QuoteSubmission
from procurement_modules.quotations.service import QuotationService
from procurement_modules.requisitions.models import RequisitionDraft, Urgency
from procurement_modules.requisitions.service import RequisitionService
from procurement_services.document_store import DocumentUpload

# ---------------------------------------------------------------------------
# Deterministic user ids
# ---------------------------------------------------------------------------

SETUP_ACTOR_ID = UUID("00000000-0000-4000-a000-000000000000")
EMPLOYEE_USER_ID = UUID("00000000-0000-4000-a000-000000000001")
HOD_USER_ID = UUID("00000000-0000-4000-a000-000000000002")
FINANCE_USER_ID = UUID("00000000-0000-4000-a000-000000000003")
ADMIN_USER_ID = UUID("00000000-0000-4000-a000-000000000004")
SUPPLIER_USER_ID = UUID("00000000-0000-4000-a000-000000000005")
SECOND_SUPPLIER_USER_ID = UUID("00000000-0000-4000-a000-000000000006")
OUTSIDER_USER_ID = UUID("00000000-0000-4000-a000-000000000007")


def _member(session, organization, user_id, role, name, surname, department=None):
    DirectoryService(session).add_member(
        user_id=user_id,
        organization_id=organization.id,
        role=role,
        name=name,
        surname=surname,
        email=f"{name.lower()}@acme.test",
        department=department,
        created_by_id=SETUP_ACTOR_ID,
    )
    session.commit()
    return DirectorySelector(session).resolve_actor(user_id)


def _supplier(session, organization, user_id, company_name):
    directory = DirectoryService(session)
    supplier = directory.register_supplier(
        company_name=company_name,
        contact_name="Sales Desk",
        email=f"sales@{company_name.split()[0].lower()}.test",
        user_id=user_id,
        created_by_id=SETUP_ACTOR_ID,
    )
    directory.link_supplier(
        organization.id, supplier.id, created_by_id=SETUP_ACTOR_ID, status=SupplierLinkStatus.ACCEPTED,
    )
    session.commit()
    return DirectorySelector(session).resolve_actor(user_id)


# ---------------------------------------------------------------------------
# Directory fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def organization(session):
    org = DirectoryService(session).create_organization("Acme Holdings", created_by_id=SETUP_ACTOR_ID)
    session.commit()
    return org


@pytest.fixture
def other_organization(session):
    org = DirectoryService(session).create_organization("Globex", created_by_id=SETUP_ACTOR_ID)
    session.commit()
    return org


@pytest.fixture
def employee(session, organization):
    return _member(session, organization, EMPLOYEE_USER_ID, Role.EMPLOYEE, "Thandi", "Mokoena", "Operations")


@pytest.fixture
def hod(session, organization):
    return _member(session, organization, HOD_USER_ID, Role.HOD, "Pieter", "Naidoo", "Operations")


@pytest.fixture
def finance(session, organization):
    return _member(session, organization, FINANCE_USER_ID, Role.FINANCE, "Ayesha", "Khan", "Finance")


@pytest.fixture
def admin(session, organization):
    return _member(session, organization, ADMIN_USER_ID, Role.ADMIN, "Sipho", "Dlamini")


@pytest.fixture
def outsider(session, other_organization):
    return _member(session, other_organization, OUTSIDER_USER_ID, Role.FINANCE, "Hank", "Scorpio")


@pytest.fixture
def supplier(session, organization):
    return _supplier(session, organization, SUPPLIER_USER_ID, "Bolt Supplies")


@pytest.fixture
def second_supplier(session, organization):
    return _supplier(session, organization, SECOND_SUPPLIER_USER_ID, "Nut Traders")


@pytest.fixture
def category(session, finance):
    return CategoryService(session).create_category(finance, "Office Supplies", CategoryType.EXPENSE)


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def requisition_service(session, clock, settings, change_feed):
    return RequisitionService(session, clock=clock, settings=settings, change_feed=change_feed)


@pytest.fixture
def quotation_service(session, clock, settings, document_store):
    return QuotationService(session, clock=clock, settings=settings, document_store=document_store)


@pytest.fixture
def messaging_service(session, clock, settings, document_store):
    return MessagingService(session, clock=clock, settings=settings, document_store=document_store)


@pytest.fixture
def invoice_service(session, clock, settings, document_store, messaging_service):
    return InvoiceService(
        session, document_store, clock=clock, settings=settings, messaging=messaging_service,
    )


@pytest.fixture
def invitation_service(session, clock, settings):
    return InvitationService(session, clock=clock, settings=settings)


@pytest.fixture
def category_service(session):
    return CategoryService(session)


@pytest.fixture
def administration_service(session):
    return AdministrationService(session)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def three_items() -> tuple[LineItem, ...]:
    return (
        LineItem("A4 paper (box)", Decimal("10"), Decimal("50.00")),
        LineItem("Toner cartridge", Decimal("2"), Decimal("250.00")),
        LineItem("Desk chair", Decimal("1"), Decimal("500.00")),
    )


@pytest.fixture
def make_draft():
    def _make(items=None, urgency=Urgency.NORMAL):
        return RequisitionDraft(
            items=items if items is not None else three_items(),
            due_date=date(2026, 3, 31),
            urgency=urgency,
        )

    return _make


@pytest.fixture
def finance_queue_pr(requisition_service, employee, make_draft):
    """A requisition waiting for finance (organization without HOD)."""
    return requisition_service.create_requisition(employee, make_draft())


@pytest.fixture
def approved_pr(requisition_service, finance_queue_pr, finance, category):
    return requisition_service.finance_approve(finance, finance_queue_pr.id, category.id, "Budget available")


@pytest.fixture
def submit_quote(quotation_service, finance):
    """Send a request to ``supplier_actor`` for every item and submit their quote."""

    def _submit(pr, supplier_actor, amount):
        request = quotation_service.send_quote_request(
            finance, pr.id, supplier_actor.supplier_id, [item.id for item in pr.items],
        )
        return quotation_service.submit_quote(
            supplier_actor, request.id, QuoteSubmission(amount=Decimal(amount), delivery_time="5 days"),
        )

    return _submit


@pytest.fixture
def invoice_pdf():
    return DocumentUpload("invoice-0042.pdf", "application/pdf", b"%PDF-1.4 invoice body")
