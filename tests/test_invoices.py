"""Tests for the invoice service."""

import io
import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import openpyxl
import pytest

from conftest import make_upload
from freightdesk.core.exceptions import ConflictError, InvalidInputError, NotFoundError, UpstreamError
from freightdesk.models.truck import UNKNOWN_CONTACT, UNKNOWN_NAME
from freightdesk.schemas.invoice import InvoiceExportRequest, InvoiceFilter, InvoiceUpdate
from freightdesk.services.invoices import InvoiceService, normalize_product_name
from freightdesk.services.trucks import TruckService


class ScriptedNumbers:
    """Hands out a fixed list of invoice numbers."""

    def __init__(self, *numbers):
        self.numbers = list(numbers)
        self.calls = 0

    async def next_invoice_number(self, year=None):
        self.calls += 1
        return self.numbers.pop(0)


@pytest.fixture
def service(db, queue, storage):
    return InvoiceService(db, queue, storage)


class TestProductName:

    def test_plain_string_is_kept(self):
        assert normalize_product_name("Onion") == "Onion"

    def test_single_element_list_is_unwrapped(self):
        assert normalize_product_name(["Onion"]) == "Onion"

    def test_multiple_products_are_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_product_name(["Onion", "Potato"])

    def test_empty_list_is_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_product_name([])


class TestCreateInvoice:

    @pytest.mark.asyncio
    async def test_create_assigns_number_and_queues_pdf(self, service, queue, invoice_payload):
        invoice = await service.create(invoice_payload(), year=2024)

        assert isinstance(invoice.id, uuid.UUID)
        assert invoice.invoice_number == "INV-2024-000001"
        assert invoice.pdf_url is None
        assert queue.of_type("generate-pdf") == [{"invoice_id": str(invoice.id)}]

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_found(self, service, queue, invoice_payload):
        with pytest.raises(NotFoundError):
            await service.create(invoice_payload(user_id=uuid.uuid4()), year=2024)
        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_unknown_truck_is_created_with_placeholders(self, service, db, invoice_payload):
        invoice = await service.create(invoice_payload(truck_number="MH12AB1234"), year=2024)

        truck = await TruckService(db).get_by_number("MH12AB1234")
        assert invoice.truck_id == truck.id
        assert invoice.truck.truck_number == "MH12AB1234"
        assert truck.owner_name == UNKNOWN_NAME
        assert truck.driver_contact_number == UNKNOWN_CONTACT
        assert truck.claim_count == 0

    @pytest.mark.asyncio
    async def test_existing_truck_is_reused(self, service, db, invoice_payload):
        first = await service.create(invoice_payload(truck_number="MH12AB1234"), year=2024)
        second = await service.create(invoice_payload(truck_number="MH12AB1234"), year=2024)

        assert first.truck_id == second.truck_id
        assert len(await TruckService(db).list()) == 1

    @pytest.mark.asyncio
    async def test_claim_invoice_registers_one_claim_on_truck(self, service, db, invoice_payload):
        await service.create(invoice_payload(truck_number="MH12AB1234", is_claim=True), year=2024)

        truck = await TruckService(db).get_by_number("MH12AB1234")
        await db.refresh(truck)
        assert truck.claim_count == 1

    @pytest.mark.asyncio
    async def test_product_list_is_collapsed(self, service, invoice_payload):
        invoice = await service.create(invoice_payload(product_name=["Onion"]), year=2024)
        assert invoice.product_name == "Onion"

    @pytest.mark.asyncio
    async def test_weighment_slips_are_uploaded_in_order(self, service, invoice_payload):
        files = [make_upload("front.jpg"), make_upload("back.png")]
        invoice = await service.create(invoice_payload(), files, year=2024)

        assert len(invoice.weighment_slip_urls) == 2
        assert invoice.weighment_slip_urls[0].startswith("http://media.test/weighment-slips/")
        assert invoice.weighment_slip_urls[0].endswith(".jpg")
        assert invoice.weighment_slip_urls[1].endswith(".png")

    @pytest.mark.asyncio
    async def test_number_collision_is_retried_once(self, db, queue, storage, invoice_payload):
        first_payload, second_payload = invoice_payload(), invoice_payload()
        await InvoiceService(db, queue, storage).create(first_payload, year=2024)

        numbers = ScriptedNumbers("INV-2024-000001", "INV-2024-000002")
        invoice = await InvoiceService(db, queue, storage, numbers=numbers).create(second_payload, year=2024)

        assert numbers.calls == 2
        assert invoice.invoice_number == "INV-2024-000002"

    @pytest.mark.asyncio
    async def test_second_collision_is_a_conflict(self, db, queue, storage, invoice_payload):
        first_payload, second_payload = invoice_payload(), invoice_payload()
        await InvoiceService(db, queue, storage).create(first_payload, year=2024)

        numbers = ScriptedNumbers("INV-2024-000001", "INV-2024-000001")
        with pytest.raises(ConflictError):
            await InvoiceService(db, queue, storage, numbers=numbers).create(second_payload, year=2024)

        assert numbers.calls == 2
        assert len(queue.of_type("generate-pdf")) == 1


class TestUpdateInvoice:

    @pytest.mark.asyncio
    async def test_invoice_number_is_never_changed(self, service, invoice_payload):
        invoice = await service.create(invoice_payload(), year=2024)

        updated = await service.update(invoice.id, InvoiceUpdate(invoice_number="INV-1999-000999", supplier_name="B"))

        assert updated.invoice_number == "INV-2024-000001"
        assert updated.supplier_name == "B"

    @pytest.mark.asyncio
    async def test_weighment_slips_accumulate(self, service, invoice_payload):
        invoice = await service.create(invoice_payload(), [make_upload("a.jpg")], year=2024)
        first_url = invoice.weighment_slip_urls[0]

        updated = await service.update(invoice.id, InvoiceUpdate(), [make_upload("b.jpg")])
        updated = await service.update(invoice.id, InvoiceUpdate(), [make_upload("c.jpg")])

        assert len(updated.weighment_slip_urls) == 3
        assert updated.weighment_slip_urls[0] == first_url

    @pytest.mark.asyncio
    async def test_update_always_requeues_pdf(self, service, queue, invoice_payload):
        invoice = await service.create(invoice_payload(), year=2024)
        await service.update(invoice.id, InvoiceUpdate())

        assert queue.of_type("generate-pdf") == [{"invoice_id": str(invoice.id)}] * 2

    @pytest.mark.asyncio
    async def test_update_keeps_previous_pdf_until_rerendered(self, service, db, invoice_payload):
        invoice = await service.create(invoice_payload(), year=2024)
        invoice.pdf_url = "http://media.test/invoices/old.pdf"
        await db.commit()

        updated = await service.update(invoice.id, InvoiceUpdate(rate="6", amount="60"))
        assert updated.pdf_url == "http://media.test/invoices/old.pdf"

    @pytest.mark.asyncio
    async def test_new_truck_number_moves_invoice(self, service, invoice_payload):
        invoice = await service.create(invoice_payload(truck_number="MH12AB1234"), year=2024)

        updated = await service.update(invoice.id, InvoiceUpdate(truck_number="KA01CD5678"))
        assert updated.truck.truck_number == "KA01CD5678"

    @pytest.mark.asyncio
    async def test_update_normalizes_product_name(self, service, invoice_payload):
        invoice = await service.create(invoice_payload(), year=2024)

        updated = await service.update(invoice.id, InvoiceUpdate(product_name=["Garlic"]))
        assert updated.product_name == "Garlic"

    @pytest.mark.asyncio
    async def test_missing_invoice_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.update(uuid.uuid4(), InvoiceUpdate())


class TestRemoveAndQueries:

    @pytest.mark.asyncio
    async def test_remove_deletes_row(self, service, invoice_payload):
        invoice = await service.create(invoice_payload(), year=2024)
        await service.remove(invoice.id)

        with pytest.raises(NotFoundError):
            await service.find_one(invoice.id)

    @pytest.mark.asyncio
    async def test_remove_missing_invoice_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.remove(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_find_by_invoice_number(self, service, invoice_payload):
        invoice = await service.create(invoice_payload(), year=2024)

        assert (await service.find_by_invoice_number("INV-2024-000001")).id == invoice.id
        assert await service.find_by_invoice_number("INV-2024-999999") is None

    @pytest.mark.asyncio
    async def test_find_by_user_id_requires_user(self, service, user, invoice_payload):
        await service.create(invoice_payload(), year=2024)

        assert len(await service.find_by_user_id(user.id)) == 1
        with pytest.raises(NotFoundError):
            await service.find_by_user_id(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_filter_by_names_is_case_insensitive_and_partial(self, service, invoice_payload):
        await service.create(invoice_payload(supplier_name="Sandeep Traders", bill_to_name="KSRT Agromart"), year=2024)
        await service.create(invoice_payload(supplier_name="Nashik Onion Co", bill_to_name="Delhi Fresh"), year=2024)

        by_supplier = await service.filter_invoices(InvoiceFilter(supplier_name="sandeep"))
        by_buyer = await service.filter_invoices(InvoiceFilter(buyer_name="FRESH"))

        assert [i.supplier_name for i in by_supplier] == ["Sandeep Traders"]
        assert [i.bill_to_name for i in by_buyer] == ["Delhi Fresh"]

    @pytest.mark.asyncio
    async def test_filter_by_created_range(self, service, invoice_payload):
        await service.create(invoice_payload(), year=2024)

        now = datetime.utcnow()
        inside = await service.filter_invoices(InvoiceFilter(start_date=now - timedelta(days=1), end_date=now + timedelta(days=1)))
        outside = await service.filter_invoices(InvoiceFilter(start_date=now + timedelta(days=1)))

        assert len(inside) == 1
        assert outside == []


class TestExport:

    @pytest.mark.asyncio
    async def test_export_requires_ids_or_full_date_range(self, service):
        with pytest.raises(InvalidInputError):
            await service.export_invoices_to_excel(InvoiceExportRequest())
        with pytest.raises(InvalidInputError):
            await service.export_invoices_to_excel(InvoiceExportRequest(start_date=datetime.utcnow()))

    @pytest.mark.asyncio
    async def test_export_by_ids_writes_one_row_per_invoice(self, service, invoice_payload):
        first = await service.create(invoice_payload(truck_number="MH12AB1234"), year=2024)
        await service.create(invoice_payload(), year=2024)

        content = await service.export_invoices_to_excel(InvoiceExportRequest(invoice_ids=[first.id]))

        sheet = openpyxl.load_workbook(io.BytesIO(content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0][:3] == ("Invoice Number", "Invoice Date", "Invoice Type")
        assert len(rows) == 2
        assert rows[1][0] == "INV-2024-000001"
        assert "MH12AB1234" in rows[1]

    @pytest.mark.asyncio
    async def test_amount_columns_are_currency_formatted(self, service, invoice_payload):
        invoice = await service.create(invoice_payload(), year=2024)

        content = await service.export_invoices_to_excel(InvoiceExportRequest(invoice_ids=[invoice.id]))

        sheet = openpyxl.load_workbook(io.BytesIO(content)).active
        headers = [cell.value for cell in sheet[1]]
        amount = sheet.cell(row=2, column=headers.index("Amount") + 1)
        assert amount.value == 50
        assert amount.number_format == "#,##0.00"


class TestVerifyInvoice:

    @pytest.mark.asyncio
    async def test_verify_sends_whatsapp_when_pdf_exists(self, db, queue, storage, invoice_payload):
        notifier = AsyncMock()
        service = InvoiceService(db, queue, storage, notifier)
        invoice = await service.create(invoice_payload(), year=2024)
        invoice.pdf_url = "http://media.test/invoices/x.pdf"
        await db.commit()

        verified = await service.verify_invoice(invoice.id)

        assert verified.is_verified is True
        assert verified.verified_at is not None
        assert verified.whatsapp_sent is True
        notifier.send_invoice_verified.assert_awaited_once_with(
            phone="9876543210",
            supplier_name="A",
            invoice_number="INV-2024-000001",
            pdf_url="http://media.test/invoices/x.pdf",
        )

    @pytest.mark.asyncio
    async def test_verify_without_pdf_skips_whatsapp(self, db, queue, storage, invoice_payload):
        notifier = AsyncMock()
        service = InvoiceService(db, queue, storage, notifier)
        invoice = await service.create(invoice_payload(), year=2024)

        verified = await service.verify_invoice(invoice.id)

        assert verified.is_verified is True
        assert verified.whatsapp_sent is False
        notifier.send_invoice_verified.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_verification(self, db, queue, storage, invoice_payload):
        notifier = AsyncMock()
        notifier.send_invoice_verified.side_effect = UpstreamError("chatrace down")
        service = InvoiceService(db, queue, storage, notifier)
        invoice = await service.create(invoice_payload(), year=2024)
        invoice.pdf_url = "http://media.test/invoices/x.pdf"
        await db.commit()

        verified = await service.verify_invoice(invoice.id)

        assert verified.is_verified is True
        assert verified.whatsapp_sent is False
