"""End-to-end tests through the HTTP API."""

import asyncio
import io
import re
import uuid
from decimal import Decimal

import jwt
import openpyxl
import pytest

from conftest import png_bytes
from freightdesk.core.config import settings
from freightdesk.core.database import get_db
from freightdesk.main import app
from freightdesk.services.otp import OtpProvider, get_otp_provider
from freightdesk.services.pdf_service import PdfService
from freightdesk.services.truck_tracker import TruckTrackerService, get_truck_tracker
from freightdesk.tasks.pdf_tasks import process_claim_form_pdf, process_invoice_pdf

from test_claim_requests import DAMAGE_FORM, seed_truck_invoice
from test_tasks import offline_fetch
from test_truck_tracker import StaticProvider

NUMBER_RE = re.compile(r"INV-\d{4}-\d{6}")


def invoice_body(user, **overrides):
    body = {
        "user_id": str(user.id),
        "invoice_date": "2024-03-01",
        "supplier_name": "A",
        "supplier_address": ["12 Market Yard", "Nashik"],
        "place_of_supply": "Maharashtra",
        "bill_to_name": "KSRT Agromart",
        "bill_to_address": ["Muhana Mandi", "Jaipur"],
        "ship_to_name": "KSRT Agromart",
        "ship_to_address": ["Muhana Mandi", "Jaipur"],
        "product_name": "Onion",
        "quantity": 10,
        "rate": 5,
        "amount": 50,
    }
    body.update(overrides)
    return body


class FakeOtpProvider(OtpProvider):
    """Accepts 1234 for every session."""

    def __init__(self):
        self.sent = []

    async def send(self, mobile_number):
        self.sent.append(mobile_number)
        return f"session-{len(self.sent)}"

    async def verify(self, session_handle, code):
        return code == "1234"


class TestInvoiceApi:

    @pytest.mark.asyncio
    async def test_create_then_worker_fills_pdf_url(self, client, user, queue, storage, session_factory):
        response = await client.post("/invoices", json=invoice_body(user, truck_number="MH12AB1234"))

        assert response.status_code == 201
        created = response.json()
        assert NUMBER_RE.fullmatch(created["invoice_number"])
        assert created["pdf_url"] is None
        assert created["truck"]["truck_number"] == "MH12AB1234"
        assert Decimal(created["amount"]) == Decimal("50")

        [job] = queue.of_type("generate-pdf")
        await process_invoice_pdf(job["invoice_id"], session_factory, PdfService(fetch=offline_fetch), storage)

        fetched = (await client.get(f"/invoices/{created['id']}")).json()
        assert fetched["pdf_url"].startswith("http://media.test/invoices/")

    @pytest.mark.asyncio
    async def test_multipart_create_with_weighment_slips(self, client, user):
        data = invoice_body(user, is_claim="false", quantity="10", rate="5", amount="50")
        response = await client.post(
            "/invoices",
            data=data,
            files=[
                ("weighment_slips", ("front.png", png_bytes(), "image/png")),
                ("weighment_slips", ("back.png", png_bytes(), "image/png")),
            ],
        )

        assert response.status_code == 201
        body = response.json()
        assert body["supplier_address"] == ["12 Market Yard", "Nashik"]
        assert len(body["weighment_slip_urls"]) == 2

    @pytest.mark.asyncio
    async def test_missing_required_field_is_422(self, client, user):
        body = invoice_body(user)
        del body["supplier_name"]

        response = await client.post("/invoices", json=body)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_two_products_is_400(self, client, user):
        response = await client.post("/invoices", json=invoice_body(user, product_name=["Onion", "Potato"]))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_user_is_404(self, client, user):
        response = await client.post("/invoices", json=invoice_body(user, user_id=str(uuid.uuid4())))

        assert response.status_code == 404
        assert "not found" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_patch_keeps_number_and_requeues(self, client, user, queue):
        created = (await client.post("/invoices", json=invoice_body(user))).json()

        response = await client.patch(
            f"/invoices/{created['id']}",
            json={"invoice_number": "INV-1999-000001", "bill_to_name": "Delhi Fresh"},
        )

        assert response.status_code == 200
        assert response.json()["invoice_number"] == created["invoice_number"]
        assert response.json()["bill_to_name"] == "Delhi Fresh"
        assert len(queue.of_type("generate-pdf")) == 2

    @pytest.mark.asyncio
    async def test_regenerate_queues_another_pdf(self, client, user, queue):
        created = (await client.post("/invoices", json=invoice_body(user))).json()

        response = await client.post(f"/invoices/{created['id']}/regenerate")

        assert response.status_code == 200
        assert len(queue.of_type("generate-pdf")) == 2

    @pytest.mark.asyncio
    async def test_lookup_by_number_and_user(self, client, user):
        created = (await client.post("/invoices", json=invoice_body(user))).json()

        by_number = await client.get(f"/invoices/number/{created['invoice_number']}")
        by_user = await client.get(f"/invoices/user/{user.id}")
        missing = await client.get("/invoices/number/INV-1999-000001")

        assert by_number.json()["id"] == created["id"]
        assert [i["id"] for i in by_user.json()] == [created["id"]]
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_admin_filter_by_supplier(self, client, user):
        await client.post("/invoices", json=invoice_body(user, supplier_name="Sandeep Traders"))
        await client.post("/invoices", json=invoice_body(user, supplier_name="Other"))

        response = await client.get("/invoices/admin/filter", params={"supplier_name": "sandeep"})

        assert [i["supplier_name"] for i in response.json()] == ["Sandeep Traders"]

    @pytest.mark.asyncio
    async def test_export_requires_range_or_ids(self, client, user):
        created = (await client.post("/invoices", json=invoice_body(user))).json()

        rejected = await client.post("/invoices/admin/export", json={})
        exported = await client.post("/invoices/admin/export", json={"invoice_ids": [created["id"]]})

        assert rejected.status_code == 400
        assert exported.status_code == 200
        assert exported.headers["content-type"].startswith("application/vnd.openxmlformats")
        assert "attachment" in exported.headers["content-disposition"]
        sheet = openpyxl.load_workbook(io.BytesIO(exported.content)).active
        assert sheet.cell(row=2, column=1).value == created["invoice_number"]

    @pytest.mark.asyncio
    async def test_verify_without_notifier(self, client, user):
        created = (await client.post("/invoices", json=invoice_body(user))).json()

        response = await client.post(f"/invoices/{created['id']}/verify")

        assert response.status_code == 200
        assert response.json()["is_verified"] is True
        assert response.json()["whatsapp_sent"] is False

    @pytest.mark.asyncio
    async def test_delete(self, client, user):
        created = (await client.post("/invoices", json=invoice_body(user))).json()

        assert (await client.delete(f"/invoices/{created['id']}")).status_code == 204
        assert (await client.get(f"/invoices/{created['id']}")).status_code == 404


class TestClaimApi:

    @pytest.mark.asyncio
    async def test_claim_lifecycle(self, client, user, queue, storage, session_factory):
        await client.post("/invoices", json=invoice_body(user, truck_number="MH12AB1234"))

        created = await client.post("/claim-requests/by-truck", json={"truck_number": "MH12AB1234"})
        assert created.status_code == 201
        claim = created.json()
        assert claim["status"] == "PENDING"
        assert claim["supported_media"] == []
        assert claim["invoice"]["is_claim"] is True

        duplicate = await client.post("/claim-requests/by-truck", json={"truck_number": "MH12AB1234"})
        assert duplicate.status_code == 409

        truck = (await client.get("/trucks/MH12AB1234")).json()
        assert truck["claim_count"] == 1

        bad_status = await client.patch(f"/claim-requests/{claim['id']}/status", json={"status": "SURVEYOR_ASSIGNED"})
        assert bad_status.status_code == 400

        assigned = await client.patch(
            f"/claim-requests/{claim['id']}/status",
            json={"status": "SURVEYOR_ASSIGNED", "surveyor_name": "Rao", "surveyor_contact": "9000000001"},
        )
        assert assigned.json()["status"] == "SURVEYOR_ASSIGNED"

        media = await client.post(
            f"/claim-requests/{claim['id']}/supporting-media",
            files=[("files", ("damage.jpg", png_bytes(), "image/jpeg"))],
        )
        assert media.status_code == 200
        assert len(media.json()["supported_media"]) == 1

        accepted = await client.post(f"/claim-requests/{claim['id']}/damage-form", json=DAMAGE_FORM)
        assert accepted.status_code == 202
        assert accepted.json()["claim_request_id"] == claim["id"]

        [job] = queue.of_type("generate-claim-form-pdf")
        await process_claim_form_pdf(job, session_factory, PdfService(fetch=offline_fetch), storage)

        fetched = (await client.get(f"/claim-requests/{claim['id']}")).json()
        assert fetched["claim_form_url"].startswith("http://media.test/claim-forms/")

    @pytest.mark.asyncio
    async def test_unknown_truck_is_404(self, client):
        response = await client.post("/claim-requests/by-truck", json={"truck_number": "XX00XX0000"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_simultaneous_claims_on_one_truck(self, client, file_session_maker, storage):
        async def file_db():
            async with file_session_maker() as session:
                yield session

        app.dependency_overrides[get_db] = file_db
        await seed_truck_invoice(file_session_maker, storage)

        first, second = await asyncio.gather(
            client.post("/claim-requests/by-truck", json={"truck_number": "MH12AB1234"}),
            client.post("/claim-requests/by-truck", json={"truck_number": "MH12AB1234"}),
        )

        assert sorted([first.status_code, second.status_code]) == [201, 409]
        loser = first if first.status_code == 409 else second
        assert "already exists" in loser.json()["detail"]
        assert (await client.get("/trucks/MH12AB1234")).json()["claim_count"] == 1

    @pytest.mark.asyncio
    async def test_incomplete_damage_form_is_422(self, client, user):
        await client.post("/invoices", json=invoice_body(user, truck_number="MH12AB1234"))
        claim = (await client.post("/claim-requests/by-truck", json={"truck_number": "MH12AB1234"})).json()

        form = dict(DAMAGE_FORM)
        del form["accident_location"]
        response = await client.post(f"/claim-requests/{claim['id']}/damage-form", json=form)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_filters(self, client, user):
        await client.post("/invoices", json=invoice_body(user, truck_number="MH12AB1234"))
        claim = (await client.post("/claim-requests/by-truck", json={"truck_number": "MH12AB1234"})).json()

        by_truck = await client.get("/claim-requests", params={"truck_number": "ka01"})
        by_status = await client.get("/claim-requests/status/PENDING")
        by_user = await client.get(f"/claim-requests/user/{user.id}")

        assert by_truck.json() == []
        assert [c["id"] for c in by_status.json()] == [claim["id"]]
        assert [c["id"] for c in by_user.json()] == [claim["id"]]


class TestTruckAndVehicleApi:

    @pytest.mark.asyncio
    async def test_track_unknown_vehicle_is_offline(self, client):
        app.dependency_overrides[get_truck_tracker] = lambda: TruckTrackerService(StaticProvider())

        response = await client.get("/trucks/track/MH12AB1234")

        assert response.status_code == 200
        assert response.json()["status"] == "offline"
        assert response.json()["message"] == "Vehicle not found: MH12AB1234"

    @pytest.mark.asyncio
    async def test_unknown_truck_is_404(self, client):
        assert (await client.get("/trucks/NOPE")).status_code == 404

    @pytest.mark.asyncio
    async def test_vehicle_condition_flow(self, client):
        checks = {
            "vehicle_number": "mh 12 ab 1234",
            "permit_status": True,
            "driver_license": True,
            "vehicle_condition": True,
            "challan_clear": True,
            "emi_clear": True,
            "fitness_clear": True,
        }

        saved = await client.post("/vehicle-condition", json=checks)
        verified = await client.get("/vehicle-condition/verify/MH12AB1234")
        message = await client.get("/vehicle-condition/whatsapp/MH12AB1234")
        missing = await client.get("/vehicle-condition/verify/KA01CD5678")

        assert saved.json()["vehicle_number"] == "MH12AB1234"
        assert verified.json()["verified"] is True
        assert "Permit – Active" in message.json()["message"]
        assert missing.status_code == 404


class TestAuthApi:

    @pytest.mark.asyncio
    async def test_register_then_login(self, client):
        app.dependency_overrides[get_otp_provider] = FakeOtpProvider
        mobile = "9123456780"

        sent = await client.post("/auth/send-otp", json={"mobile_number": mobile})
        assert sent.json()["next"] == "REGISTER"

        wrong = await client.post("/auth/verify-otp", json={"mobile_number": mobile, "otp": "9999"})
        assert wrong.status_code == 400

        verified = await client.post("/auth/verify-otp", json={"mobile_number": mobile, "otp": "1234"})
        assert verified.json()["next"] == "REGISTER"
        assert verified.json()["access_token"] is None

        registered = await client.post("/auth/register", json={"mobile_number": mobile, "name": "Suresh"})
        assert registered.status_code == 201
        user_id = registered.json()["user"]["id"]
        claims = jwt.decode(registered.json()["access_token"], settings.SECRET_KEY, algorithms=["HS256"])
        assert claims["sub"] == user_id

        again = await client.post("/auth/send-otp", json={"mobile_number": mobile})
        assert again.json()["next"] == "LOGIN_VERIFY"
        login = await client.post("/auth/verify-otp", json={"mobile_number": mobile, "otp": "1234"})
        assert login.json()["next"] == "HOME"
        assert login.json()["user"]["id"] == user_id

        duplicate = await client.post("/auth/register", json={"mobile_number": mobile, "name": "Suresh"})
        assert duplicate.status_code == 409

    @pytest.mark.asyncio
    async def test_register_without_verified_otp_is_400(self, client):
        app.dependency_overrides[get_otp_provider] = FakeOtpProvider

        response = await client.post("/auth/register", json={"mobile_number": "9123456780", "name": "Suresh"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_mobile_is_422(self, client):
        response = await client.post("/auth/send-otp", json={"mobile_number": "12345"})
        assert response.status_code == 422


class TestUserApi:

    @pytest.mark.asyncio
    async def test_consent_is_recorded(self, client, user):
        response = await client.patch(f"/users/{user.id}/consent", json={"consent_text": "I agree"})

        assert response.status_code == 200
        assert response.json()["consent_text"] == "I agree"
        assert response.json()["consent_accepted_at"] is not None

    @pytest.mark.asyncio
    async def test_unknown_user_is_404(self, client):
        assert (await client.get(f"/users/{uuid.uuid4()}")).status_code == 404


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")
    assert response.json()["message"] == "FreightDesk API is running"
