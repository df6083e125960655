# ============================================================================
# services/pdf_service.py - Invoice and Damage Certificate PDF Rendering
# ============================================================================

import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import httpx
from PIL import Image

from freightdesk.core.config import settings
from freightdesk.core.exceptions import PdfGenerationError
from freightdesk.services.pdf_layout import (
    BOLD,
    CONTENT_WIDTH,
    Box,
    BoxRowRegion,
    HeaderRegion,
    ImagePanelRegion,
    KeyValueRegion,
    LogoTitleRegion,
    ParagraphRegion,
    TableColumn,
    TableRegion,
    TextBlock,
    TextLine,
    layout,
    render,
)

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[bytes]]

# Words in a weighment slip note meaning the load was bought for cash
# ("nakad", "nakat", "nakd", "nagad").
CASH_MARKERS = ("cash", "nak", "nag")

SLIP_BOX = (360, 240)
STAMP_SIZE = 80


def is_cash_note(note: Optional[str]) -> bool:
    text = (note or "").lower().strip()
    return any(marker in text for marker in CASH_MARKERS)


def insured_party(note: Optional[str], buyer_name: str, supplier_name: str) -> str:
    """The buyer is insured for cash purchases, the supplier otherwise."""
    return buyer_name if is_cash_note(note) else supplier_name


def _money(value) -> str:
    return f"{Decimal(str(value or 0)):.2f}"


def _quantity(value) -> str:
    return format(Decimal(str(value or 0)).normalize(), "f")


def _date(value: Union[date, datetime, str, None]) -> str:
    if value is None:
        return "-"
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return value.strftime("%d/%m/%Y")


def _address(lines) -> str:
    if isinstance(lines, (list, tuple)):
        return "\n".join(str(line) for line in lines)
    return str(lines or "")


@dataclass
class InvoiceDocument:
    invoice_number: str
    invoice_date: Union[date, str]
    supplier_name: str
    place_of_supply: str
    supplier_address: List[str]
    bill_to_name: str
    bill_to_address: List[str]
    ship_to_name: str
    ship_to_address: List[str]
    product_name: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    terms: Optional[str] = None
    hsn_code: Optional[str] = None
    vehicle_number: Optional[str] = None
    weighment_slip_note: Optional[str] = None

    @classmethod
    def from_invoice(cls, invoice) -> "InvoiceDocument":
        return cls(
            invoice_number=invoice.invoice_number,
            invoice_date=invoice.invoice_date,
            supplier_name=invoice.supplier_name,
            place_of_supply=invoice.place_of_supply,
            supplier_address=list(invoice.supplier_address or []),
            bill_to_name=invoice.bill_to_name,
            bill_to_address=list(invoice.bill_to_address or []),
            ship_to_name=invoice.ship_to_name,
            ship_to_address=list(invoice.ship_to_address or []),
            product_name=invoice.product_name,
            quantity=invoice.quantity,
            rate=invoice.rate,
            amount=invoice.amount,
            terms=invoice.terms,
            hsn_code=invoice.hsn_code,
            vehicle_number=invoice.vehicle_number or (invoice.truck.truck_number if invoice.truck else None),
            weighment_slip_note=invoice.weighment_slip_note,
        )


@dataclass
class DamageCertificate:
    invoice_number: str
    invoice_date: Union[date, str]
    truck_number: str
    user_mobile_number: str
    damage_certificate_date: str
    transport_receipt_memo_no: str
    transport_receipt_date: str
    loaded_weight_kg: float
    product_name: str
    from_party: str
    for_party: str
    accident_date: str
    accident_location: str
    accident_description: str
    agreed_damage_amount_number: Optional[float] = None
    agreed_damage_amount_words: Optional[str] = None
    authorized_signatory_name: Optional[str] = None


class PdfService:
    """Renders documents to PDF bytes.

    Remote images (weighment slip, stamp, logo) are optional: a failed fetch or
    an unreadable image is logged and the document is rendered without it.
    Any other failure is raised as PdfGenerationError.
    """

    def __init__(self, fetch: Optional[Fetcher] = None):
        self._fetch = fetch or self._http_fetch

    async def _http_fetch(self, url: str) -> bytes:
        async with httpx.AsyncClient(timeout=settings.IMAGE_FETCH_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    async def _load_image(self, url: Optional[str], box: Sequence[float], quality: int = 95) -> Optional[bytes]:
        if not url:
            return None
        try:
            raw = await self._fetch(url)
            with Image.open(io.BytesIO(raw)) as img:
                # 2x the box so the embedded JPEG stays sharp when printed
                img.thumbnail((int(box[0] * 2), int(box[1] * 2)))
                out = io.BytesIO()
                img.convert("RGB").save(out, format="JPEG", quality=quality)
                return out.getvalue()
        except (httpx.HTTPError, OSError, ValueError) as e:
            logger.warning(f"⚠️ Failed to load image {url}: {e}")
            return None

    # ------------------------------------------------------------------
    # Invoice
    # ------------------------------------------------------------------

    async def render_invoice(
        self,
        invoice: InvoiceDocument,
        weighment_slip_urls: Optional[Sequence[str]] = None,
        stamp_url: Optional[str] = None,
    ) -> bytes:
        try:
            # Only the first slip is embedded
            slip_url = weighment_slip_urls[0] if weighment_slip_urls else None
            slip = await self._load_image(slip_url, SLIP_BOX)
            stamp = await self._load_image(stamp_url, (STAMP_SIZE, STAMP_SIZE), quality=90)
            regions = self.invoice_regions(invoice, slip, stamp)
            return render(layout(regions), title=f"Invoice {invoice.invoice_number}")
        except Exception as e:
            logger.error(f"❌ Invoice PDF failed for {invoice.invoice_number}: {e}")
            raise PdfGenerationError(f"PDF generation failed: {e}") from e

    def invoice_regions(self, invoice: InvoiceDocument, slip: Optional[bytes] = None, stamp: Optional[bytes] = None):
        left_width, right_width = 270, CONTENT_WIDTH - 280
        rate = _money(invoice.rate)
        amount = _money(invoice.amount)
        insured = insured_party(invoice.weighment_slip_note, invoice.bill_to_name, invoice.supplier_name)

        header = HeaderRegion(
            TextBlock([
                TextLine(f"Supplier Name - {invoice.supplier_name}", BOLD, 14),
                TextLine(f"Place of Supply: {invoice.place_of_supply}", size=11, space_before=2),
            ])
        )

        details = BoxRowRegion(
            [
                Box(left_width, TextBlock([
                    TextLine(f"Invoice Number : {invoice.invoice_number}", BOLD),
                    TextLine(f"Invoice Date : {_date(invoice.invoice_date)}", BOLD),
                    TextLine(f"Terms : {invoice.terms or 'CUSTOM'}", BOLD),
                ])),
                Box(right_width, TextBlock([
                    TextLine("Supplier Address", BOLD),
                    TextLine(_address(invoice.supplier_address)),
                ])),
            ],
            min_height=70,
            name="invoice-details",
        )

        parties = BoxRowRegion(
            [
                Box(left_width, TextBlock([
                    TextLine("Bill To"),
                    TextLine(invoice.bill_to_name, BOLD),
                    TextLine(_address(invoice.bill_to_address)),
                ])),
                Box(right_width, TextBlock([
                    TextLine("Ship To"),
                    TextLine(invoice.ship_to_name, BOLD),
                    TextLine(_address(invoice.ship_to_address)),
                ])),
            ],
            min_height=75,
            name="parties",
        )

        items = TableRegion(
            columns=[
                TableColumn("#", 25),
                TableColumn("Item & Description", 215),
                TableColumn("HSN/SAC", 80),
                TableColumn("Qty", 60, "right"),
                TableColumn("Rate", 60, "right"),
                TableColumn("Amount", CONTENT_WIDTH - 440, "right"),
            ],
            rows=[["1", invoice.product_name, invoice.hsn_code or "-", _quantity(invoice.quantity), rate, amount]],
        )

        notes = BoxRowRegion(
            [
                Box(360, TextBlock([
                    TextLine("Notes", BOLD, 9),
                    TextLine(f"VEHICLE NO : {invoice.vehicle_number or '-'}", BOLD, 9, space_before=4),
                    TextLine(f"Per Nut Rate: Rs. {rate}", BOLD, 9),
                    TextLine(
                        f"This vehicle is transporting {invoice.product_name} from Supplier: "
                        f"{invoice.supplier_name} to Buyer: {invoice.bill_to_name}.",
                        size=9,
                        space_before=6,
                    ),
                    TextLine(
                        f"In case of any accident, loss, or damage during transit, {insured} shall be "
                        f"treated as the insured person and will be entitled to receive all claim "
                        f"amounts for the damaged goods.",
                        size=9,
                        space_before=6,
                    ),
                ])),
                Box(CONTENT_WIDTH - 370, TextBlock([
                    TextLine("Sub Total", BOLD, 10),
                    TextLine(amount, BOLD, 12, space_before=4),
                ]), fixed_height=60),
            ],
            min_height=125,
            name="notes",
        )

        slip_panel = ImagePanelRegion(
            caption="Weighment Slip",
            box_width=SLIP_BOX[0],
            box_height=SLIP_BOX[1],
            image=slip,
            side_caption="Authorized Signature",
            side_image=stamp,
            side_image_size=STAMP_SIZE,
            name="weighment-slip",
        )

        return [header, details, parties, items, notes, slip_panel]

    # ------------------------------------------------------------------
    # Damage certificate
    # ------------------------------------------------------------------

    async def render_damage_certificate(self, payload: DamageCertificate) -> bytes:
        try:
            logo = await self._load_image(settings.LOGO_URL, (CONTENT_WIDTH, 50))
            regions = self.damage_certificate_regions(payload, logo)
            return render(layout(regions), title=f"Damage Certificate {payload.invoice_number}")
        except Exception as e:
            logger.error(f"❌ Damage certificate PDF failed for {payload.invoice_number}: {e}")
            raise PdfGenerationError(f"PDF generation failed: {e}") from e

    def damage_certificate_regions(self, payload: DamageCertificate, logo: Optional[bytes] = None):
        if payload.agreed_damage_amount_number is not None:
            agreed = f"Rs. {_money(payload.agreed_damage_amount_number)}"
            if payload.agreed_damage_amount_words:
                agreed += f" ({payload.agreed_damage_amount_words})"
        else:
            agreed = payload.agreed_damage_amount_words or "To be assessed"

        title = LogoTitleRegion(
            title="DAMAGE CERTIFICATE",
            subtitle=f"Date: {_date(payload.damage_certificate_date)}",
            logo=logo,
        )

        reference = KeyValueRegion(
            [
                ("Invoice Number", payload.invoice_number),
                ("Invoice Date", _date(payload.invoice_date)),
                ("Vehicle Number", payload.truck_number or "-"),
                ("Transport Receipt / Memo No", payload.transport_receipt_memo_no),
                ("Transport Receipt Date", _date(payload.transport_receipt_date)),
                ("Loaded Weight (KG)", f"{payload.loaded_weight_kg:g}"),
                ("Product", payload.product_name),
                ("From", payload.from_party),
                ("For", payload.for_party),
            ],
            name="reference",
        )

        accident = KeyValueRegion(
            [
                ("Accident Date", _date(payload.accident_date)),
                ("Accident Location", payload.accident_location),
                ("Description", payload.accident_description),
                ("Agreed Damage Amount", agreed),
            ],
            name="accident",
        )

        statement = ParagraphRegion(
            TextBlock([
                TextLine(
                    f"This is to certify that the goods ({payload.product_name}) carried in vehicle "
                    f"{payload.truck_number or '-'} under invoice {payload.invoice_number} were damaged "
                    f"in the accident described above, and that the damage amount stated here has "
                    f"been agreed between {payload.from_party} and {payload.for_party}.",
                    size=10,
                ),
            ]),
            name="statement",
        )

        signature = ParagraphRegion(
            TextBlock([
                TextLine("Authorized Signatory", BOLD, 10, space_before=30),
                TextLine(payload.authorized_signatory_name or "", size=10),
                TextLine(f"Contact: {payload.user_mobile_number or '-'}", size=9, space_before=4),
            ]),
            name="signature",
        )

        return [title, reference, accident, statement, signature]


def get_pdf_service() -> PdfService:
    return PdfService()
