# services/sequence.py - Invoice Number Generation
# ============================================================================

import re
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.models.invoice import Invoice

INVOICE_NUMBER_RE = re.compile(r"^INV-(\d{4})-(\d+)$")


def format_invoice_number(year: int, seq: int) -> str:
    return f"INV-{year}-{seq:06d}"


def parse_invoice_number(invoice_number: str) -> Optional[tuple]:
    """Return (year, seq) for a well-formed number, None otherwise."""
    match = INVOICE_NUMBER_RE.match(invoice_number or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class InvoiceNumberGenerator:
    """Read-then-increment numbering, scoped to the calendar year.

    Not atomic: two concurrent creations can compute the same number. The
    insert path in InvoiceService retries once on a unique violation.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_invoice_number(self, year: Optional[int] = None) -> str:
        year = year or date.today().year
        prefix = f"INV-{year}-"

        result = await self.db.execute(
            select(Invoice.invoice_number)
            .where(Invoice.invoice_number.like(f"{prefix}%"))
            .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
            .limit(1)
        )
        last_number = result.scalar_one_or_none()

        next_seq = 1
        if last_number:
            parsed = parse_invoice_number(last_number)
            if parsed:
                next_seq = parsed[1] + 1

        return format_invoice_number(year, next_seq)
