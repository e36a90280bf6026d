"""
Document numbers and file names.

Number format: {FormCode}-{SubTypeCode}-{StockNumberOrVIN}-{Base36Timestamp}.
The timestamp is epoch milliseconds; the numberer keeps it strictly
increasing within the process so back-to-back generations never collide.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from engine.variants import VariantSpec

SUB_TYPE_CODES: dict[str, str] = {
    "buy": "B",
    "sale": "S",
    "buy-sell": "BS",
}
DEFAULT_SUB_TYPE_CODE = "GEN"

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def sub_type_code(sub_type: Optional[str]) -> str:
    key = (sub_type or "").strip().lower().replace("_", "-")
    return SUB_TYPE_CODES.get(key, DEFAULT_SUB_TYPE_CODE)


def safe_token(value: str) -> str:
    return _UNSAFE.sub("_", value.strip()).strip("_") or "UNKNOWN"


@dataclass(frozen=True)
class DocumentIdentity:
    document_number: str
    file_name: str
    timestamp_ms: int


class DocumentNumberer:
    """Derives document number and file name from variant, sub-type, stock/VIN and a monotonic clock."""

    def __init__(self, clock_ms: Callable[[], int] | None = None):
        self._clock_ms = clock_ms or (lambda: time.time_ns() // 1_000_000)
        self._last_ms = 0

    def next_timestamp(self) -> int:
        now = self._clock_ms()
        # No await between read and write: atomic on the event loop.
        if now <= self._last_ms:
            now = self._last_ms + 1
        self._last_ms = now
        return now

    def assign(self, spec: VariantSpec, sub_type: Optional[str], stock_number_or_vin: str) -> DocumentIdentity:
        ts = self.next_timestamp()
        token = safe_token(stock_number_or_vin)
        number = f"{spec.form_code}-{sub_type_code(sub_type)}-{token}-{to_base36(ts)}"
        file_name = f"{spec.document_type}_{token}_{ts}.pdf"
        return DocumentIdentity(document_number=number, file_name=file_name, timestamp_ms=ts)
