"""
Shared builders for provider payloads
"""

from typing import Any, Dict


def approved_payment(payment_id, external_reference: str, amount: float = 99.9, **overrides) -> Dict[str, Any]:
    """Mercado Pago payment body as returned by GET /v1/payments/{id}"""
    payment = {
        "id": payment_id,
        "status": "approved",
        "status_detail": "accredited",
        "external_reference": external_reference,
        "transaction_amount": amount,
        "payment_method_id": "pix",
        "date_created": "2026-10-17T10:00:00.000-03:00",
        "date_approved": "2026-10-17T10:05:00.000-03:00",
    }
    payment.update(overrides)
    return payment


def temporary_password_from(notes: str) -> str:
    for line in notes.splitlines():
        if line.startswith("Temporary password: "):
            return line[len("Temporary password: "):]
    raise AssertionError("no temporary password in lead notes")
