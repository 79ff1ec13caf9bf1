# Overview: NFC-e emission for completed sales through an external fiscal provider.

"""
Fiscal Invoice Bridge

WHY: Organizations with fiscal emission enabled issue an NFC-e for every
sale. The provider is an external HTTP service; it can be slow, reject the
document, or be unreachable. None of that may affect the sale itself, so:

- emission runs after the sale transaction has committed
- provider failures are never raised; they become InvoiceOutcome(status=...)
- the outcome is persisted on the sale in its own short transaction

Outcome statuses: authorized, rejected, error, skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
from flask import current_app

from ..extensions import db
from ..models import Sale, InvoiceSettings
from ..validation import NotFoundError
from vestra.time_utils import to_utc_z
from .concurrency import run_with_retry


STATUS_AUTHORIZED = "authorized"
STATUS_REJECTED = "rejected"
STATUS_ERROR = "error"
STATUS_SKIPPED = "skipped"

# NFC-e payment codes
PAYMENT_CODES = {
    "cash": "01",
    "credit": "03",
    "debit": "04",
    "pix": "17",
}


class FiscalTransportError(Exception):
    """The provider could not be reached or answered garbage."""


@dataclass(frozen=True)
class FiscalResponse:
    ok: bool
    status_code: int
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class InvoiceOutcome:
    status: str
    url: str | None = None
    xml: str | None = None
    number: int | None = None
    series: int | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "url": self.url,
            "number": self.number,
            "series": self.series,
            "message": self.message,
        }


class FiscalProvider:
    """Contract for NFC-e providers."""

    def issue(self, ref: str, payload: dict) -> FiscalResponse:
        raise NotImplementedError


class FocusNfeProvider(FiscalProvider):
    """Focus NFe REST API (POST /v2/nfce?ref=...), HTTP basic auth with the token as user."""

    def __init__(self, base_url: str, token: str, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def issue(self, ref: str, payload: dict) -> FiscalResponse:
        try:
            with httpx.Client(timeout=self.timeout, auth=(self.token, "")) as client:
                resp = client.post(f"{self.base_url}/v2/nfce", params={"ref": ref}, json=payload)
        except httpx.HTTPError as e:
            raise FiscalTransportError(str(e)) from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        return FiscalResponse(ok=resp.is_success, status_code=resp.status_code, data=data)


def default_provider() -> FiscalProvider | None:
    """Provider built from app config, or None when no token is configured."""
    token = (current_app.config.get("FISCAL_API_TOKEN") or "").strip()
    if not token:
        return None
    return FocusNfeProvider(
        current_app.config["FISCAL_API_URL"],
        token,
        timeout=current_app.config.get("FISCAL_TIMEOUT_SECONDS", 15.0),
    )


# =============================================================================
# PAYLOAD
# =============================================================================

def _digits(value: str | None) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())


def _reais(cents: int) -> float:
    return cents / 100


def build_nfce_payload(sale: Sale, settings: InvoiceSettings) -> dict:
    payload = {
        "natureza_operacao": "Venda ao Consumidor",
        "data_emissao": (to_utc_z(sale.created_at) or "")[:19],
        "tipo_documento": "1",
        "finalidade_emissao": "1",
        "consumidor_final": "1",
        "presenca_comprador": "1",
        "itens": [
            {
                "numero_item": item.position,
                "codigo_produto": item.product.sku or str(item.product_id),
                "descricao": item.product.name,
                "ncm": item.product.ncm or "00000000",
                "origem": str(item.product.origin or "0"),
                "cfop": item.product.cfop or "5102",
                "cest": item.product.cest,
                "unidade_comercial": "UN",
                "quantidade_comercial": item.quantity,
                "valor_unitario_comercial": _reais(item.unit_price_cents),
                "valor_bruto": _reais(item.line_total_cents),
            }
            for item in sale.items
        ],
        "valor_total": _reais(sale.total_cents),
        "forma_pagamento": [
            {
                "forma_pagamento": PAYMENT_CODES.get(sale.payment_method, "99"),
                "valor_pago": _reais(sale.total_cents),
            }
        ],
    }

    if settings.certificate_id and settings.certificate_id.strip():
        payload["certificado_id"] = settings.certificate_id.strip()
    if settings.csc_id and settings.csc_token:
        payload["csc"] = {"id": settings.csc_id.strip(), "codigo": settings.csc_token.strip()}
    if sale.client:
        payload["cliente"] = {
            "cpf_cnpj": _digits(sale.client.document),
            "nome": sale.client.name,
            "email": sale.client.email,
        }
    return payload


# =============================================================================
# RESPONSE MAPPING
# =============================================================================

def _as_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def outcome_from_response(response: FiscalResponse) -> InvoiceOutcome:
    data = response.data
    nested = data.get("nfce") if isinstance(data.get("nfce"), dict) else {}

    if not response.ok:
        message = data.get("mensagem")
        if not isinstance(message, str):
            errors = data.get("erros") or data.get("errors") or []
            message = errors[0].get("mensagem") if errors and isinstance(errors[0], dict) else None
        return InvoiceOutcome(status=STATUS_REJECTED, message=message or "Erro na SEFAZ")

    status = data.get("status") or data.get("codigo_status")
    authorized = status in ("autorizado", "authorized") or data.get("codigo_status") == 100
    if not authorized:
        message = data.get("mensagem")
        return InvoiceOutcome(
            status=STATUS_REJECTED,
            message=message if isinstance(message, str) else "Nota não autorizada pela SEFAZ.",
        )

    return InvoiceOutcome(
        status=STATUS_AUTHORIZED,
        url=data.get("caminho_danfe") or data.get("url_danfe") or data.get("link_danfe"),
        xml=data.get("caminho_xml_nota_fiscal") or data.get("url_xml"),
        number=_as_int(data.get("numero", nested.get("numero"))),
        series=_as_int(data.get("serie", nested.get("serie"))),
    )


# =============================================================================
# EMISSION
# =============================================================================

def emit_invoice(ctx, sale_id: int, provider: FiscalProvider | None = None) -> InvoiceOutcome:
    """
    Issue the NFC-e for a sale and store the outcome on it.

    Raises NotFoundError only for an unknown (or foreign) sale; every
    provider-side problem is returned as an outcome.
    """
    sale = db.session.query(Sale).filter_by(id=sale_id, org_id=ctx.org_id).first()
    if sale is None:
        raise NotFoundError("Venda não encontrada.")

    settings = db.session.query(InvoiceSettings).filter_by(org_id=ctx.org_id).first()
    if settings is None or not settings.is_active:
        outcome = InvoiceOutcome(status=STATUS_SKIPPED, message="Emissão fiscal desativada para esta empresa.")
        _store_outcome(sale.id, outcome)
        return outcome

    provider = provider or default_provider()
    if provider is None:
        current_app.logger.warning("Fiscal emission for sale %s skipped: FISCAL_API_TOKEN not set", sale.id)
        outcome = InvoiceOutcome(status=STATUS_ERROR, message="Integração fiscal não configurada.")
        _store_outcome(sale.id, outcome)
        return outcome

    ref = f"vestra-{sale.org_id}-{sale.id}"
    try:
        response = provider.issue(ref, build_nfce_payload(sale, settings))
        outcome = outcome_from_response(response)
    except FiscalTransportError as e:
        current_app.logger.warning("Fiscal provider unreachable for sale %s: %s", sale.id, e)
        outcome = InvoiceOutcome(
            status=STATUS_ERROR,
            message="Falha na comunicação com a SEFAZ. Tente reemitir depois.",
        )
    except Exception:
        current_app.logger.exception("Fiscal emission failed for sale %s", sale.id)
        outcome = InvoiceOutcome(status=STATUS_ERROR, message="Falha na emissão fiscal.")

    if outcome.status == STATUS_REJECTED:
        current_app.logger.warning("NFC-e rejected for sale %s: %s", sale.id, outcome.message)
    elif outcome.status == STATUS_AUTHORIZED:
        current_app.logger.info("NFC-e authorized for sale %s (number %s)", sale.id, outcome.number)

    _store_outcome(sale.id, outcome)
    return outcome


def _store_outcome(sale_id: int, outcome: InvoiceOutcome) -> None:
    def _op():
        sale = db.session.query(Sale).filter_by(id=sale_id).first()
        sale.invoice_status = outcome.status
        sale.invoice_url = outcome.url
        sale.invoice_xml = outcome.xml
        sale.invoice_number = outcome.number
        sale.invoice_series = outcome.series
        db.session.commit()

    run_with_retry(_op)
