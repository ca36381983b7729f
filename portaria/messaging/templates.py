"""Resident-facing WhatsApp message templates."""

import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import phonenumbers

from ..config import settings
from ..models.delivery import Delivery, utcnow
from ..models.notification import MessageType, NotificationMessage

FOOTER = "Não responda esta mensagem, este é um atendimento automático."

DELIVERY_TEMPLATE = """🏢 *{condominio}*

📦 *Nova Encomenda Chegou!*

Olá *{morador}*, você tem uma nova encomenda!

📅 Data: {data}
⏰ Hora: {hora}
🔑 Código de retirada: *{codigo}*

Para retirar, apresente este código na portaria.

{footer}"""

WITHDRAWAL_TEMPLATE = """🏢 *{condominio}*

✅ *Encomenda Retirada*

Olá *{morador}*, sua encomenda foi retirada com sucesso!

📅 Data: {data}
⏰ Hora: {hora}
🔑 Código: {codigo}{descricao}

{footer}"""

REMINDER_TEMPLATE = """🏢 *{condominio}*

📦 *Lembrete de Encomenda*

Olá *{morador}*, você tem uma encomenda aguardando retirada na portaria há {dias} {dias_label}.

🔑 Código: {codigo}
🏠 Apartamento: {apartamento}
📅 Recebida em: {recebida}

Por favor, retire sua encomenda o quanto antes.

{footer}"""


def normalize_phone(raw: str, region: Optional[str] = None) -> str:
    """
    Return the phone as E.164 digits without '+', e.g. 5511999999999.

    Numbers that cannot be parsed are reduced to their digits.
    """
    region = region or settings.default_phone_region
    try:
        number = phonenumbers.parse(raw, region)
        if phonenumbers.is_possible_number(number):
            return phonenumbers.format_number(
                number, phonenumbers.PhoneNumberFormat.E164
            ).lstrip("+")
    except phonenumbers.NumberParseException:
        pass
    return re.sub(r"\D", "", raw or "")


def _local(moment: Optional[datetime] = None) -> datetime:
    return (moment or utcnow()).astimezone(ZoneInfo(settings.timezone))


def _stamp(moment: Optional[datetime] = None) -> dict:
    local = _local(moment)
    return {"data": local.strftime("%d/%m/%Y"), "hora": local.strftime("%H:%M")}


def _base_payload(delivery: Delivery, condominium: str) -> dict:
    return {
        "codigo": delivery.pickup_code,
        "morador": delivery.resident.name,
        "apartamento": delivery.location.unit,
        "bloco": delivery.location.block or "",
        "condominio": condominium,
    }


def build_delivery_message(
    delivery: Delivery,
    condominium: Optional[str] = None
) -> NotificationMessage:
    """Message announcing a newly registered package."""
    condominium = condominium or settings.condominium_name
    stamp = _stamp(delivery.registered_at)

    text = DELIVERY_TEMPLATE.format(
        condominio=condominium,
        morador=delivery.resident.name,
        codigo=delivery.pickup_code,
        footer=FOOTER,
        **stamp
    )
    payload = {
        **_base_payload(delivery, condominium),
        "observacoes": delivery.notes or "",
        "foto_url": delivery.photo_ref or "",
        **stamp,
    }
    return NotificationMessage(
        to=normalize_phone(delivery.resident.phone),
        text=text,
        type=MessageType.DELIVERY,
        payload=payload
    )


def build_withdrawal_message(
    delivery: Delivery,
    condominium: Optional[str] = None
) -> NotificationMessage:
    """Message confirming a package was picked up."""
    condominium = condominium or settings.condominium_name
    stamp = _stamp(delivery.withdrawn_at)
    notes = (delivery.withdrawal_notes or "").strip()

    text = WITHDRAWAL_TEMPLATE.format(
        condominio=condominium,
        morador=delivery.resident.name,
        codigo=delivery.pickup_code,
        descricao=f"\n📝 {notes}" if notes else "",
        footer=FOOTER,
        **stamp
    )
    payload = {
        **_base_payload(delivery, condominium),
        "descricao": notes,
        "foto_url": delivery.photo_ref or "",
        **stamp,
    }
    return NotificationMessage(
        to=normalize_phone(delivery.resident.phone),
        text=text,
        type=MessageType.WITHDRAWAL,
        payload=payload
    )


def build_reminder_message(
    delivery: Delivery,
    days_pending: int,
    condominium: Optional[str] = None
) -> NotificationMessage:
    """Message reminding a resident of a package still at the front desk."""
    condominium = condominium or settings.condominium_name

    text = REMINDER_TEMPLATE.format(
        condominio=condominium,
        morador=delivery.resident.name,
        dias=days_pending,
        dias_label="dia" if days_pending == 1 else "dias",
        codigo=delivery.pickup_code,
        apartamento=delivery.location.label,
        recebida=_local(delivery.registered_at).strftime("%d/%m/%Y"),
        footer=FOOTER
    )
    payload = {
        **_base_payload(delivery, condominium),
        "diasPendente": days_pending,
    }
    return NotificationMessage(
        to=normalize_phone(delivery.resident.phone),
        text=text,
        type=MessageType.REMINDER,
        payload=payload
    )


def build_test_message(phone: str, text: str = "🧪 Teste de notificação") -> NotificationMessage:
    """Plain message used to check the channel chain."""
    return NotificationMessage(
        to=normalize_phone(phone),
        text=text,
        type=MessageType.TEST
    )
