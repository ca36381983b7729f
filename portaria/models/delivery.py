"""Delivery data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator


# Column order of the remote "entregas" table
DELIVERY_COLUMNS = [
    "id", "condominio_id", "codigo_retirada",
    "morador_id", "morador_nome", "morador_telefone", "morador_papel",
    "bloco", "apartamento", "foto_url", "observacoes",
    "data_entrega", "status", "data_retirada", "descricao_retirada",
]


class DeliveryStatus(str, Enum):
    """Delivery lifecycle. Only PENDING -> WITHDRAWN is allowed."""

    PENDING = "pending"
    WITHDRAWN = "withdrawn"

    @property
    def remote_value(self) -> str:
        """Status as written to the remote store."""
        return _REMOTE_STATUS[self]

    @classmethod
    def from_remote(cls, value: str) -> "DeliveryStatus":
        for status, remote in _REMOTE_STATUS.items():
            if value in (remote, status.value):
                return status
        raise ValueError(f"Unknown delivery status: {value!r}")


_REMOTE_STATUS = {
    DeliveryStatus.PENDING: "pendente",
    DeliveryStatus.WITHDRAWN: "retirada",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Resident(BaseModel):
    """Resident the package is addressed to. Owned elsewhere."""

    id: str
    name: str
    phone: str
    role: Optional[str] = None


class Location(BaseModel):
    """Apartment the package belongs to."""

    block: Optional[str] = None
    unit: str

    @property
    def label(self) -> str:
        """Display label, e.g. A-1905 or 1905."""
        return f"{self.block}-{self.unit}" if self.block else self.unit


class Delivery(BaseModel):
    """A package awaiting or having completed pickup."""

    id: str
    scope_id: Optional[str] = None
    resident: Resident
    location: Location
    pickup_code: str = Field(min_length=1)
    photo_ref: Optional[str] = None
    notes: Optional[str] = None
    registered_at: datetime = Field(default_factory=utcnow)
    withdrawn_at: Optional[datetime] = None
    withdrawal_notes: Optional[str] = None
    status: DeliveryStatus = DeliveryStatus.PENDING

    @field_validator("registered_at", "withdrawn_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Hand-edited sheet rows may carry naive timestamps; they are UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_pending(self) -> bool:
        return self.status == DeliveryStatus.PENDING

    def days_pending(self, now: Optional[datetime] = None) -> int:
        """Whole days elapsed since registration."""
        now = now or utcnow()
        return max(0, (now - self.registered_at).days)

    def withdrawn(
        self,
        withdrawn_at: datetime,
        withdrawal_notes: Optional[str] = None
    ) -> "Delivery":
        """Return a copy moved to WITHDRAWN."""
        if not self.is_pending:
            raise ValueError(f"Delivery {self.pickup_code} is not pending")
        return self.model_copy(update={
            "status": DeliveryStatus.WITHDRAWN,
            "withdrawn_at": withdrawn_at,
            "withdrawal_notes": withdrawal_notes,
        })

    def to_record(self) -> Dict[str, str]:
        """Convert to a remote store row (all values as strings)."""
        return {
            "id": self.id,
            "condominio_id": self.scope_id or "",
            "codigo_retirada": self.pickup_code,
            "morador_id": self.resident.id,
            "morador_nome": self.resident.name,
            "morador_telefone": self.resident.phone,
            "morador_papel": self.resident.role or "",
            "bloco": self.location.block or "",
            "apartamento": self.location.unit,
            "foto_url": self.photo_ref or "",
            "observacoes": self.notes or "",
            "data_entrega": self.registered_at.isoformat(),
            "status": self.status.remote_value,
            "data_retirada": (
                self.withdrawn_at.isoformat() if self.withdrawn_at else ""
            ),
            "descricao_retirada": self.withdrawal_notes or "",
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Delivery":
        """Build a Delivery from a remote store row."""
        def value(key: str) -> Optional[str]:
            raw = record.get(key)
            if raw is None:
                return None
            raw = str(raw)
            return raw if raw.strip() else None

        return cls(
            id=str(record["id"]),
            scope_id=value("condominio_id"),
            resident=Resident(
                id=value("morador_id") or "",
                name=value("morador_nome") or "",
                phone=value("morador_telefone") or "",
                role=value("morador_papel"),
            ),
            location=Location(
                block=value("bloco"),
                unit=value("apartamento") or "",
            ),
            pickup_code=str(record["codigo_retirada"]).strip(),
            photo_ref=value("foto_url"),
            notes=value("observacoes"),
            registered_at=value("data_entrega") or utcnow(),
            withdrawn_at=value("data_retirada"),
            withdrawal_notes=value("descricao_retirada"),
            status=DeliveryStatus.from_remote(value("status") or "pendente"),
        )

    def to_cache_entry(self) -> Dict[str, Any]:
        """JSON-serializable form stored in the local cache."""
        return self.model_dump(mode="json")

    @classmethod
    def from_cache_entry(cls, entry: Dict[str, Any]) -> "Delivery":
        return cls.model_validate(entry)
