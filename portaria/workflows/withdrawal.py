"""
Withdrawal workflow: search a delivery by pickup code, then confirm pickup.

One instance serves one operator session. Calls are awaited one after the
other (search, confirm, dispatch); a new search replaces the delivery
found by the previous one.

    Idle --submit_code--> Searching --> Found | NotFound
    Found --confirm--> Confirming --> Committed | Rejected
"""

from enum import Enum
from typing import Optional
from loguru import logger
from pydantic import BaseModel

from ..codes import validate_code
from ..config import settings
from ..exceptions import (
    AlreadyWithdrawn,
    AmbiguousPickupCode,
    DeliveryNotFound,
    NotificationDegraded,
    StoreUnavailable,
    ValidationError,
)
from ..messaging.dispatcher import NotificationDispatcher
from ..messaging.templates import build_withdrawal_message
from ..models.delivery import Delivery
from ..models.notification import DispatchOutcome
from ..storage.delivery_store import DeliveryStore


class WithdrawalState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    FOUND = "found"
    NOT_FOUND = "not_found"
    CONFIRMING = "confirming"
    REJECTED = "rejected"
    COMMITTED = "committed"


class WithdrawalResult(BaseModel):
    """What the operator sees after a workflow step."""

    state: WithdrawalState
    message: str
    delivery: Optional[Delivery] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    warning: Optional[str] = None
    outcome: Optional[DispatchOutcome] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WithdrawalWorkflow:
    """Per-session withdrawal state machine."""

    def __init__(
        self,
        store: DeliveryStore,
        dispatcher: NotificationDispatcher,
        condominium: Optional[str] = None
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.condominium = condominium or settings.condominium_name
        self.state = WithdrawalState.IDLE
        self.found: Optional[Delivery] = None

    def reset(self) -> None:
        self.state = WithdrawalState.IDLE
        self.found = None

    async def submit_code(self, code: str) -> WithdrawalResult:
        """Validate the code format, then look the delivery up."""
        code = (code or "").strip()
        self.reset()

        if not validate_code(code):
            error = ValidationError(
                f"Code must have {settings.pickup_code_length} digits"
            )
            logger.info(f"Rejected malformed pickup code {code!r}")
            return WithdrawalResult(
                state=self.state,
                message=f"Código inválido. Digite os {settings.pickup_code_length} "
                        "dígitos do código de retirada.",
                error=str(error),
                error_type=type(error).__name__
            )

        self.state = WithdrawalState.SEARCHING
        logger.info(f"🔍 Searching delivery with code {code}")

        try:
            delivery = await self.store.find_by_code(code)
        except DeliveryNotFound as e:
            self.state = WithdrawalState.NOT_FOUND
            return WithdrawalResult(
                state=self.state,
                message="Código não encontrado. Código inválido ou encomenda não registrada.",
                error=str(e),
                error_type=type(e).__name__
            )
        except (StoreUnavailable, AmbiguousPickupCode) as e:
            logger.error(f"Search for {code} failed: {e}")
            self.reset()
            return WithdrawalResult(
                state=self.state,
                message="Falha ao buscar encomenda. Tente novamente.",
                error=str(e),
                error_type=type(e).__name__
            )

        self.found = delivery
        self.state = WithdrawalState.FOUND
        if not delivery.is_pending:
            return WithdrawalResult(
                state=self.state,
                delivery=delivery,
                message=f"Encomenda para {delivery.resident.name} já foi retirada.",
                warning="already withdrawn"
            )
        return WithdrawalResult(
            state=self.state,
            delivery=delivery,
            message=f"Encomenda encontrada para {delivery.resident.name} "
                    f"({delivery.location.label})."
        )

    async def confirm(self, withdrawal_notes: str = "") -> WithdrawalResult:
        """Commit the withdrawal of the found delivery and notify the resident."""
        if self.state != WithdrawalState.FOUND or self.found is None:
            return WithdrawalResult(
                state=self.state,
                message="Busque uma encomenda antes de confirmar a retirada.",
                error="no delivery selected",
                error_type="NoDeliverySelected"
            )

        found = self.found
        self.state = WithdrawalState.CONFIRMING
        logger.info(f"Confirming withdrawal of {found.pickup_code}")

        try:
            delivery = await self.store.mark_withdrawn(
                found.id, found.pickup_code, withdrawal_notes.strip()
            )
        except AlreadyWithdrawn as e:
            self.reset()
            self.state = WithdrawalState.REJECTED
            return WithdrawalResult(
                state=self.state,
                delivery=found,
                message="Encomenda já retirada anteriormente.",
                error=str(e),
                error_type=type(e).__name__
            )
        except (StoreUnavailable, DeliveryNotFound, AmbiguousPickupCode) as e:
            logger.error(f"Withdrawal of {found.pickup_code} failed: {e}")
            self.state = WithdrawalState.FOUND
            return WithdrawalResult(
                state=self.state,
                delivery=found,
                message="Falha ao confirmar retirada. Tente novamente.",
                error=str(e),
                error_type=type(e).__name__
            )

        # The store write is the durability boundary; notification can only warn
        outcome = await self.dispatcher.dispatch(
            build_withdrawal_message(delivery, self.condominium)
        )

        warning = None
        message = f"Retirada confirmada! Encomenda entregue para {delivery.resident.name}."
        if outcome.success:
            message += " WhatsApp enviado."
        else:
            warning = str(NotificationDegraded(outcome))
            message += " Não foi possível enviar o WhatsApp ao morador."
            logger.warning(f"Withdrawal {delivery.pickup_code} committed: {warning}")

        self.reset()
        return WithdrawalResult(
            state=WithdrawalState.COMMITTED,
            delivery=delivery,
            message=message,
            warning=warning,
            outcome=outcome
        )
