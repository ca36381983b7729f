"""Operator-facing workflows."""

from .registration import RegistrationWorkflow
from .reminders import send_reminders
from .withdrawal import WithdrawalResult, WithdrawalState, WithdrawalWorkflow

__all__ = [
    "RegistrationWorkflow",
    "send_reminders",
    "WithdrawalResult",
    "WithdrawalState",
    "WithdrawalWorkflow",
]
