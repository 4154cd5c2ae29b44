"""Validation package."""

from receiptbook.validation.validator import ReceiptValidator

__all__ = ["ReceiptValidator"]
