"""
Two-Stage Validation Pipeline

DESIGN DECISION: A new receipt is validated in two distinct stages
before it reaches the store:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Type and format checks (date, two-decimal amount)
- This catches malformed form input

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Absurd amount detection
- Duplicate receipt number detection
- This catches logically impossible or suspicious data

Stage 2 only runs when stage 1 passes; it may need the store.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the administrator can correct the entry.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from receiptbook.config import get_settings
from receiptbook.models.records import (
    ExpenseItem,
    Receipt,
    ValidationIssue,
    ValidationResult,
    format_amount,
    quantize_amount,
)
from receiptbook.services.storage import RecordStoreInterface, StorageError


logger = structlog.get_logger(__name__)


class ReceiptValidator:
    """
    Validates receipt input through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (needs storage for duplicate checks)
    """

    def __init__(
        self,
        record_store: Optional[RecordStoreInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            record_store: Store used for duplicate checking.
                         If None, duplicate checking is skipped.
        """
        self._store = record_store
        self._settings = get_settings().app

    def _validate_schema(
        self,
        data: Union[Receipt, dict],
    ) -> tuple[Optional[Receipt], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_receipt_or_None, list_of_issues)
        """
        if isinstance(data, Receipt):
            return data, []

        try:
            return Receipt.model_validate(data), []
        except ValidationError as e:
            issues = []
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"]) or "receipt"
                missing = error["type"] == "missing"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing" if missing else "invalid_value",
                    message=f"{field}: {error['msg']}",
                    severity="error",
                    suggested_fix=(
                        f"Please enter the {field.replace('_', ' ')}" if missing else None
                    ),
                ))
            return None, issues

    def _validate_semantic(
        self,
        receipt: Receipt,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation (no storage access).

        Checks:
        - Future dates
        - Zero and absurd amounts
        """
        issues = []
        today = date.today()

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if receipt.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Receipt date ({receipt.date.isoformat()}) is in the future",
                severity="error",
                suggested_fix="Please verify the date is correct",
            ))

        max_amount = Decimal(str(self._settings.max_receipt_amount))
        if receipt.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({format_amount(receipt.amount)}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))
        elif receipt.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        return issues

    async def _check_duplicates(
        self,
        receipt: Receipt,
    ) -> list[ValidationIssue]:
        """
        Check whether the receipt number is already taken.

        The store enforces uniqueness on insert as well; a failed lookup
        here is logged and left to that check.
        """
        if self._store is None:
            return []

        try:
            existing = await self._store.get_receipt_by_number(receipt.receipt_number)
        except StorageError as e:
            logger.warning(
                "duplicate_check_failed",
                receipt_number=receipt.receipt_number,
                error=str(e),
            )
            return []

        if existing is None:
            return []

        return [ValidationIssue(
            field="receipt_number",
            issue_type="duplicate",
            message=f"Receipt number {receipt.receipt_number} already exists",
            severity="error",
            suggested_fix="Use the next unused receipt number",
        )]

    async def validate(
        self,
        data: Union[Receipt, dict],
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            data: A Receipt, or raw form values to parse into one
            check_duplicates: Whether to look the receipt number up in the store

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        # Stage 1: Schema validation
        receipt, schema_issues = self._validate_schema(data)
        all_issues.extend(schema_issues)
        schema_valid = receipt is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if receipt is not None:
            semantic_issues = self._validate_semantic(receipt)
            if check_duplicates:
                semantic_issues.extend(await self._check_duplicates(receipt))
            all_issues.extend(semantic_issues)
            semantic_valid = not any(i.severity == "error" for i in semantic_issues)

        if receipt is not None:
            subject = receipt.receipt_number
        elif isinstance(data, dict):
            subject = str(data.get("receipt_number") or "")
        else:
            subject = ""

        return ValidationResult(
            subject=subject,
            receipt=receipt,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )

    @staticmethod
    def check_expense_total(
        items: list[ExpenseItem],
        total: Union[Decimal, float, int, str],
    ) -> list[ValidationIssue]:
        """
        Compare a supplied expense total against the sum of its items.

        A mismatch is reported as a warning; the supplied total is
        never replaced.
        """
        items_total = sum((quantize_amount(item.amount) for item in items), Decimal("0.00"))
        supplied = quantize_amount(total)
        if supplied == items_total:
            return []

        return [ValidationIssue(
            field="total",
            issue_type="total_mismatch",
            message=(
                f"Entered total ({format_amount(supplied)}) does not match "
                f"the sum of the items ({format_amount(items_total)})"
            ),
            severity="warning",
            suggested_fix="Check the item amounts or the entered total",
        )]

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the administrator sees under the form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        errors = [issue for issue in result.issues if issue.severity == "error"]
        if errors:
            lines.append("❌ The receipt could not be saved:")
            for issue in errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
