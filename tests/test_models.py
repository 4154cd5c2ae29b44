"""
Tests for ReceiptBook models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows against a temporary SQLite file
3. Real ReportLab / openpyxl output for exports
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import TypeAdapter, ValidationError

from receiptbook.models.records import (
    AdminProfile,
    AdminProfileUpdate,
    AuthMethod,
    ExpenseItem,
    PasswordSetup,
    PinSetup,
    Receipt,
    SetupDetails,
    ValidationIssue,
    ValidationResult,
    format_amount,
    quantize_amount,
)
from receiptbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


DIGEST = "a" * 64


class TestAdminProfile:
    """Tests for the administrator profile models."""

    def test_password_profile_requires_username(self):
        """Password sign-in without a username is rejected."""
        with pytest.raises(ValidationError):
            AdminProfile(auth_method=AuthMethod.PASSWORD, secret_hash=DIGEST)

    def test_pin_profile_has_no_username(self):
        """PIN sign-in never carries a username."""
        profile = AdminProfile(auth_method=AuthMethod.PIN, secret_hash=DIGEST)
        assert profile.username is None
        assert profile.id == 1

        with pytest.raises(ValidationError):
            AdminProfile(auth_method=AuthMethod.PIN, username="admin", secret_hash=DIGEST)

    def test_profile_defaults_are_empty(self):
        """Profile text fields default to empty strings."""
        profile = AdminProfile(
            auth_method=AuthMethod.PASSWORD, username="admin", secret_hash=DIGEST,
        )
        assert profile.name == ""
        assert profile.signature == ""
        assert profile.society_name == ""

    def test_profile_rejects_non_digest_secret(self):
        """The stored secret must look like a SHA-256 hex digest."""
        with pytest.raises(ValidationError):
            AdminProfile(auth_method=AuthMethod.PIN, secret_hash="1234")

    def test_profile_identity_is_fixed(self):
        """Only identity key 1 is allowed."""
        with pytest.raises(ValidationError):
            AdminProfile(id=2, auth_method=AuthMethod.PIN, secret_hash=DIGEST)

    def test_update_rejects_identity_and_secret_fields(self):
        """Partial updates cannot touch id, method or secret."""
        with pytest.raises(ValidationError):
            AdminProfileUpdate(secret_hash=DIGEST)
        with pytest.raises(ValidationError):
            AdminProfileUpdate(auth_method="pin")

    def test_update_signature_must_be_image_data_url(self):
        """Signatures are stored as image data URLs or cleared with ''."""
        assert AdminProfileUpdate(signature="").signature == ""
        with pytest.raises(ValidationError):
            AdminProfileUpdate(signature="https://example.com/sig.png")

    def test_update_strips_whitespace(self):
        update = AdminProfileUpdate(name="  Ramesh Patel  ")
        assert update.name == "Ramesh Patel"


class TestSetupDetails:
    """Tests for first-time setup input."""

    def test_discriminated_by_auth_method(self):
        """A plain dict is parsed into the matching setup model."""
        adapter = TypeAdapter(SetupDetails)
        password = adapter.validate_python(
            {"auth_method": "password", "username": "admin", "password": "google"}
        )
        pin = adapter.validate_python({"auth_method": "pin", "pin": "1234"})
        assert isinstance(password, PasswordSetup)
        assert isinstance(pin, PinSetup)

    @pytest.mark.parametrize("pin", ["123", "123456789", "12a4", ""])
    def test_pin_must_be_4_to_8_digits(self, pin):
        with pytest.raises(ValidationError):
            PinSetup(pin=pin)

    def test_password_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            PasswordSetup(username="admin", password="")


class TestReceipt:
    """Tests for the Receipt model."""

    def test_receipt_creation(self):
        receipt = Receipt(
            receipt_number=" R1 ",
            name="Ramesh Patel",
            date=date(2024, 3, 1),
            amount=Decimal("100.00"),
        )
        assert receipt.receipt_number == "R1"
        assert receipt.id is None
        assert receipt.maintenance_period is None

    def test_amount_rejects_more_than_two_decimals(self):
        with pytest.raises(ValidationError):
            Receipt(receipt_number="R1", name="A", date=date(2024, 3, 1), amount=Decimal("1.005"))

    def test_amount_rejects_negative(self):
        with pytest.raises(ValidationError):
            Receipt(receipt_number="R1", name="A", date=date(2024, 3, 1), amount=Decimal("-1"))

    def test_empty_period_is_absent(self):
        receipt = Receipt(
            receipt_number="R1", name="A", date=date(2024, 3, 1),
            maintenance_period="  ", amount=Decimal("1"),
        )
        assert receipt.maintenance_period is None

    def test_blank_receipt_number_rejected(self):
        with pytest.raises(ValidationError):
            Receipt(receipt_number="   ", name="A", date=date(2024, 3, 1), amount=Decimal("1"))

    def test_expense_item_amount(self):
        item = ExpenseItem(name="Cleaning", amount="250.5")
        assert item.amount == Decimal("250.50")


class TestAmounts:
    """Tests for monetary helpers."""

    def test_quantize_rounds_half_up(self):
        assert quantize_amount("2.675") == Decimal("2.68")
        assert quantize_amount("2.665") == Decimal("2.67")

    def test_quantize_float_uses_decimal_text(self):
        # 2.675 is 2.67499999... in binary
        assert quantize_amount(2.675) == Decimal("2.68")

    def test_format_always_two_decimals(self):
        assert format_amount(100) == "100.00"
        assert format_amount(Decimal("50.5")) == "50.50"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            description="Administrator signed in",
        )
        assert event.event_type == AuditEventType.LOGIN_SUCCEEDED
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.RECEIPT_ADDED,
            description="Receipt saved",
            details={"amount": "100.00"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "receipt_added"
        assert log_dict["details"]["amount"] == "100.00"

    def test_audit_event_to_row(self):
        """Test conversion to an audit_log row."""
        event = AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            description="Profile updated",
            details={"fields": ["name"]},
            is_user_action=True,
        )
        row = event.to_row()
        assert len(row) == 11
        assert row[2] == "profile_updated"
        assert json.loads(row[8]) == {"fields": ["name"]}
        assert row[10] == 1

    def test_audit_event_builder_receipt_added(self):
        """Test AuditEventBuilder.receipt_added."""
        correlation_id = uuid4()

        event = AuditEventBuilder.receipt_added(
            receipt_id=7,
            receipt_number="R7",
            amount="100.00",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.RECEIPT_ADDED
        assert event.entity_id == "R7"
        assert event.details["id"] == 7
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_login_failed(self):
        """Failed sign-ins are warnings."""
        event = AuditEventBuilder.login_failed("pin")
        assert event.event_type == AuditEventType.LOGIN_FAILED
        assert event.severity == AuditSeverity.WARNING

    def test_audit_event_builder_export_failed(self):
        event = AuditEventBuilder.export_failed(
            kind="receipt", record="R1", error_message="bad signature",
        )
        assert event.entity_id == "R1"
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "bad signature"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            subject="R1",
            schema_valid=True,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="receipt_number",
                    issue_type="duplicate",
                    message="Receipt number R1 already exists",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            subject="R1",
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Amount is zero",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
