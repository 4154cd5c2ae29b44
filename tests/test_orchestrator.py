"""
Integration tests for the application flows.

Everything runs against a real SQLite file, so the audit trail can be
read back after each flow.
"""

from datetime import date
from decimal import Decimal

import pytest

from receiptbook.models.audit import AuditEventType
from receiptbook.models.records import ExpenseItem, Language, PasswordSetup, PinSetup
from receiptbook.orchestrator import (
    SESSION_AUTH_KEY,
    AuthFlow,
    ReceiptFlow,
    ReceiptRejectedError,
    create_app_components,
)
from receiptbook.services.export import RenderError
from receiptbook.services.signature import DataUrlSignaturePad
from receiptbook.services.storage import (
    AlreadySetUpError,
    DuplicateReceiptNumberError,
    NotSetUpError,
    get_connection_manager,
)
from receiptbook.validation import ReceiptValidator


@pytest.fixture
def app(db_path):
    return create_app_components(db_path=db_path)


@pytest.fixture
def password_app(app, run_async):
    run_async(app.auth.setup(PasswordSetup(username="admin", password="google")))
    return app


def event_types(app, run_async, entity_type, entity_id):
    events = run_async(app.audit_storage.get_events_by_entity(entity_type, entity_id))
    return [event.event_type for event in events]


class SkipDuplicateLookup:
    """Validator that leaves duplicate detection to the store."""

    async def validate(self, data):
        return await ReceiptValidator().validate(data, check_duplicates=False)


def receipt_form(number="R1", **overrides):
    values = {
        "receipt_number": number,
        "name": "Ramesh Patel",
        "date": "2024-03-01",
        "amount": "100.00",
    }
    values.update(overrides)
    return values


class TestAuthFlow:
    """Setup, login and logout."""

    def test_setup_then_login(self, password_app, run_async):
        app = password_app
        session = {}

        status = run_async(app.auth.status())
        assert status.is_setup

        assert run_async(app.auth.login("google", session, username="admin")) is True
        assert AuthFlow.is_authenticated(session)

        assert event_types(app, run_async, "admin", "1") == [
            AuditEventType.ADMIN_SETUP_COMPLETED,
            AuditEventType.LOGIN_SUCCEEDED,
        ]

    def test_failed_login_clears_session(self, password_app, run_async):
        session = {SESSION_AUTH_KEY: True}
        assert run_async(password_app.auth.login("nope", session, username="admin")) is False
        assert not AuthFlow.is_authenticated(session)
        assert event_types(password_app, run_async, "admin", "1")[-1] == AuditEventType.LOGIN_FAILED

    def test_login_before_setup(self, app, run_async):
        session = {}
        assert run_async(app.auth.login("1234", session)) is False
        assert not AuthFlow.is_authenticated(session)

    def test_setup_only_once(self, password_app, run_async):
        with pytest.raises(AlreadySetUpError):
            run_async(password_app.auth.setup(PinSetup(pin="1234")))

    def test_logout(self, password_app, run_async):
        session = {}
        run_async(password_app.auth.login("google", session, username="admin"))
        run_async(password_app.auth.logout(session))
        assert SESSION_AUTH_KEY not in session
        assert event_types(password_app, run_async, "admin", "1")[-1] == AuditEventType.LOGGED_OUT

    def test_logout_when_signed_out_is_not_audited(self, password_app, run_async):
        run_async(password_app.auth.logout({}))
        assert AuditEventType.LOGGED_OUT not in event_types(password_app, run_async, "admin", "1")


class TestProfileFlow:
    """Profile edits and secret changes."""

    def test_save_with_signature_pad(self, password_app, run_async, signature_data_url):
        pad = DataUrlSignaturePad(signature_data_url, max_bytes=10_000)
        profile = run_async(password_app.profile.save({"name": "Ramesh Patel"}, signature_pad=pad))

        assert profile.name == "Ramesh Patel"
        assert profile.signature == signature_data_url
        assert run_async(password_app.profile.load()).signature == signature_data_url

    def test_empty_pad_clears_signature(self, password_app, run_async, signature_data_url):
        run_async(password_app.profile.save({"signature": signature_data_url}))
        pad = DataUrlSignaturePad(max_bytes=10_000)
        profile = run_async(password_app.profile.save({}, signature_pad=pad))
        assert profile.signature == ""

    def test_save_without_pad_keeps_signature(self, password_app, run_async, signature_data_url):
        run_async(password_app.profile.save({"signature": signature_data_url}))
        profile = run_async(password_app.profile.save({"block_number": "B-12"}))
        assert profile.signature == signature_data_url
        assert profile.block_number == "B-12"

    def test_save_is_audited(self, password_app, run_async):
        run_async(password_app.profile.save({"society_name": "Shanti Nagar CHS"}))
        events = run_async(password_app.audit_storage.get_events_by_entity("admin", "1"))
        assert events[-1].event_type == AuditEventType.PROFILE_UPDATED
        assert events[-1].details["fields"] == ["society_name"]

    def test_change_secret(self, password_app, run_async):
        flow = password_app.profile
        assert run_async(flow.change_secret("google", "s3cret", username="admin")) is True
        assert run_async(password_app.record_store.verify_credential("s3cret", username="admin"))
        assert event_types(password_app, run_async, "admin", "1")[-1] == AuditEventType.SECRET_CHANGED

    def test_change_secret_wrong_current(self, password_app, run_async):
        assert run_async(password_app.profile.change_secret("wrong", "s3cret", username="admin")) is False
        assert run_async(password_app.record_store.verify_credential("google", username="admin"))

    def test_change_pin_validates_new_pin(self, app, run_async):
        run_async(app.auth.setup(PinSetup(pin="1234")))
        with pytest.raises(ValueError):
            run_async(app.profile.change_secret("1234", "12"))
        assert run_async(app.profile.change_secret("1234", "5678")) is True

    def test_change_secret_before_setup(self, app, run_async):
        with pytest.raises(NotSetUpError):
            run_async(app.profile.change_secret("1234", "5678"))


class TestReceiptFlow:
    """Adding, listing and searching receipts."""

    def test_add_receipt(self, password_app, run_async):
        saved = run_async(password_app.receipts.add(receipt_form()))
        assert saved.id is not None
        assert saved.amount == Decimal("100.00")
        assert event_types(password_app, run_async, "receipt", "R1") == [AuditEventType.RECEIPT_ADDED]

    def test_duplicate_is_rejected_by_validation(self, password_app, run_async):
        run_async(password_app.receipts.add(receipt_form()))
        with pytest.raises(ReceiptRejectedError) as exc_info:
            run_async(password_app.receipts.add(receipt_form(name="Copy")))

        assert exc_info.value.result.issues[0].issue_type == "duplicate"
        assert len(run_async(password_app.receipts.list())) == 1
        assert event_types(password_app, run_async, "receipt", "R1")[-1] == AuditEventType.RECEIPT_REJECTED

    def test_duplicate_race_reaches_the_store(self, password_app, run_async):
        """Without the lookup, the unique index still rejects the number."""
        run_async(password_app.receipts.add(receipt_form()))
        flow = ReceiptFlow(
            password_app.record_store,
            validator=SkipDuplicateLookup(),
            audit_logger=password_app.audit_logger,
        )

        with pytest.raises(DuplicateReceiptNumberError):
            run_async(flow.add(receipt_form(name="Copy")))
        assert len(run_async(flow.list())) == 1

    def test_invalid_form(self, password_app, run_async):
        with pytest.raises(ReceiptRejectedError) as exc_info:
            run_async(password_app.receipts.add(receipt_form(amount="abc")))
        assert not exc_info.value.result.schema_valid
        assert run_async(password_app.receipts.list()) == []

    def test_search_and_list(self, password_app, run_async):
        run_async(password_app.receipts.add(receipt_form("R1", name="Anil")))
        run_async(password_app.receipts.add(receipt_form("R2", name="Bhavna", date="2024-04-01")))
        run_async(password_app.receipts.add(receipt_form("R3", name="Anil", date="2024-04-01")))

        flow = password_app.receipts
        assert [r.receipt_number for r in run_async(flow.search(receipt_number="R2"))] == ["R2"]
        assert run_async(flow.search(receipt_number="R9")) == []
        assert len(run_async(flow.search(name="Anil"))) == 2
        assert len(run_async(flow.search(receipt_date=date(2024, 4, 1)))) == 2

        listed = run_async(flow.list(order_by="name", descending=True))
        assert listed[0].name == "Bhavna"

    def test_search_needs_exactly_one_key(self, password_app, run_async):
        with pytest.raises(ValueError):
            run_async(password_app.receipts.search())
        with pytest.raises(ValueError):
            run_async(password_app.receipts.search(receipt_number="R1", name="Anil"))


class TestExportFlow:
    """Exports are audited whether they succeed or fail."""

    def test_receipt_export_audited(self, password_app, run_async):
        saved = run_async(password_app.receipts.add(receipt_form()))
        exported = run_async(password_app.exports.single_receipt(saved, Language.ENGLISH))

        assert exported.content.startswith(b"%PDF")
        assert event_types(password_app, run_async, "export", "receipt_R1.pdf") == [
            AuditEventType.EXPORT_RENDERED,
        ]

    def test_spreadsheet_export(self, password_app, run_async):
        run_async(password_app.receipts.add(receipt_form()))
        receipts = run_async(password_app.receipts.list())
        exported = run_async(password_app.exports.receipts_spreadsheet(receipts, Language.GUJARATI))
        assert exported.filename == "all_receipts.xlsx"

    def test_expense_report_events_share_correlation(self, password_app, run_async):
        items = [ExpenseItem(name="Cleaning", amount="250.00")]
        exported = run_async(password_app.exports.expense_report(items, "300", Language.ENGLISH))
        assert exported.warnings

        mismatch = run_async(
            password_app.audit_storage.get_events_by_entity("export", "expense_report")
        )[0]
        related = run_async(
            password_app.audit_storage.get_events_by_correlation_id(mismatch.correlation_id)
        )
        assert [event.event_type for event in related] == [
            AuditEventType.EXPENSE_TOTAL_MISMATCH,
            AuditEventType.EXPORT_RENDERED,
        ]

    def test_failed_export_audited(self, password_app, db_path, run_async):
        saved = run_async(password_app.receipts.add(receipt_form()))
        conn = get_connection_manager(db_path).open()
        conn.execute("UPDATE admin_profile SET signature = ?", ("data:image/png;base64,AAAA",))
        conn.commit()

        with pytest.raises(RenderError):
            run_async(password_app.exports.single_receipt(saved, Language.ENGLISH))

        events = run_async(password_app.audit_storage.get_events_by_entity("export", "R1"))
        assert [event.event_type for event in events] == [AuditEventType.EXPORT_FAILED]

    def test_expense_total_not_an_amount_audited(self, password_app, run_async):
        items = [ExpenseItem(name="Cleaning", amount="250.00")]
        with pytest.raises(RenderError):
            run_async(password_app.exports.expense_report(items, Decimal("NaN"), Language.ENGLISH))

        events = run_async(password_app.audit_storage.get_events_by_entity("export", "expense_report"))
        assert [event.event_type for event in events] == [AuditEventType.EXPORT_FAILED]
