"""
Streamlit Frontend for ReceiptBook

This is the interface the society administrator uses day to day:
issue maintenance receipts, keep the profile up to date and download
receipts, the receipt ledger and expense reports.

DESIGN PRINCIPLES:
1. Nothing is visible before sign-in
2. Clear error messages in the selected language
3. Every export either downloads a complete file or shows an error
4. No hidden actions

All work goes through the orchestrator flows; the page never touches
the database directly.
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal, InvalidOperation

import streamlit as st

from receiptbook.config import get_settings, validate_all_settings
from receiptbook.i18n import caption
from receiptbook.models.records import (
    AuthMethod,
    ExpenseItem,
    Language,
    ReceiptSortField,
    format_amount,
)
from receiptbook.orchestrator import (
    AppComponents,
    ReceiptRejectedError,
    create_app_components,
)
from receiptbook.services.export import ExportedFile, RenderError
from receiptbook.services.signature import (
    DataUrlSignaturePad,
    SignatureImageError,
    decode_data_url,
)
from receiptbook.services.storage import (
    AlreadySetUpError,
    DuplicateReceiptNumberError,
    StorageError,
)


# Page configuration
st.set_page_config(
    page_title="ReceiptBook",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def current_language() -> Language:
    if "language" not in st.session_state:
        st.session_state.language = Language(get_settings().app.default_language)
    return st.session_state.language


def t(key: str) -> str:
    return caption(key, current_language())


def toggle_language():
    language = current_language()
    st.session_state.language = (
        Language.GUJARATI if language == Language.ENGLISH else Language.ENGLISH
    )


def offer_download(exported: ExportedFile, key: str):
    """Show a download button for a finished export, plus its warnings."""
    for warning in exported.warnings:
        st.warning(f"⚠️ {t('total_mismatch_warning')} {warning}")
    st.download_button(
        label=f"⬇️ {exported.filename}",
        data=exported.content,
        file_name=exported.filename,
        mime=exported.media_type,
        key=key,
    )


def main():
    """Main application entry point."""
    logging.basicConfig(level=get_settings().app.log_level)

    try:
        components = get_components()
        status = run_async(components.auth.status())
    except StorageError as e:
        st.error(f"❌ {e}")
        st.stop()

    st.sidebar.title(f"🧾 {t('app_title')}")
    st.sidebar.button(t("toggle_language"), on_click=toggle_language)

    if not status.is_setup:
        render_setup_page(components)
        return

    if not components.auth.is_authenticated(st.session_state):
        render_login_page(components, status.auth_method)
        return

    if st.sidebar.button(t("logout")):
        run_async(components.auth.logout(st.session_state))
        st.rerun()

    render_dashboard(components)


def render_setup_page(components: AppComponents):
    """First-time setup: choose password or PIN and create the administrator."""
    st.title(t("setup_title"))
    st.info(t("setup_intro"))

    method = st.radio(
        t("auth_method"),
        options=[AuthMethod.PASSWORD, AuthMethod.PIN],
        format_func=lambda m: t("auth_password") if m == AuthMethod.PASSWORD else t("auth_pin"),
        horizontal=True,
    )

    with st.form("setup_form"):
        username = None
        if method == AuthMethod.PASSWORD:
            username = st.text_input(t("username"), value="admin")
        secret_label = t("password") if method == AuthMethod.PASSWORD else t("pin")
        secret = st.text_input(secret_label, type="password")
        confirm = st.text_input(f"{t('confirm_secret')} {secret_label}", type="password")
        submitted = st.form_submit_button(t("complete_setup"), type="primary")

    if not submitted:
        return

    if secret != confirm:
        st.error(t("secrets_do_not_match"))
        return

    if method == AuthMethod.PASSWORD:
        details = {"auth_method": "password", "username": username, "password": secret}
    else:
        details = {"auth_method": "pin", "pin": secret}

    try:
        run_async(components.auth.setup(details))
    except AlreadySetUpError:
        st.rerun()
    except ValueError as e:
        st.error(f"❌ {e}")
        return

    st.rerun()


def render_login_page(components: AppComponents, auth_method: AuthMethod):
    """Sign-in form for the configured method."""
    st.title(t("login_title"))

    with st.form("login_form"):
        username = None
        if auth_method == AuthMethod.PASSWORD:
            username = st.text_input(t("username"))
            secret = st.text_input(t("password"), type="password")
        else:
            secret = st.text_input(t("pin"), type="password", max_chars=8)
        submitted = st.form_submit_button(t("login"), type="primary")

    if submitted:
        if run_async(components.auth.login(secret, st.session_state, username=username)):
            st.rerun()
        else:
            st.error(t("invalid_credentials"))


def render_dashboard(components: AppComponents):
    receipts_tab, add_tab, expenses_tab, profile_tab = st.tabs([
        f"📋 {t('tab_receipts')}",
        f"➕ {t('tab_add_receipt')}",
        f"💸 {t('tab_expenses')}",
        f"⚙️ {t('tab_profile')}",
    ])

    with receipts_tab:
        render_receipts_page(components)
    with add_tab:
        render_add_receipt_page(components)
    with expenses_tab:
        render_expenses_page(components)
    with profile_tab:
        render_profile_page(components)


def render_receipts_page(components: AppComponents):
    """Receipt ledger: sort, search, download."""
    language = current_language()

    col1, col2 = st.columns(2)
    with col1:
        sort_field = st.selectbox(
            t("sort_by"),
            options=[None] + list(ReceiptSortField),
            format_func=lambda f: "#" if f is None else t(
                "recipient_name" if f == ReceiptSortField.NAME else f.value
            ),
        )
    with col2:
        search_by = st.selectbox(
            t("search_by"),
            options=["", "receipt_number", "recipient_name", "date"],
            format_func=lambda key: "-" if not key else t(key),
        )

    if search_by == "date":
        receipt_date = st.date_input(t("date"), value=date.today())
        receipts = run_async(components.receipts.search(receipt_date=receipt_date))
    elif search_by:
        term = st.text_input(t("search"))
        if not term:
            receipts = []
        elif search_by == "receipt_number":
            receipts = run_async(components.receipts.search(receipt_number=term))
        else:
            receipts = run_async(components.receipts.search(name=term))
    else:
        receipts = run_async(components.receipts.list(order_by=sort_field))

    if not receipts:
        st.info(t("no_receipts"))
        return

    st.table([
        {
            t("receipt_number"): r.receipt_number,
            t("recipient_name"): r.name,
            t("date"): r.date.isoformat(),
            t("maintenance_period"): r.maintenance_period or t("not_applicable"),
            t("amount"): format_amount(r.amount),
        }
        for r in receipts
    ])

    total = sum((r.amount for r in receipts), Decimal("0"))
    st.markdown(
        f'<p>{t("total")}: <span class="big-number">{format_amount(total)}</span></p>',
        unsafe_allow_html=True,
    )

    st.markdown("---")
    by_number = {r.receipt_number: r for r in receipts}
    selected = st.selectbox(t("receipt_number"), options=list(by_number))

    col1, col2, col3 = st.columns(3)
    try:
        with col1:
            if st.button(t("download_receipt")):
                exported = run_async(components.exports.single_receipt(by_number[selected], language))
                offer_download(exported, "download_single")
        with col2:
            if st.button(t("download_all_pdf")):
                exported = run_async(components.exports.receipt_batch(receipts, language))
                offer_download(exported, "download_batch_pdf")
        with col3:
            if st.button(t("download_all_excel")):
                exported = run_async(components.exports.receipts_spreadsheet(receipts, language))
                offer_download(exported, "download_batch_xlsx")
    except RenderError as e:
        st.error(f"❌ {t('export_failed')} ({e.record})")


def render_add_receipt_page(components: AppComponents):
    """New receipt form."""
    with st.form("add_receipt_form", clear_on_submit=False):
        col1, col2 = st.columns(2)
        with col1:
            receipt_number = st.text_input(t("receipt_number"))
            name = st.text_input(t("recipient_name"))
            receipt_date = st.date_input(t("date"), value=date.today())
        with col2:
            maintenance_period = st.text_input(t("maintenance_period"))
            amount = st.text_input(t("amount"), value="0.00")
        submitted = st.form_submit_button(t("add_receipt"), type="primary")

    if not submitted:
        return

    data = {
        "receipt_number": receipt_number,
        "name": name,
        "date": receipt_date,
        "maintenance_period": maintenance_period,
        "amount": amount,
    }

    try:
        saved = run_async(components.receipts.add(data))
    except DuplicateReceiptNumberError:
        st.error(f"❌ {t('duplicate_receipt_number')}")
    except ReceiptRejectedError as e:
        for issue in e.result.issues:
            if issue.issue_type == "duplicate":
                st.error(f"❌ {t('duplicate_receipt_number')}")
            elif issue.severity == "error":
                st.error(f"❌ {issue.message}")
    else:
        st.success(f"✅ {t('receipt_added')} #{saved.receipt_number}")


def render_expenses_page(components: AppComponents):
    """Collect expense items and produce an expense report PDF."""
    language = current_language()

    if "expense_items" not in st.session_state:
        st.session_state.expense_items = []

    with st.form("expense_item_form", clear_on_submit=True):
        col1, col2 = st.columns([3, 1])
        with col1:
            item_name = st.text_input(t("item_name"))
        with col2:
            item_amount = st.text_input(t("amount"), value="0.00")
        if st.form_submit_button(t("add_item")):
            try:
                st.session_state.expense_items.append(
                    ExpenseItem(name=item_name, amount=Decimal(item_amount))
                )
            except (ValueError, InvalidOperation) as e:
                st.error(f"❌ {e}")

    items = st.session_state.expense_items
    if items:
        st.table([
            {t("item_name"): item.name, t("amount"): format_amount(item.amount)}
            for item in items
        ])

    items_total = sum((item.amount for item in items), Decimal("0"))
    total_text = st.text_input(t("grand_total"), value=format_amount(items_total))

    col1, col2 = st.columns(2)
    with col1:
        if st.button(t("clear")):
            st.session_state.expense_items = []
            st.rerun()
    with col2:
        if st.button(t("generate_report"), type="primary", disabled=not items):
            try:
                exported = run_async(components.exports.expense_report(
                    items, Decimal(total_text), language,
                ))
            except InvalidOperation:
                st.error(f"❌ {t('grand_total')}")
            except RenderError as e:
                st.error(f"❌ {t('export_failed')} ({e.record})")
            else:
                offer_download(exported, "download_expense_report")


def render_profile_page(components: AppComponents):
    """Profile fields, signature and secret change."""
    profile = run_async(components.profile.load())
    if profile is None:
        return

    st.subheader(t("admin_profile"))

    with st.form("profile_form"):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input(t("admin_name"), value=profile.name)
            block_number = st.text_input(t("block_number"), value=profile.block_number)
        with col2:
            society_name = st.text_input(t("society_name"), value=profile.society_name)
            society_address = st.text_area(t("society_address"), value=profile.society_address)
            society_reg_no = st.text_input(t("society_reg_no"), value=profile.society_reg_no)

        st.markdown(f"**{t('signature')}**")
        if profile.signature:
            try:
                st.image(decode_data_url(profile.signature), width=200)
            except SignatureImageError as e:
                st.warning(f"⚠️ {e}")
        upload = st.file_uploader(t("upload_signature"), type=["png", "jpg", "jpeg"])
        clear_signature = st.checkbox(t("clear"))

        submitted = st.form_submit_button(t("save_profile"), type="primary")

    if submitted:
        update = {
            "name": name,
            "block_number": block_number,
            "society_name": society_name,
            "society_address": society_address,
            "society_reg_no": society_reg_no,
        }
        pad = None
        try:
            if clear_signature:
                pad = DataUrlSignaturePad()
            elif upload is not None:
                pad = DataUrlSignaturePad()
                pad.load_bytes(upload.getvalue())
            run_async(components.profile.save(update, signature_pad=pad))
        except ValueError as e:
            st.error(f"❌ {e}")
        else:
            st.success(f"✅ {t('profile_updated')}")

    st.markdown("---")
    st.subheader(t("change_secret"))
    with st.form("secret_form", clear_on_submit=True):
        current = st.text_input(t("current_secret"), type="password")
        new = st.text_input(t("new_secret"), type="password")
        confirm = st.text_input(t("confirm_secret"), type="password")
        if st.form_submit_button(t("change_secret")):
            if new != confirm:
                st.error(t("secrets_do_not_match"))
            else:
                try:
                    changed = run_async(components.profile.change_secret(
                        current, new, username=profile.username,
                    ))
                except ValueError as e:
                    st.error(f"❌ {e}")
                else:
                    if changed:
                        st.success(f"✅ {t('secret_changed')}")
                    else:
                        st.error(t("invalid_credentials"))

    with st.expander("Configuration status"):
        results = validate_all_settings()
        for key, ok in results.items():
            if key.endswith("_error"):
                continue
            if ok:
                st.success(f"✅ {key}")
            else:
                st.error(f"❌ {key} - {results.get(f'{key}_error')}")


if __name__ == "__main__":
    main()
