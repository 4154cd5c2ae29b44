"""
Captions for the UI and the exports.

Every visible string is looked up by key. Exports and pages never embed
caption text; they call caption(key, language).

Lookup order: the requested language, then English, then the key itself.
"""

from typing import Callable, Union

from receiptbook.models.records import Language


CaptionLookup = Callable[[str, Union[Language, str]], str]


CAPTIONS: dict[Language, dict[str, str]] = {
    Language.ENGLISH: {
        # Documents
        "receipt_number": "Receipt No.",
        "recipient_name": "Recipient Name",
        "date": "Date",
        "maintenance_period": "Maintenance Period",
        "amount": "Amount",
        "total": "Total",
        "grand_total": "Grand Total",
        "expense_report": "Expense Report",
        "item_name": "Item Name",
        "field": "Field",
        "details": "Details",
        "authorized_signature": "Authorized Signature",
        "pdf_footer_1": "This is a computer generated receipt.",
        "pdf_footer_2": "Issued by:",
        "not_applicable": "N/A",
        "receipt_title": "Maintenance Receipt",
        "receipts_title": "All Receipts",

        # Sign-in and setup
        "app_title": "ReceiptBook",
        "loading": "Loading",
        "login_title": "Administrator Login",
        "setup_title": "First-time Setup",
        "setup_intro": "Choose how the administrator will sign in. This cannot be changed later.",
        "auth_method": "Sign-in method",
        "auth_password": "Username and password",
        "auth_pin": "PIN",
        "username": "Username",
        "password": "Password",
        "pin": "PIN",
        "confirm_secret": "Confirm",
        "secrets_do_not_match": "The two entries do not match.",
        "complete_setup": "Complete Setup",
        "login": "Login",
        "logout": "Logout",
        "invalid_credentials": "Invalid credentials.",
        "toggle_language": "ગુજરાતી",

        # Receipts
        "tab_receipts": "Receipts",
        "tab_add_receipt": "Add Receipt",
        "tab_expenses": "Expenses",
        "tab_profile": "Profile",
        "add_receipt": "Add Receipt",
        "receipt_added": "Receipt saved.",
        "duplicate_receipt_number": "A receipt with this number already exists.",
        "no_receipts": "No receipts yet.",
        "search": "Search",
        "search_by": "Search by",
        "sort_by": "Sort by",
        "download_receipt": "Download Receipt",
        "download_all_pdf": "Download All (PDF)",
        "download_all_excel": "Download All (Excel)",
        "export_failed": "The file could not be generated.",

        # Expenses
        "add_item": "Add Item",
        "generate_report": "Generate Report",
        "total_mismatch_warning": "The entered total does not match the sum of the items.",

        # Profile
        "admin_profile": "Admin Profile",
        "admin_name": "Admin Name",
        "block_number": "Block Number",
        "signature": "Signature",
        "upload_signature": "Upload Signature",
        "clear": "Clear",
        "save_profile": "Save Profile",
        "profile_updated": "Profile updated successfully!",
        "society_name": "Society Name",
        "society_address": "Society Address",
        "society_reg_no": "Registration No.",
        "change_secret": "Change Password / PIN",
        "current_secret": "Current",
        "new_secret": "New",
        "secret_changed": "Sign-in secret updated.",
    },
    Language.GUJARATI: {
        "receipt_number": "રસીદ નંબર",
        "recipient_name": "પ્રાપ્તકર્તાનું નામ",
        "date": "તારીખ",
        "maintenance_period": "મેન્ટેનન્સ સમયગાળો",
        "amount": "રકમ",
        "total": "કુલ",
        "grand_total": "કુલ સરવાળો",
        "expense_report": "ખર્ચ અહેવાલ",
        "item_name": "વસ્તુનું નામ",
        "field": "વિગત",
        "details": "માહિતી",
        "authorized_signature": "અધિકૃત સહી",
        "pdf_footer_1": "આ કમ્પ્યુટર દ્વારા બનાવેલ રસીદ છે.",
        "pdf_footer_2": "જારીકર્તા:",
        "not_applicable": "લાગુ નથી",
        "receipt_title": "મેન્ટેનન્સ રસીદ",
        "receipts_title": "બધી રસીદો",

        "loading": "લોડ થઈ રહ્યું છે",
        "login_title": "એડમિન લોગિન",
        "setup_title": "પ્રારંભિક સેટઅપ",
        "username": "વપરાશકર્તા નામ",
        "password": "પાસવર્ડ",
        "pin": "પિન",
        "login": "લોગિન",
        "logout": "લોગઆઉટ",
        "invalid_credentials": "અમાન્ય ઓળખપત્રો.",
        "toggle_language": "English",

        "tab_receipts": "રસીદો",
        "tab_add_receipt": "રસીદ ઉમેરો",
        "tab_expenses": "ખર્ચ",
        "tab_profile": "પ્રોફાઇલ",
        "add_receipt": "રસીદ ઉમેરો",
        "receipt_added": "રસીદ સાચવી.",
        "duplicate_receipt_number": "આ નંબરની રસીદ પહેલેથી અસ્તિત્વમાં છે.",
        "no_receipts": "હજુ કોઈ રસીદ નથી.",
        "search": "શોધો",

        "add_item": "વસ્તુ ઉમેરો",
        "generate_report": "અહેવાલ બનાવો",

        "admin_profile": "એડમિન પ્રોફાઇલ",
        "admin_name": "એડમિનનું નામ",
        "block_number": "બ્લોક નંબર",
        "signature": "સહી",
        "upload_signature": "સહી અપલોડ કરો",
        "clear": "સાફ કરો",
        "save_profile": "પ્રોફાઇલ સાચવો",
        "profile_updated": "પ્રોફાઇલ સફળતાપૂર્વક અપડેટ થઈ!",
    },
}


def caption(key: str, language: Union[Language, str] = Language.ENGLISH) -> str:
    """
    Look up the caption for `key` in `language`.

    Unknown languages are treated as English. A key missing from the
    requested table falls back to English, and a key missing there is
    returned unchanged.
    """
    try:
        lang = Language(language)
    except ValueError:
        lang = Language.ENGLISH

    table = CAPTIONS[lang]
    if key in table:
        return table[key]
    return CAPTIONS[Language.ENGLISH].get(key, key)


__all__ = ["CAPTIONS", "CaptionLookup", "Language", "caption"]
