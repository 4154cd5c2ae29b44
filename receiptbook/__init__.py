"""
ReceiptBook - Source Package

A local record-keeping tool for a residential society administrator:
maintenance receipts, an administrator profile, and printable exports.

DESIGN PRINCIPLES:
1. One administrator, one local database
2. Fail early, fail visibly (typed errors, never ambiguous falsy values)
3. No silent corrections
4. Receipts are an append-only ledger
5. Renderers are swappable
"""

__version__ = "1.0.0"
__author__ = "ReceiptBook Team"
