"""
Core Data Models for ReceiptBook

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are Decimal with at most two decimal places.
Every displayed amount and every computed total is exact.
"""

import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


ADMIN_PROFILE_ID = 1

TWO_PLACES = Decimal("0.01")


def quantize_amount(value: Union[Decimal, float, int, str]) -> Decimal:
    """Round a monetary value to two decimal places (half up)."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_amount(value: Union[Decimal, float, int, str]) -> str:
    """Format a monetary value with exactly two decimals, e.g. '150.50'."""
    return f"{quantize_amount(value):.2f}"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AuthMethod(str, Enum):
    """
    How the administrator signs in.

    CRITICAL: Chosen once at first-time setup and never changed afterwards.
    """
    PASSWORD = "password"
    PIN = "pin"


class Language(str, Enum):
    """Caption languages supported by the UI and the exports."""
    ENGLISH = "en"
    GUJARATI = "gu"


class ReceiptSortField(str, Enum):
    """Indexed receipt fields a listing can be sorted by."""
    RECEIPT_NUMBER = "receipt_number"
    NAME = "name"
    DATE = "date"


# =============================================================================
# ADMINISTRATOR PROFILE
# =============================================================================

class AdminProfile(BaseModel):
    """
    The single administrator record.

    Always stored under the fixed identity key 1. Its absence means the
    application has not been set up yet.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Literal[1] = ADMIN_PROFILE_ID
    auth_method: AuthMethod
    username: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=100,
        description="Login name (password method only)"
    )
    secret_hash: str = Field(
        ...,
        pattern="^[0-9a-f]{64}$",
        description="Hex SHA-256 digest of the password or PIN"
    )

    # Profile fields
    name: str = Field(default="", max_length=200)
    block_number: str = Field(default="", max_length=50)
    signature: str = Field(
        default="",
        description="Base64 image data URL, or empty"
    )

    # Society details shown in document headers
    society_name: str = Field(default="", max_length=200)
    society_address: str = Field(default="", max_length=500)
    society_reg_no: str = Field(default="", max_length=100)

    @model_validator(mode='after')
    def validate_username(self) -> 'AdminProfile':
        """Username is required for password sign-in and absent for PIN."""
        if self.auth_method == AuthMethod.PASSWORD and not self.username:
            raise ValueError("Username is required for password sign-in")
        if self.auth_method == AuthMethod.PIN and self.username is not None:
            raise ValueError("PIN sign-in does not use a username")
        return self


class AdminProfileUpdate(BaseModel):
    """
    Partial update of the administrator profile.

    Only the mutable profile fields are accepted. Identity, sign-in method
    and secret are rejected here; the secret has its own operation.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, max_length=200)
    block_number: Optional[str] = Field(default=None, max_length=50)
    signature: Optional[str] = None
    society_name: Optional[str] = Field(default=None, max_length=200)
    society_address: Optional[str] = Field(default=None, max_length=500)
    society_reg_no: Optional[str] = Field(default=None, max_length=100)

    @field_validator('signature')
    @classmethod
    def validate_signature(cls, v: Optional[str]) -> Optional[str]:
        """Only image data URLs (or an empty string to clear) are stored."""
        if v and not v.startswith("data:image/"):
            raise ValueError("Signature must be an image data URL")
        return v


class AuthStatus(BaseModel):
    """Whether setup has completed, without exposing the secret digest."""

    is_setup: bool
    auth_method: Optional[AuthMethod] = None
    username: Optional[str] = None


class PasswordSetup(BaseModel):
    """First-time setup with a username and password."""
    model_config = ConfigDict(str_strip_whitespace=True)

    auth_method: Literal["password"] = "password"
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class PinSetup(BaseModel):
    """First-time setup with a numeric PIN."""
    model_config = ConfigDict(str_strip_whitespace=True)

    auth_method: Literal["pin"] = "pin"
    pin: str = Field(..., pattern=r"^\d{4,8}$")


SetupDetails = Annotated[
    Union[PasswordSetup, PinSetup],
    Field(discriminator="auth_method"),
]


# =============================================================================
# RECEIPTS
# =============================================================================

class Receipt(BaseModel):
    """
    A maintenance receipt.

    CRITICAL: Receipts are append-only. `id` is assigned by the store on
    creation and never changes; `receipt_number` is unique across the ledger.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = Field(
        default=None,
        ge=1,
        description="Store-assigned identity"
    )
    receipt_number: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Human-assigned receipt number (unique)"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Payer / recipient name"
    )
    date: datetime.date = Field(
        ...,
        description="Receipt date (YYYY-MM-DD)"
    )
    maintenance_period: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Free-text period label, e.g. 'Jan-Mar 2024'"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Amount received")
    ]

    @field_validator('maintenance_period')
    @classmethod
    def empty_period_is_absent(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ExpenseItem(BaseModel):
    """One line of an expense report. Never persisted."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    amount: Annotated[Decimal, Field(ge=0, decimal_places=2)]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'duplicate', 'future_date', 'total_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation of a new receipt.

    Stage 1: Schema validation (required fields, formats)
    Stage 2: Semantic validation (dates, amounts, duplicates)
    """

    subject: str = Field(
        ...,
        description="Receipt number being validated"
    )
    receipt: Optional[Receipt] = Field(
        default=None,
        description="Parsed receipt when the schema stage passed"
    )
    validated_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
