import re
from typing import Any, Dict, Iterable, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
PHONE_PATTERN = re.compile(r"^[\+]?[0-9\s\-\(\)\.]+$")

# Human-readable labels for "field required" errors, keyed by wire name.
FIELD_LABELS = {
    "UserName": "Username",
    "Password": "Password",
    "Data": "User data",
    "FirstName": "First name",
    "LastName": "Last name",
    "Phone": "Phone number",
    "Email": "Email",
}


class UserData(BaseModel):
    """Profile details nested inside a user record."""

    model_config = ConfigDict(populate_by_name=True)

    creation_date: str = Field("", alias="CreationDate")
    first_name: str = Field("", alias="FirstName")
    last_name: str = Field("", alias="LastName")
    phone: str = Field("", alias="Phone")
    email: str = Field("", alias="Email")


class User(BaseModel):
    """A stored user record, as persisted and returned by the API."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(0, alias="UserID")
    active: bool = Field(False, alias="Active")
    username: str = Field("", alias="UserName")
    password: str = Field("", alias="Password")
    user_group_id: Optional[int] = Field(None, alias="UserGroupID")
    data: UserData = Field(default_factory=UserData, alias="Data")


def _check_length(value: str, label: str, low: int, high: int) -> str:
    if not value:
        raise ValueError(f"{label} is required")
    if not low <= len(value) <= high:
        raise ValueError(f"{label} must be between {low} and {high} characters")
    return value


class UserDataIn(UserData):
    """Profile fields as submitted by a client; every field is checked."""

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        label = "First name" if info.field_name == "first_name" else "Last name"
        _check_length(v, label, 2, 30)
        if not NAME_PATTERN.match(v):
            raise ValueError(
                f"{label} can only contain letters, spaces, hyphens, and apostrophes"
            )
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        _check_length(v, "Phone number", 10, 20)
        if not PHONE_PATTERN.match(v):
            raise ValueError("Phone number contains invalid characters")
        return v

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v: str) -> str:
        if not v:
            raise ValueError("Email is required")
        if len(v) > 100:
            raise ValueError("Email cannot be longer than 100 characters")
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("Invalid email address")
        return v


class UserIn(User):
    """Request body for creating or updating a user."""

    data: UserDataIn = Field(..., alias="Data")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        _check_length(v, "Username", 3, 20)
        if not USERNAME_PATTERN.match(v):
            raise ValueError(
                "Username can only contain letters, numbers, underscores, dots, and hyphens"
            )
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_length(v, "Password", 4, 100)

    def to_user(self) -> User:
        return User.model_validate(self.model_dump(by_alias=True))


def validation_messages(errors: Iterable[Dict[str, Any]]) -> List[str]:
    """Flatten pydantic error dicts into the messages shown to clients."""
    messages = []
    for err in errors:
        loc = [part for part in err.get("loc", ()) if part != "body"]
        field = str(loc[-1]) if loc else ""
        if err.get("type") == "value_error" and "error" in err.get("ctx", {}):
            messages.append(str(err["ctx"]["error"]))
        elif err.get("type") == "missing":
            messages.append(f"{FIELD_LABELS.get(field, field)} is required")
        else:
            messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg", ""))
    return messages
