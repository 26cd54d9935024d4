# coding: utf-8
"""
Payment Methods Service

Payment methods live on the user row as a JSON list. Each entry is a
tagged union keyed by `details.type`:

    paypal          {email}
    wise            {name, email, account_id}
    bank_transfer   {name, iban, bank_name, swift}

At most one method per user carries is_default=True.
"""

import uuid
from datetime import datetime, UTC
from typing import Annotated, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    StringConstraints,
    TypeAdapter,
    ValidationError as PydanticValidationError,
    field_validator,
)
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from src.core.enums import PaymentMethodType
from src.core.exceptions import NotFoundError
from src.database.crud import set_payout_methods
from src.database.models import User

RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class PaypalDetails(BaseModel):
    type: Literal["paypal"] = PaymentMethodType.PAYPAL.value
    email: EmailStr


class WiseDetails(BaseModel):
    type: Literal["wise"] = PaymentMethodType.WISE.value
    name: RequiredStr
    email: EmailStr
    account_id: RequiredStr


class BankTransferDetails(BaseModel):
    type: Literal["bank_transfer"] = PaymentMethodType.BANK_TRANSFER.value
    name: RequiredStr  # Account holder
    iban: RequiredStr
    bank_name: RequiredStr
    swift: RequiredStr

    @field_validator("iban", "swift")
    @classmethod
    def compact_upper(cls, value: str) -> str:
        return value.replace(" ", "").upper()


PaymentDetails = Annotated[
    Union[PaypalDetails, WiseDetails, BankTransferDetails],
    Field(discriminator="type"),
]


class PaymentMethodInput(BaseModel):
    """Fields a user submits when adding or editing a method"""

    name: RequiredStr
    is_default: bool = False
    details: PaymentDetails


class PaymentMethod(BaseModel):
    """Stored payment method"""

    id: str
    name: str
    is_default: bool = False
    details: PaymentDetails
    created_at: datetime

    @property
    def type(self) -> str:
        return self.details.type

    def summary(self) -> str:
        """Short display string, IBAN reduced to its last 4 characters"""
        details = self.details
        if isinstance(details, PaypalDetails):
            return details.email
        if isinstance(details, WiseDetails):
            return f"{details.name} ({details.email})"
        return f"{details.bank_name} - {details.iban[-4:]}"


_method_list = TypeAdapter(List[PaymentMethod])


def load_payment_methods(user: User) -> List[PaymentMethod]:
    """
    Parse the user's stored methods

    Entries that no longer validate are skipped and logged, so one bad row
    never hides the rest.
    """
    methods = []
    for raw in user.payout_methods or []:
        try:
            methods.append(PaymentMethod.model_validate(raw))
        except PydanticValidationError as e:
            logger.warning(f"Skipping invalid payment method for user {user.id}: {e.error_count()} errors")
    return methods


def has_payment_method(user: User) -> bool:
    return bool(load_payment_methods(user))


def find_payment_method(user: User, method_id: str) -> PaymentMethod:
    for method in load_payment_methods(user):
        if method.id == method_id:
            return method
    raise NotFoundError(f"Payment method {method_id} not found")


def get_default_payment_method(user: User) -> Optional[PaymentMethod]:
    """The default method, else the first one, else None"""
    methods = load_payment_methods(user)
    for method in methods:
        if method.is_default:
            return method
    return methods[0] if methods else None


def snapshot_details(method: PaymentMethod) -> dict:
    """
    Copy of the provider fields for a payout request

    Plain JSON data, detached from the user's method list.
    """
    return method.details.model_dump(mode="json")


def _with_single_default(methods: List[PaymentMethod], default_id: str) -> List[PaymentMethod]:
    return [
        method.model_copy(update={"is_default": method.id == default_id})
        for method in methods
    ]


async def _save(session: AsyncSession, user: User, methods: List[PaymentMethod]) -> List[PaymentMethod]:
    await set_payout_methods(session, user, _method_list.dump_python(methods, mode="json"))
    return methods


async def list_payment_methods(user: User) -> List[PaymentMethod]:
    return load_payment_methods(user)


async def add_payment_method(
    session: AsyncSession, user: User, data: PaymentMethodInput
) -> PaymentMethod:
    """
    Append a payment method

    Marking it default clears the flag on every other method.
    """
    method = PaymentMethod(
        id=f"pm_{uuid.uuid4().hex[:16]}",
        name=data.name,
        is_default=data.is_default,
        details=data.details,
        created_at=datetime.now(UTC),
    )

    methods = load_payment_methods(user) + [method]
    if method.is_default:
        methods = _with_single_default(methods, method.id)

    await _save(session, user, methods)
    logger.info(f"Payment method {method.id} ({method.type}) added for user {user.id}")
    return method


async def update_payment_method(
    session: AsyncSession, user: User, method_id: str, data: PaymentMethodInput
) -> PaymentMethod:
    """Replace name, details and default flag; id and created_at are kept"""
    current = find_payment_method(user, method_id)
    updated = current.model_copy(
        update={"name": data.name, "is_default": data.is_default, "details": data.details}
    )

    methods = [updated if method.id == method_id else method for method in load_payment_methods(user)]
    if updated.is_default:
        methods = _with_single_default(methods, method_id)

    await _save(session, user, methods)
    logger.info(f"Payment method {method_id} updated for user {user.id}")
    return updated


async def delete_payment_method(
    session: AsyncSession, user: User, method_id: str
) -> List[PaymentMethod]:
    """
    Remove a method

    When the default is removed, the first remaining method becomes default.
    Payout requests already created keep their own snapshot.
    """
    deleted = find_payment_method(user, method_id)
    methods = [method for method in load_payment_methods(user) if method.id != method_id]

    if deleted.is_default and methods:
        methods = _with_single_default(methods, methods[0].id)

    await _save(session, user, methods)
    logger.info(f"Payment method {method_id} deleted for user {user.id}")
    return methods


async def set_default_payment_method(
    session: AsyncSession, user: User, method_id: str
) -> List[PaymentMethod]:
    find_payment_method(user, method_id)
    methods = _with_single_default(load_payment_methods(user), method_id)
    await _save(session, user, methods)
    return methods
