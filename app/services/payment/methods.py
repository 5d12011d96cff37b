"""
Payment method configuration.

Each method stores a JSON config whose shape depends on the method name.
The config is parsed into one variant of a tagged union, and the variant,
not a string comparison, decides whether submissions need admin review.
"""

import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, SecretStr, TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidPaymentMethodError, InvalidRequestError, NotFoundError
from app.models.payment import PaymentMethod

logger = logging.getLogger(__name__)


class _MethodConfig(BaseModel):
    requires_review: bool = False

    def public_view(self) -> Dict[str, Any]:
        """Fields safe to show to paying users."""
        data = self.model_dump(exclude={"method", "requires_review"})
        return {key: value for key, value in data.items() if not isinstance(value, SecretStr)}

    def to_storage(self) -> Dict[str, Any]:
        """Plain JSON for the ``config`` column, secrets revealed."""
        data = self.model_dump(exclude={"method", "requires_review"})
        return {
            key: value.get_secret_value() if isinstance(value, SecretStr) else value
            for key, value in data.items()
        }


class ManualMethodConfig(_MethodConfig):
    """Bank or wallet transfer checked by an admin."""
    method: Literal["manual"] = "manual"
    requires_review: Literal[True] = True
    instructions: str = "Send payment to our account and upload proof."


class BkashMethodConfig(_MethodConfig):
    method: Literal["bkash"] = "bkash"
    merchant_number: str = ""
    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")


class NagadMethodConfig(_MethodConfig):
    method: Literal["nagad"] = "nagad"
    merchant_id: str = ""
    merchant_key: SecretStr = SecretStr("")


class StripeMethodConfig(_MethodConfig):
    method: Literal["stripe"] = "stripe"


MethodConfig = Annotated[
    Union[ManualMethodConfig, BkashMethodConfig, NagadMethodConfig, StripeMethodConfig],
    Field(discriminator="method"),
]

_config_adapter = TypeAdapter(MethodConfig)

SUPPORTED_METHODS = ("manual", "bkash", "nagad", "stripe")


def parse_method_config(name: str, config: Optional[Dict[str, Any]]) -> MethodConfig:
    """
    Parse a stored config into its typed variant.

    Args:
        name: Payment method name (the union tag)
        config: Stored JSON config

    Returns:
        Typed config

    Raises:
        InvalidPaymentMethodError: If the name is unknown or the config is malformed
    """
    if name not in SUPPORTED_METHODS:
        raise InvalidPaymentMethodError(f"Unsupported payment method: {name}")

    data = dict(config or {})
    data.pop("requires_review", None)
    data["method"] = name
    try:
        return _config_adapter.validate_python(data)
    except ValidationError as e:
        logger.error(f"Invalid config for payment method {name}: {e}")
        raise InvalidPaymentMethodError(f"Payment method {name} is misconfigured") from e


def describe_method(method: PaymentMethod, include_secrets: bool = False) -> Dict[str, Any]:
    """Serialize a method with its parsed config."""
    config = parse_method_config(method.name, method.config)
    return {
        "id": method.id,
        "name": method.name,
        "display_name": method.display_name,
        "is_enabled": method.is_enabled,
        "requires_review": config.requires_review,
        "config": config.to_storage() if include_secrets else config.public_view(),
    }


async def list_methods(db: AsyncSession, enabled_only: bool = True) -> List[PaymentMethod]:
    """List payment methods ordered by display name."""
    stmt = select(PaymentMethod).order_by(PaymentMethod.display_name)
    if enabled_only:
        stmt = stmt.where(PaymentMethod.is_enabled.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_method(
    method_id: str,
    db: AsyncSession,
    display_name: Optional[str] = None,
    is_enabled: Optional[bool] = None,
    config: Optional[Dict[str, Any]] = None
) -> PaymentMethod:
    """
    Update a payment method. A new config replaces the old one and must
    validate against the method's variant.
    """
    result = await db.execute(select(PaymentMethod).where(PaymentMethod.id == method_id))
    method = result.scalar_one_or_none()
    if method is None:
        raise NotFoundError("Payment method not found")

    if config is not None:
        try:
            parsed = parse_method_config(method.name, config)
        except InvalidPaymentMethodError as e:
            raise InvalidRequestError(e.message) from e
        method.config = parsed.to_storage()
    if display_name is not None:
        if not display_name.strip():
            raise InvalidRequestError("Display name cannot be empty")
        method.display_name = display_name.strip()
    if is_enabled is not None:
        method.is_enabled = is_enabled

    await db.flush()
    logger.info(f"Payment method {method.name} updated (enabled={method.is_enabled})")
    return method


DEFAULT_METHODS = [
    {
        "name": "bkash",
        "display_name": "bKash",
        "is_enabled": False,
        "config": {"merchant_number": "", "api_key": "", "api_secret": ""},
    },
    {
        "name": "nagad",
        "display_name": "Nagad",
        "is_enabled": False,
        "config": {"merchant_id": "", "merchant_key": ""},
    },
    {
        "name": "manual",
        "display_name": "Manual Payment",
        "is_enabled": True,
        "config": {"instructions": "Send payment to our account and upload proof."},
    },
    {
        "name": "stripe",
        "display_name": "Credit/Debit Card",
        "is_enabled": False,
        "config": {},
    },
]


async def seed_default_methods(db: AsyncSession) -> int:
    """
    Insert the default payment methods that are missing.

    Returns:
        Number of methods inserted
    """
    existing = set((await db.execute(select(PaymentMethod.name))).scalars().all())
    inserted = 0
    for method in DEFAULT_METHODS:
        if method["name"] in existing:
            continue
        db.add(PaymentMethod(**{**method, "config": dict(method["config"])}))
        inserted += 1
    if inserted:
        await db.flush()
        logger.info(f"Seeded {inserted} payment method(s)")
    return inserted
