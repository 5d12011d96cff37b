"""
Payment method configuration tests.
"""

import pytest
from pydantic import SecretStr

from app.core.exceptions import InvalidPaymentMethodError, InvalidRequestError, NotFoundError
from app.services.payment.methods import (
    BkashMethodConfig,
    ManualMethodConfig,
    list_methods,
    parse_method_config,
    seed_default_methods,
    update_method,
)


class TestParseMethodConfig:

    def test_manual_requires_review(self):
        config = parse_method_config("manual", {"instructions": "Send to account 123"})
        assert isinstance(config, ManualMethodConfig)
        assert config.requires_review is True
        assert config.instructions == "Send to account 123"

    def test_manual_review_cannot_be_switched_off(self):
        config = parse_method_config("manual", {"requires_review": False})
        assert config.requires_review is True

    @pytest.mark.parametrize("name", ["bkash", "nagad", "stripe"])
    def test_automated_methods(self, name):
        assert parse_method_config(name, {}).requires_review is False

    def test_unknown_method(self):
        with pytest.raises(InvalidPaymentMethodError):
            parse_method_config("paypal", {})

    def test_malformed_config(self):
        with pytest.raises(InvalidPaymentMethodError):
            parse_method_config("bkash", {"merchant_number": ["not", "a", "string"]})

    def test_secrets_hidden_from_public_view(self):
        config = parse_method_config(
            "bkash", {"merchant_number": "01700000000", "api_key": "key", "api_secret": "secret"}
        )
        assert isinstance(config, BkashMethodConfig)
        assert isinstance(config.api_key, SecretStr)

        assert config.public_view() == {"merchant_number": "01700000000"}
        assert config.to_storage() == {
            "merchant_number": "01700000000",
            "api_key": "key",
            "api_secret": "secret",
        }


class TestMethodStore:

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db):
        assert await seed_default_methods(db) == 4
        await db.commit()
        assert await seed_default_methods(db) == 0

    @pytest.mark.asyncio
    async def test_only_manual_enabled_by_default(self, db, payment_methods):
        enabled = await list_methods(db)
        assert [m.name for m in enabled] == ["manual"]

        everything = await list_methods(db, enabled_only=False)
        assert {m.name for m in everything} == {"bkash", "nagad", "manual", "stripe"}

    @pytest.mark.asyncio
    async def test_update_method(self, db, payment_methods):
        method = await update_method(
            payment_methods["nagad"],
            db,
            display_name="Nagad Wallet",
            is_enabled=True,
            config={"merchant_id": "M-1", "merchant_key": "k"},
        )
        await db.commit()

        assert method.display_name == "Nagad Wallet"
        assert method.is_enabled is True
        assert method.config == {"merchant_id": "M-1", "merchant_key": "k"}

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_config(self, db, payment_methods):
        with pytest.raises(InvalidRequestError):
            await update_method(payment_methods["bkash"], db, config={"api_key": {"nested": True}})

    @pytest.mark.asyncio
    async def test_update_unknown_method(self, db):
        with pytest.raises(NotFoundError):
            await update_method("missing", db, is_enabled=True)
