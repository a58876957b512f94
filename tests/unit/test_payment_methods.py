"""Unit tests for saved payment methods."""

import uuid

import pytest
from services.ordering_service.errors import DuplicateCard, InvalidCardData
from services.ordering_service.models import CardNetwork, SavedPaymentMethod
from services.ordering_service.services.payment_methods import (
    deactivate_payment_method,
    list_active_payment_methods,
    save_payment_method,
)
from sqlalchemy import select
from tests.factories import card_payload


@pytest.mark.asyncio
@pytest.mark.unit
async def test_save_stores_metadata_only(db_session):
    method = await save_payment_method(
        db_session,
        user_id="member-1",
        card=card_payload(number="5500 0000 0000 0004", expiry_month="3"),
    )

    assert method.alias == "My Card"
    assert method.last4 == "0004"
    assert method.network == CardNetwork.MASTERCARD
    assert method.expiry_month == "03"
    assert method.cardholder_name == "Ana Perez"
    assert method.is_active is True
    # Only the last 4 digits ever reach the table
    columns = SavedPaymentMethod.__table__.columns.keys()
    assert "number" not in columns
    assert "cvv" not in columns


@pytest.mark.asyncio
@pytest.mark.unit
async def test_save_uses_given_alias(db_session):
    method = await save_payment_method(
        db_session, user_id="member-1", card=card_payload(), alias="  Work card "
    )

    assert method.alias == "Work card"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_save_rejects_invalid_card(db_session):
    with pytest.raises(InvalidCardData) as exc_info:
        await save_payment_method(
            db_session, user_id="member-1", card=card_payload(cvv="1")
        )

    assert "CVV" in exc_info.value.detail


@pytest.mark.asyncio
@pytest.mark.unit
async def test_duplicate_last4_for_same_user(db_session):
    await save_payment_method(db_session, user_id="member-1", card=card_payload())

    with pytest.raises(DuplicateCard):
        await save_payment_method(db_session, user_id="member-1", card=card_payload())

    # Another user may save the same card
    other = await save_payment_method(db_session, user_id="member-2", card=card_payload())
    assert other.last4 == "1234"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_resave_after_deactivation(db_session):
    first = await save_payment_method(db_session, user_id="member-1", card=card_payload())
    await deactivate_payment_method(db_session, user_id="member-1", method_id=first.id)

    second = await save_payment_method(db_session, user_id="member-1", card=card_payload())

    assert second.id != first.id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deactivate_is_soft_delete(db_session):
    method = await save_payment_method(db_session, user_id="member-1", card=card_payload())

    result = await deactivate_payment_method(
        db_session, user_id="member-1", method_id=method.id
    )

    assert result.success is True
    assert await list_active_payment_methods(db_session, "member-1") == []
    row = (
        await db_session.execute(
            select(SavedPaymentMethod).where(SavedPaymentMethod.id == method.id)
        )
    ).scalar_one()
    assert row.is_active is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deactivate_other_users_card_fails(db_session):
    method = await save_payment_method(db_session, user_id="member-1", card=card_payload())

    result = await deactivate_payment_method(
        db_session, user_id="member-2", method_id=method.id
    )

    assert result.success is False
    assert len(await list_active_payment_methods(db_session, "member-1")) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deactivate_twice_fails(db_session):
    method = await save_payment_method(db_session, user_id="member-1", card=card_payload())
    await deactivate_payment_method(db_session, user_id="member-1", method_id=method.id)

    result = await deactivate_payment_method(
        db_session, user_id="member-1", method_id=method.id
    )

    assert result.success is False
    assert "not found" in result.message


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deactivate_unknown_method(db_session):
    result = await deactivate_payment_method(
        db_session, user_id="member-1", method_id=uuid.uuid4()
    )

    assert result.success is False
    assert result.message == "Could not remove payment method: Payment method not found"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_active_newest_first(db_session):
    older = await save_payment_method(db_session, user_id="member-1", card=card_payload())
    newer = await save_payment_method(
        db_session, user_id="member-1", card=card_payload(number="4000 0000 0000 9999")
    )

    methods = await list_active_payment_methods(db_session, "member-1")

    assert [m.id for m in methods] == [newer.id, older.id]
