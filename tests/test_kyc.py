"""
Tests for the KYC gate and document review
"""

import pytest

from src.core.exceptions import InvalidSetting, InvalidState, KycRequired, NotFound, PermissionDenied
from src.database.crud import get_notifications_for_user
from src.services.kyc_gate import KycAction, KycGate
from src.services.kyc_service import KycService
from tests.helpers import make_user


# ============================================================================
# GATE
# ============================================================================


@pytest.mark.asyncio
async def test_gate_levels(db_session):
    unverified = await make_user(db_session, kyc_level=0)
    verified = await make_user(db_session, kyc_level=1)
    gate = KycGate()

    assert gate.required_level(KycAction.LAUNCH_BOT) == 1
    assert gate.required_level(KycAction.WITHDRAW) == 1

    gate.check(verified, KycAction.LAUNCH_BOT)
    with pytest.raises(KycRequired) as exc_info:
        gate.check(unverified, KycAction.WITHDRAW)

    assert exc_info.value.status_code == 403
    assert exc_info.value.required_level == 1
    assert exc_info.value.current_level == 0


@pytest.mark.asyncio
async def test_gate_custom_levels(db_session):
    user = await make_user(db_session, kyc_level=1)
    gate = KycGate({"launch_bot": 1, "withdraw": 2})

    gate.check(user, KycAction.LAUNCH_BOT)
    with pytest.raises(KycRequired):
        gate.check(user, KycAction.WITHDRAW)


# ============================================================================
# SUBMISSION
# ============================================================================


@pytest.mark.asyncio
async def test_submit_and_approve_raises_level(db_session):
    user = await make_user(db_session, kyc_level=0)
    service = KycService(db_session)

    document = await service.submit(user, "passport", 1, "uploads/passport.jpg")
    assert document.status == "pending"
    assert (await service.get_status(user))["level1"] == "pending"

    await service.approve(document.id)
    await db_session.refresh(user)

    assert user.kyc_level == 1
    status = await service.get_status(user)
    assert status["level1"] == "completed"
    assert status["level2"] == "not_started"

    notifications = await get_notifications_for_user(db_session, user.id)
    assert notifications[0].message == "Your KYC level 1 verification has been approved!"
    assert notifications[0].type == "kyc"


@pytest.mark.asyncio
async def test_levels_must_be_completed_in_order(db_session):
    user = await make_user(db_session, kyc_level=0)
    service = KycService(db_session)

    with pytest.raises(InvalidState, match="Level 1"):
        await service.submit(user, "proof_of_address", 2)


@pytest.mark.asyncio
async def test_completed_level_cannot_be_resubmitted(db_session):
    user = await make_user(db_session, kyc_level=2)

    with pytest.raises(InvalidState, match="already completed"):
        await KycService(db_session).submit(user, "passport", 1)


@pytest.mark.parametrize("level", [0, 4, True])
@pytest.mark.asyncio
async def test_invalid_level(db_session, level):
    user = await make_user(db_session, kyc_level=0)

    with pytest.raises(InvalidSetting):
        await KycService(db_session).submit(user, "passport", level)


@pytest.mark.asyncio
async def test_reject_records_reason(db_session):
    user = await make_user(db_session, kyc_level=0)
    service = KycService(db_session)
    document = await service.submit(user, "passport", 1)

    with pytest.raises(InvalidSetting):
        await service.reject(document.id, "  ")

    await service.reject(document.id, "Photo is blurry")

    status = await service.get_status(user)
    assert status["level1"] == "rejected"
    assert status["rejection_reason"] == "Photo is blurry"
    assert user.kyc_level == 0

    with pytest.raises(InvalidState):
        await service.approve(document.id)


@pytest.mark.asyncio
async def test_approval_never_lowers_level(db_session):
    user = await make_user(db_session, kyc_level=0)
    service = KycService(db_session)
    first = await service.submit(user, "passport", 1)
    await service.approve(first.id)
    await db_session.refresh(user)
    second = await service.submit(user, "proof_of_address", 2)
    await service.approve(second.id)
    await db_session.refresh(user)
    assert user.kyc_level == 2

    status = await service.get_status(user)
    assert status["address_verified"] is True
    assert status["video_verified"] is False


@pytest.mark.asyncio
async def test_document_visibility(db_session):
    owner = await make_user(db_session, kyc_level=0)
    other = await make_user(db_session)
    admin = await make_user(db_session, is_admin=True)
    service = KycService(db_session)
    document = await service.submit(owner, "passport", 1)

    assert (await service.get_document(owner, document.id)).id == document.id
    assert (await service.get_document(admin, document.id)).id == document.id
    with pytest.raises(PermissionDenied):
        await service.get_document(other, document.id)
    with pytest.raises(NotFound):
        await service.get_document(owner, 999)
