# coding: utf-8
"""
KYC Service

Document submission by users and review by admins. Approval is the only
way a user's kyc_level goes up, and it never goes down.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from config.platform_config import MAX_KYC_LEVEL
from src.core.exceptions import InvalidState, NotFound, PermissionDenied, InvalidSetting
from src.database.crud import (
    create_kyc_document,
    create_notification,
    get_kyc_document,
    get_user_by_id,
    get_user_kyc_documents,
)
from src.database.models import KycDocument, KycStatus, NotificationType, User


ADDRESS_DOCUMENT_TYPES = ("address_proof", "proof_of_address")
VIDEO_DOCUMENT_TYPES = ("video_verification",)


class KycService:
    """KYC submissions and reviews"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def submit(
        self,
        user: User,
        document_type: str,
        level: int,
        document_reference: Optional[str] = None,
    ) -> KycDocument:
        """
        Submit a document for a KYC level

        Level N can only be requested once level N-1 is verified, and
        only above the user's current level.

        Raises:
            InvalidSetting: level outside 1-3 or empty document type
            InvalidState: level already verified or previous level missing
        """
        if not document_type:
            raise InvalidSetting("Document type is required", field="documentType")
        if isinstance(level, bool) or not isinstance(level, int) or not 1 <= level <= MAX_KYC_LEVEL:
            raise InvalidSetting("Invalid KYC level", field="level")
        if user.kyc_level >= level:
            raise InvalidState("You have already completed this KYC level")
        if user.kyc_level < level - 1:
            raise InvalidState(f"You must complete Level {level - 1} KYC first")

        document = await create_kyc_document(
            self.session,
            user_id=user.id,
            document_type=document_type,
            level=level,
            document_reference=document_reference,
        )
        await self.session.commit()

        logger.info(f"KYC document {document.id} submitted: user={user.id} level={level} type={document_type}")
        return document

    async def get_document(self, user: User, document_id: int) -> KycDocument:
        """
        Get a document visible to the user (own documents, or any for admins)

        Raises:
            NotFound: no such document
            PermissionDenied: someone else's document
        """
        document = await get_kyc_document(self.session, document_id)
        if document is None:
            raise NotFound("KYC document not found")
        if document.user_id != user.id and not user.is_admin:
            raise PermissionDenied("Not authorized to access this document")
        return document

    async def get_status(self, user: User) -> Dict[str, Any]:
        """
        Per-level verification status

        Each level is completed (verified), or else the status of the most
        recent submission for it (pending / rejected), or not_started.
        """
        documents = await get_user_kyc_documents(self.session, user.id)  # newest first

        status: Dict[str, Any] = {}
        for level in range(1, MAX_KYC_LEVEL + 1):
            latest = next((doc for doc in documents if doc.level == level), None)
            if user.kyc_level >= level:
                status[f"level{level}"] = "completed"
            elif latest is None:
                status[f"level{level}"] = "not_started"
            elif latest.status == KycStatus.REJECTED.value:
                status[f"level{level}"] = "rejected"
            else:
                status[f"level{level}"] = "pending"

        rejected = next((doc for doc in documents if doc.status == KycStatus.REJECTED.value), None)

        status["address_verified"] = any(
            doc.document_type in ADDRESS_DOCUMENT_TYPES and doc.status == KycStatus.APPROVED.value
            for doc in documents
        )
        status["video_verified"] = any(
            doc.document_type in VIDEO_DOCUMENT_TYPES and doc.status == KycStatus.APPROVED.value
            for doc in documents
        )
        status["rejection_reason"] = rejected.rejection_reason if rejected else None
        return status

    async def list_documents(self, user: User) -> List[KycDocument]:
        return await get_user_kyc_documents(self.session, user.id)

    # ===========================
    # ADMIN REVIEW
    # ===========================

    async def _get_pending(self, document_id: int) -> KycDocument:
        document = await get_kyc_document(self.session, document_id)
        if document is None:
            raise NotFound("KYC document not found")
        if document.status != KycStatus.PENDING.value:
            raise InvalidState(f"KYC document already {document.status}")
        return document

    async def approve(self, document_id: int) -> KycDocument:
        """
        Approve a pending document, raising the owner's level if higher

        Raises:
            NotFound: document or owner missing
            InvalidState: document already reviewed
        """
        document = await self._get_pending(document_id)
        owner = await get_user_by_id(self.session, document.user_id)
        if owner is None:
            raise NotFound("User not found")

        document.status = KycStatus.APPROVED.value
        if document.level > owner.kyc_level:
            owner.kyc_level = document.level

        await create_notification(
            self.session,
            message=f"Your KYC level {document.level} verification has been approved!",
            user_id=owner.id,
            notification_type=NotificationType.KYC,
        )
        await self.session.commit()

        logger.info(f"KYC document {document.id} approved: user={owner.id} kyc_level={owner.kyc_level}")
        return document

    async def reject(self, document_id: int, reason: str) -> KycDocument:
        """
        Reject a pending document with a reason shown to the user

        Raises:
            InvalidSetting: empty reason
            NotFound: document missing
            InvalidState: document already reviewed
        """
        if not reason or not reason.strip():
            raise InvalidSetting("Rejection reason is required", field="reason")

        document = await self._get_pending(document_id)
        document.status = KycStatus.REJECTED.value
        document.rejection_reason = reason.strip()

        await create_notification(
            self.session,
            message=f"Your KYC level {document.level} verification was rejected: {document.rejection_reason}",
            user_id=document.user_id,
            notification_type=NotificationType.KYC,
        )
        await self.session.commit()

        logger.info(f"KYC document {document.id} rejected: user={document.user_id}")
        return document
