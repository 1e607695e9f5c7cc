"""
KYC API Endpoints
Document submission and verification status
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user
from src.api.schemas import KycDocumentResponse, KycStatusResponse, KycSubmitRequest
from src.database.engine import get_session
from src.database.models import User
from src.services.kyc_service import KycService


router = APIRouter(prefix="/kyc", tags=["kyc"])


@router.get("", response_model=List[KycDocumentResponse])
async def list_documents(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """User's submitted documents, newest first"""
    return await KycService(session).list_documents(user)


@router.post("/submit", response_model=KycDocumentResponse, status_code=status.HTTP_201_CREATED)
async def submit_document(
    payload: KycSubmitRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Submit a document for review

    Raises:
        400: invalid level, level already verified or previous level missing
    """
    return await KycService(session).submit(
        user,
        document_type=payload.document_type.strip(),
        level=payload.level,
        document_reference=payload.document_reference,
    )


# Declared before /{document_id} so "status" isn't parsed as an id
@router.get("/status", response_model=KycStatusResponse)
async def get_status(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Verification status per level

    Returns:
        {
            "level1": "completed",
            "level2": "pending",
            "level3": "not_started",
            "addressVerified": false,
            "videoVerified": false,
            "rejectionReason": null
        }
    """
    return await KycService(session).get_status(user)


@router.get("/{document_id}", response_model=KycDocumentResponse)
async def get_document(
    document_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await KycService(session).get_document(user, document_id)
