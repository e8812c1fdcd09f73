"""Lyrics approval endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from musiclovely.api.deps import require_admin
from musiclovely.database import get_db
from musiclovely.schemas.approval import ApprovalResult
from musiclovely.services.approval_service import ApprovalService
from musiclovely.utils.request_params import param, request_params

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


async def _approval_id(request: Request) -> tuple[str, dict]:
    params = await request_params(request)
    approval_id = param(params, "approval_id", "approvalId", "id")
    if not approval_id:
        raise HTTPException(status_code=400, detail="approval_id is required")
    return approval_id, params


@router.post("/approve-lyrics", response_model=ApprovalResult)
async def approve_lyrics(request: Request, db: Session = Depends(get_db)):
    """Approve lyrics and queue audio generation (returns before it runs)."""
    approval_id, _ = await _approval_id(request)
    return ApprovalService().approve(db, approval_id)


@router.post("/unapprove-lyrics", response_model=ApprovalResult)
async def unapprove_lyrics(request: Request, db: Session = Depends(get_db)):
    approval_id, _ = await _approval_id(request)
    return ApprovalService().unapprove(db, approval_id)


@router.post("/reject-lyrics", response_model=ApprovalResult)
async def reject_lyrics(request: Request, db: Session = Depends(get_db)):
    approval_id, params = await _approval_id(request)
    return ApprovalService().reject(db, approval_id, param(params, "reason", "rejection_reason"))
