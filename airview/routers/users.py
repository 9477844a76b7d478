from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from airview.database import get_db
from airview.schemas.account import DeleteUserResponse
from airview.services.accounts import delete_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/users", tags=["users"])

@router.delete("/{user_id}", response_model=DeleteUserResponse)
async def delete_account(user_id: int, db: Session = Depends(get_db)):
    """Delete an account with its devices, readings, sharing links and provider credentials"""
    counts = delete_user(db, user_id)
    return DeleteUserResponse(user_id=user_id, **counts)
