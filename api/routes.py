"""
Transaction routes for the records a logged-in user keeps.

Route prefix: /api/v1/transactions
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator

from auth.dependencies import get_ledger_store, protect, restrict_to
from database.models import Transaction, User, UserRole
from database.store import LedgerStore
from utils.errors import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transactions"])


class TransactionCreate(BaseModel):
    text: str = Field(..., max_length=500)
    amount: float = Field(..., allow_inf_nan=False)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please add some description")
        return value


@router.get("")
async def list_transactions(
    current_user: User = Depends(protect),
    ledger: LedgerStore = Depends(get_ledger_store),
) -> Dict[str, Any]:
    records = await ledger.list_for_user(current_user.user_id)
    return {
        "success": True,
        "count": len(records),
        "data": {
            "transactions": [r.to_dict() for r in records],
            "balance": round(sum(r.amount for r in records), 2),
        },
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_transaction(
    req: TransactionCreate,
    current_user: User = Depends(protect),
    ledger: LedgerStore = Depends(get_ledger_store),
) -> Dict[str, Any]:
    record = Transaction(
        transaction_id=uuid.uuid4(),
        user_id=current_user.user_id,
        text=req.text,
        amount=req.amount,
        created_at=datetime.now(timezone.utc),
    )
    await ledger.add(record)
    logger.info("Transaction %s added by user %s", record.transaction_id, current_user.user_id)
    return {"success": True, "data": {"transaction": record.to_dict()}}


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    admin: User = Depends(restrict_to(UserRole.ADMIN)),
    ledger: LedgerStore = Depends(get_ledger_store),
) -> Dict[str, Any]:
    """Admin only."""
    record = await ledger.get(transaction_id)
    if record is None:
        raise NotFoundError("No transaction found.")
    await ledger.delete(record)
    logger.info("Transaction %s deleted by admin %s", transaction_id, admin.user_id)
    return {"success": True, "data": None}
