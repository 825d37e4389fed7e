# platelink/routers/ledger.py
from fastapi import APIRouter, Depends, Query

from platelink.config import settings
from platelink.schemas.ledger import BalanceOut, LedgerEntryOut
from platelink.services.backend import Backend, get_backend

router = APIRouter()


@router.get("/balance", response_model=BalanceOut, summary="Current credit balance")
def get_balance(user_id: str, backend: Backend = Depends(get_backend)):
    return BalanceOut(user_id=user_id, balance=backend.ledger.get_balance(user_id))


@router.get("/ledger/history", response_model=list[LedgerEntryOut], summary="Ledger entries, newest first")
def ledger_history(user_id: str, limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1),
                   backend: Backend = Depends(get_backend)):
    entries = backend.ledger.history(user_id, min(limit, settings.HISTORY_MAX_LIMIT))
    return [LedgerEntryOut.model_validate(e) for e in entries]
