# platelink/routers/contacts.py
"""Paid contact reveal, and who-contacted-whom history."""

from fastapi import APIRouter, Depends, Query

from platelink.config import settings
from platelink.schemas.activity import ActivityEventOut
from platelink.schemas.ledger import RevealRequest, RevealedContactOut
from platelink.services import vehicle_service
from platelink.services.backend import Backend, get_backend, get_gateway
from platelink.services.search_gateway import SearchGateway

router = APIRouter()


@router.post("/contacts/reveal", response_model=RevealedContactOut, summary="Spend a credit to reveal the owner",
             responses={402: {"description": "Insufficient balance"}, 404: {"description": "Vehicle not found"}})
def reveal_contact(body: RevealRequest, gateway: SearchGateway = Depends(get_gateway)):
    """
    Retrying with the same idempotency_key never charges twice; the response
    carries replayed=true instead.
    """
    revealed = gateway.reveal(body.user_id, body.vehicle_id, body.idempotency_key)
    return RevealedContactOut.model_validate(revealed)


@router.get("/contacts/user/{user_id}", response_model=list[ActivityEventOut], summary="Owners I contacted")
def contacts_by_user(user_id: str, limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1),
                     backend: Backend = Depends(get_backend)):
    events = backend.activity.contacts_by_user(user_id, min(limit, settings.HISTORY_MAX_LIMIT))
    return [ActivityEventOut.model_validate(e) for e in events]


@router.get("/contacts/vehicle/{vehicle_id}", response_model=list[ActivityEventOut],
            summary="Who contacted my vehicle", responses={403: {"description": "Not the owner"}})
def contacts_for_vehicle(vehicle_id: str, owner_id: str, limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1),
                         backend: Backend = Depends(get_backend)):
    events = vehicle_service.contact_history(backend, owner_id, vehicle_id, min(limit, settings.HISTORY_MAX_LIMIT))
    return [ActivityEventOut.model_validate(e) for e in events]
