# platelink/routers/users.py
"""Users + owner contact profiles."""

from fastapi import APIRouter, Depends, status

from platelink.domain import ContactMethods
from platelink.schemas.user import UserCreate, UserOut, ContactUpdate, UserStatsOut
from platelink.services.backend import Backend, get_backend

router = APIRouter()


def _methods(schema):
    return ContactMethods(**schema.model_dump()) if schema is not None else None


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED, summary="Create a user")
def create_user(body: UserCreate, backend: Backend = Depends(get_backend)):
    """Creates the user and opens their ledger account with the signup bonus."""
    user = backend.users.create_user(
        full_name=body.full_name,
        phone=body.phone,
        email=body.email,
        contact_methods=_methods(body.contact_methods),
    )
    return UserOut.model_validate(user)


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: str, backend: Backend = Depends(get_backend)):
    return UserOut.model_validate(backend.users.require(user_id))


@router.put("/users/{user_id}/contact", response_model=UserOut, summary="Update contact profile")
def update_contact(user_id: str, body: ContactUpdate, backend: Backend = Depends(get_backend)):
    user = backend.users.update_contact(
        user_id, phone=body.phone, email=body.email, contact_methods=_methods(body.contact_methods),
    )
    return UserOut.model_validate(user)


@router.get("/users/{user_id}/stats", response_model=UserStatsOut, summary="Per-user activity counters")
def get_user_stats(user_id: str, backend: Backend = Depends(get_backend)):
    backend.users.require(user_id)
    return UserStatsOut.model_validate(backend.activity.user_stats(user_id))
