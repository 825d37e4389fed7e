# platelink/schemas/user.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ContactMethodsSchema(BaseModel):
    phone: bool = True
    sms: bool = False
    whatsapp: bool = False
    email: bool = False

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    contact_methods: Optional[ContactMethodsSchema] = None    # default: phone, when a number is given


class ContactUpdate(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    contact_methods: Optional[ContactMethodsSchema] = None


class UserOut(BaseModel):
    user_id: str
    full_name: str
    phone: Optional[str]
    email: Optional[str]
    contact_methods: ContactMethodsSchema
    contactable: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserStatsOut(BaseModel):
    user_id: str
    vehicles_searched: int
    times_contacted: int
    vehicles_registered: int
    contacts_revealed: int
    unread_notifications: int

    class Config:
        from_attributes = True
