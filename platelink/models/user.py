# platelink/models/user.py
"""
Users table: every searcher and every vehicle owner.
Holds the single contact profile of an owner: phone/email plus the
enabled contact-method flags shown to a searcher after a reveal.
"""

from sqlalchemy import Column, String, DateTime, Boolean
from platelink.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    full_name = Column(String(200), nullable=False)
    phone = Column(String(20))
    email = Column(String(200))
    allow_phone = Column(Boolean, default=True, nullable=False)
    allow_sms = Column(Boolean, default=False, nullable=False)
    allow_whatsapp = Column(Boolean, default=False, nullable=False)
    allow_email = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<User {self.id} name={self.full_name}>"
