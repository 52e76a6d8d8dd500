from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from privacyflow.database import Base
from privacyflow.utils.clock import new_id, utcnow


# Identity record. Owned by the identity provider; removed last during erasure.
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    therapy_sessions = relationship("TherapySession", back_populates="user", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
