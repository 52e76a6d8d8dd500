"""
Conversation models: therapy sessions, their generated summaries and the
action items extracted from them.

Columns marked internal-only never appear in a user's data export.
"""

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from privacyflow.database import Base
from privacyflow.utils.clock import new_id, utcnow


class TherapySession(Base):
    __tablename__ = "therapy_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active")
    started_at = Column(DateTime, default=utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    # List of {"role": "user" | "assistant", "content": str, "timestamp": str}
    transcript = Column(JSON, nullable=False, default=list)

    # Internal-only columns
    voice_conversation_id = Column(String(100), nullable=True)
    agent_context = Column(JSON, nullable=True)

    user = relationship("User", back_populates="therapy_sessions")
    summaries = relationship("SessionSummary", back_populates="session", passive_deletes=True)
    action_items = relationship("ActionItem", back_populates="session", passive_deletes=True)


class SessionSummary(Base):
    __tablename__ = "session_summaries"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("therapy_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    summary = Column(Text, nullable=False)
    key_topics = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Internal-only columns
    model_name = Column(String(100), nullable=True)
    prompt_tokens = Column(Integer, nullable=True)

    session = relationship("TherapySession", back_populates="summaries")


class ActionItem(Base):
    __tablename__ = "action_items"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("therapy_sessions.id", ondelete="CASCADE"), nullable=True, index=True)
    item = Column(Text, nullable=False)
    due_date = Column(Date, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    session = relationship("TherapySession", back_populates="action_items")
