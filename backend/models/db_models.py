import datetime
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class ConversationDB(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    prompts = relationship(
        "PromptDB",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by=lambda: (PromptDB.created_at, PromptDB.seq),
    )


class PromptDB(Base):
    __tablename__ = "prompts"

    id = Column(String(36), primary_key=True, default=new_id)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    prompt = Column(Text, nullable=False)
    # Empty until the relay writes the generated text
    response = Column(Text, nullable=True)
    model = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    # Position within the conversation; breaks created_at ties
    seq = Column(Integer, nullable=False, default=0)

    conversation = relationship("ConversationDB", back_populates="prompts")
