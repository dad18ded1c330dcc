from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from kirana_store.core.database import Base


class ConversationLogEntry(Base):
    """
    One row per accepted inbound message.

    The unique message_id is the dedup ledger; sender_phone + received_at is
    what session-boundary inference reads.
    """

    __tablename__ = "conversation_logs"

    id = Column(Integer, primary_key=True)
    message_id = Column(String(128), nullable=False, unique=True)
    sender_phone = Column(String(30), nullable=False)
    message_type = Column(String(30), nullable=False, default="text")
    content = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=False)


Index("ix_conversation_logs_sender_received", ConversationLogEntry.sender_phone, ConversationLogEntry.received_at)
