from sqlalchemy import Column, DateTime, Integer, String, Text

from slabot.database import Base


class ConversationLog(Base):
    __tablename__ = "conversation_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(String(512), nullable=False, index=True)
    bot_id = Column(String(255), nullable=False, index=True)
    student_name = Column(String(255), nullable=False)
    skill_type = Column(String(100), nullable=False)
    system_prompt = Column(Text, nullable=False)
    line_user_id = Column(String(255), nullable=False)
    user_input = Column(Text, nullable=False)
    bot_output = Column(Text, nullable=False)
    message_type = Column(String(20), nullable=False, default="text")
    created_at = Column(DateTime(timezone=True), nullable=False)
