from sqlalchemy import Column, DateTime, String, Text, func

from slabot.database import Base


class Bot(Base):
    __tablename__ = "bots"

    id = Column(String(255), primary_key=True)
    student_name = Column(String(255), nullable=False)
    skill_type = Column(String(100), nullable=False)
    channel_access_token = Column(Text, nullable=False)
    channel_secret = Column(String(255), nullable=False)
    system_prompt = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
