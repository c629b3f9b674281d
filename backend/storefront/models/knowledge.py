from sqlalchemy import Column, String, Text, DateTime
from pgvector.sqlalchemy import Vector
from datetime import datetime
import uuid

from storefront.db.base import Base
from storefront.core.config import settings


class KnowledgeBaseEntry(Base):
    __tablename__ = "knowledge_base"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    source = Column(String, nullable=False, index=True)  # e.g. "policy"
    source_id = Column(String, nullable=True)  # e.g. "shipping"
    title = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    embedding = Column(Vector(settings.VECTOR_DIMENSIONS), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
