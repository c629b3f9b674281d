from pydantic import BaseModel
from typing import Optional


class KnowledgeChunk(BaseModel):
    """One embedded policy/document row returned by nearest-neighbor search."""

    id: str
    source: str
    source_id: Optional[str] = None
    title: Optional[str] = None
    content: str
    distance: float
