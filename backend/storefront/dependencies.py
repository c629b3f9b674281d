from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import AsyncSessionLocal
from storefront.services.chat.service import ChatService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database session."""
    async with AsyncSessionLocal() as session:
        yield session


async def get_chat_service(db: AsyncSession = Depends(get_db)) -> ChatService:
    return ChatService(db=db)
