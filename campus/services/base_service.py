# campus/services/base_service.py
"""Base service with common CRUD operations."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.sql import Select
from typing import Type, Any, Dict, Optional, List, Tuple, TypeVar, Generic

from ..core.exceptions import NotFoundError

T = TypeVar('T')


class BaseService(Generic[T]):
    resource_name = "Resource"

    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    def base_query(self, include_deleted: bool = False) -> Select:
        stmt = select(self.model)
        if hasattr(self.model, 'is_deleted') and not include_deleted:
            stmt = stmt.where(self.model.is_deleted == False)
        return stmt

    async def get(self, id: Any, include_deleted: bool = False) -> Optional[T]:
        stmt = self.base_query(include_deleted).where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_404(self, id: Any) -> T:
        obj = await self.get(id)
        if obj is None:
            raise NotFoundError(self.resource_name)
        return obj

    async def paginate(self, stmt: Select, page: int = 1, limit: int = 20) -> Tuple[List[Any], int]:
        """Run ``stmt`` for one page and count every matching row."""
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset((page - 1) * limit).limit(limit))
        return list(result.scalars().all()), total

    async def create(self, obj_in: Dict, commit: bool = True) -> T:
        obj = self.model(**obj_in)
        self.db.add(obj)
        if commit:
            await self.db.commit()
            await self.db.refresh(obj)
        else:
            await self.db.flush()
        return obj

    async def update(self, obj: T, obj_in: Dict) -> T:
        for key, value in obj_in.items():
            setattr(obj, key, value)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def soft_delete(self, obj: T) -> bool:
        if hasattr(obj, "is_deleted"):
            obj.is_deleted = True
            await self.db.commit()
            return True
        return False
