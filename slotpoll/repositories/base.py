"""Generic async CRUD repository over a single mapped model."""

from collections.abc import Mapping, Sequence
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement
from sqlalchemy.orm.interfaces import LoaderOption

from ..models.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class CrudRepository(Generic[ModelT]):
    """
    Find/create/update/delete on one collection.

    ``populate`` takes loader options (``selectinload(...)``) so related rows are
    resolved explicitly; lazy loading is not available on an ``AsyncSession``.
    Mutations are flushed, never committed; the caller owns the unit of work.
    Reads refresh instances already in the identity map, since bulk statements
    bypass it.
    """

    model: ClassVar[type[Base]]

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(
        self, id: int, populate: Sequence[LoaderOption] = ()
    ) -> ModelT | None:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == id)
            .options(*populate)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find(
        self,
        *criteria: ColumnElement[bool],
        populate: Sequence[LoaderOption] = (),
        order_by: Sequence[Any] = (),
    ) -> list[ModelT]:
        query = (
            select(self.model)
            .where(*criteria)
            .options(*populate)
            .execution_options(populate_existing=True)
        )
        query = query.order_by(*order_by) if order_by else query.order_by(self.model.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, **values: Any) -> ModelT:
        instance = self.model(**values)
        self.db.add(instance)
        await self.db.flush()
        return instance  # type: ignore[return-value]

    async def find_by_id_and_update(
        self,
        id: int,
        values: Mapping[str, Any],
        populate: Sequence[LoaderOption] = (),
    ) -> ModelT | None:
        instance = await self.find_by_id(id, populate=populate)
        if instance is None:
            return None

        for field, value in values.items():
            setattr(instance, field, value)

        await self.db.flush()
        return instance

    async def find_by_id_and_delete(
        self, id: int, populate: Sequence[LoaderOption] = ()
    ) -> ModelT | None:
        instance = await self.find_by_id(id, populate=populate)
        if instance is None:
            return None

        await self.db.delete(instance)
        await self.db.flush()
        return instance

    async def update_many(
        self, *criteria: ColumnElement[bool], values: Mapping[str, Any]
    ) -> int:
        result = await self.db.execute(
            update(self.model).where(*criteria).values(**values)
        )
        return result.rowcount

    async def delete_many(self, *criteria: ColumnElement[bool]) -> int:
        result = await self.db.execute(
            delete(self.model).where(*criteria)
        )
        return result.rowcount

    async def count(self, *criteria: ColumnElement[bool]) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(self.model).where(*criteria)
        )
        return result.scalar() or 0
