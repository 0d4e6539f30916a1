# casamatch/adapters/repos/tasks.py
from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import Task, TaskStatus, TaskType, utcnow


class TaskRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_open(self, client_id: int, property_id: int, type: TaskType) -> Task | None:
        q = select(Task).where(
            Task.client_id == client_id,
            Task.property_id == property_id,
            Task.type == type,
            Task.status == TaskStatus.open,
        )
        return (await self.session.execute(q)).scalars().first()

    async def upsert_open(
        self,
        *,
        client_id: int,
        property_id: int,
        type: TaskType,
        title: str,
        due_date: date,
        description: str | None = None,
        target: str | None = None,
        notes: str | None = None,
        score: int | None = None,
    ) -> tuple[Task, bool]:
        """
        Natural key: (client_id, property_id, type) among open tasks.
        Completed tasks are history; a new match after completion opens a new task.
        """
        task = await self.get_open(client_id, property_id, type)

        was_created = False
        if task is None:
            task = Task(client_id=client_id, property_id=property_id, type=type, status=TaskStatus.open)
            self.session.add(task)
            was_created = True

        task.title = title
        task.description = description
        task.due_date = due_date
        task.target = target
        task.notes = notes
        task.score = score
        task.updated_at = utcnow()

        await self.session.flush()
        return task, was_created

    async def list_open(self) -> list[Task]:
        q = select(Task).where(Task.status == TaskStatus.open).order_by(Task.due_date, Task.id)
        return list((await self.session.execute(q)).scalars().all())
