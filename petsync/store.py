from pathlib import Path
from time import time
from typing import Optional

from sqlalchemy import Column, Integer, String
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine, select


class Trigger(SQLModel, table=True):
    __tablename__ = "triggers"

    id: int | None = Field(default=None, primary_key=True)
    handler: str = Field(sa_column=Column(String, nullable=False, index=True))
    period_minutes: int = Field(sa_column=Column(Integer, nullable=False))
    created_at: int = Field(sa_column=Column(Integer, nullable=False))
    last_run_at: int | None = Field(
        default=None, sa_column=Column(Integer, nullable=True)
    )


class TriggerStore:
    """SQLite-backed list of scheduled handler invocations."""

    def __init__(self, db_path: str = "petsync.db") -> None:
        self.db_path = db_path
        self.engine: Engine | None = None

    def _get_engine(self) -> Engine:
        if self.engine is None:
            path = Path(self.db_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(f"sqlite:///{path}", echo=False)
            SQLModel.metadata.create_all(self.engine)
        return self.engine

    def init_db(self) -> None:
        self._get_engine()

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def find(self, handler: Optional[str] = None) -> list[Trigger]:
        with Session(self._get_engine()) as session:
            stmt = select(Trigger)
            if handler is not None:
                stmt = stmt.where(Trigger.handler == handler)
            return list(session.exec(stmt.order_by(Trigger.id)))

    def add(self, handler: str, period_minutes: int, now: Optional[int] = None) -> Trigger:
        trigger = Trigger(
            handler=handler,
            period_minutes=period_minutes,
            created_at=int(now if now is not None else time()),
        )
        with Session(self._get_engine()) as session:
            session.add(trigger)
            session.commit()
            session.refresh(trigger)
            return trigger

    def delete_for(self, handler: str) -> int:
        with Session(self._get_engine()) as session:
            found = list(session.exec(select(Trigger).where(Trigger.handler == handler)))
            for trigger in found:
                session.delete(trigger)
            session.commit()
            return len(found)

    def mark_run(self, trigger_id: int, at: Optional[int] = None) -> None:
        with Session(self._get_engine()) as session:
            trigger = session.get(Trigger, trigger_id)
            if trigger is None:
                return
            trigger.last_run_at = int(at if at is not None else time())
            session.add(trigger)
            session.commit()
