"""
Relational Storage Implementation

SQLAlchemy-backed store for SQLite (local use, tests) and PostgreSQL
(hosted deployments).

Layout:
    users(id, email UNIQUE, name, created_at)
    expenses(id, user_id -> users.id, amount NUMERIC(10,2), description,
             category VARCHAR(100), date TIMESTAMP, created_at)

DESIGN DECISION: Email uniqueness is a database constraint, not a
read-then-write check. Two processes racing to create the same user
make one insert fail with an IntegrityError, which we surface as
ConflictError so the login flow can re-read the winner.

Monthly stats are grouped by the database itself (strftime on SQLite,
to_char on PostgreSQL), the results must match the in-process aggregator.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from expense_tracker.logs import get_logger
from expense_tracker.models.expense import (
    Expense,
    ExpenseInput,
    ExpenseUpdate,
    MonthlyStat,
    User,
    quantize_amount,
)
from expense_tracker.services.storage.interface import (
    ConflictError,
    ConnectionError,
    ExpenseStorageInterface,
    StorageError,
    month_bounds,
)


logger = get_logger(__name__)

# Ids outside a signed 64-bit INTEGER cannot exist in the table
MAX_ID = 2**63 - 1


def _storable(*ids: int) -> bool:
    return all(0 < i <= MAX_ID for i in ids)


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )


class ExpenseRow(Base):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )


def create_sql_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Build an engine for `database_url`.

    In-memory SQLite gets a single shared connection, otherwise every
    session would see its own empty database.
    """
    kwargs = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


class SQLExpenseStorage(ExpenseStorageInterface):
    """
    SQLAlchemy implementation of the expense store.

    Every operation runs in its own short transaction.
    """

    def __init__(self, engine: Engine, create_tables: bool = True):
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        if create_tables:
            try:
                Base.metadata.create_all(engine)
            except OperationalError as e:
                raise ConnectionError(f"Failed to connect to database: {e}")

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SQLExpenseStorage":
        return cls(create_sql_engine(database_url, echo=echo))

    def _to_user(self, row: UserRow) -> User:
        return User.model_validate(row, from_attributes=True)

    def _to_expense(self, row: ExpenseRow) -> Expense:
        return Expense.model_validate(row, from_attributes=True)

    async def get_user(self, user_id: int) -> Optional[User]:
        if not _storable(user_id):
            return None
        try:
            with self._sessions() as session:
                row = session.get(UserRow, user_id)
                return self._to_user(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}")

    async def get_user_by_email(self, email: str) -> Optional[User]:
        try:
            with self._sessions() as session:
                row = session.scalars(
                    select(UserRow).where(UserRow.email == email).limit(1)
                ).first()
                return self._to_user(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}")

    async def create_user(self, email: str, name: str) -> User:
        try:
            with self._sessions() as session, session.begin():
                row = UserRow(email=email, name=name, created_at=datetime.utcnow())
                session.add(row)
                session.flush()
                return self._to_user(row)
        except IntegrityError:
            raise ConflictError(email)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create user: {e}")

    async def list_expenses(
        self,
        user_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[Expense]:
        query = select(ExpenseRow).where(ExpenseRow.user_id == user_id)
        if year is not None and month is not None:
            start, end = month_bounds(year, month)
            query = query.where(ExpenseRow.date >= start, ExpenseRow.date < end)
        # id breaks date ties in insertion order
        query = query.order_by(ExpenseRow.date.desc(), ExpenseRow.id.asc())

        try:
            with self._sessions() as session:
                return [self._to_expense(row) for row in session.scalars(query)]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list expenses: {e}")

    async def create_expense(self, user_id: int, expense: ExpenseInput) -> Expense:
        try:
            with self._sessions() as session, session.begin():
                row = ExpenseRow(
                    user_id=user_id,
                    created_at=datetime.utcnow(),
                    **expense.model_dump(),
                )
                session.add(row)
                session.flush()
                return self._to_expense(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def update_expense(
        self,
        expense_id: int,
        user_id: int,
        changes: ExpenseUpdate,
    ) -> Optional[Expense]:
        if not _storable(expense_id, user_id):
            return None
        try:
            with self._sessions() as session, session.begin():
                row = session.scalars(
                    select(ExpenseRow)
                    .where(ExpenseRow.id == expense_id, ExpenseRow.user_id == user_id)
                    .with_for_update()
                ).first()
                if row is None:
                    return None
                for field, value in changes.changes().items():
                    setattr(row, field, value)
                session.flush()
                return self._to_expense(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update expense: {e}")

    async def delete_expense(self, expense_id: int, user_id: int) -> bool:
        if not _storable(expense_id, user_id):
            return False
        try:
            with self._sessions() as session, session.begin():
                row = session.scalars(
                    select(ExpenseRow).where(
                        ExpenseRow.id == expense_id, ExpenseRow.user_id == user_id
                    )
                ).first()
                if row is None:
                    return False
                session.delete(row)
                return True
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete expense: {e}")

    def _month_expression(self):
        """SQL expression producing the YYYY-MM key of expenses.date."""
        if self._engine.dialect.name == "sqlite":
            return func.strftime("%Y-%m", ExpenseRow.date)
        return func.to_char(ExpenseRow.date, "YYYY-MM")

    async def get_monthly_stats(self, user_id: int) -> list[MonthlyStat]:
        month = self._month_expression().label("month")
        query = (
            select(
                month,
                func.sum(ExpenseRow.amount).label("total"),
                func.count(ExpenseRow.id).label("count"),
            )
            .where(ExpenseRow.user_id == user_id)
            .group_by(month)
            .order_by(month.desc())
        )

        try:
            with self._sessions() as session:
                rows = session.execute(query).all()
        except SQLAlchemyError as e:
            logger.error("monthly_stats_query_failed", user_id=user_id, error=str(e))
            raise StorageError(f"Failed to compute monthly stats: {e}")

        return [
            MonthlyStat(
                month=row.month,
                total=quantize_amount(Decimal(str(row.total))),
                count=int(row.count),
            )
            for row in rows
        ]
