from contextlib import asynccontextmanager
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, text, func, event
from sqlalchemy.exc import SQLAlchemyError
from appscope.config import settings
from appscope.errors import StorageError
import structlog

logger = structlog.get_logger()

Base = declarative_base()


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    app_id = Column(String, nullable=False)
    event = Column(String, nullable=False)
    user_id = Column(String, nullable=False)
    properties = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    event_date = Column(Date, nullable=False)


class Feedback(Base):
    __tablename__ = "feedbacks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    app_id = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    user_id = Column(String, nullable=True)
    contact = Column(String, nullable=True)
    properties = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_events_app_date ON events(app_id, event_date)",
    "CREATE INDEX IF NOT EXISTS idx_events_user ON events(app_id, user_id, event_date)",
    "CREATE INDEX IF NOT EXISTS idx_feedbacks_app ON feedbacks(app_id, created_at DESC)",
)


class Database:
    """Owns the async engine and its bounded connection pool.

    One instance is shared by every request; the pool serializes access
    beyond ``pool_size`` concurrent connections.
    """

    def __init__(self, url: Optional[str] = None, pool_size: Optional[int] = None):
        self.url = url or settings.database_url
        self.pool_size = settings.database_pool_size if pool_size is None else pool_size
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker] = None

    async def connect(self):
        pool_options = {}
        # in-memory SQLite runs on a StaticPool, which takes no sizing options
        if ":memory:" not in self.url:
            pool_options = {"pool_size": self.pool_size, "max_overflow": 0}

        self.engine = create_async_engine(self.url, echo=False, pool_pre_ping=True, **pool_options)
        if self.engine.dialect.name == "sqlite":
            _emit_sqlite_begin(self.engine)
        self.session_maker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        logger.info("database_connected", dialect=self.engine.dialect.name, pool_size=self.pool_size)

    async def init_db(self):
        async with storage_errors("init_db"):
            async with self.get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                for statement in INDEXES:
                    await conn.execute(text(statement))

    async def close(self):
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_maker = None

    def get_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise StorageError("Database is not connected")
        return self.engine

    def session(self) -> AsyncSession:
        if self.session_maker is None:
            raise StorageError("Database is not connected")
        return self.session_maker()

    @property
    def dialect(self) -> str:
        return self.get_engine().dialect.name


def _emit_sqlite_begin(engine: AsyncEngine):
    """Start SQLite transactions with an explicit BEGIN.

    The sqlite3 driver only opens a transaction before DML, so two SELECTs
    in one session would otherwise each see whatever was committed last.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


@asynccontextmanager
async def storage_errors(operation: str):
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        logger.error("storage_failed", operation=operation, error=str(e))
        raise StorageError(f"{operation} failed: {e}") from e


database = Database()


async def get_database() -> Database:
    return database
