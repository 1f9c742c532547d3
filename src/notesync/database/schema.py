"""SQLAlchemy database schema for notesync."""

from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Enum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)

from notesync.models.note import DBStatus

NOTE_TABLE = "note"
CATEGORY_TABLE = "category"

# Live rows that carry a remote id; used by the partial unique index
_LIVE_REMOTE_ROW = "remote_id IS NOT NULL AND remote_id != 0 AND status != 'LOCAL_DELETED'"


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class CategoryRecord(Base):
    """Database record for a category. Nested categories use '/' in the title."""

    __tablename__ = CATEGORY_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (
        UniqueConstraint("account_id", "title", name="uq_category_account_title"),
    )


class NoteRecord(Base):
    """Database record for a note."""

    __tablename__ = NOTE_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False)
    remote_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # 0 = uncategorized; otherwise category.id
    category_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    modified: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    etag: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[DBStatus] = mapped_column(
        Enum(
            DBStatus,
            name="db_status",
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=DBStatus.LOCAL_EDITED,
    )
    scroll_y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index(
            "uq_note_account_remote",
            "account_id",
            "remote_id",
            unique=True,
            sqlite_where=text(_LIVE_REMOTE_ROW),
            postgresql_where=text(_LIVE_REMOTE_ROW),
        ),
        Index("idx_note_account_status", "account_id", "status"),
        Index("idx_note_category", "category_id"),
    )


def get_engine(database_url: str) -> Engine:
    """Create database engine."""
    engine = create_engine(database_url, echo=False)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            try:
                # WAL lets readers run while the single writer commits
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.execute("PRAGMA busy_timeout=5000")
            finally:
                cursor.close()

    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create session factory."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_database(database_url: str) -> sessionmaker[Session]:
    """Initialize database and return session factory."""
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    return get_session_factory(engine)
