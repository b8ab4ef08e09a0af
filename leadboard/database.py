"""LeadBoard — Database Engine & Session Factory.

PostgreSQL in production (optionally inside ``DB_SCHEMA``), a local SQLite
file otherwise. Routes get one session per request via ``get_session``.
"""

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.schema import CreateSchema
from sqlmodel import SQLModel, Session, create_engine

from leadboard.config import settings
from leadboard.core.logging import get_logger

logger = get_logger("database")

db_url = make_url(settings.effective_database_url)
IS_SQLITE = db_url.get_backend_name() == "sqlite"


def engine_options(is_sqlite: bool) -> dict:
    """Pool settings: small fixed pool for PostgreSQL, shared-thread SQLite."""
    if is_sqlite:
        return {"echo": False, "connect_args": {"check_same_thread": False}}
    return {
        "echo": False,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 0,
        "pool_recycle": 30,
        "connect_args": {"connect_timeout": 5},
    }


if IS_SQLITE:
    logger.info(f"📦 Database backend: SQLite ({db_url.database})")
else:
    logger.info(
        f"🐘 Database backend: PostgreSQL ({db_url.render_as_string(hide_password=True)})"
    )

engine = create_engine(db_url, **engine_options(IS_SQLITE))


def test_connection() -> bool:
    """True when the store answers SELECT 1; failures are logged, not raised."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"❌ Database unreachable: {e}")
        return False
    logger.info("✅ Database reachable")
    return True


def ping(session: Session) -> bool:
    """Run SELECT 1 on an open session; raises on store errors."""
    rows = session.connection().execute(text("SELECT 1 AS ping")).all()
    return len(rows) >= 1


def init_db() -> None:
    """Create the schema namespace (PostgreSQL only) and all tables."""
    if settings.db_schema and not IS_SQLITE:
        with engine.begin() as conn:
            conn.execute(CreateSchema(settings.db_schema, if_not_exists=True))
    SQLModel.metadata.create_all(engine)
    logger.info(f"🔨 Tables ready: {', '.join(sorted(SQLModel.metadata.tables))}")


def get_session():
    with Session(engine) as session:
        yield session
