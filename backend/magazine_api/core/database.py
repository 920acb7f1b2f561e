from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from magazine_api.core.settings import settings

SQLALCHEMY_DATABASE_URL = settings.database_url


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    try:
        url = make_url(database_url)
    except Exception:
        return {}
    # Supabase Postgres only accepts TLS connections.
    if (url.drivername or "").startswith("postgresql") and "sslmode" not in url.query:
        return {"sslmode": "require"}
    return {}


engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=_connect_args(SQLALCHEMY_DATABASE_URL), pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
