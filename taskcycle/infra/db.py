from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker

from taskcycle.config import SETTINGS

engine = create_engine(SETTINGS.database_url, pool_pre_ping=True, echo=SETTINGS.sql_echo)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
Base = declarative_base()


def init_db(bind=None) -> None:
    bind = bind or engine
    with bind.connect() as connection:
        connection.execute(text("SELECT 1"))

    from . import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(bind)
