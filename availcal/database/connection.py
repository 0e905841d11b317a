from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from availcal.models.base import Base
import availcal.models  # noqa: F401  registers all tables with Base.metadata
import os
import logging

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, db_path=None, database_url=None):
        if database_url is None:
            if db_path is None:
                db_path = os.path.expanduser('~/.availcal/calendar.db')
            database_url = f'sqlite:///{db_path}'

        self.db_path = db_path
        self.database_url = database_url
        is_sqlite = database_url.startswith('sqlite')

        self.engine = create_engine(
            database_url,
            pool_pre_ping=True,
            connect_args={'check_same_thread': False} if is_sqlite else {}
        )

        if is_sqlite:
            # Exception rows rely on ON DELETE CASCADE
            @event.listens_for(self.engine, 'connect')
            def enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute('PRAGMA foreign_keys=ON')
                cursor.close()

        # Create all tables
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created successfully")

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine
        )

    def get_session(self):
        return self.SessionLocal()

    @contextmanager
    def session_scope(self):
        """Session that commits on success and rolls back on any error"""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def drop_all(self):
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()
