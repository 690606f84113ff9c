from stockpilot.database.base import Base
from stockpilot.database.engine import build_engine, engine
from stockpilot.database.session import SessionLocal, get_db, make_session_factory

__all__ = ["Base", "SessionLocal", "build_engine", "engine", "get_db", "make_session_factory"]
