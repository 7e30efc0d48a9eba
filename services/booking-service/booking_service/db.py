from shared.database import Base, get_engine, get_session

from .config import BOOKING_DB

engine = get_engine(BOOKING_DB)

SessionLocal = get_session(engine)

__all__ = ["Base", "engine", "SessionLocal"]
