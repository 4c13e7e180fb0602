import logging
from abc import ABC, abstractmethod
from copy import deepcopy
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from config import settings

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Database Models
class Option(Base):
    __tablename__ = "options"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(191), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class OptionStore(ABC):
    """Named key-value bundles owned by the host application."""

    @abstractmethod
    def get_option(self, name: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        ...

    @abstractmethod
    def update_option(self, name: str, value: Dict[str, Any]) -> None:
        ...


class SqlOptionStore(OptionStore):
    def __init__(self, db: Session):
        self.db = db

    def get_option(self, name: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        option = self.db.query(Option).filter(Option.name == name).first()

        if option is None:
            return dict(default or {})

        return dict(option.value)

    def update_option(self, name: str, value: Dict[str, Any]) -> None:
        option = self.db.query(Option).filter(Option.name == name).first()

        if option:
            # Assign a new dict so the JSON column is flagged dirty
            option.value = dict(value)
        else:
            self.db.add(Option(name=name, value=dict(value)))

        self.db.commit()
        logger.debug("Stored option %s", name)


class InMemoryOptionStore(OptionStore):
    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self.options: Dict[str, Dict[str, Any]] = deepcopy(initial) if initial else {}

    def get_option(self, name: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if name not in self.options:
            return dict(default or {})
        return deepcopy(self.options[name])

    def update_option(self, name: str, value: Dict[str, Any]) -> None:
        self.options[name] = deepcopy(value)


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
