"""
Database configuration and ORM models
Plugin registry, published versions, build records and download telemetry
"""

import logging
from datetime import datetime
from functools import lru_cache
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def _uuid() -> str:
    return str(uuid4())


class Plugin(Base):  # type: ignore[valid-type, misc]
    """Plugin registered in the marketplace and linked to a source repository"""

    __tablename__ = "plugins"

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    author_id = Column(String(255), nullable=False)
    repository_id = Column(BigInteger, nullable=True, index=True)
    repository_full_name = Column(String(255), nullable=True)
    plugin_subpath = Column(String(500), nullable=True)  # monorepos
    status = Column(String(20), default="draft", nullable=False)
    current_version = Column(String(50), nullable=True)
    downloads = Column(Integer, default=0, nullable=False)
    weekly_downloads = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    published_at = Column(DateTime, nullable=True)


class PluginVersion(Base):  # type: ignore[valid-type, misc]
    """Published artifact for one plugin version"""

    __tablename__ = "plugin_versions"
    __table_args__ = (UniqueConstraint("plugin_id", "version", name="uq_plugin_versions_plugin_version"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    plugin_id = Column(String(255), ForeignKey("plugins.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(String(50), nullable=False)
    changelog = Column(Text, nullable=True)
    download_url = Column(Text, nullable=False)
    checksum = Column(String(128), nullable=True)
    file_size = Column(Integer, nullable=True)
    is_latest = Column(Boolean, default=False, nullable=False)
    is_prerelease = Column(Boolean, default=False, nullable=False)
    downloads = Column(Integer, default=0, nullable=False)
    published_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PluginBuild(Base):  # type: ignore[valid-type, misc]
    """One attempt to build one plugin version from a release"""

    __tablename__ = "plugin_builds"

    id = Column(String(36), primary_key=True, default=_uuid)
    plugin_id = Column(String(255), ForeignKey("plugins.id", ondelete="CASCADE"), nullable=False, index=True)
    version_id = Column(String(36), ForeignKey("plugin_versions.id", ondelete="SET NULL"), nullable=True)
    version = Column(String(50), nullable=False)
    status: Column[str] = Column(
        Enum("pending", "building", "success", "failed", name="build_status"),
        default="pending",
        nullable=False,
        index=True,
    )
    source_event_id = Column(BigInteger, nullable=True, index=True)
    source_tag = Column(String(255), nullable=False)
    source_release_name = Column(String(255), nullable=True)
    source_archive_url = Column(Text, nullable=False)
    plugin_subpath = Column(String(500), nullable=True)
    is_prerelease = Column(Boolean, default=False, nullable=False)
    changelog = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    logs = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)


class PluginDownload(Base):  # type: ignore[valid-type, misc]
    """Append-only download event"""

    __tablename__ = "plugin_downloads"

    id = Column(String(36), primary_key=True, default=_uuid)
    plugin_id = Column(String(255), ForeignKey("plugins.id", ondelete="CASCADE"), nullable=False, index=True)
    version_id = Column(String(36), ForeignKey("plugin_versions.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(String(255), nullable=True)
    ip_hash = Column(String(16), nullable=True, index=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine, sharing one connection for in-memory SQLite"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,  # Recycle connections every hour
    )


def create_session_factory(database_url: str) -> sessionmaker:
    """Build a session factory bound to a new engine"""
    engine = create_db_engine(database_url)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@lru_cache()
def get_session_factory() -> sessionmaker:
    """Session factory for the configured database (used outside the web app)"""
    return create_session_factory(get_settings().database_url)


def init_db(session_factory: sessionmaker) -> None:
    """Create all tables that do not exist yet"""
    Base.metadata.create_all(bind=session_factory.kw["bind"])
    logger.info("Database schema initialized")
