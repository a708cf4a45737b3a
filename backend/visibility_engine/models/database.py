"""
Visibility Engine Database Models
PostgreSQL (asyncpg) in production, SQLite (aiosqlite) in tests
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime,
    ForeignKey, Enum, JSON, Index, UniqueConstraint, Uuid
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class SubscriptionTier(str, PyEnum):
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    AGENCY = "agency"


class LLMProvider(str, PyEnum):
    CHATGPT = "chatgpt"
    CLAUDE = "claude"
    PERPLEXITY = "perplexity"
    GEMINI = "gemini"
    COPILOT = "copilot"
    GEMINI_AI_MODE = "gemini_ai_mode"  # Google AI Mode search answers
    GROK = "grok"


class ScheduleFrequency(str, PyEnum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class CheckSource(str, PyEnum):
    MANUAL = "manual"        # user pressed "Run Check"
    SCHEDULED = "scheduled"  # fired by the periodic trigger


# ============================================================================
# USER & PROJECT
# ============================================================================

class User(Base):
    """Account that owns projects; its tier gates engine features"""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)

    subscription_tier = Column(Enum(SubscriptionTier), default=SubscriptionTier.FREE, nullable=False)

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    projects = relationship("Project", back_populates="owner", cascade="all, delete-orphan")


class Project(Base):
    """A tracking project for a specific brand/domain"""
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False)

    # Current provider selection, replaced wholesale by presets
    enabled_llms = Column(JSON, default=lambda: ["chatgpt", "claude", "perplexity", "gemini"])

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", back_populates="projects")
    competitors = relationship("Competitor", back_populates="project", cascade="all, delete-orphan")
    keywords = relationship("Keyword", back_populates="project", cascade="all, delete-orphan")
    schedules = relationship("ScheduledQuery", back_populates="project", cascade="all, delete-orphan")
    preferences = relationship("ProjectPreference", back_populates="project", cascade="all, delete-orphan")


class Competitor(Base):
    """Competitor domains, read-only input to gap analysis"""
    __tablename__ = "competitors"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="competitors")


class Keyword(Base):
    """Persisted query text checks are run against"""
    __tablename__ = "keywords"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    keyword = Column(String(500), nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="keywords")

    __table_args__ = (
        Index('idx_keyword_project', 'project_id', 'keyword'),
    )


class ProjectPreference(Base):
    """Durable per-project UI preference (e.g. dismissed suggestions)"""
    __tablename__ = "project_preferences"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    key = Column(String(100), nullable=False)
    value = Column(JSON, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="preferences")

    __table_args__ = (
        UniqueConstraint('project_id', 'key', name='uq_project_preference_key'),
    )


# ============================================================================
# SCHEDULES & CHECKS
# ============================================================================

class ScheduledQuery(Base):
    """Recurring (query, providers, frequency) check definition"""
    __tablename__ = "scheduled_queries"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    query = Column(Text, nullable=False)
    providers = Column(JSON, nullable=False)
    frequency = Column(Enum(ScheduleFrequency), nullable=False)

    enabled = Column(Boolean, default=True, nullable=False)
    last_run_at = Column(DateTime)
    next_run_at = Column(DateTime, nullable=False)

    # Set while a trigger owns the run; expires after the claim lease
    claimed_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="schedules")

    __table_args__ = (
        Index('idx_sched_project', 'project_id'),
        Index('idx_sched_next_run', 'next_run_at', 'enabled'),
    )


class VisibilityCheck(Base):
    """Result of one (query, provider) test - append-only, never updated"""
    __tablename__ = "visibility_checks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    keyword_id = Column(Uuid, ForeignKey("keywords.id", ondelete="SET NULL"))
    # No FK: the schedule may be deleted while its run is still recording
    schedule_id = Column(Uuid)

    # Plain string so rows from deprecated providers stay readable
    llm_provider = Column(String(50), nullable=False)
    query = Column(Text, nullable=False)

    brand_mentioned = Column(Boolean, default=False, nullable=False)
    url_cited = Column(Boolean, default=False, nullable=False)
    citation_position = Column(Integer)
    response_text = Column(Text)
    competitor_mentions = Column(JSON, default=list)

    region = Column(String(10))
    language = Column(String(10))

    batch_id = Column(Uuid, nullable=False)
    source = Column(Enum(CheckSource), default=CheckSource.MANUAL, nullable=False)

    checked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_vis_project', 'project_id', 'checked_at'),
        Index('idx_vis_batch', 'batch_id'),
    )
