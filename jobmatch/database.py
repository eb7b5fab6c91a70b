"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for the skill catalog, job posting
requirements and candidate profiles.
"""

from datetime import datetime
from pathlib import Path

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


class SkillRow(Base):
    """Canonical skill."""

    __tablename__ = "skills"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    name_key = Column(String, nullable=False, unique=True)  # lowercased, whitespace-collapsed name
    category = Column(String, nullable=False, default="OTHER")
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    aliases = relationship("SkillAliasRow", back_populates="skill", cascade="all, delete-orphan")


class SkillAliasRow(Base):
    """Alternate spelling of a canonical skill."""

    __tablename__ = "skill_aliases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alias = Column(String, nullable=False)
    alias_key = Column(String, nullable=False, unique=True)
    skill_id = Column(Integer, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    skill = relationship("SkillRow", back_populates="aliases")


class SkillSimilarityRow(Base):
    """Undirected similarity edge, stored once with skill_id < related_skill_id."""

    __tablename__ = "skill_similarities"
    __table_args__ = (
        UniqueConstraint("skill_id", "related_skill_id", name="uq_similarity_pair"),
        CheckConstraint("skill_id < related_skill_id", name="ck_similarity_ordered_pair"),
        CheckConstraint("similarity_score >= 0 AND similarity_score <= 1", name="ck_similarity_range"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    skill_id = Column(Integer, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True)
    related_skill_id = Column(Integer, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True)
    similarity_score = Column(Float, nullable=False)


class JobPostingRow(Base):
    """Job posting header."""

    __tablename__ = "job_postings"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    location = Column(String, nullable=True)
    industry = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    skill_requirements = relationship(
        "JobSkillRequirementRow", cascade="all, delete-orphan", order_by="JobSkillRequirementRow.id"
    )
    experience_requirements = relationship(
        "ExperienceRequirementRow", cascade="all, delete-orphan", order_by="ExperienceRequirementRow.id"
    )
    education_requirements = relationship(
        "EducationRequirementRow", cascade="all, delete-orphan", order_by="EducationRequirementRow.id"
    )


class JobSkillRequirementRow(Base):
    __tablename__ = "job_skill_requirements"
    __table_args__ = (
        UniqueConstraint("job_posting_id", "skill_id", name="uq_requirement_posting_skill"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_posting_id = Column(String, ForeignKey("job_postings.id", ondelete="CASCADE"), nullable=False, index=True)
    skill_id = Column(Integer, ForeignKey("skills.id"), nullable=False, index=True)
    is_required = Column(Boolean, nullable=False, default=True)
    minimum_level = Column(String, nullable=True)
    years_required = Column(Float, nullable=True)
    priority = Column(Integer, nullable=False, default=1)  # 1 = required, 2 = bonus

    skill = relationship("SkillRow")


class ExperienceRequirementRow(Base):
    __tablename__ = "experience_requirements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_posting_id = Column(String, ForeignKey("job_postings.id", ondelete="CASCADE"), nullable=False, index=True)
    years = Column(Float, nullable=True)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, default="GENERAL")
    is_required = Column(Boolean, nullable=False, default=True)


class EducationRequirementRow(Base):
    __tablename__ = "education_requirements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_posting_id = Column(String, ForeignKey("job_postings.id", ondelete="CASCADE"), nullable=False, index=True)
    level = Column(String, nullable=False)
    field = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    is_required = Column(Boolean, nullable=False, default=True)


class CandidateRow(Base):
    """Candidate profile header."""

    __tablename__ = "candidates"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    declared_skills = relationship(
        "DeclaredSkillRow", cascade="all, delete-orphan", order_by="DeclaredSkillRow.id"
    )
    work_history = relationship(
        "WorkHistoryRow", cascade="all, delete-orphan", order_by="WorkHistoryRow.start_date.desc()"
    )
    education = relationship(
        "EducationRow", cascade="all, delete-orphan", order_by="EducationRow.id"
    )


class DeclaredSkillRow(Base):
    __tablename__ = "declared_skills"
    __table_args__ = (
        UniqueConstraint("candidate_id", "skill_id", name="uq_declared_candidate_skill"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    skill_id = Column(Integer, ForeignKey("skills.id"), nullable=False, index=True)
    proficiency = Column(String, nullable=False)
    years_experience = Column(Float, nullable=True)
    source = Column(String, nullable=False, default="OTHER")
    work_history_id = Column(Integer, ForeignKey("work_history.id", ondelete="SET NULL"), nullable=True)

    skill = relationship("SkillRow")


class WorkHistoryRow(Base):
    __tablename__ = "work_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    company_name = Column(String, nullable=False)
    job_title = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # NULL = current position


class EducationRow(Base):
    __tablename__ = "education"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    institution_name = Column(String, nullable=False)
    level = Column(String, nullable=False)
    degree_or_cert_name = Column(String, nullable=True)
    field = Column(String, nullable=True)
    end_date = Column(Date, nullable=True)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine(db_path: Path, busy_timeout: float = 30.0) -> Engine:
    """
    Create an engine usable from worker threads.

    Args:
        db_path: Path to SQLite database file
        busy_timeout: Seconds a writer waits on a locked database
    """
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": busy_timeout},
    )


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session_factory(db_path: Path) -> sessionmaker:
    """
    Get a session factory bound to one shared engine.

    Components take the factory and open one session per unit of work,
    so worker threads never share a session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy sessionmaker
    """
    return sessionmaker(bind=get_engine(db_path), expire_on_commit=False)


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    return get_session_factory(db_path)()
