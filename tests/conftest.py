"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List

from jobmatch.catalog import SkillCatalog
from jobmatch.database import get_session_factory, init_database
from jobmatch.ingestion import Ingestor
from jobmatch.logger import StructuredLogger, reset_logger
from jobmatch.models import (
    CandidateProfile,
    DeclaredSkill,
    EducationLevel,
    EducationRecord,
    EducationRequirement,
    ExperienceRequirement,
    JobPosting,
    ProficiencyLevel,
    Skill,
    SkillCategory,
    SkillRequirement,
    SkillSimilarity,
    WorkHistoryRecord,
)
from jobmatch.repository import Repository

TODAY = date(2024, 1, 1)


class InMemoryRepository(Repository):
    """Repository over plain dicts; records which similarity lookups were made."""

    def __init__(self):
        self.job_postings: Dict[str, JobPosting] = {}
        self.candidates: Dict[str, CandidateProfile] = {}
        self.similarities: Dict[int, List[SkillSimilarity]] = {}
        self.similarity_requests: List[List[int]] = []

    def get_job_posting(self, job_posting_id):
        return self.job_postings.get(job_posting_id)

    def get_candidate(self, candidate_id):
        return self.candidates.get(candidate_id)

    def get_similarities(self, skill_ids: Iterable[int]):
        ids = list(skill_ids)
        self.similarity_requests.append(ids)
        return {i: list(self.similarities.get(i, [])) for i in ids}


@pytest.fixture(autouse=True)
def fresh_global_logger():
    """Keep the process-wide logger from leaking between tests."""
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def logger(tmp_path) -> StructuredLogger:
    return StructuredLogger(
        name="jobmatch-test",
        level="DEBUG",
        log_dir=tmp_path / "logs",
        enable_file=False,
        enable_console=False,
    )


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Create a temporary database with all tables."""
    path = tmp_path / "test.db"
    init_database(path)
    return path


@pytest.fixture
def session_factory(db_path):
    factory = get_session_factory(db_path)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def catalog(session_factory, logger) -> SkillCatalog:
    return SkillCatalog(session_factory, logger=logger, max_workers=4)


@pytest.fixture
def ingestor(session_factory, catalog, logger) -> Ingestor:
    return Ingestor(session_factory, catalog, logger=logger)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def skills() -> Dict[str, Skill]:
    """A handful of catalog skills with stable ids."""
    return {
        "react": Skill(1, "React", SkillCategory.FRAMEWORK_LIBRARY),
        "kubernetes": Skill(2, "Kubernetes", SkillCategory.DEVOPS_TOOLS),
        "docker": Skill(3, "Docker", SkillCategory.DEVOPS_TOOLS),
        "python": Skill(4, "Python", SkillCategory.PROGRAMMING_LANGUAGE),
        "podman": Skill(5, "Podman", SkillCategory.DEVOPS_TOOLS),
    }


@pytest.fixture
def sample_job_posting(skills) -> JobPosting:
    """React (ADVANCED, 3y) and Kubernetes required; 5 years; a bachelors degree."""
    return JobPosting(
        id="job-1",
        title="Frontend Engineer",
        company="Acme",
        skill_requirements=(
            SkillRequirement(
                skill=skills["react"],
                minimum_level=ProficiencyLevel.ADVANCED,
                years_required=3,
                id=1,
            ),
            SkillRequirement(skill=skills["kubernetes"], id=2),
        ),
        experience_requirements=(
            ExperienceRequirement(description="Professional software development", years=5, id=1),
        ),
        education_requirements=(
            EducationRequirement(level=EducationLevel.BACHELORS, id=1),
        ),
    )


@pytest.fixture
def sample_candidate(skills) -> CandidateProfile:
    """React (INTERMEDIATE, 2y), Docker; 2.5 years of work; a masters degree."""
    return CandidateProfile(
        id="cand-1",
        name="Sam Doe",
        declared_skills=(
            DeclaredSkill(skill=skills["react"], proficiency=ProficiencyLevel.INTERMEDIATE, years_experience=2),
            DeclaredSkill(skill=skills["docker"], proficiency=ProficiencyLevel.ADVANCED),
        ),
        work_history=(
            # 183 days before TODAY -> 0.5 years
            WorkHistoryRecord("Beta", "Engineer", start_date=date(2023, 7, 2), id=2),
            # 730 days -> 2.0 years
            WorkHistoryRecord("Acme", "Junior Engineer", start_date=date(2020, 1, 1), end_date=date(2021, 12, 31), id=1),
        ),
        education=(
            EducationRecord("State University", EducationLevel.MASTERS, degree_or_cert_name="M.S. Computer Science"),
        ),
    )


@pytest.fixture
def job_payload() -> Dict[str, Any]:
    """Structured job posting as accepted by the ingest-job command."""
    return {
        "title": "Frontend Engineer",
        "company": "Acme",
        "location": "Remote",
        "industry": "Software",
        "requirements": {
            "technical_skills": [
                {"name": "React", "minimum_level": "ADVANCED", "years_required": 3},
                "Kubernetes",
            ],
            "soft_skills": ["Communication"],
            "education": [{"level": "BACHELORS", "field": "Computer Science"}],
            "experience": [{"years": 5, "description": "Professional software development"}],
        },
        "bonus_requirements": {
            "technical_skills": ["GraphQL"],
        },
    }


@pytest.fixture
def profile_payload() -> Dict[str, Any]:
    """Candidate profile as accepted by the ingest-profile command."""
    return {
        "name": "Sam Doe",
        "skills": [
            {"name": "react", "proficiency": "INTERMEDIATE", "years_experience": 2,
             "source": "WORK_EXPERIENCE", "work_history_index": 1},
            {"name": "Docker", "proficiency": "ADVANCED"},
        ],
        "work_history": [
            {"company_name": "Beta", "job_title": "Engineer", "start_date": "2023-07-02"},
            {"company_name": "Acme", "job_title": "Junior Engineer",
             "start_date": "2020-01-01", "end_date": "2021-12-31"},
        ],
        "education": [
            {"institution_name": "State University", "level": "MASTERS",
             "degree_or_cert_name": "M.S. Computer Science"},
        ],
    }
