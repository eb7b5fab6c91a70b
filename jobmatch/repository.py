"""
Read-side collaborators for the analyzer.

Responsibilities:
- Fetch a job posting with all of its requirements.
- Fetch a candidate profile (declared skills, work history, education).
- Fetch similarity edges for a set of skills.
- Convert rows into immutable domain records.

Non-Responsibilities:
- No scoring.
- No writes.

Invariant:
Repositories must not encode domain decisions.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload, sessionmaker

from .database import (
    CandidateRow,
    DeclaredSkillRow,
    EducationRequirementRow,
    EducationRow,
    ExperienceRequirementRow,
    JobPostingRow,
    JobSkillRequirementRow,
    SkillRow,
    SkillSimilarityRow,
    WorkHistoryRow,
)
from .models import (
    CandidateProfile,
    DeclaredSkill,
    EducationLevel,
    EducationRecord,
    EducationRequirement,
    ExperienceCategory,
    ExperienceRequirement,
    JobPosting,
    ProficiencyLevel,
    Skill,
    SkillCategory,
    SkillRequirement,
    SkillSimilarity,
    SkillSource,
    WorkHistoryRecord,
)


class Repository:
    """Interface the analyzer reads through. Missing entities come back as None."""

    def get_job_posting(self, job_posting_id: str) -> Optional[JobPosting]:
        raise NotImplementedError

    def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        raise NotImplementedError

    def get_similarities(self, skill_ids: Iterable[int]) -> Dict[int, List[SkillSimilarity]]:
        """Return edges keyed by the requested skill id, strongest first."""
        raise NotImplementedError


# Row -> domain conversion

def to_skill(row: SkillRow) -> Skill:
    return Skill(id=row.id, name=row.name, category=SkillCategory(row.category))


def _to_skill_requirement(row: JobSkillRequirementRow) -> SkillRequirement:
    return SkillRequirement(
        id=row.id,
        skill=to_skill(row.skill),
        is_required=row.is_required,
        minimum_level=ProficiencyLevel(row.minimum_level) if row.minimum_level else None,
        years_required=row.years_required,
        priority=row.priority,
    )


def _to_experience_requirement(row: ExperienceRequirementRow) -> ExperienceRequirement:
    return ExperienceRequirement(
        id=row.id,
        description=row.description,
        years=row.years,
        category=ExperienceCategory(row.category),
        is_required=row.is_required,
    )


def _to_education_requirement(row: EducationRequirementRow) -> EducationRequirement:
    return EducationRequirement(
        id=row.id,
        level=EducationLevel(row.level),
        field=row.field,
        description=row.description,
        is_required=row.is_required,
    )


def _to_declared_skill(row: DeclaredSkillRow) -> DeclaredSkill:
    return DeclaredSkill(
        skill=to_skill(row.skill),
        proficiency=ProficiencyLevel(row.proficiency),
        years_experience=row.years_experience,
        source=SkillSource(row.source),
        work_history_id=row.work_history_id,
    )


def _to_work_history(row: WorkHistoryRow) -> WorkHistoryRecord:
    return WorkHistoryRecord(
        id=row.id,
        company_name=row.company_name,
        job_title=row.job_title,
        start_date=row.start_date,
        end_date=row.end_date,
    )


def _to_education(row: EducationRow) -> EducationRecord:
    return EducationRecord(
        id=row.id,
        institution_name=row.institution_name,
        level=EducationLevel(row.level),
        degree_or_cert_name=row.degree_or_cert_name,
        field=row.field,
        end_date=row.end_date,
    )


def load_similarities(session, skill_ids: Iterable[int]) -> Dict[int, List[SkillSimilarity]]:
    """
    Read similarity edges touching any of ``skill_ids``, in both directions.

    Each list is ordered by score descending, then related skill id.
    """
    ids = set(skill_ids)
    result: Dict[int, List[SkillSimilarity]] = {skill_id: [] for skill_id in ids}
    if not ids:
        return result

    edges = session.scalars(
        select(SkillSimilarityRow).where(
            or_(
                SkillSimilarityRow.skill_id.in_(ids),
                SkillSimilarityRow.related_skill_id.in_(ids),
            )
        )
    ).all()

    endpoint_ids = {e.skill_id for e in edges} | {e.related_skill_id for e in edges}
    skills = {
        row.id: to_skill(row)
        for row in session.scalars(select(SkillRow).where(SkillRow.id.in_(endpoint_ids)))
    }

    for edge in edges:
        for source, other in ((edge.skill_id, edge.related_skill_id), (edge.related_skill_id, edge.skill_id)):
            if source in ids:
                result[source].append(
                    SkillSimilarity(skill_id=source, related_skill=skills[other], score=edge.similarity_score)
                )

    for edges_for_skill in result.values():
        edges_for_skill.sort(key=lambda s: (-s.score, s.related_skill.id))
    return result


class SqlRepository(Repository):
    """Repository backed by the SQLAlchemy schema in ``database.py``."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_job_posting(self, job_posting_id: str) -> Optional[JobPosting]:
        with self.session_factory() as session:
            row = session.get(
                JobPostingRow,
                job_posting_id,
                options=[
                    selectinload(JobPostingRow.skill_requirements).selectinload(JobSkillRequirementRow.skill),
                    selectinload(JobPostingRow.experience_requirements),
                    selectinload(JobPostingRow.education_requirements),
                ],
            )
            if row is None:
                return None
            return JobPosting(
                id=row.id,
                title=row.title,
                company=row.company,
                location=row.location,
                industry=row.industry,
                skill_requirements=tuple(_to_skill_requirement(r) for r in row.skill_requirements),
                experience_requirements=tuple(_to_experience_requirement(r) for r in row.experience_requirements),
                education_requirements=tuple(_to_education_requirement(r) for r in row.education_requirements),
            )

    def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        with self.session_factory() as session:
            row = session.get(
                CandidateRow,
                candidate_id,
                options=[
                    selectinload(CandidateRow.declared_skills).selectinload(DeclaredSkillRow.skill),
                    selectinload(CandidateRow.work_history),
                    selectinload(CandidateRow.education),
                ],
            )
            if row is None:
                return None
            return CandidateProfile(
                id=row.id,
                name=row.name,
                declared_skills=tuple(_to_declared_skill(r) for r in row.declared_skills),
                work_history=tuple(_to_work_history(r) for r in row.work_history),
                education=tuple(_to_education(r) for r in row.education),
            )

    def get_similarities(self, skill_ids: Iterable[int]) -> Dict[int, List[SkillSimilarity]]:
        with self.session_factory() as session:
            return load_similarities(session, skill_ids)
