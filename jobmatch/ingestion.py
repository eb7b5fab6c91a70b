"""
Ingestion of structured job postings and candidate profiles.

Raw skill names are resolved through the catalog first, so every stored
requirement and declared skill references a canonical skill. Skill rows
are written with one ``INSERT ... ON CONFLICT DO NOTHING`` statement per
posting or profile, inside the same transaction as the rest of the record.
"""

import uuid
from typing import Dict, List, Optional, Tuple

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import sessionmaker

from .catalog import SkillCatalog
from .database import (
    CandidateRow,
    DeclaredSkillRow,
    EducationRequirementRow,
    EducationRow,
    ExperienceRequirementRow,
    JobPostingRow,
    JobSkillRequirementRow,
    WorkHistoryRow,
)
from .errors import ValidationError
from .logger import StructuredLogger, get_logger
from .models import (
    BONUS_PRIORITY,
    REQUIRED_PRIORITY,
    CandidateProfileInput,
    JobRequirements,
    SkillCategory,
    SkillRequirementInput,
)


def _new_id() -> str:
    return uuid.uuid4().hex


class Ingestor:
    """Writes job postings and candidate profiles that the analyzer later reads."""

    def __init__(
        self,
        session_factory: sessionmaker,
        catalog: SkillCatalog,
        logger: Optional[StructuredLogger] = None,
    ):
        self.session_factory = session_factory
        self.catalog = catalog
        self.logger = logger or get_logger()

    def ingest_job_posting(self, requirements: JobRequirements, job_posting_id: Optional[str] = None) -> Dict:
        """
        Store a job posting and its requirements.

        Re-ingesting an existing id replaces all of its requirements. A skill
        listed as both required and bonus is stored once, as required.

        Returns:
            Dict with job_posting_id and per-kind requirement counts
        """
        if not requirements.title.strip() or not requirements.company.strip():
            raise ValidationError("Job posting must have title and company")

        technical: List[Tuple[SkillRequirementInput, bool]] = [
            (entry, True) for entry in requirements.required.technical_skills
        ] + [(entry, False) for entry in requirements.bonus.technical_skills]
        soft: List[Tuple[SkillRequirementInput, bool]] = [
            (entry, True) for entry in requirements.required.soft_skills
        ] + [(entry, False) for entry in requirements.bonus.soft_skills]

        technical_skills = self.catalog.resolve_batch([e.name for e, _ in technical])
        soft_skills = self.catalog.resolve_batch([e.name for e, _ in soft], SkillCategory.SOFT_SKILLS)

        # Required entries come first in both lists, so they win on duplicates
        resolved = sorted(
            zip(technical + soft, technical_skills + soft_skills),
            key=lambda pair: not pair[0][1],
        )

        job_posting_id = job_posting_id or _new_id()
        skill_rows = []
        seen = set()
        for (entry, is_required), skill in resolved:
            if skill.id in seen:
                continue
            seen.add(skill.id)
            skill_rows.append({
                "job_posting_id": job_posting_id,
                "skill_id": skill.id,
                "is_required": is_required,
                "minimum_level": entry.minimum_level.value if entry.minimum_level else None,
                "years_required": entry.years_required,
                "priority": REQUIRED_PRIORITY if is_required else BONUS_PRIORITY,
            })

        with self.session_factory() as session, session.begin():
            posting = session.get(JobPostingRow, job_posting_id)
            if posting is None:
                posting = JobPostingRow(id=job_posting_id)
                session.add(posting)
            else:
                posting.skill_requirements.clear()
                posting.experience_requirements.clear()
                posting.education_requirements.clear()

            posting.title = requirements.title.strip()
            posting.company = requirements.company.strip()
            posting.location = requirements.location
            posting.industry = requirements.industry

            for requirement_set, is_required in ((requirements.required, True), (requirements.bonus, False)):
                for exp in requirement_set.experience:
                    posting.experience_requirements.append(ExperienceRequirementRow(
                        years=exp.years,
                        description=exp.description,
                        category=exp.category.value,
                        is_required=is_required,
                    ))
                for edu in requirement_set.education:
                    posting.education_requirements.append(EducationRequirementRow(
                        level=edu.level.value,
                        field=edu.field,
                        description=edu.description,
                        is_required=is_required,
                    ))
            session.flush()

            if skill_rows:
                session.execute(
                    sqlite_insert(JobSkillRequirementRow)
                    .values(skill_rows)
                    .on_conflict_do_nothing(index_elements=["job_posting_id", "skill_id"])
                )

        result = {
            "job_posting_id": job_posting_id,
            "required_skills": sum(1 for row in skill_rows if row["is_required"]),
            "bonus_skills": sum(1 for row in skill_rows if not row["is_required"]),
            "education_requirements": len(requirements.required.education) + len(requirements.bonus.education),
            "experience_requirements": len(requirements.required.experience) + len(requirements.bonus.experience),
        }
        self.logger.info("Stored job posting", title=requirements.title, **result)
        return result

    def ingest_candidate(self, profile: CandidateProfileInput, candidate_id: Optional[str] = None) -> Dict:
        """
        Store a candidate profile, replacing any previous one with the same id.

        Declared skills naming the same canonical skill collapse to the
        first entry.

        Returns:
            Dict with candidate_id and counts of stored records
        """
        for i, entry in enumerate(profile.skills):
            index = entry.work_history_index
            if index is not None and not 0 <= index < len(profile.work_history):
                raise ValidationError(
                    f"skills[{i}].work_history_index out of range",
                    [f"got {index}, work_history has {len(profile.work_history)} entries"],
                )

        skills = self.catalog.resolve_batch([entry.name for entry in profile.skills])
        candidate_id = candidate_id or _new_id()

        with self.session_factory() as session, session.begin():
            candidate = session.get(CandidateRow, candidate_id)
            if candidate is None:
                candidate = CandidateRow(id=candidate_id)
                session.add(candidate)
            else:
                candidate.declared_skills.clear()
                candidate.work_history.clear()
                candidate.education.clear()
            candidate.name = profile.name

            work_rows = [
                WorkHistoryRow(
                    company_name=record.company_name,
                    job_title=record.job_title,
                    start_date=record.start_date,
                    end_date=record.end_date,
                )
                for record in profile.work_history
            ]
            candidate.work_history.extend(work_rows)
            candidate.education.extend(
                EducationRow(
                    institution_name=record.institution_name,
                    level=record.level.value,
                    degree_or_cert_name=record.degree_or_cert_name,
                    field=record.field,
                    end_date=record.end_date,
                )
                for record in profile.education
            )
            session.flush()

            declared_rows = []
            seen = set()
            for entry, skill in zip(profile.skills, skills):
                if skill.id in seen:
                    continue
                seen.add(skill.id)
                linked = work_rows[entry.work_history_index] if entry.work_history_index is not None else None
                declared_rows.append({
                    "candidate_id": candidate_id,
                    "skill_id": skill.id,
                    "proficiency": entry.proficiency.value,
                    "years_experience": entry.years_experience,
                    "source": entry.source.value,
                    "work_history_id": linked.id if linked is not None else None,
                })

            if declared_rows:
                session.execute(
                    sqlite_insert(DeclaredSkillRow)
                    .values(declared_rows)
                    .on_conflict_do_nothing(index_elements=["candidate_id", "skill_id"])
                )

        result = {
            "candidate_id": candidate_id,
            "declared_skills": len(declared_rows),
            "work_history": len(profile.work_history),
            "education": len(profile.education),
        }
        self.logger.info("Stored candidate profile", **result)
        return result
