"""
Validation of JSON payloads for job postings and candidate profiles.

``validate_*`` functions return a list of error messages (empty means
valid); ``parse_*`` functions return typed inputs or raise
ValidationError carrying the same messages.
"""

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from .errors import ValidationError
from .models import (
    CandidateProfileInput,
    DeclaredSkillInput,
    EducationLevel,
    EducationRecord,
    EducationRequirement,
    ExperienceCategory,
    ExperienceRequirement,
    JobRequirements,
    ProficiencyLevel,
    RequirementSet,
    SkillRequirementInput,
    SkillSource,
    WorkHistoryRecord,
)

REQUIRED_POSTING_FIELDS = ["title", "company"]
OPTIONAL_POSTING_FIELDS = ["location", "industry"]
MAX_YEARS = 100


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _enum(errors: List[str], path: str, enum_type: Type[Enum], value: Any, default=None):
    if value is None:
        return default
    try:
        return enum_type(value.upper() if isinstance(value, str) else value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_type)
        errors.append(f"Field '{path}' must be one of: {allowed}")
        return default


def _years(errors: List[str], path: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    # NaN and infinities fail the range comparison
    if not _is_number(value) or not 0 <= value <= MAX_YEARS:
        errors.append(f"Field '{path}' must be a number between 0 and {MAX_YEARS}")
        return None
    return float(value)


def _date(errors: List[str], path: str, value: Any, required: bool = False) -> Optional[date]:
    if value is None:
        if required:
            errors.append(f"Missing required field: {path}")
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        errors.append(f"Field '{path}' must be an ISO date (YYYY-MM-DD)")
        return None


def _list(errors: List[str], path: str, value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        errors.append(f"Field '{path}' must be a list")
        return []
    return value


def _skill_requirement(errors: List[str], path: str, item: Any) -> Optional[SkillRequirementInput]:
    if isinstance(item, str):
        if not item.strip():
            errors.append(f"Field '{path}' must be a non-empty skill name")
            return None
        return SkillRequirementInput(name=item)
    if not isinstance(item, dict) or not _is_non_empty_str(item.get("name")):
        errors.append(f"Field '{path}' must be a skill name or an object with a non-empty 'name'")
        return None
    return SkillRequirementInput(
        name=item["name"],
        minimum_level=_enum(errors, f"{path}.minimum_level", ProficiencyLevel, item.get("minimum_level")),
        years_required=_years(errors, f"{path}.years_required", item.get("years_required")),
    )


def _requirement_set(errors: List[str], path: str, data: Any) -> RequirementSet:
    if data is None:
        return RequirementSet()
    if not isinstance(data, dict):
        errors.append(f"Field '{path}' must be an object")
        return RequirementSet()

    skills = {}
    for kind in ("technical_skills", "soft_skills"):
        parsed = [
            _skill_requirement(errors, f"{path}.{kind}[{i}]", item)
            for i, item in enumerate(_list(errors, f"{path}.{kind}", data.get(kind)))
        ]
        skills[kind] = tuple(p for p in parsed if p is not None)

    education = []
    for i, item in enumerate(_list(errors, f"{path}.education", data.get("education"))):
        item_path = f"{path}.education[{i}]"
        if not isinstance(item, dict):
            errors.append(f"Field '{item_path}' must be an object")
            continue
        if item.get("level") is None:
            errors.append(f"Missing required field: {item_path}.level")
            continue
        level = _enum(errors, f"{item_path}.level", EducationLevel, item.get("level"))
        if level is not None:
            education.append(EducationRequirement(
                level=level, field=item.get("field"), description=item.get("description")
            ))

    experience = []
    for i, item in enumerate(_list(errors, f"{path}.experience", data.get("experience"))):
        item_path = f"{path}.experience[{i}]"
        if not isinstance(item, dict):
            errors.append(f"Field '{item_path}' must be an object")
            continue
        if not _is_non_empty_str(item.get("description")):
            errors.append(f"Field '{item_path}.description' must be a non-empty string")
            continue
        experience.append(ExperienceRequirement(
            description=item["description"],
            years=_years(errors, f"{item_path}.years", item.get("years")),
            category=_enum(
                errors, f"{item_path}.category", ExperienceCategory, item.get("category"),
                default=ExperienceCategory.GENERAL,
            ),
        ))

    return RequirementSet(
        technical_skills=skills["technical_skills"],
        soft_skills=skills["soft_skills"],
        education=tuple(education),
        experience=tuple(experience),
    )


def _build_job_requirements(data: Dict[str, Any], errors: List[str]) -> Optional[JobRequirements]:
    if not isinstance(data, dict):
        errors.append("Job posting must be a JSON object")
        return None

    for f in REQUIRED_POSTING_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_POSTING_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    required = _requirement_set(errors, "requirements", data.get("requirements"))
    bonus = _requirement_set(errors, "bonus_requirements", data.get("bonus_requirements"))

    if errors:
        return None
    return JobRequirements(
        title=data["title"],
        company=data["company"],
        location=data.get("location"),
        industry=data.get("industry"),
        required=required,
        bonus=bonus,
    )


def validate_job_requirements(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []
    _build_job_requirements(data, errors)
    return errors


def parse_job_requirements(data: Dict[str, Any]) -> JobRequirements:
    errors: List[str] = []
    parsed = _build_job_requirements(data, errors)
    if parsed is None:
        raise ValidationError("Invalid job posting", errors)
    return parsed


def _build_candidate_profile(data: Dict[str, Any], errors: List[str]) -> Optional[CandidateProfileInput]:
    if not isinstance(data, dict):
        errors.append("Candidate profile must be a JSON object")
        return None

    if data.get("name") is not None and not isinstance(data["name"], str):
        errors.append("Field 'name' must be a string if provided")

    work_history = []
    for i, item in enumerate(_list(errors, "work_history", data.get("work_history"))):
        path = f"work_history[{i}]"
        if not isinstance(item, dict):
            errors.append(f"Field '{path}' must be an object")
            continue
        for f in ("company_name", "job_title"):
            if not _is_non_empty_str(item.get(f)):
                errors.append(f"Field '{path}.{f}' must be a non-empty string")
        start = _date(errors, f"{path}.start_date", item.get("start_date"), required=True)
        end = _date(errors, f"{path}.end_date", item.get("end_date"))
        if start and end and end < start:
            errors.append(f"Field '{path}.end_date' must not be before start_date")
        if start:
            work_history.append(WorkHistoryRecord(
                company_name=item.get("company_name") or "",
                job_title=item.get("job_title") or "",
                start_date=start,
                end_date=end,
            ))

    education = []
    for i, item in enumerate(_list(errors, "education", data.get("education"))):
        path = f"education[{i}]"
        if not isinstance(item, dict):
            errors.append(f"Field '{path}' must be an object")
            continue
        if not _is_non_empty_str(item.get("institution_name")):
            errors.append(f"Field '{path}.institution_name' must be a non-empty string")
        if item.get("level") is None:
            errors.append(f"Missing required field: {path}.level")
            continue
        level = _enum(errors, f"{path}.level", EducationLevel, item.get("level"))
        if level is not None:
            education.append(EducationRecord(
                institution_name=item.get("institution_name") or "",
                level=level,
                degree_or_cert_name=item.get("degree_or_cert_name"),
                field=item.get("field"),
                end_date=_date(errors, f"{path}.end_date", item.get("end_date")),
            ))

    skills = []
    for i, item in enumerate(_list(errors, "skills", data.get("skills"))):
        path = f"skills[{i}]"
        if not isinstance(item, dict) or not _is_non_empty_str(item.get("name")):
            errors.append(f"Field '{path}' must be an object with a non-empty 'name'")
            continue
        index = item.get("work_history_index")
        if index is not None and (not isinstance(index, int) or isinstance(index, bool)):
            errors.append(f"Field '{path}.work_history_index' must be an integer")
            index = None
        skills.append(DeclaredSkillInput(
            name=item["name"],
            proficiency=_enum(
                errors, f"{path}.proficiency", ProficiencyLevel, item.get("proficiency"),
                default=ProficiencyLevel.INTERMEDIATE,
            ),
            years_experience=_years(errors, f"{path}.years_experience", item.get("years_experience")),
            source=_enum(errors, f"{path}.source", SkillSource, item.get("source"), default=SkillSource.OTHER),
            work_history_index=index,
        ))

    if errors:
        return None
    return CandidateProfileInput(
        name=data.get("name"),
        skills=tuple(skills),
        work_history=tuple(work_history),
        education=tuple(education),
    )


def validate_candidate_profile(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []
    _build_candidate_profile(data, errors)
    return errors


def parse_candidate_profile(data: Dict[str, Any]) -> CandidateProfileInput:
    errors: List[str] = []
    parsed = _build_candidate_profile(data, errors)
    if parsed is None:
        raise ValidationError("Invalid candidate profile", errors)
    return parsed
