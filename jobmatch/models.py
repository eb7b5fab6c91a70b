"""
Domain model for skill matching.

Closed enums for categories and ordinal scales, immutable input records
(what a job posting asks for, what a candidate declares) and the match
records / report produced by the analyzer.

Invariant:
Every ordinal comparison goes through an enum's ``ordinal`` property.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SkillCategory(Enum):
    PROGRAMMING_LANGUAGE = "PROGRAMMING_LANGUAGE"
    FRAMEWORK_LIBRARY = "FRAMEWORK_LIBRARY"
    DATABASE = "DATABASE"
    CLOUD_PLATFORM = "CLOUD_PLATFORM"
    DEVOPS_TOOLS = "DEVOPS_TOOLS"
    DESIGN_TOOLS = "DESIGN_TOOLS"
    PROJECT_MANAGEMENT = "PROJECT_MANAGEMENT"
    SOFT_SKILLS = "SOFT_SKILLS"
    INDUSTRY_KNOWLEDGE = "INDUSTRY_KNOWLEDGE"
    CERTIFICATION = "CERTIFICATION"
    METHODOLOGY = "METHODOLOGY"
    OTHER = "OTHER"


class ProficiencyLevel(Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"

    @property
    def ordinal(self) -> int:
        return _PROFICIENCY_ORDINALS[self]


_PROFICIENCY_ORDINALS = {
    ProficiencyLevel.BEGINNER: 1,
    ProficiencyLevel.INTERMEDIATE: 2,
    ProficiencyLevel.ADVANCED: 3,
    ProficiencyLevel.EXPERT: 4,
}


class EducationLevel(Enum):
    HIGH_SCHOOL = "HIGH_SCHOOL"
    ASSOCIATES = "ASSOCIATES"
    CERTIFICATION = "CERTIFICATION"
    BACHELORS = "BACHELORS"
    MASTERS = "MASTERS"
    DOCTORATE = "DOCTORATE"

    @property
    def ordinal(self) -> int:
        return _EDUCATION_ORDINALS[self]


# Certification ranks alongside an associates degree
_EDUCATION_ORDINALS = {
    EducationLevel.HIGH_SCHOOL: 1,
    EducationLevel.ASSOCIATES: 2,
    EducationLevel.CERTIFICATION: 2,
    EducationLevel.BACHELORS: 3,
    EducationLevel.MASTERS: 4,
    EducationLevel.DOCTORATE: 5,
}


class SkillSource(Enum):
    WORK_EXPERIENCE = "WORK_EXPERIENCE"
    EDUCATION = "EDUCATION"
    CERTIFICATION = "CERTIFICATION"
    PERSONAL_PROJECT = "PERSONAL_PROJECT"
    TRAINING = "TRAINING"
    OTHER = "OTHER"


class ExperienceCategory(Enum):
    GENERAL = "GENERAL"
    TECHNICAL = "TECHNICAL"
    LEADERSHIP = "LEADERSHIP"
    MANAGEMENT = "MANAGEMENT"
    INDUSTRY = "INDUSTRY"
    OTHER = "OTHER"


class CompatibilityTier(Enum):
    PERFECT = "perfect"
    PARTIAL = "partial"
    MISSING = "missing"


REQUIRED_PRIORITY = 1
BONUS_PRIORITY = 2


# Catalog entities

@dataclass(frozen=True)
class Skill:
    id: int
    name: str
    category: SkillCategory = SkillCategory.OTHER


@dataclass(frozen=True)
class SkillSimilarity:
    """Edge from a required skill to a related skill, read in either direction."""

    skill_id: int
    related_skill: Skill
    score: float


# Candidate-held facts

@dataclass(frozen=True)
class DeclaredSkill:
    skill: Skill
    proficiency: ProficiencyLevel
    years_experience: Optional[float] = None
    source: SkillSource = SkillSource.OTHER
    work_history_id: Optional[int] = None


@dataclass(frozen=True)
class WorkHistoryRecord:
    company_name: str
    job_title: str
    start_date: date
    end_date: Optional[date] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class EducationRecord:
    institution_name: str
    level: EducationLevel
    degree_or_cert_name: Optional[str] = None
    field: Optional[str] = None
    end_date: Optional[date] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class CandidateProfile:
    id: str
    name: Optional[str] = None
    declared_skills: Tuple[DeclaredSkill, ...] = ()
    work_history: Tuple[WorkHistoryRecord, ...] = ()
    education: Tuple[EducationRecord, ...] = ()


# Job-posting-held requirements

@dataclass(frozen=True)
class SkillRequirement:
    skill: Skill
    is_required: bool = True
    minimum_level: Optional[ProficiencyLevel] = None
    years_required: Optional[float] = None
    priority: int = REQUIRED_PRIORITY
    id: Optional[int] = None


@dataclass(frozen=True)
class ExperienceRequirement:
    description: str
    years: Optional[float] = None
    category: ExperienceCategory = ExperienceCategory.GENERAL
    is_required: bool = True
    id: Optional[int] = None


@dataclass(frozen=True)
class EducationRequirement:
    level: EducationLevel
    field: Optional[str] = None
    description: Optional[str] = None
    is_required: bool = True
    id: Optional[int] = None


@dataclass(frozen=True)
class JobPosting:
    id: str
    title: str
    company: str
    location: Optional[str] = None
    industry: Optional[str] = None
    skill_requirements: Tuple[SkillRequirement, ...] = ()
    experience_requirements: Tuple[ExperienceRequirement, ...] = ()
    education_requirements: Tuple[EducationRequirement, ...] = ()


# Ingestion payloads (raw skill names, not yet resolved)

@dataclass(frozen=True)
class SkillRequirementInput:
    name: str
    minimum_level: Optional[ProficiencyLevel] = None
    years_required: Optional[float] = None


@dataclass(frozen=True)
class RequirementSet:
    technical_skills: Tuple[SkillRequirementInput, ...] = ()
    soft_skills: Tuple[SkillRequirementInput, ...] = ()
    education: Tuple[EducationRequirement, ...] = ()
    experience: Tuple[ExperienceRequirement, ...] = ()


@dataclass(frozen=True)
class JobRequirements:
    """Structured job posting as produced by the upstream extraction step."""

    title: str
    company: str
    location: Optional[str] = None
    industry: Optional[str] = None
    required: RequirementSet = field(default_factory=RequirementSet)
    bonus: RequirementSet = field(default_factory=RequirementSet)


@dataclass(frozen=True)
class DeclaredSkillInput:
    name: str
    proficiency: ProficiencyLevel = ProficiencyLevel.INTERMEDIATE
    years_experience: Optional[float] = None
    source: SkillSource = SkillSource.OTHER
    work_history_index: Optional[int] = None  # position in the payload's work_history


@dataclass(frozen=True)
class CandidateProfileInput:
    name: Optional[str] = None
    skills: Tuple[DeclaredSkillInput, ...] = ()
    work_history: Tuple[WorkHistoryRecord, ...] = ()
    education: Tuple[EducationRecord, ...] = ()


# Match records

@dataclass(frozen=True)
class SimilarSkillMatch:
    skill: Skill
    declared_skill: DeclaredSkill
    similarity_score: float


@dataclass(frozen=True)
class SkillMatch:
    skill: Skill
    requirement: SkillRequirement
    tier: CompatibilityTier
    score: int
    reason: str
    declared_skill: Optional[DeclaredSkill] = None
    similar_skill: Optional[SimilarSkillMatch] = None


@dataclass(frozen=True)
class PositionYears:
    job_title: str
    company_name: str
    years: float


@dataclass(frozen=True)
class ExperienceSummary:
    total_years: float
    positions: Tuple[PositionYears, ...] = ()


@dataclass(frozen=True)
class ExperienceMatch:
    requirement: ExperienceRequirement
    candidate_experience: ExperienceSummary
    tier: CompatibilityTier
    score: int
    reason: str


@dataclass(frozen=True)
class EducationMatch:
    requirement: EducationRequirement
    candidate_education: Tuple[EducationRecord, ...]
    tier: CompatibilityTier
    score: int
    reason: str
    matched_record: Optional[EducationRecord] = None


@dataclass(frozen=True)
class MatchSummary:
    perfect_matches: int
    partial_matches: int
    missing_requirements: int
    strong_points: List[str] = field(default_factory=list)
    improvement_areas: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class JobPostingRef:
    id: str
    title: str
    company: str


@dataclass(frozen=True)
class CompatibilityReport:
    job_posting: JobPostingRef
    overall_score: int
    skill_matches: List[SkillMatch]
    experience_matches: List[ExperienceMatch]
    education_matches: List[EducationMatch]
    summary: MatchSummary

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-ready dict (enum values as strings, dates ISO formatted)."""
        return asdict(self, dict_factory=_jsonable_dict)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, tuple):
        return [_jsonable(v) for v in value]
    return value


def _jsonable_dict(items) -> Dict[str, Any]:
    return {k: _jsonable(v) for k, v in items}
