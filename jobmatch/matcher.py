"""
Requirement Matcher.

Responsibilities:
- Score one skill, experience or education requirement against a
  candidate's declared facts.
- Emit a compatibility tier, a 0-100 score and a short reason.

Non-Responsibilities:
- No database access.
- No aggregation across requirements.

Invariant:
Given identical inputs (including ``today``), every function here returns
the same match record. Scores are always clamped into [0, 100].
"""

import math
from dataclasses import replace
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from .models import (
    CompatibilityTier,
    DeclaredSkill,
    EducationMatch,
    EducationRecord,
    EducationRequirement,
    ExperienceMatch,
    ExperienceRequirement,
    ExperienceSummary,
    PositionYears,
    SimilarSkillMatch,
    SkillMatch,
    SkillRequirement,
    SkillSimilarity,
    WorkHistoryRecord,
)
from .normalize import field_from_degree

PERFECT_SCORE = 100
PROFICIENCY_PENALTY = 30
YEARS_PENALTY_PER_YEAR = 10
MAX_YEARS_PENALTY = 40
SIMILAR_SKILL_CEILING = 70  # similarity matches never reach exact-match scores
EXPERIENCE_PENALTY_PER_YEAR = 20
EXPERIENCE_MISSING_SHORTFALL = 2  # shortfall above this many years is 'missing'
DAYS_PER_YEAR = 365


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero for non-negative values (2.5 -> 3, not 2)."""
    factor = 10 ** ndigits
    scaled = value * factor
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor


def _format_years(value: float) -> str:
    return f"{value:g}"


# Skills

def find_similar_skill(
    similarities: Iterable[SkillSimilarity],
    declared: Mapping[int, DeclaredSkill],
) -> Optional[SimilarSkillMatch]:
    """
    Pick the strongest similarity edge leading to a skill the candidate holds.

    Ties on score go to the lowest related skill id so the choice is stable.
    """
    best: Optional[SkillSimilarity] = None
    for edge in similarities:
        if edge.related_skill.id not in declared:
            continue
        if best is None or (-edge.score, edge.related_skill.id) < (-best.score, best.related_skill.id):
            best = edge

    if best is None:
        return None
    return SimilarSkillMatch(
        skill=best.related_skill,
        declared_skill=declared[best.related_skill.id],
        similarity_score=best.score,
    )


def evaluate_exact_match(
    requirement: SkillRequirement, declared: DeclaredSkill
) -> Tuple[CompatibilityTier, int, str]:
    """Apply proficiency and years penalties to a candidate who holds the skill."""
    score = float(PERFECT_SCORE)
    tier = CompatibilityTier.PERFECT
    reasons = []

    if requirement.minimum_level is not None:
        required = requirement.minimum_level.ordinal
        actual = declared.proficiency.ordinal
        if actual < required:
            score -= PROFICIENCY_PENALTY
            tier = CompatibilityTier.PARTIAL
            reasons.append(
                f"Proficiency below required "
                f"({declared.proficiency.value} vs {requirement.minimum_level.value})"
            )
        elif actual > required:
            reasons.append("Exceeds required proficiency")

    # Unknown candidate years carry no penalty, same as an unset requirement
    if requirement.years_required and declared.years_experience is not None:
        if declared.years_experience < requirement.years_required:
            shortfall = requirement.years_required - declared.years_experience
            score -= min(shortfall * YEARS_PENALTY_PER_YEAR, MAX_YEARS_PENALTY)
            tier = CompatibilityTier.PARTIAL
            reasons.append(f"{_format_years(shortfall)} years less experience than required")

    reason = ", ".join(reasons) if reasons else "Perfect match"
    return tier, int(round_half_up(max(score, 0))), reason


def match_skill(
    requirement: SkillRequirement,
    declared: Mapping[int, DeclaredSkill],
    similarities: Sequence[SkillSimilarity] = (),
) -> SkillMatch:
    """
    Score one skill requirement.

    Args:
        requirement: The job posting's requirement
        declared: Candidate's declared skills keyed by skill id
        similarities: Similarity edges from the required skill

    Returns:
        SkillMatch with tier perfect/partial (exact), partial (similar) or missing
    """
    skill = requirement.skill

    exact = declared.get(skill.id)
    if exact is not None:
        tier, score, reason = evaluate_exact_match(requirement, exact)
        return SkillMatch(
            skill=skill,
            requirement=requirement,
            tier=tier,
            score=score,
            reason=reason,
            declared_skill=exact,
        )

    similar = find_similar_skill(similarities, declared)
    if similar is not None:
        score = int(round_half_up(similar.similarity_score * SIMILAR_SKILL_CEILING))
        percent = int(round_half_up(similar.similarity_score * 100))
        return SkillMatch(
            skill=skill,
            requirement=requirement,
            tier=CompatibilityTier.PARTIAL,
            score=min(score, SIMILAR_SKILL_CEILING),
            reason=f"Has similar skill: {similar.skill.name} ({percent}% similarity)",
            similar_skill=similar,
        )

    return SkillMatch(
        skill=skill,
        requirement=requirement,
        tier=CompatibilityTier.MISSING,
        score=0,
        reason="Skill not found in user profile",
    )


# Experience

def years_at_position(start: date, end: Optional[date], today: date) -> float:
    """Years between start and end (or today for a current position), 1 decimal."""
    days = abs(((end or today) - start).days)
    return round_half_up(days / DAYS_PER_YEAR, 1)


def summarize_experience(
    work_history: Iterable[WorkHistoryRecord], today: date
) -> ExperienceSummary:
    positions = tuple(
        PositionYears(
            job_title=record.job_title,
            company_name=record.company_name,
            years=years_at_position(record.start_date, record.end_date, today),
        )
        for record in work_history
    )
    total = round_half_up(sum(p.years for p in positions), 1)
    return ExperienceSummary(total_years=total, positions=positions)


def match_experience(
    requirement: ExperienceRequirement,
    work_history: Iterable[WorkHistoryRecord],
    today: Optional[date] = None,
    summary: Optional[ExperienceSummary] = None,
) -> ExperienceMatch:
    """
    Score one experience requirement against total years of work history.

    A precomputed ``summary`` may be passed when scoring several
    requirements against the same history.
    """
    if summary is None:
        summary = summarize_experience(work_history, today or date.today())

    tier = CompatibilityTier.PERFECT
    score = PERFECT_SCORE
    reason = "Experience requirements met"

    if requirement.years and summary.total_years < requirement.years:
        shortfall = round_half_up(requirement.years - summary.total_years, 1)
        score = int(max(0, round_half_up(PERFECT_SCORE - shortfall * EXPERIENCE_PENALTY_PER_YEAR)))
        tier = (
            CompatibilityTier.MISSING
            if shortfall > EXPERIENCE_MISSING_SHORTFALL
            else CompatibilityTier.PARTIAL
        )
        reason = f"{_format_years(shortfall)} years short of required experience"

    return ExperienceMatch(
        requirement=requirement,
        candidate_experience=summary,
        tier=tier,
        score=score,
        reason=reason,
    )


# Education

def with_field(record: EducationRecord) -> EducationRecord:
    """Fill in the field of study from the degree name when it was not given."""
    if record.field:
        return record
    derived = field_from_degree(record.degree_or_cert_name)
    return replace(record, field=derived) if derived else record


def meets_education_level(record: EducationRecord, requirement: EducationRequirement) -> bool:
    return record.level.ordinal >= requirement.level.ordinal


def match_education(
    requirement: EducationRequirement,
    education: Iterable[EducationRecord],
) -> EducationMatch:
    """Binary match: any record at or above the required level is a perfect match."""
    records = tuple(with_field(record) for record in education)
    satisfying = [record for record in records if meets_education_level(record, requirement)]

    if satisfying:
        first = satisfying[0]
        label = first.degree_or_cert_name or first.level.value
        return EducationMatch(
            requirement=requirement,
            candidate_education=records,
            tier=CompatibilityTier.PERFECT,
            score=PERFECT_SCORE,
            reason=f"Meets requirement with {label}",
            matched_record=first,
        )

    return EducationMatch(
        requirement=requirement,
        candidate_education=records,
        tier=CompatibilityTier.MISSING,
        score=0,
        reason="Education requirement not met",
    )
