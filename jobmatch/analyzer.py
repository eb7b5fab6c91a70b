"""
Compatibility Analyzer.

Runs the Requirement Matcher over every requirement of a job posting and
aggregates the results into a single CompatibilityReport. Stateless: each
call reads fresh data from the injected repository.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from .errors import JobMatchError, NotFoundError, ValidationError
from .logger import StructuredLogger, get_logger
from .matcher import (
    match_education,
    match_experience,
    match_skill,
    round_half_up,
    summarize_experience,
)
from .models import (
    CompatibilityReport,
    CompatibilityTier,
    EducationMatch,
    ExperienceMatch,
    JobPostingRef,
    MatchSummary,
    SkillMatch,
)
from .repository import Repository

SKILL_WEIGHT = 0.6
EXPERIENCE_WEIGHT = 0.3
EDUCATION_WEIGHT = 0.1

HIGH_SCORE_THRESHOLD = 80
WEAK_PARTIAL_THRESHOLD = 60
MAX_SUMMARY_ITEMS = 3
MAX_REPORTS_PER_CALL = 10
MAX_SCORES_PER_CALL = 20


def category_score(matches: Sequence) -> float:
    """Mean match score; a category with no requirements has nothing to fail."""
    if not matches:
        return 100.0
    return sum(m.score for m in matches) / len(matches)


def overall_score(
    skill_matches: Sequence[SkillMatch],
    experience_matches: Sequence[ExperienceMatch],
    education_matches: Sequence[EducationMatch],
) -> int:
    weighted = (
        category_score(skill_matches) * SKILL_WEIGHT
        + category_score(experience_matches) * EXPERIENCE_WEIGHT
        + category_score(education_matches) * EDUCATION_WEIGHT
    )
    return int(min(100, max(0, round_half_up(weighted))))


def strong_points(matches: Sequence) -> List[str]:
    perfect = [m for m in matches if m.tier is CompatibilityTier.PERFECT]
    points = []

    if perfect:
        points.append(f"Strong match on {len(perfect)} requirements")

    high = [m for m in matches if m.score >= HIGH_SCORE_THRESHOLD]
    if len(high) > len(perfect):
        points.append(f"High compatibility on {len(high)} total requirements")

    return points[:MAX_SUMMARY_ITEMS]


def improvement_areas(matches: Sequence) -> List[str]:
    areas = []

    missing_skills = [
        m.skill.name
        for m in matches
        if isinstance(m, SkillMatch) and m.tier is CompatibilityTier.MISSING
    ][:MAX_SUMMARY_ITEMS]
    if missing_skills:
        areas.append(f"Consider learning: {', '.join(missing_skills)}")

    if any(m.tier is CompatibilityTier.PARTIAL and m.score < WEAK_PARTIAL_THRESHOLD for m in matches):
        areas.append("Strengthen skills in areas with partial matches")

    return areas[:MAX_SUMMARY_ITEMS]


def build_summary(matches: Sequence) -> MatchSummary:
    return MatchSummary(
        perfect_matches=sum(1 for m in matches if m.tier is CompatibilityTier.PERFECT),
        partial_matches=sum(1 for m in matches if m.tier is CompatibilityTier.PARTIAL),
        missing_requirements=sum(1 for m in matches if m.tier is CompatibilityTier.MISSING),
        strong_points=strong_points(matches),
        improvement_areas=improvement_areas(matches),
    )


class CompatibilityAnalyzer:
    """Scores a candidate against a job posting."""

    def __init__(
        self,
        repository: Repository,
        logger: Optional[StructuredLogger] = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Args:
            repository: Source of job postings, candidates and similarity edges
            logger: Logger for events and metrics (default: global logger)
            today: Clock used for open-ended work history
        """
        self.repository = repository
        self.logger = logger or get_logger()
        self.today = today

    def analyze(self, candidate_id: str, job_posting_id: str) -> CompatibilityReport:
        """
        Build the compatibility report for one candidate and one job posting.

        Raises:
            NotFoundError: If the job posting or the candidate does not exist
        """
        with self.logger.timed() as elapsed:
            report = self._build_report(candidate_id, job_posting_id)

        self.logger.record_analysis(elapsed["seconds"])
        self.logger.info(
            "Compatibility analyzed",
            candidate_id=candidate_id,
            job_posting_id=job_posting_id,
            overall_score=report.overall_score,
            requirements=len(report.skill_matches) + len(report.experience_matches)
            + len(report.education_matches),
            elapsed_ms=round(elapsed["seconds"] * 1000, 1),
        )
        return report

    def _build_report(self, candidate_id: str, job_posting_id: str) -> CompatibilityReport:
        with ThreadPoolExecutor(max_workers=2) as pool:
            job_future = pool.submit(self.repository.get_job_posting, job_posting_id)
            candidate_future = pool.submit(self.repository.get_candidate, candidate_id)
            job_posting = job_future.result()
            candidate = candidate_future.result()

        if job_posting is None:
            self.logger.record_analysis_failure("NotFoundError")
            raise NotFoundError("job_posting", job_posting_id)
        if candidate is None:
            self.logger.record_analysis_failure("NotFoundError")
            raise NotFoundError("candidate", candidate_id)

        declared = {d.skill.id: d for d in candidate.declared_skills}
        unmatched = [
            r.skill.id for r in job_posting.skill_requirements if r.skill.id not in declared
        ]
        similarities = self.repository.get_similarities(unmatched) if unmatched else {}

        skill_matches = [
            match_skill(req, declared, similarities.get(req.skill.id, ()))
            for req in job_posting.skill_requirements
        ]

        experience = summarize_experience(candidate.work_history, self.today())
        experience_matches = [
            match_experience(req, candidate.work_history, summary=experience)
            for req in job_posting.experience_requirements
        ]

        education_matches = [
            match_education(req, candidate.education)
            for req in job_posting.education_requirements
        ]

        all_matches = [*skill_matches, *experience_matches, *education_matches]
        if all_matches:
            score = overall_score(skill_matches, experience_matches, education_matches)
            summary = build_summary(all_matches)
        else:
            score = 0
            summary = MatchSummary(0, 0, 0, [], ["No requirements to analyze"])

        return CompatibilityReport(
            job_posting=JobPostingRef(
                id=job_posting.id, title=job_posting.title, company=job_posting.company
            ),
            overall_score=score,
            skill_matches=skill_matches,
            experience_matches=experience_matches,
            education_matches=education_matches,
            summary=summary,
        )

    def analyze_many(self, candidate_id: str, job_posting_ids: Sequence[str]) -> List[CompatibilityReport]:
        """
        Analyze several postings; postings that cannot be found are skipped.

        Raises:
            ValidationError: If more than 10 postings are requested
        """
        if len(job_posting_ids) > MAX_REPORTS_PER_CALL:
            raise ValidationError(f"At most {MAX_REPORTS_PER_CALL} job postings per call")

        reports = []
        for job_posting_id in job_posting_ids:
            try:
                reports.append(self.analyze(candidate_id, job_posting_id))
            except NotFoundError as e:
                self.logger.warning(
                    "Skipping job posting", job_posting_id=job_posting_id, error=str(e)
                )
        return reports

    def score_many(self, candidate_id: str, job_posting_ids: Sequence[str]) -> List[Dict]:
        """
        Light-weight scores for several postings, one row per requested id.

        Raises:
            ValidationError: If more than 20 postings are requested
        """
        if len(job_posting_ids) > MAX_SCORES_PER_CALL:
            raise ValidationError(f"At most {MAX_SCORES_PER_CALL} job postings per call")

        rows = []
        for job_posting_id in job_posting_ids:
            try:
                report = self.analyze(candidate_id, job_posting_id)
            except JobMatchError as e:
                self.logger.warning(
                    "Failed to score job posting", job_posting_id=job_posting_id, error=str(e)
                )
                rows.append({
                    "job_posting_id": job_posting_id,
                    "overall_score": 0,
                    "perfect_matches": 0,
                    "partial_matches": 0,
                    "missing_requirements": 0,
                    "error": "Failed to analyze",
                })
                continue

            rows.append({
                "job_posting_id": job_posting_id,
                "overall_score": report.overall_score,
                "perfect_matches": report.summary.perfect_matches,
                "partial_matches": report.summary.partial_matches,
                "missing_requirements": report.summary.missing_requirements,
            })
        return rows
