"""
Tests for analyzer.py - aggregation, summaries and error handling.
"""

import pytest
from dataclasses import replace

from jobmatch.analyzer import (
    CompatibilityAnalyzer,
    build_summary,
    category_score,
    overall_score,
)
from jobmatch.errors import NotFoundError, ValidationError
from jobmatch.models import (
    CompatibilityTier,
    DeclaredSkill,
    JobPosting,
    ProficiencyLevel,
    Skill,
    SkillRequirement,
    SkillSimilarity,
)


@pytest.fixture
def analyzer(repository, logger, today):
    return CompatibilityAnalyzer(repository, logger=logger, today=lambda: today)


@pytest.fixture
def populated(repository, skills, sample_job_posting, sample_candidate):
    """Repository holding the sample posting, candidate and Kubernetes~Docker edge."""
    repository.job_postings[sample_job_posting.id] = sample_job_posting
    repository.candidates[sample_candidate.id] = sample_candidate
    repository.similarities[2] = [SkillSimilarity(2, skills["docker"], 0.8)]
    return repository


class TestAggregation:
    """Test the weighted overall score."""

    def test_empty_category_counts_as_full_marks(self):
        assert category_score([]) == 100.0

    def test_weighted_overall(self, populated, analyzer):
        """Skills 58, experience 50, education 100 -> 59.8 -> 60."""
        report = analyzer.analyze("cand-1", "job-1")

        assert [m.score for m in report.skill_matches] == [60, 56]
        assert [m.score for m in report.experience_matches] == [50]
        assert [m.score for m in report.education_matches] == [100]
        assert report.overall_score == 60

    def test_overall_is_clamped(self, populated, analyzer):
        report = analyzer.analyze("cand-1", "job-1")
        score = overall_score(report.skill_matches, report.experience_matches, report.education_matches)

        assert 0 <= score <= 100

    def test_report_header(self, populated, analyzer):
        report = analyzer.analyze("cand-1", "job-1")

        assert report.job_posting.id == "job-1"
        assert report.job_posting.title == "Frontend Engineer"
        assert report.job_posting.company == "Acme"

    def test_no_requirements_scores_zero(self, repository, analyzer, sample_candidate):
        """A posting with nothing to match gets 0 and an explanatory summary."""
        repository.job_postings["empty"] = JobPosting(id="empty", title="TBD", company="Acme")
        repository.candidates[sample_candidate.id] = sample_candidate

        report = analyzer.analyze(sample_candidate.id, "empty")

        assert report.overall_score == 0
        assert report.summary.improvement_areas == ["No requirements to analyze"]
        assert report.summary.perfect_matches == 0

    def test_empty_categories_do_not_drag_score(self, repository, analyzer, sample_candidate, skills):
        """Only skill requirements, all perfect: the overall score is 100."""
        repository.job_postings["skills-only"] = JobPosting(
            id="skills-only",
            title="Dev",
            company="Acme",
            skill_requirements=(SkillRequirement(skill=skills["docker"]),),
        )
        repository.candidates[sample_candidate.id] = sample_candidate

        report = analyzer.analyze(sample_candidate.id, "skills-only")

        assert report.overall_score == 100


class TestSummary:
    """Test summary counts, strong points and improvement areas."""

    def test_counts_by_tier(self, populated, analyzer):
        summary = analyzer.analyze("cand-1", "job-1").summary

        assert summary.perfect_matches == 1
        assert summary.partial_matches == 2
        assert summary.missing_requirements == 1

    def test_strong_points_and_improvement_areas(self, populated, analyzer):
        summary = analyzer.analyze("cand-1", "job-1").summary

        assert summary.strong_points == ["Strong match on 1 requirements"]
        assert summary.improvement_areas == ["Strengthen skills in areas with partial matches"]

    def test_missing_skills_listed_up_to_three(self, repository, analyzer, sample_candidate, skills):
        """At most three missing skill names are suggested for learning."""
        extra = [Skill(100 + i, f"Skill {i}") for i in range(5)]
        repository.job_postings["gaps"] = JobPosting(
            id="gaps",
            title="Dev",
            company="Acme",
            skill_requirements=tuple(SkillRequirement(skill=s) for s in extra),
        )
        repository.candidates[sample_candidate.id] = sample_candidate

        summary = analyzer.analyze(sample_candidate.id, "gaps").summary

        assert summary.improvement_areas == ["Consider learning: Skill 0, Skill 1, Skill 2"]
        assert summary.missing_requirements == 5

    def test_high_compatibility_point(self, populated, analyzer):
        """Partial matches scoring 80+ add a second strong point."""
        report = analyzer.analyze("cand-1", "job-1")
        strong_partial = replace(report.skill_matches[0], score=85, tier=CompatibilityTier.PARTIAL)

        summary = build_summary([strong_partial, *report.education_matches])

        assert summary.strong_points == [
            "Strong match on 1 requirements",
            "High compatibility on 2 total requirements",
        ]


class TestAnalyzeBehaviour:
    """Test fetch behaviour, errors and determinism."""

    def test_missing_job_posting(self, populated, analyzer, logger):
        with pytest.raises(NotFoundError, match="Job posting not found: nope"):
            analyzer.analyze("cand-1", "nope")

        assert logger.get_metrics()["errors_by_type"]["NotFoundError"] == 1

    def test_missing_candidate(self, populated, analyzer):
        with pytest.raises(NotFoundError, match="Candidate not found: ghost"):
            analyzer.analyze("ghost", "job-1")

    def test_similarities_fetched_only_for_unmatched_skills(self, populated, analyzer):
        """React is held, so only Kubernetes needs similarity edges."""
        analyzer.analyze("cand-1", "job-1")

        assert populated.similarity_requests == [[2]]

    def test_no_similarity_lookup_when_all_held(self, populated, analyzer, sample_candidate, skills):
        held = replace(
            sample_candidate,
            declared_skills=sample_candidate.declared_skills
            + (DeclaredSkill(skill=skills["kubernetes"], proficiency=ProficiencyLevel.EXPERT),),
        )
        populated.candidates["cand-1"] = held

        analyzer.analyze("cand-1", "job-1")

        assert populated.similarity_requests == []

    def test_deterministic(self, populated, analyzer):
        """Same inputs and clock produce identical reports."""
        assert analyzer.analyze("cand-1", "job-1") == analyzer.analyze("cand-1", "job-1")

    def test_to_dict_is_json_ready(self, populated, analyzer):
        data = analyzer.analyze("cand-1", "job-1").to_dict()

        assert data["overall_score"] == 60
        assert data["skill_matches"][0]["tier"] == "partial"
        assert data["skill_matches"][0]["requirement"]["minimum_level"] == "ADVANCED"
        assert data["experience_matches"][0]["candidate_experience"]["total_years"] == 2.5
        assert isinstance(data["education_matches"][0]["candidate_education"], list)

    def test_records_analysis_metric(self, populated, analyzer, logger):
        analyzer.analyze("cand-1", "job-1")

        assert logger.get_metrics()["analyses"] == 1


class TestBatchAnalysis:
    """Test analyze_many and score_many."""

    def test_analyze_many_skips_missing(self, populated, analyzer):
        reports = analyzer.analyze_many("cand-1", ["job-1", "missing"])

        assert [r.job_posting.id for r in reports] == ["job-1"]

    def test_analyze_many_limit(self, analyzer):
        with pytest.raises(ValidationError):
            analyzer.analyze_many("cand-1", [f"job-{i}" for i in range(11)])

    def test_score_many_rows(self, populated, analyzer):
        """One row per requested id, with a failure row for unknown postings."""
        rows = analyzer.score_many("cand-1", ["job-1", "missing"])

        assert rows[0] == {
            "job_posting_id": "job-1",
            "overall_score": 60,
            "perfect_matches": 1,
            "partial_matches": 2,
            "missing_requirements": 1,
        }
        assert rows[1]["overall_score"] == 0
        assert rows[1]["error"] == "Failed to analyze"

    def test_score_many_limit(self, analyzer):
        with pytest.raises(ValidationError):
            analyzer.score_many("cand-1", [f"job-{i}" for i in range(21)])
