import argparse
import json
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .analyzer import CompatibilityAnalyzer
from .catalog import SkillCatalog
from .config import LOG_LEVELS, Settings, load_settings
from .database import get_session_factory, init_database
from .env import load_env
from .errors import JobMatchError, ValidationError
from .ingestion import Ingestor
from .logger import StructuredLogger, get_logger
from .models import Skill, SkillCategory
from .repository import SqlRepository
from .retry import RetryError
from .schema import (
    parse_candidate_profile,
    parse_job_requirements,
    validate_candidate_profile,
    validate_job_requirements,
)


class Context:
    """Wires settings, logger and database-backed components for one command."""

    def __init__(self, args: argparse.Namespace):
        self.settings: Settings = load_settings().with_overrides(
            db_path=Path(args.db) if args.db else None,
            log_level=args.log_level,
        )
        self.logger: StructuredLogger = get_logger(
            level=self.settings.log_level,
            log_dir=self.settings.log_dir,
            enable_file=self.settings.log_to_file,
            enable_console=args.verbose,
        )
        init_database(self.settings.db_path)
        self.session_factory = get_session_factory(self.settings.db_path)

    @property
    def catalog(self) -> SkillCatalog:
        return SkillCatalog(self.session_factory, logger=self.logger, max_workers=self.settings.max_workers)

    @property
    def ingestor(self) -> Ingestor:
        return Ingestor(self.session_factory, self.catalog, logger=self.logger)

    @property
    def analyzer(self) -> CompatibilityAnalyzer:
        return CompatibilityAnalyzer(SqlRepository(self.session_factory), logger=self.logger)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _skill_dict(skill: Skill) -> dict:
    return {"id": skill.id, "name": skill.name, "category": skill.category.value}


def _load_json(path: str) -> Any:
    input_path = Path(path)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {input_path}", [str(e)]) from e


def cmd_init_db(args: argparse.Namespace) -> None:
    ctx = Context(args)
    _print_json({"db_path": str(ctx.settings.db_path), "status": "initialized"})


def cmd_resolve(args: argparse.Namespace) -> None:
    ctx = Context(args)
    skills = ctx.catalog.resolve_batch(args.names, SkillCategory(args.category))
    _print_json([_skill_dict(s) for s in skills])


def cmd_suggest(args: argparse.Namespace) -> None:
    ctx = Context(args)
    _print_json([_skill_dict(s) for s in ctx.catalog.suggest(args.query, args.limit)])


def cmd_skills(args: argparse.Namespace) -> None:
    ctx = Context(args)
    _print_json(ctx.catalog.list_with_aliases())


def cmd_consolidate(args: argparse.Namespace) -> None:
    ctx = Context(args)
    _print_json(ctx.catalog.consolidate())


def cmd_alias(args: argparse.Namespace) -> None:
    ctx = Context(args)
    created = ctx.catalog.add_alias(args.skill_id, args.alias)
    _print_json({"skill_id": args.skill_id, "alias": args.alias, "created": created})


def cmd_similar(args: argparse.Namespace) -> None:
    ctx = Context(args)
    catalog = ctx.catalog
    if args.related_id is not None:
        if args.score is None:
            raise SystemExit("--score is required with --related-id")
        catalog.add_similarity(args.skill_id, args.related_id, args.score)
    _print_json([
        {"related_skill": _skill_dict(s.related_skill), "score": s.score}
        for s in catalog.similar_skills(args.skill_id)
    ])


def cmd_ingest_job(args: argparse.Namespace) -> None:
    requirements = parse_job_requirements(_load_json(args.input))
    ctx = Context(args)
    _print_json(ctx.ingestor.ingest_job_posting(requirements, job_posting_id=args.id))


def cmd_ingest_profile(args: argparse.Namespace) -> None:
    profile = parse_candidate_profile(_load_json(args.input))
    ctx = Context(args)
    _print_json(ctx.ingestor.ingest_candidate(profile, candidate_id=args.id))


def cmd_validate(args: argparse.Namespace) -> None:
    data = _load_json(args.input)
    validate = validate_job_requirements if args.kind == "job" else validate_candidate_profile
    errors = validate(data)
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_analyze(args: argparse.Namespace) -> None:
    ctx = Context(args)
    analyzer = ctx.analyzer
    if len(args.job) == 1:
        _print_json(analyzer.analyze(args.candidate, args.job[0]).to_dict())
    else:
        _print_json([r.to_dict() for r in analyzer.analyze_many(args.candidate, args.job)])
    if args.verbose:
        ctx.logger.log_metrics_summary()


def cmd_scores(args: argparse.Namespace) -> None:
    ctx = Context(args)
    _print_json(ctx.analyzer.score_many(args.candidate, args.jobs))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobmatch", description="Skill normalization and job compatibility scoring")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", help="Path to SQLite database (or set JOBMATCH_DB_PATH)")
    parser.add_argument("--log-level", choices=sorted(LOG_LEVELS), help="Log level (or set JOBMATCH_LOG_LEVEL)")
    parser.add_argument("--verbose", action="store_true", help="Also log to stderr")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create database tables")
    ini.set_defaults(func=cmd_init_db)

    res = subparsers.add_parser("resolve", help="Resolve skill names to canonical skills, creating unseen ones")
    res.add_argument("names", nargs="+", help="Raw skill names")
    res.add_argument("--category", default=SkillCategory.OTHER.value,
                     choices=[c.value for c in SkillCategory], help="Category for newly created skills")
    res.set_defaults(func=cmd_resolve)

    sug = subparsers.add_parser("suggest", help="Autocomplete skill names")
    sug.add_argument("query", help="Name fragment")
    sug.add_argument("--limit", type=int, default=10, help="Maximum suggestions, 1-20 (default 10)")
    sug.set_defaults(func=cmd_suggest)

    skl = subparsers.add_parser("skills", help="List every skill with aliases and usage counts")
    skl.set_defaults(func=cmd_skills)

    con = subparsers.add_parser("consolidate", help="Merge near-duplicate skills into their canonical form")
    con.set_defaults(func=cmd_consolidate)

    ali = subparsers.add_parser("alias", help="Register an alternate name for a skill")
    ali.add_argument("--skill-id", type=int, required=True, help="Canonical skill id")
    ali.add_argument("--alias", required=True, help="Alternate name")
    ali.set_defaults(func=cmd_alias)

    sim = subparsers.add_parser("similar", help="Show (or record) skills similar to a skill")
    sim.add_argument("--skill-id", type=int, required=True, help="Skill id")
    sim.add_argument("--related-id", type=int, help="Related skill id to record")
    sim.add_argument("--score", type=float, help="Similarity score in [0, 1]")
    sim.set_defaults(func=cmd_similar)

    ijob = subparsers.add_parser("ingest-job", help="Store a structured job posting JSON")
    ijob.add_argument("--input", required=True, help="Path to job posting JSON")
    ijob.add_argument("--id", help="Job posting id (default: generated); an existing id is replaced")
    ijob.set_defaults(func=cmd_ingest_job)

    iprof = subparsers.add_parser("ingest-profile", help="Store a candidate profile JSON")
    iprof.add_argument("--input", required=True, help="Path to candidate profile JSON")
    iprof.add_argument("--id", help="Candidate id (default: generated); an existing id is replaced")
    iprof.set_defaults(func=cmd_ingest_profile)

    val = subparsers.add_parser("validate", help="Validate a job posting or candidate profile JSON")
    val.add_argument("--input", required=True, help="Path to JSON input")
    val.add_argument("--kind", choices=["job", "profile"], default="job", help="Payload kind (default: job)")
    val.set_defaults(func=cmd_validate)

    ana = subparsers.add_parser("analyze", help="Full compatibility report(s) for a candidate")
    ana.add_argument("--candidate", required=True, help="Candidate id")
    ana.add_argument("--job", required=True, action="append", help="Job posting id (repeat for up to 10)")
    ana.set_defaults(func=cmd_analyze)

    sco = subparsers.add_parser("scores", help="Overall scores for a candidate against several postings")
    sco.add_argument("--candidate", required=True, help="Candidate id")
    sco.add_argument("--jobs", required=True, nargs="+", help="Job posting ids (up to 20)")
    sco.set_defaults(func=cmd_scores)

    return parser


def main(argv=None):
    # Load .env if present (JOBMATCH_DB_PATH, JOBMATCH_LOG_LEVEL, etc.)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        args.func(args)
    except (JobMatchError, RetryError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
