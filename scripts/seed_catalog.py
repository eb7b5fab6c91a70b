#!/usr/bin/env python3
"""
Seed the skill catalog with well-known skills, their aliases and
optional similarity edges.

Usage:
    python scripts/seed_catalog.py --db data/jobmatch.db
    python scripts/seed_catalog.py --db data/jobmatch.db --similarities data/similarities.csv
"""

import argparse
import csv
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from jobmatch.catalog import SkillCatalog
from jobmatch.database import get_session_factory, init_database
from jobmatch.errors import ValidationError
from jobmatch.logger import get_logger
from jobmatch.models import SkillCategory
from jobmatch.normalize import SKILL_ALIASES

CATEGORIES = {
    "React": SkillCategory.FRAMEWORK_LIBRARY,
    "Vue.js": SkillCategory.FRAMEWORK_LIBRARY,
    "Angular": SkillCategory.FRAMEWORK_LIBRARY,
    "Next.js": SkillCategory.FRAMEWORK_LIBRARY,
    "Express.js": SkillCategory.FRAMEWORK_LIBRARY,
    "Node.js": SkillCategory.PROGRAMMING_LANGUAGE,
    "JavaScript": SkillCategory.PROGRAMMING_LANGUAGE,
    "TypeScript": SkillCategory.PROGRAMMING_LANGUAGE,
    "PostgreSQL": SkillCategory.DATABASE,
    "MongoDB": SkillCategory.DATABASE,
    "Amazon Web Services": SkillCategory.CLOUD_PLATFORM,
    "Google Cloud Platform": SkillCategory.CLOUD_PLATFORM,
    "Microsoft Azure": SkillCategory.CLOUD_PLATFORM,
}


def seed_aliases(catalog: SkillCatalog, dry_run: bool = False) -> int:
    """Create canonical skills and register their alternate spellings."""
    created = 0
    for canonical, aliases in SKILL_ALIASES.items():
        if dry_run:
            print(f"  {canonical}: {', '.join(aliases)}")
            continue
        skill = catalog.resolve(canonical, CATEGORIES.get(canonical, SkillCategory.OTHER))
        for alias in aliases:
            try:
                if catalog.add_alias(skill.id, alias):
                    created += 1
            except ValidationError as e:
                print(f"⚠️  Skipping alias {alias!r}: {e.message}")
    return created


def seed_similarities(catalog: SkillCatalog, csv_path: Path, dry_run: bool = False) -> int:
    """
    Load similarity edges from a CSV with columns skill,related_skill,score.

    Both skills are resolved (and created if unseen) before the edge is stored.
    """
    count = 0
    with open(csv_path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            if dry_run:
                print(f"  {row['skill']} ~ {row['related_skill']} ({row['score']})")
                continue
            skill, related = catalog.resolve_batch([row["skill"], row["related_skill"]])
            try:
                catalog.add_similarity(skill.id, related.id, float(row["score"]))
                count += 1
            except ValidationError as e:
                print(f"⚠️  Skipping {row['skill']} ~ {row['related_skill']}: {e.message}")
    return count


def main():
    parser = argparse.ArgumentParser(description="Seed the skill catalog")
    parser.add_argument("--db", type=Path, default=Path("data/jobmatch.db"), help="SQLite database file")
    parser.add_argument("--similarities", type=Path, help="CSV of skill,related_skill,score")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be seeded without writing")
    args = parser.parse_args()

    logger = get_logger(enable_console=False)
    if args.dry_run:
        print("[DRY RUN] Would seed the following skills and aliases:")
        seed_aliases(None, dry_run=True)
        if args.similarities:
            print("[DRY RUN] Would seed the following similarities:")
            seed_similarities(None, args.similarities, dry_run=True)
        return

    print(f"Initializing database at {args.db}...")
    init_database(args.db)
    catalog = SkillCatalog(get_session_factory(args.db), logger=logger)

    aliases = seed_aliases(catalog)
    print(f"✅ Seeded {len(SKILL_ALIASES)} skills with {aliases} new aliases")

    if args.similarities:
        if not args.similarities.exists():
            raise SystemExit(f"Similarity file not found: {args.similarities}")
        edges = seed_similarities(catalog, args.similarities)
        print(f"✅ Seeded {edges} similarity edges")

    logger.log_metrics_summary()


if __name__ == "__main__":
    main()
