"""
Skill Catalog: one canonical identity per real-world skill.

Every raw skill mention is resolved by case-insensitive lookup on the
canonical name, then on aliases, and only then created. Creation is
guarded by the unique ``skills.name_key`` index: a writer that loses a
concurrent race gets an IntegrityError, rolls back and returns the
winner's row.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload, sessionmaker

from .database import (
    DeclaredSkillRow,
    JobSkillRequirementRow,
    SkillAliasRow,
    SkillRow,
    SkillSimilarityRow,
)
from .errors import NotFoundError, ValidationError
from .logger import StructuredLogger, get_logger
from .models import Skill, SkillCategory, SkillSimilarity
from .normalize import (
    KNOWN_SYNONYMS,
    SKILL_ALIASES,
    ParsedSkillName,
    clean_skill_name,
    compact_key,
    parse_skill_name,
    skill_key,
)
from .repository import load_similarities, to_skill
from .retry import retry_on_locked

CANONICAL_KEYS = frozenset(skill_key(name) for name in SKILL_ALIASES)

MAX_SUGGESTIONS = 20


def _validate_name(raw_name, what: str = "Skill name") -> str:
    if not isinstance(raw_name, str) or not raw_name.strip():
        raise ValidationError(f"{what} must be a non-empty string", [f"got {raw_name!r}"])
    return clean_skill_name(raw_name)


class SkillCatalog:
    """Canonical skills, their aliases and the similarity graph between them."""

    def __init__(
        self,
        session_factory: sessionmaker,
        logger: Optional[StructuredLogger] = None,
        max_workers: int = 4,
    ):
        """
        Args:
            session_factory: Opens one session per unit of work
            logger: Logger for events and metrics (default: global logger)
            max_workers: Thread pool size for resolve_batch
        """
        self.session_factory = session_factory
        self.logger = logger or get_logger()
        self.max_workers = max_workers

    # Resolution

    def resolve(self, raw_name: str, category: SkillCategory = SkillCategory.OTHER) -> Skill:
        """
        Resolve a raw skill mention to its canonical Skill, creating it if unseen.

        Args:
            raw_name: Free-text skill name (any casing, extra whitespace allowed)
            category: Category for a newly created skill

        Raises:
            ValidationError: If the name is blank
        """
        name = _validate_name(raw_name)
        return self._find_or_create(name, skill_key(name), category)

    def resolve_batch(
        self, raw_names: Sequence[str], category: SkillCategory = SkillCategory.OTHER
    ) -> List[Skill]:
        """
        Resolve many names at once, preserving input order.

        Names sharing a lookup key are resolved once; distinct keys are
        resolved concurrently.

        Raises:
            ValidationError: If any name is blank (nothing is resolved)
        """
        names = [_validate_name(n) for n in raw_names]

        unique: Dict[str, str] = {}
        for name in names:
            unique.setdefault(skill_key(name), name)
        if not unique:
            return []

        workers = max(1, min(self.max_workers, len(unique)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                key: pool.submit(self._find_or_create, name, key, category)
                for key, name in unique.items()
            }
            resolved = {key: future.result() for key, future in futures.items()}

        self.logger.debug("Resolved skill batch", requested=len(names), unique=len(unique))
        return [resolved[skill_key(name)] for name in names]

    @retry_on_locked()
    def _find_or_create(self, name: str, key: str, category: SkillCategory) -> Skill:
        with self.session_factory() as session:
            row, outcome = self._lookup(session, key)
            if row is not None:
                self.logger.record_resolution(outcome)
                return to_skill(row)

            row = SkillRow(name=name, name_key=key, category=category.value)
            session.add(row)
            try:
                session.flush()
            except IntegrityError:
                session.rollback()
                return self._creation_race_winner(session, name, key)

            # Re-checked while holding the write lock: an alias committed since
            # the lookup above claims the key
            if session.scalar(select(SkillAliasRow.id).where(SkillAliasRow.alias_key == key)) is not None:
                session.rollback()
                return self._creation_race_winner(session, name, key)
            session.commit()

            self.logger.record_resolution("created")
            self.logger.info("Created skill", name=name, skill_id=row.id, category=category.value)
            return to_skill(row)

    def _creation_race_winner(self, session, name: str, key: str) -> Skill:
        row, outcome = self._lookup(session, key)
        if row is None:
            raise ValidationError(f"Could not resolve skill '{name}' after a concurrent write")
        self.logger.record_creation_race()
        self.logger.record_resolution(outcome)
        self.logger.debug("Lost skill creation race, using existing row", name=name, skill_id=row.id)
        return to_skill(row)

    @staticmethod
    def _lookup(session, key: str) -> Tuple[Optional[SkillRow], Optional[str]]:
        row = session.scalars(select(SkillRow).where(SkillRow.name_key == key)).first()
        if row is not None:
            return row, "name"
        row = session.scalars(
            select(SkillRow).join(SkillAliasRow).where(SkillAliasRow.alias_key == key)
        ).first()
        if row is not None:
            return row, "alias"
        return None, None

    # Lookup helpers

    def get(self, skill_id: int) -> Skill:
        with self.session_factory() as session:
            row = session.get(SkillRow, skill_id)
            if row is None:
                raise NotFoundError("skill", skill_id)
            return to_skill(row)

    def suggest(self, query: str, limit: int = 10) -> List[Skill]:
        """
        Autocomplete over canonical names and aliases.

        Prefix matches on the name rank first, then prefix matches on an
        alias, then substring matches; ties are alphabetical.

        Raises:
            ValidationError: If the query is blank or limit is outside 1..20
        """
        query = _validate_name(query, "Query")
        if not isinstance(limit, int) or not 1 <= limit <= MAX_SUGGESTIONS:
            raise ValidationError(f"limit must be between 1 and {MAX_SUGGESTIONS}", [f"got {limit!r}"])

        key = skill_key(query)
        with self.session_factory() as session:
            rows = session.scalars(
                select(SkillRow)
                .outerjoin(SkillAliasRow)
                .where(
                    or_(
                        SkillRow.name_key.contains(key, autoescape=True),
                        SkillAliasRow.alias_key.contains(key, autoescape=True),
                    )
                )
                .options(selectinload(SkillRow.aliases))
                .distinct()
            ).all()

            def rank(row: SkillRow):
                if row.name_key.startswith(key):
                    tier = 0
                elif any(a.alias_key.startswith(key) for a in row.aliases):
                    tier = 1
                else:
                    tier = 2
                return (tier, row.name_key, row.id)

            return [to_skill(row) for row in sorted(rows, key=rank)[:limit]]

    def similar_skills(self, skill_id: int) -> List[SkillSimilarity]:
        with self.session_factory() as session:
            return load_similarities(session, [skill_id])[skill_id]

    def list_with_aliases(self) -> List[dict]:
        """Every skill with its aliases and usage counts, ordered by category then name."""
        with self.session_factory() as session:
            declared_counts = dict(
                session.execute(
                    select(DeclaredSkillRow.skill_id, func.count()).group_by(DeclaredSkillRow.skill_id)
                ).all()
            )
            requirement_counts = dict(
                session.execute(
                    select(JobSkillRequirementRow.skill_id, func.count()).group_by(JobSkillRequirementRow.skill_id)
                ).all()
            )
            rows = session.scalars(
                select(SkillRow)
                .options(selectinload(SkillRow.aliases))
                .order_by(SkillRow.category, SkillRow.name_key)
            ).all()
            return [
                {
                    "id": row.id,
                    "name": row.name,
                    "category": row.category,
                    "aliases": sorted(a.alias for a in row.aliases),
                    "declared_count": declared_counts.get(row.id, 0),
                    "requirement_count": requirement_counts.get(row.id, 0),
                }
                for row in rows
            ]

    def parse_skill_name(self, name: str) -> ParsedSkillName:
        return parse_skill_name(_validate_name(name))

    # Administration

    def add_alias(self, skill_id: int, alias: str) -> bool:
        """
        Register an alternate spelling for a skill.

        Returns:
            True if the alias was created, False if it already pointed here

        Raises:
            NotFoundError: If the skill does not exist
            ValidationError: If the alias belongs to another skill
        """
        alias = _validate_name(alias, "Alias")
        key = skill_key(alias)

        with self.session_factory() as session, session.begin():
            skill = session.get(SkillRow, skill_id)
            if skill is None:
                raise NotFoundError("skill", skill_id)

            owner = session.scalars(select(SkillRow).where(SkillRow.name_key == key)).first()
            if owner is not None:
                if owner.id == skill_id:
                    return False
                raise ValidationError(f"'{alias}' is already the name of skill {owner.id}")

            result = session.execute(
                sqlite_insert(SkillAliasRow)
                .values(alias=alias, alias_key=key, skill_id=skill_id)
                .on_conflict_do_nothing(index_elements=["alias_key"])
            )
            if result.rowcount:
                # Re-checked while holding the write lock: a skill created since
                # the check above keeps the key as its name
                owner_id = session.scalar(select(SkillRow.id).where(SkillRow.name_key == key))
                if owner_id is not None:
                    raise ValidationError(f"'{alias}' is already the name of skill {owner_id}")
                self.logger.info("Added alias", skill_id=skill_id, alias=alias)
                return True

            existing = session.scalars(select(SkillAliasRow).where(SkillAliasRow.alias_key == key)).one()
            if existing.skill_id != skill_id:
                raise ValidationError(f"'{alias}' is already an alias of skill {existing.skill_id}")
            return False

    def add_similarity(self, skill_id: int, related_skill_id: int, score: float) -> None:
        """
        Record (or overwrite) the similarity between two distinct skills.

        Raises:
            ValidationError: Same skill twice, or score outside [0, 1]
            NotFoundError: If either skill does not exist
        """
        if skill_id == related_skill_id:
            raise ValidationError("A skill cannot be similar to itself")
        if not 0.0 <= score <= 1.0:
            raise ValidationError("Similarity score must be between 0 and 1", [f"got {score!r}"])

        low, high = sorted((skill_id, related_skill_id))
        with self.session_factory() as session, session.begin():
            for sid in (low, high):
                if session.get(SkillRow, sid) is None:
                    raise NotFoundError("skill", sid)
            stmt = sqlite_insert(SkillSimilarityRow).values(
                skill_id=low, related_skill_id=high, similarity_score=score
            )
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["skill_id", "related_skill_id"],
                    set_={"similarity_score": stmt.excluded.similarity_score},
                )
            )
        self.logger.debug("Recorded similarity", skill_id=low, related_skill_id=high, score=score)

    # Consolidation

    def consolidate(self) -> Dict[str, int]:
        """
        Merge near-duplicate canonical skills, oldest skill first.

        A skill is merged when its name is a variant of an existing skill
        ('Python (Django)'), a known synonym of one ('ReactJS'), or shares
        a compact key with an older skill ('NodeJS' vs 'Node.js'). In a compact-key
        collision a known canonical spelling survives even when it is newer.
        Each merge is its own transaction.

        Returns:
            Dict with processed, merged_count and aliases_created
        """
        with self.session_factory() as session:
            skills = session.execute(select(SkillRow.id, SkillRow.name).order_by(SkillRow.id)).all()

        merged = 0
        aliases_created = 0
        removed: Set[int] = set()
        compact_owners: Dict[str, Tuple[int, str]] = {}

        for skill_id, name in skills:
            if skill_id in removed:
                continue

            target_id = self._merge_target(skill_id, name)
            if target_id is None:
                ckey = compact_key(name)
                owner = compact_owners.get(ckey)
                if owner is None:
                    compact_owners[ckey] = (skill_id, name)
                    continue
                owner_id, owner_name = owner
                if skill_key(name) in CANONICAL_KEYS and skill_key(owner_name) not in CANONICAL_KEYS:
                    aliases_created += self._merge(owner_id, skill_id)
                    removed.add(owner_id)
                    compact_owners[ckey] = (skill_id, name)
                    merged += 1
                    continue
                target_id = owner_id

            aliases_created += self._merge(skill_id, target_id)
            removed.add(skill_id)
            merged += 1

        self.logger.info(
            "Consolidation complete",
            processed=len(skills),
            merged_count=merged,
            aliases_created=aliases_created,
        )
        return {"processed": len(skills), "merged_count": merged, "aliases_created": aliases_created}

    def _merge_target(self, skill_id: int, name: str) -> Optional[int]:
        """Existing skill this name is a variant or known synonym of, if any."""
        candidates = []
        parsed = parse_skill_name(name)
        if parsed.details and skill_key(parsed.base_skill) != skill_key(name):
            candidates.append(parsed.base_skill)
        synonym_of = KNOWN_SYNONYMS.get(skill_key(name))
        if synonym_of:
            candidates.append(synonym_of)

        if candidates:
            with self.session_factory() as session:
                for candidate in candidates:
                    row, _ = self._lookup(session, skill_key(candidate))
                    if row is not None and row.id != skill_id:
                        return row.id
        return None

    def _merge(self, loser_id: int, target_id: int) -> int:
        """Fold one skill into another. Returns the number of aliases created."""
        with self.session_factory() as session, session.begin():
            loser = session.get(SkillRow, loser_id)
            if loser is None or session.get(SkillRow, target_id) is None:
                raise NotFoundError("skill", loser_id if loser is None else target_id)
            loser_name = loser.name

            # Candidates already holding the target keep their own row
            held = select(DeclaredSkillRow.candidate_id).where(DeclaredSkillRow.skill_id == target_id)
            session.execute(
                delete(DeclaredSkillRow).where(
                    DeclaredSkillRow.skill_id == loser_id, DeclaredSkillRow.candidate_id.in_(held)
                )
            )
            session.execute(
                update(DeclaredSkillRow).where(DeclaredSkillRow.skill_id == loser_id).values(skill_id=target_id)
            )

            required = select(JobSkillRequirementRow.job_posting_id).where(
                JobSkillRequirementRow.skill_id == target_id
            )
            session.execute(
                delete(JobSkillRequirementRow).where(
                    JobSkillRequirementRow.skill_id == loser_id,
                    JobSkillRequirementRow.job_posting_id.in_(required),
                )
            )
            session.execute(
                update(JobSkillRequirementRow)
                .where(JobSkillRequirementRow.skill_id == loser_id)
                .values(skill_id=target_id)
            )

            session.execute(
                update(SkillAliasRow).where(SkillAliasRow.skill_id == loser_id).values(skill_id=target_id)
            )
            self._repoint_similarities(session, loser_id, target_id)

            session.execute(delete(SkillRow).where(SkillRow.id == loser_id))
            result = session.execute(
                sqlite_insert(SkillAliasRow)
                .values(alias=loser_name, alias_key=skill_key(loser_name), skill_id=target_id)
                .on_conflict_do_nothing(index_elements=["alias_key"])
            )
            created = result.rowcount or 0

        self.logger.record_merge()
        self.logger.info("Merged skill", merged=loser_name, merged_id=loser_id, into_id=target_id)
        return created

    @staticmethod
    def _repoint_similarities(session, loser_id: int, target_id: int) -> None:
        edges = session.scalars(
            select(SkillSimilarityRow).where(
                or_(SkillSimilarityRow.skill_id == loser_id, SkillSimilarityRow.related_skill_id == loser_id)
            )
        ).all()

        moved = []
        for edge in edges:
            other = edge.related_skill_id if edge.skill_id == loser_id else edge.skill_id
            moved.append((other, edge.similarity_score))
            session.delete(edge)
        session.flush()

        for other, score in moved:
            if other == target_id:
                continue
            low, high = sorted((other, target_id))
            stmt = sqlite_insert(SkillSimilarityRow).values(
                skill_id=low, related_skill_id=high, similarity_score=score
            )
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["skill_id", "related_skill_id"],
                    set_={
                        "similarity_score": func.max(
                            SkillSimilarityRow.similarity_score, stmt.excluded.similarity_score
                        )
                    },
                )
            )
