"""
Skill-name normalization.

Builds the lookup keys used by the catalog and recognizes variant
spellings ('React (Hooks)', 'ReactJS') that consolidation folds into a
single canonical skill.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional

from .models import SkillCategory


def clean_skill_name(s: str) -> str:
    """Trim and collapse internal whitespace, keeping the original casing."""
    return " ".join(s.strip().split())


def skill_key(s: str) -> str:
    return clean_skill_name(s).lower()


def compact_key(s: str) -> str:
    """Key that ignores spacing and punctuation: 'Node.js' and 'NodeJS' collide."""
    return re.sub(r"[\s.\-_/]+", "", skill_key(s))


# Canonical name -> alternate spellings
SKILL_ALIASES: Dict[str, list] = {
    "React": ["ReactJS", "React.js", "React JS"],
    "Vue.js": ["Vue", "VueJS", "Vue JS"],
    "Angular": ["AngularJS", "Angular.js"],
    "Node.js": ["Node", "NodeJS", "Node JS"],
    "Next.js": ["Next", "NextJS", "Next JS"],
    "Express.js": ["Express", "ExpressJS"],
    "JavaScript": ["JS", "ECMAScript", "ES6", "ES2015"],
    "TypeScript": ["TS"],
    "PostgreSQL": ["Postgres", "PSQL"],
    "MongoDB": ["Mongo"],
    "Amazon Web Services": ["AWS"],
    "Google Cloud Platform": ["GCP", "Google Cloud"],
    "Microsoft Azure": ["Azure"],
}

# alias key -> canonical name
KNOWN_SYNONYMS: Dict[str, str] = {
    skill_key(alias): canonical
    for canonical, aliases in SKILL_ALIASES.items()
    for alias in aliases
}

SKILL_PATTERNS = [
    (re.compile(r"^React(?:\.js|JS)?\s*\(.*\)$", re.I), "React", SkillCategory.FRAMEWORK_LIBRARY),
    (re.compile(r"^Next(?:\.js)?\s*\(.*\)$", re.I), "Next.js", SkillCategory.FRAMEWORK_LIBRARY),
    (re.compile(r"^Node(?:\.js)?\s*\(.*\)$", re.I), "Node.js", SkillCategory.PROGRAMMING_LANGUAGE),
    (re.compile(r"^AWS\s*\(.*\)$", re.I), "AWS", SkillCategory.CLOUD_PLATFORM),
    (re.compile(r"^Azure\s*\(.*\)$", re.I), "Azure", SkillCategory.CLOUD_PLATFORM),
    (re.compile(r"^Cloudflare\s*\(.*\)$", re.I), "Cloudflare", SkillCategory.CLOUD_PLATFORM),
    (re.compile(r"^Google Cloud\s*\(.*\)$", re.I), "Google Cloud", SkillCategory.CLOUD_PLATFORM),
    (re.compile(r"^PostgreSQL\s*\(.*\)$", re.I), "PostgreSQL", SkillCategory.DATABASE),
    (re.compile(r"^MySQL\s*\(.*\)$", re.I), "MySQL", SkillCategory.DATABASE),
    (re.compile(r"^MongoDB\s*\(.*\)$", re.I), "MongoDB", SkillCategory.DATABASE),
    (re.compile(r"^JavaScript\s*\(.*\)$", re.I), "JavaScript", SkillCategory.PROGRAMMING_LANGUAGE),
    (re.compile(r"^TypeScript\s*\(.*\)$", re.I), "TypeScript", SkillCategory.PROGRAMMING_LANGUAGE),
    (re.compile(r"^Python\s*\(.*\)$", re.I), "Python", SkillCategory.PROGRAMMING_LANGUAGE),
    (re.compile(r"^Docker\s*\(.*\)$", re.I), "Docker", SkillCategory.DEVOPS_TOOLS),
    (re.compile(r"^Kubernetes\s*\(.*\)$", re.I), "Kubernetes", SkillCategory.DEVOPS_TOOLS),
    (re.compile(r"^Git\s*\(.*\)$", re.I), "Git", SkillCategory.DEVOPS_TOOLS),
]

_PARENS = re.compile(r"\(([^)]+)\)")
_BASE_WITH_PARENS = re.compile(r"^([^(]+)\s*\(([^)]+)\)$")
_BASE_WITH_SEPARATOR = re.compile(r"^([^,]+?)\s*(?:,|\s-\s)\s*(.+)$")


@dataclass(frozen=True)
class ParsedSkillName:
    base_skill: str
    details: Optional[str]
    confidence: float
    pattern: str
    category: Optional[SkillCategory] = None


def parse_skill_name(name: str) -> ParsedSkillName:
    """
    Split a skill mention into its base skill and variant details.

    'React (Hooks, Context)' -> base 'React', details 'Hooks, Context'.
    Names without a recognizable variant come back unchanged with
    pattern 'exact'.
    """
    trimmed = clean_skill_name(name)

    for pattern, base, category in SKILL_PATTERNS:
        if pattern.match(trimmed):
            details = _PARENS.search(trimmed)
            return ParsedSkillName(
                base_skill=base,
                details=details.group(1) if details else None,
                confidence=0.9,
                pattern=pattern.pattern,
                category=category,
            )

    m = _BASE_WITH_PARENS.match(trimmed)
    if m and m.group(1).strip() and m.group(2).strip():
        return ParsedSkillName(m.group(1).strip(), m.group(2).strip(), 0.7, "parentheses")

    m = _BASE_WITH_SEPARATOR.match(trimmed)
    if m and m.group(1).strip() and m.group(2).strip():
        return ParsedSkillName(m.group(1).strip(), m.group(2).strip(), 0.6, "separator")

    return ParsedSkillName(trimmed, None, 1.0, "exact")


DEGREE_FIELDS = [
    ("computer science", "Computer Science"),
    ("engineering", "Engineering"),
    ("business", "Business"),
]


def field_from_degree(degree: Optional[str]) -> Optional[str]:
    if not degree:
        return None
    lowered = degree.lower()
    for keyword, label in DEGREE_FIELDS:
        if keyword in lowered:
            return label
    return None
