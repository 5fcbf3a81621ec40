# chatbot/nlu_rules.py
import re
from typing import Dict, Iterable, List, Optional

# canonical subject -> aliases seen in questions and in Canvas course names
SUBJECT_ALIASES: Dict[str, List[str]] = {
    "math": ["math", "algebra", "geometry", "calculus", "pre-calc", "precalc"],
    "science": ["science", "physics", "chemistry", "biology", "bio", "chem", "phys"],
    "english": ["english", "ela", "language arts", "writing", "literature", "lit"],
    "history": ["history", "social studies", "government", "civics", "geography", "geo"],
    "spanish": ["spanish", "español"],
    "french": ["french", "français"],
    "art": ["art", "drawing", "painting", "ceramics", "sculpture"],
    "music": ["music", "band", "orchestra", "choir", "chorus"],
    "pe": ["pe", "p.e.", "physical education", "gym", "health", "fitness"],
    "computer": ["computer", "computers", "cs", "programming", "coding", "tech"],
}

# words that make "how ... <subject>" a per-course grade question
SUBJECT_KEYWORDS = list(SUBJECT_ALIASES.keys())


def _alias_pattern(alias: str) -> "re.Pattern":
    # \b doesn't work after a trailing "." (p.e.)
    return re.compile(rf"(?<![a-z0-9]){re.escape(alias)}(?![a-z0-9])")


_ALIAS_PATTERNS = {
    subject: [_alias_pattern(a) for a in aliases]
    for subject, aliases in SUBJECT_ALIASES.items()
}


def extract_course_filter(text: str) -> Optional[str]:
    """
    Find the first subject mentioned as a standalone word and return its
    canonical tag, e.g. "how am I doing in algebra" -> "math".
    """
    t = text.lower()
    for subject, patterns in _ALIAS_PATTERNS.items():
        if any(p.search(t) for p in patterns):
            return subject
    return None


def matches_course(name: str, code: str, course_filter: str) -> bool:
    f = course_filter.lower().strip()
    name, code = name.lower(), code.lower()
    if f in name or f in code:
        return True
    # a canonical tag or alias matches any course named after a sibling alias
    for aliases in SUBJECT_ALIASES.values():
        if f in aliases:
            if any(a in name or a in code for a in aliases):
                return True
    return False


def filter_courses(courses: Iterable, course_filter: Optional[str]) -> List:
    """Courses whose name or code matches the filter; everything when no filter."""
    courses = list(courses)
    if not course_filter or not course_filter.strip():
        return courses
    return [c for c in courses if matches_course(c.name, c.code, course_filter)]
