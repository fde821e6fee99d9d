from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from .db import QueryFilter, SqlClause

CLAUSE_SEPARATOR = ","
ALTERNATIVE_SEPARATOR = "|"
NEGATION_PREFIX = "-"


@dataclass(frozen=True)
class Predicate:
    and_tags: FrozenSet[str] = field(default_factory=frozenset)
    or_tags: FrozenSet[str] = field(default_factory=frozenset)
    not_tags: FrozenSet[str] = field(default_factory=frozenset)


def _parse_alternatives(clause: str, and_tags: List[str], or_tags: List[str], not_tags: List[str]) -> None:
    # "-a|b": negation binds to its own alternative, so this is "not a" plus "or b".
    for token in clause.split(ALTERNATIVE_SEPARATOR):
        token = token.strip()
        if not token:
            continue
        if token.startswith(NEGATION_PREFIX):
            negated = token[len(NEGATION_PREFIX):].strip()
            if negated:
                not_tags.append(negated)
        else:
            or_tags.append(token)


def parse_tag_query(raw: Optional[str]) -> Predicate:
    """Parse ``"SFW, CG|3D, -Sketch"`` into a :class:`Predicate`.

    Clauses are comma separated. ``-tag`` excludes, ``a|b`` requires at
    least one alternative, anything else is required. Never raises.
    """
    and_tags: List[str] = []
    or_tags: List[str] = []
    not_tags: List[str] = []
    if not raw or not isinstance(raw, str):
        return Predicate()
    for clause in raw.split(CLAUSE_SEPARATOR):
        clause = clause.strip()
        if not clause:
            continue
        if ALTERNATIVE_SEPARATOR in clause:
            _parse_alternatives(clause, and_tags, or_tags, not_tags)
        elif clause.startswith(NEGATION_PREFIX):
            negated = clause[len(NEGATION_PREFIX):].strip()
            if negated:
                not_tags.append(negated)
        else:
            and_tags.append(clause)
    return Predicate(
        and_tags=frozenset(and_tags),
        or_tags=frozenset(or_tags),
        not_tags=frozenset(not_tags),
    )


def _placeholders(count: int) -> str:
    return ",".join(["?"] * count)


def build_query_filter(predicate: Predicate, text: Optional[str] = None) -> QueryFilter:
    """Translate a predicate and free-text filter into repository primitives."""
    where: List[SqlClause] = []
    having: Optional[SqlClause] = None
    and_tags = tuple(sorted(predicate.and_tags))
    or_tags = tuple(sorted(predicate.or_tags))
    not_tags = tuple(sorted(predicate.not_tags))
    join_tags = bool(and_tags or or_tags)

    if join_tags:
        wanted = and_tags + or_tags
        where.append(SqlClause(f"t.tag IN ({_placeholders(len(wanted))})", wanted))
        conditions: List[str] = []
        params: List[object] = []
        if and_tags:
            conditions.append(
                f"COUNT(DISTINCT CASE WHEN t.tag IN ({_placeholders(len(and_tags))}) THEN t.tag END) = ?"
            )
            params.extend(and_tags)
            params.append(len(and_tags))
        if or_tags:
            conditions.append(
                f"SUM(CASE WHEN t.tag IN ({_placeholders(len(or_tags))}) THEN 1 ELSE 0 END) >= 1"
            )
            params.extend(or_tags)
        having = SqlClause(" AND ".join(conditions), tuple(params))

    if not_tags:
        where.append(
            SqlClause(
                f"a.id NOT IN (SELECT asset_id FROM asset_tags WHERE tag IN ({_placeholders(len(not_tags))}))",
                not_tags,
            )
        )

    if text:
        where.append(SqlClause("contains_folded(a.artist, ?) OR contains_folded(a.name, ?)", (text, text)))

    return QueryFilter(join_tags=join_tags, where=tuple(where), having=having)
