"""Weighted-random format selection with topic fit and a diversity penalty."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from reelpipe.formats.rules import FormatRules, PersonaFormatRule, load_format_rules

logger = logging.getLogger(__name__)

UNSUITABLE_FACTOR = 0.5
PREFERENCE_BONUS = 0.1
DIVERSITY_FACTOR = 0.8
DIVERSITY_WINDOW = 3
MIN_SCORE = 0.01


@dataclass
class FormatScore:
    format: str
    score: float
    reasons: list[str] = field(default_factory=list)


def score_formats(
    rule: PersonaFormatRule,
    rules: FormatRules,
    topic: str,
    recent_formats: list[str],
    min_score: float = MIN_SCORE,
) -> list[FormatScore]:
    """Score every candidate of ``rule`` for ``topic`` (candidate order preserved)."""
    prefs = rules.preferences(topic)
    recent = recent_formats[:DIVERSITY_WINDOW]
    scored: list[FormatScore] = []
    for fmt in rule.formats:
        score = rule.weights.get(fmt, 0.0)
        reasons = [f"weight {score:.2f}"]
        if not rules.is_suitable(fmt, topic):
            score *= UNSUITABLE_FACTOR
            reasons.append("not suited to topic")
        if fmt in prefs:
            bonus = (len(prefs) - prefs.index(fmt)) * PREFERENCE_BONUS
            score += bonus
            reasons.append(f"topic preference +{bonus:.2f}")
        score = max(score, min_score)
        repeats = recent.count(fmt)
        if repeats:
            score *= DIVERSITY_FACTOR ** repeats
            reasons.append(f"used {repeats}x recently")
        scored.append(FormatScore(format=fmt, score=score, reasons=reasons))
    return scored


def weighted_choice(scored: list[FormatScore], rng: random.Random) -> str:
    """Draw one format proportionally to score.

    Exact-zero total weight returns the first candidate. Float residue at the
    top of the range falls to the last candidate.
    """
    total = sum(s.score for s in scored)
    if total <= 0:
        return scored[0].format
    r = rng.random() * total
    cumulative = 0.0
    for s in scored:
        cumulative += s.score
        if r < cumulative:
            return s.format
    return scored[-1].format


def select_format(
    tenant_id: str | None,
    persona: str,
    topic: str,
    recent_formats: list[str] | None = None,
    *,
    rules: FormatRules | None = None,
    rng: random.Random | None = None,
    min_score: float = MIN_SCORE,
) -> str:
    """Choose the content format for one piece of content.

    ``recent_formats`` is most-recent first; only the last three count toward
    the diversity penalty. Deterministic for a fixed ``rng``.
    """
    rules = rules or load_format_rules()
    rule = rules.rule_for(tenant_id, persona)
    if rule is None:
        return rules.default_fallback
    if not rule.formats:
        return rule.fallback
    scored = score_formats(rule, rules, topic, recent_formats or [], min_score=min_score)
    choice = weighted_choice(scored, rng or random.Random())
    logger.debug(
        "Format for %s/%s/%s: %s (%s)",
        tenant_id,
        persona,
        topic,
        choice,
        ", ".join(f"{s.format}={s.score:.3f}" for s in scored),
    )
    return choice


def format_distribution(tenant_id: str, persona: str, rules: FormatRules | None = None) -> dict[str, float]:
    rules = rules or load_format_rules()
    rule = rules.rule_for(tenant_id, persona)
    return rule.distribution() if rule else {}
