"""Tests for weighted format selection, topic fit and diversity."""

import random
from collections import Counter

from reelpipe.formats.rules import FormatRules, PersonaFormatRule, load_format_rules
from reelpipe.formats.selector import (
    DIVERSITY_FACTOR,
    FormatScore,
    format_distribution,
    score_formats,
    select_format,
    weighted_choice,
)


def _rules(**rule_kwargs) -> FormatRules:
    rule = PersonaFormatRule(**rule_kwargs)
    return FormatRules(rules={"english_shots": {"english_vocab_builder": rule}})


def test_distribution_follows_weights():
    """With no topic preference and no recent history, picks track the configured weights."""
    rules = _rules(
        formats=["mcq", "challenge"],
        weights={"mcq": 0.6, "challenge": 0.4},
    )
    rng = random.Random(1234)
    n = 10_000
    counts = Counter(
        select_format("english_shots", "english_vocab_builder", "eng_vocab_idioms", rules=rules, rng=rng)
        for _ in range(n)
    )
    assert abs(counts["mcq"] / n - 0.6) < 0.03
    assert abs(counts["challenge"] / n - 0.4) < 0.03


def test_recent_use_lowers_share():
    rules = _rules(formats=["mcq", "challenge"], weights={"mcq": 0.5, "challenge": 0.5})
    rng = random.Random(99)
    n = 10_000
    counts = Counter(
        select_format(
            "english_shots", "english_vocab_builder", "eng_vocab_idioms",
            ["mcq", "mcq", "mcq"], rules=rules, rng=rng,
        )
        for _ in range(n)
    )
    expected = 0.5 * DIVERSITY_FACTOR ** 3 / (0.5 * DIVERSITY_FACTOR ** 3 + 0.5)
    assert abs(counts["mcq"] / n - expected) < 0.03


def test_only_three_recent_formats_count():
    rules = _rules(formats=["mcq", "challenge"], weights={"mcq": 0.5, "challenge": 0.5})
    rule = rules.rule_for("english_shots", "english_vocab_builder")
    scored = score_formats(rule, rules, "eng_vocab_idioms", ["challenge", "challenge", "challenge", "mcq", "mcq"])
    by_format = {s.format: s.score for s in scored}
    assert by_format["mcq"] == 0.5
    assert abs(by_format["challenge"] - 0.5 * DIVERSITY_FACTOR ** 3) < 1e-9


def test_unsuitable_format_is_halved():
    """common_mistake does not list eng_vocab_idioms, so its weight is halved."""
    rules = _rules(formats=["mcq", "common_mistake"], weights={"mcq": 0.5, "common_mistake": 0.5})
    rule = rules.rule_for("english_shots", "english_vocab_builder")
    scored = {s.format: s for s in score_formats(rule, rules, "eng_vocab_idioms", [])}
    assert scored["common_mistake"].score == 0.25
    assert "not suited to topic" in scored["common_mistake"].reasons


def test_topic_preferences_add_ranked_bonus():
    rules = FormatRules(
        rules={"english_shots": {"english_vocab_builder": PersonaFormatRule(
            formats=["mcq", "quick_fix"], weights={"mcq": 0.5, "quick_fix": 0.5},
        )}},
        topic_preferences={"eng_vocab_synonyms": ["quick_fix", "mcq"]},
    )
    rule = rules.rule_for("english_shots", "english_vocab_builder")
    scored = {s.format: s.score for s in score_formats(rule, rules, "eng_vocab_synonyms", [])}
    assert abs(scored["quick_fix"] - 0.7) < 1e-9
    assert abs(scored["mcq"] - 0.6) < 1e-9


def test_min_score_floor():
    rules = _rules(formats=["mcq", "challenge"], weights={"mcq": 1.0})
    rule = rules.rule_for("english_shots", "english_vocab_builder")
    scored = {s.format: s.score for s in score_formats(rule, rules, "eng_vocab_idioms", [])}
    assert scored["challenge"] == 0.01


def test_zero_total_returns_first_candidate():
    scored = [FormatScore("quick_fix", 0.0), FormatScore("mcq", 0.0)]
    assert weighted_choice(scored, random.Random(0)) == "quick_fix"
    rules = _rules(formats=["quick_fix", "mcq"], weights={})
    picked = select_format(
        "english_shots", "english_vocab_builder", "eng_vocab_synonyms",
        rules=rules, rng=random.Random(0), min_score=0.0,
    )
    assert picked == "quick_fix"


def test_no_rule_uses_default_fallback():
    rules = FormatRules()
    assert select_format("unknown_tenant", "english_vocab_builder", "x", rules=rules) == "mcq"
    assert select_format(None, "english_vocab_builder", "x", rules=rules) == "mcq"


def test_empty_candidate_list_uses_rule_fallback():
    rules = _rules(formats=[], fallback="challenge")
    assert select_format("english_shots", "english_vocab_builder", "x", rules=rules) == "challenge"


def test_same_seed_same_choice(config_dir):
    rules = load_format_rules(config_dir / "format_rules.yaml")
    picks_a = [select_format("english_shots", "english_vocab_builder", "eng_vocab_register",
                             rules=rules, rng=random.Random(5)) for _ in range(3)]
    picks_b = [select_format("english_shots", "english_vocab_builder", "eng_vocab_register",
                             rules=rules, rng=random.Random(5)) for _ in range(3)]
    assert picks_a == picks_b


def test_shipped_rules_distribution(config_dir):
    rules = load_format_rules(config_dir / "format_rules.yaml")
    dist = format_distribution("english_shots", "english_vocab_builder", rules)
    assert dist == {"mcq": 50.0, "common_mistake": 30.0, "quick_fix": 20.0}
    assert format_distribution("nobody", "english_vocab_builder", rules) == {}
    assert rules.validate_selection("english_shots", "english_vocab_builder", "quick_fix")
    assert not rules.validate_selection("english_shots", "english_vocab_builder", "quick_tip")
