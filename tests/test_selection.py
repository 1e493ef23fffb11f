import random
import unittest

from gatedraw.draw.selection import (
    DEFAULT_SELECTION_REGISTRY,
    NO_VALID_POSITIONS,
    SelectionOutcome,
    SelectionParams,
    SelectionRegistry,
    SelectionRule,
)
from gatedraw.models import Participant

from drawing_fakes import NOW


def participants_at(*positions):
    return [
        Participant(
            user_id=f"user-{p}",
            entry_ref=f"post-{p}",
            position=p,
            participated_at=NOW,
        )
        for p in positions
    ]


class RandomRuleTests(unittest.TestCase):
    def test_picks_requested_count_without_repeats(self):
        pool = participants_at(*range(2, 22))
        outcome = DEFAULT_SELECTION_REGISTRY.resolve(
            "random", pool, SelectionParams(winner_count=5), random.Random(7)
        )
        self.assertFalse(outcome.failed)
        self.assertEqual(len(outcome.winners), 5)
        self.assertEqual(len({w.user_id for w in outcome.winners}), 5)
        for winner in outcome.winners:
            self.assertIn(winner, pool)

    def test_caps_at_participant_count(self):
        pool = participants_at(2, 3)
        outcome = DEFAULT_SELECTION_REGISTRY.resolve(
            "random", pool, SelectionParams(winner_count=10), random.Random(1)
        )
        self.assertEqual(sorted(w.position for w in outcome.winners), [2, 3])

    def test_empty_pool_is_not_a_failure(self):
        outcome = DEFAULT_SELECTION_REGISTRY.resolve(
            "random", [], SelectionParams(winner_count=3), random.Random(1)
        )
        self.assertFalse(outcome.failed)
        self.assertEqual(outcome.winners, [])

    def test_seeded_source_is_reproducible(self):
        pool = participants_at(*range(2, 40))
        params = SelectionParams(winner_count=4)
        first = DEFAULT_SELECTION_REGISTRY.resolve("random", pool, params, random.Random(42))
        second = DEFAULT_SELECTION_REGISTRY.resolve("random", pool, params, random.Random(42))
        self.assertEqual(
            [w.position for w in first.winners], [w.position for w in second.winners]
        )


class FixedPositionRuleTests(unittest.TestCase):
    def test_matches_configured_order_and_skips_missing(self):
        pool = participants_at(2, 8, 28, 40)
        outcome = DEFAULT_SELECTION_REGISTRY.resolve(
            "fixed-position", pool, SelectionParams(positions=(8, 18, 28))
        )
        self.assertFalse(outcome.failed)
        self.assertEqual([w.position for w in outcome.winners], [8, 28])

    def test_order_follows_configuration_not_position(self):
        pool = participants_at(5, 9)
        outcome = DEFAULT_SELECTION_REGISTRY.resolve(
            "fixed-position", pool, SelectionParams(positions=(9, 5))
        )
        self.assertEqual([w.position for w in outcome.winners], [9, 5])

    def test_no_match_fails_with_reason(self):
        pool = participants_at(2, 3)
        outcome = DEFAULT_SELECTION_REGISTRY.resolve(
            "fixed-position", pool, SelectionParams(positions=(50,))
        )
        self.assertTrue(outcome.failed)
        self.assertEqual(outcome.failure_reason, NO_VALID_POSITIONS)
        self.assertEqual(outcome.winners, [])


class SelectionRegistryTests(unittest.TestCase):
    def test_default_rules(self):
        self.assertEqual(
            set(DEFAULT_SELECTION_REGISTRY.available_rules()), {"random", "fixed-position"}
        )

    def test_register_custom_and_reject_duplicates(self):
        registry = SelectionRegistry()
        first = SelectionRule(
            key="first", selector=lambda ps, params, rng: SelectionOutcome(list(ps[:1]))
        )
        registry.register(first)
        with self.assertRaises(ValueError):
            registry.register(first)
        registry.register(first, replace=True)

        pool = participants_at(3, 4)
        outcome = registry.resolve("first", pool, SelectionParams())
        self.assertEqual([w.position for w in outcome.winners], [3])

    def test_unknown_rule(self):
        with self.assertRaises(KeyError):
            SelectionRegistry().get("missing")


if __name__ == "__main__":
    unittest.main()
