import unittest
from datetime import datetime, timedelta, timezone

from gatedraw.config import DrawPolicy, StaticPolicyProvider
from gatedraw.draw.positions import format_positions, parse_fixed_positions
from gatedraw.errors import ValidationError
from gatedraw.validation import (
    ValidationGate,
    parse_draw_time,
    validate_drawing_config,
)

from drawing_fakes import NOW, valid_config


def codes(result, field):
    return {err.code for err in result.errors if err.field == field}


class ParseFixedPositionsTests(unittest.TestCase):
    def test_comma_separated_text(self):
        self.assertEqual(parse_fixed_positions("8, 18, 28"), [8, 18, 28])

    def test_iterable_of_mixed_tokens(self):
        self.assertEqual(parse_fixed_positions([3, "5", " 7 "]), [3, 5, 7])

    def test_blank_and_none_are_empty(self):
        self.assertEqual(parse_fixed_positions(None), [])
        self.assertEqual(parse_fixed_positions("   "), [])

    def test_rejects_non_numeric_token(self):
        with self.assertRaises(ValueError):
            parse_fixed_positions("8, eight")
        with self.assertRaises(ValueError):
            parse_fixed_positions("8,,9")

    def test_rejects_booleans(self):
        with self.assertRaises(TypeError):
            parse_fixed_positions([True, 3])

    def test_format_positions(self):
        self.assertEqual(format_positions([8, 18]), "#8, #18")


class ParseDrawTimeTests(unittest.TestCase):
    def test_z_suffix(self):
        parsed = parse_draw_time("2026-05-03T10:00:00Z")
        self.assertEqual(parsed, datetime(2026, 5, 3, 10, 0, tzinfo=timezone.utc))

    def test_naive_is_utc(self):
        parsed = parse_draw_time("2026-05-03T10:00:00")
        self.assertEqual(parsed.tzinfo, timezone.utc)

    def test_offset_is_converted(self):
        parsed = parse_draw_time("2026-05-03T19:00:00+09:00")
        self.assertEqual(parsed, datetime(2026, 5, 3, 10, 0, tzinfo=timezone.utc))

    def test_garbage(self):
        with self.assertRaises(ValueError):
            parse_draw_time("next tuesday")


class ValidationGateTests(unittest.TestCase):
    def setUp(self):
        self.gate = ValidationGate(DrawPolicy(max_winners=10, min_participants_global=2))

    def test_valid_random_config(self):
        result = self.gate.validate(valid_config(), now=NOW)
        self.assertTrue(result.ok)
        config = result.config
        self.assertEqual(config.selection_rule, "random")
        self.assertEqual(config.winner_count, 2)
        self.assertEqual(config.min_participants, 3)
        self.assertEqual(config.backup_policy, "cancel")
        self.assertEqual(config.fixed_positions, ())
        self.assertEqual(config.draw_time, NOW + timedelta(days=2))

    def test_all_errors_are_collected(self):
        result = self.gate.validate(
            {
                "name": " ",
                "prize_description": "",
                "draw_time": (NOW - timedelta(minutes=5)).isoformat(),
                "winner_count": 0,
                "min_participants": 1,
                "backup_policy": "maybe",
            },
            now=NOW,
        )
        self.assertFalse(result.ok)
        self.assertIsNone(result.config)
        self.assertEqual(
            result.fields(),
            {
                "name",
                "prize_description",
                "draw_time",
                "winner_count",
                "min_participants",
                "backup_policy",
            },
        )
        self.assertEqual(codes(result, "draw_time"), {"not_in_future"})
        self.assertEqual(codes(result, "winner_count"), {"not_positive"})
        self.assertEqual(codes(result, "min_participants"), {"too_low"})
        self.assertEqual(codes(result, "backup_policy"), {"invalid_choice"})

    def test_missing_fields_are_required(self):
        result = self.gate.validate({}, now=NOW)
        for field in ("name", "prize_description", "draw_time", "winner_count",
                      "min_participants", "backup_policy"):
            self.assertEqual(codes(result, field), {"required"}, field)

    def test_length_limits(self):
        policy = DrawPolicy(name_max_length=5, prize_max_length=3)
        result = ValidationGate(policy).validate(
            valid_config(name="abcdef", prize_description="abcd", min_participants=1),
            now=NOW,
        )
        self.assertEqual(codes(result, "name"), {"too_long"})
        self.assertEqual(codes(result, "prize_description"), {"too_long"})

    def test_draw_time_exactly_now_is_rejected(self):
        result = self.gate.validate(valid_config(draw_time=NOW.isoformat()), now=NOW)
        self.assertEqual(codes(result, "draw_time"), {"not_in_future"})

    def test_draw_time_invalid_format(self):
        result = self.gate.validate(valid_config(draw_time="soon"), now=NOW)
        self.assertEqual(codes(result, "draw_time"), {"invalid_format"})

    def test_winner_count_above_max(self):
        result = self.gate.validate(valid_config(winner_count=11), now=NOW)
        self.assertEqual(codes(result, "winner_count"), {"too_high"})

    def test_winner_count_string_is_parsed(self):
        result = self.gate.validate(valid_config(winner_count="4"), now=NOW)
        self.assertTrue(result.ok)
        self.assertEqual(result.config.winner_count, 4)

    def test_min_participants_must_be_positive(self):
        result = self.gate.validate(valid_config(min_participants="-1"), now=NOW)
        self.assertEqual(codes(result, "min_participants"), {"not_positive"})

    def test_backup_policy_alias(self):
        result = self.gate.validate(valid_config(backup_policy="continue"), now=NOW)
        self.assertTrue(result.ok)
        self.assertEqual(result.config.backup_policy, "proceed-anyway")

    def test_fixed_positions_text_infers_rule(self):
        result = self.gate.validate(
            valid_config(fixed_positions="8, 18, 28", winner_count=None), now=NOW
        )
        self.assertTrue(result.ok, result.errors)
        self.assertEqual(result.config.selection_rule, "fixed-position")
        self.assertEqual(result.config.fixed_positions, (8, 18, 28))
        self.assertEqual(result.config.winner_count, 3)

    def test_duplicate_positions_rejected(self):
        result = self.gate.validate(valid_config(fixed_positions="8,8"), now=NOW)
        self.assertEqual(codes(result, "fixed_positions"), {"duplicate_position"})

    def test_position_one_rejected(self):
        result = self.gate.validate(valid_config(fixed_positions="1,8"), now=NOW)
        self.assertEqual(codes(result, "fixed_positions"), {"invalid_position"})

    def test_non_numeric_positions_rejected(self):
        result = self.gate.validate(valid_config(fixed_positions="8, x"), now=NOW)
        self.assertEqual(codes(result, "fixed_positions"), {"invalid_format"})

    def test_fixed_rule_without_positions(self):
        result = self.gate.validate(
            valid_config(selection_rule="fixed-position"), now=NOW
        )
        self.assertEqual(codes(result, "fixed_positions"), {"required"})

    def test_too_many_positions(self):
        positions = ",".join(str(p) for p in range(2, 14))
        result = self.gate.validate(valid_config(fixed_positions=positions), now=NOW)
        self.assertEqual(codes(result, "fixed_positions"), {"too_many"})

    def test_unknown_rule(self):
        result = self.gate.validate(valid_config(selection_rule="lottery"), now=NOW)
        self.assertEqual(codes(result, "selection_rule"), {"invalid_choice"})

    def test_optional_fields_pass_through(self):
        result = self.gate.validate(
            valid_config(prize_image_url=" https://img.example/k.png ", description="Hi"),
            now=NOW,
        )
        self.assertEqual(result.config.prize_image_url, "https://img.example/k.png")
        self.assertEqual(result.config.description, "Hi")

    def test_raise_for_errors(self):
        result = self.gate.validate(valid_config(name=""), now=NOW)
        with self.assertRaises(ValidationError) as ctx:
            result.raise_for_errors()
        err = ctx.exception
        self.assertEqual(err.status_code, 422)
        payload = err.to_dict()
        self.assertEqual(payload["error"], "validation_error")
        self.assertEqual(payload["errors"][0]["field"], "name")
        self.assertEqual(payload["errors"][0]["code"], "required")

    def test_policy_provider_and_shortcut(self):
        provider = StaticPolicyProvider(DrawPolicy(max_winners=1))
        result = validate_drawing_config(valid_config(), policy=provider, now=NOW)
        self.assertEqual(codes(result, "winner_count"), {"too_high"})


if __name__ == "__main__":
    unittest.main()
