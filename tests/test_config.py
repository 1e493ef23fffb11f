import os
import threading
import unittest
from unittest.mock import patch

from gatedraw.config import DrawPolicy, EnvPolicyProvider, StaticPolicyProvider
from gatedraw.draw.locking import KeyedLock
from gatedraw.errors import (
    DrawingError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)


class DrawPolicyTests(unittest.TestCase):
    def test_defaults(self):
        policy = DrawPolicy()
        self.assertEqual(policy.max_winners, 100)
        self.assertEqual(policy.min_participants_global, 1)
        self.assertEqual(policy.lock_delay_minutes, 30)
        self.assertEqual(policy.excluded_groups, ())
        self.assertTrue(policy.enabled)

    @patch("gatedraw.config.load_dotenv")
    def test_from_env(self, mock_load_dotenv):
        env = {
            "DRAW_MAX_WINNERS": "5",
            "DRAW_MIN_PARTICIPANTS_GLOBAL": "3",
            "DRAW_LOCK_DELAY_MINUTES": "0",
            "DRAW_EXCLUDED_GROUPS": "staff|moderators, bots",
            "DRAW_ENABLED": "false",
            "DRAW_LOCK_TIMEOUT_SECONDS": "12",
        }
        with patch.dict(os.environ, env, clear=True):
            policy = EnvPolicyProvider().current()
        self.assertEqual(policy.max_winners, 5)
        self.assertEqual(policy.min_participants_global, 3)
        self.assertEqual(policy.lock_delay_minutes, 0)
        self.assertEqual(policy.excluded_groups, ("staff", "moderators", "bots"))
        self.assertFalse(policy.enabled)
        self.assertEqual(policy.lock_timeout_seconds, 12.0)
        self.assertEqual(policy.draw_interval_seconds, 60)

    @patch("gatedraw.config.load_dotenv")
    def test_from_env_rejects_non_integer(self, mock_load_dotenv):
        with patch.dict(os.environ, {"DRAW_MAX_WINNERS": "many"}, clear=True):
            with self.assertRaises(ValueError):
                DrawPolicy.from_env()

    def test_static_provider(self):
        policy = DrawPolicy(max_winners=2)
        self.assertIs(StaticPolicyProvider(policy).current(), policy)
        self.assertEqual(StaticPolicyProvider().current(), DrawPolicy())


class KeyedLockTests(unittest.TestCase):
    def test_hold_and_release(self):
        locks = KeyedLock(timeout=0.05)
        with locks.hold(1):
            self.assertTrue(locks.is_held(1))
            self.assertFalse(locks.is_held(2))
        self.assertFalse(locks.is_held(1))

    def test_contention_times_out_with_conflict(self):
        locks = KeyedLock(timeout=0.05)
        entered = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold(7):
                entered.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        entered.wait(5)
        try:
            with self.assertRaises(StateConflictError) as ctx:
                with locks.hold(7):
                    pass
            self.assertEqual(ctx.exception.drawing_id, 7)
        finally:
            release.set()
            thread.join(5)

        with locks.hold(7):
            pass


class ErrorTaxonomyTests(unittest.TestCase):
    def test_status_codes_and_payloads(self):
        self.assertEqual(PermissionDeniedError("no").status_code, 403)
        self.assertEqual(StateConflictError("busy").status_code, 409)
        err = NotFoundError("missing", drawing_id=3)
        self.assertIsInstance(err, LookupError)
        self.assertIsInstance(err, DrawingError)
        self.assertEqual(
            err.to_dict(), {"error": "not_found", "message": "missing", "drawing_id": 3}
        )


if __name__ == "__main__":
    unittest.main()
