import json
import unittest
from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from gatedraw.errors import StateConflictError
from gatedraw.models import Drawing, Participant

from drawing_fakes import NOW, make_drawing, memory_sessionmaker


def participant(user_id: str, position: int) -> Participant:
    return Participant(
        user_id=user_id,
        username=user_id.title(),
        entry_ref=f"post-{position}",
        position=position,
        participated_at=NOW,
    )


class DrawingTransitionTests(unittest.TestCase):
    def test_can_draw_requires_open_and_due(self):
        drawing = make_drawing(draw_time=NOW)
        self.assertTrue(drawing.can_draw(NOW))
        self.assertFalse(drawing.can_draw(NOW - timedelta(seconds=1)))
        drawing.cancel_with_reason("gone")
        self.assertFalse(drawing.can_draw(NOW + timedelta(days=1)))

    def test_lock_keeps_status_open(self):
        drawing = make_drawing()
        drawing.lock(NOW)
        self.assertTrue(drawing.locked)
        self.assertEqual(drawing.locked_at, NOW)
        self.assertTrue(drawing.is_open)
        self.assertFalse(drawing.can_be_edited())

    def test_terminal_states_are_final(self):
        drawing = make_drawing()
        drawing.finish_with_winners([{"user_id": "alice"}])
        self.assertTrue(drawing.is_terminal)
        with self.assertRaises(StateConflictError):
            drawing.cancel_with_reason("late")
        with self.assertRaises(StateConflictError):
            drawing.finish_with_winners([])
        with self.assertRaises(StateConflictError):
            drawing.lock(NOW)
        self.assertEqual(drawing.status, "finished")

    def test_cancel_requires_reason(self):
        drawing = make_drawing()
        with self.assertRaises(ValueError):
            drawing.cancel_with_reason("  ")
        self.assertTrue(drawing.is_open)

    def test_management_rights(self):
        drawing = make_drawing()
        self.assertTrue(drawing.can_be_managed_by("organizer"))
        self.assertFalse(drawing.can_be_managed_by("someone"))
        self.assertTrue(drawing.can_be_managed_by("someone", is_admin=True))

    def test_effective_winner_count_follows_rule(self):
        drawing = make_drawing(
            selection_rule="fixed-position", fixed_positions=[4, 9], winner_count=7
        )
        self.assertEqual(drawing.effective_winner_count, 2)
        self.assertEqual(make_drawing(winner_count=3).effective_winner_count, 3)

    def test_naive_draw_time_is_taken_as_utc(self):
        drawing = make_drawing(draw_time=NOW.replace(tzinfo=None))
        self.assertEqual(drawing.draw_time, NOW)


class DrawingPersistenceTests(unittest.TestCase):
    def setUp(self):
        self.engine, self.Session = memory_sessionmaker()

    def tearDown(self):
        self.engine.dispose()

    def test_replace_participants_swaps_the_set(self):
        with self.Session.begin() as session:
            drawing = make_drawing()
            session.add(drawing)
            drawing.replace_participants(
                session, [participant("alice", 2), participant("bob", 3)]
            )
            drawing.replace_participants(
                session, [participant("bob", 2), participant("alice", 3)]
            )
            drawing_id = drawing.id

        with self.Session() as session:
            stored = session.get(Drawing, drawing_id)
            self.assertEqual(
                [(p.user_id, p.position) for p in stored.participants],
                [("bob", 2), ("alice", 3)],
            )

    def test_duplicate_user_is_rejected(self):
        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                drawing = make_drawing()
                drawing.participants.extend([participant("alice", 2), participant("alice", 3)])
                session.add(drawing)

    def test_due_and_lockable_queries(self):
        with self.Session.begin() as session:
            due = make_drawing(draw_time=NOW - timedelta(minutes=1))
            later = make_drawing(draw_time=NOW + timedelta(minutes=1))
            done = make_drawing(draw_time=NOW - timedelta(hours=1), status="finished")
            fresh = make_drawing(created_at=NOW)
            session.add_all([due, later, done, fresh])
            session.flush()
            due_ids = [d.id for d in Drawing.due_for_draw(session, NOW)]
            lockable_ids = {
                d.id for d in Drawing.lockable(session, NOW - timedelta(minutes=30))
            }

            self.assertEqual(due_ids, [due.id, fresh.id])
            self.assertNotIn(done.id, lockable_ids)
            self.assertNotIn(fresh.id, lockable_ids)
            self.assertIn(due.id, lockable_ids)


class SerializationTests(unittest.TestCase):
    def setUp(self):
        self.engine, self.Session = memory_sessionmaker()

    def tearDown(self):
        self.engine.dispose()

    def test_drawing_to_json(self):
        with self.Session.begin() as session:
            drawing = make_drawing(
                draw_time=NOW + timedelta(minutes=2),
                description="Spring event",
            )
            drawing.participants.append(participant("alice", 2))
            session.add(drawing)
            session.flush()

            data = drawing.to_json(now=NOW)
            self.assertEqual(data["id"], drawing.id)
            self.assertEqual(data["status"], "open")
            self.assertEqual(data["participant_count"], 1)
            self.assertEqual(data["seconds_until_draw"], 120)
            self.assertEqual(data["draw_time"], (NOW + timedelta(minutes=2)).isoformat())
            self.assertEqual(data["description"], "Spring event")
            self.assertIsNone(data["winners"])
            self.assertIsNone(data["fixed_positions"])

            compact = drawing.to_json(compact=True)
            self.assertNotIn("description", compact)
            self.assertNotIn("created_at", compact)

            payload = json.loads(json.dumps(compact))
            self.assertEqual(payload["name"], "Spring giveaway")

    def test_finished_drawing_to_json(self):
        drawing = make_drawing()
        drawing.finish_with_winners([participant("alice", 5).winner_record()])
        data = drawing.to_json(now=NOW)
        self.assertIsNone(data["seconds_until_draw"])
        self.assertEqual(
            data["winners"],
            [{"user_id": "alice", "username": "Alice", "position": 5, "entry_ref": "post-5"}],
        )

    def test_participant_to_json(self):
        p = participant("bob", 7)
        self.assertEqual(p.display_name, "Bob")
        self.assertEqual(p.position_display, "#7")
        data = p.to_json()
        self.assertEqual(data["participated_at"], NOW.isoformat())
        self.assertFalse(data["is_winner"])


if __name__ == "__main__":
    unittest.main()
