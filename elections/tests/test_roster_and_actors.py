import datetime

from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from elections.actors import ROLE_ADMIN, ROLE_CANDIDATE, ROLE_VOTER, actor_for_user
from elections.exceptions import RosterLockedError
from elections.models import Candidate, Election
from elections.tests.factories import make_election, make_user


class RosterLockTests(TestCase):
    def test_roster_is_open_while_upcoming(self):
        election, roster = make_election(status=Election.STATUS_UPCOMING)

        late = Candidate.objects.create(election=election, name="Late entry")
        roster[0].delete()

        self.assertEqual(late.roster_position, 3)
        self.assertEqual(list(election.candidates.order_by("roster_position").values_list("name", flat=True)), ["Bob", "Late entry"])

    def test_roster_is_frozen_once_active(self):
        election, (alice, _) = make_election(status=Election.STATUS_ACTIVE)

        with self.assertRaises(RosterLockedError):
            Candidate.objects.create(election=election, name="Late entry")
        with self.assertRaises(RosterLockedError):
            alice.delete()
        alice.name = "Renamed"
        with self.assertRaises(RosterLockedError):
            alice.save()

        self.assertEqual(election.candidates.count(), 2)

    def test_roster_is_frozen_once_completed(self):
        election, _ = make_election(status=Election.STATUS_COMPLETED)

        with self.assertRaises(RosterLockedError):
            Candidate.objects.create(election=election, name="Late entry")

    def test_roster_lock_is_a_validation_error(self):
        error = RosterLockedError()
        self.assertIsInstance(error, ValidationError)
        self.assertEqual(error.code, "roster_locked")

    def test_positions_follow_registration_order(self):
        _, roster = make_election(candidates=("C", "A", "B"), status=Election.STATUS_UPCOMING)
        self.assertEqual([c.roster_position for c in roster], [1, 2, 3])


class ElectionModelTests(TestCase):
    def test_window_is_half_open(self):
        start = timezone.now()
        election = Election(
            title="Window",
            start_at=start,
            end_at=start + datetime.timedelta(hours=1),
            status=Election.STATUS_ACTIVE,
        )

        self.assertTrue(election.accepts_ballots_at(start))
        self.assertFalse(election.accepts_ballots_at(election.end_at))
        election.status = Election.STATUS_UPCOMING
        self.assertFalse(election.accepts_ballots_at(start))

    def test_end_must_follow_start(self):
        start = timezone.now()
        election = Election(title="Backwards", start_at=start, end_at=start)

        with self.assertRaises(ValidationError):
            election.full_clean()


class ActorForUserTests(TestCase):
    def test_anonymous_has_no_actor(self):
        self.assertIsNone(actor_for_user(AnonymousUser()))
        self.assertIsNone(actor_for_user(None))

    def test_roles(self):
        cases = [
            (make_user("plain"), ROLE_VOTER),
            (make_user("runner", group="candidate"), ROLE_CANDIDATE),
            (make_user("clerk", group="admin"), ROLE_ADMIN),
            (make_user("root", superuser=True), ROLE_ADMIN),
        ]
        for user, role in cases:
            with self.subTest(user=user.username):
                actor = actor_for_user(user)
                self.assertEqual(actor.id, str(user.pk))
                self.assertEqual(actor.role, role)

    def test_only_plain_users_are_voters(self):
        self.assertTrue(actor_for_user(make_user("plain")).is_voter)
        self.assertFalse(actor_for_user(make_user("clerk", group="admin")).is_voter)


class SecurityHeadersTests(TestCase):
    def test_api_responses_carry_security_headers(self):
        response = self.client.get("/api/elections/")

        self.assertEqual(response["X-Frame-Options"], "DENY")
        self.assertEqual(response["X-Content-Type-Options"], "nosniff")
        self.assertEqual(response["Cache-Control"], "no-store")
