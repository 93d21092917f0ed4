import datetime
import uuid
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import OperationalError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from elections.ballot_store import BallotStore, KeyedLock
from elections.exceptions import AlreadyVoted, ElectionNotActive, InvalidCandidate, StorageUnavailable
from elections.models import Ballot, Election
from elections.tests.factories import make_election


class BallotStoreInsertTests(TestCase):
    def setUp(self):
        self.store = BallotStore()
        self.election, (self.alice, self.bob) = make_election()

    def test_insert_returns_stored_ballot(self):
        now = timezone.now()
        ballot = self.store.insert_if_absent("v1", self.election.id, self.alice.id, now)

        stored = Ballot.objects.get(pk=ballot.pk)
        self.assertEqual(stored.voter_id, "v1")
        self.assertEqual(stored.candidate_id, self.alice.id)
        self.assertEqual(stored.cast_at, now)

    def test_second_ballot_for_same_voter_is_already_voted(self):
        now = timezone.now()
        self.store.insert_if_absent("v1", self.election.id, self.alice.id, now)

        with self.assertRaises(AlreadyVoted):
            self.store.insert_if_absent("v1", self.election.id, self.bob.id, now)

        self.assertEqual(Ballot.objects.filter(voter_id="v1").count(), 1)
        self.assertEqual(Ballot.objects.get(voter_id="v1").candidate_id, self.alice.id)

    def test_same_voter_may_vote_in_another_election(self):
        other, (carol,) = make_election(title="Other", candidates=("Carol",))
        now = timezone.now()

        self.store.insert_if_absent("v1", self.election.id, self.alice.id, now)
        self.store.insert_if_absent("v1", other.id, carol.id, now)

        self.assertEqual(Ballot.objects.filter(voter_id="v1").count(), 2)

    def test_candidate_from_another_election_is_rejected(self):
        _, (carol,) = make_election(title="Other", candidates=("Carol",))

        with self.assertRaises(InvalidCandidate):
            self.store.insert_if_absent("v1", self.election.id, carol.id, timezone.now())

        self.assertFalse(Ballot.objects.exists())

    def test_unknown_candidate_is_rejected(self):
        with self.assertRaises(InvalidCandidate):
            self.store.insert_if_absent("v1", self.election.id, uuid.uuid4(), timezone.now())

    def test_unknown_election_is_not_active(self):
        with self.assertRaises(ElectionNotActive):
            self.store.insert_if_absent("v1", uuid.uuid4(), self.alice.id, timezone.now())

    def test_malformed_election_id_is_not_active(self):
        with self.assertRaises(ElectionNotActive):
            self.store.insert_if_absent("v1", "not-a-uuid", self.alice.id, timezone.now())


class BallotStoreWindowTests(TestCase):
    def setUp(self):
        self.store = BallotStore()
        self.start = timezone.now() - datetime.timedelta(hours=1)
        self.end = self.start + datetime.timedelta(hours=2)
        self.election, (self.alice, _) = make_election(start_at=self.start, end_at=self.end)

    def test_start_instant_is_accepted(self):
        self.store.insert_if_absent("v1", self.election.id, self.alice.id, self.start)
        self.assertTrue(self.store.has_voted("v1", self.election.id))

    def test_end_instant_is_rejected(self):
        with self.assertRaises(ElectionNotActive):
            self.store.insert_if_absent("v1", self.election.id, self.alice.id, self.end)

    def test_before_start_is_rejected(self):
        with self.assertRaises(ElectionNotActive):
            self.store.insert_if_absent(
                "v1", self.election.id, self.alice.id, self.start - datetime.timedelta(seconds=1)
            )

    def test_status_must_be_active(self):
        for status in (Election.STATUS_UPCOMING, Election.STATUS_COMPLETED):
            with self.subTest(status=status):
                Election.objects.filter(pk=self.election.pk).update(status=status)
                with self.assertRaises(ElectionNotActive):
                    self.store.insert_if_absent("v1", self.election.id, self.alice.id, timezone.now())

        self.assertFalse(Ballot.objects.exists())

    def test_window_is_checked_before_candidate(self):
        with self.assertRaises(ElectionNotActive):
            self.store.insert_if_absent("v1", self.election.id, uuid.uuid4(), self.end)


class BallotStoreQueryTests(TestCase):
    def setUp(self):
        self.store = BallotStore()
        self.election, (self.alice, self.bob, _) = make_election(candidates=("Alice", "Bob", "Carol"))

    def test_has_voted(self):
        self.assertFalse(self.store.has_voted("v1", self.election.id))
        self.store.insert_if_absent("v1", self.election.id, self.alice.id, timezone.now())
        self.assertTrue(self.store.has_voted("v1", self.election.id))
        self.assertFalse(self.store.has_voted("v2", self.election.id))

    def test_has_voted_with_malformed_election_id(self):
        self.assertFalse(self.store.has_voted("v1", "nope"))

    def test_counts_for_lists_every_candidate(self):
        now = timezone.now()
        self.store.insert_if_absent("v1", self.election.id, self.alice.id, now)
        self.store.insert_if_absent("v2", self.election.id, self.alice.id, now)
        self.store.insert_if_absent("v3", self.election.id, self.bob.id, now)

        counts = self.store.counts_for(self.election.id)

        self.assertEqual(len(counts), 3)
        self.assertEqual(counts[str(self.alice.id)], 2)
        self.assertEqual(counts[str(self.bob.id)], 1)
        self.assertEqual(counts.total(), 3)
        self.assertIn(0, counts.values())


class BallotStoreOutageTests(TestCase):
    def setUp(self):
        self.store = BallotStore()
        self.election, (self.alice, _) = make_election()

    def test_insert_maps_database_errors_to_storage_unavailable(self):
        with mock.patch.object(Ballot.objects, "create", side_effect=OperationalError("disk I/O error")):
            with self.assertLogs("elections.ballot_store", level="ERROR"):
                with self.assertRaises(StorageUnavailable) as raised:
                    self.store.insert_if_absent("v1", self.election.id, self.alice.id, timezone.now())

        self.assertTrue(raised.exception.retriable)
        self.assertFalse(Ballot.objects.exists())

    def test_failed_hook_rolls_back_the_ballot(self):
        def on_stored(ballot):
            raise OperationalError("database is locked")

        with self.assertLogs("elections.ballot_store", level="ERROR"):
            with self.assertRaises(StorageUnavailable):
                self.store.insert_if_absent("v1", self.election.id, self.alice.id, timezone.now(),
                                            on_stored=on_stored)

        self.assertFalse(Ballot.objects.exists())

    def test_queries_map_database_errors_to_storage_unavailable(self):
        with mock.patch.object(Ballot.objects, "filter", side_effect=OperationalError("database is locked")):
            with self.assertLogs("elections.ballot_store", level="ERROR"):
                with self.assertRaises(StorageUnavailable):
                    self.store.has_voted("v1", self.election.id)
            with self.assertLogs("elections.ballot_store", level="ERROR"):
                with self.assertRaises(StorageUnavailable):
                    self.store.counts_for(self.election.id)


class BallotImmutabilityTests(TestCase):
    def test_ballot_cannot_be_changed_or_deleted(self):
        election, (alice, bob) = make_election()
        ballot = BallotStore().insert_if_absent("v1", election.id, alice.id, timezone.now())

        ballot.candidate = bob
        with self.assertRaises(ValidationError):
            ballot.save()
        with self.assertRaises(ValidationError):
            ballot.delete()

        self.assertEqual(Ballot.objects.get(pk=ballot.pk).candidate_id, alice.id)


class KeyedLockTests(SimpleTestCase):
    def test_lock_entries_are_dropped_after_release(self):
        lock = KeyedLock()
        with lock.hold(("v1", "e1")):
            with lock.hold(("v2", "e1")):
                self.assertEqual(len(lock), 2)
            self.assertEqual(len(lock), 1)
        self.assertEqual(len(lock), 0)

    def test_entry_released_when_body_raises(self):
        lock = KeyedLock()
        with self.assertRaises(RuntimeError):
            with lock.hold("k"):
                raise RuntimeError("boom")
        self.assertEqual(len(lock), 0)
