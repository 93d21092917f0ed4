import threading

from django.test import SimpleTestCase

from elections.broadcaster import Broadcaster


class BroadcasterTests(SimpleTestCase):
    def setUp(self):
        self.broadcaster = Broadcaster()

    def test_subscriber_receives_events_for_its_election_only(self):
        received = []
        self.broadcaster.subscribe("e1", received.append)

        self.broadcaster.publish("e1", "c1", 1, 1)
        self.broadcaster.publish("e2", "c9", 1, 1)

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].as_dict(), {
            "electionId": "e1",
            "candidateId": "c1",
            "voteCount": 1,
            "totalVotes": 1,
            "sequence": 1,
        })

    def test_every_subscriber_gets_each_event_in_order(self):
        first, second = [], []
        self.broadcaster.subscribe("e1", first.append)
        self.broadcaster.subscribe("e1", second.append)

        for total in range(1, 6):
            self.broadcaster.publish("e1", "c1", total, total)

        self.assertEqual([e.sequence for e in first], [1, 2, 3, 4, 5])
        self.assertEqual([e.total_votes for e in second], [1, 2, 3, 4, 5])

    def test_sequences_are_per_election(self):
        self.broadcaster.subscribe("e1", lambda event: None)
        self.broadcaster.subscribe("e2", lambda event: None)
        self.broadcaster.publish("e1", "c1", 1, 1)
        self.broadcaster.publish("e1", "c1", 2, 2)

        self.assertEqual(self.broadcaster.publish("e2", "c2", 1, 1).sequence, 1)
        self.assertEqual(self.broadcaster.publish("e1", "c1", 3, 3).sequence, 3)

    def test_channel_is_dropped_after_last_unsubscribe(self):
        first = self.broadcaster.subscribe("e1", lambda event: None)
        second = self.broadcaster.subscribe("e1", lambda event: None)

        first()
        self.assertIn("e1", self.broadcaster._channels)

        second()
        self.assertNotIn("e1", self.broadcaster._channels)

    def test_reads_and_publishes_leave_no_channel_behind(self):
        self.assertEqual(self.broadcaster.subscriber_count("unknown"), 0)
        self.broadcaster.publish("e1", "c1", 1, 1)
        with self.broadcaster.ordered("e2"):
            self.assertIn("e2", self.broadcaster._channels)

        self.assertEqual(self.broadcaster._channels, {})

    def test_ordered_blocks_other_publishers_of_the_election(self):
        received = []
        self.broadcaster.subscribe("e1", received.append)
        started = threading.Event()

        def publish_other():
            started.set()
            self.broadcaster.publish("e1", "c2", 1, 2)

        with self.broadcaster.ordered("e1"):
            thread = threading.Thread(target=publish_other)
            thread.start()
            started.wait(1)
            self.broadcaster.publish("e1", "c1", 1, 1)
        thread.join()

        self.assertEqual([e.total_votes for e in received], [1, 2])

    def test_unsubscribe_is_idempotent(self):
        received = []
        subscription = self.broadcaster.subscribe("e1", received.append)
        self.assertEqual(self.broadcaster.subscriber_count("e1"), 1)

        subscription()
        subscription()
        subscription.cancel()

        self.assertFalse(subscription.active)
        self.assertEqual(self.broadcaster.subscriber_count("e1"), 0)
        self.broadcaster.publish("e1", "c1", 1, 1)
        self.assertEqual(received, [])

    def test_failing_subscriber_does_not_affect_others_or_publisher(self):
        received = []

        def broken(event):
            raise RuntimeError("socket closed")

        self.broadcaster.subscribe("e1", broken)
        self.broadcaster.subscribe("e1", received.append)

        with self.assertLogs("elections.broadcaster", level="WARNING"):
            event = self.broadcaster.publish("e1", "c1", 1, 1)

        self.assertEqual(event.sequence, 1)
        self.assertEqual(received, [event])

    def test_subscriber_may_unsubscribe_while_handling(self):
        received = []
        holder = {}

        def once(event):
            received.append(event)
            holder["subscription"]()

        holder["subscription"] = self.broadcaster.subscribe("e1", once)

        self.broadcaster.publish("e1", "c1", 1, 1)
        self.broadcaster.publish("e1", "c1", 2, 2)

        self.assertEqual(len(received), 1)

    def test_concurrent_publishers_deliver_gapless_sequence(self):
        received = []
        self.broadcaster.subscribe("e1", received.append)

        def publish_many():
            for _ in range(50):
                self.broadcaster.publish("e1", "c1", 0, 0)

        threads = [threading.Thread(target=publish_many) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual([e.sequence for e in received], list(range(1, 201)))
