import threading

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings

from core.exceptions import Forbidden
from projects import graph
from realtime.events import BroadcastEvent, channel_for
from realtime.router import BroadcastRouter, Subscription, get_router

User = get_user_model()


class ChannelMappingTestCase(SimpleTestCase):
    def test_project_created_goes_global(self):
        self.assertEqual(channel_for("projectCreated", 7, "broadcast"), "broadcast")

    def test_everything_else_is_project_scoped(self):
        for kind in ("projectUpdated", "projectDeleted", "memberAdded", "memberRemoved",
                     "taskCreated", "taskUpdated", "taskDeleted", "commentAdded"):
            self.assertEqual(channel_for(kind, 7, "broadcast"), "7")

    def test_unknown_kind_or_missing_project_is_rejected(self):
        with self.assertRaises(ValueError):
            channel_for("somethingElse", 7, "broadcast")
        with self.assertRaises(ValueError):
            channel_for("taskCreated", None, "broadcast")

    def test_event_message_shape(self):
        event = BroadcastEvent(kind="taskDeleted", channel="7", payload={"taskId": 3})
        self.assertEqual(event.as_message(), {"event": "taskDeleted", "channel": "7", "data": {"taskId": 3}})


class BroadcastRouterTestCase(SimpleTestCase):
    def setUp(self):
        self.router = BroadcastRouter(global_channel="broadcast", mailbox_size=3)

    def test_channel_isolation(self):
        sub_a = self.router.subscribe("1", user=10)
        sub_b = self.router.subscribe("2", user=20)

        self.router.publish("taskCreated", 1, {"id": 5})

        self.assertEqual(len(sub_a.drain()), 1)
        self.assertEqual(sub_b.drain(), [])

    def test_global_channel_receives_project_created_only(self):
        everyone = self.router.subscribe("broadcast")

        self.router.publish("projectCreated", 1, {"id": 1})
        self.router.publish("projectUpdated", 1, {"id": 1})

        self.assertEqual([e.kind for e in everyone.drain()], ["projectCreated"])

    def test_events_arrive_in_publish_order(self):
        sub = self.router.subscribe("1")
        for kind in ("taskCreated", "taskUpdated", "taskDeleted"):
            self.router.publish(kind, 1, {})

        self.assertEqual([e.kind for e in sub.drain()], ["taskCreated", "taskUpdated", "taskDeleted"])

    def test_full_mailbox_drops_for_that_subscriber_only(self):
        slow = self.router.subscribe("1")
        fast = self.router.subscribe("1")

        for i in range(5):
            self.router.publish("taskUpdated", 1, {"n": i})
            fast.drain()

        self.assertEqual([e.payload["n"] for e in slow.drain()], [0, 1, 2])

    def test_no_replay_for_late_joiners(self):
        self.router.publish("taskCreated", 1, {"id": 1})
        late = self.router.subscribe("1")
        self.assertEqual(late.drain(), [])

    def test_unsubscribe_stops_delivery(self):
        sub = self.router.subscribe("1")
        self.router.unsubscribe(sub)

        self.router.publish("taskCreated", 1, {})

        self.assertTrue(sub.closed)
        self.assertEqual(sub.drain(), [])
        self.assertEqual(self.router.subscribers("1"), [])

    def test_member_removed_evicts_that_user_after_delivery(self):
        owner = self.router.subscribe("1", user=10)
        removed = self.router.subscribe("1", user=20)

        self.router.publish("memberRemoved", 1, {"projectId": 1, "userId": 20})
        self.router.publish("taskCreated", 1, {"id": 9})

        self.assertEqual([e.kind for e in removed.drain()], ["memberRemoved"])
        self.assertEqual([e.kind for e in owner.drain()], ["memberRemoved", "taskCreated"])
        self.assertEqual(self.router.subscribers("1"), [owner])

    def test_project_deleted_closes_the_channel(self):
        sub = self.router.subscribe("1", user=10)

        self.router.publish("projectDeleted", 1, {"projectId": 1})

        self.assertEqual([e.kind for e in sub.drain()], ["projectDeleted"])
        self.assertTrue(sub.closed)
        self.assertEqual(self.router.subscribers("1"), [])

    def test_concurrent_publishers_keep_per_channel_order_consistent(self):
        router = BroadcastRouter(mailbox_size=1000)
        first = router.subscribe("1")
        second = router.subscribe("1")

        def worker(offset):
            for i in range(50):
                router.publish("taskUpdated", 1, {"n": offset + i})

        threads = [threading.Thread(target=worker, args=(n * 100,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        seen_first = [e.payload["n"] for e in first.drain()]
        seen_second = [e.payload["n"] for e in second.drain()]
        self.assertEqual(len(seen_first), 200)
        self.assertEqual(seen_first, seen_second)


class SubscriptionTestCase(SimpleTestCase):
    def test_closed_subscription_refuses_events(self):
        sub = Subscription("1", maxsize=2)
        sub.close()
        self.assertFalse(sub.offer(BroadcastEvent(kind="taskCreated", channel="1", payload={})))

    def test_get_without_events_returns_none(self):
        self.assertIsNone(Subscription("1").get())
        self.assertIsNone(Subscription("1").get(timeout=0.01))


class ProjectChannelMembershipTestCase(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", password="pass")
        self.outsider = User.objects.create_user(username="outsider", password="pass")
        self.project = graph.create_project(self.owner, "Launch")
        self.router = BroadcastRouter()

    def test_members_can_join_project_channel(self):
        sub = self.router.join_project(self.owner, self.project)
        self.assertEqual(sub.channel, str(self.project.pk))
        self.assertEqual(sub.user_id, self.owner.pk)

    def test_outsiders_cannot_join_project_channel(self):
        with self.assertRaises(Forbidden):
            self.router.join_project(self.outsider, self.project)
        self.assertEqual(self.router.subscribers(str(self.project.pk)), [])

    @override_settings(REALTIME={"GLOBAL_CHANNEL": "everyone", "MAILBOX_SIZE": 5})
    def test_get_router_reads_settings(self):
        get_router.cache_clear()
        try:
            router = get_router()
            self.assertEqual(router.global_channel, "everyone")
            self.assertEqual(router.mailbox_size, 5)
            self.assertIs(get_router(), router)
        finally:
            get_router.cache_clear()
