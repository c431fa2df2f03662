from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from projects import graph
from projects.models import Project, Task
from realtime.router import get_router

User = get_user_model()


class ProjectAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()

        self.alice = User.objects.create_user(username="alice", email="alice@example.com", password="pass")
        self.bob = User.objects.create_user(username="bob", email="bob@example.com", password="pass")
        self.carol = User.objects.create_user(username="carol", email="carol@example.com", password="pass")

        # Auth as alice by default
        self.client.force_authenticate(user=self.alice)

        get_router.cache_clear()
        self.router = get_router()

        self.projects_url = reverse("projects-list-create")

    def tearDown(self):
        get_router.cache_clear()

    def detail_url(self, project_id):
        return reverse("projects-detail", kwargs={"project_id": project_id})

    def members_url(self, project_id):
        return reverse("projects-members", kwargs={"project_id": project_id})

    def member_url(self, project_id, user_id):
        return reverse("projects-member-detail", kwargs={"project_id": project_id, "user_id": user_id})

    def create_launch(self):
        project = graph.create_project(self.alice, "Launch")
        graph.add_member(project, self.bob)
        return project

    def test_create_project_makes_creator_owner_and_member(self):
        global_sub = self.router.join_global(self.bob)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(self.projects_url, {"name": "Launch"}, format="json")

        self.assertEqual(
            response.status_code,
            201,
            f"Status: {response.status_code}, Content: {getattr(response, 'data', response.content)}",
        )
        body = response.json()
        self.assertTrue(body["success"])
        project = body["data"]["project"]
        self.assertEqual(project["owner"]["id"], self.alice.pk)
        self.assertEqual([m["id"] for m in project["members"]], [self.alice.pk])
        self.assertEqual(project["status"], "active")
        self.assertEqual(project["taskCount"], 0)

        events = global_sub.drain()
        self.assertEqual([e.kind for e in events], ["projectCreated"])
        self.assertEqual(events[0].payload["id"], project["id"])

    def test_create_project_validates_before_touching_store(self):
        response = self.client.post(self.projects_url, {"name": "ab"}, format="json")

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], "validation_error")
        self.assertIn("name", body["errors"])
        self.assertFalse(Project.objects.exists())

    def test_description_over_limit_is_rejected(self):
        response = self.client.post(
            self.projects_url, {"name": "Launch", "description": "x" * 501}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_list_projects_only_shows_my_memberships(self):
        self.create_launch()
        graph.create_project(self.carol, "Carol's")

        self.client.force_authenticate(user=self.bob)
        response = self.client.get(self.projects_url)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 1)
        self.assertEqual([p["name"] for p in body["data"]["projects"]], ["Launch"])

    def test_get_project_includes_tasks_for_members_only(self):
        project = self.create_launch()
        graph.create_task(project, self.bob, title="Write spec")

        self.client.force_authenticate(user=self.bob)
        response = self.client.get(self.detail_url(project.pk))
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["project"]["taskCount"], 1)
        self.assertEqual([t["title"] for t in data["tasks"]], ["Write spec"])

        self.client.force_authenticate(user=self.carol)
        response = self.client.get(self.detail_url(project.pk))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "forbidden")

    def test_missing_project_is_not_found_for_anyone(self):
        for user in (self.alice, self.carol):
            self.client.force_authenticate(user=user)
            response = self.client.get(self.detail_url(999999))
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.json()["message"], "Project not found")

    def test_unauthenticated_requests_are_rejected(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(self.projects_url)
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()["success"])

    def test_owner_updates_project_partially(self):
        project = graph.create_project(self.alice, "Launch", "Original")
        sub = self.router.join_project(self.alice, project)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.put(
                self.detail_url(project.pk), {"status": "completed"}, format="json"
            )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]["project"]
        self.assertEqual(data["status"], "completed")
        self.assertEqual(data["name"], "Launch")
        self.assertEqual(data["description"], "Original")
        self.assertEqual([e.kind for e in sub.drain()], ["projectUpdated"])

    def test_explicit_empty_description_is_applied(self):
        project = graph.create_project(self.alice, "Launch", "Original")

        response = self.client.patch(self.detail_url(project.pk), {"description": ""}, format="json")

        self.assertEqual(response.status_code, 200)
        project.refresh_from_db()
        self.assertEqual(project.description, "")

    def test_member_cannot_update_project(self):
        project = self.create_launch()

        self.client.force_authenticate(user=self.bob)
        response = self.client.put(self.detail_url(project.pk), {"name": "Hijacked"}, format="json")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Only project owner can update")
        project.refresh_from_db()
        self.assertEqual(project.name, "Launch")

    def test_invalid_status_is_rejected(self):
        project = graph.create_project(self.alice, "Launch")
        response = self.client.put(self.detail_url(project.pk), {"status": "paused"}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_noop_update_leaves_project_byte_identical(self):
        project = self.create_launch()
        before = self.client.get(self.detail_url(project.pk)).content

        response = self.client.put(
            self.detail_url(project.pk),
            {"name": "Launch", "description": "", "status": "active"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)

        after = self.client.get(self.detail_url(project.pk)).content
        self.assertEqual(before, after)

    def test_owner_adds_member_and_event_is_scoped_to_project(self):
        project = graph.create_project(self.alice, "Launch")
        launch_sub = self.router.join_project(self.alice, project)
        other = graph.create_project(self.carol, "Other")
        other_sub = self.router.join_project(self.carol, other)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(self.members_url(project.pk), {"userId": self.bob.pk}, format="json")

        self.assertEqual(response.status_code, 200)
        members = [m["id"] for m in response.json()["data"]["project"]["members"]]
        self.assertEqual(members, [self.alice.pk, self.bob.pk])

        events = launch_sub.drain()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].kind, "memberAdded")
        self.assertEqual(events[0].channel, str(project.pk))
        self.assertEqual(events[0].payload, {"projectId": project.pk, "userId": self.bob.pk})
        self.assertEqual(other_sub.drain(), [])

    def test_adding_existing_member_is_a_conflict(self):
        project = self.create_launch()

        response = self.client.post(self.members_url(project.pk), {"userId": self.bob.pk}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "already_member")

    def test_adding_unknown_user_is_not_found(self):
        project = graph.create_project(self.alice, "Launch")
        response = self.client.post(self.members_url(project.pk), {"userId": 999999}, format="json")
        self.assertEqual(response.status_code, 404)

    def test_add_member_requires_user_id(self):
        project = graph.create_project(self.alice, "Launch")
        response = self.client.post(self.members_url(project.pk), {}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "validation_error")

    def test_non_owner_cannot_add_member(self):
        project = self.create_launch()

        self.client.force_authenticate(user=self.bob)
        response = self.client.post(self.members_url(project.pk), {"userId": self.carol.pk}, format="json")

        self.assertEqual(response.status_code, 403)
        self.assertFalse(project.memberships.filter(user=self.carol).exists())

    def test_owner_cannot_be_removed(self):
        project = self.create_launch()

        response = self.client.delete(self.member_url(project.pk, self.alice.pk))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "cannot_remove_owner")
        self.assertTrue(project.memberships.filter(user=self.alice).exists())

    def test_removing_unknown_user_is_not_found(self):
        project = self.create_launch()

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            response = self.client.delete(self.member_url(project.pk, 999999))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "not_found")
        self.assertEqual(callbacks, [])

    def test_removing_inactive_member_is_allowed(self):
        project = self.create_launch()
        self.bob.is_active = False
        self.bob.save(update_fields=["is_active"])

        response = self.client.delete(self.member_url(project.pk, self.bob.pk))

        self.assertEqual(response.status_code, 200)
        self.assertFalse(project.memberships.filter(user=self.bob).exists())

    def test_remove_member_keeps_their_task_assignment(self):
        project = self.create_launch()
        task = graph.create_task(project, self.alice, title="Write spec", assigned_to=self.bob)
        sub = self.router.join_project(self.alice, project)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(self.member_url(project.pk, self.bob.pk))

        self.assertEqual(response.status_code, 200)
        members = [m["id"] for m in response.json()["data"]["project"]["members"]]
        self.assertEqual(members, [self.alice.pk])

        task.refresh_from_db()
        self.assertEqual(task.assigned_to_id, self.bob.pk)
        self.assertEqual(
            [e.payload for e in sub.drain()],
            [{"projectId": project.pk, "userId": self.bob.pk}],
        )

    def test_delete_project_removes_tasks_and_broadcasts(self):
        project = self.create_launch()
        graph.create_task(project, self.alice, title="One")
        graph.create_task(project, self.bob, title="Two")
        sub = self.router.join_project(self.bob, project)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(self.detail_url(project.pk))

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])
        self.assertFalse(Task.objects.filter(project_id=project.pk).exists())

        events = sub.drain()
        self.assertEqual([e.kind for e in events], ["projectDeleted"])
        self.assertEqual(events[0].payload, {"projectId": project.pk})

        # Follow-up queries see nothing
        tasks_url = reverse("tasks-by-project", kwargs={"project_id": project.pk})
        self.assertEqual(self.client.get(tasks_url).status_code, 404)
        self.assertEqual(self.client.get(self.detail_url(project.pk)).status_code, 404)

    def test_member_cannot_delete_project(self):
        project = self.create_launch()

        self.client.force_authenticate(user=self.bob)
        response = self.client.delete(self.detail_url(project.pk))

        self.assertEqual(response.status_code, 403)
        self.assertTrue(Project.objects.filter(pk=project.pk).exists())

    def test_owner_stays_a_member_through_every_mutation(self):
        project = graph.create_project(self.alice, "Launch")
        self.client.post(self.members_url(project.pk), {"userId": self.bob.pk}, format="json")
        self.client.post(self.members_url(project.pk), {"userId": self.carol.pk}, format="json")
        self.client.put(self.detail_url(project.pk), {"status": "archived"}, format="json")
        self.client.delete(self.member_url(project.pk, self.bob.pk))
        self.client.delete(self.member_url(project.pk, self.alice.pk))

        project.refresh_from_db()
        self.assertTrue(project.is_member(project.owner_id))
        self.assertEqual(project.member_ids(), {self.alice.pk, self.carol.pk})
