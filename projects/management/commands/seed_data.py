from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from projects.models import Project
from projects.services import ProjectService, TaskService
from realtime.router import NullPublisher

User = get_user_model()

DEMO_PASSWORD = "password"

DEMO_TASKS = [
    {"title": "Write launch plan", "priority": "high", "due_in_days": 3},
    {"title": "Prepare release notes", "priority": "medium", "due_in_days": 7},
    {"title": "Collect beta feedback", "priority": "low", "due_in_days": None},
]


class Command(BaseCommand):
    help = "Seeds the database with demo users, a shared project, tasks and comments"

    def add_arguments(self, parser):
        parser.add_argument(
            "--project-name",
            default="Launch",
            help="Name of the demo project (skipped if the owner already has one with this name)",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding data...")

        alice = self._ensure_user("alice", "Alice", "Nguyen")
        bob = self._ensure_user("bob", "Bob", "Kaur")

        name = options["project_name"]
        if Project.objects.filter(owner=alice, name=name).exists():
            self.stdout.write(self.style.WARNING(f"Project '{name}' already exists, nothing to do"))
            return

        # Seeding goes through the same pipeline as the API, minus broadcasting.
        publisher = NullPublisher()
        projects = ProjectService(actor=alice, publisher=publisher)
        project = projects.create_project({
            "name": name,
            "description": "Everything needed to ship the first release.",
        })
        projects.add_member(project["id"], {"userId": bob.pk})
        self.stdout.write(f"Created project: {project['name']} (owner: alice, member: bob)")

        tasks = TaskService(actor=bob, publisher=publisher)
        for index, item in enumerate(DEMO_TASKS):
            data = {
                "title": item["title"],
                "project": project["id"],
                "priority": item["priority"],
                "assignedTo": (alice if index % 2 == 0 else bob).pk,
            }
            if item["due_in_days"] is not None:
                due = timezone.now().date() + timedelta(days=item["due_in_days"])
                data["dueDate"] = due.isoformat()
            task = tasks.create_task(data)
            tasks.add_comment(task["id"], {"text": f"Picking this up: {item['title'].lower()}."})
            self.stdout.write(f"  + task: {task['title']}")

        self.stdout.write(self.style.SUCCESS("Seeding complete. Log in as alice or bob with password 'password'."))

    def _ensure_user(self, username, first_name, last_name):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={
                "email": f"{username}@example.com",
                "first_name": first_name,
                "last_name": last_name,
            },
        )
        if created or not user.check_password(DEMO_PASSWORD):
            user.set_password(DEMO_PASSWORD)
            user.save()
        return user
