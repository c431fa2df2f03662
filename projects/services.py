# projects/services.py
"""
Mutation pipeline for projects, memberships, tasks and comments.

Every operation runs the same stages and stops at the first failure:
1. structural validation (serializers, no store access)   -> ValidationError
2. reference resolution (projects.queries)                -> NotFound
3. authorization (projects.policies)                      -> Forbidden / Conflict
4. apply (projects.graph)
5. commit (one atomic write per aggregate)                -> InternalError on store failure
6. publish (after commit, fire-and-forget)

The event publisher is passed in by the caller; services never look it up.
"""
from contextlib import contextmanager
import logging

from django.db import DatabaseError, IntegrityError, transaction

from core.constants import (
    EVENT_COMMENT_ADDED,
    EVENT_MEMBER_ADDED,
    EVENT_MEMBER_REMOVED,
    EVENT_PROJECT_CREATED,
    EVENT_PROJECT_DELETED,
    EVENT_PROJECT_UPDATED,
    EVENT_TASK_CREATED,
    EVENT_TASK_DELETED,
    EVENT_TASK_UPDATED,
    LOGGER_PROJECTS,
)
from core.exceptions import Conflict, Forbidden, InternalError, NotFound
from . import graph, queries
from .models import Project, Task
from .policies import DENIAL_CONFLICT, Decision, ProjectPolicy
from .serializers import (
    CommentCreateSerializer,
    CommentSerializer,
    MemberSerializer,
    ProjectCreateSerializer,
    ProjectSerializer,
    ProjectUpdateSerializer,
    TaskCreateSerializer,
    TaskSerializer,
    TaskUpdateSerializer,
)

logger = logging.getLogger(LOGGER_PROJECTS)


class BaseService:

    def __init__(self, actor, publisher):
        self.actor = actor
        self.publisher = publisher

    @property
    def actor_id(self):
        return getattr(self.actor, "pk", None)

    def validate(self, serializer_class, data):
        serializer = serializer_class(data=data)
        serializer.is_valid(raise_exception=True)
        return dict(serializer.validated_data)

    def authorize(self, decision: Decision, action: str):
        if decision.allowed:
            return
        logger.warning(f"Denied {action}: actor={self.actor_id}, reason={decision.reason}")
        if decision.denial == DENIAL_CONFLICT:
            raise Conflict(decision.reason, code=decision.code)
        raise Forbidden(decision.reason)

    @contextmanager
    def store(self, action: str):
        """Store failures during resolve/apply/commit surface as InternalError."""
        try:
            yield
        except DatabaseError as exc:
            logger.exception(f"Store failure during {action}: actor={self.actor_id}")
            raise InternalError() from exc

    def publish(self, kind: str, project_id, payload):
        """Queue the broadcast for after the surrounding transaction commits."""
        transaction.on_commit(lambda: self._dispatch(kind, project_id, payload))

    def _dispatch(self, kind, project_id, payload):
        try:
            self.publisher.publish(kind, project_id, payload)
        except Exception:
            # The commit already happened; a failed broadcast is only logged.
            logger.exception(f"Failed to publish {kind} for project={project_id}")


class ProjectService(BaseService):

    def list_projects(self):
        with self.store("list projects"):
            projects = list(queries.projects_for_user(self.actor))
        return ProjectSerializer(projects, many=True).data

    def create_project(self, data):
        validated = self.validate(ProjectCreateSerializer, data)

        with self.store("create project"):
            project = graph.create_project(
                owner=self.actor,
                name=validated["name"],
                description=validated.get("description", ""),
            )
            payload = ProjectSerializer(queries.get_project(project.pk)).data

        logger.info(f"Project created: project={project.pk}, owner={self.actor_id}")
        self.publish(EVENT_PROJECT_CREATED, project.pk, payload)
        return payload

    def retrieve_project(self, project_id):
        with self.store("retrieve project"):
            project = queries.get_project(project_id)
            self.authorize(ProjectPolicy.can_view_project(self.actor, project), "view project")
            tasks = list(queries.tasks_for_project(project))

        return {
            "project": ProjectSerializer(project).data,
            "tasks": TaskSerializer(tasks, many=True).data,
        }

    def update_project(self, project_id, data):
        validated = self.validate(ProjectUpdateSerializer, data)

        with self.store("update project"):
            project = queries.get_project(project_id)
            self.authorize(ProjectPolicy.can_update_project(self.actor, project), "update project")

            changed = graph.apply_changes(project, validated, Project.MUTABLE_FIELDS)
            graph.save_changes(project, changed)
            payload = ProjectSerializer(queries.get_project(project.pk)).data

        logger.info(f"Project updated: project={project.pk}, fields={changed}, actor={self.actor_id}")
        self.publish(EVENT_PROJECT_UPDATED, project.pk, payload)
        return payload

    def delete_project(self, project_id):
        with self.store("delete project"):
            project = queries.get_project(project_id)
            self.authorize(ProjectPolicy.can_delete_project(self.actor, project), "delete project")

            project_pk = project.pk
            deleted_tasks = graph.delete_project(project)

        logger.info(f"Project deleted: project={project_pk}, tasks={deleted_tasks}, actor={self.actor_id}")
        self.publish(EVENT_PROJECT_DELETED, project_pk, {"projectId": project_pk})
        return {"projectId": project_pk, "deletedTasks": deleted_tasks}

    def add_member(self, project_id, data):
        validated = self.validate(MemberSerializer, data)

        with self.store("add member"):
            project = queries.get_project(project_id)
            target = queries.get_user(validated["user_id"])
            self.authorize(ProjectPolicy.can_add_member(self.actor, project, target), "add member")

            created = graph.add_member(project, target)
            payload = ProjectSerializer(queries.get_project(project.pk)).data

        if created:
            logger.info(f"Member added: project={project.pk}, user={target.pk}, actor={self.actor_id}")
            self.publish(EVENT_MEMBER_ADDED, project.pk, {"projectId": project.pk, "userId": target.pk})
        return payload

    def remove_member(self, project_id, user_id):
        validated = self.validate(MemberSerializer, {"userId": user_id})
        target_id = validated["user_id"]

        with self.store("remove member"):
            project = queries.get_project(project_id)
            # deactivated accounts can still be taken off a project
            queries.get_user(target_id, active_only=False)
            self.authorize(ProjectPolicy.can_remove_member(self.actor, project, target_id), "remove member")

            removed = graph.remove_member(project, target_id)
            payload = ProjectSerializer(queries.get_project(project.pk)).data

        if removed:
            logger.info(f"Member removed: project={project.pk}, user={target_id}, actor={self.actor_id}")
            self.publish(EVENT_MEMBER_REMOVED, project.pk, {"projectId": project.pk, "userId": target_id})
        return payload


class TaskService(BaseService):

    def list_tasks(self):
        with self.store("list tasks"):
            tasks = list(queries.tasks_for_user(self.actor))
        return TaskSerializer(tasks, many=True).data

    def list_project_tasks(self, project_id):
        with self.store("list project tasks"):
            project = queries.get_project(project_id)
            self.authorize(ProjectPolicy.can_view_project(self.actor, project), "list project tasks")
            tasks = list(queries.tasks_for_project(project))
        return TaskSerializer(tasks, many=True).data

    def create_task(self, data):
        validated = self.validate(TaskCreateSerializer, data)
        project_id = validated.pop("project_id")
        assignee_id = validated.pop("assigned_to_id", None)

        with self.store("create task"):
            project = queries.get_project(project_id)
            assignee = queries.get_user(assignee_id) if assignee_id is not None else None

            self.authorize(ProjectPolicy.can_create_task(self.actor, project), "create task")
            self.authorize(ProjectPolicy.can_assign(project, assignee), "assign task")

            try:
                task = graph.create_task(project, self.actor, assigned_to=assignee, **validated)
            except IntegrityError:
                # The project was deleted between resolution and insert.
                raise NotFound("Project not found")
            payload = TaskSerializer(queries.get_task(task.pk)).data

        logger.info(f"Task created: task={task.pk}, project={project.pk}, actor={self.actor_id}")
        self.publish(EVENT_TASK_CREATED, project.pk, payload)
        return payload

    def retrieve_task(self, task_id):
        with self.store("retrieve task"):
            task = queries.get_task(task_id)
            self.authorize(ProjectPolicy.can_view_task(self.actor, task), "view task")
        return TaskSerializer(task).data

    def update_task(self, task_id, data):
        validated = self.validate(TaskUpdateSerializer, data)

        with self.store("update task"):
            task = queries.get_task(task_id)
            if "assigned_to_id" in validated:
                assignee_id = validated.pop("assigned_to_id")
                validated["assigned_to"] = (
                    queries.get_user(assignee_id) if assignee_id is not None else None
                )

            self.authorize(ProjectPolicy.can_update_task(self.actor, task), "update task")

            assignee = validated.get("assigned_to")
            if "assigned_to" in validated and getattr(assignee, "pk", None) != task.assigned_to_id:
                self.authorize(ProjectPolicy.can_assign(task.project, assignee), "assign task")

            changed = graph.apply_changes(task, validated, Task.MUTABLE_FIELDS)
            graph.save_changes(task, changed)
            payload = TaskSerializer(queries.get_task(task.pk)).data

        logger.info(f"Task updated: task={task.pk}, fields={changed}, actor={self.actor_id}")
        self.publish(EVENT_TASK_UPDATED, task.project_id, payload)
        return payload

    def delete_task(self, task_id):
        with self.store("delete task"):
            task = queries.get_task(task_id)
            self.authorize(ProjectPolicy.can_delete_task(self.actor, task), "delete task")

            task_pk, project_pk = task.pk, task.project_id
            task.delete()

        logger.info(f"Task deleted: task={task_pk}, project={project_pk}, actor={self.actor_id}")
        self.publish(EVENT_TASK_DELETED, project_pk, {"taskId": task_pk})
        return {"taskId": task_pk}

    def add_comment(self, task_id, data):
        validated = self.validate(CommentCreateSerializer, data)

        with self.store("add comment"):
            task = queries.get_task(task_id)
            self.authorize(ProjectPolicy.can_comment(self.actor, task), "add comment")

            comment = graph.append_comment(task, self.actor, validated["text"])
            payload = TaskSerializer(queries.get_task(task.pk)).data

        logger.info(f"Comment added: task={task.pk}, comment={comment.pk}, actor={self.actor_id}")
        self.publish(
            EVENT_COMMENT_ADDED,
            task.project_id,
            {"taskId": task.pk, "comment": CommentSerializer(comment).data},
        )
        return payload
