# core/constants.py

# --- Logger names ---
LOGGER_ROOT = "taskboard"
LOGGER_PROJECTS = "taskboard.projects"
LOGGER_REALTIME = "taskboard.realtime"

# --- Realtime event kinds (wire names) ---

# Project lifecycle
EVENT_PROJECT_CREATED = "projectCreated"  # global channel
EVENT_PROJECT_UPDATED = "projectUpdated"
EVENT_PROJECT_DELETED = "projectDeleted"

# Membership
EVENT_MEMBER_ADDED = "memberAdded"
EVENT_MEMBER_REMOVED = "memberRemoved"

# Tasks
EVENT_TASK_CREATED = "taskCreated"
EVENT_TASK_UPDATED = "taskUpdated"
EVENT_TASK_DELETED = "taskDeleted"

# Comments
EVENT_COMMENT_ADDED = "commentAdded"

GLOBAL_EVENTS = frozenset({EVENT_PROJECT_CREATED})

PROJECT_EVENTS = frozenset({
    EVENT_PROJECT_UPDATED,
    EVENT_PROJECT_DELETED,
    EVENT_MEMBER_ADDED,
    EVENT_MEMBER_REMOVED,
    EVENT_TASK_CREATED,
    EVENT_TASK_UPDATED,
    EVENT_TASK_DELETED,
    EVENT_COMMENT_ADDED,
})
