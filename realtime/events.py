# realtime/events.py
from dataclasses import dataclass, field
from typing import Any, Dict

from django.utils import timezone

from core.constants import GLOBAL_EVENTS, PROJECT_EVENTS


@dataclass(frozen=True)
class BroadcastEvent:
    kind: str
    channel: str
    payload: Any
    created_at: Any = field(default_factory=timezone.now)

    def as_message(self) -> Dict[str, Any]:
        """Wire shape handed to transports."""
        return {"event": self.kind, "channel": self.channel, "data": self.payload}


def project_channel(project_id) -> str:
    return str(project_id)


def channel_for(kind: str, project_id, global_channel: str) -> str:
    """Project creation goes out globally; everything else to the project's channel."""
    if kind in GLOBAL_EVENTS:
        return global_channel
    if kind in PROJECT_EVENTS:
        if project_id is None:
            raise ValueError(f"Event '{kind}' needs a project id")
        return project_channel(project_id)
    raise ValueError(f"Unknown event kind: {kind}")
