"""Resolve task references from generated schedules against the user's task set."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from dayplanner.db.models.task import DELIVERABLE_TYPES


@dataclass(frozen=True)
class TaskMatch:
    task_id: str
    name: str
    exact: bool
    order: int


@dataclass
class TaskIndex:
    """Lookup structure over schedulable tasks only.

    ``names`` maps a normalized name to its task id, in insertion order; when two
    tasks share a normalized name the first one seen keeps the slot.
    """

    ids: Set[str] = field(default_factory=set)
    names: Dict[str, str] = field(default_factory=dict)
    display_names: Dict[str, str] = field(default_factory=dict)

    def __contains__(self, task_id: object) -> bool:
        return task_id is not None and str(task_id) in self.ids

    def __len__(self) -> int:
        return len(self.ids)


def normalize_name(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split()).lower()


def build_task_index(tasks: Iterable[Any]) -> TaskIndex:
    """Index tasks by id and normalized name, skipping Milestones and Sub-Milestones."""
    index = TaskIndex()
    for task in tasks:
        if _task_attr(task, "type") in DELIVERABLE_TYPES:
            continue
        task_id = _task_attr(task, "id")
        if task_id is None:
            continue
        task_id = str(task_id)
        name = _task_attr(task, "name") or ""
        index.ids.add(task_id)
        index.display_names[task_id] = name
        key = normalize_name(name)
        if key and key not in index.names:
            index.names[key] = task_id
    return index


def rank_name_matches(query: Any, index: TaskIndex) -> List[TaskMatch]:
    """Every task whose name matches ``query``, best first.

    An exact (case-insensitive, whitespace-trimmed) match ranks first. Substring
    matches in either direction follow, shortest name first, then index order.
    """
    needle = normalize_name(query)
    if not needle:
        return []
    matches: List[TaskMatch] = []
    for order, (key, task_id) in enumerate(index.names.items()):
        if key == needle:
            matches.append(TaskMatch(task_id, index.display_names.get(task_id, key), True, order))
        elif needle in key or key in needle:
            matches.append(TaskMatch(task_id, index.display_names.get(task_id, key), False, order))
    matches.sort(key=lambda match: (not match.exact, len(normalize_name(match.name)), match.order))
    return matches


def resolve_task_reference(reference: Any, index: TaskIndex) -> Optional[str]:
    """Return the id of the task ``reference`` points at, or None.

    ``reference`` may be an id string, a free-text name, or a mapping carrying
    ``id``/``taskId`` and/or ``name``/``title``. Explicit ids are checked first and
    verbatim. None means "no task reference" and is not an error.
    """
    if reference is None:
        return None
    if isinstance(reference, Mapping):
        for key in ("id", "taskId", "task_id"):
            candidate = reference.get(key)
            if candidate is not None and str(candidate) in index.ids:
                return str(candidate)
        for key in ("name", "title", "taskName", "task_name"):
            resolved = _resolve_name(reference.get(key), index)
            if resolved:
                return resolved
        return None
    text = str(reference).strip()
    if text in index.ids:
        return text
    return _resolve_name(text, index)


def reference_name(reference: Any) -> Optional[str]:
    """Best-effort display name carried by a raw reference."""
    if reference is None:
        return None
    if isinstance(reference, Mapping):
        for key in ("name", "title", "taskName", "task_name"):
            value = reference.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None
    text = str(reference).strip()
    return text or None


def _resolve_name(name: Any, index: TaskIndex) -> Optional[str]:
    matches = rank_name_matches(name, index)
    return matches[0].task_id if matches else None


def _task_attr(task: Any, name: str) -> Any:
    if isinstance(task, Mapping):
        return task.get(name)
    return getattr(task, name, None)
