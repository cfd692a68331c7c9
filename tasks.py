import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from store import Store

logger = logging.getLogger(__name__)

Task = Dict[str, Any]


class ValidationError(Exception):
    """Bad or missing input."""


class NotFoundError(Exception):
    """No task with the given id for this user."""


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def next_id(tasks: List[Task]) -> int:
    """One past the largest numeric id in `tasks`, counting digit strings
    such as "7"; other token ids are skipped."""
    ints = []
    for t in tasks:
        i = t.get("id")
        if isinstance(i, bool):
            continue
        if isinstance(i, int):
            ints.append(i)
        elif isinstance(i, str) and i.isdigit():
            ints.append(int(i))
    return max(ints) + 1 if ints else 1


def clean_text(text: Any) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Task text is required")
    return text.strip()


def find_task(tasks: List[Task], task_id) -> Optional[Task]:
    for task in tasks:
        if str(task.get("id")) == str(task_id):
            return task
    return None


class TaskService:
    """Business rules over one user's ordered task sequence.

    Every mutation holds the store lock from load through save, so two
    requests for the same document cannot interleave and lose an update.
    """

    def __init__(self, store: Store):
        self.store = store

    def list_tasks(self, user_id: str) -> List[Task]:
        return self.store.get_user_tasks(user_id)

    def add(self, user_id: str, text: Any) -> Task:
        text = clean_text(text)
        with self.store.lock:
            tasks = self.store.get_user_tasks(user_id)
            task = {"id": next_id(tasks), "text": text, "done": False, "createdAt": now_iso()}
            tasks.append(task)
            self.store.set_user_tasks(user_id, tasks)
        logger.info("Added task %s for user %s", task["id"], user_id)
        return task

    def update(self, user_id: str, task_id, changes: Dict[str, Any]) -> Task:
        """Apply only the fields present in `changes`. None means absent."""
        changes = {k: v for k, v in changes.items() if v is not None}
        if "text" in changes:
            changes["text"] = clean_text(changes["text"])
        if "done" in changes and not isinstance(changes["done"], bool):
            raise ValidationError("'done' must be a boolean")

        with self.store.lock:
            tasks = self.store.get_user_tasks(user_id)
            task = find_task(tasks, task_id)
            if task is None:
                raise NotFoundError(f"Task {task_id} not found")
            for key in ("text", "done"):
                if key in changes:
                    task[key] = changes[key]
            self.store.set_user_tasks(user_id, tasks)
        logger.info("Updated task %s for user %s", task_id, user_id)
        return task

    def delete(self, user_id: str, task_id) -> None:
        """Remove the task if present. Deleting a missing task is a no-op."""
        with self.store.lock:
            tasks = self.store.get_user_tasks(user_id)
            remaining = [t for t in tasks if str(t.get("id")) != str(task_id)]
            self.store.set_user_tasks(user_id, remaining)
        if len(remaining) != len(tasks):
            logger.info("Deleted task %s for user %s", task_id, user_id)

    def reorder(self, user_id: str, new_tasks: Any) -> List[Task]:
        """Replace the user's sequence wholesale with `new_tasks`.

        The caller submits the complete list in its new order. Ids must be
        unique; whether they match the stored set is not checked.
        """
        if not isinstance(new_tasks, list):
            raise ValidationError("'tasks' must be an array")
        seen = set()
        ordered = []
        for item in new_tasks:
            if not isinstance(item, dict) or "id" not in item or "text" not in item:
                raise ValidationError("Each task must be an object with 'id' and 'text'")
            key = str(item["id"])
            if key in seen:
                raise ValidationError(f"Duplicate task id {item['id']}")
            seen.add(key)
            task = dict(item)
            task["text"] = clean_text(item["text"])
            task.setdefault("done", False)
            if not isinstance(task["done"], bool):
                raise ValidationError("'done' must be a boolean")
            ordered.append(task)

        with self.store.lock:
            self.store.set_user_tasks(user_id, ordered)
        logger.info("Reordered %d tasks for user %s", len(ordered), user_id)
        return ordered
