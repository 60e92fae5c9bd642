"""
Persistence for memberships and issues.

Two implementations of the same interface:
  MemoryStore - dicts guarded by per-key threading locks (tests, embedding)
  FileStore   - JSON files under a data directory:
                  projects/<project_id>/members.json
                  issues/<issue_id>.json

Optional lookups return None. lock(key) gives callers a per-entity
critical section for read-check-write sequences.
"""

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Protocol

from bughawk.lib.locking import file_lock
from bughawk.lib.types import Issue, Membership
from bughawk.lib.validate import validate_before_write

logger = logging.getLogger(__name__)


def project_key(project_id: str) -> str:
    return f"project-{project_id}"


def issue_key(issue_id: str) -> str:
    return f"issue-{issue_id}"


class MembershipStore(Protocol):
    def load_membership(self, project_id: str, user_id: str) -> Optional[Membership]: ...
    def save_membership(self, membership: Membership) -> None: ...
    def delete_membership(self, project_id: str, user_id: str) -> None: ...
    def list_memberships(self, project_id: str) -> list[Membership]: ...
    def lock(self, key: str): ...


class IssueStore(Protocol):
    def load_issue(self, issue_id: str) -> Optional[Issue]: ...
    def save_issue(self, issue: Issue) -> None: ...
    def delete_issue(self, issue_id: str) -> None: ...
    def list_issues(self, project_id: str | None = None) -> list[Issue]: ...
    def lock(self, key: str): ...


class MemoryStore:
    """In-process store. Records are copied on the way in and out."""

    def __init__(self):
        self._members: dict[tuple[str, str], dict] = {}
        self._issues: dict[str, dict] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(key, threading.RLock())
        with lock:
            yield

    def load_membership(self, project_id: str, user_id: str) -> Optional[Membership]:
        data = self._members.get((project_id, user_id))
        return Membership.from_dict(data) if data else None

    def save_membership(self, membership: Membership) -> None:
        self._members[(membership.project_id, membership.user_id)] = membership.to_dict()

    def delete_membership(self, project_id: str, user_id: str) -> None:
        self._members.pop((project_id, user_id), None)

    def list_memberships(self, project_id: str) -> list[Membership]:
        return [
            Membership.from_dict(data)
            for (pid, _), data in sorted(self._members.items())
            if pid == project_id
        ]

    def load_issue(self, issue_id: str) -> Optional[Issue]:
        data = self._issues.get(issue_id)
        return Issue.from_dict(data) if data else None

    def save_issue(self, issue: Issue) -> None:
        self._issues[issue.id] = issue.to_dict()

    def delete_issue(self, issue_id: str) -> None:
        self._issues.pop(issue_id, None)

    def list_issues(self, project_id: str | None = None) -> list[Issue]:
        issues = [Issue.from_dict(d) for d in self._issues.values()]
        if project_id is not None:
            issues = [i for i in issues if i.project_id == project_id]
        return sorted(issues, key=lambda i: i.created_at)


class FileStore:
    """JSON file store rooted at data_dir."""

    def __init__(self, data_dir: Path, lock_timeout: float = 30):
        self.data_dir = Path(data_dir)
        self.lock_timeout = lock_timeout

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        lock_file = self.data_dir / "locks" / f"{key}.lock"
        with file_lock(lock_file, self.lock_timeout, f"lock for {key}"):
            yield

    # Memberships

    def _members_path(self, project_id: str) -> Path:
        return self.data_dir / "projects" / project_id / "members.json"

    def _read_members(self, project_id: str) -> list[dict]:
        path = self._members_path(project_id)
        if not path.exists():
            return []
        try:
            return json.loads(path.read_text()).get("members", [])
        except json.JSONDecodeError as e:
            logger.warning(f"[STORE] Failed to read {path}: {e}")
            return []

    def _write_members(self, project_id: str, members: list[dict]) -> None:
        path = self._members_path(project_id)
        for m in members:
            validate_before_write(m, "membership", path)
        data = {"project_id": project_id, "members": members}
        validate_before_write(data, "members", path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    def load_membership(self, project_id: str, user_id: str) -> Optional[Membership]:
        for data in self._read_members(project_id):
            if data.get("user_id") == user_id:
                return Membership.from_dict(data)
        return None

    def save_membership(self, membership: Membership) -> None:
        members = [
            m for m in self._read_members(membership.project_id)
            if m.get("user_id") != membership.user_id
        ]
        members.append(membership.to_dict())
        members.sort(key=lambda m: m["user_id"])
        self._write_members(membership.project_id, members)

    def delete_membership(self, project_id: str, user_id: str) -> None:
        members = self._read_members(project_id)
        remaining = [m for m in members if m.get("user_id") != user_id]
        if len(remaining) != len(members):
            self._write_members(project_id, remaining)

    def list_memberships(self, project_id: str) -> list[Membership]:
        memberships = []
        for data in self._read_members(project_id):
            try:
                memberships.append(Membership.from_dict(data))
            except (KeyError, ValueError) as e:
                logger.warning(f"[STORE] Skipping malformed membership in {project_id}: {e}")
        return memberships

    # Issues

    def _issue_path(self, issue_id: str) -> Path:
        return self.data_dir / "issues" / f"{issue_id}.json"

    def load_issue(self, issue_id: str) -> Optional[Issue]:
        path = self._issue_path(issue_id)
        if not path.exists():
            return None
        try:
            return Issue.from_dict(json.loads(path.read_text()))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"[STORE] Failed to load issue {issue_id}: {e}")
            return None

    def save_issue(self, issue: Issue) -> None:
        path = self._issue_path(issue.id)
        data = issue.to_dict()
        validate_before_write(data, "issue", path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    def delete_issue(self, issue_id: str) -> None:
        path = self._issue_path(issue_id)
        if path.exists():
            path.unlink()

    def list_issues(self, project_id: str | None = None) -> list[Issue]:
        issues_dir = self.data_dir / "issues"
        if not issues_dir.exists():
            return []
        issues = []
        for f in issues_dir.glob("*.json"):
            issue = self.load_issue(f.stem)
            if issue is None:
                continue
            if project_id is None or issue.project_id == project_id:
                issues.append(issue)
        return sorted(issues, key=lambda i: i.created_at)
