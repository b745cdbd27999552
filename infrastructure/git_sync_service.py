"""Mirror the graph directory to a git remote.

State machine::

    UNKNOWN -> NOT_A_REPO | REPO_NO_REMOTE | REPO_WITH_REMOTE
    REPO_WITH_REMOTE -> CONFLICTED   (pull --rebase exited non-zero; rebase aborted)
    CONFLICTED -> REPO_WITH_REMOTE   (resolve_keep_local / resolve_keep_cloud)

Nothing is pushed while CONFLICTED. Git failures are recorded in
`status.last_error`; only misuse of the resolution calls raises.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

logger = logging.getLogger("notanote.git")

DEFAULT_TIMEOUT = 60
OUTPUT_LOG_LIMIT = 400


class GitError(RuntimeError):
    """Base class for git sync failures."""


class GitCommandError(GitError):
    def __init__(self, args: Sequence[str], returncode: int, output: str):
        self.command = list(args)
        self.returncode = returncode
        self.output = output
        super().__init__(f"Git command failed: {output or ' '.join(args)}")


class GitConflictError(GitError):
    """Raised when a resolution is requested outside the CONFLICTED state."""


@dataclass(frozen=True)
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return (self.stdout or self.stderr).strip()


class GitRunner:
    """Runs `git -C <repo> ...` and captures the result."""

    def __init__(self, repo_path: Path, git: str = "git", timeout: int = DEFAULT_TIMEOUT):
        self.repo_path = Path(repo_path)
        self.git = git
        self.timeout = timeout

    def run(self, args: Sequence[str], check: bool = True) -> GitResult:
        cmd = [self.git, "-C", str(self.repo_path), *args]
        logger.debug("$ %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as exc:
            raise GitCommandError(args, -1, f"git executable not found: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(args, -1, f"timed out after {self.timeout}s") from exc
        result = GitResult(proc.returncode, proc.stdout or "", proc.stderr or "")
        text = (result.stdout + result.stderr).strip()
        if text:
            logger.debug("git %s -> %s: %s", args[0] if args else "", proc.returncode, text[:OUTPUT_LOG_LIMIT])
        if check and proc.returncode != 0:
            raise GitCommandError(args, proc.returncode, (result.stderr or result.stdout).strip())
        return result


class GitRepoState(Enum):
    UNKNOWN = "unknown"
    NOT_A_REPO = "not_a_repo"
    REPO_NO_REMOTE = "repo_no_remote"
    REPO_WITH_REMOTE = "repo_with_remote"
    CONFLICTED = "conflicted"


@dataclass
class GitSyncStatus:
    state: GitRepoState = GitRepoState.UNKNOWN
    remote_name: Optional[str] = None
    branch: Optional[str] = None
    last_commit_date: Optional[datetime] = None
    last_error: Optional[str] = None
    is_syncing: bool = False
    conflict_path: Optional[str] = None
    conflict_remote_tip: Optional[str] = None
    conflict_files: List[str] = field(default_factory=list)

    @property
    def is_git_repo(self) -> bool:
        return self.state in (GitRepoState.REPO_NO_REMOTE, GitRepoState.REPO_WITH_REMOTE, GitRepoState.CONFLICTED)

    @property
    def has_remote(self) -> bool:
        return self.state in (GitRepoState.REPO_WITH_REMOTE, GitRepoState.CONFLICTED)

    @property
    def is_conflicted(self) -> bool:
        return self.state is GitRepoState.CONFLICTED


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitSyncService:
    def __init__(
        self,
        repo_path: Path,
        settings: Any = None,
        runner: Optional[GitRunner] = None,
        stamp: Callable[[], str] = _utc_stamp,
    ):
        self.repo_path = Path(repo_path)
        self.settings = settings
        self.runner = runner or GitRunner(self.repo_path)
        self.status = GitSyncStatus()
        self._stamp = stamp
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------ detect

    def detect(self) -> GitRepoState:
        status = self.status
        try:
            inside = self.runner.run(["rev-parse", "--is-inside-work-tree"]).output
            if inside != "true":
                raise GitCommandError(["rev-parse"], 0, inside)
            remotes = [r.strip() for r in self.runner.run(["remote"]).stdout.splitlines() if r.strip()]
            # symbolic-ref also names an unborn branch; detached HEAD fails.
            head = self.runner.run(["symbolic-ref", "--short", "-q", "HEAD"], check=False)
        except GitError as exc:
            logger.info("%s is not a git work tree (%s)", self.repo_path, exc)
            status.state = GitRepoState.NOT_A_REPO
            status.remote_name = None
            status.branch = None
            return status.state

        status.branch = head.output if head.returncode == 0 and head.output else None
        status.remote_name = remotes[0] if remotes else None
        if status.state is not GitRepoState.CONFLICTED:
            status.state = GitRepoState.REPO_WITH_REMOTE if remotes else GitRepoState.REPO_NO_REMOTE
        logger.info("git state for %s: %s (remote=%s)", self.repo_path, status.state.value, status.remote_name)
        return status.state

    # ------------------------------------------------------------- sync

    def _commit_message(self) -> str:
        template = "Auto-sync: {date}"
        if self.settings is not None:
            template = self.settings.text("git.commit_template") or template
        return template.replace("{date}", self._stamp())

    def commit_and_push(self) -> bool:
        """Stage, commit, rebase onto the remote and push.

        Returns True when the tree is in sync afterwards (including the
        nothing-to-commit case).
        """
        with self._lock:
            status = self.status
            if status.is_conflicted:
                status.last_error = "Unresolved sync conflict; keep local or keep cloud first"
                logger.warning(status.last_error)
                return False
            if status.state is GitRepoState.UNKNOWN:
                self.detect()
            if not status.is_git_repo:
                status.last_error = f"{self.repo_path} is not a git repository"
                return False

            status.is_syncing = True
            status.last_error = None
            try:
                return self._commit_and_push()
            except GitError as exc:
                status.last_error = str(exc)
                logger.error("git sync failed: %s", exc)
                return False
            finally:
                status.is_syncing = False

    def _commit_and_push(self) -> bool:
        status = self.status
        run = self.runner.run
        run(["add", "-A"])
        if run(["diff", "--cached", "--quiet"], check=False).returncode == 0:
            logger.debug("nothing to commit")
            return True
        run(["commit", "-m", self._commit_message()])

        if status.has_remote and status.remote_name:
            remote = status.remote_name
            branch = status.branch or "main"
            heads = run(["ls-remote", "--heads", remote, branch]).stdout
            if not heads.strip():
                logger.info("%s has no branch %s yet; publishing", remote, branch)
                run(["push", "-u", remote, branch])
            else:
                pulled = run(["pull", "--rebase", remote, branch], check=False)
                if pulled.returncode != 0:
                    self._enter_conflict(remote, branch, pulled)
                    return False
                run(["push", remote, branch])

        status.last_commit_date = datetime.now()
        return True

    def _enter_conflict(self, remote: str, branch: str, pulled: GitResult) -> None:
        status = self.status
        run = self.runner.run
        unmerged = [p for p in run(["diff", "--name-only", "--diff-filter=U"], check=False).stdout.splitlines() if p]
        run(["rebase", "--abort"], check=False)
        tip = run(["rev-parse", f"{remote}/{branch}"], check=False)
        status.state = GitRepoState.CONFLICTED
        status.conflict_files = unmerged
        status.conflict_path = str(self.repo_path / unmerged[0]) if unmerged else None
        status.conflict_remote_tip = tip.output if tip.returncode == 0 and tip.output else None
        if unmerged:
            status.last_error = f"Sync conflict in {', '.join(unmerged)}"
        else:
            status.last_error = f"Sync conflict: pull --rebase failed ({pulled.output or pulled.returncode})"
        logger.warning("%s; push skipped", status.last_error)

    # ------------------------------------------------------- resolution

    def _require_conflict(self) -> None:
        if not self.status.is_conflicted:
            raise GitConflictError("No sync conflict to resolve")

    def _clear_conflict(self) -> None:
        status = self.status
        status.state = GitRepoState.REPO_WITH_REMOTE
        status.conflict_path = None
        status.conflict_remote_tip = None
        status.conflict_files = []
        status.last_error = None

    def resolve_keep_local(self) -> bool:
        """Overwrite the remote with the local branch, guarded by the recorded tip."""
        with self._lock:
            self._require_conflict()
            status = self.status
            remote = status.remote_name or "origin"
            branch = status.branch or "main"
            lease = f"--force-with-lease={branch}:{status.conflict_remote_tip}" if status.conflict_remote_tip else "--force-with-lease"
            try:
                self.runner.run(["push", lease, remote, branch])
            except GitError as exc:
                status.last_error = str(exc)
                logger.error("keep-local push failed: %s", exc)
                return False
            self._clear_conflict()
            status.last_commit_date = datetime.now()
            logger.info("conflict resolved: kept local copy")
            return True

    def resolve_keep_cloud(self) -> bool:
        """Discard local commits and adopt the remote branch."""
        with self._lock:
            self._require_conflict()
            status = self.status
            remote = status.remote_name or "origin"
            branch = status.branch or "main"
            try:
                self.runner.run(["fetch", remote])
                self.runner.run(["reset", "--hard", f"{remote}/{branch}"])
            except GitError as exc:
                status.last_error = str(exc)
                logger.error("keep-cloud reset failed: %s", exc)
                return False
            self._clear_conflict()
            logger.info("conflict resolved: kept remote copy")
            return True

    # ---------------------------------------------------------- periodic

    def _enabled(self) -> bool:
        return self.settings is not None and self.settings.enabled("git.enabled")

    def _interval(self) -> float:
        if self.settings is None:
            return 300.0
        return self.settings.interval_seconds("git.sync_interval_minutes")

    def run_periodic(self, stop: threading.Event) -> None:
        while not stop.is_set():
            if not self._enabled():
                logger.info("git periodic sync stopped: disabled")
                return
            try:
                self.commit_and_push()
            except Exception:
                logger.exception("periodic git sync crashed")
            if stop.wait(self._interval()):
                return

    def start_periodic_sync(self) -> None:
        self.stop_periodic_sync()
        if not self._enabled():
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self.run_periodic, args=(self._stop,), name="git-sync", daemon=True)
        self._thread.start()

    def stop_periodic_sync(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)


__all__ = [
    "GitError",
    "GitCommandError",
    "GitConflictError",
    "GitResult",
    "GitRunner",
    "GitRepoState",
    "GitSyncStatus",
    "GitSyncService",
]
