"""Tests for binocs.agent.orchestrator, context and worktree helpers.

Assistant backends are replaced by small shell scripts configured as the
``claude`` command.
"""

from __future__ import annotations

import shutil
import subprocess
import time
from pathlib import Path

import pytest

from binocs.agent.context import build_context, format_body, format_log_entry
from binocs.agent.orchestrator import (
    CONTEXT_FILE,
    PROMPT_FILE,
    AgentOrchestrator,
    generate_slug,
)
from binocs.agent.record import AgentStatus
from binocs.agent.registry import AgentRegistry
from binocs.agent.worktree import WorktreeError, find_git_root
from binocs.config import AgentConfig
from binocs.store.base import RequestRecord


def _request(**overrides) -> RequestRecord:
    fields = dict(
        id="req-500",
        method="PATCH",
        path="/users/42/posts/7",
        controller_name="PostsController",
        action_name="update",
        status_code=500,
        duration_ms=18.5,
        params={"id": "7"},
        request_body='{"post": {"title": ""}}',
        exception={
            "class": "NoMethodError",
            "message": "undefined method `strip' for nil",
            "backtrace": [f"app/models/post.rb:{i}" for i in range(20)],
        },
    )
    fields.update(overrides)
    return RequestRecord(**fields)


def _script(tmp_path: Path, body: str, name: str = "fake-claude") -> str:
    script = tmp_path / name
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(0o755)
    return str(script)


def _orchestrator(tmp_path: Path, command: str, repo: Path | None = None) -> AgentOrchestrator:
    repo = repo or tmp_path / "repo"
    repo.mkdir(exist_ok=True)
    config = AgentConfig(
        claude_command=command,
        worktree_base=str(tmp_path / "agents"),
        stop_grace_period=0.3,
    )
    return AgentOrchestrator(AgentRegistry(), config, repo_root=repo)


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.email=dev@example.com", "-c", "user.name=dev", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------


class TestGenerateSlug:
    def test_first_four_words(self) -> None:
        assert generate_slug("Fix the N+1 query in users!") == "fix-the-n1-query"

    def test_capped_length(self) -> None:
        slug = generate_slug("internationalization localization something more")
        assert slug == "internationalization-loca"
        assert len(slug) == 25

    def test_fallback(self) -> None:
        assert generate_slug("") == "task"
        assert generate_slug(None) == "task"
        assert generate_slug("!!! ???") == "task"


# ---------------------------------------------------------------------------
# Context document
# ---------------------------------------------------------------------------


class TestBuildContext:
    def test_exception_section(self) -> None:
        doc = build_context(_request())
        assert "## Exception" in doc
        assert "- **Class**: NoMethodError" in doc
        assert "- **Message**: undefined method `strip' for nil" in doc

    def test_backtrace_truncated(self) -> None:
        doc = build_context(_request())
        assert "app/models/post.rb:14" in doc
        assert "app/models/post.rb:15" not in doc

    def test_overview_and_bodies(self) -> None:
        doc = build_context(_request())
        assert doc.startswith("## Request Overview")
        assert "- **Method**: PATCH" in doc
        assert "- **Controller**: PostsController" in doc
        assert "- **Full URL**: N/A" in doc
        assert '"title": ""' in doc
        assert "## Request Parameters" in doc

    def test_empty_sections_omitted(self) -> None:
        doc = build_context(RequestRecord(id="x", method="GET", path="/"))
        assert "## Exception" not in doc
        assert "## Request Body" not in doc
        assert "## Request Logs" not in doc

    def test_format_body(self) -> None:
        assert format_body('{"a":1}') == '{\n  "a": 1\n}'
        assert format_body("plain text") == "plain text"

    def test_format_log_entry(self) -> None:
        entry = {
            "type": "controller", "timestamp": "t", "controller": "A",
            "action": "b", "duration": 3,
        }
        assert format_log_entry(entry) == "[t] A#b - 3ms"
        redirect = {"type": "redirect", "timestamp": "t", "location": "/x", "status": 302}
        assert format_log_entry(redirect) == "[t] Redirect to /x (302)"


# ---------------------------------------------------------------------------
# Launch on the current branch
# ---------------------------------------------------------------------------


class TestLaunch:
    def test_successful_run(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, 'echo "agent ran in $(pwd)"'))
        agent = orch.launch(_request(), "explain this 500")

        assert agent in orch.registry
        assert _wait_for(lambda: agent.status is AgentStatus.COMPLETED)
        assert agent.exit_code == 0
        assert agent.branch_name is None
        assert Path(agent.worktree_path) == orch.repo_root

        output = agent.output()
        assert "Binocs Agent Started" in output
        assert "Running on current branch" in output
        assert "agent ran in" in output

    def test_context_and_prompt_files(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"))
        agent = orch.launch(_request(), "explain this 500")
        _wait_for(lambda: agent.status.is_terminal)

        context = (orch.repo_root / CONTEXT_FILE).read_text()
        assert "## Exception" in context
        assert "NoMethodError" in context
        prompt = (orch.repo_root / PROMPT_FILE).read_text()
        assert "# Task\n\nexplain this 500" in prompt
        assert "## Request Overview" in prompt

    def test_log_file_under_base_dir(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"))
        agent = orch.launch(_request(), "Fix the title bug")
        log = Path(agent.output_file)
        assert log.parent == (tmp_path / "agents").resolve()
        assert log.name.endswith("-fix-the-title-bug.log")

    def test_nonzero_exit_fails(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "echo oops >&2\nexit 3"))
        agent = orch.launch(_request(), "break")
        assert _wait_for(lambda: agent.status is AgentStatus.FAILED)
        assert agent.exit_code == 3
        assert "oops" in agent.output()

    def test_missing_executable_marks_failed(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, str(tmp_path / "does-not-exist"))
        agent = orch.launch(_request(), "anything")
        assert agent.status is AgentStatus.FAILED
        assert agent in orch.registry
        assert "[ERROR]" in agent.output()

    def test_unusable_base_dir_marks_failed(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"))
        orch.config.worktree_base = str(blocker / "agents")

        agent = orch.launch(_request(), "explain")
        assert agent in orch.registry
        assert agent.status is AgentStatus.FAILED
        assert agent.pid is None
        assert agent.output() == ""

    def test_unusable_base_dir_fails_isolated_launch(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"))
        orch.config.worktree_base = str(blocker / "agents")

        with pytest.raises(WorktreeError) as excinfo:
            orch.launch(_request(), "explain", use_worktree=True, branch_name="fix-3")
        assert "Not a directory" in excinfo.value.output
        assert orch.registry.count() == 0

    def test_tool_override(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"))
        orch.config.opencode_command = _script(tmp_path, 'echo "opencode $1"', "fake-opencode")
        agent = orch.launch(_request(), "hi", tool="opencode")
        assert _wait_for(lambda: agent.status is AgentStatus.COMPLETED)
        assert "opencode -p" in agent.output()


# ---------------------------------------------------------------------------
# Stop / continue / cleanup
# ---------------------------------------------------------------------------


class TestStopAndContinue:
    def test_stop_running_agent(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exec sleep 30"))
        agent = orch.launch(_request(), "long task")
        assert _wait_for(lambda: agent.running)

        started = time.monotonic()
        assert orch.stop(agent) is True
        assert agent.status is AgentStatus.STOPPED
        assert time.monotonic() - started < 3

        # the monitor observes the exit afterwards and must not overwrite it
        time.sleep(0.2)
        assert agent.status is AgentStatus.STOPPED
        assert "Agent stopped by user" in agent.output()

    def test_stop_is_noop_when_not_running(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"))
        agent = orch.launch(_request(), "quick")
        assert _wait_for(lambda: agent.status is AgentStatus.COMPLETED)
        assert orch.stop(agent) is False
        assert agent.status is AgentStatus.COMPLETED

    def test_stop_twice(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exec sleep 30"))
        agent = orch.launch(_request(), "long task")
        assert _wait_for(lambda: agent.running)
        assert orch.stop(agent) is True
        assert orch.stop(agent) is False
        assert agent.status is AgentStatus.STOPPED

    def test_continue_session(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, 'echo "run"'))
        agent = orch.launch(_request(), "first")
        assert _wait_for(lambda: agent.status is AgentStatus.COMPLETED)
        log_file = agent.output_file

        same = orch.continue_session(agent, "second")
        assert same is agent
        assert _wait_for(lambda: agent.status is AgentStatus.COMPLETED)
        assert agent.output_file == log_file
        assert agent.prompt == "second"
        assert "Continuing Session" in agent.output()
        assert orch.registry.count() == 1
        assert "# Task\n\nsecond" in (orch.repo_root / PROMPT_FILE).read_text()

    def test_continue_running_agent_rejected(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exec sleep 30"))
        agent = orch.launch(_request(), "long task")
        try:
            assert _wait_for(lambda: agent.running)
            with pytest.raises(ValueError):
                orch.continue_session(agent, "again")
        finally:
            orch.stop(agent)

    def test_cleanup_is_idempotent(self, tmp_path) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exec sleep 30"))
        agent = orch.launch(_request(), "long task")
        assert _wait_for(lambda: agent.running)
        orch.cleanup(agent)
        assert agent.status is AgentStatus.STOPPED
        assert agent not in orch.registry
        orch.cleanup(agent)
        # running on the current branch never removes the checkout
        assert orch.repo_root.exists()


# ---------------------------------------------------------------------------
# Worktree isolation (needs git)
# ---------------------------------------------------------------------------


@pytest.fixture
def git_repo(tmp_path) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    (repo / "README.md").write_text("hello\n")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-q", "-m", "init")
    return repo


@requires_git
class TestWorktree:
    def test_find_git_root(self, git_repo) -> None:
        nested = git_repo / "a" / "b"
        nested.mkdir(parents=True)
        assert find_git_root(nested) == git_repo.resolve()

    def test_isolated_launch_and_cleanup(self, tmp_path, git_repo) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "echo isolated > marker.txt"), git_repo)
        head_before = _git(git_repo, "rev-parse", "HEAD")
        branch_before = _git(git_repo, "rev-parse", "--abbrev-ref", "HEAD")

        agent = orch.launch(_request(), "fix it", use_worktree=True, branch_name="fix-1")
        assert agent.branch_name == "agent/fix-1"
        assert agent.isolated
        worktree = Path(agent.worktree_path)
        assert worktree.resolve() != git_repo.resolve()
        assert worktree.is_dir()
        assert _wait_for(lambda: agent.status is AgentStatus.COMPLETED)
        assert (worktree / "marker.txt").exists()
        assert not (git_repo / "marker.txt").exists()
        assert (worktree / CONTEXT_FILE).exists()
        assert "agent/fix-1" in _git(git_repo, "branch", "--list", "agent/fix-1")

        orch.cleanup(agent)
        assert not worktree.exists()
        assert _git(git_repo, "branch", "--list", "agent/fix-1") == ""
        assert _git(git_repo, "rev-parse", "HEAD") == head_before
        assert _git(git_repo, "rev-parse", "--abbrev-ref", "HEAD") == branch_before
        assert agent not in orch.registry

        orch.cleanup(agent)

    def test_default_worktree_name(self, tmp_path, git_repo) -> None:
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"), git_repo)
        agent = orch.launch(_request(), "Explain this error", use_worktree=True)
        assert agent.branch_name.startswith("agent/")
        assert agent.branch_name.endswith("-explain-this-error")
        _wait_for(lambda: agent.status.is_terminal)
        orch.cleanup(agent)

    def test_failed_worktree_registers_nothing(self, tmp_path) -> None:
        not_a_repo = tmp_path / "plain"
        not_a_repo.mkdir()
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"), not_a_repo)
        with pytest.raises(WorktreeError):
            orch.launch(_request(), "fix it", use_worktree=True, branch_name="fix-2")
        assert orch.registry.count() == 0

    def test_existing_branch_fails_launch(self, tmp_path, git_repo) -> None:
        _git(git_repo, "branch", "agent/taken")
        orch = _orchestrator(tmp_path, _script(tmp_path, "exit 0"), git_repo)
        with pytest.raises(WorktreeError) as excinfo:
            orch.launch(_request(), "fix it", use_worktree=True, branch_name="taken")
        assert "agent/taken" in excinfo.value.output
        assert orch.registry.count() == 0
