"""Tests for math_council/cli.py: setting resolution and commands in simulated mode."""

import asyncio
import logging
from pathlib import Path

import click
import pytest
import yaml
from click.testing import CliRunner

from math_council import cli
from math_council.cli import _build_provider, _debate, _pick_provider_name, _resolve_settings, main
from math_council.inbox import ProblemFile
from math_council.orchestrator import DebateOrchestrator
from math_council.store import TranscriptStore
from tests.conftest import ScriptedGenerator


def test_resolve_settings_uses_config_defaults(sample_app_config):
    assert _resolve_settings(sample_app_config, None, None) == ("medium", 3)


def test_resolve_settings_frontmatter_over_default(sample_app_config):
    problem_file = ProblemFile(Path("p.md"), "Is 1 prime?", difficulty="hard", members=5)
    assert _resolve_settings(sample_app_config, None, None, problem_file) == ("hard", 5)


def test_resolve_settings_partial_frontmatter(sample_app_config):
    problem_file = ProblemFile(Path("p.md"), "Is 1 prime?", members=4)
    assert _resolve_settings(sample_app_config, None, None, problem_file) == ("medium", 4)


def test_resolve_settings_cli_over_frontmatter(sample_app_config):
    problem_file = ProblemFile(Path("p.md"), "Is 1 prime?", difficulty="hard", members=5)
    assert _resolve_settings(sample_app_config, "easy", 4, problem_file) == ("easy", 4)


def test_resolve_settings_rejects_unknown_difficulty(sample_app_config):
    with pytest.raises(click.BadParameter):
        _resolve_settings(sample_app_config, "impossible", None)


def test_pick_provider_prefers_configured_default(sample_app_config):
    sample_app_config.available_providers = {"openrouter"}
    assert _pick_provider_name(sample_app_config, "openrouter") == "openrouter"


def test_pick_provider_falls_back_to_first_available(sample_app_config, sample_model_config):
    sample_app_config.models["test_model"] = sample_model_config
    sample_app_config.available_providers = {"test_model"}
    assert _pick_provider_name(sample_app_config, "openrouter") == "test_model"


def test_pick_provider_none_without_keys(sample_app_config):
    assert _pick_provider_name(sample_app_config, "openrouter") is None
    assert _build_provider(sample_app_config) is None


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    settings = {
        "defaults": {
            "difficulty": "medium",
            "members": 3,
            "min_members": 3,
            "max_members": 7,
            "provider": "openrouter",
            "output_dir": str(tmp_path / "output"),
        },
        "models": {
            "openrouter": {
                "sdk": "openrouter",
                "model": "openai/gpt-3.5-turbo",
                "api_key_env": "MATH_COUNCIL_TEST_UNSET_KEY",
                "timeout_sec": 5,
                "max_tokens": 300,
            }
        },
        "inbox": {
            "dir": str(tmp_path / "inbox"),
            "archive_dir": str(tmp_path / "inbox" / "archive"),
        },
        "prompts": {"system": "{character} {difficulty}", "user": "{problem}\n{debate}"},
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


@pytest.fixture
def invoke(settings_file: Path, tmp_path: Path, monkeypatch):
    monkeypatch.delenv("MATH_COUNCIL_TEST_UNSET_KEY", raising=False)
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    runner = CliRunner()

    def _invoke(*args: str, **kwargs):
        return runner.invoke(main, ["--settings", str(settings_file), "--database", db_url, *args], **kwargs)

    _invoke.db_url = db_url  # type: ignore[attr-defined]
    return _invoke


def _open_store(invoke) -> TranscriptStore:
    store = TranscriptStore(invoke.db_url)
    store.initialize()
    return store


def test_personalities_lists_catalog(invoke):
    result = invoke("personalities")
    assert result.exit_code == 0, result.output
    assert "Professor Euclid" in result.output


def test_new_without_problem_fails(invoke):
    result = invoke("new")
    assert result.exit_code == 1


def test_new_with_bad_member_count_fails(invoke):
    result = invoke("new", "Is 1 prime?", "--members", "9")
    assert result.exit_code == 1
    assert "between 3 and 7" in result.output


def test_new_run_debates_to_completion_and_exports(invoke, tmp_path):
    out_dir = tmp_path / "exports"
    result = invoke("new", "Is 0.999... equal to 1?", "--members", "3", "--run",
                    "--skip-health-check", "--output", str(out_dir))
    assert result.exit_code == 0, result.output

    store = _open_store(invoke)
    (session,) = store.list_sessions()
    assert store.count_messages(session.id) == 6
    store.close()

    (exported,) = out_dir.glob("*.md")
    assert f"session-{session.id}" in exported.name


def test_run_then_show_and_sessions(invoke):
    assert invoke("new", "Sum of angles in a triangle?").exit_code == 0

    result = invoke("run", "1", "--turns", "2", "--skip-health-check")
    assert result.exit_code == 0, result.output

    store = _open_store(invoke)
    assert store.count_messages(1) == 2
    store.close()

    assert invoke("show", "1").exit_code == 0
    listed = invoke("sessions")
    assert listed.exit_code == 0
    assert "Sum of angles" in listed.output


def test_kick_add_and_force_vote(invoke):
    assert invoke("new", "Is zero even?", "--members", "3").exit_code == 0
    store = _open_store(invoke)
    first, *_ = store.get_active_participants(1)

    assert invoke("kick", "1", str(first.id)).exit_code == 0
    assert len(store.get_active_participants(1)) == 2

    assert invoke("add", "1", first.name).exit_code == 0
    assert len(store.get_active_participants(1)) == 3
    store.close()

    assert invoke("force-vote", "1").exit_code == 0


def test_kick_unknown_participant_fails(invoke):
    assert invoke("new", "Is zero even?").exit_code == 0
    result = invoke("kick", "1", "999")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_unknown_session_fails(invoke):
    result = invoke("show", "42")
    assert result.exit_code == 1


def test_delete_removes_session(invoke):
    assert invoke("new", "Is zero even?").exit_code == 0
    result = invoke("delete", "1", "--yes")
    assert result.exit_code == 0, result.output

    store = _open_store(invoke)
    assert store.get_session(1) is None
    store.close()


def test_inbox_processes_and_archives(invoke, tmp_path):
    inbox_dir = tmp_path / "inbox"
    inbox_dir.mkdir()
    (inbox_dir / "zero.md").write_text("---\ndifficulty: easy\nmembers: 4\n---\nIs zero even?\n", encoding="utf-8")

    result = invoke("inbox", "--skip-health-check", "--output", str(tmp_path / "out"))
    assert result.exit_code == 0, result.output

    assert list(inbox_dir.glob("*.md")) == []
    (archived,) = (inbox_dir / "archive").glob("*.md")
    assert not archived.name.startswith("FAILED_")

    store = _open_store(invoke)
    (session,) = store.list_sessions()
    assert session.difficulty == "easy"
    assert len(store.get_active_participants(session.id)) == 4
    assert store.count_messages(session.id) == 8
    store.close()


@pytest.mark.parametrize("frontmatter", ["members: 12", "members: lots", "difficulty: olympiad"])
def test_inbox_archives_unusable_problem_as_failed(invoke, tmp_path, frontmatter):
    inbox_dir = tmp_path / "inbox"
    inbox_dir.mkdir()
    (inbox_dir / "bad.md").write_text(f"---\n{frontmatter}\n---\nToo many cooks\n", encoding="utf-8")

    result = invoke("inbox", "--skip-health-check")
    assert result.exit_code == 0, result.output

    (archived,) = (inbox_dir / "archive").glob("*.md")
    assert archived.name.startswith("FAILED_")


def test_new_from_file_with_non_numeric_members_is_a_usage_error(invoke, tmp_path):
    problem = tmp_path / "problem.md"
    problem.write_text("---\nmembers: lots\n---\nIs zero even?\n", encoding="utf-8")

    result = invoke("new", "--file", str(problem))

    assert result.exit_code == 2
    assert "whole number" in result.output
    assert not isinstance(result.exception, ValueError)


def test_new_from_file_uses_frontmatter(invoke, tmp_path):
    problem = tmp_path / "problem.md"
    problem.write_text("---\ndifficulty: Hard\nmembers: 5\n---\nIs zero even?\n", encoding="utf-8")

    assert invoke("new", "--file", str(problem)).exit_code == 0

    store = _open_store(invoke)
    (session,) = store.list_sessions()
    assert session.problem == "Is zero even?"
    assert session.difficulty == "hard"
    assert len(store.get_active_participants(session.id)) == 5
    store.close()


async def test_debate_finishes_when_rendering_fails(store, monkeypatch, caplog):
    def _broken_terminal(*args, **kwargs):
        raise RuntimeError("terminal gone")

    monkeypatch.setattr(cli, "print_message", _broken_terminal)
    orchestrator = DebateOrchestrator(store, ScriptedGenerator())
    session_id, _ = await orchestrator.create_session("Is zero even?", "easy", 3)

    with caplog.at_level(logging.ERROR):
        produced = await asyncio.wait_for(_debate(orchestrator, session_id, max_turns=None), timeout=5)

    assert len(produced) == 6
    assert any("Could not render new_message" in msg for msg in caplog.messages)
    assert orchestrator.bus.listener_count(session_id) == 0
