"""Smoke tests for all CLI commands using typer CliRunner."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

import linref.settings as settings_module
from linref.aliases import AliasStore
from linref.errors import AuthenticationError
from linref.main import app
from linref.models import Validation
from linref.providers.linear import LinearProvider

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(isolated: Path) -> Path:
    return isolated


def _global_aliases() -> dict:
    return json.loads((settings_module.GLOBAL_DIR / "aliases.json").read_text())


def _project_aliases() -> dict:
    return json.loads((Path(".linref") / "aliases.json").read_text())


def _invoke(provider: MagicMock, *args: str, input: str | None = None):
    with patch("linref.main.get_provider", return_value=provider):
        return runner.invoke(app, list(args), input=input)


class TestAliasAdd:
    def test_validates_and_writes_global(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "add", "team", "eng", "team_eng")
        assert result.exit_code == 0, result.output
        assert "Engineering" in result.output
        assert _global_aliases() == {"team": {"eng": "team_eng"}}
        provider.validate_exists.assert_called_once()

    def test_project_scope(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "add", "teams", "eng", "team_eng", "--project")
        assert result.exit_code == 0, result.output
        assert _project_aliases() == {"team": {"eng": "team_eng"}}

    def test_skip_validation_makes_no_remote_call(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        assert result.exit_code == 0, result.output
        provider.validate_exists.assert_not_called()

    def test_invalid_id_rejected(self, provider: MagicMock) -> None:
        provider.validate_exists.return_value = Validation(valid=False, error="team with ID 'team_x' not found")
        result = _invoke(provider, "alias", "add", "team", "eng", "team_x")
        assert result.exit_code == 1
        assert "not found" in result.output
        assert not (settings_module.GLOBAL_DIR / "aliases.json").exists()

    def test_conflict_then_force(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng")
        result = _invoke(provider, "alias", "add", "team", "eng", "team_des")
        assert result.exit_code == 1
        assert "--force" in result.output

        result = _invoke(provider, "alias", "add", "team", "eng", "team_des", "--force")
        assert result.exit_code == 0, result.output
        assert "Updated" in result.output
        assert _global_aliases()["team"]["eng"] == "team_des"

    def test_unknown_type(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "add", "milestone", "m1", "x")
        assert result.exit_code == 1
        assert "Unknown entity type" in result.output


class TestAliasReadAndEdit:
    def test_get_reports_scope(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        result = _invoke(provider, "alias", "get", "team", "ENG")
        assert result.exit_code == 0
        assert "team_eng" in result.output
        assert "global" in result.output

    def test_get_missing(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "get", "team", "nope")
        assert result.exit_code == 1

    def test_list_marks_shadowed(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        _invoke(provider, "alias", "add", "team", "eng", "team_des", "--skip-validation", "--project")
        result = _invoke(provider, "alias", "list")
        assert result.exit_code == 0
        assert "shadowed" in result.output

    def test_list_empty(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "list", "team")
        assert result.exit_code == 0
        assert "No aliases" in result.output

    def test_remove(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        result = _invoke(provider, "alias", "remove", "team", "eng")
        assert result.exit_code == 0, result.output
        assert _global_aliases() == {"team": {}}

    def test_remove_missing(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "remove", "team", "eng")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_rename(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        result = _invoke(provider, "alias", "rename", "team", "eng", "core")
        assert result.exit_code == 0, result.output
        assert _global_aliases() == {"team": {"core": "team_eng"}}

    def test_clear_needs_confirmation(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        result = _invoke(provider, "alias", "clear", "team", input="n\n")
        assert result.exit_code == 1
        assert _global_aliases() == {"team": {"eng": "team_eng"}}

        result = _invoke(provider, "alias", "clear", "team", "--yes")
        assert result.exit_code == 0, result.output
        assert _global_aliases() == {"team": {}}


class TestAliasSync:
    def test_preview_by_default(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "sync", "team")
        assert result.exit_code == 0, result.output
        assert "engineering" in result.output
        assert "--global or --project" in result.output
        assert not (settings_module.GLOBAL_DIR / "aliases.json").exists()
        assert not (Path(".linref") / "aliases.json").exists()

    def test_writes_global(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "sync", "team", "--global")
        assert result.exit_code == 0, result.output
        assert _global_aliases() == {
            "team": {"engineering": "team_eng", "design": "team_des", "operations": "team_ops"}
        }

    def test_dry_run_with_scope(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "sync", "team", "--project", "--dry-run")
        assert result.exit_code == 0, result.output
        assert not (Path(".linref") / "aliases.json").exists()

    def test_both_scopes_rejected(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "sync", "team", "--global", "--project")
        assert result.exit_code == 1

    def test_team_filter_lists_remote(self, provider: MagicMock) -> None:
        result = _invoke(provider, "alias", "sync", "member", "--project", "--team", "Engineering")
        assert result.exit_code == 0, result.output
        provider.list_entities.assert_called_with("member", team_id="team_eng")
        assert _project_aliases() == {"member": {"jane-doe": "user_jane", "john-doe": "user_john"}}


class TestAliasValidate:
    def test_all_good(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        result = _invoke(provider, "alias", "validate")
        assert result.exit_code == 0
        assert "All aliases resolve" in result.output

    def test_broken_exits_nonzero(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "old", "team_gone", "--skip-validation")
        provider.validate_exists.return_value = Validation(valid=False, error="gone")
        result = _invoke(provider, "alias", "validate")
        assert result.exit_code == 1
        assert "old" in result.output

    def test_rejected_api_key_is_not_reported_as_broken(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        provider.validate_exists.side_effect = AuthenticationError("Linear API returned 401")
        result = _invoke(provider, "alias", "validate")
        assert result.exit_code == 1
        assert "401" in result.output
        assert "Broken aliases" not in result.output


class TestConfig:
    def test_set_entity_key_resolves_name(self, provider: MagicMock) -> None:
        result = _invoke(provider, "config", "set", "default_team", "Engineering")
        assert result.exit_code == 0, result.output
        stored = json.loads((settings_module.GLOBAL_DIR / "config.json").read_text())
        assert stored == {"default_team": "team_eng"}

    def test_set_entity_key_uses_alias(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        result = _invoke(provider, "config", "set", "default_team", "eng", "--project")
        assert result.exit_code == 0, result.output
        stored = json.loads((Path(".linref") / "config.json").read_text())
        assert stored == {"default_team": "team_eng"}

    def test_set_unknown_name_fails(self, provider: MagicMock) -> None:
        result = _invoke(provider, "config", "set", "default_team", "Marketing")
        assert result.exit_code == 1
        assert not (settings_module.GLOBAL_DIR / "config.json").exists()

    def test_set_skip_validation(self, provider: MagicMock) -> None:
        result = _invoke(provider, "config", "set", "default_team", "whatever", "--skip-validation")
        assert result.exit_code == 0, result.output
        provider.list_entities.assert_not_called()

    def test_set_invalid_ttl(self, provider: MagicMock) -> None:
        result = _invoke(provider, "config", "set", "cache_ttl_minutes", "0")
        assert result.exit_code == 1
        assert "between 1 and 1440" in result.output

    def test_unknown_key(self, provider: MagicMock) -> None:
        result = _invoke(provider, "config", "get", "colour")
        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_get_masks_api_key(self, provider: MagicMock) -> None:
        _invoke(provider, "config", "set", "api_key", "lin_api_supersecret")
        result = _invoke(provider, "config", "get", "api_key")
        assert result.exit_code == 0
        assert "lin_***ret" in result.output
        assert "supersecret" not in result.output

    def test_get_env_source(self, provider: MagicMock, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LINREF_DEFAULT_TEAM", "team_env")
        result = _invoke(provider, "config", "get", "default_team")
        assert "team_env" in result.output
        assert "env" in result.output

    def test_unset(self, provider: MagicMock) -> None:
        _invoke(provider, "config", "set", "persistent_cache", "no")
        result = _invoke(provider, "config", "unset", "persistent_cache")
        assert result.exit_code == 0
        assert "Removed" in result.output
        result = _invoke(provider, "config", "unset", "persistent_cache")
        assert "was not set" in result.output

    def test_list(self, provider: MagicMock) -> None:
        result = _invoke(provider, "config", "list")
        assert result.exit_code == 0
        assert "configuration" in result.output


class TestCache:
    def test_stats_then_clear(self, provider: MagicMock) -> None:
        _invoke(provider, "resolve", "team", "Design")
        assert (Path(".linref") / "cache" / "team.json").exists()

        result = _invoke(provider, "cache", "stats")
        assert result.exit_code == 0
        assert "team" in result.output

        result = _invoke(provider, "cache", "clear", "--entity", "teams")
        assert result.exit_code == 0
        assert not (Path(".linref") / "cache" / "team.json").exists()

    def test_stats_empty(self, provider: MagicMock) -> None:
        result = _invoke(provider, "cache", "stats")
        assert "empty" in result.output


class TestResolveAndList:
    def test_resolve_by_name(self, provider: MagicMock) -> None:
        result = _invoke(provider, "resolve", "team", "design")
        assert result.exit_code == 0, result.output
        assert "team_des" in result.output

    def test_resolve_ambiguous(self, provider: MagicMock) -> None:
        result = _invoke(provider, "resolve", "member", "j")
        assert result.exit_code == 1
        assert "matches 2" in result.output

    def test_list_shows_aliases(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        result = _invoke(provider, "list", "team")
        assert result.exit_code == 0, result.output
        assert "Engineering" in result.output
        assert "eng" in result.output


class TestProviderFactory:
    def test_missing_api_key_exits(self) -> None:
        result = runner.invoke(app, ["resolve", "team", "eng"])
        assert result.exit_code == 1
        assert "No Linear API key" in result.output

    def test_builds_linear_provider(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LINEAR_API_KEY", "lin_api_x")
        from linref.main import get_config, get_provider

        assert isinstance(get_provider(get_config()), LinearProvider)


class TestListCommand:
    def test_reads_alias_files_once(self, provider: MagicMock) -> None:
        _invoke(provider, "alias", "add", "team", "eng", "team_eng", "--skip-validation")
        scope_aliases = AliasStore.scope_aliases
        with patch.object(AliasStore, "scope_aliases", autospec=True, side_effect=scope_aliases) as spy:
            result = _invoke(provider, "list", "team")
        assert result.exit_code == 0, result.output
        # one read per scope, not per listed entity
        assert spy.call_count == 2

    def test_team_option_ignored_for_workspace_types(self, provider: MagicMock) -> None:
        result = _invoke(provider, "list", "team", "--team", "Engineering")
        assert result.exit_code == 0, result.output
        # the team lookup fills the cache, and the listing is served from it
        provider.list_entities.assert_called_once_with("team")
