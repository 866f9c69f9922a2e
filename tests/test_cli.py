"""Smoke tests for all CLI commands using typer CliRunner."""

from pathlib import Path
from unittest.mock import patch

import pytest
import tomlkit
from typer.testing import CliRunner

import boardmd.settings as settings_module
from boardmd.main import app
from boardmd.render import render_board
from boardmd.ids import IdentityMapper
from boardmd.settings import BoardmdSettings

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_lru_cache():
    settings_module._load_toml.cache_clear()
    yield
    settings_module._load_toml.cache_clear()


def _settings(board_id: str | None = "board-1") -> BoardmdSettings:
    return BoardmdSettings(trello_api_key="key12345678", trello_token="tok12345678", board_id=board_id)  # type: ignore[arg-type]


def _patched(provider, settings: BoardmdSettings | None = None):
    """Patch settings + provider resolution in boardmd.main."""
    settings_patch = patch("boardmd.main.get_settings", return_value=settings or _settings())
    provider_patch = patch("boardmd.main.get_provider", return_value=provider)
    return settings_patch, provider_patch


class TestRender:
    def test_prints_markdown(self, provider) -> None:
        s, p = _patched(provider)
        with s, p:
            result = runner.invoke(app, ["render"])
        assert result.exit_code == 0
        assert "# Roadmap {" in result.output
        assert "- [ ] Plan sprint {" in result.output
        assert "- [x] Kickoff {" in result.output

    def test_writes_file(self, provider, tmp_path: Path) -> None:
        target = tmp_path / "board.md"
        s, p = _patched(provider)
        with s, p:
            result = runner.invoke(app, ["render", "-o", str(target)])
        assert result.exit_code == 0
        assert target.read_text().startswith("# Roadmap {")

    def test_no_board_selected(self, provider) -> None:
        s, p = _patched(provider, _settings(board_id=None))
        with s, p:
            result = runner.invoke(app, ["render"])
        assert result.exit_code == 1
        assert "No current board" in result.output


class TestBoards:
    def test_renders_table_with_current_marker(self, provider) -> None:
        s, p = _patched(provider)
        with s, p:
            result = runner.invoke(app, ["boards"])
        assert result.exit_code == 0
        assert "Roadmap" in result.output
        assert "*" in result.output


class TestUse:
    def test_selects_by_name(self, provider) -> None:
        s, p = _patched(provider)
        with s, p, patch("boardmd.main.resolve_profile", return_value="work"), patch(
            "boardmd.main.save_profile_value"
        ) as save:
            result = runner.invoke(app, ["use", "roadmap"])
        assert result.exit_code == 0
        save.assert_called_once_with("work", "board_id", "board-1")

    def test_unknown_board_exits(self, provider) -> None:
        s, p = _patched(provider)
        with s, p, patch("boardmd.main.save_profile_value") as save:
            result = runner.invoke(app, ["use", "nope"])
        assert result.exit_code == 1
        save.assert_not_called()


class TestBoardCommand:
    def test_edit_and_apply(self, provider) -> None:
        def edit(text: str, **_: object) -> str:
            return text.replace("- [ ] Plan sprint", "- [x] Plan sprint")

        s, p = _patched(provider)
        with s, p, patch("boardmd.main.typer.edit", side_effect=edit):
            result = runner.invoke(app, ["board", "--yes"])

        assert result.exit_code == 0, result.output
        assert 'Card "Plan sprint" marked complete' in result.output
        assert provider.calls == [("update_card", "card-b", {"dueComplete": True})]

    def test_no_changes(self, provider) -> None:
        s, p = _patched(provider)
        with s, p, patch("boardmd.main.typer.edit", side_effect=lambda text, **_: text):
            result = runner.invoke(app, ["board"])
        assert result.exit_code == 0
        assert "No changes made." in result.output

    def test_dry_run_applies_nothing(self, provider) -> None:
        s, p = _patched(provider)
        with s, p, patch("boardmd.main.typer.edit", side_effect=lambda text, **_: text.replace("# Roadmap", "# Plan")):
            result = runner.invoke(app, ["board", "--dry-run"])
        assert result.exit_code == 0
        assert "Board renamed" in result.output
        assert "dry run" in result.output
        assert provider.calls == []

    def test_declined_confirmation(self, provider) -> None:
        s, p = _patched(provider)
        with s, p, patch("boardmd.main.typer.edit", side_effect=lambda text, **_: text.replace("# Roadmap", "# Plan")):
            result = runner.invoke(app, ["board"], input="n\n")
        assert result.exit_code == 0
        assert "Nothing applied" in result.output
        assert provider.calls == []

    def test_parse_error_exits_before_any_change(self, provider) -> None:
        s, p = _patched(provider)
        with s, p, patch("boardmd.main.typer.edit", side_effect=lambda text, **_: text + "stray prose\n"):
            result = runner.invoke(app, ["board", "--yes"])
        assert result.exit_code == 1
        assert "Error" in result.output
        assert provider.calls == []

    def test_failure_reports_partial_state(self, provider) -> None:
        provider.fail_on = "delete_card"

        def edit(text: str, **_: object) -> str:
            edited = text.replace("# Roadmap", "# Plan")
            return "\n".join(line for line in edited.splitlines() if "Plan sprint" not in line) + "\n"

        s, p = _patched(provider)
        with s, p, patch("boardmd.main.typer.edit", side_effect=edit):
            result = runner.invoke(app, ["board", "--yes"])

        assert result.exit_code == 1
        assert "Already applied" in result.output
        assert "partially updated" in result.output
        assert provider.method_calls() == ["update_board"]

    def test_extended_pass(self, provider) -> None:
        mapper = IdentityMapper.from_remote(_remote_of(provider))
        token = mapper.short_token("card-b")
        edits = iter(
            [
                lambda text: text.replace(f"Plan sprint {{{token}}}", f"Plan sprint {{{token}}}!"),
                lambda text: text.replace("Subscribed: false", "Subscribed: true"),
            ]
        )

        s, p = _patched(provider)
        with s, p, patch("boardmd.main.typer.edit", side_effect=lambda text, **_: next(edits)(text)):
            result = runner.invoke(app, ["board", "--yes"])

        assert result.exit_code == 0, result.output
        assert "marked for detailed editing" in result.output
        assert provider.calls == [("update_card", "card-b", {"subscribed": True})]


def _remote_of(provider):
    from boardmd.session import fetch_remote_board

    return fetch_remote_board(provider, "board-1")


class TestPush:
    def test_applies_file(self, provider, tmp_path: Path) -> None:
        remote = _remote_of(provider)
        text = render_board(remote, IdentityMapper.from_remote(remote)).replace("## Doing", "## In Progress")
        target = tmp_path / "board.md"
        target.write_text(text)

        s, p = _patched(provider)
        with s, p:
            result = runner.invoke(app, ["push", str(target), "--yes"])

        assert result.exit_code == 0, result.output
        assert provider.calls == [("update_list", "list-doing", {"name": "In Progress"})]

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["push", str(tmp_path / "missing.md")])
        assert result.exit_code == 1
        assert "File not found" in result.output


class TestOpen:
    def test_launches_browser(self) -> None:
        with patch("boardmd.main.get_settings", return_value=_settings()), patch(
            "boardmd.main.typer.launch"
        ) as launch:
            result = runner.invoke(app, ["open"])
        assert result.exit_code == 0
        launch.assert_called_once_with("https://trello.com/b/board-1")


class TestSetDefault:
    def test_sets_existing_profile(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = tmp_path / "config.toml"
        config_path.write_text(tomlkit.dumps({"work": {"board_id": "b"}, "home": {"board_id": "c"}}))
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        result = runner.invoke(app, ["set-default", "home"])

        assert result.exit_code == 0
        assert tomlkit.parse(config_path.read_text())["default_profile"] == "home"

    def test_unknown_profile(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = tmp_path / "config.toml"
        config_path.write_text(tomlkit.dumps({"work": {"board_id": "b"}}))
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        result = runner.invoke(app, ["set-default", "nope"])
        assert result.exit_code == 1

    def test_without_config_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = tmp_path / "config.toml"
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        result = runner.invoke(app, ["set-default", "work"])

        assert result.exit_code == 0
        assert "Default profile set" in result.output
        assert tomlkit.parse(config_path.read_text())["default_profile"] == "work"


class TestConfigShow:
    def test_masks_credentials(self) -> None:
        with patch("boardmd.main.get_settings", return_value=_settings()), patch(
            "boardmd.main.resolve_profile", return_value="work"
        ):
            result = runner.invoke(app, ["config-show"])
        assert result.exit_code == 0
        assert "...45678" in result.output
        assert "key12345678" not in result.output
        assert "board-1" in result.output


class TestInit:
    def test_writes_profile(self, provider, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = tmp_path / "config.toml"
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)

        with patch("boardmd.main.TrelloProvider", return_value=provider):
            result = runner.invoke(app, ["init"], input="mykey\nmytoken\n1\neu\nwork\ny\n")

        assert result.exit_code == 0, result.output
        doc = tomlkit.parse(config_path.read_text())
        assert doc["default_profile"] == "work"
        assert doc["work"]["board_id"] == "board-1"
        assert doc["work"]["date_format"] == "eu"
        assert doc["work"]["trello_token"] == "mytoken"
