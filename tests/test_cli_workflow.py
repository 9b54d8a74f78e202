"""End-to-end CLI tests for plan, apply and state commands."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from reelname.cli import cli
from reelname.media import MediaFile, Movie, MovieMetadata
from reelname.metadata import NoMatchError

TITLES = {
    "Movie.Name.2020.1080p.mkv": ("Movie Name", 2020),
    "Movie.Name.2020.720p.mkv": ("Movie Name", 2020),
    "Heat (1995).mkv": ("Heat", 1995),
}


class _StaticProvider:
    def provide(self, file: MediaFile) -> None:
        if file.filename not in TITLES:
            raise NoMatchError(f"No movies found for {file.filename!r}")
        title, year = TITLES[file.filename]
        file.metadata = MovieMetadata(
            movie=Movie(title=title, release_date=f"{year}-01-01")  # type: ignore[arg-type]
        )


@pytest.fixture()
def library(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    for name in TITLES:
        (root / name).write_bytes(b"video")
    return root


@pytest.fixture()
def env(tmp_path: Path) -> dict[str, Any]:
    values = {key: value for key, value in os.environ.items() if not key.startswith("REELNAME__")}
    values["HOME"] = str(tmp_path)
    return values


@pytest.fixture()
def static_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("reelname.cli._build_provider", lambda config: _StaticProvider())


def _json(result: Any) -> Any:
    return json.loads(result.stdout)


@pytest.mark.usefixtures("static_provider")
def test_plan_json_reports_resolved_duplicates(library: Path, env: dict[str, Any]) -> None:
    result = CliRunner().invoke(cli, ["plan", str(library), "--json"], env=env)

    assert result.exit_code == 0, result.output
    payload = _json(result)
    targets = sorted(change["after"]["filename"] for change in payload["plan"]["changes"])
    assert targets == ["Heat (1995).mkv", "Movie Name (2020) (1).mkv", "Movie Name (2020).mkv"]
    assert payload["summary"]["noop_changes"] == 1
    assert payload["summary"]["ready_changes"] == 2
    assert payload["summary"]["resolved_conflicts"] == 1
    assert (library / "Movie.Name.2020.720p.mkv").exists()


@pytest.mark.usefixtures("static_provider")
def test_plan_text_prints_summary(library: Path, env: dict[str, Any]) -> None:
    result = CliRunner().invoke(cli, ["plan", str(library)], env=env)

    assert result.exit_code == 0, result.output
    assert "plan summary" in result.output
    assert "rename=2," in result.output
    assert "correct=1," in result.output


@pytest.mark.usefixtures("static_provider")
def test_plan_records_lookup_failures(library: Path, env: dict[str, Any]) -> None:
    (library / "Unknown.Film.mkv").write_bytes(b"video")

    result = CliRunner().invoke(cli, ["--log-level", "error", "plan", str(library), "--json"], env=env)

    assert result.exit_code == 0
    errors = _json(result)["plan"]["errors"]
    assert len(errors) == 1
    assert errors[0]["file"].endswith("Unknown.Film.mkv")


def test_plan_without_api_key_reports_provider_error(library: Path, env: dict[str, Any]) -> None:
    result = CliRunner().invoke(cli, ["plan", str(library), "--json"], env=env)

    assert result.exit_code == 1
    assert _json(result)["error"]["code"] == "provider_error"


@pytest.mark.usefixtures("static_provider")
def test_apply_then_revert_round_trip(library: Path, env: dict[str, Any]) -> None:
    runner = CliRunner()

    applied = runner.invoke(cli, ["apply", str(library), "--auto-approve", "--json"], env=env)

    assert applied.exit_code == 0, applied.output
    assert _json(applied)["applied_count"] == 2
    assert (library / "Movie Name (2020).mkv").exists()
    assert (library / "Movie Name (2020) (1).mkv").exists()

    listed = runner.invoke(cli, ["state", "ls", "--json"], env=env)
    entries = _json(listed)["entries"]
    assert len(entries) == 2
    assert {entry["status"] for entry in entries} == {"active"}
    assert entries[0]["media_info"]["movie"]["title"] == "Movie Name"

    reverted = runner.invoke(cli, ["state", "revert", "--all", "--json"], env=env)
    assert reverted.exit_code == 0, reverted.output
    assert _json(reverted)["succeeded"] == 2
    assert (library / "Movie.Name.2020.1080p.mkv").exists()
    assert (library / "Movie.Name.2020.720p.mkv").exists()

    again = runner.invoke(cli, ["state", "revert", "--last", "--json"], env=env)
    assert again.exit_code == 1
    assert _json(again)["error"]["code"] == "nothing_to_revert"

    history = runner.invoke(cli, ["state", "ls", "--all", "--json"], env=env)
    assert {entry["status"] for entry in _json(history)["entries"]} == {"reverted"}


@pytest.mark.usefixtures("static_provider")
def test_apply_dry_run_touches_nothing(library: Path, env: dict[str, Any], tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["apply", str(library), "--dry-run", "--json"], env=env)

    assert result.exit_code == 0
    assert _json(result)["dry_run"] is True
    assert (library / "Movie.Name.2020.720p.mkv").exists()
    assert not (tmp_path / ".reelname" / "state.json").exists()


@pytest.mark.usefixtures("static_provider")
def test_apply_asks_for_confirmation(library: Path, env: dict[str, Any]) -> None:
    result = CliRunner().invoke(cli, ["apply", str(library)], env=env, input="n\n")

    assert result.exit_code == 0
    assert "Aborted" in result.output
    assert (library / "Movie.Name.2020.720p.mkv").exists()


@pytest.mark.usefixtures("static_provider")
def test_apply_prompts_for_each_conflict(library: Path, env: dict[str, Any]) -> None:
    result = CliRunner().invoke(
        cli,
        ["apply", str(library), "--strategy", "prompt_user"],
        env=env,
        input="overwrite\ny\n",
    )

    assert result.exit_code == 0, result.output
    assert "renamed=1," in result.output
    assert (library / "Movie Name (2020).mkv").exists()
    assert (library / "Movie.Name.2020.720p.mkv").exists()


def test_revert_requires_exactly_one_selector(env: dict[str, Any]) -> None:
    result = CliRunner().invoke(cli, ["state", "revert", "--last", "--all"], env=env)

    assert result.exit_code == 2
    assert "exactly one" in result.output


def test_revert_unknown_entry(env: dict[str, Any]) -> None:
    result = CliRunner().invoke(cli, ["state", "revert", "missing", "--json"], env=env)

    assert result.exit_code == 1
    assert _json(result)["error"]["code"] == "not_found"


def _write_directories(tmp_path: Path, directories: list[dict[str, Any]]) -> None:
    config_dir = tmp_path / ".reelname"
    config_dir.mkdir(exist_ok=True)
    (config_dir / "config.yaml").write_text(
        json.dumps({"directories": directories}), encoding="utf-8"
    )


@pytest.mark.usefixtures("static_provider")
def test_plan_without_path_uses_configured_directories(
    library: Path, env: dict[str, Any], tmp_path: Path
) -> None:
    other = tmp_path / "other"
    other.mkdir()
    (other / "Heat (1995).mkv").write_bytes(b"video")
    _write_directories(
        tmp_path,
        [
            {"path": str(library), "conflict_strategy": "skip"},
            {"path": str(other), "movie_template": "{name} [{year}]"},
        ],
    )

    result = CliRunner().invoke(cli, ["plan", "--json"], env=env)

    assert result.exit_code == 0, result.output
    changes = _json(result)["plan"]["changes"]
    by_source = {Path(change["before"]["path"]): change for change in changes}
    assert by_source[library.resolve() / "Movie.Name.2020.1080p.mkv"]["action"] == "skip"
    assert by_source[library.resolve() / "Movie.Name.2020.720p.mkv"]["action"] == "skip"
    assert by_source[library.resolve() / "Heat (1995).mkv"]["action"] == "noop"
    renamed = by_source[other.resolve() / "Heat (1995).mkv"]
    assert renamed["action"] == "rename"
    assert renamed["after"]["filename"] == "Heat [1995].mkv"


def test_plan_without_path_or_directories_fails(env: dict[str, Any]) -> None:
    result = CliRunner().invoke(cli, ["plan", "--json"], env=env)

    assert result.exit_code == 1
    assert _json(result)["error"]["code"] == "config_error"


def test_parallelism_option_sets_lookup_concurrency(
    library: Path, env: dict[str, Any], monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: list[int] = []

    def _provider(config: Any) -> _StaticProvider:
        seen.append(config.metadata.concurrency)
        return _StaticProvider()

    monkeypatch.setattr("reelname.cli._build_provider", _provider)

    result = CliRunner().invoke(cli, ["--parallelism", "2", "plan", str(library), "--json"], env=env)

    assert result.exit_code == 0, result.output
    assert seen == [2]


def test_parallelism_must_be_positive(env: dict[str, Any]) -> None:
    result = CliRunner().invoke(cli, ["--parallelism", "0", "state", "ls"], env=env)

    assert result.exit_code == 2


@pytest.mark.usefixtures("static_provider")
def test_state_ls_limit_keeps_newest_entries(
    library: Path, env: dict[str, Any], tmp_path: Path
) -> None:
    runner = CliRunner()
    other = tmp_path / "other"
    other.mkdir()
    (other / "Movie.Name.2020.1080p.mkv").write_bytes(b"video")
    assert runner.invoke(cli, ["apply", str(library), "--auto-approve", "--json"], env=env).exit_code == 0
    assert runner.invoke(cli, ["apply", str(other), "--auto-approve", "--json"], env=env).exit_code == 0

    everything = runner.invoke(cli, ["state", "ls", "--json"], env=env)
    limited = runner.invoke(cli, ["state", "ls", "--limit", "1", "--json"], env=env)

    assert limited.exit_code == 0, limited.output
    assert len(_json(everything)["entries"]) == 2
    assert _json(limited)["entries"] == _json(everything)["entries"][:1]
