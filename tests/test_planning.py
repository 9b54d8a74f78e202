"""Plan construction and conflict detection tests."""

from __future__ import annotations

from pathlib import Path

from factories import movie_file
from reelname.config import ConflictStrategy
from reelname.formatting import TemplateFormatter
from reelname.media import MediaFile, MediaKind
from reelname.metadata import FileFailure
from reelname.planning import (
    Action,
    Change,
    ConflictDetector,
    ConflictType,
    FileRef,
    Plan,
    PlanBuilder,
)


def _rename(source: Path, target: Path, action: Action = Action.RENAME) -> Change:
    return Change(
        action=action,
        before=FileRef(path=source, filename=source.name),
        after=FileRef(path=target, filename=target.name),
    )


def _builder(on_disk: set[Path] | None = None, **kwargs: object) -> PlanBuilder:
    disk = on_disk if on_disk is not None else set()
    return PlanBuilder(TemplateFormatter(), exists=disk.__contains__, **kwargs)  # type: ignore[arg-type]


def test_build_classifies_noop_and_rename(tmp_path: Path) -> None:
    correct = movie_file(tmp_path / "Heat (1995).mkv", "Heat", 1995)
    messy = movie_file(tmp_path / "alien.1979.mkv", "Alien", 1979)

    plan = _builder().build([messy, correct])

    assert [change.before.filename for change in plan.changes] == ["Heat (1995).mkv", "alien.1979.mkv"]
    noop, rename = plan.changes
    assert noop.action == Action.NOOP
    assert rename.action == Action.RENAME
    assert rename.after.path == tmp_path / "Alien (1979).mkv"
    assert plan.conflicts == []


def test_format_errors_become_plan_errors(tmp_path: Path) -> None:
    missing = MediaFile.from_path(tmp_path / "mystery.mkv", kind=MediaKind.MOVIE)
    good = movie_file(tmp_path / "alien.mkv", "Alien", 1979)

    plan = _builder().build([missing, good])

    assert [change.before.filename for change in plan.changes] == ["alien.mkv"]
    assert len(plan.errors) == 1
    assert plan.errors[0].file == str(missing.path)
    assert "formatting" in plan.errors[0].message


def test_metadata_failures_become_plan_errors(tmp_path: Path) -> None:
    failed = MediaFile.from_path(tmp_path / "unknown.mkv", kind=MediaKind.MOVIE)

    plan = _builder().build([failed], failures=[FileFailure(path=failed.path, message="no match")])

    assert plan.changes == []
    assert plan.errors[0].message == "metadata lookup failed: no match"


def test_build_is_idempotent(tmp_path: Path) -> None:
    files = [
        movie_file(tmp_path / "b.1080p.mkv", "Movie", 2001),
        movie_file(tmp_path / "a.720p.mkv", "Movie", 2001),
        movie_file(tmp_path / "Other (1999).mkv", "Other", 1999),
    ]
    on_disk = {tmp_path / "Movie (2001) (1).mkv"}
    builder = _builder(on_disk, strategy=ConflictStrategy.APPEND_NUMBER)

    first = builder.build(files)
    second = builder.build(list(reversed(files)))

    def _shape(plan: Plan) -> list[tuple[str, Action, Path]]:
        return [(c.before.filename, c.action, c.after.path) for c in plan.changes]

    assert _shape(first) == _shape(second)


def test_duplicate_targets_resolve_with_append_number(tmp_path: Path) -> None:
    files = [
        movie_file(tmp_path / "Movie.Name.2020.720p.mkv", "Movie Name", 2020),
        movie_file(tmp_path / "Movie.Name.2020.1080p.mkv", "Movie Name", 2020),
    ]

    plan = _builder(strategy=ConflictStrategy.APPEND_NUMBER).build(files)

    assert len(plan.conflicts) == 1
    conflict = plan.conflicts[0]
    assert conflict.conflict_type == ConflictType.MULTIPLE_SOURCE
    assert conflict.change_ids == [change.id for change in plan.changes]
    assert conflict.resolved
    assert [change.after.filename for change in plan.changes] == [
        "Movie Name (2020).mkv",
        "Movie Name (2020) (1).mkv",
    ]
    assert all(change.is_eligible for change in plan.changes)


def test_without_strategy_conflicts_stay_attached(tmp_path: Path) -> None:
    files = [
        movie_file(tmp_path / "a.mkv", "Movie", 2020),
        movie_file(tmp_path / "b.mkv", "Movie", 2020),
    ]

    plan = _builder().build(files)

    assert plan.has_unresolved_conflicts()
    assert all(change.is_conflicting for change in plan.changes)
    assert plan.eligible_changes() == []
    summary = plan.summary()
    assert summary.conflicted_changes == 2
    assert summary.resolved_conflicts == 0


def test_per_file_strategy_uses_first_file_strategy(tmp_path: Path) -> None:
    first = movie_file(tmp_path / "a.mkv", "Movie", 2020)
    first.conflict_strategy = ConflictStrategy.SKIP
    second = movie_file(tmp_path / "b.mkv", "Movie", 2020)

    plan = _builder(strategy=ConflictStrategy.APPEND_NUMBER, per_file_strategy=True).build(
        [first, second]
    )

    assert [change.action for change in plan.changes] == [Action.SKIP, Action.SKIP]
    assert plan.conflicts[0].resolution is not None
    assert plan.conflicts[0].resolution.strategy == "skip"


def test_detector_emits_multiple_source_without_disk_check(tmp_path: Path) -> None:
    target = tmp_path / "Movie (2020).mkv"
    changes = [
        _rename(tmp_path / "a.mkv", target),
        _rename(tmp_path / "b.mkv", target),
        _rename(tmp_path / "c.mkv", tmp_path / "Other.mkv"),
    ]
    checked: list[Path] = []

    def _exists(path: Path) -> bool:
        checked.append(path)
        return True

    conflicts = ConflictDetector(_exists).detect(changes)

    assert [conflict.conflict_type for conflict in conflicts] == [
        ConflictType.MULTIPLE_SOURCE,
        ConflictType.TARGET_EXISTS,
    ]
    assert conflicts[0].change_ids == [changes[0].id, changes[1].id]
    assert conflicts[1].change_ids == [changes[2].id]
    assert checked == [tmp_path / "Other.mkv"]


def test_detector_ignores_noop_and_skip_changes(tmp_path: Path) -> None:
    target = tmp_path / "Movie (2020).mkv"
    changes = [
        _rename(target, target, action=Action.NOOP),
        _rename(tmp_path / "b.mkv", target, action=Action.SKIP),
        _rename(tmp_path / "c.mkv", target),
    ]

    conflicts = ConflictDetector(lambda path: False).detect(changes)

    assert conflicts == []


def test_attach_populates_reverse_index(tmp_path: Path) -> None:
    target = tmp_path / "Movie (2020).mkv"
    plan = Plan(
        changes=[
            _rename(tmp_path / "a.mkv", target),
            _rename(tmp_path / "b.mkv", target),
            _rename(tmp_path / "c.mkv", tmp_path / "Free.mkv"),
        ]
    )
    detector = ConflictDetector(lambda path: False)
    plan.conflicts = detector.detect(plan.changes)

    detector.attach(plan)

    conflict_id = plan.conflicts[0].id
    assert plan.changes[0].conflict_ids == [conflict_id]
    assert plan.changes[1].conflict_ids == [conflict_id]
    assert plan.changes[2].conflict_ids == []
