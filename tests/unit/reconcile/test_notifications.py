import threading

from skillforge.core.reconcile.notifications import NotificationSink, ResolutionOption
from skillforge.core.reconcile.outcomes import (
    MUTATING_KINDS,
    Outcome,
    OutcomeKind,
    Severity,
    SkipReason,
)


def test_messages() -> None:
    assert Outcome(OutcomeKind.RESET, "sales-pipeline", from_stage=5, to_stage=4).message() == (
        "'sales-pipeline' reset from stage 5 to stage 4"
    )
    assert Outcome(OutcomeKind.RESET, "x", from_stage=4, to_stage=0, no_artifacts=True).message() == (
        "'x' reset from stage 4 to stage 0 — no artifacts found"
    )
    assert Outcome(OutcomeKind.ADVANCED, "x", from_stage=0, to_stage=4).message() == (
        "'x' advanced from stage 0 to stage 4"
    )
    assert Outcome(OutcomeKind.RECREATED_ROW, "x", to_stage=4).message() == (
        "'x' workflow record recreated at stage 4"
    )
    assert Outcome(OutcomeKind.RECREATED_DIR, "x", from_stage=0, to_stage=0).message() == (
        "'x' workspace directory recreated"
    )
    assert Outcome(OutcomeKind.RECREATED_DIR, "x", from_stage=4, to_stage=0).message() == (
        "'x' workspace directory recreated; reset from stage 4 to stage 0"
    )
    assert Outcome(OutcomeKind.REMOVED, "x").message() == "'x' removed — terminal artifact not found on disk"
    assert Outcome(OutcomeKind.DISCOVERED_INCOMPLETE, "x", pass_no=2).message() == (
        "'x' removed — incomplete artifacts on disk"
    )
    skipped = Outcome(OutcomeKind.SKIPPED, "x", reason=SkipReason.PROBE_ERROR, error="denied")
    assert skipped.message() == "'x' skipped — could not read artifacts: denied"


def test_every_kind_has_a_message() -> None:
    for kind in OutcomeKind:
        assert Outcome(kind, "x").message()


def test_record_routes_outcomes() -> None:
    sink = NotificationSink()

    sink.record(Outcome(OutcomeKind.CONFIRMED, "quiet", to_stage=5))
    sink.record(Outcome(OutcomeKind.SKIPPED, "busy", reason=SkipReason.ACTIVE_SESSION))
    sink.record(Outcome(OutcomeKind.RESET, "loud", from_stage=5, to_stage=4))
    sink.record(Outcome(OutcomeKind.DISCOVERED_COMPLETE, "found", pass_no=2, to_stage=5))

    assert [a.skill_name for a in sink.audit_log()] == ["quiet", "busy", "loud", "found"]
    assert [n.skill_name for n in sink.notifications()] == ["loud"]
    assert sink.notifications()[0].severity == Severity.INFO

    discoveries = sink.discoveries()
    assert len(discoveries) == 1
    assert discoveries[0].name == "found"
    assert discoveries[0].options == [ResolutionOption.ADD, ResolutionOption.REMOVE]


def test_only_mutations_and_probe_errors_notify() -> None:
    for kind in OutcomeKind:
        outcome = Outcome(kind, "x")
        assert outcome.notifies == (kind in MUTATING_KINDS)
    assert Outcome(OutcomeKind.SKIPPED, "x", reason=SkipReason.PROBE_ERROR).notifies is True


def test_removals_are_warnings() -> None:
    assert Outcome(OutcomeKind.REMOVED, "x").severity == Severity.WARNING
    assert Outcome(OutcomeKind.DISCOVERED_INCOMPLETE, "x").severity == Severity.WARNING
    assert Outcome(OutcomeKind.ADVANCED, "x").severity == Severity.INFO


def test_payload_shape() -> None:
    sink = NotificationSink()
    sink.record(Outcome(OutcomeKind.REMOVED, "gone", origin="imported"))
    sink.record(Outcome(OutcomeKind.DISCOVERED_COMPLETE, "found", pass_no=2, to_stage=5))

    payload = sink.to_payload()

    notification = payload["notifications"][0]
    assert set(notification) >= {"id", "severity", "message", "skill_name"}
    assert notification["severity"] == "warning"
    assert payload["discoveries"] == [{"name": "found", "detected_stage": 5, "options": ["add", "remove"]}]


def test_concurrent_records_are_not_lost() -> None:
    sink = NotificationSink()

    def worker(n: int) -> None:
        for i in range(50):
            sink.record(Outcome(OutcomeKind.ADVANCED, f"s-{n}-{i}", from_stage=0, to_stage=4))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(sink.audit_log()) == 400
    assert len(sink.notifications()) == 400
    assert len({n.id for n in sink.notifications()}) == 400
