from santadraw.extensions import db
from santadraw.models import Event, Participant


def test_run_and_export(app, make_event):
    event = make_event()
    runner = app.test_cli_runner()

    result = runner.invoke(args=["draw", "run", str(event.id)])
    assert result.exit_code == 0, result.output
    assert "3 participants assigned" in result.output

    result = runner.invoke(args=["draw", "export", str(event.id)])
    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[0] == "name,assigned_to_name"
    assert len(result.output.splitlines()) == 4


def test_run_reports_engine_errors(app, make_event):
    event = make_event(names=("Solo",))
    result = app.test_cli_runner().invoke(args=["draw", "run", str(event.id)])
    assert result.exit_code != 0
    assert "InsufficientParticipants" in result.output


def test_export_unknown_event(app):
    result = app.test_cli_runner().invoke(args=["draw", "export", "404"])
    assert result.exit_code != 0
    assert "UnknownEvent" in result.output


def test_reset_needs_confirmation(app, make_event):
    event = make_event()
    runner = app.test_cli_runner()
    runner.invoke(args=["draw", "run", str(event.id)])

    result = runner.invoke(args=["draw", "reset", str(event.id)], input="n\n")
    assert result.exit_code != 0
    db.session.expire_all()
    assert db.session.get(Event, event.id).is_drawn

    result = runner.invoke(args=["draw", "reset", str(event.id), "--yes"])
    assert result.exit_code == 0, result.output
    db.session.expire_all()
    assert not db.session.get(Event, event.id).is_drawn
    assert Participant.query.filter_by(event_id=event.id, is_drawn=True).count() == 0


def test_reset_force_recovers_stuck_event(app, make_event):
    event = make_event()
    runner = app.test_cli_runner()
    runner.invoke(args=["draw", "run", str(event.id)])
    stuck = db.session.get(Event, event.id)
    stuck.draw_status = "drawing"
    db.session.commit()

    result = runner.invoke(args=["draw", "export", str(event.id)])
    assert result.exit_code != 0
    assert "DrawNotFinished" in result.output

    result = runner.invoke(args=["draw", "reset", str(event.id), "--yes"])
    assert result.exit_code != 0
    assert "ConcurrentDrawConflict" in result.output

    result = runner.invoke(args=["draw", "reset", str(event.id), "--force", "--yes"])
    assert result.exit_code == 0, result.output
    db.session.expire_all()
    assert db.session.get(Event, event.id).draw_status == "open"
    assert Participant.query.filter_by(event_id=event.id, is_drawn=True).count() == 0
