"""Unit tests for attack replay"""
import pytest
from attacks.models import Attack, AttackTarget, TimelineEvent
from attacks.replay import REPLAY_TICK_MS, TIMER_NAME, ReplaySession
from engine.errors import InvalidRequestError
from engine.scheduler import Scheduler, simulated_environment
from monitoring.event_log import EventLog


def make_attack(events=4):
    stages = ["initiation", "execution", "detection", "mitigation"][:events]
    return Attack(
        id="attack_1",
        type="ddos",
        start_time=0.0,
        status="mitigated",
        targets=[AttackTarget(id="device_001", name="Security Camera Alpha")],
        delay=10000,
        timeline=[TimelineEvent(time=i * 1000.0, stage=stage, description=stage)
                  for i, stage in enumerate(stages)]
    )


def make_session():
    scheduler = Scheduler(simulated_environment(start_ms=0))
    return ReplaySession(scheduler, EventLog(scheduler)), scheduler


def test_play_advances_one_event_per_tick():
    """Test playback steps through the timeline and stops at the end"""
    session, scheduler = make_session()
    session.load(make_attack())
    session.play()

    scheduler.advance(REPLAY_TICK_MS)
    assert session.position == 1

    scheduler.advance(REPLAY_TICK_MS * 10)
    assert session.position == 3
    assert session.playing is False
    assert not scheduler.is_scheduled(TIMER_NAME)


def test_pause_keeps_position():
    """Test pausing cancels the tick timer"""
    session, scheduler = make_session()
    session.load(make_attack())
    session.play()
    scheduler.advance(REPLAY_TICK_MS)

    assert session.pause() is True
    scheduler.advance(REPLAY_TICK_MS * 5)

    assert session.position == 1
    assert session.pause() is False


def test_stop_rewinds():
    """Test stop returns to the first event"""
    session, scheduler = make_session()
    session.load(make_attack())
    session.play()
    scheduler.advance(REPLAY_TICK_MS * 2)

    assert session.stop() is True
    assert session.position == 0
    assert session.stop() is False


def test_step_and_seek_are_clamped():
    """Test manual navigation stays within the timeline"""
    session, _ = make_session()
    session.load(make_attack())

    assert session.step(10).stage == "mitigation"
    assert session.step(-10).stage == "initiation"
    assert session.seek(2).stage == "detection"
    assert session.seek(-5).stage == "initiation"


def test_play_at_end_restarts():
    """Test playing a finished replay starts over"""
    session, _ = make_session()
    session.load(make_attack())
    session.seek(3)

    session.play()

    assert session.position == 0


def test_commands_require_loaded_attack():
    """Test navigation without a loaded attack raises"""
    session, _ = make_session()

    with pytest.raises(InvalidRequestError):
        session.play()
    with pytest.raises(InvalidRequestError):
        session.step(1)
    assert session.view()["attack_id"] is None


def test_load_rejects_empty_timeline():
    """Test attacks without events cannot be replayed"""
    session, _ = make_session()

    with pytest.raises(InvalidRequestError):
        session.load(make_attack(events=0))


def test_view():
    """Test the replay view payload"""
    session, _ = make_session()
    session.load(make_attack())

    view = session.view()
    assert view["attack_id"] == "attack_1"
    assert view["length"] == 4
    assert view["event"]["stage"] == "initiation"
