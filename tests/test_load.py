import pytest

from journey import JourneyConfigError, JourneyRunner, TraceContext
from journey.load import PROFILES, LoadProfile, get_profile, run_load

from .conftest import Recorder, make_config


def test_builtin_profiles():
    assert PROFILES["light"].vusers == 20
    assert PROFILES["medium"].vusers == 60
    assert PROFILES["extreme"].vusers == 600
    assert get_profile("peak").interval == 2


def test_unknown_profile():
    with pytest.raises(JourneyConfigError, match="unknown load profile"):
        get_profile("tsunami")


def test_profile_has_at_least_one_user():
    assert LoadProfile(name="short", interval=10, duration=3).vusers == 1


def test_run_load_starts_independent_users():
    recorder = Recorder()
    sleeps = []

    def factory():
        return JourneyRunner(recorder.client(), error_rate=0, sleep=lambda s: None)

    config = make_config(0, 0)
    profile = LoadProfile(name="tiny", interval=0.5, duration=2)
    results = run_load(config, profile, runner_factory=factory, sleep=sleeps.append)

    assert sorted(results) == [1, 2, 3, 4]
    assert all(len(r) == 2 for r in results.values())
    assert sleeps == [0.5, 0.5, 0.5]

    traces = [TraceContext.parse(r.headers["X-Correlation"]) for r in recorder.to("/api/process")]
    assert {t.vuser_id for t in traces} == {1, 2, 3, 4}
    sessions = {t.vuser_id: t.session_id for t in traces}
    assert len(set(sessions.values())) == 4
    assert len(recorder.to("/api/journey-complete")) == 4


def test_run_load_caps_users_by_name():
    recorder = Recorder()
    results = run_load(make_config(0), "stress", max_vusers=3, first_vuser=10,
                       runner_factory=lambda: JourneyRunner(recorder.client(), error_rate=0),
                       sleep=lambda s: None)
    assert sorted(results) == [10, 11, 12]
