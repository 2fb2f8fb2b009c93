"""会话存储单元测试"""

import json

import pytest

from models.data_models import EyeStrainLevel, SessionRecord, UserSettings
from storage.session_store import (
    MAX_SESSIONS,
    SESSIONS_KEY,
    SETTINGS_KEY,
    InMemoryStore,
    SessionStore,
)


def _record(i=0, rate=15.0):
    return SessionRecord(
        date=f"2026-01-{(i % 28) + 1:02d}T10:00:00",
        duration=60 + i,
        total_blinks=i,
        average_blink_rate=rate,
        eye_strain_level=EyeStrainLevel.LOW,
        breaks_taken=0,
    )


class TestInMemoryStore:
    def test_default_settings(self):
        assert InMemoryStore().get_settings() == UserSettings()

    def test_add_and_get_sessions(self):
        store = InMemoryStore()
        store.add_session(_record(1))
        store.add_session(_record(2))
        assert [s.total_blinks for s in store.get_sessions()] == [1, 2]

    def test_keeps_last_30_sessions(self):
        store = InMemoryStore()
        for i in range(MAX_SESSIONS + 5):
            store.add_session(_record(i))
        sessions = store.get_sessions()
        assert len(sessions) == MAX_SESSIONS
        assert sessions[0].total_blinks == 5
        assert sessions[-1].total_blinks == MAX_SESSIONS + 4

    def test_completed_exercises(self):
        store = InMemoryStore()
        assert store.get_completed_exercises() == set()
        store.save_completed_exercises({"palming", "blinking"})
        assert store.get_completed_exercises() == {"palming", "blinking"}


class TestSessionStore:
    def test_missing_file_uses_defaults(self, tmp_path):
        store = SessionStore(str(tmp_path / "missing.json"))
        assert store.get_sessions() == []
        assert store.get_settings() == UserSettings()

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "sub" / "store.json")
        store = SessionStore(path)
        store.add_session(_record(3, rate=12.5))
        store.save_settings(UserSettings(break_interval=600, sound_enabled=False))

        reloaded = SessionStore(path)
        assert reloaded.get_sessions() == [_record(3, rate=12.5)]
        assert reloaded.get_settings().break_interval == 600
        assert reloaded.get_settings().sound_enabled is False

    def test_file_layout(self, tmp_path):
        path = tmp_path / "store.json"
        store = SessionStore(str(path))
        store.add_session(_record(1))
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data[SESSIONS_KEY][0]["eye_strain_level"] == "low"
        assert data[SESSIONS_KEY][0]["average_blink_rate"] == 15.0

    def test_corrupt_file_uses_defaults(self, tmp_path, caplog):
        path = tmp_path / "bad.json"
        path.write_text("not valid json {{{", encoding="utf-8")
        store = SessionStore(str(path))
        assert store.get_sessions() == []
        assert store.get_settings() == UserSettings()
        assert "存储文件读取失败" in caplog.text

    def test_non_dict_file_ignored(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        assert SessionStore(str(path)).get_sessions() == []

    def test_partial_settings_fill_defaults(self, tmp_path):
        path = tmp_path / "partial.json"
        path.write_text(json.dumps({SETTINGS_KEY: {"break_interval": 900, "blink_threshold": None, "extra": 1}}), encoding="utf-8")
        settings = SessionStore(str(path)).get_settings()
        assert settings.break_interval == 900
        assert settings.blink_threshold == 0.25
        assert settings.nudge_frequency == "medium"

    def test_broken_session_entry_skipped(self, tmp_path):
        path = tmp_path / "broken.json"
        good = _record(1).to_dict()
        path.write_text(json.dumps({SESSIONS_KEY: [{"date": "x"}, good]}), encoding="utf-8")
        sessions = SessionStore(str(path)).get_sessions()
        assert sessions == [_record(1)]

    def test_write_failure_is_logged(self, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = SessionStore(str(blocker / "store.json"))
        store.add_session(_record(1))
        assert "存储文件写入失败" in caplog.text
        # 内存中的数据仍然可用
        assert len(store.get_sessions()) == 1


@pytest.mark.parametrize("data", [
    {"blink_threshold": 0.2, "break_interval": 600},
    {},
])
def test_user_settings_round_trip(data):
    settings = UserSettings.from_dict(data)
    assert UserSettings.from_dict(settings.to_dict()) == settings


class TestUserSettingsParsing:
    def test_form_strings_coerced(self):
        settings = UserSettings.from_dict({
            "blink_threshold": "0.2",
            "break_interval": "600",
            "notifications_enabled": "false",
            "sound_enabled": "1",
            "nudge_frequency": "high",
        })
        assert settings.blink_threshold == 0.2
        assert settings.break_interval == 600
        assert settings.notifications_enabled is False
        assert settings.sound_enabled is True
        assert settings.nudge_frequency == "high"

    def test_whole_float_interval_accepted(self):
        assert UserSettings.from_dict({"break_interval": 900.0}).break_interval == 900

    @pytest.mark.parametrize("data", [
        {"break_interval": "soon"},
        {"break_interval": 12.5},
        {"break_interval": True},
        {"blink_threshold": "abc"},
        {"blink_threshold": 0},
        {"blink_threshold": float("nan")},
        {"notifications_enabled": "maybe"},
        {"sound_enabled": 2},
        {"nudge_frequency": "hourly"},
        {"nudge_frequency": ["low"]},
    ])
    def test_invalid_values_rejected(self, data):
        with pytest.raises(ValueError):
            UserSettings.from_dict(data)

    def test_invalid_stored_settings_fall_back(self, tmp_path, caplog):
        path = tmp_path / "bad_settings.json"
        path.write_text(json.dumps({SETTINGS_KEY: {"break_interval": "soon"}}), encoding="utf-8")
        assert SessionStore(str(path)).get_settings() == UserSettings()
        assert "设置数据无效" in caplog.text
