"""会话记录与用户设置的持久化模块（JSON 文件键值存储）"""

import json
import logging
import os
from typing import Dict, Iterable, List, Set

from models.data_models import SessionRecord, UserSettings

logger = logging.getLogger(__name__)

SESSIONS_KEY = "eyecare_sessions"
SETTINGS_KEY = "eyecare_settings"
EXERCISES_KEY = "eyecare_exercises"

MAX_SESSIONS = 30


class InMemoryStore:
    """键值存储基类，数据保存在内存中；SessionStore 在此基础上落盘"""

    def __init__(self):
        self._data: Dict[str, object] = {}

    def _get(self, key: str, default=None):
        return self._data.get(key, default)

    def _set(self, key: str, value) -> None:
        self._data[key] = value

    def add_session(self, record: SessionRecord) -> None:
        """追加一条会话记录，只保留最近 30 条"""
        sessions = [s.to_dict() for s in self.get_sessions()]
        sessions.append(record.to_dict())
        if len(sessions) > MAX_SESSIONS:
            sessions = sessions[-MAX_SESSIONS:]
        self._set(SESSIONS_KEY, sessions)
        logger.info(
            "会话已保存: 时长 %ds, 眨眼 %d 次, 平均 %.1f 次/分",
            record.duration, record.total_blinks, record.average_blink_rate,
        )

    def get_sessions(self) -> List[SessionRecord]:
        records = []
        for item in self._get(SESSIONS_KEY, []) or []:
            try:
                records.append(SessionRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("跳过损坏的会话记录: %s", e)
        return records

    def get_settings(self) -> UserSettings:
        data = self._get(SETTINGS_KEY)
        if not isinstance(data, dict):
            return UserSettings()
        try:
            return UserSettings.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning("设置数据无效，使用默认设置: %s", e)
            return UserSettings()

    def save_settings(self, settings: UserSettings) -> None:
        self._set(SETTINGS_KEY, settings.to_dict())

    def get_completed_exercises(self) -> Set[str]:
        return set(self._get(EXERCISES_KEY, []) or [])

    def save_completed_exercises(self, names: Iterable[str]) -> None:
        self._set(EXERCISES_KEY, sorted(set(names)))


class SessionStore(InMemoryStore):
    """以单个 JSON 文件保存全部键值；读写失败时记录日志并使用默认值"""

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._data = self._load()

    def _load(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.error("存储文件读取失败 %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.error("存储文件格式错误 %s，已忽略", self.path)
            return {}
        return data

    def _set(self, key: str, value) -> None:
        super()._set(key, value)
        self._flush()

    def _flush(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            tmp_path = self.path + ".tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("存储文件写入失败 %s: %s", self.path, e)
