"""
services/history_log.py

응시 이력 저장소.
  - KeyValueStore: JSON 파일 하나에 {키: 값} 레코드를 보관 (마지막 쓰기 우선)
  - HistoryLog:    "examHistory" 키 아래 최신순 이력 리스트 (추가 전용)

수명 주기: 시작 시 load(), 응시 완료 시 append() — 읽기 → 맨 앞에 추가 → 다시 쓰기.
단일 사용자 기준이므로 동시 쓰기 보호는 하지 않는다.
"""

import json
import logging
import os
import tempfile
import time
from datetime import datetime
from typing import Any, List, Optional

from pydantic import ValidationError

from examgen_cbt.models.session_state import HistoryEntry

logger = logging.getLogger(__name__)

HISTORY_KEY = "examHistory"


class KeyValueStore:
    def __init__(self, path: str):
        self.path = path

    def _load(self) -> dict:
        """파일 내용을 그대로 읽는다. 파일이 없으면 빈 dict, 손상되었으면 ValueError."""
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"최상위 값이 객체가 아닙니다: {type(data).__name__}")
        return data

    def _read_all(self) -> dict:
        try:
            return self._load()
        except (OSError, ValueError) as e:
            logger.warning(f"저장소 읽기 실패 ({self.path}): {e}")
            return {}

    def _backup_corrupt(self) -> None:
        """손상된 파일은 덮어쓰기 전에 .corrupt 로 옮겨 둔다."""
        backup = self.path + ".corrupt"
        os.replace(self.path, backup)
        logger.warning(f"손상된 저장소를 {backup} 로 보관")

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def put(self, key: str, value: Any) -> None:
        try:
            data = self._load()
        except ValueError:
            self._backup_corrupt()
            data = {}
        data[key] = value
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


_last_entry_id = 0


def make_entry_id() -> str:
    """밀리초 타임스탬프 기반 ID. 같은 밀리초 안에서도 증가값을 보장."""
    global _last_entry_id
    now_ms = time.time_ns() // 1_000_000
    _last_entry_id = max(now_ms, _last_entry_id + 1)
    return str(_last_entry_id)


def format_display_date(when: Optional[datetime] = None) -> str:
    """표시용 날짜 M/D/YYYY (앞자리 0 없음)."""
    when = when or datetime.now()
    return f"{when.month}/{when.day}/{when.year}"


class HistoryLog:
    def __init__(self, path_or_store):
        if isinstance(path_or_store, KeyValueStore):
            self.store = path_or_store
        else:
            self.store = KeyValueStore(path_or_store)
        self._entries: List[HistoryEntry] = []

    def load(self) -> List[HistoryEntry]:
        self._entries = self._read()
        logger.info(f"응시 이력 {len(self._entries)}건 로드")
        return self.all()

    def append(self, entry: HistoryEntry) -> None:
        # 저장된 원본 목록에 그대로 추가 (검증 실패 항목도 삭제하지 않음)
        raw = self.store.get(HISTORY_KEY, [])
        if not isinstance(raw, list):
            logger.warning("응시 이력 형식 오류 — 새 목록으로 시작")
            raw = []
        raw.insert(0, entry.to_record())
        self.store.put(HISTORY_KEY, raw)
        self._entries = self._validate(raw)

    def all(self) -> List[HistoryEntry]:
        return list(self._entries)

    def _read(self) -> List[HistoryEntry]:
        raw = self.store.get(HISTORY_KEY, [])
        if not isinstance(raw, list):
            logger.warning("응시 이력 형식 오류 — 빈 이력으로 처리")
            return []
        return self._validate(raw)

    def _validate(self, raw: list) -> List[HistoryEntry]:
        entries: List[HistoryEntry] = []
        for idx, item in enumerate(raw):
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"이력 item[{idx}] 무시 — {e}")
        return entries
