"""
api/session.py — 멀티유저 인메모리 세션 (쿠키 기반)

각 사용자에게 UUID 세션 ID를 발급하고, 세션별로 독립된 상태를 유지.
세션마다 ExamSession(답안지 + 타이머) 을 하나씩 소유한다.
TTL(기본 1시간) 경과 시 자동 만료 — 만료/초기화 시 진행 중인 타이머도 정지.
"""

import asyncio
import threading
import time
import uuid
from typing import Any

from examgen_cbt.services.exam_session import ExamSession

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_timestamps: dict[str, float] = {}

SESSION_TTL = 3600  # 1시간


def _new_state() -> dict[str, Any]:
    return {
        "api_key": "",
        "content": "",
        "uploaded_file_name": "",
        "generating": False,
        "exam_session": ExamSession(),
        "timer_task": None,
    }


def _discard(state: dict[str, Any]) -> None:
    """버려지는 세션의 타이머 정지."""
    state["exam_session"].abandon()
    cancel_timer_task(state)


def cancel_timer_task(state: dict[str, Any]) -> None:
    task: asyncio.Task | None = state.get("timer_task")
    if task is not None and not task.done():
        task.cancel()
    state["timer_task"] = None


def create_session() -> str:
    """새 세션을 생성하고 세션 ID를 반환."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    return sid


def get_session(sid: str) -> dict[str, Any] | None:
    """세션 ID로 세션 데이터를 가져옴. 만료되었거나 없으면 None."""
    with _lock:
        if sid not in _sessions:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            _discard(_sessions.pop(sid))
            del _timestamps[sid]
            return None
        _timestamps[sid] = time.time()  # 접근 시 갱신
        return _sessions[sid]


def put(sid: str, key: str, value) -> None:
    """세션에 값 쓰기."""
    with _lock:
        if sid in _sessions:
            _sessions[sid][key] = value
            _timestamps[sid] = time.time()


def reset(sid: str) -> None:
    """세션 초기화 (API 키는 유지)."""
    with _lock:
        if sid in _sessions:
            saved_key = _sessions[sid].get("api_key", "")
            _discard(_sessions[sid])
            _sessions[sid] = _new_state()
            _sessions[sid]["api_key"] = saved_key
            _timestamps[sid] = time.time()


def cleanup_expired() -> int:
    """만료된 세션을 정리. 제거된 수 반환."""
    now = time.time()
    removed = 0
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        for sid in expired:
            _discard(_sessions.pop(sid))
            del _timestamps[sid]
            removed += 1
    return removed


def discard_all() -> None:
    """앱 종료 시 모든 세션 정리."""
    with _lock:
        for state in _sessions.values():
            _discard(state)
        _sessions.clear()
        _timestamps.clear()
