"""
services/timer.py

시험 카운트다운 타이머.
렌더링 프레임워크와 무관한 상태 객체 — start / tick / stop + 만료 콜백.
만료는 알림일 뿐 자동 제출하지 않는다.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def format_time(seconds: int) -> str:
    """남은 시간 표시 (분:초, 초는 두 자리). 예: 125 → "2:05" """
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


class SessionTimer:
    """
    Attributes:
        remaining_seconds: 남은 시간 (초). 단조 감소, 0 미만으로 내려가지 않음.
        running:           tick 이 반영되는 상태인지 여부.
        expired:           0 도달 여부. 만료 콜백은 한 번만 호출된다.
    """

    def __init__(self, on_expire: Optional[Callable[[], None]] = None):
        self.on_expire = on_expire
        self.remaining_seconds = 0
        self.running = False
        self.expired = False

    def start(self, total_seconds: int) -> None:
        self.remaining_seconds = max(0, int(total_seconds))
        self.expired = False
        self.running = True
        if self.remaining_seconds == 0:
            self._expire()

    def tick(self) -> None:
        """1초 경과. 정지/만료 상태에서는 아무 일도 하지 않는다."""
        if not self.running:
            return
        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        if self.remaining_seconds == 0:
            self._expire()

    def stop(self) -> None:
        """tick 중단. 남은 시간은 그대로 둔다."""
        self.running = False

    def display(self) -> str:
        return format_time(self.remaining_seconds)

    def _expire(self) -> None:
        self.running = False
        if self.expired:
            return
        self.expired = True
        logger.info("시험 시간이 종료되었습니다.")
        if self.on_expire is not None:
            self.on_expire()

    async def run(self, interval: float = 1.0) -> None:
        """
        이벤트 루프에서 interval 마다 tick 을 발생시킨다.
        stop() 또는 만료 시 종료. 세션이 끝나면 호출 측에서 태스크를 취소해야 한다.
        """
        while self.running:
            await asyncio.sleep(interval)
            self.tick()
