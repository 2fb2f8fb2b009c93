"""眨眼事件检测与眨眼频率估计模块"""

import logging
import math
import time
from collections import deque
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

BUFFER_SIZE = 5
CONSEC_FRAMES = 3
DEBOUNCE_SECONDS = 0.2
RATE_WINDOW_SECONDS = 60.0


class BlinkDetector:
    """基于 EAR 序列的眨眼检测器，维护眨眼计数和最近 60 秒的眨眼时间戳"""

    def __init__(
        self,
        blink_threshold: float = 0.25,
        clock: Callable[[], float] = time.time,
    ):
        """初始化阈值、时钟和内部状态"""
        self.blink_threshold = blink_threshold
        self._clock = clock
        self._ear_buffer: deque = deque(maxlen=BUFFER_SIZE)
        self._is_blinking = False
        self._last_blink_time: Optional[float] = None
        self._blink_count = 0
        self._blink_times: deque = deque()

    @property
    def blink_count(self) -> int:
        return self._blink_count

    @property
    def is_blinking(self) -> bool:
        return self._is_blinking

    @property
    def history(self) -> Tuple[float, ...]:
        return tuple(self._blink_times)

    @property
    def current_ear(self) -> float:
        return self._ear_buffer[-1] if self._ear_buffer else 0.0

    def observe(self, left_ear: float, right_ear: float) -> bool:
        """
        处理一帧双眼 EAR 值。

        连续 3 帧低于阈值视为闭眼；闭眼 -> 睁眼的边沿且距上次眨眼超过
        200ms 时确认一次眨眼。

        Args:
            left_ear: 左眼 EAR
            right_ear: 右眼 EAR

        Returns:
            本帧是否确认了一次眨眼
        """
        avg_ear = (left_ear + right_ear) / 2.0

        # 无效帧直接丢弃，不改变任何状态
        if math.isnan(avg_ear) or avg_ear <= 0:
            return False

        self._ear_buffer.append(avg_ear)

        if len(self._ear_buffer) < CONSEC_FRAMES:
            return False

        recent = list(self._ear_buffer)[-CONSEC_FRAMES:]
        is_closed = all(ear < self.blink_threshold for ear in recent)

        if is_closed and not self._is_blinking:
            self._is_blinking = True
            return False

        if not is_closed and self._is_blinking:
            self._is_blinking = False
            now = self._clock()
            if self._last_blink_time is not None and now - self._last_blink_time <= DEBOUNCE_SECONDS:
                logger.debug("眨眼抖动已忽略 (间隔 %.3fs)", now - self._last_blink_time)
                return False

            self._blink_count += 1
            self._last_blink_time = now
            self._blink_times.append(now)
            self._prune(now)
            return True

        return False

    def blink_rate(self) -> int:
        """最近 60 秒 (now-60, now] 内确认的眨眼次数，每次调用重新计算。"""
        now = self._clock()
        cutoff = now - RATE_WINDOW_SECONDS
        return sum(1 for t in self._blink_times if cutoff < t <= now)

    def _prune(self, now: float) -> None:
        cutoff = now - RATE_WINDOW_SECONDS
        while self._blink_times and self._blink_times[0] <= cutoff:
            self._blink_times.popleft()

    def reset(self) -> None:
        """清空全部状态，新会话开始时调用"""
        self._ear_buffer.clear()
        self._is_blinking = False
        self._last_blink_time = None
        self._blink_count = 0
        self._blink_times.clear()
