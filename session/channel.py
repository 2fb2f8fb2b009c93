"""关键点帧通道：检测线程投递帧，会话控制器逐帧消费"""

import logging
import queue
from typing import List, Optional

from models.data_models import BlinkResult, LandmarkFrame

logger = logging.getLogger(__name__)


class FrameChannel:
    """单消费者帧队列，保证同一时刻只有一帧在处理"""

    def __init__(self, maxsize: int = 0):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)

    def put(self, frame: Optional[LandmarkFrame]) -> None:
        """投递一帧；队列已满时丢弃最旧的一帧"""
        try:
            self._queue.put_nowait(frame)
        except queue.Full:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            self._queue.put_nowait(frame)
            logger.debug("帧队列已满，丢弃最旧帧")

    def drain(self, monitor) -> List[BlinkResult]:
        """依次处理队列中所有帧，返回非空的处理结果"""
        results = []
        while True:
            try:
                frame = self._queue.get_nowait()
            except queue.Empty:
                break
            result = monitor.process_frame(frame)
            if result is not None:
                results.append(result)
        return results

    def clear(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def __len__(self) -> int:
        return self._queue.qsize()
