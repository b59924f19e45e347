# src/utils/transition_scheduler.py
import logging
import threading
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)

TransitionHandler = Callable[[int, str], None]


class TransitionScheduler:
    """
    지연된 상태 전이(deploying -> running, pending -> running)를 VPS별로 예약합니다.

    VPS 하나당 예약은 최대 1개이며, 새 예약은 기존 예약을 대체합니다.
    VPS가 삭제되거나 다른 상태로 전이되면 예약을 취소하여, 오래된 타이머가
    삭제된 레코드를 되살리거나 멈춘 VPS를 다시 running으로 바꾸지 않도록 합니다.
    """
    def __init__(self, handler: TransitionHandler):
        """
        Args:
            handler: 타이머 만료 시 (vps_id, expected_status)로 호출되는 함수.
                     별도 스레드에서 실행되므로 자체 DB 세션을 열어야 합니다.
        """
        self.handler = handler
        self._lock = threading.Lock()
        self._timers: Dict[int, Tuple[threading.Timer, str]] = {}

    def schedule(self, vps_id: int, delay: float, expected_status: str):
        with self._lock:
            self._cancel_locked(vps_id)
            timer = threading.Timer(delay, self._fire, args=(vps_id, expected_status))
            timer.daemon = True
            self._timers[vps_id] = (timer, expected_status)
            timer.start()
        logger.debug("Scheduled transition for VPS %s from '%s' in %.1fs", vps_id, expected_status, delay)

    def cancel(self, vps_id: int) -> bool:
        with self._lock:
            return self._cancel_locked(vps_id)

    def is_pending(self, vps_id: int) -> bool:
        with self._lock:
            return vps_id in self._timers

    def shutdown(self):
        with self._lock:
            for vps_id in list(self._timers):
                self._cancel_locked(vps_id)

    def _cancel_locked(self, vps_id: int) -> bool:
        entry = self._timers.pop(vps_id, None)
        if entry is None:
            return False
        entry[0].cancel()
        logger.debug("Cancelled pending transition for VPS %s", vps_id)
        return True

    def _fire(self, vps_id: int, expected_status: str):
        with self._lock:
            entry = self._timers.get(vps_id)
            # 취소되었거나 새 예약으로 대체된 타이머는 무시
            if entry is None or entry[0] is not threading.current_thread():
                return
            del self._timers[vps_id]
        try:
            self.handler(vps_id, expected_status)
        except Exception:
            logger.exception("Scheduled transition for VPS %s failed", vps_id)
