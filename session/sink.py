"""指标推送模块：后台线程异步发送快照和会话汇总，失败只记录日志"""

import logging
import threading
from collections import deque
from typing import Deque, Optional, Tuple

import requests

from models.data_models import FocusSnapshot, SessionSummary

logger = logging.getLogger(__name__)

SNAPSHOT = "snapshot"
SUMMARY = "summary"


class HttpMetricsSink:
    """把快照 POST 到 /api/focus/update，把汇总 POST 到 /api/focus/end。

    send_* 只入队，不等待发送结果；发送失败不重试。待发送队列有上限，
    满时丢弃最旧的快照，汇总从不丢弃。close() 会在超时内把队列发完。
    """

    def __init__(self, base_url: str, timeout: float = 3.0, max_pending: int = 20):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_pending = max(1, int(max_pending))
        self.dropped = 0
        self._pending: Deque[Tuple[str, str, dict]] = deque()
        self._cond = threading.Condition()
        self._stop = threading.Event()
        self._thr: Optional[threading.Thread] = None

    def start(self):
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = threading.Thread(target=self._run, daemon=True)
        self._thr.start()

    def send_snapshot(self, session_id: str, snapshot: FocusSnapshot) -> None:
        self._enqueue(SNAPSHOT, "/api/focus/update", {
            "sessionId": session_id,
            "metrics": snapshot.to_dict(),
        })

    def send_summary(self, summary: SessionSummary) -> None:
        self._enqueue(SUMMARY, "/api/focus/end", summary.to_dict())

    def _enqueue(self, kind: str, path: str, payload: dict) -> None:
        self.start()
        with self._cond:
            if len(self._pending) >= self.max_pending:
                self._drop_oldest_snapshot()
            self._pending.append((kind, self.base_url + path, payload))
            self._cond.notify()

    def _drop_oldest_snapshot(self) -> None:
        # 调用方持有 self._cond
        for item in self._pending:
            if item[0] == SNAPSHOT:
                self._pending.remove(item)
                self.dropped += 1
                logger.warning("推送队列已满，丢弃最旧的快照（累计丢弃 %d 条）", self.dropped)
                return

    def _run(self):
        while True:
            with self._cond:
                while not self._pending and not self._stop.is_set():
                    self._cond.wait()
                if not self._pending:
                    return
                _, url, payload = self._pending.popleft()
            self._post(url, payload)

    def _post(self, url: str, payload: dict) -> bool:
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("指标推送失败 %s: %s", url, e)
            return False
        return True

    def close(self, timeout: float = 5.0):
        """发完队列中剩余的数据后停止后台线程；超时未发完的部分丢弃并记录"""
        with self._cond:
            self._stop.set()
            self._cond.notify_all()
        if self._thr is None:
            return
        self._thr.join(timeout=timeout)
        if self._thr.is_alive():
            with self._cond:
                remaining = len(self._pending)
                self._pending.clear()
            if remaining:
                logger.warning("推送线程 %.1f 秒内未发送完毕，丢弃 %d 条待发送数据", timeout, remaining)
