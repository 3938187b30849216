import gc
import sys
import resource
import threading
from datetime import datetime, timezone
from typing import Any, Dict


class RequestStats:
    """서버 시작 이후 누적 요청 통계. 요청마다 잠금 후 갱신"""

    def __init__(self):
        self._lock = threading.Lock()
        self.start = datetime.now(timezone.utc)
        self.request_count = 0
        self.request_bytes = 0
        self.routes: Dict[str, Dict[str, int]] = {}

    def increment(self, path: str, content_length: int = 0) -> None:
        content_length = max(content_length or 0, 0)
        with self._lock:
            self.request_count += 1
            self.request_bytes += content_length
            route = self.routes.setdefault(path, {"requestCount": 0, "requestBytes": 0})
            route["requestCount"] += 1
            route["requestBytes"] += content_length

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "startTime": self.start.isoformat(),
                "requestCount": self.request_count,
                "requestBytes": self.request_bytes,
                "routeStats": {path: dict(v) for path, v in self.routes.items()},
            }


def memory_stats() -> Dict[str, Any]:
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # Linux는 KB, macOS는 bytes 단위
    max_rss = usage.ru_maxrss if sys.platform == "darwin" else usage.ru_maxrss * 1024
    return {
        "maxRSS": max_rss,
        "gcCounts": list(gc.get_count()),
        "gcCollections": [s.get("collections", 0) for s in gc.get_stats()],
        "objects": len(gc.get_objects()),
    }
