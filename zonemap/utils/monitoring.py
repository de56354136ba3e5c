"""Performance monitoring for filter recomputations and API requests"""

import time
import threading
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from zonemap.config.settings import settings

logger = structlog.get_logger(__name__)

class PerformanceMonitor:
    """Track operation timings and warn on slow ones"""

    def __init__(self, thresholds: Optional[Dict[str, float]] = None,
                 default_threshold: float = 2.0):
        self.thresholds = dict(thresholds or {})
        self.default_threshold = default_threshold
        self.recent = deque(maxlen=1000)  # Keep last 1000 operations
        self._totals: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()

    def threshold_for(self, operation: str) -> float:
        return self.thresholds.get(operation, self.default_threshold)

    def record(self, operation: str, elapsed: float, error: Optional[str] = None):
        """Record one operation's timing"""
        threshold = self.threshold_for(operation)
        slow = elapsed > threshold

        with self._lock:
            totals = self._totals.setdefault(
                operation, {"count": 0, "total_time": 0.0, "slow": 0, "errors": 0}
            )
            totals["count"] += 1
            totals["total_time"] += elapsed
            if slow:
                totals["slow"] += 1
            if error:
                totals["errors"] += 1

            self.recent.append({
                "timestamp": datetime.utcnow(),
                "operation": operation,
                "elapsed": elapsed,
                "error": error,
                "slow": slow,
            })

        if slow:
            logger.warning("Slow operation detected",
                           operation=operation,
                           elapsed=elapsed,
                           threshold=threshold)

    def get_metrics(self) -> Dict[str, Any]:
        """Aggregate metrics per operation"""
        with self._lock:
            if not self._totals:
                return {"status": "no operations yet"}

            operations = {}
            for name, totals in self._totals.items():
                count = totals["count"]
                operations[name] = {
                    "count": int(count),
                    "average_time": round(totals["total_time"] / count, 4),
                    "slow": int(totals["slow"]),
                    "slow_percentage": round(totals["slow"] / count * 100, 2),
                    "errors": int(totals["errors"]),
                    "threshold": self.threshold_for(name),
                }
            return {"operations": operations}

    def get_slow_operations(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent slow operations, newest first"""
        with self._lock:
            slow = [dict(r) for r in self.recent if r["slow"]]

        slow.reverse()
        for item in slow:
            item["timestamp"] = item["timestamp"].isoformat()
        return slow[:limit]

    def reset_metrics(self):
        """Reset all metrics"""
        with self._lock:
            self._totals.clear()
            self.recent.clear()

# Global monitor instance
monitor = PerformanceMonitor(
    thresholds={"viewport_filter": settings.SLOW_RECOMPUTE_SECONDS},
    default_threshold=settings.SLOW_REQUEST_SECONDS,
)

# Middleware for Flask
def add_performance_monitoring(app):
    """Add performance monitoring middleware to Flask app"""
    from flask import request, g

    @app.before_request
    def before_request():
        g.start_time = time.time()

    @app.after_request
    def after_request(response):
        if hasattr(g, "start_time"):
            response_time = time.time() - g.start_time
            monitor.record(
                f"{request.method} {request.endpoint or request.path}",
                response_time,
                error=None if response.status_code < 500 else str(response.status_code),
            )
            response.headers["X-Response-Time"] = f"{response_time:.3f}s"
        return response

def get_performance_report() -> Dict[str, Any]:
    """Get comprehensive performance report"""
    return {
        "metrics": monitor.get_metrics(),
        "slow_operations": monitor.get_slow_operations(),
        "timestamp": datetime.utcnow().isoformat(),
    }
