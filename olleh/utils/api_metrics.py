# Copyright 2025 Olleh Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Per-endpoint request metrics reported by the health endpoint."""
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class APIEndpointMetrics:
    """Metrics for a specific API endpoint."""
    name: str
    path: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    avg_response_time: float = 0.0
    last_request_time: Optional[str] = None
    status: str = "unknown"  # healthy, warning, error, unknown

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return (self.successful_requests / self.total_requests) * 100.0

    @property
    def error_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return (self.failed_requests / self.total_requests) * 100.0


class APIMetricsTracker:
    """Tracks request outcomes and response times for the generation endpoints."""

    def __init__(self):
        self._lock = threading.Lock()
        self.endpoints: Dict[str, APIEndpointMetrics] = {
            "ollama_generate": APIEndpointMetrics("Ollama Generate", "/api/generate"),
            "ollama_chat": APIEndpointMetrics("Ollama Chat", "/api/chat"),
        }
        self.recent_response_times: Dict[str, deque] = {
            endpoint: deque(maxlen=100) for endpoint in self.endpoints
        }
        self.recent_requests: Dict[str, deque] = {
            endpoint: deque(maxlen=100) for endpoint in self.endpoints
        }

    def record_request(self, endpoint_key: str, response_time_ms: float, success: bool = True) -> None:
        """Record a finished request for the specified endpoint."""
        with self._lock:
            if endpoint_key not in self.endpoints:
                logger.warning(f"Unknown endpoint key: {endpoint_key}")
                return

            endpoint = self.endpoints[endpoint_key]
            current_time = datetime.now()

            endpoint.total_requests += 1
            if success:
                endpoint.successful_requests += 1
            else:
                endpoint.failed_requests += 1

            times = self.recent_response_times[endpoint_key]
            times.append(response_time_ms)
            endpoint.avg_response_time = sum(times) / len(times)

            self.recent_requests[endpoint_key].append(current_time)
            endpoint.last_request_time = current_time.isoformat()
            self._update_endpoint_status(endpoint)

    @staticmethod
    def _update_endpoint_status(endpoint: APIEndpointMetrics) -> None:
        if endpoint.total_requests == 0:
            endpoint.status = "unknown"
        elif endpoint.error_rate > 20:
            endpoint.status = "error"
        elif endpoint.error_rate > 5 or endpoint.avg_response_time > 5000:
            endpoint.status = "warning"
        else:
            endpoint.status = "healthy"

    def _requests_last_minute(self, endpoint_key: str) -> int:
        one_minute_ago = datetime.now() - timedelta(minutes=1)
        return sum(1 for req_time in self.recent_requests[endpoint_key] if req_time > one_minute_ago)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get a summary of all endpoint metrics."""
        with self._lock:
            return {
                key: {
                    "name": endpoint.name,
                    "path": endpoint.path,
                    "status": endpoint.status,
                    "total_requests": endpoint.total_requests,
                    "success_rate": round(endpoint.success_rate, 1),
                    "error_rate": round(endpoint.error_rate, 1),
                    "avg_response_time": round(endpoint.avg_response_time, 1),
                    "requests_per_minute": self._requests_last_minute(key),
                    "last_request_time": endpoint.last_request_time,
                }
                for key, endpoint in self.endpoints.items()
            }
