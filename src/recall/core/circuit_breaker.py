import logging
import time
from enum import Enum

from recall.core.metrics import metrics, recall_metrics

logger = logging.getLogger(__name__)


class CircuitBreakerState(Enum):
    Closed = "closed"
    Open = "open"
    HalfOpen = "half_open"


class CircuitBreaker:
    def __init__(self, name: str = "provider", failure_threshold: int = 3, recovery_timeout: float = 30.0):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time = 0
        self.state = CircuitBreakerState.Closed

    def can_execute(self) -> bool:
        if self.state == CircuitBreakerState.Open:
            if time.time() - self.last_failure_time > self.recovery_timeout:
                self.state = CircuitBreakerState.HalfOpen
                return True
            return False
        return True

    def record_success(self) -> None:
        if self.state != CircuitBreakerState.Closed:
            logger.info("Circuit breaker '%s' closed after successful call", self.name)
        self.failure_count = 0
        self.state = CircuitBreakerState.Closed
        recall_metrics.record_circuit_breaker(self.name, 0)

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        self.failure_count = 0
        self.last_failure_time = 0
        self.state = CircuitBreakerState.Closed
        recall_metrics.record_circuit_breaker(self.name, 0)

    def record_failure(self) -> None:
        """Record a failed execution attempt."""
        self.failure_count += 1
        self.last_failure_time = time.time()
        if self.failure_count >= self.failure_threshold:
            if self.state != CircuitBreakerState.Open:
                metrics.increment("circuit_breaker_trips")
                recall_metrics.record_circuit_breaker(self.name, 1)
            self.state = CircuitBreakerState.Open
            logger.warning(
                "Circuit breaker '%s' tripped to OPEN after %d failures",
                self.name,
                self.failure_count,
            )
