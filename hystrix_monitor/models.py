from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

COMMAND_TYPE = "HystrixCommand"


class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


def current_time_millis() -> int:
    return int(time.time() * 1000)


def coerce_snapshot_dict(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {}

    candidate = raw
    if hasattr(candidate, "to_dict") and callable(candidate.to_dict):
        candidate = candidate.to_dict()

    if isinstance(candidate, Mapping):
        return {str(key): value for key, value in candidate.items()}

    raise TypeError(f"Snapshot must be a mapping, got {type(raw).__name__}")


class LatencyPercentiles(BaseModel):
    """Latency distribution keyed the way the dashboard reads it ("0" .. "100")."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    p0: float = Field(default=0, alias="0")
    p25: float = Field(default=0, alias="25")
    p50: float = Field(default=0, alias="50")
    p75: float = Field(default=0, alias="75")
    p90: float = Field(default=0, alias="90")
    p95: float = Field(default=0, alias="95")
    p99: float = Field(default=0, alias="99")
    p99_5: float = Field(default=0, alias="99.5")
    p100: float = Field(default=0, alias="100")


class HystrixSnapshot(BaseModel):
    """Point-in-time health of one breaker in the HystrixCommand stream schema."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    type: str = COMMAND_TYPE
    name: str
    group: str = "default"
    current_time: int = Field(default_factory=current_time_millis, alias="currentTime")
    state: BreakerState = Field(default=BreakerState.CLOSED, alias="circuitBreakerState")
    is_circuit_breaker_open: bool = Field(default=False, alias="isCircuitBreakerOpen")
    error_percentage: float = Field(default=0, ge=0, le=100, alias="errorPercentage")
    error_count: int = Field(default=0, ge=0, alias="errorCount")
    request_count: int = Field(default=0, ge=0, alias="requestCount")

    rolling_count_success: int = Field(default=0, ge=0, alias="rollingCountSuccess")
    rolling_count_failure: int = Field(default=0, ge=0, alias="rollingCountFailure")
    rolling_count_timeout: int = Field(default=0, ge=0, alias="rollingCountTimeout")
    rolling_count_short_circuited: int = Field(default=0, ge=0, alias="rollingCountShortCircuited")
    rolling_count_semaphore_rejected: int = Field(default=0, ge=0, alias="rollingCountSemaphoreRejected")
    rolling_count_thread_pool_rejected: int = Field(default=0, ge=0, alias="rollingCountThreadPoolRejected")
    rolling_count_fallback_success: int = Field(default=0, ge=0, alias="rollingCountFallbackSuccess")
    rolling_count_fallback_failure: int = Field(default=0, ge=0, alias="rollingCountFallbackFailure")
    rolling_count_fallback_rejection: int = Field(default=0, ge=0, alias="rollingCountFallbackRejection")
    rolling_count_exceptions_thrown: int = Field(default=0, ge=0, alias="rollingCountExceptionsThrown")
    rolling_count_responses_from_cache: int = Field(default=0, ge=0, alias="rollingCountResponsesFromCache")
    rolling_count_collapsed_requests: int = Field(default=0, ge=0, alias="rollingCountCollapsedRequests")
    current_concurrent_execution_count: int = Field(default=0, ge=0, alias="currentConcurrentExecutionCount")

    latency_execute_mean: float = Field(default=0, ge=0, alias="latencyExecute_mean")
    latency_execute: LatencyPercentiles = Field(default_factory=LatencyPercentiles, alias="latencyExecute")
    latency_total_mean: float = Field(default=0, ge=0, alias="latencyTotal_mean")
    latency_total: LatencyPercentiles = Field(default_factory=LatencyPercentiles, alias="latencyTotal")

    circuit_breaker_request_volume_threshold: int = Field(
        default=20, alias="propertyValue_circuitBreakerRequestVolumeThreshold"
    )
    circuit_breaker_sleep_window_ms: int = Field(
        default=5000, alias="propertyValue_circuitBreakerSleepWindowInMilliseconds"
    )
    circuit_breaker_error_threshold_percentage: float = Field(
        default=50, alias="propertyValue_circuitBreakerErrorThresholdPercentage"
    )
    circuit_breaker_force_open: bool = Field(default=False, alias="propertyValue_circuitBreakerForceOpen")
    circuit_breaker_force_closed: bool = Field(default=False, alias="propertyValue_circuitBreakerForceClosed")
    circuit_breaker_enabled: bool = Field(default=True, alias="propertyValue_circuitBreakerEnabled")
    execution_isolation_strategy: str = Field(default="SEMAPHORE", alias="propertyValue_executionIsolationStrategy")
    execution_isolation_thread_timeout_ms: int = Field(
        default=1000, alias="propertyValue_executionIsolationThreadTimeoutInMilliseconds"
    )
    execution_isolation_thread_interrupt_on_timeout: bool = Field(
        default=True, alias="propertyValue_executionIsolationThreadInterruptOnTimeout"
    )
    execution_isolation_semaphore_max_concurrent_requests: int = Field(
        default=10, alias="propertyValue_executionIsolationSemaphoreMaxConcurrentRequests"
    )
    fallback_isolation_semaphore_max_concurrent_requests: int = Field(
        default=10, alias="propertyValue_fallbackIsolationSemaphoreMaxConcurrentRequests"
    )
    metrics_rolling_statistical_window_ms: int = Field(
        default=10000, alias="propertyValue_metricsRollingStatisticalWindowInMilliseconds"
    )
    request_cache_enabled: bool = Field(default=False, alias="propertyValue_requestCacheEnabled")
    request_log_enabled: bool = Field(default=False, alias="propertyValue_requestLogEnabled")
    reporting_hosts: int = Field(default=1, ge=0, alias="reportingHosts")

    @model_validator(mode="before")
    @classmethod
    def _derive_open_flag(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        values = dict(data)
        raw_state = values.get("circuitBreakerState", values.get("state"))
        if raw_state is None:
            # Older providers only report the boolean flag.
            is_open = bool(values.get("isCircuitBreakerOpen", values.get("is_circuit_breaker_open", False)))
            values["circuitBreakerState"] = BreakerState.OPEN if is_open else BreakerState.CLOSED
            values.pop("state", None)
            return values
        if isinstance(raw_state, str):
            raw_state = raw_state.strip().upper().replace("-", "_")
        state = BreakerState(raw_state)
        values.pop("state", None)
        values["circuitBreakerState"] = state
        values.pop("is_circuit_breaker_open", None)
        values["isCircuitBreakerOpen"] = state is not BreakerState.CLOSED
        return values

    @classmethod
    def from_raw(cls, raw: Any) -> "HystrixSnapshot":
        if isinstance(raw, cls):
            return raw
        return cls.model_validate(coerce_snapshot_dict(raw))

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class HealthResponse(BaseModel):
    status: str = "ok"
    scheduler_state: str
    snapshot_delay_ms: int
    monitored_breakers: int = 0
    subscribers: int = 0
    cycles: int = 0

    model_config = ConfigDict(extra="ignore")
