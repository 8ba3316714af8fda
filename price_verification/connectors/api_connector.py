"""
REST API connector for JSON collaborators.

Provides an HTTP client built on requests with rate limiting, retry with
exponential backoff and consistent logging. Used by the live exchange-rate
provider.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import requests

from price_verification.models import (
    ConnectionTestResult, ConnectionType, RateAPIConnectionConfig
)
from .base_connector import BaseConnector, ConnectorError

import logging
logger = logging.getLogger(__name__)


@dataclass
class APIResponse:
    """Response from API connector operations."""
    success: bool
    status_code: int
    data: Optional[Union[Dict[str, Any], List[Any]]] = None
    error_message: Optional[str] = None
    response_time: float = 0.0
    headers: Optional[Dict[str, str]] = None


class RateLimiter:
    """Thread-safe token bucket rate limiter."""

    def __init__(self, rate_limit: int):
        """
        Initialize rate limiter.

        Args:
            rate_limit: Maximum requests per minute
        """
        self.rate_limit = rate_limit
        self.tokens = float(rate_limit)
        self.last_update = time.time()
        self.lock = threading.Lock()

    def _refill(self):
        now = time.time()
        time_passed = now - self.last_update
        self.last_update = now
        self.tokens = min(self.rate_limit, self.tokens + time_passed * (self.rate_limit / 60.0))

    def acquire(self) -> bool:
        """
        Try to acquire a token for making a request.

        Returns:
            True if token acquired, False if rate limited
        """
        with self.lock:
            self._refill()
            if self.tokens >= 1:
                self.tokens -= 1
                return True
            return False

    def wait_time(self) -> float:
        """Get time to wait before next request is allowed."""
        with self.lock:
            if self.tokens >= 1:
                return 0.0
            return (1 - self.tokens) * (60.0 / self.rate_limit)

    def wait(self, max_wait: float = 60.0) -> bool:
        """
        Block until a token is available or ``max_wait`` seconds have passed.

        Returns:
            True if a token was acquired
        """
        deadline = time.time() + max_wait
        while not self.acquire():
            delay = self.wait_time()
            if time.time() + delay > deadline:
                return False
            logger.debug(f"Rate limited, waiting {delay:.2f} seconds")
            time.sleep(delay)
        return True


class APIConnector(BaseConnector):
    """
    JSON-over-HTTP connector with rate limiting and retries.

    Requests that fail with a transport error or a 5xx/429 status are
    retried up to ``retry_attempts`` times with exponential backoff.
    """

    def __init__(self, config: RateAPIConnectionConfig, session: Optional[requests.Session] = None,
                 backoff_seconds: float = 0.5):
        """
        Initialize API connector.

        Args:
            config: API connection configuration
            session: Optional pre-built requests session
            backoff_seconds: Initial delay between retries
        """
        super().__init__(config.connection_id)
        self.config = config
        self.rate_limiter = RateLimiter(config.rate_limit)
        self.backoff_seconds = backoff_seconds

        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        if config.api_key:
            self.session.headers['Authorization'] = f"Bearer {config.api_key}"
        if config.additional_headers:
            self.session.headers.update(config.additional_headers)

        self.logger.info(f"API connector initialized for {config.base_url}")

    def build_url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def test_connection(self) -> ConnectionTestResult:
        """
        Test the API connection with a lightweight request.

        Returns:
            ConnectionTestResult with test status and details
        """
        response = self._make_request('GET', self.build_url('latest/USD'))

        result = ConnectionTestResult(
            success=response.success,
            connection_id=self.connection_id,
            connection_type=ConnectionType.EXCHANGE_RATE_API,
            response_time=response.response_time,
            error_message=response.error_message,
            additional_info={
                'status_code': response.status_code,
                'base_url': self.config.base_url
            }
        )
        self._last_connection_test = result
        self._connection_healthy = response.success
        return result

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Union[Dict[str, Any], List[Any]]:
        """
        GET a JSON document, retrying transient failures.

        Args:
            path: Path relative to the configured base URL
            params: Optional query parameters

        Returns:
            Decoded JSON body

        Raises:
            ConnectorError: If the request still fails after all retries
        """
        url = self.build_url(path)
        attempts = max(1, self.config.retry_attempts + 1)
        response = None

        for attempt in range(1, attempts + 1):
            if not self.rate_limiter.wait(max_wait=self.config.timeout):
                raise ConnectorError(f"Rate limit exceeded for connection '{self.connection_id}'")

            response = self._make_request('GET', url, params=params)
            if response.success:
                self._connection_healthy = True
                return response.data if response.data is not None else {}

            if not self._is_retryable(response) or attempt == attempts:
                break

            delay = self.backoff_seconds * (2 ** (attempt - 1))
            self.logger.warning(f"GET {url} failed ({response.error_message}), "
                                f"retrying in {delay:.1f}s (attempt {attempt}/{attempts})")
            time.sleep(delay)

        raise self._handle_error(f"GET {url}", response.error_message if response else 'no response')

    @staticmethod
    def _is_retryable(response: APIResponse) -> bool:
        return response.status_code == 0 or response.status_code == 429 or response.status_code >= 500

    def _make_request(self, method: str, url: str, **kwargs) -> APIResponse:
        """
        Make an HTTP request with proper error handling and logging.

        Args:
            method: HTTP method
            url: Request URL
            **kwargs: Additional request parameters

        Returns:
            APIResponse with request results; transport errors give status 0
        """
        start_time = time.time()

        try:
            response = self.session.request(
                method=method,
                url=url,
                timeout=self.config.timeout,
                **kwargs
            )
        except requests.RequestException as e:
            duration = time.time() - start_time
            self._log_operation(f"{method.upper()} {url}", duration, False, str(e))
            return APIResponse(
                success=False,
                status_code=0,
                error_message=str(e),
                response_time=duration
            )

        duration = time.time() - start_time
        success = response.status_code < 400
        error_message = None if success else f"HTTP {response.status_code}: {response.text[:200]}"

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None
            if success:
                success = False
                error_message = "Response body is not valid JSON"

        self._log_operation(f"{method.upper()} {url}", duration, success,
                            f"Status: {response.status_code}")

        return APIResponse(
            success=success,
            status_code=response.status_code,
            data=data,
            error_message=error_message,
            response_time=duration,
            headers=dict(response.headers)
        )

    def get_connection_info(self) -> Dict[str, Any]:
        """
        Get information about the API connection.

        Returns:
            Dictionary containing connection metadata
        """
        return {
            'connection_id': self.connection_id,
            'connection_type': ConnectionType.EXCHANGE_RATE_API.value,
            'base_url': self.config.base_url,
            'rate_limit': self.config.rate_limit,
            'timeout': self.config.timeout,
            'retry_attempts': self.config.retry_attempts,
            'healthy': self.is_healthy(),
            'last_test': self._last_connection_test.to_dict() if self._last_connection_test else None
        }

    def get_rate_limit_info(self) -> Dict[str, Any]:
        return {
            'rate_limit': self.config.rate_limit,
            'tokens_available': self.rate_limiter.tokens,
            'wait_time': self.rate_limiter.wait_time()
        }
