"""
Base connector interface for external price verification collaborators.

Provides common functionality for the exchange-rate and AI matching
connectors including error wrapping, logging and timing.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from price_verification.models import ConnectionTestResult, PriceVerificationError

logger = logging.getLogger(__name__)


class ConnectorError(PriceVerificationError):
    """Base exception for connector-related errors."""
    pass


class BaseConnector(ABC):
    """
    Abstract base class for all connectors.

    Tracks connection health and gives subclasses consistent operation
    logging and error wrapping.
    """

    def __init__(self, connection_id: str):
        """
        Initialize base connector.

        Args:
            connection_id: Unique identifier for this connection
        """
        self.connection_id = connection_id
        self.logger = logging.getLogger(f"{__name__}.{connection_id}")
        self._last_connection_test: Optional[ConnectionTestResult] = None
        self._connection_healthy = True

    @abstractmethod
    def test_connection(self) -> ConnectionTestResult:
        """
        Test the connection to the collaborator.

        Returns:
            ConnectionTestResult with success status and details
        """
        pass

    @abstractmethod
    def get_connection_info(self) -> Dict[str, Any]:
        """
        Get information about the current connection.

        Returns:
            Dictionary containing connection metadata
        """
        pass

    def is_healthy(self) -> bool:
        return self._connection_healthy

    def get_last_test_result(self) -> Optional[ConnectionTestResult]:
        return self._last_connection_test

    def _log_operation(self, operation: str, duration: float, success: bool,
                       details: Optional[str] = None):
        """
        Log connector operation with timing and status.

        Args:
            operation: Name of the operation
            duration: Time taken in seconds
            success: Whether operation succeeded
            details: Additional details to log
        """
        status = "SUCCESS" if success else "FAILED"
        message = f"{operation} {status} in {duration:.3f}s"

        if details:
            message += f" - {details}"

        if success:
            self.logger.info(message)
        else:
            self.logger.error(message)

    def _handle_error(self, operation: str, error: Union[Exception, str]) -> ConnectorError:
        """
        Handle and log connector errors consistently.

        Args:
            operation: Name of the operation that failed
            error: The original exception, or a description of the failure

        Returns:
            ConnectorError with appropriate message
        """
        error_msg = f"{operation} failed for connection '{self.connection_id}': {error}"
        self.logger.error(error_msg, exc_info=error if isinstance(error, Exception) else None)
        self._connection_healthy = False
        return ConnectorError(error_msg)
