class DatabaseError(Exception):
    """Custom exception for database-related errors."""

    def __init__(self, message: str, error_code: str = "DB_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class PushGatewayError(Exception):
    """Custom exception for Expo push service errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "PUSH_GATEWAY_ERROR",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code


class TicketStoreError(Exception):
    """Custom exception for ticket store misconfiguration or corrupt entries."""

    def __init__(self, message: str, error_code: str = "TICKET_STORE_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
