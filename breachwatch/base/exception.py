class BreachWatchError(Exception):
    """Base for errors that carry a message code and map onto an HTTP status."""
    code = "error-unexpected"
    status_code = 500

    def __init__(self, message: str = None):
        self.message = message or self.code
        super().__init__(self.message)

    def __str__(self):
        return f"{self.__class__.__name__}: [{self.code}] {self.message}"


class InvalidEmail(BreachWatchError):
    code = "user-add-invalid-email"
    status_code = 400

    def __init__(self, email: str = None, message: str = None):
        self.email = email
        super().__init__(message or "Please enter a valid email address.")


class NotSubscribed(BreachWatchError):
    code = "error-not-subscribed"
    status_code = 404

    def __init__(self, message: str = None):
        super().__init__(message or "This email address is not subscribed.")


class DispatchFailure(BreachWatchError):
    code = "error-email-dispatch"
    status_code = 502

    def __init__(self, recipient: str, details: str = None):
        self.recipient = recipient
        self.details = details
        super().__init__(f"Could not send email to {recipient}.")

    def __str__(self):
        return f"DispatchFailure: [{self.code}] {self.message} Details: {self.details or 'No further details provided.'}"


class BreachLookupError(BreachWatchError):
    code = "error-breach-lookup"
    status_code = 502

    def __init__(self, details: str = None):
        self.details = details
        super().__init__("Breach lookup is unavailable right now.")

    def __str__(self):
        return f"BreachLookupError: [{self.code}] Details: {self.details or 'No further details provided.'}"


class RevocationFailure(BreachWatchError):
    """Raised inside the FXA client only; callers see a False result."""
    code = "error-fxa-revoke"

    def __init__(self, details: str = None):
        self.details = details
        super().__init__("Could not revoke the FXA OAuth token.")


class DatabaseConnectionError(Exception):
    def __init__(self, message: str = "Unable to connect to the database.", details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        return f"DatabaseConnectionError: {self.message} Details: {self.details or 'No further details provided.'}"
