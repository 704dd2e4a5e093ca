"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Ledger / credits
  3xxx: Course content
  4xxx: Tests
  5xxx: Upstream language model
  6xxx: Payment
  9xxx: System
"""

from decimal import Decimal


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Account is disabled", 403)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(1003, detail, 403)


class UnsupportedModelError(AppError):
    def __init__(self, model: str) -> None:
        super().__init__(1004, f"Unsupported AI model: {model}", 422)


# --- 2xxx: Ledger ---

class InsufficientCreditsError(AppError):
    def __init__(self, account_id: str, available: Decimal | None) -> None:
        shown = "none" if available is None else f"{available}"
        super().__init__(
            2001,
            f"Insufficient credits for account {account_id}: balance {shown}",
            402,
        )


class InvalidCreditAmountError(AppError):
    def __init__(self, amount: Decimal) -> None:
        super().__init__(2002, f"Credit amount must be positive, got {amount}", 422)


# --- 3xxx: Course content ---

class ChapterNotFoundError(AppError):
    def __init__(self, chapter_id: str) -> None:
        super().__init__(3001, f"Chapter not found: {chapter_id}", 404)


class CourseNotFoundError(AppError):
    def __init__(self, course_id: str) -> None:
        super().__init__(3002, f"Course not found or not published: {course_id}", 404)


class NotEnrolledError(AppError):
    def __init__(self, course_id: str) -> None:
        super().__init__(3003, f"You must be enrolled in course {course_id}", 403)


class NotEnoughQuestionsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            3004,
            f"Course must have at least {required} questions to create a test, has {available}",
            422,
        )


# --- 4xxx: Tests ---

class TestNotFoundError(AppError):
    __test__ = False  # not a pytest class

    def __init__(self, test_id: str) -> None:
        super().__init__(4001, f"Test not found: {test_id}", 404)


class TestOwnershipError(AppError):
    __test__ = False

    def __init__(self, test_id: str) -> None:
        super().__init__(4002, f"Test {test_id} does not belong to you", 403)


class TestAlreadySubmittedError(AppError):
    __test__ = False

    def __init__(self, test_id: str) -> None:
        super().__init__(4003, f"Test already submitted: {test_id}", 409)


# --- 5xxx: Upstream language model ---

class UpstreamUnavailableError(AppError):
    def __init__(self, detail: str = "Language model is unavailable") -> None:
        super().__init__(5001, detail, 503)


class UpstreamInvalidResponseError(AppError):
    def __init__(self, detail: str = "Language model returned an invalid response") -> None:
        super().__init__(5002, detail, 502)


# --- 6xxx: Payment ---

class InvalidWebhookError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6001, f"Invalid webhook: {detail}", 400)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class StorageUnavailableError(AppError):
    def __init__(self, detail: str = "Storage is temporarily unavailable") -> None:
        super().__init__(9003, detail, 503)


class ConfigurationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9004, f"Configuration error: {detail}", 500)
