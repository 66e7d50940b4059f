"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth (token checks at the gateway boundary)
  2xxx: Ledger / Account
  3xxx: Market
  6xxx: Settlement
  9xxx: System
"""


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


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Admin access required", 403)


# --- 2xxx: Ledger / Account ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} points, available {available} points",
            422,
        )


class AccountNotFoundError(AppError):
    def __init__(self, account_id: int) -> None:
        super().__init__(2002, f"Account not found: {account_id}", 404)


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(2003, f"Amount must be a positive integer, got {amount}", 422)


class FeeAccountNotConfiguredError(AppError):
    def __init__(self) -> None:
        super().__init__(2004, "Platform fee account not configured", 500)


class FeeAccountProtectedError(AppError):
    def __init__(self, account_id: int) -> None:
        super().__init__(
            2005, f"Cannot adjust points on the platform fee account: {account_id}", 403
        )


# --- 3xxx: Market ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: int) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


class MarketAlreadyResolvedError(AppError):
    def __init__(self, market_id: int) -> None:
        super().__init__(3003, f"Market already resolved: {market_id}", 409)


# --- 6xxx: Settlement ---

class SettlementJobNotFoundError(AppError):
    def __init__(self, job_id: int) -> None:
        super().__init__(6001, f"Settlement job not found: {job_id}", 404)


class SettlementValidationError(AppError):
    """Missing or mismatched market/option reference on a settlement job."""

    def __init__(self, detail: str) -> None:
        super().__init__(6002, f"Settlement validation failed: {detail}", 422)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
