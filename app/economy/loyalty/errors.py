from __future__ import annotations


class LoyaltyError(Exception):
    kind = "validation"
    status_code = 400
    code = "E_LOYALTY"
    message = "Loyalty operation failed"

    def __init__(self, message: str | None = None, *, context: dict[str, object] | None = None) -> None:
        self.message = message or self.message
        self.context = context or {}
        super().__init__(self.message)


class LoyaltyRuleNotFoundError(LoyaltyError):
    kind = "not_found"
    status_code = 404
    code = "E_LOYALTY_CODE_NOT_FOUND"
    message = "Loyalty code not found"


class LoyaltyUserNotFoundError(LoyaltyError):
    kind = "not_found"
    status_code = 404
    code = "E_LOYALTY_USER_NOT_FOUND"
    message = "User not found"


class LoyaltyTransactionsNotFoundError(LoyaltyError):
    kind = "not_found"
    status_code = 404
    code = "E_LOYALTY_TRANSACTIONS_NOT_FOUND"
    message = "No transactions found"


class LoyaltyCodeAlreadyClaimedError(LoyaltyError):
    kind = "conflict"
    status_code = 400
    code = "E_LOYALTY_CODE_ALREADY_CLAIMED"
    message = "Loyalty code already claimed"


class LoyaltyRuleAlreadyExistsError(LoyaltyError):
    kind = "conflict"
    status_code = 409
    code = "E_LOYALTY_RULE_EXISTS"
    message = "Loyalty code already exists"


class LoyaltyInvalidRuleTypeError(LoyaltyError):
    kind = "validation"
    status_code = 400
    code = "E_LOYALTY_INVALID_TYPE"
    message = "Invalid loyalty type"


class LoyaltyInvalidRuleError(LoyaltyError):
    kind = "validation"
    status_code = 400
    code = "E_LOYALTY_INVALID_RULE"
    message = "Invalid loyalty rule value"


class LoyaltyInvalidPeriodError(LoyaltyError):
    kind = "validation"
    status_code = 400
    code = "E_LOYALTY_INVALID_PERIOD"
    message = "Invalid leaderboard period"


class LoyaltyInfrastructureError(LoyaltyError):
    kind = "infrastructure"
    status_code = 500
    code = "E_INTERNAL"
    message = "Loyalty storage failure"
