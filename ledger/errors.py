class LedgerServiceError(Exception):
    pass


class InvalidRequestError(LedgerServiceError):
    pass


class AccountNotFoundError(LedgerServiceError):
    pass


class InsufficientCreditsError(LedgerServiceError):
    pass
