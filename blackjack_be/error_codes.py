class ErrorCodes:
    GENERIC_ERROR = "BJ_1000"
    VALIDATION_ERROR = "BJ_1001"
    UNAUTHENTICATED = "BJ_1002"
    NOT_FOUND = "BJ_1004"
    METHOD_NOT_ALLOWED = "BJ_1005"
    INTERNAL_SERVER_ERROR = "BJ_1500"

    # Game errors
    INVALID_ACTION = "BJ_2001"
    INSUFFICIENT_FUNDS = "BJ_2002"
    EMPTY_SHOE = "BJ_2500"
