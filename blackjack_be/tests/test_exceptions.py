import pytest
from blackjack_be.exceptions import (
    AppException,
    ValidationException,
    AuthenticationException,
    NotFoundException,
    InvalidActionException,
    InsufficientFundsException,
    EmptyShoeException,
    InternalServerErrorException
)
from blackjack_be.error_codes import ErrorCodes

def test_app_exception_instantiation():
    error_code = "TEST_001"
    status_message = "Test message"
    status_code = 400
    details = {"field": "value"}
    action_button = {"text": "Retry", "actionType": "RETRY_ACTION"}

    exc = AppException(
        error_code=error_code,
        status_message=status_message,
        status_code=status_code,
        details=details,
        action_button=action_button
    )

    assert exc.error_code == error_code
    assert exc.status_message == status_message
    assert exc.status_code == status_code
    assert exc.details == details
    assert exc.action_button == action_button
    assert str(exc) == status_message

def test_app_exception_defaults():
    exc = AppException(error_code="TEST_002", status_message="Default test", status_code=500)
    assert exc.details == {}
    assert exc.action_button == {}

@pytest.mark.parametrize("exc_class, error_code, status_code", [
    (ValidationException, ErrorCodes.VALIDATION_ERROR, 422),
    (AuthenticationException, ErrorCodes.UNAUTHENTICATED, 401),
    (NotFoundException, ErrorCodes.NOT_FOUND, 404),
    (InvalidActionException, ErrorCodes.INVALID_ACTION, 409),
    (InsufficientFundsException, ErrorCodes.INSUFFICIENT_FUNDS, 400),
    (EmptyShoeException, ErrorCodes.EMPTY_SHOE, 500),
    (InternalServerErrorException, ErrorCodes.INTERNAL_SERVER_ERROR, 500),
])
def test_exception_codes(exc_class, error_code, status_code):
    exc = exc_class(status_message="Something happened", details={"k": "v"})
    assert exc.error_code == error_code
    assert exc.status_code == status_code
    assert exc.status_message == "Something happened"
    assert exc.details == {"k": "v"}
    with pytest.raises(AppException):
        raise exc

def test_default_messages():
    assert AuthenticationException().status_message == "Invalid session token"
    assert EmptyShoeException().status_message == "No cards left in shoe"

def test_invalid_action_carries_phase_details():
    exc = InvalidActionException("Cannot hit now.", details={'phase': 'betting'})
    assert exc.details == {'phase': 'betting'}
    assert str(exc) == "Cannot hit now."
