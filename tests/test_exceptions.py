from hotspot_billing.utils.exceptions import ControllerCommandError, ValidationException


def test_str_includes_details():
    exc = ControllerCommandError("RouterOS command /ip/hotspot/user/add failed", details="failure: profile not found")

    assert str(exc) == "RouterOS command /ip/hotspot/user/add failed: failure: profile not found"
    assert exc.message == "RouterOS command /ip/hotspot/user/add failed"
    assert exc.status_code == 502


def test_str_without_details():
    assert str(ValidationException("Invalid plan")) == "Invalid plan"
