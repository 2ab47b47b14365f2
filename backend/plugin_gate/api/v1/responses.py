# plugin_gate/api/v1/responses.py
"""
Human-readable messages for admission denials, keyed on the denial code.
"""
from plugin_gate.services.admission import DenialCode, Outcome

DENIAL_MESSAGES = {
    DenialCode.IP_BLOCKED: "Your IP has been blocked",
    DenialCode.NOT_FOUND: "License key not found",
    DenialCode.REVOKED: "License has been revoked",
    DenialCode.EXPIRED: "License has expired",
    DenialCode.DEVICE_BLOCKED: "This device has been blocked",
    DenialCode.MAX_DEVICES: "Maximum device limit reached",
    DenialCode.NO_SESSION: "No active session. Please validate license.",
    DenialCode.STORE_UNAVAILABLE: "Service temporarily unavailable",
}


def denial_error(outcome: Outcome) -> dict:
    """``{"code", "message"}`` for a denied outcome, plus the device counts on max_devices."""
    error = {
        "code": outcome.code.value,
        "message": DENIAL_MESSAGES.get(outcome.code, "Access denied"),
    }
    if outcome.code == DenialCode.MAX_DEVICES:
        error["current_devices"] = outcome.current_devices
        error["max_devices"] = outcome.max_devices
    return error


def denial_body(outcome: Outcome) -> dict:
    return {"success": False, "error": denial_error(outcome)}
