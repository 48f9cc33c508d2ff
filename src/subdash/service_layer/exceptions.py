"""ABOUTME: Custom exceptions for service layer operations
ABOUTME: The login gate's error taxonomy, each with a human readable default message"""

from collections.abc import Iterable


class SubdashError(Exception):
    """Base exception for all our custom errors."""


class ServiceLayerError(SubdashError):
    """Base exception for all service layer errors."""


class AccessDenied(ServiceLayerError):
    """Raised when the email is not on the allow-list."""

    def __init__(self, message: str = "") -> None:
        if not message:
            message = "Access denied. This email is not authorized to access this system."
        super().__init__(message)


class CredentialRejected(ServiceLayerError):
    """Raised when the auth provider rejects the email/password pair."""

    def __init__(self, message: str = "") -> None:
        if not message:
            message = "Invalid email or password"
        super().__init__(message)


class SessionLimitReached(ServiceLayerError):
    """Raised when a new device would exceed the concurrent session ceiling."""

    def __init__(self, device_names: Iterable[str] = ()) -> None:
        self.device_names = list(device_names)
        if self.device_names:
            message = (
                f"Maximum devices reached: {', '.join(self.device_names)}. "
                "Please log out from one of these devices first."
            )
        else:
            message = "Maximum devices reached. Please log out from another device first."
        super().__init__(message)


class DeviceRegistrationFailed(ServiceLayerError):
    """Raised when a new device row could not be written."""

    def __init__(self, message: str = "") -> None:
        if not message:
            message = "Failed to register device. Please try again."
        super().__init__(message)


class InvalidMFACode(ServiceLayerError):
    """Raised when a TOTP challenge is rejected."""

    def __init__(self, message: str = "") -> None:
        if not message:
            message = "Invalid code. Please try again."
        super().__init__(message)


class StoreUnavailable(ServiceLayerError):
    """Raised when a device registry read or write fails."""

    def __init__(self, message: str = "", operation: str = "") -> None:
        if not message:
            message = (
                f"Could not reach the device store while trying to {operation}"
                if operation
                else "Could not reach the device store"
            )
        super().__init__(message)
        self.operation = operation


class DeviceNotFound(ServiceLayerError):
    """An authorized device could not be found for this user"""

    def __init__(self, device_id: object = "") -> None:
        message = f"Device '{device_id}' not found" if device_id else "Device not found"
        super().__init__(message)
        self.device_id = device_id


class DeviceStillActive(ServiceLayerError):
    """Raised when deleting a device that still has a session bound to it."""

    def __init__(self, device_name: str = "") -> None:
        if device_name:
            message = f"'{device_name}' is still logged in. Log it out before removing it."
        else:
            message = "This device is still logged in. Log it out before removing it."
        super().__init__(message)
        self.device_name = device_name
