# app/exceptions.py
"""
Error taxonomy for the fleet core.
Everything here is a local, recoverable condition except InvalidConfiguration,
which is raised at startup when the service cannot be built at all.
"""


class FleetError(Exception):
    """Base class. `message` is the short status text shown to users."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FleetError):
    """Malformed or incomplete input, rejected before any state mutation."""

    status_code = 422


class OutsideGeofence(FleetError):
    def __init__(self, lat: float, lng: float, message: str = "Location is outside the service area"):
        super().__init__(message)
        self.lat = lat
        self.lng = lng


class LocationError(FleetError):
    """Device location failure. `cause` is recorded on forced-offline vehicles."""

    cause = "location_error"


class PermissionDenied(LocationError):
    cause = "permission_denied"


class LocationUnavailable(LocationError):
    cause = "position_unavailable"


class LocationTimeout(LocationError):
    cause = "timeout"


class NotFound(FleetError):
    status_code = 404


class InvalidTransition(FleetError):
    status_code = 409


class StorageError(FleetError):
    status_code = 503


class InvalidConfiguration(FleetError):
    status_code = 500


LOCATION_ERRORS = {
    PermissionDenied.cause: PermissionDenied,
    LocationUnavailable.cause: LocationUnavailable,
    LocationTimeout.cause: LocationTimeout,
}
