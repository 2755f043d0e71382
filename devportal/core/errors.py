# Dev Portal - Error Taxonomy


class PortalError(Exception):
    """Base class for every error raised by the control plane."""


# Validation: rejected before any side effect.


class ValidationError(PortalError):
    kind = "ValidationError"


class InvalidTarget(ValidationError):
    kind = "InvalidTarget"


class InvalidAction(ValidationError):
    kind = "InvalidAction"


class RegistryError(PortalError):
    """Registry data is malformed or ports overlap."""


# Benign no-ops raised by the supervisor adapter; the reconciler reports
# them as success.


class BenignNoOp(PortalError):
    kind = "BenignNoOp"


class AlreadyLoaded(BenignNoOp):
    kind = "AlreadyLoaded"


class NotLoaded(BenignNoOp):
    kind = "NotLoaded"


# Operational errors: surfaced as a failed ControlResult, never retried.


class OperationalError(PortalError):
    kind = "OperationalError"

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.detail = detail


class NotRunnable(OperationalError):
    kind = "NotRunnable"


class SupervisorError(OperationalError):
    kind = "SupervisorError"


class LaunchError(OperationalError):
    kind = "LaunchError"


class SignalError(OperationalError):
    kind = "SignalError"


# Probe degradation: callers downgrade to offline and log a warning.


class ProbeError(PortalError):
    kind = "ProbeError"
