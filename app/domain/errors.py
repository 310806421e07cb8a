"""
Error taxonomy for the recurring dispatch engine.

  TransientDependencyError  - retried on the next tick, counted toward
                              MAX_CONSECUTIVE_FAILURES
  TerminalBusinessError     - the attempt is finished for good; a new attempt
                              happens on the next natural cycle
  ValueError subclasses     - contract violations, rejected at the boundary
"""


class TransientDependencyError(Exception):
    pass


class VendorUnavailableError(TransientDependencyError):
    pass


class PaymentGatewayError(TransientDependencyError):
    pass


class NotificationDeliveryError(TransientDependencyError):
    pass


class RenderFailedError(TransientDependencyError):
    pass


class TerminalBusinessError(Exception):
    pass


class PaymentDeclinedError(TerminalBusinessError):
    pass


class VendorRejectedError(TerminalBusinessError):
    pass


class ScheduleValidationError(ValueError):
    pass


class SubscriptionValidationError(ValueError):
    pass


class IllegalTransitionError(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Illegal print order transition: {current} -> {target}")
        self.current = current
        self.target = target
