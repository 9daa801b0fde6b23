class SimulationError(Exception):
    """Base class for all errors raised by the simulation harness."""


class ConfigurationError(SimulationError):
    """Invalid or missing configuration value. Raised before any topology is built."""


class SetupError(SimulationError):
    """Failure while building the scenario. Raised before the scheduler starts."""


class AddressPoolExhaustedError(SetupError):
    """The configured subnet holds fewer host addresses than there are nodes."""


class EndpointBindError(SetupError):
    """A socket could not be bound to the requested port."""
