class MoniSimError(Exception):
    """Base class for MoniSim errors."""


class ConfigError(MoniSimError):
    """Raised by strict loaders when a settings or config file is malformed."""
