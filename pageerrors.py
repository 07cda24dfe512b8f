"""
Errors raised by the page replacement simulator
"""


class SimulationError(Exception):
    """Base class for every error the simulator raises"""


class ParseError(SimulationError, ValueError):
    """Reference string is empty or holds no valid page numbers"""


class InvalidConfigError(SimulationError, ValueError):
    """Frame count is not a positive integer"""


class UnknownPolicyError(SimulationError, KeyError):
    """No replacement algorithm is registered under the requested name"""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class PolicyInvariantError(SimulationError):
    """A replacement algorithm left its bookkeeping in an inconsistent state"""
