from .line_interface import ILine, ILineBackend, EdgeHandler
from .line_gpiod import GpiodLineBackend, GpiodLine
from .line_rpi_gpio import RPiGPIOLineBackend, RPiGPIOLine
from .line_mock import SimulatedLineBackend, SimulatedLine
from .line_factory import create_line_backend


__all__ = [
    "ILine",
    "ILineBackend",
    "EdgeHandler",
    "GpiodLineBackend",
    "GpiodLine",
    "RPiGPIOLineBackend",
    "RPiGPIOLine",
    "SimulatedLineBackend",
    "SimulatedLine",
    "create_line_backend",
]
