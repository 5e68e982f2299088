from runtime.runtime_info import RuntimeInfo
from hardware.gpio.line_interface import ILineBackend
from hardware.gpio.line_gpiod import GpiodLineBackend
from hardware.gpio.line_rpi_gpio import RPiGPIOLineBackend
from hardware.gpio.line_mock import SimulatedLineBackend
from models.enums import BackendType
from utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.HARDWARE)


def create_line_backend(backend_type: BackendType = BackendType.AUTO) -> ILineBackend:
    """
    Build the requested line backend.

    AUTO prefers gpiod, then RPi.GPIO, and falls back to simulated lines
    when neither library can be loaded. An explicit GPIOD/RPI_GPIO choice
    raises RuntimeError if its library is missing.
    """
    if backend_type is BackendType.GPIOD:
        return GpiodLineBackend()
    if backend_type is BackendType.RPI_GPIO:
        return RPiGPIOLineBackend()
    if backend_type is BackendType.SIMULATED:
        return SimulatedLineBackend()

    rt = RuntimeInfo()
    if rt.has_gpiod():
        try:
            return GpiodLineBackend()
        except RuntimeError as e:
            log.warn("gpiod present but unusable", error=str(e))
    if rt.has_gpio():
        try:
            return RPiGPIOLineBackend()
        except RuntimeError as e:
            log.warn("RPi.GPIO present but unusable", error=str(e))

    log.warn("No GPIO library available, using simulated lines", raspberry_pi=rt.is_raspberry_pi())
    return SimulatedLineBackend()
