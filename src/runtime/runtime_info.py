import sys
import importlib.util


class RuntimeInfo:
    """Probes for the platform and the optional GPIO libraries."""

    @classmethod
    def is_linux(cls) -> bool:
        return sys.platform.startswith("linux")

    @classmethod
    def is_raspberry_pi(cls) -> bool:
        if not cls.is_linux():
            return False
        try:
            with open("/proc/device-tree/model", "r") as f:
                if "Raspberry Pi" in f.read():
                    return True
        except OSError:
            pass
        try:
            with open("/proc/cpuinfo", "r") as f:
                return "Raspberry Pi" in f.read()
        except OSError:
            return False

    @classmethod
    def has_gpiod(cls) -> bool:
        return cls.is_linux() and cls.has_module("gpiod")

    @classmethod
    def has_gpio(cls) -> bool:
        return cls.has_module("RPi.GPIO")

    @classmethod
    def has_module(cls, module_name: str) -> bool:
        try:
            return importlib.util.find_spec(module_name) is not None
        except (ImportError, ValueError):
            return False
