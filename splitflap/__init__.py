"""Control split-flap displays driven by stepper motors on PCF8575 I2C expanders."""

__version__ = "0.1.0"
__all__ = ["module", "display", "multimodule"]