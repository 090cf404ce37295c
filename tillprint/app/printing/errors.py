"""Exceptions raised by the receipt printing stack."""

from __future__ import annotations


class PrinterError(Exception):
    """Base class for every printer failure."""


class UnsupportedPlatformError(PrinterError):
    """The host has no usable USB backend."""


class DeviceIOError(PrinterError):
    """A low-level USB call failed."""


class DeviceInitError(PrinterError):
    """The device could not be opened, configured or claimed."""


class PrinterConnectionError(PrinterError):
    """Connecting to a chosen device failed."""


class PrinterNotConnectedError(PrinterError):
    """An operation needs a device but none is held."""


class TransferError(PrinterError):
    """Streaming a command buffer to the device failed."""
