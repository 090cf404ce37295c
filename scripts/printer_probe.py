#!/usr/bin/env python3
"""List attached USB devices and whether they can take ESC/POS jobs."""
from __future__ import annotations

import argparse
import asyncio
import sys

from tillprint.app.printing.errors import PrinterError
from tillprint.app.printing.receipt import build_test_page
from tillprint.app.printing.transport import UsbTransportManager
from tillprint.app.printing.usb import DIRECTION_OUT, TRANSFER_BULK, PyUsbPlatform


def _bulk_out(device) -> str:
    cfg = device.configuration
    if cfg is None or not cfg.interfaces or not cfg.interfaces[0].alternates:
        return "-"
    for ep in cfg.interfaces[0].alternates[0].endpoints:
        if ep.direction == DIRECTION_OUT and ep.transfer_type == TRANSFER_BULK:
            return str(ep.number)
    return "-"


async def _run(args: argparse.Namespace) -> int:
    platform = PyUsbPlatform()
    caps = platform.capabilities()
    if not caps.usb_available:
        print(caps.detail, file=sys.stderr)
        return 1

    devices = await platform.list_devices()
    for device in devices:
        print(f"{device.device_id}  ep={_bulk_out(device)}  {device.product_name or ''}")

    if not args.test:
        return 0
    transport = UsbTransportManager(platform)
    try:
        if not await transport.connect(
            lambda found: next((d for d in found if d.device_id == args.test), None)
        ):
            print(f"device {args.test} not found", file=sys.stderr)
            return 1
        await transport.send(build_test_page())
    except PrinterError as exc:
        print(exc, file=sys.stderr)
        return 1
    finally:
        await transport.disconnect()
    print("test page sent")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--test", metavar="VVVV:PPPP", help="send the test page to this device"
    )
    return asyncio.run(_run(parser.parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
