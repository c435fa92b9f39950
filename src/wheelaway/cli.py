"""Command-line interface for wheelaway.

Provides the main entry point for serving the control API, and for
running individual components (screen capture, classifier, serial
device) on their own for testing.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="wheelaway",
        description="Screen productivity monitor driving a serial actuator",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/wheelaway.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP control API")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address override")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port override")

    subparsers.add_parser("ports", help="List serial ports")

    capture_parser = subparsers.add_parser("capture-test", help="Capture the screen and save it")
    capture_parser.add_argument(
        "--output", type=Path, default=None,
        help="Output file (default: capture_test.png or .jpg)",
    )

    classify_parser = subparsers.add_parser(
        "classify-test", help="Capture the screen and classify it once",
    )
    classify_parser.add_argument(
        "--image", type=Path, default=None,
        help="Classify this image file instead of a fresh capture",
    )

    send_parser = subparsers.add_parser("send", help="Send one command to the serial device")
    send_parser.add_argument("--port", type=str, default=None, help="Serial port name")
    send_parser.add_argument("device_command", metavar="COMMAND", help="Command line, e.g. ON, OFF, BLINK")

    return parser.parse_args(argv)


async def _list_ports(settings) -> None:
    """Print the serial ports in enumeration order."""
    from wheelaway.device.link import DeviceLink
    from wheelaway.device.serial_transport import PySerialTransport

    link = DeviceLink(PySerialTransport(baudrate=settings.device.baudrate))
    ports = await link.enumerate()
    if not ports:
        print(link.snapshot.message or "No serial ports found")
        return
    for port in ports:
        print(f"{port.name}\t{port.kind}")


async def _capture_test(settings, output: Path | None) -> None:
    """Capture the screen once and save the encoded image."""
    from wheelaway.capture.base import CaptureError
    from wheelaway.capture.screen import ScreenCaptureProvider
    from wheelaway.domain.models import ImageFormat
    from wheelaway.utils.imaging import decode_data_uri

    provider = ScreenCaptureProvider(
        monitor=settings.capture.monitor,
        image_format=settings.capture.image_format,
        max_height=settings.capture.max_height,
        jpeg_quality=settings.capture.jpeg_quality,
    )
    try:
        screen = await provider.capture_screen()
        fmt, data = decode_data_uri(screen.data)
    except (CaptureError, ValueError) as e:
        print(f"Error: {e}")
        return
    if output is None:
        output = Path("capture_test.png" if fmt == ImageFormat.PNG else "capture_test.jpg")
    output.write_bytes(data)
    print(f"Saved capture to {output} ({screen.width}x{screen.height}, {len(data)} bytes)")


async def _classify_test(settings, image_path: Path | None) -> None:
    """Classify one image and print the verdict."""
    from wheelaway.capture.base import CaptureError
    from wheelaway.classifier.gate import ClassifierGate
    from wheelaway.classifier.openai import OpenAIClassifier
    from wheelaway.domain.models import ImageFormat

    if image_path is not None:
        try:
            data = image_path.read_bytes()
        except OSError as e:
            print(f"Error: {e}")
            return
        suffix = image_path.suffix.lower()
        media_type = ImageFormat.JPEG.media_type if suffix in (".jpg", ".jpeg") else ImageFormat.PNG.media_type
    else:
        from wheelaway.capture.screen import ScreenCaptureProvider
        from wheelaway.utils.imaging import decode_data_uri

        provider = ScreenCaptureProvider(
            monitor=settings.capture.monitor,
            image_format=settings.capture.image_format,
            max_height=settings.capture.max_height,
            jpeg_quality=settings.capture.jpeg_quality,
        )
        try:
            screen = await provider.capture_screen()
            fmt, data = decode_data_uri(screen.data)
        except (CaptureError, ValueError) as e:
            print(f"Error: {e}")
            return
        media_type = fmt.media_type

    classifier = OpenAIClassifier(
        api_key=settings.classifier_api_key(),
        model=settings.classifier.model,
        base_url=settings.classifier.base_url,
        instruction=settings.classifier.instruction_override,
        max_tokens=settings.classifier.max_tokens,
    )
    gate = ClassifierGate(classifier)

    print(f"Classifying {len(data)} bytes with {settings.classifier.model}...")
    verdict = await gate.classify(data, media_type)

    print("\n" + "=" * 60)
    print(f"Productive: {verdict.is_productive}")
    print(f"Confidence: {verdict.confidence:.2f}")
    print(f"Reason:     {verdict.reason}")
    if verdict.is_fallback:
        print("(fallback verdict: the classifier call failed)")
    print(f"Command:    {verdict.actuation_command}")
    print("=" * 60)


async def _send(settings, port: str | None, command: str) -> None:
    """Connect, send one command, print the reply, disconnect."""
    from wheelaway.device.link import DeviceLink, DeviceLinkError
    from wheelaway.device.serial_transport import PySerialTransport

    link = DeviceLink(
        PySerialTransport(
            baudrate=settings.device.baudrate,
            timeout=settings.device.timeout,
            settle_delay=settings.device.settle_delay,
        )
    )
    target = port or settings.device.default_port or ""
    try:
        await link.connect(target)
        reply = await link.send_command(command)
        print(f"{target} <- {command}")
        print(f"{target} -> {reply}")
    except DeviceLinkError as e:
        print(f"Error: {e}")
    finally:
        await link.disconnect()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the wheelaway CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from wheelaway.config.settings import load_settings
    from wheelaway.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        from wheelaway.api.server import serve
        from wheelaway.controller import WheelAway

        host = args.host or settings.api.host
        port = args.port or settings.api.port
        logger.info("Starting control API on %s:%d", host, port)
        serve(WheelAway.from_settings(settings), host=host, port=port)

    elif args.command == "ports":
        asyncio.run(_list_ports(settings))

    elif args.command == "capture-test":
        logger.info("Running capture test")
        asyncio.run(_capture_test(settings, args.output))

    elif args.command == "classify-test":
        logger.info("Running classifier test")
        asyncio.run(_classify_test(settings, args.image))

    elif args.command == "send":
        asyncio.run(_send(settings, args.port, args.device_command))


if __name__ == "__main__":
    main()
