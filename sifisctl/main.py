#!/usr/bin/env python3
"""
sifisctl - SIFIS-Home Runtime CLI

Command-line interface for controlling devices through the sifisd runtime.

Usage:
    sifisctl ops        - Show the device contract and its hazards
    sifisctl devices    - List devices
    sifisctl lamps      - Show lamp status
    sifisctl sinks      - Show sink status
    sifisctl doors      - Show door status
    sifisctl fridges    - Show fridge status
    sifisctl call       - Call an operation on a device
"""

import sys
import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from sifisd.client import SifisClient
from sifisd.config import resolve_socket_path
from sifisd.contract import DeviceClass, operations_for
from sifisd.errors import RequestError, SifisError
from sifisd.hazards import Hazard


def parse_value(text: str) -> Any:
    """Interpret a command-line argument as a JSON literal, or a plain string."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def format_hazards(hazards: Iterable[Hazard]) -> str:
    names = sorted(h.value for h in hazards)
    return ", ".join(names) if names else "none"


class SifisCtl:
    """sifisctl CLI application."""

    def __init__(self, socket_path: Path):
        """Initialize CLI with socket path."""
        self.socket_path = socket_path

    def _run(self, action: Callable[[SifisClient], Awaitable[int]]) -> int:
        """Run an action on a fresh session, reporting errors like the runtime does."""
        async def session() -> int:
            async with await SifisClient.connect(self.socket_path) as client:
                return await action(client)

        try:
            return asyncio.run(session())
        except RequestError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except SifisError as e:
            print(f"Failed to connect to sifisd: {e}", file=sys.stderr)
            return 1

    def ops(self, kind: Optional[str]) -> int:
        """Show operations and their declared hazards. Works offline."""
        try:
            kinds = [DeviceClass.from_name(kind)] if kind else list(DeviceClass)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        for device_class in kinds:
            print(f"{device_class.value.capitalize()} operations")
            print("=" * 78)
            print(f"{'Operation':<24} {'Params':<16} {'Returns':<8} {'Hazards'}")
            print("-" * 78)
            for op in operations_for(device_class):
                params = ",".join(f"{name}:{ptype.value}" for name, ptype in op.params)
                print(
                    f"{op.name:<24} {params or '-':<16} {op.returns.value:<8} "
                    f"{format_hazards(op.hazards)}"
                )
            print()
        return 0

    def devices(self, kind: Optional[str]) -> int:
        """List devices of one or all classes."""
        async def action(client: SifisClient) -> int:
            kinds = [kind] if kind else [c.value for c in DeviceClass]
            print(f"{'Device id':<20} {'Kind':<8}")
            print("-" * 30)
            for k in kinds:
                for device_id in await client.find(k):
                    print(f"{device_id:<20} {k:<8}")
            return 0

        return self._run(action)

    def lamps(self) -> int:
        """Show lamp status."""
        async def action(client: SifisClient) -> int:
            print(f"{'Lamp id':<15} {'Status':<7} {'Brightness':<11} {'Power':<6}")
            for lamp in await client.lamps():
                on = (await lamp.get_on_off()).value
                brightness = (await lamp.get_brightness()).value
                power = (await lamp.get_power_draw()).value
                status = "On" if on else "Off"
                print(f"{lamp.id:<15} {status:<7} {brightness:<11} {power:>3} W")
            return 0

        return self._run(action)

    def sinks(self) -> int:
        """Show sink status."""
        async def action(client: SifisClient) -> int:
            print(f"{'Sink id':<15} {'Flow':<4} {'Water level':<11} {'Temperature':<11}")
            for sink in await client.sinks():
                flow = (await sink.get_flow()).value
                level = (await sink.get_level()).value
                temperature = (await sink.get_temperature()).value
                print(f"{sink.id:<15} {flow:<4} {level:<11} {temperature:<11}")
            return 0

        return self._run(action)

    def doors(self) -> int:
        """Show door status."""
        async def action(client: SifisClient) -> int:
            print(f"{'Door id':<15} {'Open?':<5} {'Lock status':<11}")
            for door in await client.doors():
                is_open = (await door.is_open()).value
                lock_status = (await door.lock_status()).value
                print(f"{door.id:<15} {str(is_open):<5} {lock_status:<11}")
            return 0

        return self._run(action)

    def fridges(self) -> int:
        """Show fridge status."""
        async def action(client: SifisClient) -> int:
            print(f"{'Fridge id':<15} {'Open?':<5} {'Temperature':<11} {'Target':<6}")
            for fridge in await client.fridges():
                is_open = (await fridge.is_open()).value
                temperature = (await fridge.get_temperature()).value
                target = (await fridge.get_target_temperature()).value
                print(f"{fridge.id:<15} {str(is_open):<5} {temperature:<11} {target:<6}")
            return 0

        return self._run(action)

    def call(self, device_id: str, operation: str, raw_args: List[str]) -> int:
        """Call one operation and show the value and the hazards incurred."""
        args = [parse_value(a) for a in raw_args]

        async def action(client: SifisClient) -> int:
            result = await client.call(device_id, operation, *args)
            print(json.dumps(result.value))
            print(f"Hazards: {format_hazards(result.hazards)}", file=sys.stderr)
            return 0

        return self._run(action)


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SIFIS-Home Runtime CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  ops         Show the device contract and its hazards
  devices     List devices
  lamps       Show lamp status
  sinks       Show sink status
  doors       Show door status
  fridges     Show fridge status
  call        Call an operation on a device

Examples:
  sifisctl ops lamp
  sifisctl lamps
  sifisctl call lamp1 set_brightness 50
  sifisctl call "door 1" open
""",
    )

    parser.add_argument(
        "-s", "--socket",
        type=Path,
        default=None,
        help="Path to sifisd socket (default: $SIFIS_SERVER or /var/run/sifis.sock)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    # ops command
    ops_parser = subparsers.add_parser("ops", help="Show the device contract")
    ops_parser.add_argument("kind", nargs="?", help="Device class")

    # devices command
    devices_parser = subparsers.add_parser("devices", help="List devices")
    devices_parser.add_argument("kind", nargs="?", help="Device class")

    # status commands
    subparsers.add_parser("lamps", help="Show lamp status")
    subparsers.add_parser("sinks", help="Show sink status")
    subparsers.add_parser("doors", help="Show door status")
    subparsers.add_parser("fridges", help="Show fridge status")

    # call command
    call_parser = subparsers.add_parser("call", help="Call an operation on a device")
    call_parser.add_argument("device", help="Device id")
    call_parser.add_argument("operation", help="Operation name")
    call_parser.add_argument("args", nargs="*", help="Arguments (JSON literals)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Create CLI instance
    cli = SifisCtl(args.socket or resolve_socket_path())

    # Dispatch command
    if args.command == "ops":
        return cli.ops(args.kind)
    elif args.command == "devices":
        return cli.devices(args.kind)
    elif args.command == "lamps":
        return cli.lamps()
    elif args.command == "sinks":
        return cli.sinks()
    elif args.command == "doors":
        return cli.doors()
    elif args.command == "fridges":
        return cli.fridges()
    elif args.command == "call":
        return cli.call(args.device, args.operation, args.args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
