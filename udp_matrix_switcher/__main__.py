#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import asyncio
import logging
from signal import SIGINT, SIGTERM

from udp_matrix_switcher.internal_types import *

from udp_matrix_switcher import (
    __version__ as pkg_version,
    SwitcherInstance,
    ModuleConfig,
    ConnectionStatus,
    DeviceRecord,
    DEFAULT_PORT,
  )
from udp_matrix_switcher.util import get_local_ip_addresses_and_interfaces

DEFAULT_WAIT_TIME = 3.0
"""The default amount of time (in seconds) to wait for discovery responses."""

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    def _get_config(self) -> ModuleConfig:
        config_file: Optional[str] = self._args.config_file
        config = ModuleConfig() if config_file is None else ModuleConfig.load_file(config_file)
        return config.with_overrides(host=self._args.host, port=self._args.port)

    async def _start_instance(self, instance: SwitcherInstance) -> None:
        if not await instance.init():
            raise CmdExitError(1, f"UDP transport failed: {instance.status_message}")

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    async def cmd_discover(self) -> int:
        wait_time: float = self._args.wait_time
        instance = SwitcherInstance(self._get_config())
        try:
            await self._start_instance(instance)
            if not instance.discover_device():
                raise CmdExitError(1, "Discovery probe could not be sent")
            await asyncio.sleep(wait_time)
            results: List[JsonableDict] = [ record.to_json_data() for record in instance.devices ]
        finally:
            await instance.destroy()
        print(json.dumps(results, indent=2, sort_keys=True))
        return 0

    async def cmd_send(self) -> int:
        hex_command: str = ' '.join(self._args.hex_command)
        target_ip: Optional[str] = self._args.target_ip
        instance = SwitcherInstance(self._get_config())
        try:
            await self._start_instance(instance)
            if not instance.send_hex_command(hex_command, target_ip):
                raise CmdExitError(1, "Command was not sent")
            # let the event loop flush the datagram before the socket is closed
            await asyncio.sleep(0)
        finally:
            await instance.destroy()
        return 0

    async def cmd_monitor(self) -> int:
        stop = asyncio.Event()
        failed = False

        def print_status(status: ConnectionStatus, message: Optional[str]) -> None:
            nonlocal failed
            print(json.dumps({ "status": status.value, "message": message }, sort_keys=True))
            sys.stdout.flush()
            if status == ConnectionStatus.CONNECTION_FAILURE:
                failed = True
                stop.set()

        def print_device(record: DeviceRecord) -> None:
            print(json.dumps({ "device": record.to_json_data() }, sort_keys=True))
            sys.stdout.flush()

        instance = SwitcherInstance(self._get_config(), status_sink=print_status)
        instance.on_device_discovered(print_device)
        loop = asyncio.get_running_loop()
        for signal in (SIGINT, SIGTERM):
            loop.add_signal_handler(signal, stop.set)
        try:
            if await instance.init():
                if self._args.discover:
                    instance.discover_device()
                await stop.wait()
        finally:
            for signal in (SIGINT, SIGTERM):
                loop.remove_signal_handler(signal)
            await instance.destroy()
        return 1 if failed else 0

    async def cmd_interfaces(self) -> int:
        include_loopback: bool = self._args.include_loopback
        results: List[JsonableDict] = [
            { "address": ip, "interface": ifname, "broadcast": broadcast }
            for ip, ifname, broadcast in get_local_ip_addresses_and_interfaces(include_loopback=include_loopback)
          ]
        print(json.dumps(results, indent=2, sort_keys=True))
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the udp-matrix-switcher command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Discover and control UDP matrix/multiviewer switchers.")


        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.add_argument('-c', '--config', dest='config_file', default=None,
                            help='''A JSON configuration file with "host" and "port" properties. Default: none''')
        parser.add_argument('--host', default=None,
                            help='''The target device IP address. Overrides the configuration file.''')
        parser.add_argument('-p', '--port', type=int, default=None,
                            help=f'''The target device UDP port. Overrides the configuration file. Default: {DEFAULT_PORT}''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')


        # ======================= discover

        parser_discover = subparsers.add_parser('discover', description="Broadcast a discovery probe and list the switchers that answer")
        parser_discover.add_argument('--wait-time', type=float, default=DEFAULT_WAIT_TIME,
                            help=f'''The amount of time to wait for responses, in seconds. Default: {DEFAULT_WAIT_TIME}''')
        parser_discover.set_defaults(func=self.cmd_discover)

        # ======================= send

        parser_send = subparsers.add_parser('send', description="Send a custom HEX command to a switcher")
        parser_send.add_argument('hex_command', nargs='+',
                            help='''The command as hex digit pairs, e.g. "a5 6c ...". Whitespace is ignored.''')
        parser_send.add_argument('-t', '--target-ip', dest='target_ip', default=None,
                            help='''The IP address to send to. Default: the configured host''')
        parser_send.set_defaults(func=self.cmd_send)

        # ======================= monitor

        parser_monitor = subparsers.add_parser('monitor', description="Print status changes and discovery responses until interrupted")
        parser_monitor.add_argument('--discover', action='store_true', default=False,
                            help='Broadcast a discovery probe after starting. Default: False')
        parser_monitor.set_defaults(func=self.cmd_monitor)

        # ======================= interfaces

        parser_interfaces = subparsers.add_parser('interfaces', description="List local IPv4 addresses, preferred first")
        parser_interfaces.add_argument('--include-loopback', dest='include_loopback', action='store_true', default=False,
                            help='Include loopback addresses. Default: False')
        parser_interfaces.set_defaults(func=self.cmd_interfaces)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"udp-matrix-switcher: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"udp-matrix-switcher: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
