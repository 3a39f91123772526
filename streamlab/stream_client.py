#!/usr/bin/env python3
"""
Streamlab control client

Command-line client for the HTTP surface of a running streamlab server.

Usage:
    streamctl streams
    streamctl start books --interval 1000 --duration 30000 --error-rate 10
    streamctl stop books
    streamctl stop-all
    streamctl presets
    streamctl preset errorHandling
"""

import os
import sys
import json
import logging
import argparse
from typing import Dict, Any, Optional

import requests


logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:3001"


class StreamClientError(Exception):
    """Raised when the server rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class StreamControlClient:
    """
    Thin client over the ``/rxjs`` routes.

    Requests are sent once; there is no retry.
    """

    def __init__(self, base_url: str = DEFAULT_URL, timeout: float = 10, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            base_url: Server base URL
            timeout: Per-request timeout in seconds
            session: Optional requests session (one is created if not provided)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'streamctl/1.0'
        })

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/rxjs{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise StreamClientError(f"Could not reach {url}: {e}")

        if response.status_code >= 400:
            try:
                error = response.json().get("error", response.text)
            except ValueError:
                error = response.text
            raise StreamClientError(f"HTTP {response.status_code}: {error}", response.status_code)

        return response.json()

    def list_streams(self) -> Dict[str, Any]:
        return self._request("GET", "/streams")

    def start_stream(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/streams/start", config)

    def stop_stream(self, stream_name: str) -> Dict[str, Any]:
        return self._request("POST", f"/streams/stop/{stream_name}")

    def stop_all(self) -> Dict[str, Any]:
        return self._request("POST", "/streams/stop-all")

    def list_presets(self) -> Dict[str, Any]:
        return self._request("GET", "/presets")

    def start_preset(self, preset_name: str) -> Dict[str, Any]:
        return self._request("POST", f"/presets/{preset_name}")


def build_stream_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect the stream options given on the command line (wire form)."""
    options = {
        "interval": args.interval,
        "duration": args.duration,
        "errorRate": args.error_rate,
        "duplicateRate": args.duplicate_rate,
        "delayVariation": args.delay_variation,
        "burstSize": args.burst_size,
        "burstInterval": args.burst_interval,
    }
    config = {"streamName": args.stream_name}
    config.update({key: value for key, value in options.items() if value is not None})
    if args.burst:
        config["burstMode"] = True
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Streamlab stream control client")
    parser.add_argument(
        "--url",
        default=os.getenv("STREAMLAB_URL", DEFAULT_URL),
        help=f"Server base URL (default: {DEFAULT_URL})"
    )
    parser.add_argument("--timeout", type=float, default=10, help="Request timeout in seconds")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("streams", help="List active streams")

    start = commands.add_parser("start", help="Start a stream")
    start.add_argument("stream_name", help="Stream name (books, issues, ...)")
    start.add_argument("--interval", type=float, help="ms between emissions")
    start.add_argument("--duration", type=float, help="Stream lifetime in ms")
    start.add_argument("--error-rate", type=float, help="Error chance per tick (percent)")
    start.add_argument("--duplicate-rate", type=float, help="Duplicate chance per tick (percent)")
    start.add_argument("--delay-variation", type=float, help="Max random delay in ms")
    start.add_argument("--burst", action="store_true", help="Emit in bursts")
    start.add_argument("--burst-size", type=int, help="Attempts per burst")
    start.add_argument("--burst-interval", type=float, help="ms between bursts")

    stop = commands.add_parser("stop", help="Stop a stream")
    stop.add_argument("stream_name")

    commands.add_parser("stop-all", help="Stop all streams")
    commands.add_parser("presets", help="List presets")

    preset = commands.add_parser("preset", help="Start a preset")
    preset.add_argument("preset_name")

    return parser


def run_command(client: StreamControlClient, args: argparse.Namespace) -> Dict[str, Any]:
    if args.command == "streams":
        return client.list_streams()
    if args.command == "start":
        return client.start_stream(build_stream_config(args))
    if args.command == "stop":
        return client.stop_stream(args.stream_name)
    if args.command == "stop-all":
        return client.stop_all()
    if args.command == "presets":
        return client.list_presets()
    if args.command == "preset":
        return client.start_preset(args.preset_name)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None) -> int:
    """Main entry point."""
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s - %(message)s')
    args = build_parser().parse_args(argv)
    client = StreamControlClient(args.url, timeout=args.timeout)

    try:
        result = run_command(client, args)
    except StreamClientError as e:
        logger.error(str(e))
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
