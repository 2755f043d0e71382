#!/usr/bin/env python3
"""
Dev Portal - CLI and API server for the M-Suite development services.

Usage:
    devportal start <target>        # Start a service or the suite
    devportal stop <target>         # Stop a service or the suite
    devportal restart <target>      # Restart a service or the suite
    devportal status                # Running state of every service
    devportal ports                 # Listener state of every port
    devportal health                # Composite readiness
    devportal services              # Registered services
    devportal logs <service> [n]    # Tail a service log
    devportal server                # Start API server
"""

import argparse
import json
import logging
import sys
from datetime import datetime

import uvicorn

from devportal.core.config import settings
from devportal.core.registry import SUITE
from devportal.core.service_manager import ServiceManager

logger = logging.getLogger("devportal")

# ---------------------------------------------------------------------------
# CLI Functions
# ---------------------------------------------------------------------------


def cli_control(args, manager: ServiceManager) -> int:
    result = manager.control(args.target, args.command)
    symbol = "✓" if result.success else "✗"
    text = result.message or result.error or ""
    print(f"{symbol} {result.target} {result.action}: {text}")
    if not result.success and result.error and result.error != result.message:
        print(f"  {result.error}", file=sys.stderr)
    return 0 if result.success else 1


def cli_status(args, manager: ServiceManager) -> int:
    print(
        json.dumps(
            {
                "services": [s.model_dump() for s in manager.get_service_status()],
                "timestamp": datetime.now().isoformat(),
            },
            indent=2,
        )
    )
    return 0


def cli_ports(args, manager: ServiceManager) -> int:
    for p in manager.get_port_status():
        symbol = "✓" if p.running else "✗"
        pids = ",".join(str(pid) for pid in p.pids) or "-"
        print(f"  {symbol} {p.port:<6} {p.owner or '':16} pids={pids}")
    return 0


def cli_health(args, manager: ServiceManager) -> int:
    services = manager.get_health()
    healthy_count = sum(1 for s in services if s.healthy)
    print(f"Services: {healthy_count}/{len(services)} healthy\n")
    for svc in services:
        symbol = "✓" if svc.healthy else "✗"
        state = "running" if svc.running else "offline"
        print(f"  {symbol} {svc.id:16} {state}")
    return 0


def cli_services(args, manager: ServiceManager) -> int:
    for svc in manager.list_services():
        ports = ",".join(str(p) for p in svc.ports)
        print(f"  {svc.id:16} {svc.name:20} ports={ports}")
    return 0


def cli_logs(args, manager: ServiceManager) -> int:
    try:
        lines = manager.get_logs(args.service, args.lines)
    except ValueError as e:
        print(e, file=sys.stderr)
        return 1
    for line in lines:
        print(line, end="")
    return 0


def cli_server(args, manager=None) -> int:
    logger.info("Starting Dev Portal API on %s:%d", args.host, args.port)
    logger.info("API docs: http://%s:%d/docs", args.host, args.port)

    uvicorn.run(
        "devportal.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )
    return 0


# ---------------------------------------------------------------------------
# Main CLI
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dev Portal - control plane for local development services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for action in ("start", "stop", "restart"):
        p = subparsers.add_parser(action, help=f"{action.capitalize()} a target")
        p.add_argument("target", help=f"Service id or '{SUITE}'")
        p.set_defaults(func=cli_control)

    subparsers.add_parser("status", help="Show service status").set_defaults(
        func=cli_status
    )
    subparsers.add_parser("ports", help="Show port status").set_defaults(
        func=cli_ports
    )
    subparsers.add_parser("health", help="Health check").set_defaults(
        func=cli_health
    )
    subparsers.add_parser("services", help="List services").set_defaults(
        func=cli_services
    )

    logs_parser = subparsers.add_parser("logs", help="Show service logs")
    logs_parser.add_argument("service")
    logs_parser.add_argument("lines", type=int, nargs="?", default=100)
    logs_parser.set_defaults(func=cli_logs)

    server_parser = subparsers.add_parser("server", help="Start FastAPI server")
    server_parser.add_argument("--host", default=settings.api_host)
    server_parser.add_argument("--port", type=int, default=settings.api_port)
    server_parser.add_argument("--reload", action="store_true")
    server_parser.set_defaults(func=cli_server)

    return parser


def main(argv=None, manager: ServiceManager = None) -> int:
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s  %(levelname)-8s  %(message)s"
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    if args.func is cli_server:
        return cli_server(args)
    return args.func(args, manager or ServiceManager())


if __name__ == "__main__":
    sys.exit(main())
