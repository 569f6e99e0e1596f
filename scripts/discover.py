#!/usr/bin/env python3
"""
OSPF Topology Discovery Script

Scans subnets for RouterOS routers, builds the OSPF topology and reports
links whose cost differs by direction.

Usage:
    python scripts/discover.py 10.0.0.0/24 --config config/settings.yaml
    python scripts/discover.py -c config/settings.yaml -f json -o topology.json
"""

import argparse
import logging
import os
import sys
from typing import List

# Add parent directory to path for imports when running as script
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
if project_root not in sys.path:
    sys.path.insert(0, project_root)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    # paramiko is chatty at INFO about every session it opens
    logging.getLogger("paramiko").setLevel(logging.WARNING)


def format_event(subnet: str, event) -> str:
    """One progress line for the console."""
    line = f"[{subnet}] {event.percent_complete:3d}% {event.status:<9} routers={event.routers_found}"
    if event.current_address:
        line += f"  {event.current_address}"
    if event.asymmetries_found is not None:
        line += f"  asymmetries={event.asymmetries_found}"
    if event.error:
        line += f"  error: {event.error}"
    return line


def discover(settings, subnets: List[str], quiet: bool = False):
    """
    Scan each subnet as a background job and follow its progress.

    Args:
        settings: Loaded Settings
        subnets: Subnets to scan, one job each
        quiet: Suppress progress lines

    Returns:
        Tuple of (orchestrator, List[ScanJob])
    """
    from engine import AsymmetryDetector
    from scanner import ScanOrchestrator
    from store import MemoryStore
    from subnet import parse_subnet
    from transport import build_transport
    from tunnel import SSHTunnel

    logger = logging.getLogger(__name__)

    # Reject bad subnets before opening the tunnel or starting any job
    for subnet in subnets:
        parse_subnet(subnet, settings.scan.max_addresses)

    tunnel = None
    if settings.tunnel.enabled:
        tunnel = SSHTunnel(timeout=settings.scan.timeout)
        tunnel.connect(
            settings.tunnel.host,
            settings.tunnel.username,
            password=settings.tunnel.password,
            port=settings.tunnel.port,
            key_file=settings.tunnel.key_file,
        )

    orchestrator = ScanOrchestrator(
        store=MemoryStore(),
        transport=build_transport(settings, tunnel),
        credentials=settings.credentials(),
        port=settings.scan.port,
        timeout=settings.scan.timeout,
        max_addresses=settings.scan.max_addresses,
        detector=AsymmetryDetector(
            medium_threshold=settings.asymmetry.medium_threshold,
            high_threshold=settings.asymmetry.high_threshold,
        ),
    )

    jobs = []
    try:
        for subnet in subnets:
            job = orchestrator.create_scan(subnet)
            subscription = orchestrator.subscribe(job.id)
            orchestrator.launch(job.id)

            with subscription:
                for event in subscription:
                    if not quiet:
                        print(format_event(job.subnet, event), flush=True)

            job = orchestrator.wait(job.id)
            jobs.append(job)
            if job.status == "error":
                logger.error(f"Scan of {job.subnet} failed: {job.error}")
                break
    finally:
        if tunnel is not None:
            tunnel.disconnect()

    return orchestrator, jobs


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Discover OSPF topology and asymmetric routing across RouterOS routers"
    )
    parser.add_argument(
        "subnets",
        nargs="*",
        help="Subnets to scan in CIDR notation (default: default_subnets from settings)"
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to settings file (default: built-in defaults and environment)"
    )
    parser.add_argument(
        "-o", "--output",
        help="Output file path (default: stdout for text, required for JSON)"
    )
    parser.add_argument(
        "-f", "--format",
        choices=["json", "text"],
        default="text",
        help="Output format: text or json (default: text)"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Do not print progress lines"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    # Import here to allow --help to work without dependencies
    from settings import load_settings, SettingsError
    from subnet import SubnetError
    from transport import TransportError
    from tunnel import TunnelError
    from output import to_json, to_text, format_routes

    try:
        settings = load_settings(args.config)
        subnets = args.subnets or settings.default_subnets
        if not subnets:
            print("Error: no subnets given and no default_subnets configured", file=sys.stderr)
            sys.exit(1)

        if args.format == "json" and not args.output:
            print("Error: --output is required for JSON format", file=sys.stderr)
            sys.exit(1)

        orchestrator, jobs = discover(settings, subnets, quiet=args.quiet)
        topology = orchestrator.topology()
        routes = orchestrator.asymmetric_routes()

        if args.format == "json":
            to_json(topology, routes, args.output, jobs)
            print(f"Topology written to {args.output}")

            # Also print summary
            print(f"\nDiscovered {len(topology.nodes)} routers and {len(topology.edges)} links")
            print(format_routes(routes))

        else:  # text format
            text = to_text(topology, routes, jobs)
            if args.output:
                with open(args.output, "w", encoding="utf-8") as f:
                    f.write(text)
                print(f"Report written to {args.output}")
            else:
                print(text)

        if any(job.status == "error" for job in jobs):
            sys.exit(1)

    except SettingsError as e:
        logger.error(f"Settings error: {e}")
        sys.exit(1)
    except SubnetError as e:
        logger.error(f"Subnet error: {e}")
        sys.exit(1)
    except TunnelError as e:
        logger.error(f"Tunnel error: {e}")
        sys.exit(1)
    except TransportError as e:
        logger.error(f"Transport error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
