"""
TeamCity CLI - Command-line interface.

This layer provides the user-facing CLI commands, using the SDK layer
for all operations. It handles:
- Argument parsing
- TTY detection for human vs machine output
- Pretty formatting for human output
- JSON output for piping/automation
"""

import argparse
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from teamcity_cli.core.client import TeamCityError, ValidationError
from teamcity_cli.core.types import Build
from teamcity_cli.sdk import TeamCityClient

# =============================================================================
# Output Helpers
# =============================================================================


def is_tty() -> bool:
    """Check if stdout is a TTY (human) or pipe (machine)."""
    return sys.stdout.isatty()


def json_output(data: Any, pretty: bool = False) -> None:
    """Print JSON output."""
    indent = 2 if pretty or is_tty() else None
    print(json.dumps(data, indent=indent, default=str))


def error_output(error: TeamCityError) -> None:
    """Print error and exit."""
    json_output(error.to_dict())
    sys.exit(1)


def table_output(
    headers: list[str],
    rows: list[list[str]],
    widths: list[int],
) -> None:
    """Print a formatted table for human output."""
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
    print(header_line)
    print("-" * len(header_line))

    for row in rows:
        print("  ".join(str(v)[:w].ljust(w) for v, w in zip(row, widths)))


def build_rows(builds: list[Build]) -> list[list[str]]:
    """Flatten builds into table rows."""
    return [
        [
            str(b.id),
            b.build_type_id or "",
            b.number or "",
            b.state or "",
            b.status or "",
            b.branch_name or "",
        ]
        for b in builds
    ]


BUILD_HEADERS = ["ID", "Build Type", "Number", "State", "Status", "Branch"]
BUILD_WIDTHS = [10, 30, 16, 10, 10, 24]


def parse_properties(pairs: list[str] | None) -> dict[str, str]:
    """Parse repeated ``name=value`` arguments into a mapping."""
    properties: dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ValidationError(f"Invalid property {pair!r}, expected name=value")
        properties[name] = value
    return properties


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_queue(client: TeamCityClient, args: argparse.Namespace) -> None:
    """Queue a build."""
    try:
        build = client.queue_build(
            args.build_type_id,
            branch_name=args.branch or "",
            properties=parse_properties(args.property),
        )
        json_output(build.to_dict())
    except TeamCityError as e:
        error_output(e)


def cmd_builds_search(client: TeamCityClient, args: argparse.Namespace) -> None:
    """Search builds by locator."""
    try:
        builds = client.search_build(args.locator)

        if is_tty():
            if not builds:
                print("No builds found.")
                return
            table_output(BUILD_HEADERS, build_rows(builds), BUILD_WIDTHS)
        else:
            json_output({"data": [b.to_dict() for b in builds], "count": len(builds)})
    except TeamCityError as e:
        error_output(e)


def cmd_builds_get(client: TeamCityClient, args: argparse.Namespace) -> None:
    """Get a build by ID."""
    try:
        build = client.get_build(args.build_id)
        json_output(build.to_dict())
    except TeamCityError as e:
        error_output(e)


def cmd_builds_props(client: TeamCityClient, args: argparse.Namespace) -> None:
    """Get resulting properties of a build."""
    try:
        props = client.get_build_properties(args.build_id)

        if is_tty():
            if not props:
                print("No properties found.")
                return
            table_output(["Name", "Value"], [[k, v] for k, v in props.items()], [40, 60])
        else:
            json_output(props)
    except TeamCityError as e:
        error_output(e)


def cmd_builds_cancel(client: TeamCityClient, args: argparse.Namespace) -> None:
    """Cancel a build."""
    try:
        client.cancel_build(args.build_id, args.comment, read_into_queue=not args.no_requeue)
        json_output({"success": True, "message": f"Build {args.build_id} cancelled"})
    except TeamCityError as e:
        error_output(e)


def cmd_changes(client: TeamCityClient, args: argparse.Namespace) -> None:
    """List changes at a resource path."""
    try:
        changes = client.get_changes(args.path)

        if is_tty():
            table_output(
                ["ID", "Version", "User", "Comment"],
                [
                    [str(c.id), (c.version or "")[:12], c.username or "", (c.comment or "").strip()]
                    for c in changes
                ],
                [10, 12, 20, 50],
            )
        else:
            json_output({"data": [c.to_dict() for c in changes]})
    except TeamCityError as e:
        error_output(e)


# =============================================================================
# Main CLI
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tc",
        description="TeamCity CLI - Command-line interface for the TeamCity REST API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration:
  TEAMCITY_HOST, TEAMCITY_USERNAME, TEAMCITY_PASSWORD (a .env file is read too)

Examples:
  tc queue Project_Build --branch main --property env.DEPLOY=1
  tc builds search "buildType:Project_Build,count:5"
  tc builds props 12345 | jq '."build.number"'
  tc builds cancel 12345 --comment "superseded"
""",
    )
    parser.add_argument("--host", help="Server host (overrides TEAMCITY_HOST)")
    parser.add_argument("--user", "-u", help="User name (overrides TEAMCITY_USERNAME)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests to stderr")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ========== Queue ==========
    queue = subparsers.add_parser("queue", help="Queue a build")
    queue.add_argument("build_type_id", help="Build configuration ID")
    queue.add_argument("--branch", "-b", help="Branch name (sent as refs/heads/<branch>)")
    queue.add_argument(
        "--property",
        "-p",
        action="append",
        metavar="NAME=VALUE",
        help="Build parameter, may be repeated",
    )
    queue.set_defaults(func=cmd_queue)

    # ========== Builds ==========
    builds = subparsers.add_parser("builds", help="Find, inspect and cancel builds")
    builds.set_defaults(func=lambda _c, _a: builds.print_help())
    builds_sub = builds.add_subparsers(dest="subcommand")

    b_search = builds_sub.add_parser("search", help="Search builds by locator")
    b_search.add_argument("locator", help="Build locator, passed through as-is")
    b_search.set_defaults(func=cmd_builds_search)

    b_get = builds_sub.add_parser("get", help="Get build details")
    b_get.add_argument("build_id", help="Build ID")
    b_get.set_defaults(func=cmd_builds_get)

    b_props = builds_sub.add_parser("props", help="Get resulting build properties")
    b_props.add_argument("build_id", help="Build ID")
    b_props.set_defaults(func=cmd_builds_props)

    b_cancel = builds_sub.add_parser("cancel", help="Cancel a build")
    b_cancel.add_argument("build_id", type=int, help="Build ID")
    b_cancel.add_argument("--comment", "-c", default="", help="Cancellation comment")
    b_cancel.add_argument("--no-requeue", action="store_true", help="Don't put the build back into the queue")
    b_cancel.set_defaults(func=cmd_builds_cancel)

    # ========== Changes ==========
    changes = subparsers.add_parser("changes", help="List changes at a resource path")
    changes.add_argument("path", help="Server-relative path, e.g. a build's changes href")
    changes.set_defaults(func=cmd_changes)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    try:
        client = TeamCityClient(host=args.host, username=args.user)
    except TeamCityError as e:
        error_output(e)

    # Run command (all subparsers have default funcs that print help)
    args.func(client, args)


if __name__ == "__main__":
    main()
