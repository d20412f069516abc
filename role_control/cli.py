#!/usr/bin/env python3
"""
Role-Based Edit Control CLI

Command-line management of role permissions and user overrides.

Usage:
    role-control list-roles --format=json
    role-control update-role editor --edit=true --elementor=false
    role-control test-identity --user-id=7
    role-control export permissions.json
    role-control import permissions.json --dry-run
    role-control reset --confirm
    role-control bulk-update --roles=editor,author --edit=false
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from role_control.config import Settings, get_settings
from role_control.errors import (
    NotFoundError,
    PersistenceError,
    RoleControlError,
    SecurityPolicyError,
    ValidationError,
)
from role_control.kernel.permissions.defaults import DESCRIPTION_KEY, collect_capabilities
from role_control.kernel.permissions.validation import normalize_role_config
from role_control.logging_config import command_var, configure_logging, get_logger
from role_control.main import PermissionCore, open_core

logger = get_logger(__name__)

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

TRUE_VALUES = {"1", "true", "on", "yes"}
FALSE_VALUES = {"0", "false", "off", "no"}

# Commands that take --<capability>=<bool> flags
FLAG_COMMANDS = {"update-role", "bulk-update", "set-override"}


def parse_bool(value: str) -> Optional[bool]:
    """true/false, yes/no, on/off, 1/0 (case-insensitive); None otherwise."""
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    return None


def parse_capability_flags(tokens: Sequence[str]) -> Dict[str, str]:
    """Collect --name=value (or --name value) tokens left over by argparse."""
    flags: Dict[str, str] = {}
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if not token.startswith("--") or len(token) <= 2:
            raise ValidationError(f"Unexpected argument: {token}")
        name, sep, value = token[2:].partition("=")
        if not sep:
            if i + 1 < len(tokens) and not tokens[i + 1].startswith("--"):
                value = tokens[i + 1]
                i += 1
            else:
                raise ValidationError(f"Missing value for --{name}. Use true or false.")
        flags[name] = value
        i += 1
    return flags


async def resolve_capability_flags(core: PermissionCore, tokens: Sequence[str]) -> Dict[str, bool]:
    """Turn raw capability flags into a PermissionSet, rejecting bad names or values."""
    flags = parse_capability_flags(tokens)
    known = await core.admin.known_capabilities()

    permissions: Dict[str, bool] = {}
    for name, raw in flags.items():
        if name not in known:
            raise ValidationError(f"Unknown capability: {name}. Known capabilities: {', '.join(known)}")
        value = parse_bool(raw)
        if value is None:
            raise ValidationError(f"Invalid {name} value. Use true or false.")
        permissions[name] = value
    return permissions


def _yes_no(value: Any) -> str:
    return "Yes" if value is True else "No"


def _title(capability: str) -> str:
    return capability.replace("_", " ").title()


def _line(message: str = "") -> None:
    console.print(message, markup=False, highlight=False)


def _success(message: str) -> None:
    console.print(f"[green]Success:[/green] {escape(message)}", highlight=False)


def _warning(message: str) -> None:
    err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)


def _error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def roles_table(role_permissions: Mapping[str, Mapping[str, Any]], capabilities: List[str]) -> Table:
    table = Table(title="Role Permissions")
    table.add_column("Role", style="cyan")
    for capability in capabilities:
        table.add_column(_title(capability))
    table.add_column("Description")

    for role, entry in role_permissions.items():
        table.add_row(
            escape(str(role)),
            *[_yes_no(entry.get(capability)) for capability in capabilities],
            escape(str(entry.get(DESCRIPTION_KEY, ""))),
        )
    return table


def _print_roles(core: PermissionCore, role_permissions: Mapping[str, Mapping[str, Any]]) -> None:
    capabilities = collect_capabilities(core.store.capabilities, role_permissions)
    console.print(roles_table(role_permissions, capabilities))


def _read_json_file(path: Path) -> Any:
    if not path.exists():
        raise NotFoundError(f"File not found: {path}", resource=str(path))
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(f"File is not valid UTF-8: {path}") from e
    except OSError as e:
        raise NotFoundError(f"Failed to read file: {path}", resource=str(path)) from e
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON format: {e.msg}") from e


# ============================================================================
# Commands
# ============================================================================

async def cmd_list_roles(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    role_permissions = await core.admin.get_role_permissions()
    if args.format == "json":
        print(json.dumps(role_permissions, indent=4))
        return 0
    _print_roles(core, role_permissions)
    return 0


async def cmd_update_role(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    role = args.role
    if not await core.admin.is_known_role(role):
        raise NotFoundError(f"Role '{role}' not found in configuration", resource=role)

    permissions = await resolve_capability_flags(core, extra)
    if not permissions:
        raise ValidationError("No valid parameters provided. Use --<capability>=true|false")

    await core.admin.set_role_permissions(role, permissions, create=False)
    _success(f"Role '{role}' updated successfully")

    updated = await core.admin.get_role_permissions(role)
    for capability, value in updated.items():
        _line(f"{_title(capability)}: {_yes_no(value)}")
    return 0


async def cmd_test_identity(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    user_id = args.user_id or core.settings.current_user_id
    roles = None
    if args.roles is not None:
        roles = [role.strip() for role in args.roles.split(",") if role.strip()]
    if user_id is None and roles is None:
        raise ValidationError("No identity given. Use --user-id or --roles (or set RBEC_CURRENT_USER_ID)")

    report = await core.admin.test_identity(user_id, roles)

    if report.user_id is not None:
        _line(f"User: {report.display_name or '(unknown)'} (ID: {report.user_id})")
    else:
        _line("User: (anonymous)")
    _line(f"Roles: {', '.join(report.roles) if report.roles else '(none)'}")
    for capability, value in report.permissions.items():
        _line(f"Can {capability}: {_yes_no(value)}")
    if report.has_override:
        _line("User override: active")

    _line()
    _line("Role Details:")
    for role, permissions in report.role_details.items():
        details = ", ".join(f"{_title(cap)}={_yes_no(value)}" for cap, value in permissions.items())
        _line(f"  {role}: {details}")
    return 0


async def cmd_export(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    if args.format == "php":
        raise SecurityPolicyError("PHP export is not supported. Please use JSON format instead.")

    payload = await core.admin.export_permissions()
    content = json.dumps(payload, indent=4)

    if args.dry_run:
        _line("DRY RUN - Export preview:")
        print(content)
        return 0

    path = Path(args.file)
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise PersistenceError(f"Failed to write to file: {path}") from e

    _success(f"Configuration exported to: {path}")
    return 0


async def cmd_import(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    path = Path(args.file)
    fmt = args.format
    if fmt == "auto":
        fmt = "php" if path.suffix.lower() == ".php" else "json"

    if fmt == "php":
        raise SecurityPolicyError(
            "PHP configuration import is not supported for security reasons. "
            "Please use JSON format instead."
        )

    payload = _read_json_file(path)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid configuration format")

    # Legacy files hold a bare role map
    if "role_permissions" not in payload and "user_overrides" not in payload:
        payload = {"role_permissions": payload}

    errors = core.store.validator.validate_import_payload(payload)
    if errors:
        raise ValidationError("Configuration validation failed", errors)

    role_permissions = normalize_role_config(payload.get("role_permissions", {}))
    overrides = payload.get("user_overrides", {})

    if args.dry_run:
        _line("DRY RUN - Configuration preview:")
        if role_permissions:
            _print_roles(core, role_permissions)
        if "user_overrides" in payload:
            _line(f"User overrides: {len(overrides)}")
        _line("Use without --dry-run to apply these changes.")
        return 0

    await core.admin.import_permissions(payload)
    _success("Configuration imported successfully")
    if role_permissions:
        _print_roles(core, role_permissions)
    return 0


async def cmd_reset(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    if not args.confirm:
        raise ValidationError("Reset requires --confirm flag")

    await core.admin.reset_to_defaults()
    _success("Configuration reset to defaults")
    _print_roles(core, await core.admin.get_role_permissions())
    return 0


async def cmd_bulk_update(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    known = await core.admin.known_roles()

    if args.file:
        if extra:
            raise ValidationError("Capability flags cannot be combined with --file")
        updates = _read_json_file(Path(args.file))
        if not isinstance(updates, dict):
            raise ValidationError("Invalid update format")
        for role in updates:
            if role not in known:
                _warning(f"Role '{role}' not found, skipping")
        result = await core.admin.bulk_update_from_mapping(updates)
    else:
        if not args.roles:
            raise ValidationError("Either --file or --roles is required")
        roles = [role.strip() for role in args.roles.split(",") if role.strip()]
        permissions = await resolve_capability_flags(core, extra)
        if not permissions:
            raise ValidationError("At least one capability flag is required, e.g. --edit=false")
        for role in roles:
            if role not in known:
                _warning(f"Role '{role}' not found, skipping")
        result = await core.admin.bulk_update(roles, permissions)

    _success(f"Updated roles: {', '.join(result.updated)}")
    return 0


async def cmd_set_override(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    permissions = await resolve_capability_flags(core, extra)
    if not permissions:
        raise ValidationError("No valid parameters provided. Use --<capability>=true|false")

    await core.admin.set_user_override(args.user_id, permissions)
    _success(f"User override saved for '{args.user_id}'")
    for capability, value in (await core.admin.get_user_override(args.user_id)).items():
        _line(f"{_title(capability)}: {_yes_no(value)}")
    return 0


async def cmd_remove_override(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    await core.admin.remove_user_override(args.user_id)
    _success(f"User override removed for '{args.user_id}'")
    return 0


async def cmd_search(core: PermissionCore, args: argparse.Namespace, extra: List[str]) -> int:
    results = await core.admin.search_identities(args.query, args.limit)

    if args.format == "json":
        print(json.dumps([result.model_dump() for result in results], indent=4))
        return 0

    capabilities = await core.admin.known_capabilities()
    table = Table(title=f"Users matching '{escape(args.query)}'")
    for column in ("ID", "Name", "Email", "Roles"):
        table.add_column(column)
    for capability in capabilities:
        table.add_column(_title(capability))
    for result in results:
        table.add_row(
            escape(result.id),
            escape(result.name),
            escape(result.email),
            escape(", ".join(result.roles)),
            *[_yes_no(result.effective_permissions.get(capability)) for capability in capabilities],
        )
    console.print(table)
    return 0


COMMANDS = {
    "list-roles": cmd_list_roles,
    "update-role": cmd_update_role,
    "test-identity": cmd_test_identity,
    "export": cmd_export,
    "import": cmd_import,
    "reset": cmd_reset,
    "bulk-update": cmd_bulk_update,
    "set-override": cmd_set_override,
    "remove-override": cmd_remove_override,
    "search": cmd_search,
}


def setup_parser() -> argparse.ArgumentParser:
    """Set up CLI argument parser"""
    parser = argparse.ArgumentParser(
        prog="role-control",
        description="Role-Based Edit Control - manage role permissions and user overrides",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  %(prog)s list-roles --format=json
  %(prog)s update-role editor --edit=true --elementor=false
  %(prog)s test-identity --user-id=7
  %(prog)s import config.json --dry-run
  %(prog)s bulk-update --roles=editor,author --edit=false
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    list_parser = subparsers.add_parser("list-roles", help="List roles and their permissions", allow_abbrev=False)
    list_parser.add_argument("--format", choices=["table", "json"], default="table", help="Output format")

    update_parser = subparsers.add_parser(
        "update-role",
        help="Update a role: update-role <role> --<capability>=true|false",
        allow_abbrev=False,
    )
    update_parser.add_argument("role", help="Role slug")

    test_parser = subparsers.add_parser("test-identity", help="Resolve every capability for an identity", allow_abbrev=False)
    test_parser.add_argument("--user-id", dest="user_id", help="User ID (default: RBEC_CURRENT_USER_ID)")
    test_parser.add_argument("--roles", help="Comma-separated role list overriding the directory")

    export_parser = subparsers.add_parser("export", help="Export configuration to a file", allow_abbrev=False)
    export_parser.add_argument("file", help="Output file")
    export_parser.add_argument("--format", choices=["json", "php"], default="json", help="Export format")
    export_parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Print instead of writing")

    import_parser = subparsers.add_parser("import", help="Import configuration from a file", allow_abbrev=False)
    import_parser.add_argument("file", help="Input file")
    import_parser.add_argument("--format", choices=["auto", "json", "php"], default="auto", help="Import format")
    import_parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Preview without applying")

    reset_parser = subparsers.add_parser("reset", help="Reset configuration to defaults", allow_abbrev=False)
    reset_parser.add_argument("--confirm", action="store_true", help="Confirm the reset operation")

    bulk_parser = subparsers.add_parser(
        "bulk-update",
        help="Update several roles: --roles=a,b --<capability>=true|false, or --file=<json>",
        allow_abbrev=False,
    )
    bulk_parser.add_argument("--roles", help="Comma-separated list of roles")
    bulk_parser.add_argument("--file", help="JSON file of {role: {capability: bool}}")

    override_parser = subparsers.add_parser(
        "set-override",
        help="Set a user override: set-override <user_id> --<capability>=true|false",
        allow_abbrev=False,
    )
    override_parser.add_argument("user_id", help="User ID")

    remove_parser = subparsers.add_parser("remove-override", help="Remove a user override", allow_abbrev=False)
    remove_parser.add_argument("user_id", help="User ID")

    search_parser = subparsers.add_parser("search", help="Search identities", allow_abbrev=False)
    search_parser.add_argument("query", help="Text matched against name, login and email")
    search_parser.add_argument("--limit", type=int, default=10, help="Maximum results")
    search_parser.add_argument("--format", choices=["table", "json"], default="table", help="Output format")

    return parser


async def run_command(args: argparse.Namespace, extra: List[str], settings: Settings) -> int:
    command_var.set(args.command)
    async with open_core(settings) as core:
        return await COMMANDS[args.command](core, args, extra)


def main(argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> int:
    parser = setup_parser()
    args, extra = parser.parse_known_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if extra and args.command not in FLAG_COMMANDS:
        parser.error(f"unrecognized arguments: {' '.join(extra)}")

    settings = settings or get_settings()
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    try:
        return asyncio.run(run_command(args, extra, settings))
    except RoleControlError as e:
        _error(e.message)
        for detail in getattr(e, "errors", []):
            if detail != e.message:
                err_console.print(f"  - {escape(detail)}", highlight=False)
        logger.debug(f"{args.command} failed: {e.error_type.value}")
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
