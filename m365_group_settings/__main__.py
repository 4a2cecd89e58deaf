"""
M365 Group Settings: command-line entry point.

Usage:
    python -m m365_group_settings get-settings --profile contoso-prod
    python -m m365_group_settings create-settings
    python -m m365_group_settings set-allowed-group --name "Group Creators"
    python -m m365_group_settings add-blocked-words CEO Payroll HR
    python -m m365_group_settings delete-settings --yes
    python -m m365_group_settings enable-group-creation --what-if

Profile management:
    python -m m365_group_settings profile add <name> --tenant-id ... --client-id ...
    python -m m365_group_settings profile list
    python -m m365_group_settings profile remove <name>
    python -m m365_group_settings profile set-default <name>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import httpx

from . import commands
from .auth.authenticator import Authenticator, AuthenticationError
from .config import ToolConfig, CertificateAuth, SecretAuth, DelegatedAuth
from .directory.groups import GroupResolver
from .graph.client import GraphClient
from .profiles import AUTH_MODES, ProfileStore, TenantProfile, resolve_profile
from .safety.guardian import WriteGuardian
from .settings.errors import (
    GroupSettingsError,
    ReadFailed,
    UserDeclined,
    WriteFailed,
)
from .settings.blocked_words import parse_word_list
from .settings.gateway import SettingsGateway

EXIT_OK = 0
EXIT_USER_ERROR = 1
EXIT_SERVICE_ERROR = 2

# Commands that never change the tenant
READ_COMMANDS = {"get-settings", "get-blocked-words", "get-allowed-group"}


# ---------------------------------------------------------------------------
# Profile management sub-commands
# ---------------------------------------------------------------------------

def _cmd_profile(args: argparse.Namespace) -> int:
    """Handle `profile add|list|remove|set-default` sub-commands."""
    store = ProfileStore.load()
    action = args.profile_action

    if action == "list":
        profiles = store.list_profiles()
        if not profiles:
            print("No profiles configured. Add one with:\n")
            print("  python -m m365_group_settings profile add <name> \\")
            print("    --tenant-id <GUID> --client-id <GUID> --cert-path ./base64.txt")
            return EXIT_OK
        print(f"\n  {'Name':<24s} {'Tenant ID':<38s} {'Client ID':<38s} {'Auth':<12s} {'Default'}")
        print(f"  {'─'*24} {'─'*38} {'─'*38} {'─'*12} {'─'*7}")
        for p in profiles:
            marker = "  ✓" if p.name == store.default_profile else ""
            name_col = p.name + (f" ({p.display_name})" if p.display_name else "")
            print(f"  {name_col:<24s} {p.tenant_id:<38s} {p.client_id:<38s} {p.auth_mode:<12s}{marker}")
        print()
        return EXIT_OK

    if action == "add":
        if store.get(args.profile_name):
            print(f"  Profile '{args.profile_name}' already exists. It will be overwritten.")
        profile = TenantProfile(
            name=args.profile_name,
            tenant_id=args.tenant_id,
            client_id=args.client_id,
            auth_mode=args.auth_mode,
            cert_path=args.cert_path or "./base64.txt",
            display_name=args.display_name or "",
            notes=args.notes or "",
        )
        set_as_default = args.set_default or not store.profiles
        store.add(profile, set_default=set_as_default)
        print(f"  ✅ Profile '{profile.name}' saved.")
        if set_as_default:
            print("  ✅ Set as default profile.")
        return EXIT_OK

    if action == "remove":
        if store.remove(args.profile_name):
            print(f"  ✅ Profile '{args.profile_name}' removed.")
            return EXIT_OK
        print(f"  ❌ Profile '{args.profile_name}' not found.")
        return EXIT_USER_ERROR

    if action == "set-default":
        if store.set_default(args.profile_name):
            print(f"  ✅ Default profile set to '{args.profile_name}'.")
            return EXIT_OK
        print(f"  ❌ Profile '{args.profile_name}' not found.")
        return EXIT_USER_ERROR

    print("Usage: python -m m365_group_settings profile {add|list|remove|set-default}")
    return EXIT_USER_ERROR


def _cmd_permissions() -> int:
    print("\n  Required Microsoft Graph permissions:\n")
    for perm, purpose in Authenticator.list_required_permissions().items():
        print(f"  {perm:<28s} {purpose}")
    print()
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _connection_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--profile", "-p", help="Tenant profile name (see 'profile list')")
    common.add_argument("--config", "-c", type=Path, help="Path to JSON configuration file")
    common.add_argument("--tenant-id", help="Tenant ID (overrides profile)")
    common.add_argument("--client-id", help="Client ID (overrides profile)")
    common.add_argument("--cert-path", type=Path, help="Base64-encoded PFX (overrides profile)")
    common.add_argument(
        "--delegated",
        action="store_true",
        help="Use delegated (device-code) authentication",
    )
    common.add_argument(
        "--what-if",
        action="store_true",
        help="Show the changes that would be made without making them",
    )
    common.add_argument("--json", action="store_true", help="Print results as JSON")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return common


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="m365_group_settings",
        description="Manage the tenant-wide Microsoft 365 group settings (Group.Unified)",
    )
    sub = parser.add_subparsers(dest="command", metavar="command")
    common = _connection_options()

    def add(name: str, help_text: str) -> argparse.ArgumentParser:
        return sub.add_parser(name, parents=[common], help=help_text)

    add("create-settings", "Create the settings object from its template")
    add("get-settings", "Show the current settings")
    p = add("delete-settings", "Delete the settings object")
    p.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    add("enable-group-creation", "Allow everyone to create Microsoft 365 groups")
    add("disable-group-creation", "Restrict Microsoft 365 group creation")

    p = add("set-allowed-group", "Allow one group's members to create groups")
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--name", help="Group display name (must match exactly one group)")
    target.add_argument("--id", dest="group_id", help="Group object id")
    add("get-allowed-group", "Show the group allowed to create groups")
    add("clear-allowed-group", "Remove the allowed group")

    p = add("set-guidelines-url", "Set the group usage guidelines URL")
    p.add_argument("url")
    add("clear-guidelines-url", "Remove the group usage guidelines URL")

    p = add("add-blocked-words", "Add words to the custom blocked word list")
    p.add_argument("words", nargs="+")
    p = add("remove-blocked-words", "Remove words from the custom blocked word list")
    p.add_argument("words", nargs="+")
    add("get-blocked-words", "Show the custom blocked word list")

    p = add("set-property", "Set any Group.Unified property")
    p.add_argument("key")
    p.add_argument("value")

    sub.add_parser("permissions", help="List the Graph permissions this tool needs")

    # --- Profile management ---
    prof_parser = sub.add_parser("profile", help="Manage tenant profiles")
    prof_sub = prof_parser.add_subparsers(dest="profile_action", help="Profile actions")

    add_p = prof_sub.add_parser("add", help="Add or update a tenant profile")
    add_p.add_argument("profile_name", help="Short name for the profile (e.g. 'contoso-prod')")
    add_p.add_argument("--tenant-id", required=True, help="Entra tenant ID (GUID)")
    add_p.add_argument("--client-id", required=True, help="App registration client ID (GUID)")
    add_p.add_argument("--auth-mode", choices=AUTH_MODES, default="certificate")
    add_p.add_argument("--cert-path", default="./base64.txt", help="Base64-encoded PFX (default: ./base64.txt)")
    add_p.add_argument("--display-name", help="Friendly tenant name")
    add_p.add_argument("--notes", help="Optional admin notes")
    add_p.add_argument("--set-default", action="store_true", help="Set as default profile")

    prof_sub.add_parser("list", help="List all configured profiles")
    rm_p = prof_sub.add_parser("remove", help="Remove a profile")
    rm_p.add_argument("profile_name")
    sd_p = prof_sub.add_parser("set-default", help="Set the default profile")
    sd_p.add_argument("profile_name")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        parser.exit(EXIT_USER_ERROR)
    return args


def build_config(args: argparse.Namespace) -> ToolConfig:
    """
    Build the configuration. Precedence: CLI flags > profile > config file.
    Raises AuthenticationError when no tenant credentials can be found.
    """
    if args.config:
        config = ToolConfig.from_file(str(args.config))
    else:
        config = ToolConfig()

    profile = None
    if args.profile:
        profile = resolve_profile(args.profile)
        if not profile:
            raise AuthenticationError(
                f"Profile '{args.profile}' not found. Use 'profile list' to see available profiles."
            )
    elif not args.config and not args.tenant_id:
        profile = resolve_profile()

    if profile:
        config.auth = profile.to_auth_config()

    if args.delegated:
        source = config.auth.certificate or config.auth.secret or config.auth.delegated
        tenant_id = args.tenant_id or (source.tenant_id if source else "")
        client_id = args.client_id or (source.client_id if source else "")
        config.auth.mode = "delegated"
        config.auth.delegated = DelegatedAuth(tenant_id=tenant_id, client_id=client_id)
    elif args.tenant_id and args.client_id and config.auth.mode != "secret":
        config.auth.mode = "certificate"
        config.auth.certificate = CertificateAuth(
            tenant_id=args.tenant_id,
            client_id=args.client_id,
            certificate_path=str(args.cert_path or "./base64.txt"),
        )
    elif args.tenant_id and args.client_id:
        config.auth.secret = SecretAuth(tenant_id=args.tenant_id, client_id=args.client_id)

    if args.cert_path and config.auth.certificate:
        config.auth.certificate.certificate_path = str(args.cert_path)

    if not (config.auth.certificate or config.auth.secret or config.auth.delegated):
        raise AuthenticationError(
            "No tenant credentials found. Use --profile <name>, "
            "--tenant-id X --client-id Y, or --config config.json."
        )

    config.what_if = config.what_if or args.what_if
    config.verbose = config.verbose or args.verbose
    config.resolve_secrets()
    return config


def confirm_deletion(template_name: str) -> bool:
    """Ask on the terminal before deleting the settings object."""
    try:
        answer = input(
            f"Delete the '{template_name}' settings object? "
            "All group settings revert to their defaults. [y/N] "
        )
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _report(gateway: SettingsGateway, done: str, would: str) -> None:
    """Print the outcome of a write, worded for what-if runs."""
    if gateway.what_if:
        print(f"  What-if: would {would}")
    else:
        print(f"  ✅ {done}")


def _print_mapping(mapping: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(mapping, indent=2))
        return
    width = max((len(k) for k in mapping), default=0)
    for key, value in mapping.items():
        print(f"  {key:<{width}s}  {value}")


async def run_command(
    args: argparse.Namespace,
    gateway: SettingsGateway,
    resolver: GroupResolver,
    template_name: str,
) -> int:
    """Run one settings command and print its result."""
    cmd = args.command

    if cmd == "create-settings":
        obj = await commands.create_settings(gateway, template_name)
        _report(
            gateway,
            f"Created '{template_name}' settings object {obj.id}",
            f"create '{template_name}' settings object:",
        )
        _print_mapping(obj.properties, args.json)

    elif cmd == "get-settings":
        props = await commands.get_settings(gateway, template_name)
        if props is None:
            print(f"  ⚠  No '{template_name}' settings object found. "
                  "Tenant defaults apply. Run 'create-settings' to create one.")
            return EXIT_OK
        _print_mapping(props, args.json)

    elif cmd == "delete-settings":
        confirmed = args.yes or confirm_deletion(template_name)
        await commands.delete_settings(gateway, confirmed, template_name)
        _report(
            gateway,
            f"Deleted '{template_name}' settings object.",
            f"delete '{template_name}' settings object.",
        )

    elif cmd == "enable-group-creation":
        await commands.enable_group_creation(gateway, template_name)
        _report(gateway, "Group creation enabled for all users.", "enable group creation for all users.")

    elif cmd == "disable-group-creation":
        await commands.disable_group_creation(gateway, template_name)
        _report(gateway, "Group creation disabled.", "disable group creation.")

    elif cmd == "set-allowed-group":
        group = await commands.set_allowed_group(
            gateway, resolver, name=args.name, group_id=args.group_id,
            template_name=template_name,
        )
        label = f"{group.get('displayName')} ({group['id']})"
        _report(gateway, f"Allowed group set to {label}.", f"set allowed group to {label}.")

    elif cmd == "get-allowed-group":
        group = await commands.get_allowed_group(gateway, resolver, template_name)
        if group is None:
            print("  No allowed group is set.")
        elif args.json:
            print(json.dumps(group, indent=2))
        else:
            print(f"  {group.get('displayName') or '(deleted group)'} ({group['id']})")

    elif cmd == "clear-allowed-group":
        await commands.clear_allowed_group(gateway, template_name)
        _report(gateway, "Allowed group cleared.", "clear the allowed group.")

    elif cmd == "set-guidelines-url":
        await commands.set_guidelines_url(gateway, args.url, template_name)
        _report(
            gateway,
            f"Usage guidelines URL set to {args.url}.",
            f"set usage guidelines URL to {args.url}.",
        )

    elif cmd == "clear-guidelines-url":
        await commands.clear_guidelines_url(gateway, template_name)
        _report(gateway, "Usage guidelines URL cleared.", "clear the usage guidelines URL.")

    elif cmd in ("add-blocked-words", "remove-blocked-words"):
        if cmd == "add-blocked-words":
            edit = await commands.add_blocked_words(gateway, args.words, template_name)
        else:
            edit = await commands.remove_blocked_words(gateway, args.words, template_name)
        for w in edit.warnings:
            print(f"  ⚠  {w}")
        if edit.modified:
            _report(gateway, f"Blocked words: {edit.value}", f"set blocked words to: {edit.value}")
        else:
            print("  No changes made.")

    elif cmd == "get-blocked-words":
        value = await commands.get_blocked_words(gateway, template_name)
        if args.json:
            print(json.dumps(parse_word_list(value)))
        else:
            print(value)

    elif cmd == "set-property":
        await commands.set_property(gateway, args.key, args.value, template_name)
        _report(gateway, f"{args.key} set to '{args.value}'.", f"set {args.key} to '{args.value}'.")

    else:
        raise ValueError(f"Unknown command: {cmd}")

    return EXIT_OK


def _print_what_if(guardian: WriteGuardian, as_json: bool) -> None:
    if as_json:
        print(json.dumps(guardian.get_audit_record(), indent=2))
        return
    writes = guardian.planned_writes
    if not writes:
        return
    print("\n  What-if: the following requests were NOT sent:")
    for w in writes:
        print(f"    {w['method']} {w['url']}")
        if w["body"]:
            print("      " + json.dumps(w["body"]))


async def main_async(argv: Optional[list[str]] = None) -> int:
    """Async entry point. Returns the process exit code."""
    args = parse_args(argv)

    if args.command == "profile":
        return _cmd_profile(args)
    if args.command == "permissions":
        return _cmd_permissions()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
        token = await Authenticator(config.auth).acquire_token()
    except AuthenticationError as e:
        print(f"  ❌ {e}", file=sys.stderr)
        return EXIT_SERVICE_ERROR

    guardian = WriteGuardian(what_if=config.what_if and args.command not in READ_COMMANDS)

    try:
        async with GraphClient(token, guardian, timeout=config.request_timeout_seconds) as client:
            gateway = SettingsGateway(client)
            resolver = GroupResolver(client)
            code = await run_command(args, gateway, resolver, config.template_name)
    except UserDeclined as e:
        print(f"  {e}")
        return EXIT_USER_ERROR
    except (ReadFailed, WriteFailed) as e:
        print(f"  ❌ {e}", file=sys.stderr)
        return EXIT_SERVICE_ERROR
    except GroupSettingsError as e:
        print(f"  ⚠  {e}", file=sys.stderr)
        if e.hint:
            print(f"     {e.hint}", file=sys.stderr)
        return EXIT_USER_ERROR
    except ValueError as e:
        print(f"  ❌ {e}", file=sys.stderr)
        return EXIT_USER_ERROR
    except httpx.HTTPError as e:
        print(f"  ❌ Request failed: {e}", file=sys.stderr)
        return EXIT_SERVICE_ERROR

    if guardian.what_if:
        _print_what_if(guardian, args.json)
    return code


def main():
    """Synchronous entry point for `python -m m365_group_settings`."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
