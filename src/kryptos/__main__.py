# Main Entry Point - Command Line
#
# Thin front end over VaultManager. Master passwords are always read
# with getpass, never taken from arguments.

import argparse
import getpass
import logging
import sys
from typing import List, Optional

from . import __version__
from .core import get_log_level
from .vault import VaultManager, generate_password


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def _read_password(prompt: str = "Master password: ") -> str:
    return getpass.getpass(prompt)


def _unlock(manager: VaultManager, account: str) -> bool:
    ok, message = manager.unlock(account, _read_password())
    if not ok:
        print(f"[ERROR] {message}", file=sys.stderr)
    return ok


def _report(ok: bool, message: str) -> int:
    if ok:
        print(f"[OK] {message}")
        return 0
    print(f"[ERROR] {message}", file=sys.stderr)
    return 1


def cmd_accounts(manager: VaultManager, args) -> int:
    for name in manager.list_accounts():
        print(name)
    return 0


def cmd_create(manager: VaultManager, args) -> int:
    password = _read_password()
    if password != _read_password("Confirm master password: "):
        print("[ERROR] Passwords do not match", file=sys.stderr)
        return 1
    return _report(*manager.create_account(args.account, password))


def cmd_delete_account(manager: VaultManager, args) -> int:
    return _report(*manager.delete_account(args.account, remove_data=args.purge))


def cmd_list(manager: VaultManager, args) -> int:
    if not _unlock(manager, args.account):
        return 1
    for entry in manager.list_entries(args.search):
        tags = f" [{', '.join(entry.tags)}]" if entry.tags else ""
        print(f"{entry.id}  {entry.title}  ({entry.username}){tags}")
    return 0


def cmd_show(manager: VaultManager, args) -> int:
    if not _unlock(manager, args.account):
        return 1
    entry = manager.get_entry(args.entry_id)
    if entry is None:
        print("[ERROR] Entry not found", file=sys.stderr)
        return 1
    print(f"Title:    {entry.title}")
    print(f"Username: {entry.username}")
    print(f"Password: {entry.password}")
    if entry.url:
        print(f"URL:      {entry.url}")
    if entry.notes:
        print(f"Notes:    {entry.notes}")
    if entry.tags:
        print(f"Tags:     {', '.join(entry.tags)}")
    print(f"Created:  {entry.created_at.isoformat()}")
    print(f"Updated:  {entry.updated_at.isoformat()}")
    return 0


def cmd_add(manager: VaultManager, args) -> int:
    if not _unlock(manager, args.account):
        return 1
    if args.generate:
        password = generate_password(args.length)
    else:
        password = _read_password("Entry password: ")
    tags = [t for t in (args.tags or "").split(",") if t.strip()]
    ok, result = manager.add_entry(
        args.title, args.username, password, url=args.url, notes=args.notes, tags=tags
    )
    if ok:
        print(f"[OK] Entry added! ID: {result}")
        return 0
    return _report(False, result)


def cmd_remove(manager: VaultManager, args) -> int:
    if not _unlock(manager, args.account):
        return 1
    return _report(*manager.delete_entry(args.entry_id))


def cmd_export(manager: VaultManager, args) -> int:
    if not _unlock(manager, args.account):
        return 1
    return _report(*manager.export_vault(args.path))


def cmd_import(manager: VaultManager, args) -> int:
    if not _unlock(manager, args.account):
        return 1
    return _report(*manager.import_vault(args.path))


def cmd_generate(manager: Optional[VaultManager], args) -> int:
    print(generate_password(args.length))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kryptos",
        description="Kryptos - local password vault encrypted with a master password",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Kryptos v{__version__}"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("accounts", help="List registered accounts")
    p.set_defaults(func=cmd_accounts)

    p = sub.add_parser("create", help="Create an account with a new master password")
    p.add_argument("account")
    p.set_defaults(func=cmd_create)

    p = sub.add_parser("delete-account", help="Remove an account from the registry")
    p.add_argument("account")
    p.add_argument("--purge", action="store_true", help="Also delete the encrypted vault file")
    p.set_defaults(func=cmd_delete_account)

    p = sub.add_parser("list", help="List entries of an account")
    p.add_argument("account")
    p.add_argument("--search", help="Filter on title, username and notes")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="Show one entry, including its password")
    p.add_argument("account")
    p.add_argument("entry_id")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("add", help="Add an entry")
    p.add_argument("account")
    p.add_argument("--title", required=True)
    p.add_argument("--username", required=True)
    p.add_argument("--url")
    p.add_argument("--notes")
    p.add_argument("--tags", help="Comma-separated tags")
    p.add_argument("--generate", action="store_true", help="Generate a random password")
    p.add_argument("--length", type=_positive_int, default=20)
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("remove", help="Delete an entry")
    p.add_argument("account")
    p.add_argument("entry_id")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("export", help="Copy the encrypted vault file to PATH")
    p.add_argument("account")
    p.add_argument("path")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Replace the vault file with PATH")
    p.add_argument("account")
    p.add_argument("path")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("generate", help="Print a random password")
    p.add_argument("--length", type=_positive_int, default=20)
    p.set_defaults(func=cmd_generate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the kryptos command."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=get_log_level("WARNING"), format="%(levelname)s %(name)s: %(message)s")

    if args.func is cmd_generate:
        return cmd_generate(None, args)

    manager = VaultManager()
    try:
        return args.func(manager, args)
    finally:
        manager.lock()


if __name__ == "__main__":
    sys.exit(main())
