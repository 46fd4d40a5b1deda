"""
Terminal front end for the Splitdesk session and sync layer.

The credential is kept in the file token store, so ``splitdesk login``
persists across invocations until ``splitdesk logout`` or until the
server rejects it.

Usage:
    splitdesk login alice
    splitdesk add "Buy milk"
    splitdesk list
    splitdesk done 7
    splitdesk --notes add "Meeting notes" --body "..."
"""
from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from dataclasses import replace
from typing import List, Optional

import httpx

from .client import SplitdeskClient
from .errors import ClientError, ValidationFailure
from .log import configure_logging
from .resources import ResourceStore
from .schemas import Resource
from .settings import get_settings


def _format(resource: Resource) -> str:
    mark = "x" if resource.completed else " "
    ident = "…" if resource.id is None else str(resource.id)
    line = f"[{mark}] {ident:>4}  {resource.title}"
    if resource.body:
        line += f"\n          {resource.body}"
    return line


def _password(args: argparse.Namespace) -> str:
    return args.password if args.password is not None else getpass.getpass("Password: ")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="splitdesk", description="Splitdesk todos and notes from the terminal")
    parser.add_argument("--notes", action="store_true", help="Operate on notes instead of todos")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Create an account")
    p.add_argument("username")
    p.add_argument("email")
    p.add_argument("--password")

    p = sub.add_parser("login", help="Log in and remember the credential")
    p.add_argument("username")
    p.add_argument("--password")

    sub.add_parser("logout", help="Forget the stored credential")
    sub.add_parser("whoami", help="Show the logged-in user")
    sub.add_parser("health", help="Ping the API")
    sub.add_parser("list", help="List items")

    p = sub.add_parser("add", help="Create an item")
    p.add_argument("title")
    p.add_argument("--body")

    p = sub.add_parser("done", help="Mark an item completed")
    p.add_argument("id", type=int)
    p.add_argument("--undo", action="store_true", help="Mark it not completed instead")

    p = sub.add_parser("edit", help="Change an item's title or body")
    p.add_argument("id", type=int)
    p.add_argument("--title")
    p.add_argument("--body")

    p = sub.add_parser("rm", help="Delete an item")
    p.add_argument("id", type=int)
    return parser


async def _authenticated(client: SplitdeskClient) -> bool:
    if client.session.is_authenticated:
        return True
    user = await client.session.restore()
    if user is None:
        print("Not logged in. Run 'splitdesk login <username>' first.", file=sys.stderr)
        return False
    return True


async def run(args: argparse.Namespace, client: SplitdeskClient) -> int:
    session = client.session
    command = args.command

    if command == "health":
        print(await client.api.health())
        return 0
    if command == "register":
        user = await session.register(args.username, _password(args), args.email)
        print(f"Registered {user.username} (id {user.id})")
        return 0
    if command == "login":
        session.logout()
        user = await session.login(args.username, _password(args))
        print(f"Logged in as {user.username}")
        return 0
    if command == "logout":
        session.logout()
        print("Logged out")
        return 0

    if not await _authenticated(client):
        return 1
    if command == "whoami":
        user = session.user
        if user is None:
            print("Not logged in.", file=sys.stderr)
            return 1
        print(f"{user.username} <{user.email or '-'}> (id {user.id})")
        return 0

    store: ResourceStore = client.notes if args.notes else client.todos
    await store.refresh()

    if command == "list":
        if not len(store):
            print(f"No {store.collection} yet.")
        for item in store:
            print(_format(item))
    elif command == "add":
        fields = {"title": args.title}
        if args.body is not None:
            fields["body"] = args.body
        print(_format(await store.create(fields)))
    elif command == "done":
        print(_format(await store.update(args.id, {"completed": not args.undo})))
    elif command == "edit":
        changes = {k: v for k, v in (("title", args.title), ("body", args.body)) if v is not None}
        if not changes:
            raise ValidationFailure({"non_field_errors": ["nothing to change; pass --title and/or --body"]})
        print(_format(await store.update(args.id, changes)))
    elif command == "rm":
        await store.delete(args.id)
        print(f"Deleted {args.id}")
    return 0


async def _main(args: argparse.Namespace, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    settings = replace(get_settings(), token_backend="file")
    async with SplitdeskClient(settings, transport=transport) as client:
        try:
            return await run(args, client)
        except ClientError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1


def main(argv: Optional[List[str]] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging("DEBUG" if args.verbose else settings.log_level)
    return asyncio.run(_main(args, transport))


if __name__ == "__main__":
    sys.exit(main())
