"""
cli.py — vanish: zero-knowledge self-destructing links from the terminal.

All content is encrypted (AES-256-GCM) before it leaves this machine.

Usage:
  vanish "secret"                  Create a 1-view link
  vanish --file .env --ttl 5m      From file, 5 min TTL
  echo "secret" | vanish           From stdin
  vanish read <url>                Consume & decrypt
  vanish status <id>               Check status
  vanish burn <id>                 Delete immediately
"""

import argparse
import getpass
import json
import re
import sys

from client import RedemptionState, VanishClient
from errors import InvalidInput, VanishError

COMMANDS = ("create", "read", "status", "burn", "delete")
TTL_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_ttl(value: str) -> int:
    m = re.fullmatch(r"(\d+)([smhd])?", value.strip())
    if not m:
        raise argparse.ArgumentTypeError(f"Invalid TTL: {value}")
    return int(m.group(1)) * TTL_UNITS[m.group(2) or "s"]


def format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def build_parser():
    parser = argparse.ArgumentParser(
        prog="vanish",
        description="Zero-knowledge self-destructing links",
    )
    parser.add_argument("words", nargs="*", help="command (create|read|status|burn) and its argument")
    parser.add_argument("--views", type=int, default=1, help="max views (default: 1)")
    parser.add_argument("--ttl", type=parse_ttl, default=3600, help="expiry: 30s, 5m, 1h, 7d (default: 1h)")
    parser.add_argument("--file", help="read content from a file")
    parser.add_argument("--password", help="additional password layer")
    parser.add_argument("--raw", action="store_true", help="print URL only (for scripting)")
    parser.add_argument("--json", action="store_true", help="full JSON output")
    return parser


def _interactive() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def split_command(words):
    if words and words[0] in COMMANDS:
        return words[0], " ".join(words[1:])
    return "create", " ".join(words)


def cmd_create(client, content, args, out):
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            content = f.read()
    elif not content and not _interactive():
        content = sys.stdin.read()
    if not content or not content.strip():
        raise InvalidInput("No content")

    result = client.create_link(content.strip(), views=args.views, ttl_seconds=args.ttl,
                                password=args.password)
    if args.raw:
        out.write(result["url"])
    elif args.json:
        out.write(json.dumps(result, indent=2) + "\n")
    else:
        plural = "s" if args.views > 1 else ""
        out.write(f"🔥 {result['url']}\n")
        out.write(f"   🔒 E2E encrypted · {args.views} view{plural} · expires in {format_duration(args.ttl)}\n")


def cmd_read(client, content, args, out):
    if not content:
        raise InvalidInput("Usage: vanish read <url>")
    attempt = client.redemption(content)
    if not attempt.key:
        raise InvalidInput("Missing decryption key. The #key portion is required.")

    # Without a password or a prompt, check the hint before spending a view.
    if args.password is None and not _interactive():
        if client.status(attempt.link_id).get("password_protected"):
            raise InvalidInput("Link is password protected; pass --password")

    state = attempt.reveal(args.password)
    # A wrong password is retried locally; the link was consumed only once.
    while state in (RedemptionState.PASSWORD_REQUIRED, RedemptionState.DECRYPTION_FAILED) \
            and attempt.password_protected and _interactive():
        if state is RedemptionState.DECRYPTION_FAILED:
            out.write("Wrong password.\n")
        state = attempt.reveal(getpass.getpass("Password: "))

    if state is not RedemptionState.REVEALED:
        if state is RedemptionState.PASSWORD_REQUIRED:
            raise InvalidInput("Link is password protected; pass --password")
        raise attempt.error

    out.write(attempt.plaintext)
    if out.isatty():
        out.write("\n")


def cmd_status(client, content, args, out):
    if not content:
        raise InvalidInput("Usage: vanish status <id>")
    s = client.status(content)
    if args.json:
        out.write(json.dumps(s, indent=2) + "\n")
        return
    out.write(f"🔥 Link: {content}\n")
    out.write(f"   Views: {s['views_total'] - s['views_remaining']}/{s['views_total']}\n")
    out.write(f"   Expires: {s['expires_at']}\n")


def cmd_burn(client, content, args, out):
    if not content:
        raise InvalidInput("Usage: vanish burn <id>")
    client.delete(content)
    out.write(f"🔥 Burned: {content}\n")


HANDLERS = {
    "create": cmd_create,
    "read": cmd_read,
    "status": cmd_status,
    "burn": cmd_burn,
    "delete": cmd_burn,
}


def main(argv=None, client=None, out=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    out = out or sys.stdout

    if not args.words and not args.file and _interactive():
        parser.print_help(out)
        return 0

    command, content = split_command(args.words)
    client = client or VanishClient()
    try:
        HANDLERS[command](client, content, args, out)
    except VanishError as e:
        print(f"Error: {e.detail}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
