"""Command line entry point.

  dshare share <path> [--password PW] [--audience DID] [--expires ISO|never] [--copy]
  dshare view <url> [--password PW] [--out PATH]
  dshare whoami

Start here with `python -m dshare.cli.app`
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dshare.cli.clipboard import copy_to_clipboard
from dshare.cli.context import AppContext, build_context
from dshare.cli.logging_config import configure_logging
from dshare.core.exceptions import ConfigurationError, DShareError, RateLimitedError
from dshare.core.models import DEFAULT_FILENAME, ViewState
from dshare.network.identity import LocalKeyVerifier
from dshare.security.kdf import DEFAULT_KDF, KDF_ARGON2ID
from dshare.share.publisher import SharePublisher
from dshare.share.viewer import ShareViewer
from dshare.token.codec import NEVER

logger = logging.getLogger(__name__)

MAX_PROMPTS = 5


def _parse_expiration(value: Optional[str]):
    if value is None:
        return None
    if value.lower() == "never":
        return NEVER
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid expiration: {value}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dshare", description="Encrypted share links.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    share = sub.add_parser("share", help="encrypt and upload a file, print its link")
    share.add_argument("path", type=Path)
    share.add_argument("--password", help="protect with a password instead of an embedded key")
    share.add_argument("--audience", help="restrict to a recipient DID (default: anyone)")
    share.add_argument("--expires", type=_parse_expiration, help="ISO timestamp or 'never' (default: one year)")
    share.add_argument("--argon2", action="store_true", help="derive the password key with Argon2id")
    share.add_argument("--copy", action="store_true", help="copy the link to the clipboard")

    view = sub.add_parser("view", help="open a share link")
    view.add_argument("url")
    view.add_argument("--password", help="password, prompted for when needed and not given")
    view.add_argument("--out", type=Path, help="output path (default: the shared filename)")

    sub.add_parser("whoami", help="print this client's DID")
    return parser


def cmd_share(ctx: AppContext, args) -> int:
    publisher = SharePublisher(ctx.client, ctx.transport, ctx.settings.base_url)
    url = publisher.publish_file(
        args.path,
        password=args.password,
        audience=args.audience,
        expiration=args.expires,
        kdf=KDF_ARGON2ID if args.argon2 else DEFAULT_KDF,
    )
    print(url)
    if args.copy:
        if copy_to_clipboard(url):
            print("Link copied to clipboard!", file=sys.stderr)
        else:
            logger.warning("clipboard not available")
    return 0


def _ask_passwords(viewer: ShareViewer, password: Optional[str]) -> None:
    if password is not None:
        viewer.submit_password(password)
        return
    for _ in range(MAX_PROMPTS):
        if viewer.state is not ViewState.NEEDS_PASSWORD:
            return
        if viewer.failed_attempts:
            print(f"Wrong password ({viewer.failed_attempts} failed)", file=sys.stderr)
        entered = getpass.getpass("Password: ")
        try:
            viewer.submit_password(entered)
        except RateLimitedError as exc:
            time.sleep(exc.retry_after)
            viewer.submit_password(entered)


def _persistent_identity(ctx: AppContext):
    identity = ctx.client.identity
    if not ctx.client.persistent:
        raise ConfigurationError(
            "no persistent identity; set DSHARE_KEYRING_SERVICE and make sure a secure OS keyring is available"
        )
    return identity


def _output_path(filename: str) -> Path:
    name = Path(filename).name
    if name in ("", ".", ".."):
        name = DEFAULT_FILENAME
    return Path(name)


def cmd_view(ctx: AppContext, args) -> int:
    viewer = ShareViewer(args.url, ctx.transport)
    viewer.load()

    if viewer.state is ViewState.NEEDS_IDENTITY_CHALLENGE:
        identity = _persistent_identity(ctx)
        viewer.verify_identity(LocalKeyVerifier(identity), identity.did, timeout=ctx.settings.challenge_timeout)

    if viewer.state is ViewState.NEEDS_PASSWORD:
        _ask_passwords(viewer, args.password)
        if viewer.state is ViewState.NEEDS_PASSWORD:
            raise viewer.error

    data = viewer.result()
    out = args.out or _output_path(viewer.filename)
    out.write_bytes(data)
    print(f"Saved {len(data)} bytes to {out} ({viewer.mime_type})")
    return 0


def cmd_whoami(ctx: AppContext, args) -> int:
    print(_persistent_identity(ctx).did)
    return 0


COMMANDS = {"share": cmd_share, "view": cmd_view, "whoami": cmd_whoami}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        ctx = build_context()
    except DShareError as exc:
        print(f"{exc.category}: {exc}", file=sys.stderr)
        return 1
    configure_logging(logging.DEBUG if args.verbose else ctx.settings.log_level)

    try:
        return COMMANDS[args.command](ctx, args)
    except DShareError as exc:
        print(f"{exc.category}: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        # bad audience or similar user input
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: {exc.strerror or exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
