import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from filepilot.config.models import EngineConfig
from filepilot.config.storage import load_engine_config
from filepilot.core.debug_support import log_startup_snapshot
from filepilot.core.errors import FilePilotError, ProviderError, ValidationError
from filepilot.core.logging_setup import install_excepthook, setup_logging
from filepilot.services.file_operations import FileOperations
from filepilot.services.files_base import FilesBackend
from filepilot.services.files_local import LocalFilesBackend
from filepilot.services.transfer_tracker import OperationStatus


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="filepilot", description="Copy, move, delete and search files.")
    p.add_argument("-v", "--verbose", action="store_true", help="log to stderr as well")
    p.add_argument("--ssh", metavar="USER@HOST[:PORT]", help="operate on a remote host over SFTP")
    p.add_argument("--key", default="", help="private key for --ssh")
    sub = p.add_subparsers(dest="command", required=True)

    for name in ("copy", "move"):
        sp = sub.add_parser(name, help=f"{name} entries of SOURCE_DIR into --to")
        sp.add_argument("source_dir")
        sp.add_argument("names", nargs="+")
        sp.add_argument("--to", required=True, dest="dest_dir")

    sp = sub.add_parser("delete", help="delete entries of SOURCE_DIR")
    sp.add_argument("source_dir")
    sp.add_argument("names", nargs="+")

    sp = sub.add_parser("search", help="search entry names below PATH")
    sp.add_argument("path")
    sp.add_argument("query")
    return p


def _open_backend(args):
    """Return (backend, closer)."""
    if not args.ssh:
        return LocalFilesBackend(), None

    import paramiko

    from filepilot.services.files_ssh import SSHFilesBackend
    from filepilot.ssh.client import SSHClientWrapper, SSHConnInfo

    try:
        info = SSHConnInfo.parse(args.ssh, password=os.environ.get("FILEPILOT_SSH_PASSWORD", ""), key_path=args.key)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    ssh = SSHClientWrapper(info)
    try:
        ssh.connect()
    except (paramiko.SSHException, OSError) as e:
        raise ProviderError(f"SSH connection to {info} failed: {e}") from e
    return SSHFilesBackend(ssh), ssh.close


async def _transfer(args, files: FilesBackend, config: EngineConfig) -> int:
    ops = FileOperations(files, config=config)
    if args.command == "delete":
        op = await ops.delete(args.names, args.source_dir)
    else:
        if args.command == "copy":
            ops.copy(args.names, args.source_dir)
        else:
            ops.cut(args.names, args.source_dir)
        op = await ops.paste(args.dest_dir)
    last = ops.notifier.history[-1] if ops.notifier.history else None
    if last is not None:
        print(f"{last.title}: {last.message}")
    return 0 if op is not None and op.status == OperationStatus.COMPLETED else 1


async def _search(args, files: FilesBackend, config: EngineConfig) -> int:
    # one-shot query, nothing to debounce
    session = FileOperations(files, config=config).make_search_session(debounce_ms=0)
    session.set_query(args.query, args.path)
    await session.wait_idle()
    state = session.state
    for r in state.results:
        kind = "f" if r.is_file else "d"
        print(f"{kind} {r.size:>12} {r.path}")
    more = f" (+{state.total_matches - len(state.results)} more)" if state.has_more else ""
    print(f"{state.total_matches} match(es){more}")
    await session.close()
    return 0


async def _run(args, config: EngineConfig) -> int:
    files, closer = _open_backend(args)
    try:
        if args.command == "search":
            return await _search(args, files, config)
        return await _transfer(args, files, config)
    finally:
        if closer is not None:
            closer()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Logging (file-backed, rotating).
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO, console=args.verbose)
    install_excepthook()
    config = load_engine_config()
    log_startup_snapshot(config, backend="ssh" if args.ssh else "local")

    try:
        return asyncio.run(_run(args, config))
    except FilePilotError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130
