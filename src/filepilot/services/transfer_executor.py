from __future__ import annotations

from typing import Optional, Sequence

from filepilot.core.cancel import CancelToken, check
from filepilot.core.debug_support import log_exception_with_id
from filepilot.core.errors import ConflictError, FilePilotError, OperationCancelledError, ProviderError
from filepilot.core.logging import get_logger
from filepilot.services.conflicts import ConflictResolver
from filepilot.services.file_clipboard import ClipboardEntry, ClipboardMode
from filepilot.services.files_base import FilesBackend
from filepilot.services.notifications import NotificationSink
from filepilot.services.transfer_tracker import (
    OperationKind,
    TransferOperation,
    TransferOperationTracker,
    plural,
)


class TransferExecutor:
    """Runs one TransferOperation as a strictly sequential loop over its entries.

    The first failure aborts the loop. Entries processed before it stay
    committed; nothing is rolled back.
    """

    def __init__(
        self,
        files: FilesBackend,
        tracker: TransferOperationTracker,
        resolver: ConflictResolver,
        notifier: NotificationSink,
    ):
        self.files = files
        self.tracker = tracker
        self.resolver = resolver
        self.notifier = notifier
        self.logger = get_logger("filepilot.executor")

    async def run_paste(self, entry: ClipboardEntry, dest_dir: str, *, op_id: Optional[str] = None) -> TransferOperation:
        kind = OperationKind.MOVE if entry.mode == ClipboardMode.CUT else OperationKind.COPY
        op_id = op_id or self.tracker.begin(kind, len(entry.files))
        token = self.tracker.cancel_token(op_id)
        same_dir = self.files.same_path(entry.source_dir, dest_dir)

        async def step(name: str) -> None:
            src = self.files.join(entry.source_dir, name)
            if kind == OperationKind.MOVE and same_dir:
                # Moving onto itself; nothing to do.
                return
            dst = await self._copy_entry(src, dest_dir, name, token)
            if kind == OperationKind.MOVE:
                if not await self.files.exists(dst):
                    raise ProviderError(f"Copy of {name} could not be verified, source kept", path=dst)
                await self.files.remove(src, recursive=True, cancel=token)

        verb = "moved" if kind == OperationKind.MOVE else "copied"
        return await self._run(op_id, entry.files, step, success=f"Successfully {verb} {plural(len(entry.files), 'item')}")

    async def run_delete(self, names: Sequence[str], source_dir: str, *, op_id: Optional[str] = None) -> TransferOperation:
        op_id = op_id or self.tracker.begin(OperationKind.DELETE, len(names))
        token = self.tracker.cancel_token(op_id)

        async def step(name: str) -> None:
            await self.files.remove(self.files.join(source_dir, name), recursive=True, cancel=token)

        return await self._run(
            op_id,
            list(names),
            step,
            success=f"Successfully deleted {plural(len(names), 'item')}",
            title="Delete",
        )

    async def _run(self, op_id: str, names: Sequence[str], step, *, success: str, title: str = "Operation") -> TransferOperation:
        token = self.tracker.cancel_token(op_id)
        current = None
        try:
            for index, name in enumerate(names):
                token.raise_if_cancelled()
                current = name
                self.tracker.advance(op_id, index, name)
                await step(name)
            # A cancel that lands during the last await still wins.
            token.raise_if_cancelled()
        except OperationCancelledError:
            self.logger.info(f"operation {op_id[:8]} stopped after cancellation at {current!r}")
            self.notifier.warning(f"{title} Cancelled", "The operation was cancelled")
        except FilePilotError as e:
            self.tracker.fail(op_id, f"{current}: {e}" if current else str(e))
            self.notifier.error(f"{title} Failed", f"Failed to process {current}: {e}")
        except Exception as e:
            err_id = log_exception_with_id("XFER", e, context=f"operation {op_id[:8]} at {current!r}")
            self.tracker.fail(op_id, f"Unexpected error ({err_id})")
            self.notifier.error(f"{title} Failed", f"Unexpected error, see log ({err_id})")
        else:
            self.tracker.complete(op_id)
            self.notifier.success(f"{title} Complete", success)
        return self.tracker.get(op_id)

    async def _copy_entry(self, src: str, dest_dir: str, name: str, token: CancelToken) -> str:
        """Copy ``src`` into ``dest_dir`` under a conflict-free name; returns the destination."""
        st = await self.files.stat(src)
        if not st.is_dir:
            return await self.resolver.write_unique(
                dest_dir,
                name,
                lambda dst: self.files.copy_file(src, dst, cancel=token),
                cancel=token,
            )
        dst = await self.resolver.write_unique(dest_dir, name, self.files.mkdir, is_dir=True, cancel=token)
        await self._copy_tree(src, dst, token)
        return dst

    async def _copy_tree(self, src_dir: str, dst_dir: str, token: CancelToken) -> None:
        for child in await self.files.read_dir(src_dir, cancel=token):
            check(token)
            s = self.files.join(src_dir, child.name)
            d = self.files.join(dst_dir, child.name)
            try:
                if child.is_dir:
                    await self.files.mkdir(d)
                    await self._copy_tree(s, d, token)
                else:
                    await self.files.copy_file(s, d, cancel=token)
            except ConflictError as e:
                # Fresh directory, so a conflict here is a real failure.
                raise ProviderError(str(e), path=d) from e
