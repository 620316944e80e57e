import asyncio
import os
from pathlib import Path
from typing import Any, AsyncIterator

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from shared.clients.content.ContentSourceInterface import ContentSourceInterface
from shared.exceptions import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.events import ChangeEvent, ChangeKind
from shared.models.index import DocumentRef, DocumentStat


class ContentSourceFilesystem(ContentSourceInterface):
    """A vault directory on the local filesystem.

    Only files with one of the configured extensions are documents. Hidden
    files and anything below a hidden directory (".obsidian", ".git", the index
    directory itself) are ignored, both when listing and when watching.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._root = Path(self.get_config_val("ROOT", default=None, val_type="string")).expanduser().resolve()
        extensions = self.get_config_val("EXTENSIONS", default=[".md"], val_type="list")
        self._extensions = tuple(ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions)

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        super().validate_full_configuration()
        root = Path(self.get_config_val("ROOT", default=None, val_type="string")).expanduser()
        if not root.is_dir():
            raise ConfigurationError(f"Content root '{root}' is not a directory.")

    def _is_document_path(self, relative: Path) -> bool:
        if any(part.startswith(".") for part in relative.parts):
            return False
        return relative.suffix.lower() in self._extensions

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Filesystem"

    def get_root(self) -> str:
        return str(self._root)

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="ROOT", val_type="string", default=None),
            EnvConfig(env_key="EXTENSIONS", val_type="list", default=[".md"]),
        ]

    ################ PATHS ##################
    def _to_relative(self, path: str | os.PathLike) -> Path | None:
        absolute = Path(path)
        if not absolute.is_absolute():
            absolute = self._root / absolute
        # deleted files cannot be resolved, their parent directory usually can
        for candidate in (absolute, absolute.parent.resolve() / absolute.name):
            try:
                return candidate.relative_to(self._root)
            except ValueError:
                continue
        return None

    def _to_absolute(self, doc: DocumentRef) -> Path:
        return self._root / Path(doc.path)

    def get_document(self, path: str) -> DocumentRef | None:
        relative = self._to_relative(path)
        if relative is None or not self._is_document_path(relative):
            return None
        return DocumentRef(path=relative.as_posix(), name=relative.name)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def list_documents(self) -> list[DocumentRef]:
        return await asyncio.to_thread(self._walk)

    def _walk(self) -> list[DocumentRef]:
        documents: list[DocumentRef] = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            # prune hidden directories in place and keep a stable order
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                relative = Path(dirpath, filename).relative_to(self._root)
                if self._is_document_path(relative):
                    documents.append(DocumentRef(path=relative.as_posix(), name=filename))
        return documents

    async def read(self, doc: DocumentRef) -> str:
        return await asyncio.to_thread(self._to_absolute(doc).read_text, encoding="utf-8")

    async def stat(self, doc: DocumentRef) -> DocumentStat:
        result = await asyncio.to_thread(os.stat, self._to_absolute(doc))
        return DocumentStat(mtime=result.st_mtime, size=result.st_size)

    ##########################################
    ################ WATCH ###################
    ##########################################

    def translate_event(self, event_type: str, src_path: str, dest_path: str | None = None) -> ChangeEvent | None:
        """Map a raw watchdog event onto a ChangeEvent for documents of this vault.

        Moves into the vault's document set become creations, moves out of it
        become deletions, and moves between two document paths become renames.

        Args:
            event_type (str): "created", "modified", "deleted" or "moved".
            src_path (str): Absolute source path reported by watchdog.
            dest_path (str | None): Absolute destination path for moves.

        Returns:
            ChangeEvent | None: The event, or None if no document is affected.
        """
        src = self.get_document(src_path)
        if event_type == "moved":
            dest = self.get_document(dest_path) if dest_path else None
            if src and dest:
                return ChangeEvent(kind=ChangeKind.RENAMED, path=dest.path, old_path=src.path)
            if dest:
                return ChangeEvent(kind=ChangeKind.CREATED, path=dest.path)
            if src:
                return ChangeEvent(kind=ChangeKind.DELETED, path=src.path)
            return None
        if src is None:
            return None
        kinds = {
            "created": ChangeKind.CREATED,
            "modified": ChangeKind.MODIFIED,
            "deleted": ChangeKind.DELETED,
        }
        kind = kinds.get(event_type)
        return ChangeEvent(kind=kind, path=src.path) if kind else None

    async def watch(self) -> AsyncIterator[ChangeEvent]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        source = self

        class _VaultEventHandler(FileSystemEventHandler):
            # runs on the observer thread, hands events to the loop
            def _handle(self, event: Any, event_type: str) -> None:
                if event.is_directory:
                    return
                dest_path = getattr(event, "dest_path", None)
                change = source.translate_event(
                    event_type,
                    os.fsdecode(event.src_path),
                    os.fsdecode(dest_path) if dest_path else None,
                )
                if change is not None:
                    loop.call_soon_threadsafe(queue.put_nowait, change)

            def on_created(self, event: Any) -> None:
                self._handle(event, "created")

            def on_modified(self, event: Any) -> None:
                self._handle(event, "modified")

            def on_deleted(self, event: Any) -> None:
                self._handle(event, "deleted")

            def on_moved(self, event: Any) -> None:
                self._handle(event, "moved")

        observer = Observer()
        observer.daemon = True
        observer.schedule(_VaultEventHandler(), str(self._root), recursive=True)
        observer.start()
        self.logging.info("Watching '%s' for changes (%s).", self._root, ", ".join(self._extensions))
        try:
            while True:
                yield await queue.get()
        finally:
            observer.stop()
            await asyncio.to_thread(observer.join, 5.0)
            self.logging.info("Stopped watching '%s'.", self._root)
