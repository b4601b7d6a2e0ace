from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from .lifecycle import RunLifecycle

logger = logging.getLogger(__name__)

WORKSPACE_KINDS = ("queue", "dataset", "state")


@dataclass(frozen=True)
class RunInfo:
    run_id: str
    path: Path
    cleanup_on_exit: bool
    retain_on_error: bool
    is_cleaned_up: bool = False


class StorageIsolationManager:
    """
    Owns one run's disposable workspace: ``{base}/{run_id}/{queue,dataset,state}``.

    Concurrent runs get distinct run ids and so never share files. Named
    sub-scopes come from :meth:`create_child`; the parent stays responsible
    for removing them.
    """

    def __init__(
        self,
        base_path: str | Path = "temp-storage",
        run_id: Optional[str] = None,
        *,
        cleanup_on_exit: bool = True,
        retain_on_error: bool = False,
        owns_cleanup: bool = True,
        exit_func: Optional[Callable[[int], object]] = None,
    ) -> None:
        self.base_path = Path(base_path)
        self.run_id = run_id or str(uuid.uuid4())
        self.cleanup_on_exit = cleanup_on_exit
        self.retain_on_error = retain_on_error
        self._owns_cleanup = owns_cleanup
        self._exit_func = exit_func
        self._handlers: List[Callable[[], None]] = []
        self._children: List[StorageIsolationManager] = []
        self._lifecycle: Optional[RunLifecycle] = None
        self._cleaned_up = False

    @property
    def path(self) -> Path:
        return self.base_path / self.run_id

    def path_for(self, kind: str) -> Path:
        if kind not in WORKSPACE_KINDS:
            raise ValueError(f"unknown workspace area {kind!r}")
        return self.path / kind

    def initialize(self) -> Path:
        """Create the run directory tree and register automatic cleanup."""
        try:
            for kind in WORKSPACE_KINDS:
                self.path_for(kind).mkdir(parents=True, exist_ok=True)
            logger.info("Created temporary storage: %s", self.path)
        except OSError as exc:
            logger.warning("Failed to create temporary storage %s: %r", self.path, exc)
        self._cleaned_up = False

        if self.cleanup_on_exit and self._lifecycle is None:
            kwargs = {"retain_on_error": self.retain_on_error}
            if self._exit_func is not None:
                kwargs["exit_func"] = self._exit_func
            self._lifecycle = RunLifecycle(self._cleanup_from_hook, self._retain, **kwargs)
            self._lifecycle.install()
        return self.path

    def get_run_info(self) -> RunInfo:
        return RunInfo(
            run_id=self.run_id,
            path=self.path,
            cleanup_on_exit=self.cleanup_on_exit,
            retain_on_error=self.retain_on_error,
            is_cleaned_up=self._cleaned_up,
        )

    def add_cleanup_handler(self, handler: Callable[[], None]) -> None:
        self._handlers.append(handler)

    def create_child(self, namespace: str) -> "StorageIsolationManager":
        """
        Derive a manager under the same base with id ``{run_id}_{namespace}``.
        Its own ``cleanup()`` does nothing unless forced; this manager removes it.
        """
        child = StorageIsolationManager(
            self.base_path,
            f"{self.run_id}_{namespace}",
            cleanup_on_exit=False,
            retain_on_error=self.retain_on_error,
            owns_cleanup=False,
        )
        self._children.append(child)
        return child

    def cleanup(self, force: bool = False) -> None:
        """
        Remove the workspace. Safe to call repeatedly; filesystem errors are
        logged, never raised.
        """
        if not self._owns_cleanup and not force:
            logger.debug("Skipping cleanup of %s; owned by parent run", self.path)
            return
        if self._cleaned_up and not force:
            return

        self._run_handlers()
        for child in self._children:
            child.cleanup(force=True)
        self._remove_tree()
        self.detach()

    def detach(self) -> None:
        """Stop automatic cleanup without touching the files."""
        if self._lifecycle is not None:
            self._lifecycle.uninstall()
            self._lifecycle = None

    # ---- Internals -----------------------------------------------------------

    def _run_handlers(self) -> None:
        for handler in list(self._handlers):
            try:
                handler()
            except Exception as exc:
                logger.warning("Cleanup handler failed: %r", exc)

    def _remove_tree(self) -> None:
        try:
            if self.path.exists():
                shutil.rmtree(self.path)
                logger.info("Cleaned up temporary storage: %s", self.path)
            self._cleaned_up = True
        except OSError as exc:
            logger.warning("Failed to clean up temporary storage %s: %r", self.path, exc)

    def _cleanup_from_hook(self) -> None:
        if self._cleaned_up:
            return
        self._run_handlers()
        for child in self._children:
            child.cleanup(force=True)
        self._remove_tree()

    def _retain(self) -> None:
        self._run_handlers()
        logger.warning("Retaining temporary storage for debugging: %s", self.path)
