"""Threadboard composition root: wires config, storage and controllers."""

import logging
from dataclasses import dataclass
from typing import Optional

from threadboard.adapters.firestore_collection import FirestoreCollection
from threadboard.adapters.local_cache import DEFAULT_KEY_PREFIX, LocalAnnotationCache
from threadboard.adapters.remote_store import RemoteCommentStore
from threadboard.adapters.sqlite_collection import SQLiteCollection
from threadboard.core.config_manager import ConfigManager
from threadboard.core.database import DatabaseManager
from threadboard.core.exceptions import ConfigError, ValidationError
from threadboard.core.key_value_store import JsonFileStore
from threadboard.core.logger import setup_logger
from threadboard.core.types import CONTEXT_TYPES, UserIdentity
from threadboard.gui.comment_bridge import CommentBridge
from threadboard.services.comment_controller import CommentController

logger = logging.getLogger("threadboard")

FORUM = "forum"


@dataclass(frozen=True)
class CommentContext:
    """Where a discussion lives: the shared forum, or one document/task."""

    kind: str                        # "forum" | "document" | "task"
    context_id: Optional[str] = None

    def __post_init__(self):
        if self.kind != FORUM and self.kind not in CONTEXT_TYPES:
            raise ValidationError("context_type", f"Unknown context kind '{self.kind}'")
        if self.kind != FORUM and not self.context_id:
            raise ValidationError("context_id", f"A {self.kind} context needs an id")

    @property
    def is_forum(self) -> bool:
        return self.kind == FORUM


def create_remote_store(config: ConfigManager) -> RemoteCommentStore:
    """Build the shared store selected by remote.backend."""
    backend = config.get("remote.backend", "sqlite")
    if backend == "sqlite":
        db = DatabaseManager(config.get_db_path())
        collection = SQLiteCollection(db)
    elif backend == "firestore":
        project_id = config.get("remote.firestore.project_id", "")
        if not project_id:
            raise ConfigError("remote.firestore.project_id is required for the firestore backend")
        collection = FirestoreCollection(
            project_id=project_id,
            collection=config.get("remote.firestore.collection", "comments"),
            database=config.get("remote.firestore.database", "(default)"),
            api_key=config.get("remote.firestore.api_key", ""),
            timeout=config.get("remote.firestore.timeout", 30),
        )
    else:
        raise ConfigError(f"Unknown remote backend '{backend}'")
    logger.info(f"Remote comment store: {backend}")
    return RemoteCommentStore(collection)


def create_local_cache(config: ConfigManager) -> LocalAnnotationCache:
    """Build the JSON-file annotation cache under cache.dir."""
    store = JsonFileStore(config.get_cache_dir())
    return LocalAnnotationCache(store, config.get("cache.key_prefix", DEFAULT_KEY_PREFIX))


class AppServices:
    """Long-lived stores plus a factory for per-view controllers."""

    def __init__(self, config: ConfigManager, remote_store: RemoteCommentStore,
                 local_cache: LocalAnnotationCache):
        self.config = config
        self.remote_store = remote_store
        self.local_cache = local_cache

    def controller_for(self, context: CommentContext,
                       user: Optional[UserIdentity]) -> CommentController:
        """Pick the backend for a context; the choice is fixed for the controller's life."""
        elevated_roles = tuple(self.config.get("security.elevated_roles", ["admin"]))
        if context.is_forum:
            return CommentController(self.remote_store, user, elevated_roles)
        backend = self.local_cache.for_context(context.context_id, context.kind)
        return CommentController(
            backend,
            user,
            elevated_roles,
            context_id=context.context_id,
            context_type=context.kind,
        )

    def bridge_for(self, context: CommentContext, user: Optional[UserIdentity],
                   parent=None) -> CommentBridge:
        """Controller for a context wrapped for a Qt view, polling at remote.poll_interval_sec."""
        return CommentBridge(
            self.controller_for(context, user),
            poll_interval_sec=self.config.get("remote.poll_interval_sec", 5),
            parent=parent,
        )

    def close(self) -> None:
        if self.config.get("remote.backend", "sqlite") == "sqlite":
            DatabaseManager().close()


def build_services(config: Optional[ConfigManager] = None) -> AppServices:
    """Startup sequence.

    1. ConfigManager init (loads or creates settings.yaml)
    2. Logger init (reads log_level from config)
    3. Remote store (opens the database or Firestore session)
    4. Local annotation cache
    """
    config = config or ConfigManager()

    setup_logger(
        log_level=config.get("app.log_level", "INFO"),
        mask_logs=config.get("security.mask_logs", True),
    )
    logger.info("Threadboard starting...")

    remote_store = create_remote_store(config)
    local_cache = create_local_cache(config)
    return AppServices(config, remote_store, local_cache)
