"""Abstract base class for the shared remote comment collection."""

from abc import ABC, abstractmethod
from typing import Optional

from threadboard.core.types import Comment, CommentDraft


class RemoteCollection(ABC):
    """Durable collection surface shared by every client.

    Three durable operations: bulk read, append with a server-generated id
    and timestamp, delete by id. Change delivery is layered on top by
    RemoteCommentStore.
    """

    @abstractmethod
    def fetch_all(self, category: Optional[str] = None) -> list[Comment]:
        """Read every record (optionally only one category).

        Raises:
            ReadError: Collection unreachable
        """
        ...

    @abstractmethod
    def append(self, draft: CommentDraft) -> Comment:
        """Append a record; the collection assigns id and timestamp.

        Returns:
            The stored Comment as the collection recorded it

        Raises:
            WriteError: Collection unreachable or write rejected
        """
        ...

    @abstractmethod
    def remove(self, comment_ids: list[str]) -> None:
        """Delete records by id in one atomic write. Unknown ids are ignored.

        Raises:
            WriteError: Collection unreachable or write rejected
        """
        ...
