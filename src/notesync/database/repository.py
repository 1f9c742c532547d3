"""Repository for note persistence, guarded sync updates and read projections."""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from sqlalchemy import and_, delete, func, not_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notesync.database.observer import LiveQuery, TableObserver
from notesync.database.schema import (
    CATEGORY_TABLE,
    NOTE_TABLE,
    CategoryRecord,
    NoteRecord,
    init_database,
)
from notesync.exceptions import StorageError
from notesync.models.category import CATEGORY_SEPARATOR, UNCATEGORIZED_ID, Category
from notesync.models.note import (
    DBStatus,
    Note,
    NoteWithCategory,
    SyncPayload,
    SyncWitness,
)
from notesync.models.search import (
    LIKE_ESCAPE,
    SearchMode,
    SortColumn,
    SortDirection,
    SortKey,
    escape_like,
)

logger = logging.getLogger(__name__)

RECENT_NOTES_LIMIT = 4

USER_FIELDS = frozenset({"title", "content", "category_id", "favorite", "modified"})

_SORT_COLUMNS = {
    SortColumn.MODIFIED: NoteRecord.modified,
    SortColumn.TITLE: func.lower(NoteRecord.title),
    SortColumn.FAVORITE: NoteRecord.favorite,
}

# Bulk UPDATE/DELETE statements skip ORM session synchronization
_NO_SYNC = {"synchronize_session": False}


class NoteRepository:
    """Repository for managing notes and categories in the local database.

    Writes are serialized through a single lock and invalidate the
    affected table on commit; reads may run concurrently.
    """

    def __init__(self, database_url: str, observer: Optional[TableObserver] = None):
        """Initialize repository with database connection."""
        self.session_factory = init_database(database_url)
        self.observer = observer or TableObserver()
        self._write_lock = threading.RLock()

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.session_factory()

    @contextmanager
    def _read(self, operation: str) -> Iterator[Session]:
        """Session for a read-only operation."""
        try:
            with self._get_session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Storage failure in %s: %s", operation, e)
            raise StorageError(str(e), operation=operation) from e

    @contextmanager
    def _write(self, operation: str, table: str = NOTE_TABLE) -> Iterator[Session]:
        """Session for a write; commits on success, then fires the table signal."""
        with self._write_lock:
            try:
                with self._get_session() as session, session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error("Storage failure in %s: %s", operation, e)
                raise StorageError(str(e), operation=operation) from e
        self.observer.invalidate(table)

    @staticmethod
    def _live(account_id: int):
        """Rows of the account that are not pending remote deletion."""
        return and_(
            NoteRecord.account_id == account_id,
            NoteRecord.status != DBStatus.LOCAL_DELETED,
        )

    # ==================== Note Operations ====================

    def add_note(self, note: Note) -> int:
        """Insert a note and return its freshly assigned local id."""
        with self._write("add_note") as session:
            record = NoteRecord(account_id=note.account_id, **self._note_values(note))
            session.add(record)
            session.flush()
            note.id = record.id
        logger.debug("Added note %d for account %d", note.id, note.account_id)
        return note.id

    def update_note(self, note: Note) -> int:
        """Replace the full row keyed by note.id.

        A live row of the same account already holding note.remote_id is
        removed first, so the remote id stays unique.

        Returns:
            Number of rows updated (0 if note.id does not exist)
        """
        with self._write("update_note") as session:
            exists = session.scalar(select(NoteRecord.id).where(NoteRecord.id == note.id))
            if exists is None:
                return 0

            if note.remote_id and note.status != DBStatus.LOCAL_DELETED:
                replaced = session.execute(
                    delete(NoteRecord)
                    .where(
                        NoteRecord.account_id == note.account_id,
                        NoteRecord.remote_id == note.remote_id,
                        NoteRecord.status != DBStatus.LOCAL_DELETED,
                        NoteRecord.id != note.id,
                    )
                    .execution_options(**_NO_SYNC)
                )
                if replaced.rowcount:
                    logger.info(
                        "update_note %d replaced %d row(s) holding remote id %d",
                        note.id,
                        replaced.rowcount,
                        note.remote_id,
                    )

            result = session.execute(
                update(NoteRecord)
                .where(NoteRecord.id == note.id)
                .values(account_id=note.account_id, **self._note_values(note))
                .execution_options(**_NO_SYNC)
            )
            return result.rowcount

    def delete_by_account_id(self, account_id: int) -> int:
        """Remove every note of an account."""
        with self._write("delete_by_account_id") as session:
            result = session.execute(
                delete(NoteRecord)
                .where(NoteRecord.account_id == account_id)
                .execution_options(**_NO_SYNC)
            )
        logger.info("Deleted %d note(s) of account %d", result.rowcount, account_id)
        return result.rowcount

    def delete_by_id_and_status(self, note_id: int, status: DBStatus) -> int:
        """Physically delete a note only if it is still in the given status."""
        with self._write("delete_by_id_and_status") as session:
            result = session.execute(
                delete(NoteRecord)
                .where(NoteRecord.id == note_id, NoteRecord.status == status)
                .execution_options(**_NO_SYNC)
            )
            return result.rowcount

    def _update_columns(self, operation: str, note_id: int, **values) -> int:
        with self._write(operation) as session:
            result = session.execute(
                update(NoteRecord)
                .where(NoteRecord.id == note_id)
                .values(**values)
                .execution_options(**_NO_SYNC)
            )
            return result.rowcount

    def update_status(self, note_id: int, status: DBStatus) -> int:
        """Update just the status for a note."""
        return self._update_columns("update_status", note_id, status=status)

    def update_category(self, note_id: int, category_id: int) -> int:
        """Update just the category for a note."""
        return self._update_columns("update_category", note_id, category_id=category_id)

    def update_scroll_y(self, note_id: int, scroll_y: int) -> int:
        """Update just the scroll offset for a note."""
        return self._update_columns("update_scroll_y", note_id, scroll_y=scroll_y)

    def update_remote_id(self, note_id: int, remote_id: Optional[int]) -> int:
        """Update just the remote id for a note."""
        return self._update_columns("update_remote_id", note_id, remote_id=remote_id)

    def toggle_favorite(self, note_id: int) -> int:
        """Flip the favorite flag and mark the note as locally edited.

        Toggling twice restores the flag but the note stays LOCAL_EDITED,
        so a re-toggle is still pushed.
        """
        return self._update_columns(
            "toggle_favorite",
            note_id,
            favorite=not_(NoteRecord.favorite),
            status=DBStatus.LOCAL_EDITED,
        )

    def update_user_fields(self, note_id: int, **fields) -> int:
        """Write user-editable columns and mark the note as locally edited.

        Only the given columns are written, in the same statement as the
        status. Sync-owned columns (remote_id, etag) are never touched, so a
        push that completed after the caller read the row is preserved.

        Args:
            note_id: Local id of the note
            **fields: Any of title, content, category_id, favorite, modified

        Returns:
            1 if the row was updated, 0 if it is missing or pending deletion
        """
        unknown = set(fields) - USER_FIELDS
        if unknown:
            raise ValueError(f"Not user-editable: {', '.join(sorted(unknown))}")
        with self._write("update_user_fields") as session:
            result = session.execute(
                update(NoteRecord)
                .where(
                    NoteRecord.id == note_id,
                    NoteRecord.status != DBStatus.LOCAL_DELETED,
                )
                .values(status=DBStatus.LOCAL_EDITED, **fields)
                .execution_options(**_NO_SYNC)
            )
            return result.rowcount

    # ==================== Guarded Sync Updates ====================

    def update_if_not_modified_locally_during_sync(
        self, note_id: int, payload: SyncPayload, witness: SyncWitness
    ) -> int:
        """Commit a push acknowledgement unless the user edited the note meanwhile.

        All user-changeable columns must still hold the witness values
        gathered before the push. Status is left untouched.

        Returns:
            1 if the row was updated, 0 if the witness no longer matches
        """
        with self._write("update_if_not_modified_locally_during_sync") as session:
            result = session.execute(
                update(NoteRecord)
                .where(
                    NoteRecord.id == note_id,
                    NoteRecord.content == witness.content,
                    NoteRecord.favorite == witness.favorite,
                    NoteRecord.category_id == witness.category_id,
                )
                .values(
                    title=payload.title,
                    modified=payload.modified,
                    favorite=payload.favorite,
                    etag=payload.etag,
                    content=payload.content,
                )
                .execution_options(**_NO_SYNC)
            )
            return result.rowcount

    def update_if_not_modified_locally_and_remote_changed(
        self, note_id: int, payload: SyncPayload
    ) -> int:
        """Apply a remote change to a clean row if any tracked column differs.

        Returns:
            1 if the row was updated, 0 if it has local edits or nothing changed
        """
        remote_changed = or_(
            NoteRecord.modified != payload.modified,
            NoteRecord.favorite != payload.favorite,
            NoteRecord.category_id != payload.category_id,
            NoteRecord.etag.is_(None),
            NoteRecord.etag != payload.etag,
            NoteRecord.content != payload.content,
        )
        with self._write("update_if_not_modified_locally_and_remote_changed") as session:
            result = session.execute(
                update(NoteRecord)
                .where(
                    NoteRecord.id == note_id,
                    NoteRecord.status == DBStatus.CLEAN,
                    remote_changed,
                )
                .values(
                    title=payload.title,
                    modified=payload.modified,
                    favorite=payload.favorite,
                    # Keeps a CLEAN row's category equal to the remote one;
                    # without it the category clause above never settles
                    category_id=payload.category_id,
                    etag=payload.etag,
                    content=payload.content,
                )
                .execution_options(**_NO_SYNC)
            )
            return result.rowcount

    # ==================== Note Queries ====================

    def get_note(self, account_id: int, note_id: int) -> Optional[Note]:
        """Get a note by local id, unless it is pending remote deletion."""
        with self._read("get_note") as session:
            stmt = select(NoteRecord).where(
                NoteRecord.id == note_id, self._live(account_id)
            )
            record = session.scalars(stmt).first()
            if record:
                return self._record_to_note(record)
            return None

    def get_notes(self, account_id: int) -> list[Note]:
        """Get all live notes, favorites first, newest first."""
        with self._read("get_notes") as session:
            stmt = (
                select(NoteRecord)
                .where(self._live(account_id))
                .order_by(NoteRecord.favorite.desc(), NoteRecord.modified.desc())
            )
            return [self._record_to_note(r) for r in session.scalars(stmt).all()]

    def get_recent_notes(self, account_id: int, limit: int = RECENT_NOTES_LIMIT) -> list[Note]:
        """Get the most recently modified live notes."""
        with self._read("get_recent_notes") as session:
            stmt = (
                select(NoteRecord)
                .where(self._live(account_id))
                .order_by(NoteRecord.modified.desc(), NoteRecord.id.desc())
                .limit(limit)
            )
            return [self._record_to_note(r) for r in session.scalars(stmt).all()]

    def get_local_modified_notes(self, account_id: int) -> list[Note]:
        """Get every note with pending changes, including LOCAL_DELETED ones."""
        with self._read("get_local_modified_notes") as session:
            stmt = (
                select(NoteRecord)
                .where(
                    NoteRecord.account_id == account_id,
                    NoteRecord.status != DBStatus.CLEAN,
                )
                .order_by(NoteRecord.id)
            )
            return [self._record_to_note(r) for r in session.scalars(stmt).all()]

    def get_remote_ids(self, account_id: int) -> list[int]:
        """Get the distinct remote ids of all live notes."""
        with self._read("get_remote_ids") as session:
            stmt = (
                select(NoteRecord.remote_id)
                .distinct()
                .where(self._live(account_id), NoteRecord.remote_id.is_not(None))
            )
            return list(session.scalars(stmt).all())

    def get_remote_id_and_id(self, account_id: int) -> list[tuple[int, Optional[int]]]:
        """Get (local id, remote id) pairs of all live notes."""
        with self._read("get_remote_id_and_id") as session:
            stmt = (
                select(NoteRecord.id, NoteRecord.remote_id)
                .where(self._live(account_id))
                .order_by(NoteRecord.id)
            )
            return [(row.id, row.remote_id) for row in session.execute(stmt)]

    def get_local_id_by_remote_id(self, account_id: int, remote_id: int) -> Optional[int]:
        """Get the local id of a live note by its remote id."""
        with self._read("get_local_id_by_remote_id") as session:
            stmt = select(NoteRecord.id).where(
                self._live(account_id), NoteRecord.remote_id == remote_id
            )
            return session.scalars(stmt).first()

    def get_favorites_count(self, account_id: int) -> int:
        return self._count("get_favorites_count", account_id, favorite=True)

    def get_non_favorites_count(self, account_id: int) -> int:
        return self._count("get_non_favorites_count", account_id, favorite=False)

    def _count(self, operation: str, account_id: int, favorite: bool) -> int:
        with self._read(operation) as session:
            stmt = (
                select(func.count())
                .select_from(NoteRecord)
                .where(self._live(account_id), NoteRecord.favorite == favorite)
            )
            return session.scalar(stmt) or 0

    # ==================== Search ====================

    def search_notes(
        self,
        account_id: int,
        query: str,
        mode: SearchMode = SearchMode.ALL,
        sort: Union[SortKey, str] = SortKey(),
        category: Optional[str] = None,
    ) -> list[NoteWithCategory]:
        """Search live notes.

        Args:
            account_id: Account to search in
            query: LIKE pattern already wrapped in '%' by the caller
            mode: Which notes to consider
            sort: Ordering clause, validated against the allowlist
            category: Category title, required for SearchMode.CATEGORY;
                matches the category itself and all of its subcategories

        Returns:
            Matching notes with their category titles

        Raises:
            InvalidSortKeyError: If `sort` is not an allowed clause
        """
        stmt = self._search_statement(account_id, query, SearchMode(mode), sort, category)
        with self._read("search_notes") as session:
            return [
                NoteWithCategory(note=self._record_to_note(record), category=category_title)
                for record, category_title in session.execute(stmt).all()
            ]

    def search_notes_by_category(
        self, account_id: int, query: str, category: str, sort: Union[SortKey, str] = SortKey()
    ) -> list[NoteWithCategory]:
        return self.search_notes(account_id, query, SearchMode.CATEGORY, sort, category)

    def search_favorites(
        self, account_id: int, query: str, sort: Union[SortKey, str] = SortKey()
    ) -> list[NoteWithCategory]:
        return self.search_notes(account_id, query, SearchMode.FAVORITES, sort)

    def search_uncategorized(
        self, account_id: int, query: str, sort: Union[SortKey, str] = SortKey()
    ) -> list[NoteWithCategory]:
        return self.search_notes(account_id, query, SearchMode.UNCATEGORIZED, sort)

    def search_all(
        self, account_id: int, query: str, sort: Union[SortKey, str] = SortKey()
    ) -> list[NoteWithCategory]:
        return self.search_notes(account_id, query, SearchMode.ALL, sort)

    def observe_search(
        self,
        account_id: int,
        query: str,
        mode: SearchMode = SearchMode.ALL,
        sort: Union[SortKey, str] = SortKey(),
        category: Optional[str] = None,
    ) -> LiveQuery[list[NoteWithCategory]]:
        """Live variant of search_notes, refreshed after every note write."""
        # Validate eagerly so a bad clause fails here, not inside a callback
        sort_key = self._sort_key(sort)
        return LiveQuery(
            self.observer,
            NOTE_TABLE,
            lambda: self.search_notes(account_id, query, mode, sort_key, category),
        )

    def _search_statement(
        self,
        account_id: int,
        query: str,
        mode: SearchMode,
        sort: Union[SortKey, str],
        category: Optional[str],
    ):
        sort_key = self._sort_key(sort)
        category_title = func.coalesce(CategoryRecord.title, "")

        stmt = (
            select(NoteRecord, category_title.label("category"))
            .outerjoin(
                CategoryRecord,
                and_(
                    NoteRecord.category_id == CategoryRecord.id,
                    CategoryRecord.account_id == NoteRecord.account_id,
                ),
            )
            .where(self._live(account_id))
        )

        text_match = [
            NoteRecord.title.like(query, escape=LIKE_ESCAPE),
            NoteRecord.content.like(query, escape=LIKE_ESCAPE),
        ]
        if mode is not SearchMode.UNCATEGORIZED:
            text_match.append(category_title.like(query, escape=LIKE_ESCAPE))
        stmt = stmt.where(or_(*text_match))

        if mode is SearchMode.CATEGORY:
            if not category:
                raise ValueError("A category is required for category search")
            stmt = stmt.where(
                or_(
                    category_title == category,
                    category_title.like(
                        escape_like(category + CATEGORY_SEPARATOR) + "%", escape=LIKE_ESCAPE
                    ),
                )
            )
        elif mode is SearchMode.FAVORITES:
            stmt = stmt.where(NoteRecord.favorite.is_(True))
        elif mode is SearchMode.UNCATEGORIZED:
            stmt = stmt.where(category_title == "")

        column = _SORT_COLUMNS[sort_key.column]
        order = column.asc() if sort_key.direction is SortDirection.ASC else column.desc()
        return stmt.order_by(order, NoteRecord.id)

    @staticmethod
    def _sort_key(sort: Union[SortKey, str]) -> SortKey:
        if isinstance(sort, SortKey):
            return sort
        return SortKey.parse(sort)

    # ==================== Category Operations ====================

    def add_category(self, account_id: int, title: str) -> int:
        """Add a category and return its id."""
        with self._write("add_category", table=CATEGORY_TABLE) as session:
            record = CategoryRecord(account_id=account_id, title=title)
            session.add(record)
            session.flush()
            return record.id

    def get_or_create_category(self, account_id: int, title: str) -> int:
        """Get the id of a category by title, creating it if needed.

        An empty title means uncategorized and maps to 0.
        """
        if not title:
            return UNCATEGORIZED_ID
        with self._write_lock:
            with self._read("get_or_create_category") as session:
                existing = session.scalar(
                    select(CategoryRecord.id).where(
                        CategoryRecord.account_id == account_id,
                        CategoryRecord.title == title,
                    )
                )
            if existing is not None:
                return existing
            return self.add_category(account_id, title)

    def get_category_title(self, account_id: int, category_id: int) -> Optional[str]:
        """Get a category title; '' for uncategorized, None if unknown."""
        if category_id == UNCATEGORIZED_ID:
            return ""
        with self._read("get_category_title") as session:
            return session.scalar(
                select(CategoryRecord.title).where(
                    CategoryRecord.account_id == account_id,
                    CategoryRecord.id == category_id,
                )
            )

    def get_categories(self, account_id: int) -> list[Category]:
        """Get all categories of an account ordered by title."""
        with self._read("get_categories") as session:
            stmt = (
                select(CategoryRecord)
                .where(CategoryRecord.account_id == account_id)
                .order_by(CategoryRecord.title)
            )
            return [
                Category(id=r.id, account_id=r.account_id, title=r.title)
                for r in session.scalars(stmt).all()
            ]

    # ==================== Statistics ====================

    def get_stats(self, account_id: int) -> dict:
        """Get note statistics for an account."""
        with self._read("get_stats") as session:
            pending = session.scalar(
                select(func.count())
                .select_from(NoteRecord)
                .where(
                    NoteRecord.account_id == account_id,
                    NoteRecord.status != DBStatus.CLEAN,
                )
            )
            deleted = session.scalar(
                select(func.count())
                .select_from(NoteRecord)
                .where(
                    NoteRecord.account_id == account_id,
                    NoteRecord.status == DBStatus.LOCAL_DELETED,
                )
            )

        favorites = self.get_favorites_count(account_id)
        non_favorites = self.get_non_favorites_count(account_id)
        return {
            "total_notes": favorites + non_favorites,
            "favorite_notes": favorites,
            "non_favorite_notes": non_favorites,
            "pending_notes": pending or 0,
            "pending_deletions": deleted or 0,
        }

    # ==================== Helper Methods ====================

    @staticmethod
    def _note_values(note: Note) -> dict:
        """Column values of a note, excluding its keys."""
        return {
            "remote_id": note.remote_id,
            "title": note.title,
            "content": note.content,
            "category_id": note.category_id,
            "favorite": note.favorite,
            "modified": note.modified,
            "etag": note.etag,
            "status": note.status,
            "scroll_y": note.scroll_y,
        }

    @staticmethod
    def _record_to_note(record: NoteRecord) -> Note:
        """Convert database record to Note model."""
        return Note(
            id=record.id,
            account_id=record.account_id,
            remote_id=record.remote_id,
            title=record.title,
            content=record.content,
            category_id=record.category_id,
            favorite=bool(record.favorite),
            modified=record.modified,
            etag=record.etag,
            status=DBStatus(record.status),
            scroll_y=record.scroll_y,
        )
