from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime
from typing import Any

from ..db.document_store import DocumentStore
from ..errors import (
    DataNotLoadedError,
    DocumentStoreError,
    ReportBusyError,
    ReportError,
    TechnicianNotCollectedError,
)
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ReportConfig
from ..models.error_record import ErrorRecord
from ..models.operation_result import CollectionStat, OperationResult
from ..models.row import Row, resolve_row_key, row_from_document, to_document_fields
from ..models.section import ReportState, TechnicianInfo, week_start
from .notifications import ToastQueue
from .progress import CollectionProgress
from .signature import SignatureSource, signature_data_url
from .table_binding import RESERVED_DOCUMENT_IDS, SectionTableBinding, align_rows

"""Form controller for the weekly report.

Owns the report state (week, technician info, sections, notes) and runs the
three whole-report operations:

- load(): initial load of every section filtered by plant
- save_all(): technician info, then every section row, then notes, in a fixed order
- clear_all(): delete every managed collection, reset, reload

Writes are best effort: a failure stops the save where it happened and the
documents written before it stay written.
"""

__all__ = [
    "FormController",
    "TECHNICIAN_INFO_ID",
    "NOTE_LIST_ID",
    "SIGNATURE_ID",
    "PLANT_FIELD",
]

logger = logging.getLogger(__name__)

TECHNICIAN_INFO_ID = "technicianInfo"
NOTE_LIST_ID = "noteList"
SIGNATURE_ID = "signature"
PLANT_FIELD = "plantName"

SAVE_SUCCESS = "Report submitted successfully!"
SAVE_FAILURE = "Error submitting report. Please try again."
CLEAR_SUCCESS = "Data cleared successfully!"
CLEAR_FAILURE = "Error clearing data. Please try again."


def _now() -> datetime:
    return datetime.now(UTC)


class FormController:
    """Report form: state owner, aggregate save/clear and initial load."""

    def __init__(
        self,
        config: ReportConfig,
        store: DocumentStore,
        *,
        error_log: ErrorLogBuffer | None = None,
        toasts: ToastQueue | None = None,
        today: date | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.error_log = error_log or ErrorLogBuffer()
        self.toasts = toasts or ToastQueue()
        self._today = today
        self.state = ReportState.create(config, today=today)
        self.bindings: dict[str, SectionTableBinding] = {}
        self.initial_loading = False
        # 操作種別ごとの排他 (save / clear)
        self._save_lock = threading.Lock()
        self._clear_lock = threading.Lock()

    # --- busy state ------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._save_lock.locked() or self._clear_lock.locked()

    @contextmanager
    def _busy(self, lock: threading.Lock, operation: str) -> Iterator[None]:
        if self.busy or not lock.acquire(blocking=False):
            raise ReportBusyError(f"cannot start {operation}: another operation is running")
        try:
            yield
        finally:
            lock.release()

    def _check_idle(self) -> None:
        if self.busy:
            raise ReportBusyError("report is busy")

    # --- bindings / upward channel ---------------------------------------------

    def update_data(self, collection: str, rows: list[Row]) -> None:
        """Receive the full row set of one section from its binding."""
        if collection == self.config.notes_collection:
            self.state.notes = list(rows)
            return
        self.state.section(collection).rows = rows

    def binding(self, collection: str) -> SectionTableBinding:
        if collection not in self.bindings:
            self.bindings[collection] = SectionTableBinding(
                self.state.section(collection),
                self.store,
                self.update_data,
                is_busy=lambda: self.busy,
                extra_fields={PLANT_FIELD: self.config.plant_name},
            )
        return self.bindings[collection]

    def mount(self) -> None:
        """Create every section binding; each one re-fetches its own collection."""
        for section_cfg in self.config.sections:
            self.binding(section_cfg.collection).fetch()

    # --- simple session edits ---------------------------------------------------

    def select_week(self, day: date) -> date:
        self._check_idle()
        self.state.week_commencing = week_start(day)
        for section in self.state.sections.values():
            section.apply_labels(week=self.state.week_commencing, today=self._today)
        return self.state.week_commencing

    def set_technician_name(self, collection: str, name: str) -> None:
        self._check_idle()
        self._technician(collection).name = name

    def sign_technician(self, collection: str, source: SignatureSource) -> bool:
        """Capture a technician signature and write it through to the ``signature`` document."""
        self._check_idle()
        try:
            data_url = signature_data_url(source)
            if collection == self.config.notes_collection:
                self.state.note_author.signature = data_url
            else:
                self._technician(collection).signature = data_url
            self.store.put(collection, SIGNATURE_ID, {"signature": data_url})
        except ReportError as e:
            self._record("sign", collection, SIGNATURE_ID, e)
            self.toasts.error(f"Error saving signature: {e}")
            self.error_log.flush()
            return False
        return True

    def sign_row(self, collection: str, row_index: int, column: str, source: SignatureSource) -> bool:
        """Signature capture on a section row (write-through save)."""
        try:
            self.binding(collection).capture_signature(row_index, column, source)
        except ReportError as e:
            self._record("sign", collection, self.state.section(collection).row_label(row_index), e)
            self.toasts.error(f"Error saving signature: {e}")
            self.error_log.flush()
            return False
        return True

    def set_notes(self, notes: list[Any]) -> None:
        self._check_idle()
        self.update_data(self.config.notes_collection, notes)

    def set_note_name(self, name: str) -> None:
        self._check_idle()
        self.state.note_author.name = name

    def _technician(self, collection: str) -> TechnicianInfo:
        try:
            return self.state.technicians[collection]
        except KeyError:
            raise TechnicianNotCollectedError(f"section {collection} does not collect a technician") from None

    # --- error bookkeeping -------------------------------------------------------

    def _record(self, operation: str, collection: str, document: str, error: Exception) -> None:
        self.error_log.append(
            ErrorRecord.create(
                operation=operation,
                collection=collection,
                document=document,
                error_type=_error_type(error),
                message=str(error),
            )
        )

    # --- initial load ------------------------------------------------------------

    def load(self) -> OperationResult:
        """Fetch every section filtered by plant, plus the singleton documents.

        Failures are logged per collection; whatever loaded successfully is kept.
        """
        start = _now()
        self.initial_loading = True
        stats: list[CollectionStat] = []
        plant_filter = {PLANT_FIELD: self.config.plant_name}
        try:
            for section in self.state.sections.values():
                try:
                    documents = self.store.list(section.collection, plant_filter)
                except DocumentStoreError as e:
                    logger.error("Error fetching initial data for %s: %s", section.collection, e)
                    self._record("load", section.collection, "-", e)
                    stats.append(CollectionStat(section.collection, 0, str(e)))
                    continue
                rows = [
                    row_from_document(doc.id, doc.fields)
                    for doc in documents
                    if doc.id not in RESERVED_DOCUMENT_IDS
                ]
                section.rows = rows if section.uses_generated_ids else align_rows(rows, section.row_labels)
                stats.append(CollectionStat(section.collection, len(section.rows)))

            stats.append(self._load_notes(plant_filter))

            for collection, info in self.state.technicians.items():
                try:
                    fields = self.store.get(collection, TECHNICIAN_INFO_ID)
                except DocumentStoreError as e:
                    logger.error("Error fetching technician info for %s: %s", collection, e)
                    self._record("load", collection, TECHNICIAN_INFO_ID, e)
                    continue
                if fields is not None:
                    info.name = fields.get("name") or ""
                    info.signature = fields.get("signature") or ""
        finally:
            self.initial_loading = False
            self.error_log.flush()

        failed = [s for s in stats if not s.ok]
        return OperationResult(
            operation="load",
            ok=not failed,
            start_time=start,
            end_time=_now(),
            collection_stats=stats,
            error="; ".join(s.error for s in failed if s.error) or None,
        )

    def _load_notes(self, plant_filter: dict[str, Any]) -> CollectionStat:
        collection = self.config.notes_collection
        try:
            documents = self.store.list(collection, plant_filter)
            author = self.store.get(collection, NOTE_LIST_ID)
        except DocumentStoreError as e:
            logger.error("Error fetching notes: %s", e)
            self._record("load", collection, "-", e)
            return CollectionStat(collection, 0, str(e))
        notes: list[Any] = []
        for doc in documents:
            notes.extend(doc.fields.get("notes") or [])
        self.state.notes = notes
        if author is not None:
            self.state.note_author.name = author.get("name") or ""
            self.state.note_author.signature = author.get("signature") or ""
        return CollectionStat(collection, len(documents))

    # --- bulk save -----------------------------------------------------------------

    def save_all(self, and_exit: bool = False) -> OperationResult:
        """Persist the whole report ("Submit report" / "Save and Exit").

        Order: technician info, every section (config order), notes. Each write
        completes before the next starts; a failure stops the save without undoing
        earlier writes.
        """
        with self._busy(self._save_lock, "save"):
            start = _now()
            stats: list[CollectionStat] = []
            error: str | None = None
            total = len(self.state.technicians) + len(self.state.sections) + 1
            with CollectionProgress(total, description="Saving") as progress:
                try:
                    self._check_loaded()
                    self._assign_generated_ids()
                    for collection, info in self.state.technicians.items():
                        progress.start(collection)
                        try:
                            self._put("save", collection, TECHNICIAN_INFO_ID, info.to_fields())
                        except ReportError as e:
                            stats.append(CollectionStat(collection, 0, str(e)))
                            raise
                        progress.finish(1)
                    for section in self.state.sections.values():
                        progress.start(section.collection)
                        progress.finish(self._save_section(section.collection, stats))
                    progress.start(self.config.notes_collection)
                    try:
                        self._save_notes()
                    except ReportError as e:
                        stats.append(CollectionStat(self.config.notes_collection, 0, str(e)))
                        raise
                    stats.append(CollectionStat(self.config.notes_collection, 1))
                    progress.finish(1)
                except ReportError as e:
                    error = str(e)
                    logger.error("Error submitting report: %s", e)
                    if not isinstance(e, DocumentStoreError):
                        self._record("save", "-", "-", e)
                    self.toasts.error(SAVE_FAILURE)
                else:
                    self.toasts.success(SAVE_SUCCESS)
                finally:
                    self.error_log.flush()

            return OperationResult(
                operation="save",
                ok=error is None,
                start_time=start,
                end_time=_now(),
                collection_stats=stats,
                message=SAVE_SUCCESS if error is None else SAVE_FAILURE,
                error=error,
                confirmation_shown=and_exit,
            )

    def _check_loaded(self) -> None:
        for section in self.state.sections.values():
            if section.config.required and not section.loaded:
                raise DataNotLoadedError(f"Data not loaded properly: {section.collection}")

    def _assign_generated_ids(self) -> None:
        """Give every row of a generated-key section an id (kept in state for later saves)."""
        for section in self.state.sections.values():
            if not section.uses_generated_ids or not section.rows:
                continue
            for row in section.rows:
                if not row.id:
                    row.id = self.store.new_id(section.collection)

    def _save_section(self, collection: str, stats: list[CollectionStat]) -> int:
        """Write every row of one section; the outcome (also a failure) is appended to ``stats``."""
        section = self.state.section(collection)
        rows = section.rows or []
        written = 0
        try:
            for index, row in enumerate(rows):
                key = resolve_row_key(row, index, section.row_labels)
                fields = to_document_fields(row, {PLANT_FIELD: self.config.plant_name})
                self._put("save", collection, key.document_id, fields)
                written += 1
        except ReportError as e:
            stats.append(CollectionStat(collection, written, str(e)))
            raise
        stats.append(CollectionStat(collection, written))
        logger.debug("saved %s documents=%d", collection, written)
        return written

    def _save_notes(self) -> None:
        fields = {
            "notes": list(self.state.notes),
            "name": self.state.note_author.name,
            "signature": self.state.note_author.signature,
            PLANT_FIELD: self.config.plant_name,
        }
        self._put("save", self.config.notes_collection, NOTE_LIST_ID, fields)

    def _put(self, operation: str, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            self.store.put(collection, doc_id, fields)
        except DocumentStoreError as e:
            self._record(operation, collection, doc_id, e)
            raise

    # --- bulk clear ----------------------------------------------------------------

    def clear_all(self) -> OperationResult:
        """Delete every document of every managed collection, reset, then reload.

        Each collection is deleted in one batch; a failing collection does not stop
        (or undo) the others. The reload runs whatever the outcome.
        """
        with self._busy(self._clear_lock, "clear"):
            start = _now()
            stats: list[CollectionStat] = []
            collections = self.config.managed_collections
            with CollectionProgress(len(collections), description="Clearing") as progress:
                for collection in collections:
                    progress.start(collection)
                    stats.append(self._clear_collection(collection))
                    progress.finish(stats[-1].documents)

            self.state.reset()
            failed = [s for s in stats if not s.ok]
            if failed:
                self.toasts.error(CLEAR_FAILURE)
            else:
                self.toasts.success(CLEAR_SUCCESS)
            self.error_log.flush()
            result = OperationResult(
                operation="clear",
                ok=not failed,
                start_time=start,
                end_time=_now(),
                collection_stats=stats,
                message=CLEAR_SUCCESS if not failed else CLEAR_FAILURE,
                error="; ".join(f"{s.collection}: {s.error}" for s in failed) or None,
            )
        self.reload()
        return result

    def _clear_collection(self, collection: str) -> CollectionStat:
        try:
            documents = self.store.list(collection)
            deleted = self.store.delete_batch(collection, [doc.id for doc in documents])
        except DocumentStoreError as e:
            logger.error("Error clearing data from %s: %s", collection, e)
            self._record("clear", collection, "-", e)
            return CollectionStat(collection, 0, str(e))
        logger.debug("cleared %s documents=%d", collection, deleted)
        return CollectionStat(collection, deleted)

    def reload(self) -> OperationResult:
        """Fresh state and a full initial load (the form's page reload)."""
        self.state = ReportState.create(self.config, today=self._today)
        self.bindings.clear()
        return self.load()


def _error_type(error: Exception) -> str:
    # DocumentStoreError -> DOCUMENT_STORE_ERROR
    name = type(error).__name__
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0:
            out.append("_")
        out.append(ch.upper())
    return "".join(out)
