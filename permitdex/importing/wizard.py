"""Linear import workflow: upload -> preview -> mapping -> importing -> complete.

Each stage is its own immutable state type carrying only the fields valid in
that stage. The wizard moves forward one stage at a time; the only way back
is :meth:`ImportWizard.reset`, which returns to ``upload`` and keeps the
curated translations (they are owned by the process, not the session).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Union

from permitdex.config import ImportConfig
from permitdex.db.store import TargetStore
from permitdex.importing.errors import CSVParseError, ImportStateError, UntranslatedNamesError
from permitdex.importing.pipeline import ImportPipeline, ProgressCallback
from permitdex.importing.preflight import PreflightResult, scan_for_untranslated
from permitdex.importing.reader import CSVPreview, Row, read_preview
from permitdex.importing.schemas import SchemaDefinition, auto_map_columns, get_schema
from permitdex.importing.translations import TranslationStore
from permitdex.importing.types import ImportProgress, ImportStatus, ImportSummary

logger = logging.getLogger(__name__)


class ImportStage(str, Enum):
    UPLOAD = "upload"
    PREVIEW = "preview"
    MAPPING = "mapping"
    IMPORTING = "importing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class UploadState:
    errors: tuple[str, ...] = ()

    @property
    def stage(self) -> ImportStage:
        return ImportStage.UPLOAD


@dataclass(frozen=True)
class PreviewState:
    file: Path
    preview: CSVPreview

    @property
    def stage(self) -> ImportStage:
        return ImportStage.PREVIEW

    @property
    def headers(self) -> tuple[str, ...]:
        return self.preview.headers

    @property
    def sample_rows(self) -> tuple[Row, ...]:
        return self.preview.rows


@dataclass(frozen=True)
class MappingState:
    """Target table chosen; the operator edits the column mapping here.

    ``column_mapping`` maps target column -> source header. ``preflight`` is
    set once the untranslated-name scan has run for the current mapping.
    """

    file: Path
    preview: CSVPreview
    schema: SchemaDefinition
    column_mapping: Mapping[str, str] = field(default_factory=dict)
    translate_columns: frozenset[str] = frozenset()
    preflight: PreflightResult | None = None

    @property
    def stage(self) -> ImportStage:
        return ImportStage.MAPPING

    @property
    def headers(self) -> tuple[str, ...]:
        return self.preview.headers

    @property
    def missing_required(self) -> list[str]:
        return [
            column.name
            for column in self.schema.required_columns
            if not self.column_mapping.get(column.name)
        ]

    @property
    def can_start(self) -> bool:
        return not self.missing_required

    @property
    def translation_enabled(self) -> bool:
        """Whether any mapped column has Arabic -> English conversion switched on."""
        return any(self.column_mapping.get(column) for column in self.translate_columns)


@dataclass(frozen=True)
class ImportingState:
    file: Path
    schema: SchemaDefinition
    progress: ImportProgress

    @property
    def stage(self) -> ImportStage:
        return ImportStage.IMPORTING


@dataclass(frozen=True)
class CompleteState:
    file: Path
    schema: SchemaDefinition
    summary: ImportSummary

    @property
    def stage(self) -> ImportStage:
        return ImportStage.COMPLETE


ImportState = Union[UploadState, PreviewState, MappingState, ImportingState, CompleteState]


class ImportWizard:
    """Drives one import session through its stages.

    Usage:
        wizard = ImportWizard(store, translations)
        wizard.select_file(Path("projects.csv"))
        wizard.select_table("projects")
        wizard.set_translation("project_name", True)
        try:
            complete = await wizard.start_import()
        except UntranslatedNamesError as e:
            # show e.names, then on confirmation:
            complete = await wizard.start_import(confirm_untranslated=True)
    """

    def __init__(
        self,
        store: TargetStore,
        translations: TranslationStore | None = None,
        config: ImportConfig | None = None,
        fallback: str | None = None,
    ):
        self.store = store
        self.translations = translations if translations is not None else TranslationStore()
        self.config = config or ImportConfig()
        self.fallback = fallback
        self._state: ImportState = UploadState()

    @property
    def state(self) -> ImportState:
        return self._state

    @property
    def stage(self) -> ImportStage:
        return self._state.stage

    def _expect(self, state_type: type, action: str):
        if not isinstance(self._state, state_type):
            raise ImportStateError(f"Cannot {action} during the '{self.stage.value}' stage")
        return self._state

    def select_file(self, path: Path) -> ImportState:
        """upload -> preview. A malformed file records an error and stays in upload."""
        state: UploadState = self._expect(UploadState, "select a file")
        path = Path(path)
        try:
            preview = read_preview(path, self.config.preview_rows)
        except CSVParseError as e:
            logger.warning(f"Rejected {path.name}: {e}")
            self._state = UploadState(errors=state.errors + (f"Error parsing CSV: {e}",))
            return self._state

        self._state = PreviewState(file=path, preview=preview)
        return self._state

    def select_table(self, table: str) -> MappingState:
        """preview -> mapping, with headers auto-matched to the table's columns."""
        state: PreviewState = self._expect(PreviewState, "select a table")
        schema = get_schema(table)
        mapping = auto_map_columns(state.headers, schema)
        logger.info(
            f"Auto-mapped {len(mapping)} of {len(schema.columns)} columns "
            f"of {schema.table} from {state.file.name}"
        )
        self._state = MappingState(
            file=state.file,
            preview=state.preview,
            schema=schema,
            column_mapping=MappingProxyType(mapping),
        )
        return self._state

    def map_column(self, target: str, source: str | None) -> MappingState:
        """Map ``target`` to source header ``source`` (``None`` or "" unmaps it)."""
        state: MappingState = self._expect(MappingState, "edit the column mapping")
        if not state.schema.has_column(target):
            raise ValueError(f"Table '{state.schema.table}' has no column '{target}'")
        if source and source not in state.headers:
            raise ValueError(f"'{source}' is not a header of {state.file.name}")

        mapping = dict(state.column_mapping)
        if source:
            mapping[target] = source
        else:
            mapping.pop(target, None)

        self._state = replace(state, column_mapping=MappingProxyType(mapping), preflight=None)
        return self._state

    def set_translation(self, target: str, enabled: bool = True) -> MappingState:
        """Toggle Arabic -> English conversion for a translatable column."""
        state: MappingState = self._expect(MappingState, "change translation settings")
        if not state.schema.column(target).translatable:
            raise ValueError(f"Column '{target}' of '{state.schema.table}' is not translatable")

        columns = set(state.translate_columns)
        if enabled:
            columns.add(target)
        else:
            columns.discard(target)

        self._state = replace(state, translate_columns=frozenset(columns), preflight=None)
        return self._state

    async def preflight(self) -> PreflightResult:
        """Scan the whole file for Arabic names without a curated translation.

        Raises:
            CSVParseError: If the file cannot be parsed
        """
        state: MappingState = self._expect(MappingState, "run the pre-flight scan")
        result = await scan_for_untranslated(
            state.file,
            state.column_mapping,
            state.translate_columns,
            self.translations,
        )
        self._state = replace(state, preflight=result)
        return result

    async def start_import(
        self,
        *,
        confirm_untranslated: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> CompleteState:
        """mapping -> importing -> complete.

        When translation is enabled the pre-flight scan runs first (unless it
        already ran for the current mapping). If it finds names without a
        curated translation the import does not start until it is called again
        with ``confirm_untranslated=True``.

        Raises:
            ImportStateError: If required columns are unmapped
            UntranslatedNamesError: If untranslated names need confirmation
        """
        state: MappingState = self._expect(MappingState, "start the import")
        if not state.can_start:
            raise ImportStateError(
                f"Required columns are not mapped: {', '.join(state.missing_required)}"
            )

        expected_rows = None
        if state.translation_enabled:
            result = state.preflight
            if result is None:
                try:
                    result = await self.preflight()
                except CSVParseError as e:
                    return self._fail(state, e)
            if result.needs_confirmation and not confirm_untranslated:
                raise UntranslatedNamesError(result.untranslated)
            if result.needs_confirmation:
                logger.info(
                    f"Operator confirmed import with {len(result.untranslated)} untranslated names"
                )
            expected_rows = result.rows_scanned

        pipeline = ImportPipeline(
            self.store,
            state.schema,
            state.column_mapping,
            translate_columns=state.translate_columns,
            translations=self.translations,
            config=self.config,
            fallback=self.fallback,
        )

        progress = ImportProgress(expected_rows=expected_rows)
        self._state = ImportingState(file=state.file, schema=state.schema, progress=progress)
        summary = await pipeline.run(state.file, progress=progress, on_progress=on_progress)

        self._state = CompleteState(file=state.file, schema=state.schema, summary=summary)
        return self._state

    def _fail(self, state: MappingState, error: Exception) -> CompleteState:
        summary = ImportSummary(
            table=state.schema.table,
            file_name=state.file.name,
            status=ImportStatus.FAILED,
            errors=[f"Import error: {error}"],
        )
        logger.error(f"Pre-flight scan of {state.file.name} failed: {error}")
        self._state = CompleteState(file=state.file, schema=state.schema, summary=summary)
        return self._state

    def reset(self) -> UploadState:
        """Discard the session and start over at upload."""
        self._state = UploadState()
        return self._state
