from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

from ..excel.reader import MalformedWorkbookError
from ..models.config_models import ImportConfig
from .orchestrator import ImportContext, import_workbook
from .resolver import ProjectNotFoundError

"""Upload endpoint contract.

The HTTP layer (routing, auth, multipart parsing) lives outside this package.
It hands the multipart fields to ``parse_upload`` and the parsed request to
``handle_upload``, then writes ``UploadResponse.status`` and ``.body`` as
JSON. Fatal problems (bad request, unreadable workbook, unknown project) come
back as a 400 with a single message; a processed file always comes back as a
200 carrying the full ImportResult, even when some rows failed.
"""

logger = logging.getLogger(__name__)

SPREADSHEET_MIME_TYPES = frozenset({
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
    "application/vnd.ms-excel",
})
SPREADSHEET_EXTENSIONS = frozenset({".xlsx", ".xlsm"})


class UploadRequestError(Exception):
    """Raised when the multipart fields violate the upload contract."""


@dataclass(frozen=True)
class UploadRequest:
    file: bytes
    filename: str
    project_id: str
    batch_size: int


@dataclass(frozen=True)
class UploadResponse:
    status: int
    body: dict[str, Any]


def _parse_batch_size(raw: Any, config: ImportConfig) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return config.batch_size
    if isinstance(raw, bool):
        raise UploadRequestError("Batch size must be an integer")
    try:
        value = int(str(raw).strip())
    except ValueError as e:
        raise UploadRequestError("Batch size must be an integer") from e
    if not 1 <= value <= config.max_batch_size:
        raise UploadRequestError(f"Batch size must be between 1 and {config.max_batch_size}")
    return value


def parse_upload(
    file: bytes | None,
    filename: str | None,
    content_type: str | None,
    project_id: str | None,
    batch_size: Any = None,
    config: ImportConfig | None = None,
) -> UploadRequest:
    """Check the multipart fields against the upload contract."""
    cfg = config or ImportConfig.defaults()
    if not file:
        raise UploadRequestError("Excel file is required")
    if len(file) > cfg.max_upload_bytes:
        limit_mb = cfg.max_upload_bytes / (1024 * 1024)
        raise UploadRequestError(f"File exceeds the {limit_mb:g} MB upload limit")
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    suffix = PurePath(filename or "").suffix.lower()
    if mime not in SPREADSHEET_MIME_TYPES or suffix not in SPREADSHEET_EXTENSIONS:
        raise UploadRequestError("Only Excel spreadsheet files (.xlsx, .xlsm) are allowed")
    if not project_id or not str(project_id).strip():
        raise UploadRequestError("Project ID is required")
    return UploadRequest(
        file=file,
        filename=filename or "",
        project_id=str(project_id).strip(),
        batch_size=_parse_batch_size(batch_size, cfg),
    )


def _failure(message: str) -> UploadResponse:
    return UploadResponse(status=400, body={"success": False, "message": message})


def handle_upload(request: UploadRequest, context: ImportContext) -> UploadResponse:
    try:
        result = import_workbook(
            request.file, request.project_id, context, batch_size=request.batch_size
        )
    except (MalformedWorkbookError, ProjectNotFoundError) as e:
        logger.warning("upload rejected file=%s: %s", request.filename, e)
        return _failure(str(e))
    return UploadResponse(
        status=200,
        body={
            "success": result.is_complete_success,
            "message": result.message,
            "data": result.to_dict(),
        },
    )
