from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import ValidationError
from ..models import FileUpload, SubmissionReceipt
from ..services.link_store import LinkStore
from ..utils.files import generate_id, load_upload, validate_answer_file

logger = logging.getLogger(__name__)


class AnswerUploader:
    """
    Collects answer files for one test and submits them as a single batch.

    Files failing the type or size checks are rejected one by one and the rest
    of the selection is kept. ``submit`` hands the whole selection to the link
    store and calls ``on_complete`` only when the submission was recorded.
    """

    def __init__(
        self,
        test_id: str,
        link_store: LinkStore,
        on_complete: Optional[Callable[[SubmissionReceipt], None]] = None,
    ) -> None:
        self.test_id = test_id
        self.link_store = link_store
        self.on_complete = on_complete
        self._files: Dict[str, FileUpload] = {}
        self.is_submitting = False

    @property
    def files(self) -> List[Tuple[str, FileUpload]]:
        return list(self._files.items())

    def add_file(self, upload: FileUpload) -> str:
        validate_answer_file(upload)
        file_id = generate_id()
        self._files[file_id] = upload
        return file_id

    def add_files(self, uploads: List[FileUpload]) -> Tuple[List[str], List[ValidationError]]:
        """Add every acceptable file; return the new ids and the rejections."""
        added, rejected = [], []
        for upload in uploads:
            try:
                added.append(self.add_file(upload))
            except ValidationError as e:
                logger.info(f"Rejected answer file {upload.file_name}: {e.message}")
                rejected.append(e)
        return added, rejected

    def add_path(self, path: str | Path) -> str:
        return self.add_file(load_upload(path))

    def remove_file(self, file_id: str) -> bool:
        return self._files.pop(file_id, None) is not None

    def clear(self) -> None:
        self._files.clear()

    def replace_files(self, uploads: Iterable[FileUpload]) -> List[str]:
        """Swap the selection for ``uploads``; nothing changes if any of them is rejected."""
        uploads = list(uploads)
        for upload in uploads:
            validate_answer_file(upload)
        self._files = {generate_id(): upload for upload in uploads}
        return list(self._files)

    async def submit(self, submitted_by: str | None = None) -> SubmissionReceipt:
        if not self._files:
            raise ValidationError("Please upload at least one answer file before submitting.")
        self.is_submitting = True
        try:
            receipt = await self.link_store.record_submission(
                self.test_id, list(self._files.values()), submitted_by=submitted_by
            )
        finally:
            self.is_submitting = False
        if self.on_complete is not None:
            self.on_complete(receipt)
        return receipt
