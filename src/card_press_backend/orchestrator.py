"""
Remote edit orchestration for generated documents.

This module drives one document through the editing service:
- Staging the signature and a stock photo in the asset store
- Building and submitting the layer edit job
- Polling the job's status URL until it succeeds, fails or times out
- Exporting the edited result to the download format

Each request owns its own ``EditJob``; nothing about a job is shared
between requests or persisted. The only shared state is the bearer
credential, held by the injected ``CredentialCache``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional
from uuid import uuid4

from omegaconf import DictConfig

from .asset_store import S3AssetStore
from .credentials import CredentialCache
from .edit_requests import EditRequest, EditRequestBuilder, build_layer_edits, get_request_builder
from .editing_service import EditingServiceClient
from .errors import JobTimeoutError, ProcessingError
from .identifiers import derive_identifier
from .models import ApplicantRecord, JobEvent, JobState, StatusReport
from .stock_photos import StockAssetPicker

logger = logging.getLogger(__name__)

_TRANSITIONS: Dict[Optional[JobState], FrozenSet[JobState]] = {
    None: frozenset({JobState.SUBMITTED}),
    JobState.SUBMITTED: frozenset({JobState.POLLING}),
    JobState.POLLING: frozenset({JobState.POLLING, JobState.SUCCEEDED, JobState.FAILED}),
    JobState.SUCCEEDED: frozenset(),
    JobState.FAILED: frozenset(),
}


@dataclass
class EditJob:
    """
    One submitted edit and everything learned about it while polling.

    Attributes:
        id: Local job identifier (hex UUID), used for output keys and logs
        input_refs: Template href followed by the staged asset links
        output_target: Where the editing service writes its result
        output_key: Asset store key behind ``output_target``
        status_url: URL answering the job's current state
        state: Current lifecycle state; None until submitted
        output_ref: Reference to the edited document once succeeded
        error_detail: Vendor error payload once failed
        polls: Number of status queries issued
        events: Chronological list of lifecycle events
    """

    id: str
    input_refs: List[str]
    output_target: str
    output_key: str
    status_url: str = ""
    state: Optional[JobState] = None
    output_ref: Optional[str] = None
    error_detail: Optional[dict] = None
    polls: int = 0
    events: List[JobEvent] = field(default_factory=list)

    def transition(self, new_state: JobState, message: str) -> None:
        """
        Move to ``new_state`` and record an event.

        Raises:
            RuntimeError: If the lifecycle does not allow the move
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal edit job transition {self.state} -> {new_state}")
        self.state = new_state
        self.events.append(JobEvent(timestamp=datetime.utcnow(), message=message))
        logger.info(f"Edit job {self.id}: {message}")


class EditOrchestrator:
    """
    Runs the submit, poll, export sequence for one applicant at a time.

    Attributes:
        poll_interval: Seconds between status queries
        poll_timeout: Upper bound in seconds of wall-clock time spent waiting for a terminal state
        export_format: Format the edited document is converted to
    """

    def __init__(
        self,
        credentials: CredentialCache,
        asset_store: S3AssetStore,
        editing: EditingServiceClient,
        stock_picker: StockAssetPicker,
        request_builder: EditRequestBuilder,
        layers: DictConfig,
        template_href: str = "",
        template_key: str = "",
        output_type: str = "vnd.adobe.photoshop",
        output_extension: str = ".psd",
        export_format: str = "pdf",
        poll_interval: float = 5.0,
        poll_timeout: float = 600.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.credentials = credentials
        self.asset_store = asset_store
        self.editing = editing
        self.stock_picker = stock_picker
        self.request_builder = request_builder
        self.layers = layers
        self.template_href = template_href
        self.template_key = template_key
        self.output_type = output_type
        self.output_extension = output_extension
        self.export_format = export_format
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: DictConfig,
        credentials: CredentialCache,
        asset_store: S3AssetStore,
        editing: EditingServiceClient,
        stock_picker: StockAssetPicker,
        **kwargs,
    ) -> "EditOrchestrator":
        return cls(
            credentials=credentials,
            asset_store=asset_store,
            editing=editing,
            stock_picker=stock_picker,
            request_builder=get_request_builder(config.editing.variant),
            layers=config.layers,
            template_href=config.editing.template_href,
            template_key=config.editing.template_key,
            output_type=config.editing.output_type,
            output_extension=config.editing.output_extension,
            export_format=config.editing.export_format,
            poll_interval=config.editing.poll_interval_seconds,
            poll_timeout=config.editing.poll_timeout_seconds,
            **kwargs,
        )

    async def generate_document(self, record: ApplicantRecord, signature_path: Path) -> bytes:
        """Pick a stock photo and produce the finished document for ``record``."""
        stock_path = await asyncio.to_thread(self.stock_picker.pick)
        return await self.submit_and_wait_for_edit(record, signature_path, stock_path)

    async def submit_and_wait_for_edit(
        self,
        record: ApplicantRecord,
        signature_path: Path,
        stock_path: Path,
    ) -> bytes:
        """
        Produce the finished document bytes for one applicant.

        Args:
            record: The applicant's values
            signature_path: Local signature image uploaded by the client
            stock_path: Local stock photo for the photo layer

        Returns:
            The exported document

        Raises:
            AuthError: If no bearer credential could be obtained
            AssetStoreError: If staging an asset fails
            SubmissionError: If the editing service refuses the job
            PollingError: If a status query fails in transport
            ProcessingError: If the job ends in the failed state
            JobTimeoutError: If the job is still running after ``poll_timeout``
            ExportError: If the format conversion fails
        """
        token = await self.credentials.get_token()

        signature_href, photo_href = await asyncio.gather(
            self._stage(signature_path),
            self._stage(stock_path),
        )

        identifier = derive_identifier(record.first_name, record.last_name, record.date_of_birth)
        job = await self._new_job(signature_href, photo_href)
        request = EditRequest(
            template_href=job.input_refs[0],
            output_href=job.output_target,
            output_type=self.output_type,
            edits=build_layer_edits(record, identifier, photo_href, signature_href, self.layers),
        )

        submission = await self.editing.submit_edit(
            self.request_builder.endpoint,
            self.request_builder.build(request),
            token,
        )
        job.status_url = submission.status_url or ""
        job.transition(JobState.SUBMITTED, f"Submitted to {self.request_builder.endpoint}; status at {job.status_url or 'n/a'}")

        output_ref = await self._wait_for_output(job, submission.report)

        document = await self.editing.export_format(output_ref, self.export_format, await self.credentials.get_token())
        logger.info(f"Edit job {job.id}: exported {len(document)} bytes as {self.export_format}")
        return document

    async def _stage(self, local_path: Path) -> str:
        handle = await asyncio.to_thread(self.asset_store.upload, local_path)
        return await asyncio.to_thread(self.asset_store.get_shareable_link, handle)

    async def _new_job(self, signature_href: str, photo_href: str) -> EditJob:
        job_id = uuid4().hex
        template_href = self.template_href or await asyncio.to_thread(self.asset_store.get_temporary_link, self.template_key)
        output_key = self.asset_store.key_for("outputs", f"{job_id}{self.output_extension}")
        output_target = await asyncio.to_thread(self.asset_store.get_temporary_upload_target, output_key)
        return EditJob(
            id=job_id,
            input_refs=[template_href, signature_href, photo_href],
            output_target=output_target,
            output_key=output_key,
        )

    async def _wait_for_output(self, job: EditJob, report: Optional[StatusReport] = None) -> str:
        """
        Poll the job's status URL until a terminal state.

        An answer that came back with the submission is evaluated first;
        otherwise the first query is issued immediately. Each non-terminal
        answer is followed by ``poll_interval`` seconds of sleep, and the
        whole wait, status queries included, is bounded by ``poll_timeout``
        seconds of wall-clock time. Transport failures propagate as
        ``PollingError`` without a retry.
        """
        started = self._clock()
        while True:
            if report is None:
                report = await self.editing.get_status(job.status_url, await self.credentials.get_token())
                job.polls += 1
                job.transition(JobState.POLLING, f"Poll {job.polls}: {report.state}")
            else:
                job.transition(JobState.POLLING, f"Submission answered: {report.state}")

            if report.is_terminal:
                return await self._finish(job, report)

            elapsed = self._clock() - started
            if elapsed + self.poll_interval > self.poll_timeout:
                logger.error(f"Edit job {job.id} still {report.state} after {elapsed:g}s")
                raise JobTimeoutError(job.status_url, elapsed)

            await self._sleep(self.poll_interval)
            report = None

    async def _finish(self, job: EditJob, report: StatusReport) -> str:
        if report.state == JobState.FAILED.value:
            job.error_detail = report.error_detail or {}
            job.transition(JobState.FAILED, "Editing service reported failure")
            logger.error(f"Edit job {job.id} failed: {job.error_detail}")
            raise ProcessingError("Edit job failed", job.error_detail)

        job.output_ref = report.output_ref or await asyncio.to_thread(self.asset_store.get_temporary_link, job.output_key)
        job.transition(JobState.SUCCEEDED, "Edit completed")
        return job.output_ref
