from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path
from typing import Protocol

from webapp_publish.artifacts import (
    ArtifactSet,
    UploadTask,
    plan_uploads,
    read_artifacts,
)
from webapp_publish.core import (
    ILogger,
    LocalReadFailure,
    PartialUploadFailure,
    RunProvenance,
    Settings,
    UploadFailed,
    VersionConflict,
    bind,
    format_duration_ms,
    get_logger,
    monotonic_ms,
    new_run_id,
    stage_error_from_exc,
    utc_now_iso,
)
from webapp_publish.events import EventSink, EventType, NullSink, make_event
from webapp_publish.manifest import (
    DEFAULT_MANIFEST,
    compose_version_path,
    resolve_version,
)
from webapp_publish.models import PublishRequest, PublishResult
from webapp_publish.report import PublishReport, UploadRecord, status_for
from webapp_publish.store import ObjectStore
from webapp_publish.urls import join_url, normalize_url


class Builder(Protocol):
    def build(self, public_url: str) -> None: ...


class EventEmitter(Protocol):
    def emit(self, event) -> None: ...


class PublishState(str, Enum):
    START = "start"
    VERSION_RESOLVED = "version_resolved"
    EXISTENCE_CHECKED = "existence_checked"
    ABORTED = "aborted"
    BUILDING = "building"
    BUILT = "built"
    CLASSIFIED = "classified"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[PublishState, frozenset[PublishState]] = {
    PublishState.START: frozenset({PublishState.VERSION_RESOLVED}),
    PublishState.VERSION_RESOLVED: frozenset({PublishState.EXISTENCE_CHECKED}),
    PublishState.EXISTENCE_CHECKED: frozenset(
        {PublishState.ABORTED, PublishState.BUILDING}
    ),
    PublishState.BUILDING: frozenset({PublishState.BUILT}),
    PublishState.BUILT: frozenset({PublishState.CLASSIFIED}),
    PublishState.CLASSIFIED: frozenset({PublishState.UPLOADING}),
    PublishState.UPLOADING: frozenset({PublishState.DONE}),
    PublishState.ABORTED: frozenset(),
    PublishState.DONE: frozenset(),
    PublishState.FAILED: frozenset(),
}

_TERMINAL = frozenset({PublishState.ABORTED, PublishState.DONE, PublishState.FAILED})


class Publisher:
    """
    One-shot publish run:

      resolve version -> check store -> (abort | build) -> classify -> upload

    Everything up to classification is sequential; uploads fan out to a
    bounded thread pool and are joined before the run reports. A failed
    upload never cancels the others.
    """

    def __init__(
        self,
        *,
        store: ObjectStore,
        builder: Builder,
        project_root: Path | None = None,
        manifest_name: str = DEFAULT_MANIFEST,
        upload_workers: int = 8,
        logger: ILogger | None = None,
        events: EventEmitter | None = None,
        run_id: str | None = None,
    ) -> None:
        if upload_workers < 1:
            raise ValueError("upload_workers must be >= 1")
        self.store = store
        self.builder = builder
        self.project_root = project_root
        self.manifest_name = manifest_name
        self.upload_workers = upload_workers
        self.logger: ILogger = logger or get_logger("webapp_publish")
        self.events: EventEmitter = events or NullSink()
        self.run_id = run_id or new_run_id()

        self.state = PublishState.START
        self.version: str | None = None
        self.version_path: str | None = None
        self.public_url: str | None = None
        self.main_script_url: str | None = None
        self.overwritten = False
        self.uploads: list[UploadRecord] = []

    def _emit(self, event: EventType, **kw: object) -> None:
        self.events.emit(
            make_event(
                event_type=event, run_id=self.run_id, state=self.state.value, **kw
            )
        )
        self.logger.debug(event.value, event_type=event.value, **kw)

    def _transition(self, new: PublishState) -> None:
        if new is PublishState.FAILED:
            if self.state in _TERMINAL:
                return
        elif new not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal publish transition {self.state} -> {new}")
        old = self.state
        self.state = new
        self._emit(EventType.STATE_CHANGED, previous=old.value, current=new.value)

    def run(self, request: PublishRequest) -> PublishResult:
        if self.state is not PublishState.START:
            raise RuntimeError("Publisher runs are one-shot; create a new Publisher")
        try:
            return self._run(request)
        except VersionConflict:
            raise
        except Exception:
            self._transition(PublishState.FAILED)
            raise

    def _run(self, request: PublishRequest) -> PublishResult:
        log = self.logger

        version = resolve_version(
            request.app_version,
            project_root=self.project_root,
            manifest_name=self.manifest_name,
        )
        version_path = compose_version_path(request.s3_path, version)
        self.version, self.version_path = version, version_path
        bind(version=version)
        self._transition(PublishState.VERSION_RESOLVED)
        self._emit(
            EventType.VERSION_RESOLVED, version=version, version_path=version_path
        )
        log.info(
            "Preparing to deploy",
            version=version,
            local_path=request.local_path,
            destination=request.destination,
        )

        exists = self.store.exists(
            request.s3_bucket, version_path + "/"
        ) or self.store.has_object(request.s3_bucket, version_path)
        self._transition(PublishState.EXISTENCE_CHECKED)

        if exists:
            location = f"s3://{request.s3_bucket}/{version_path}"
            self._emit(
                EventType.VERSION_EXISTS, location=location, force=request.force
            )
            if not request.force:
                self._transition(PublishState.ABORTED)
                self._emit(EventType.VERSION_ABORTED, location=location)
                log.warning(
                    "Version already exists",
                    version=version,
                    location=location,
                    hint="re-run with --force to overwrite it",
                )
                raise VersionConflict(version=version, location=location)
            log.warning(
                "Version already exists, force flag set; overwriting",
                version=version,
            )
            self.overwritten = True

        self._transition(PublishState.BUILDING)
        public_url = join_url(request.public_url_base, version_path, "")
        self.public_url = public_url
        self._emit(EventType.BUILD_START, public_url=public_url)
        t0 = monotonic_ms()
        self.builder.build(public_url)
        took = monotonic_ms() - t0
        self._transition(PublishState.BUILT)
        self._emit(EventType.BUILD_FINISH, duration_ms=took)
        log.info("Build finished", duration=format_duration_ms(took))

        artifacts = read_artifacts(
            request.local_path, include_source_maps=request.source_maps
        )
        self._emit(
            EventType.CLASSIFIED,
            scripts=list(artifacts.scripts),
            stylesheets=list(artifacts.stylesheets),
        )
        if not artifacts.is_deployable:
            raise LocalReadFailure(
                f"No main js file found in {request.local_path}", empty_scripts=True
            )
        self._transition(PublishState.CLASSIFIED)

        tasks = plan_uploads(
            artifacts, version_path=version_path, local_dir=request.local_path
        )
        self._transition(PublishState.UPLOADING)
        self._upload_all(request.s3_bucket, tasks, version_path)

        self.main_script_url = self._main_script_url(
            request.public_url_base, version_path, artifacts
        )
        self._transition(PublishState.DONE)
        log.info(
            "Deployment complete",
            uploaded=len(tasks),
            main_script_url=self.main_script_url,
        )

        return PublishResult(
            version=version,
            version_path=version_path,
            public_url=public_url,
            main_script_url=self.main_script_url,
            uploaded=tuple(t.key for t in tasks),
            overwritten=self.overwritten,
        )

    @staticmethod
    def _main_script_url(
        public_url_base: str, version_path: str, artifacts: ArtifactSet
    ) -> str | None:
        main = artifacts.main_script()
        if main is None:
            return None
        return normalize_url(f"{public_url_base}/{version_path}/{main}")

    def _upload_one(self, bucket: str, task: UploadTask) -> UploadRecord:
        digest = self.store.upload(bucket, task.key, task.source, task.content_type)
        return UploadRecord(
            key=task.key,
            kind=task.kind.value,
            content_type=task.content_type,
            ok=True,
            bytes=digest.bytes,
            sha256=digest.sha256,
        )

    def _upload_all(
        self, bucket: str, tasks: list[UploadTask], version_path: str
    ) -> None:
        workers = max(1, min(self.upload_workers, len(tasks)))
        self._emit(EventType.UPLOAD_PLAN, tasks=len(tasks), workers=workers)

        records: dict[str, UploadRecord] = {}
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="upload"
        ) as executor:
            # copy_context() carries the bound run_id into the worker threads
            future_to_task = {
                executor.submit(
                    contextvars.copy_context().run, self._upload_one, bucket, task
                ): task
                for task in tasks
            }
            for future in as_completed(future_to_task):
                task = future_to_task[future]
                try:
                    record = future.result()
                except Exception as e:
                    record = UploadRecord(
                        key=task.key,
                        kind=task.kind.value,
                        content_type=task.content_type,
                        ok=False,
                        error=f"{type(e).__name__}: {e}",
                    )
                    self._emit(
                        EventType.UPLOAD_FAILED, key=task.key, error=record.error
                    )
                    self.logger.warning("Upload failed", key=task.key, error=str(e))
                else:
                    self._emit(
                        EventType.UPLOAD_SUCCESS,
                        key=record.key,
                        bytes=record.bytes,
                        sha256=record.sha256,
                    )
                records[task.key] = record

        self.uploads = [records[t.key] for t in tasks]
        failed = [r.key for r in self.uploads if not r.ok]
        if not failed:
            return

        succeeded = [r.key for r in self.uploads if r.ok]
        if succeeded:
            raise PartialUploadFailure(
                f"{len(failed)} of {len(tasks)} uploads failed. "
                f"{len(succeeded)} artifact(s) under {version_path} were written "
                "and may already be live: " + ", ".join(succeeded),
                failed=failed,
                succeeded=succeeded,
            )
        raise UploadFailed(
            f"All {len(tasks)} uploads to {version_path} failed: " + ", ".join(failed),
            failed=failed,
        )

    def build_report(
        self,
        *,
        bucket: str | None,
        started_at_utc: str,
        duration_ms: int,
        error: BaseException | None = None,
        provenance: RunProvenance | None = None,
        events_jsonl: str | None = None,
    ) -> PublishReport:
        stage_error = stage_error_from_exc(error) if error is not None else None
        return PublishReport(
            run_id=self.run_id,
            started_at_utc=started_at_utc,
            finished_at_utc=utc_now_iso(),
            status=status_for(self.state.value, stage_error),
            state=self.state.value,
            duration_ms=duration_ms,
            provenance=provenance,
            bucket=bucket,
            version=self.version,
            version_path=self.version_path,
            public_url=self.public_url,
            main_script_url=self.main_script_url,
            overwritten=self.overwritten,
            uploads=list(self.uploads),
            error=stage_error,
            events_jsonl=events_jsonl,
        )


def publish(
    request: PublishRequest,
    *,
    store: ObjectStore,
    builder: Builder,
    settings: Settings,
    project_root: Path | None = None,
    run_id: str | None = None,
    logger: ILogger | None = None,
) -> tuple[PublishResult, Path | None]:
    """
    Run one publish and, when settings.run_root is set, write:
      - <run_root>/<run_id>/events.jsonl
      - <run_root>/<run_id>/publish_report.json

    The report is written on failure too; the error is re-raised after. A
    report that cannot be written is logged and never changes the outcome.
    Returns: (result, report_path)
    """
    rid = run_id or new_run_id()
    bind(run_id=rid, bucket=request.s3_bucket)

    run_dir = Path(settings.run_root) / rid if settings.run_root is not None else None
    events: EventEmitter = NullSink()
    if run_dir is not None:
        try:
            events = EventSink(run_dir / "events.jsonl", run_id=rid)
        except OSError as e:
            (logger or get_logger("webapp_publish")).warning(
                "Could not open events log", run_dir=str(run_dir), error=str(e)
            )
            run_dir = None

    publisher = Publisher(
        store=store,
        builder=builder,
        project_root=project_root,
        manifest_name=settings.manifest_name,
        upload_workers=settings.upload_workers,
        logger=logger,
        events=events,
        run_id=rid,
    )

    started_at = utc_now_iso()
    provenance = RunProvenance(run_id=rid, started_at_utc=started_at)
    t0 = monotonic_ms()
    events.emit(
        make_event(
            event_type=EventType.RUN_START,
            run_id=rid,
            state=publisher.state.value,
            destination=request.destination,
            force=request.force,
            source_maps=request.source_maps,
        )
    )

    error: BaseException | None = None
    try:
        result = publisher.run(request)
    except Exception as e:
        error = e
        raise
    finally:
        try:
            report_path = _finish(
                publisher, run_dir, events, request, started_at, t0, error, provenance
            )
        except OSError as e:
            report_path = None
            publisher.logger.warning(
                "Could not write publish report",
                run_dir=str(run_dir),
                error=str(e),
            )

    return result, report_path


def _finish(
    publisher: Publisher,
    run_dir: Path | None,
    events: EventEmitter,
    request: PublishRequest,
    started_at: str,
    t0: int,
    error: BaseException | None,
    provenance: RunProvenance,
) -> Path | None:
    duration = monotonic_ms() - t0
    report = publisher.build_report(
        bucket=request.s3_bucket,
        started_at_utc=started_at,
        duration_ms=duration,
        error=error,
        provenance=provenance,
        events_jsonl=str(run_dir / "events.jsonl") if run_dir is not None else None,
    )
    events.emit(
        make_event(
            event_type=EventType.RUN_FINISH,
            run_id=publisher.run_id,
            state=publisher.state.value,
            status=report.status,
            duration_ms=duration,
        )
    )
    if run_dir is None:
        return None
    report_path = run_dir / "publish_report.json"
    report.write_json(report_path)
    return report_path
