"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, HTTPException, Request, Response, status

from eventlens.api.gallery import router as gallery_router
from eventlens.api.models import (
    CaptureResponse,
    MatchedPhoto,
    ReferenceRequest,
    ScanResponse,
)
from eventlens.api.payloads import decode_image
from eventlens.app_logging import configure_logging
from eventlens.containers import AppContainer
from eventlens.domain.capture import CaptureStep
from eventlens.domain.errors import DecodeError, EventLensError
from eventlens.services.capture import CaptureStateMachine
from eventlens.services.matching import detect_mime_type
from eventlens.services.session import UPLOAD_FAILED_MESSAGE, GuestSession


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await _cancel_capture(app)
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.state.capture = None
    app.state.capture_task = None

    app.include_router(gallery_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/guest/reference")
    async def upload_reference(
        payload: ReferenceRequest, request: Request
    ) -> ScanResponse:
        """Use an uploaded selfie as the reference image."""
        state_container: AppContainer = request.app.state.container
        image = decode_image(payload.image)
        try:
            await state_container.guest_session.use_uploaded_reference(image)
        except DecodeError as exc:
            logger.exception("Failed to process reference photo")
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=_format_error(state_container, exc, UPLOAD_FAILED_MESSAGE),
            ) from exc
        return _scan_response(state_container.guest_session)

    @app.post("/guest/capture")
    async def start_capture(request: Request) -> CaptureResponse:
        """Open the camera and start the guided pose sequence."""
        state_container: AppContainer = request.app.state.container
        task: asyncio.Task[None] | None = request.app.state.capture_task
        if task is not None and not task.done():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A capture is already running.",
            )
        machine = state_container.capture_factory()
        request.app.state.capture = machine
        request.app.state.capture_task = asyncio.create_task(
            _run_capture(state_container.guest_session, machine, logger)
        )
        await asyncio.sleep(0)
        return _capture_response(machine, state_container.guest_session)

    @app.get("/guest/capture")
    async def capture_status(request: Request) -> CaptureResponse:
        """Return the current pose and its progress."""
        state_container: AppContainer = request.app.state.container
        return _capture_response(
            request.app.state.capture, state_container.guest_session
        )

    @app.delete("/guest/capture")
    async def cancel_capture(request: Request) -> CaptureResponse:
        """Stop the capture and release the camera."""
        state_container: AppContainer = request.app.state.container
        await _cancel_capture(request.app)
        return _capture_response(
            request.app.state.capture, state_container.guest_session
        )

    @app.post("/guest/scan")
    async def start_scan(request: Request) -> ScanResponse:
        """Scan the event photos for the reference person."""
        state_container: AppContainer = request.app.state.container
        session = state_container.guest_session
        if session.is_scanning:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A scan is already running.",
            )
        if session.reference_set is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Take or upload a selfie first.",
            )
        if not len(state_container.gallery):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No event photos to scan yet.",
            )
        await session.run_scan()
        return _scan_response(session)

    @app.get("/guest/scan")
    async def scan_status(request: Request) -> ScanResponse:
        """Return matches found so far and the scan progress."""
        state_container: AppContainer = request.app.state.container
        return _scan_response(state_container.guest_session)

    @app.delete("/guest/scan/matches/{photo_id}")
    async def deselect_match(photo_id: str, request: Request) -> ScanResponse:
        """Remove a photo the guest is not in."""
        state_container: AppContainer = request.app.state.container
        session = state_container.guest_session
        if not session.deselect(photo_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return _scan_response(session)

    @app.get("/guest/matches")
    async def list_matches(request: Request) -> list[MatchedPhoto]:
        """Return matched photos in discovery order."""
        state_container: AppContainer = request.app.state.container
        return [
            MatchedPhoto(id=photo.id, captured_at=photo.captured_at)
            for photo in state_container.guest_session.matched_photos()
        ]

    @app.get("/photos/{photo_id}")
    async def download_photo(photo_id: str, request: Request) -> Response:
        """Return the original bytes of an event photo."""
        state_container: AppContainer = request.app.state.container
        photo = state_container.gallery.get(photo_id)
        if photo is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return Response(
            content=photo.image, media_type=detect_mime_type(photo.image)
        )

    return app


async def _run_capture(
    session: GuestSession, machine: CaptureStateMachine, logger: logging.Logger
) -> None:
    """Run a capture in the background, recording failures on the session."""
    try:
        await session.capture_reference(machine)
    except EventLensError:
        logger.warning("Capture ended without a reference set: %s", machine.error)


async def _cancel_capture(app: FastAPI) -> None:
    """Cancel a running capture task and release its camera."""
    task: asyncio.Task[None] | None = app.state.capture_task
    if task is not None and not task.done():
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    machine: CaptureStateMachine | None = app.state.capture
    if machine is not None and machine.step is not CaptureStep.COMPLETED:
        machine.cancel()


def _capture_response(
    machine: CaptureStateMachine | None, session: GuestSession
) -> CaptureResponse:
    if machine is None:
        return CaptureResponse(
            step=CaptureStep.IDLE,
            step_progress_percent=0.0,
            frames_collected=0,
            error=session.capture_error,
        )
    snapshot = machine.snapshot()
    return CaptureResponse(
        step=snapshot.step,
        step_progress_percent=snapshot.step_progress_percent,
        frames_collected=snapshot.frames_collected,
        error=snapshot.error or session.capture_error,
    )


def _scan_response(session: GuestSession) -> ScanResponse:
    scan = session.scan
    reference_set = scan.reference_set
    return ScanResponse(
        status=scan.status,
        progress_percent=scan.progress_percent,
        matched_ids=list(scan.matched_ids),
        reference_frames=len(reference_set.frames) if reference_set else 0,
        error=scan.last_error,
    )


def _format_error(
    state_container: AppContainer, exc: Exception, fallback: str
) -> str:
    """Return a user-facing error message with local debug info."""
    if state_container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{fallback} (debug: {detail})"
    return fallback
