"""Error taxonomy shared by the camera, scan pipeline and HTTP layers.

Hardware and pipeline errors abort a scan and are surfaced to the user.
Reconciliation errors are logged and suppressed by the pipeline; they exist
so the failure can be named in logs.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    # Hardware layer
    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    CAMERA_UNAVAILABLE = "camera_unavailable"
    NOT_READY = "not_ready"
    # Pipeline layer
    CAPTURE_FAILED = "capture_failed"
    CLASSIFICATION_EMPTY = "classification_empty"
    PERSIST_FAILED = "persist_failed"
    SCORE_UPDATE_FAILED = "score_update_failed"
    PIPELINE_BUSY = "pipeline_busy"
    PIPELINE_DISABLED = "pipeline_disabled"
    # Reconciliation layer (non-fatal)
    PROGRESS_COMPUTE_FAILED = "progress_compute_failed"
    DIFF_READ_FAILED = "diff_read_failed"


class Wild90Error(Exception):
    """Base error carrying a kind and a user-facing message."""

    kind: ErrorKind = ErrorKind.CAPTURE_FAILED
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Camera
# ---------------------------------------------------------------------------


class CameraError(Wild90Error):
    kind = ErrorKind.CAMERA_UNAVAILABLE
    default_message = "Unable to access camera. Please check permissions."


class PermissionDenied(CameraError):
    kind = ErrorKind.PERMISSION_DENIED
    default_message = "Camera permission denied. Please allow camera access."


class NoDevice(CameraError):
    kind = ErrorKind.NO_DEVICE
    default_message = "No camera found on this device."


class CameraUnavailable(CameraError):
    kind = ErrorKind.CAMERA_UNAVAILABLE


class NotReady(CameraError):
    kind = ErrorKind.NOT_READY
    default_message = "Camera is not started."


# ---------------------------------------------------------------------------
# Scan pipeline
# ---------------------------------------------------------------------------


class ScanError(Wild90Error):
    pass


class CaptureFailed(ScanError):
    kind = ErrorKind.CAPTURE_FAILED
    default_message = "Failed to capture image"


class ClassificationEmpty(ScanError):
    kind = ErrorKind.CLASSIFICATION_EMPTY
    default_message = "No bug detected. Try scanning a different angle."


class PersistFailed(ScanError):
    kind = ErrorKind.PERSIST_FAILED
    default_message = "Failed to save scan"


class ScoreUpdateFailed(ScanError):
    kind = ErrorKind.SCORE_UPDATE_FAILED
    default_message = "Failed to update score"


class PipelineBusy(ScanError):
    kind = ErrorKind.PIPELINE_BUSY
    default_message = "A scan is already in progress"


class PipelineDisabled(ScanError):
    kind = ErrorKind.PIPELINE_DISABLED
    default_message = "Sign in to start scanning"


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class ReconcileError(Wild90Error):
    pass


class ProgressComputeFailed(ReconcileError):
    kind = ErrorKind.PROGRESS_COMPUTE_FAILED
    default_message = "Could not compute community progress"


class DiffReadFailed(ReconcileError):
    kind = ErrorKind.DIFF_READ_FAILED
    default_message = "Could not read achievements"


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class LedgerError(Exception):
    """Raised by a ledger client when a backend read or write fails."""
