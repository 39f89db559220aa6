"""
Data models for operation tracking.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class OperationStatus(str, Enum):
    """Lifecycle status of a remote generation job."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        """True for DONE, FAILED and CANCELLED."""
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        """True for PENDING and RUNNING."""
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset({OperationStatus.PENDING, OperationStatus.RUNNING})
TERMINAL_STATUSES = frozenset({
    OperationStatus.DONE,
    OperationStatus.FAILED,
    OperationStatus.CANCELLED,
})


@dataclass
class OperationError:
    """
    Error details reported for a failed operation or API call.

    Attributes:
        code: Error code from the API (e.g. "INVALID_ARGUMENT" or "400").
        message: Human-readable message.
        details: Structured details (e.g. {"http_code": 400}).
        suggestion: Optional hint appended to the message.
    """
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}. {self.suggestion}"
        return self.message

    def to_dict(self) -> Dict:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "suggestion": self.suggestion,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "OperationError":
        return cls(
            code=str(data.get("code", "")),
            message=data.get("message", ""),
            details=data.get("details") or {},
            suggestion=data.get("suggestion"),
        )


@dataclass
class Operation:
    """
    A tracked handle to an asynchronous remote job and its last-known status.

    Attributes:
        id: Operation name assigned by the API (store key).
        status: Current lifecycle status.
        progress: Advisory completion ratio in [0, 1].
        start_time: When the job was submitted (or first observed).
        end_time: When the job reached a terminal status, None while active.
        video_uri: Artifact locator, set once the job is DONE.
        error: Error details for FAILED jobs.
        metadata: Generation parameters (model, prompt, duration_seconds,
            resolution, aspect_ratio) used to enrich downloads.
    """
    id: str
    status: OperationStatus = OperationStatus.PENDING
    progress: float = 0.0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    video_uri: str = ""
    error: Optional[OperationError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def copy(self) -> "Operation":
        """Return a deep copy that shares no mutable state with this record."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict:
        """Convert operation to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "video_uri": self.video_uri,
            "error": self.error.to_dict() if self.error else None,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Operation":
        """Create operation from dictionary."""
        return cls(
            id=data["id"],
            status=OperationStatus(data.get("status", OperationStatus.PENDING.value)),
            progress=float(data.get("progress", 0.0)),
            start_time=datetime.fromisoformat(data["start_time"]) if data.get("start_time") else datetime.now(),
            end_time=datetime.fromisoformat(data["end_time"]) if data.get("end_time") else None,
            video_uri=data.get("video_uri") or "",
            error=OperationError.from_dict(data["error"]) if data.get("error") else None,
            metadata=data.get("metadata") or {},
        )


@dataclass
class OperationStats:
    """Per-status operation counts."""
    total: int = 0
    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "running": self.running,
            "completed": self.completed,
            "failed": self.failed,
            "cancelled": self.cancelled,
        }


@dataclass
class GeneratedVideo:
    """
    A downloaded artifact and the generation details it came from.

    Attributes:
        file_path: Local path the video was written to.
        operation_id: Operation that produced the video.
        file_size_bytes: Number of bytes written.
        created_at: When the download finished.
        model: Model used for generation, if known.
        prompt: Generation prompt, if known.
        duration_seconds: Requested clip length, if known.
        resolution: Requested resolution, if known.
        aspect_ratio: Requested aspect ratio, if known.
        generation_time_seconds: end_time - start_time, if both are known.
    """
    file_path: str
    operation_id: str
    file_size_bytes: int
    created_at: datetime = field(default_factory=datetime.now)
    model: str = ""
    prompt: str = ""
    duration_seconds: Optional[int] = None
    resolution: str = ""
    aspect_ratio: str = ""
    generation_time_seconds: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "file_path": self.file_path,
            "operation_id": self.operation_id,
            "file_size_bytes": self.file_size_bytes,
            "created_at": self.created_at.isoformat(),
            "model": self.model,
            "prompt": self.prompt,
            "duration_seconds": self.duration_seconds,
            "resolution": self.resolution,
            "aspect_ratio": self.aspect_ratio,
            "generation_time_seconds": self.generation_time_seconds,
        }


@dataclass
class VideoInfo:
    """Remote artifact headers, fetched without transferring the body."""
    content_length: Optional[int]
    content_type: str = ""
    last_modified: str = ""

    def to_dict(self) -> Dict:
        return {
            "content_length": self.content_length,
            "content_type": self.content_type,
            "last_modified": self.last_modified,
        }
