"""Structured exceptions for the VIN scan pipeline."""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """
    Base exception for pipeline errors.

    Provides structured error information with error codes for programmatic handling.
    """

    def __init__(self, message: str, error_code: str = "PIPELINE_ERROR", context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(PipelineError):
    """Raised when pipeline is misconfigured."""

    def __init__(self, message: str, config_key: Optional[str] = None, expected: Optional[str] = None):
        super().__init__(
            message=f"Configuration error: {message}",
            error_code="CONFIG_ERROR",
            context={"config_key": config_key, "expected": expected}
        )
        self.config_key = config_key
        self.expected = expected


class ScanCancelled(PipelineError):
    """Raised at a checkpoint when a newer run superseded this one."""

    def __init__(self, run_id: int, checkpoint: str):
        super().__init__(
            message=f"Scan run {run_id} cancelled at {checkpoint}",
            error_code="SCAN_CANCELLED",
            context={"run_id": run_id, "checkpoint": checkpoint}
        )
        self.run_id = run_id
        self.checkpoint = checkpoint


class SampleLoadError(PipelineError):
    """Raised when an evaluation sample file cannot be read."""

    def __init__(self, file_path: str, reason: str = "Unknown error"):
        super().__init__(
            message=f"Failed to load samples: {file_path}. Reason: {reason}",
            error_code="SAMPLE_LOAD_ERROR",
            context={"file_path": file_path, "reason": reason}
        )
        self.file_path = file_path
        self.reason = reason
