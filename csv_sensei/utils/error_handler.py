"""
Error responses and upload/feature exceptions
"""

import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from flask import current_app, has_request_context, request


class UploadError(Exception):
    """Base class for problems with an uploaded dataset"""
    status_code = 400


class UnsupportedFileError(UploadError):
    status_code = 415


class UploadParseError(UploadError):
    status_code = 400


class RowLimitExceeded(UploadError):
    status_code = 413

    def __init__(self, limit_result: Dict[str, Any]):
        super().__init__(limit_result.get("message", "row limit exceeded"))
        self.limit_result = limit_result


class FeatureDisabledError(Exception):
    status_code = 403

    def __init__(self, feature_name: str):
        super().__init__(f"Feature '{feature_name}' is currently disabled")
        self.feature_name = feature_name


class ErrorHandler:
    """Centralized error logging and response bodies"""

    @staticmethod
    def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        details = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context or {},
            "request": {
                "method": request.method,
                "url": request.url,
            } if has_request_context() else None,
            "timestamp": datetime.utcnow().isoformat(),
        }
        status = (context or {}).get("status_code", 500)
        if status >= 500:
            current_app.logger.error("Error occurred: %s\n%s", details, traceback.format_exc())
        else:
            current_app.logger.warning("Request rejected: %s", details)

    @staticmethod
    def create_error_response(error: Exception, status_code: int = 500, context: Optional[Dict[str, Any]] = None) -> tuple:
        """Create standardized error response"""
        error_id = f"ERR_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}"

        response = {
            "error": True,
            "error_id": error_id,
            "message": str(error),
            "type": type(error).__name__,
            "timestamp": datetime.utcnow().isoformat(),
        }
        if context:
            response["context"] = context

        ErrorHandler.log_error(error, {**(context or {}), "status_code": status_code})
        return response, status_code
