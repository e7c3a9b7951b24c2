from typing import Optional, Dict, Any, List
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ValidationError(BaseModel):
    """검증 에러 세부사항"""
    field: str
    message: str
    value: Optional[Any] = None


# =============================================================================
# 커스텀 예외 클래스들
# =============================================================================

class BaseCustomException(Exception):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
        }

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.error, message=self.message, details=self.details)


class InvalidArgumentException(BaseCustomException):
    """입력 검증 실패 예외 (잘못된 좌표, 빈 식별자 등)"""
    def __init__(
        self,
        message: str = "Invalid argument",
        validation_errors: Optional[List[ValidationError]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.validation_errors = validation_errors or []
        super().__init__(
            error="invalid_argument",
            message=message,
            details=details
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "validation_errors": [error.model_dump() for error in self.validation_errors],
        }


class NotFoundException(BaseCustomException):
    """리소스를 찾을 수 없음 예외"""
    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if message is None:
            message = f"{resource} not found"

        super().__init__(
            error="resource_not_found",
            message=message,
            details=details or {"resource": resource}
        )


class UnavailableException(BaseCustomException):
    """저장소 또는 위치 제공자에 일시적으로 접근할 수 없음"""
    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        details: Optional[Dict[str, Any]] = None,
        error: str = "service_unavailable"
    ):
        super().__init__(
            error=error,
            message=message,
            details=details
        )


class LocationTimeoutException(UnavailableException):
    """위치 조회 시간 초과"""
    def __init__(
        self,
        message: str = "Location request timed out",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, details=details, error="timeout")


class PermissionDeniedException(BaseCustomException):
    """저장소 또는 위치 접근이 거부됨"""
    def __init__(
        self,
        message: str = "Permission denied",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            error="permission_denied",
            message=message,
            details=details
        )
