from typing import Optional, Dict, Any, List
from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int


class ValidationError(BaseModel):
    """검증 에러 세부사항"""
    field: str
    message: str
    value: Optional[Any] = None


class ValidationErrorResponse(BaseModel):
    """검증 에러 응답 모델"""
    error: str = "validation_error"
    message: str
    validation_errors: List[ValidationError]
    status_code: int


# =============================================================================
# 커스텀 예외 클래스들 (REST 엔드포인트)
# =============================================================================

class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(status_code=status_code, detail=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class ValidationException(BaseCustomException):
    """입력 검증 실패 예외"""
    def __init__(
        self,
        message: str = "Validation failed",
        validation_errors: Optional[List[ValidationError]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.validation_errors = validation_errors or []
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error="validation_error",
            message=message,
            details=details
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "validation_errors": [error.model_dump() for error in self.validation_errors],
            "status_code": self.status_code
        }


class AuthorizationException(BaseCustomException):
    """권한 부족 예외"""
    def __init__(
        self,
        message: str = "Access denied",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="authorization_error",
            message=message,
            details=details
        )


class ResourceNotFoundException(BaseCustomException):
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
            status_code=status.HTTP_404_NOT_FOUND,
            error="resource_not_found",
            message=message,
            details=details or {"resource": resource}
        )


# =============================================================================
# 실시간 채널 예외 (클라이언트에 노출되지 않고 로그로만 남음)
# =============================================================================

class InvalidEventPayload(ValueError):
    """WebSocket 이벤트 페이로드 형식 오류"""
    def __init__(self, event: str, reason: str):
        self.event = event
        self.reason = reason
        super().__init__(f"Invalid payload for '{event}': {reason}")


# =============================================================================
# 에러 헬퍼 함수들
# =============================================================================

def create_error_response(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """표준 에러 응답 생성"""
    return ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        details=details
    )


def create_validation_error_response(
    message: str,
    validation_errors: List[ValidationError],
    status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY
) -> ValidationErrorResponse:
    """검증 에러 응답 생성"""
    return ValidationErrorResponse(
        message=message,
        validation_errors=validation_errors,
        status_code=status_code
    )


def room_not_found_error(room_id: str):
    """채팅방을 찾을 수 없음 에러"""
    return ResourceNotFoundException("Chat room", details={"room_id": room_id})
