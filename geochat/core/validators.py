import math
import re
from typing import Any, List, Optional

from .errors import InvalidArgumentException, ValidationError

MAX_MESSAGE_LENGTH = 5000


class Validator:
    """입력 검증을 위한 유틸리티 클래스"""

    @staticmethod
    def validate_required(value: Any, field_name: str) -> Any:
        """필수 필드 검증 (빈 식별자 거부)"""
        if value is None or (isinstance(value, str) and value.strip() == ""):
            raise InvalidArgumentException(
                f"{field_name} is required",
                validation_errors=[
                    ValidationError(field=field_name, message="This field is required", value=value)
                ]
            )
        return value

    @staticmethod
    def validate_coordinates(latitude: Any, longitude: Any) -> tuple[float, float]:
        """위도/경도 범위 검증"""
        errors = []

        lat = Validator._to_finite_float(latitude)
        lon = Validator._to_finite_float(longitude)

        if lat is None or not -90.0 <= lat <= 90.0:
            errors.append(
                ValidationError(
                    field="latitude",
                    message="Latitude must be a number between -90 and 90",
                    value=latitude
                )
            )

        if lon is None or not -180.0 <= lon <= 180.0:
            errors.append(
                ValidationError(
                    field="longitude",
                    message="Longitude must be a number between -180 and 180",
                    value=longitude
                )
            )

        if errors:
            raise InvalidArgumentException(
                "Invalid coordinates",
                validation_errors=errors
            )

        return lat, lon

    @staticmethod
    def validate_radius(radius_km: Any, field_name: str = "radius") -> float:
        """검색 반경 검증 (0 이상 유한값)"""
        radius = Validator._to_finite_float(radius_km)
        if radius is None or radius < 0:
            raise InvalidArgumentException(
                f"Invalid {field_name}",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message="Radius must be a non-negative number of kilometers",
                        value=radius_km
                    )
                ]
            )
        return radius

    @staticmethod
    def validate_enum(value: str, allowed_values: List[str], field_name: str) -> str:
        """열거형 값 검증"""
        if value not in allowed_values:
            raise InvalidArgumentException(
                f"Invalid {field_name}",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message=f"Must be one of: {', '.join(allowed_values)}",
                        value=value
                    )
                ]
            )
        return value

    @staticmethod
    def validate_message_content(content: Optional[str], field_name: str = "text") -> str:
        """메시지 내용 검증"""
        errors = []

        # 빈 메시지 검증
        if not content or content.strip() == "":
            raise InvalidArgumentException(
                "Message content validation failed",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message="Message content cannot be empty"
                    )
                ]
            )

        # 최대 길이 검증
        if len(content) > MAX_MESSAGE_LENGTH:
            errors.append(
                ValidationError(
                    field=field_name,
                    message=f"Message content must be no more than {MAX_MESSAGE_LENGTH} characters",
                    value=len(content)
                )
            )

        # 제어 문자 검증
        if re.search(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', content):
            errors.append(
                ValidationError(
                    field=field_name,
                    message="Message content contains invalid control characters"
                )
            )

        if errors:
            raise InvalidArgumentException(
                "Message content validation failed",
                validation_errors=errors
            )

        return content.strip()

    @staticmethod
    def validate_emoji(emoji: Optional[str], field_name: str = "emoji") -> str:
        """이모지 검증"""
        if not emoji or not emoji.strip():
            raise InvalidArgumentException(
                "Emoji is required",
                validation_errors=[
                    ValidationError(field=field_name, message="Emoji cannot be empty", value=emoji)
                ]
            )
        return emoji

    @staticmethod
    def _to_finite_float(value: Any) -> Optional[float]:
        if isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number):
            return None
        return number
