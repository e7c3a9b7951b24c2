import math

import pytest

from geochat.services.distance import calculate_distance, format_distance


class TestCalculateDistance:
    """하버사인 거리 계산 테스트"""

    def test_same_point_is_zero(self):
        """같은 좌표의 거리는 0"""
        assert calculate_distance(37.5665, 126.9780, 37.5665, 126.9780) == 0

    def test_symmetric(self):
        """거리는 대칭"""
        a = calculate_distance(37.5665, 126.9780, 35.1796, 129.0756)
        b = calculate_distance(35.1796, 129.0756, 37.5665, 126.9780)
        assert a == pytest.approx(b)

    def test_seoul_to_busan(self):
        """서울-부산 약 325km"""
        distance = calculate_distance(37.5665, 126.9780, 35.1796, 129.0756)
        assert distance == pytest.approx(325, abs=5)

    def test_one_degree_longitude_at_equator(self):
        """적도에서 경도 1도는 약 111.19km"""
        assert calculate_distance(0, 0, 0, 1) == pytest.approx(111.19, abs=0.01)

    def test_antipodal_points(self):
        """대척점 거리는 지구 둘레의 절반"""
        assert calculate_distance(0, 0, 0, 180) == pytest.approx(math.pi * 6371.0)

    def test_nan_propagates(self):
        """NaN 입력은 NaN 결과"""
        assert math.isnan(calculate_distance(float("nan"), 0, 0, 0))

    def test_near_antipodal_points_do_not_raise(self):
        """반올림 오차로 중간값이 1을 넘는 대척점 근처 좌표"""
        distance = calculate_distance(
            66.16849958870057, -136.09604216031624,
            -66.16849958870057, 43.903957839683756,
        )
        assert distance == pytest.approx(math.pi * 6371.0)


class TestFormatDistance:
    """거리 표시 형식 테스트"""

    @pytest.mark.parametrize("distance, expected", [
        (0, "< 0.1 km"),
        (0.05, "< 0.1 km"),
        (0.1, "100 m"),
        (0.55, "550 m"),
        (0.3125, "313 m"),
        (0.9994, "999 m"),
        (1, "1.0 km"),
        (5.6, "5.6 km"),
        (12.345, "12.3 km"),
    ])
    def test_format(self, distance, expected):
        assert format_distance(distance) == expected
