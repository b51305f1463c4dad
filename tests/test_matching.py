"""Unit tests for the expanding-radius nearby-driver search."""

from unittest.mock import AsyncMock

import pytest

from ridehail.domain.entities import User
from ridehail.domain.enums import DriverStatus, Role
from ridehail.domain.errors import NotFound
from ridehail.services.matching import DriverCandidate, MatchingService


def _directory(users: dict[int, User]) -> AsyncMock:
    directory = AsyncMock()

    async def get_user(user_id):
        if user_id not in users:
            raise NotFound(f"User not found with ID: {user_id}")
        return users[user_id]

    directory.get_user = AsyncMock(side_effect=get_user)
    return directory


def _driver(user_id, status=DriverStatus.AVAILABLE, active=True):
    return User(id=user_id, role=Role.DRIVER, driver_status=status, active=active)


class TestMatchingService:
    @pytest.mark.asyncio
    async def test_returns_available_drivers_nearest_first(self):
        locations = AsyncMock()
        locations.find_nearby = AsyncMock(return_value=[(1, 0.5), (2, 1.2)])
        directory = _directory({1: _driver(1), 2: _driver(2)})

        matches = await MatchingService(locations, directory).find_nearby_drivers(
            -1.2864, 36.8172
        )
        assert matches == [DriverCandidate(1, 0.5), DriverCandidate(2, 1.2)]
        locations.find_nearby.assert_awaited_once_with(-1.2864, 36.8172, 5.0, None)

    @pytest.mark.asyncio
    async def test_filters_busy_offline_inactive_and_unknown(self):
        locations = AsyncMock()
        locations.find_nearby = AsyncMock(
            return_value=[(1, 0.1), (2, 0.2), (3, 0.3), (4, 0.4), (5, 0.5), (6, 0.6)]
        )
        directory = _directory(
            {
                1: _driver(1, DriverStatus.BUSY),
                2: _driver(2, DriverStatus.OFFLINE),
                3: _driver(3, active=False),
                4: User(id=4, role=Role.CUSTOMER),
                6: _driver(6),
            }
        )

        matches = await MatchingService(locations, directory).find_nearby_drivers(0, 0)
        assert matches == [DriverCandidate(6, 0.6)]

    @pytest.mark.asyncio
    async def test_expands_radius_until_match(self):
        locations = AsyncMock()
        locations.find_nearby = AsyncMock(side_effect=[[], [], [(1, 12.0)]])
        directory = _directory({1: _driver(1)})

        matches = await MatchingService(locations, directory).find_nearby_drivers(0, 0)
        assert matches == [DriverCandidate(1, 12.0)]
        radii = [call.args[2] for call in locations.find_nearby.await_args_list]
        assert radii == [5.0, 10.0, 15.0]

    @pytest.mark.asyncio
    async def test_gives_up_at_max_radius(self):
        locations = AsyncMock()
        locations.find_nearby = AsyncMock(return_value=[])
        directory = _directory({})

        matches = await MatchingService(locations, directory).find_nearby_drivers(0, 0)
        assert matches == []
        radii = [call.args[2] for call in locations.find_nearby.await_args_list]
        assert radii == [5.0, 10.0, 15.0, 20.0]

    @pytest.mark.asyncio
    async def test_busy_drivers_do_not_hide_available_ones(self):
        nearby = [(i, 0.1 * i) for i in range(1, 13)]
        locations = AsyncMock()
        locations.find_nearby = AsyncMock(return_value=nearby)
        users = {i: _driver(i, DriverStatus.BUSY) for i in range(1, 11)}
        users.update({11: _driver(11), 12: _driver(12)})

        matches = await MatchingService(
            locations, _directory(users), limit=10
        ).find_nearby_drivers(0, 0)
        assert [m.driver_id for m in matches] == [11, 12]
        locations.find_nearby.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_truncates_to_limit_after_filtering(self):
        locations = AsyncMock()
        locations.find_nearby = AsyncMock(
            return_value=[(1, 0.1), (2, 0.2), (3, 0.3), (4, 0.4)]
        )
        directory = _directory(
            {1: _driver(1, DriverStatus.OFFLINE), 2: _driver(2), 3: _driver(3), 4: _driver(4)}
        )

        matches = await MatchingService(locations, directory, limit=2).find_nearby_drivers(0, 0)
        assert matches == [DriverCandidate(2, 0.2), DriverCandidate(3, 0.3)]
