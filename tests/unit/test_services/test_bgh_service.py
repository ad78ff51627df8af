"""
Tests for the BGH service (client resolution and error normalisation).
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from bgh_bridge.devices.bgh_client import BGHClient
from bgh_bridge.models.command import CommandPayload
from bgh_bridge.models.config import Settings
from bgh_bridge.models.credentials import Credentials
from bgh_bridge.services.bgh_service import BGHService
from bgh_bridge.utils.errors import ConfigurationError, NotFoundError, UnexpectedError


def make_fake_client():
    client = MagicMock()
    client.list_homes = AsyncMock(return_value=[{"HomeID": 1}])
    client.get_devices = AsyncMock(return_value={})
    client.get_device_status = AsyncMock()
    client.set_mode = AsyncMock(return_value={"HVACSetModesResult": True})
    return client


@pytest.fixture
def factory():
    built = []

    def build(credentials):
        client = make_fake_client()
        built.append((credentials, client))
        return client

    build.built = built
    return build


def test_same_credentials_share_one_client(settings, factory):
    service = BGHService(settings, client_factory=factory)

    first = service.get_client(Credentials("User@Example.com", "pw"))
    second = service.get_client(Credentials(" user@example.com ", "pw"))
    other = service.get_client(Credentials("user@example.com", "other"))

    assert first is second
    assert other is not first
    assert service.client_count == 2


def test_default_credentials_are_used_when_none_given(settings, factory):
    service = BGHService(settings, client_factory=factory)

    service.get_client()

    credentials, _ = factory.built[0]
    assert credentials == Credentials("user@example.com", "secret")


def test_missing_credentials_is_configuration_error(factory):
    service = BGHService(Settings(), client_factory=factory)

    with pytest.raises(ConfigurationError, match="BGH_EMAIL and BGH_PASSWORD"):
        service.get_client()

    assert factory.built == []


def test_default_factory_builds_bgh_client():
    service = BGHService(Settings(bgh_email="a@b.c", bgh_password="x", timeout_ms=5000, sim_mode=True))

    client = service.get_client()

    assert isinstance(client, BGHClient)
    assert client.sim_mode is True
    assert client.timeout == 5.0


@pytest.mark.asyncio
async def test_list_homes(settings, factory):
    service = BGHService(settings, client_factory=factory)

    assert await service.list_homes() == [{"HomeID": 1}]


@pytest.mark.asyncio
async def test_typed_errors_pass_through(settings, factory):
    service = BGHService(settings, client_factory=factory)
    client = service.get_client()
    client.get_device_status.side_effect = NotFoundError("Device 9 not found for home 1")

    with pytest.raises(NotFoundError):
        await service.get_device_status(1, 9)


@pytest.mark.asyncio
async def test_unknown_errors_become_unexpected_error(settings, factory):
    service = BGHService(settings, client_factory=factory)
    client = service.get_client()
    boom = KeyError("Homes")
    client.list_homes.side_effect = boom

    with pytest.raises(UnexpectedError) as exc_info:
        await service.list_homes()

    assert exc_info.value.message == "Unexpected error occurred while listing homes."
    assert exc_info.value.__cause__ is boom


@pytest.mark.asyncio
async def test_set_device_mode_forwards_payload(settings, factory):
    service = BGHService(settings, client_factory=factory)
    credentials = Credentials("someone@example.com", "pw")

    await service.set_device_mode(
        7,
        CommandPayload(mode="cool", target_temperature=21, fan="low", flags=1),
        credentials
    )

    built_credentials, client = factory.built[0]
    assert built_credentials == credentials
    client.set_mode.assert_awaited_once_with(
        7, mode="cool", target_temperature=21, fan="low", flags=1
    )
