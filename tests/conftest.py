"""Shared test fixtures for smlmeter tests."""

from __future__ import annotations

import logging

import pytest

# Telegram captured from an EMH eHZ over the infrared head (one SML file,
# open response, GetList response, close response)
EHZ_TELEGRAM = (
    "1B1B1B1B010101017607001B0F778AD3620062007263010176010107001B173BD8F109080C2AED2D4C633C"
    "010163B5A0007607001B0F778AD46200620072630701770109080C2AED2D4C633C070100620AFFFF7262"
    "0165173B1C9E7A77078181C78203FF0101010104454D480177070100000009FF0101010109080C2AED2D"
    "4C633C0177070100010800FF6401018201621E52FF560013E1C9930177070100020800FF640101820162"
    "1E52FF56002EBF2B620177070100010801FF0101621E52FF560013E1C9930177070100020801FF010162"
    "1E52FF56002EBF2B620177070100010802FF0101621E52FF5600000000000177070100020802FF010162"
    "1E52FF5600000000000177070100100700FF0101621B52FF5500004FD20177078181C78205FF01726201"
    "65173B1C9E01018302848B491A20A2348A6B395D984B33867213DA7E05B910310C1E08FFDA836B1A36B6"
    "65CF153CC35734A204833C5EBBBA6101010163E14D007607001B0F778AD7620062007263020171016332"
    "16000000001B1B1B1B1A"
)


@pytest.fixture
def ehz_telegram() -> str:
    """Real eHZ telegram as hex string."""
    return EHZ_TELEGRAM


@pytest.fixture
def debug_logging(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """Capture smlmeter debug logs."""
    caplog.set_level(logging.DEBUG, logger="smlmeter")
    return caplog
