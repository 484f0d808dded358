"""Unit tests for the OBIS locator and entry reader."""

from __future__ import annotations

from decimal import Decimal

import pytest

from smlmeter.exceptions import SmlConfigurationError, SmlDecodingError
from smlmeter.protocol import OctetString
from smlmeter.protocol.obis import (
    decode_telegram,
    format_obis,
    locate,
    parse_identifier,
    read_entry,
)

# =============================================================================
# Test Constants
# =============================================================================

TEST_OBIS_ENERGY_IMPORT = "0100010800ff"  # 1-0:1.8.0*255
TEST_OBIS_POWER = "0100100700ff"  # 1-0:16.7.0*255
TEST_OBIS_DEVICE_NUMBER = "0100000009ff"  # 1-0:0.0.9*255
TEST_OBIS_MANUFACTURER = "8181c78203ff"  # 129-129:199.130.3*255
TEST_OBIS_PUBLIC_KEY = "8181c78205ff"  # 129-129:199.130.5*255


def sml_entry(obis: str, fields: str) -> str:
    """Build one SML list entry (objName + fields) as hex, spaces ignored."""
    return "7707" + obis + fields.replace(" ", "")


# =============================================================================
# Helper Function Tests
# =============================================================================


class TestDecodeTelegram:
    """Tests for decode_telegram."""

    @pytest.mark.parametrize(
        ("telegram", "expected"),
        [
            ("0a1b", b"\x0a\x1b"),
            ("0A1B", b"\x0a\x1b"),
            ("", b""),
        ],
        ids=["lowercase", "uppercase", "empty"],
    )
    def test_valid(self, telegram: str, expected: bytes) -> None:
        """Test that hex digits of either case decode to bytes."""
        assert decode_telegram(telegram) == expected

    @pytest.mark.parametrize(
        "telegram",
        ["0G", "ABC", "1B1B1B1Z", "01 02", "0102\n", "\t0102", "0x0102"],
        ids=["non_hex", "odd_length", "trailing_z", "space", "trailing_newline", "leading_tab", "hex_prefix"],
    )
    def test_invalid_raises(self, telegram: str) -> None:
        """Test that malformed telegrams raise SmlDecodingError."""
        with pytest.raises(SmlDecodingError, match="not a valid hex string"):
            decode_telegram(telegram)


class TestParseIdentifier:
    """Tests for parse_identifier."""

    def test_valid(self) -> None:
        """Test that identifiers decode case-insensitively."""
        assert parse_identifier("0100010800FF") == bytes([0x01, 0x00, 0x01, 0x08, 0x00, 0xFF])
        assert parse_identifier("070100") == b"\x07\x01\x00"

    @pytest.mark.parametrize(
        "identifier",
        ["01000", "01zz", "ident", "0100 010800ff"],
        ids=["odd_length", "non_hex", "text", "inner_space"],
    )
    def test_invalid_raises(self, identifier: str) -> None:
        """Test that malformed identifiers are configuration errors."""
        with pytest.raises(SmlConfigurationError, match="not a valid hex string"):
            parse_identifier(identifier)

    def test_empty_raises(self) -> None:
        """Test that an empty identifier is rejected."""
        with pytest.raises(SmlConfigurationError, match="cannot be empty"):
            parse_identifier("")


class TestFormatObis:
    """Tests for format_obis."""

    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            (TEST_OBIS_ENERGY_IMPORT, "1-0:1.8.0*255"),
            (TEST_OBIS_POWER, "1-0:16.7.0*255"),
            (TEST_OBIS_MANUFACTURER, "129-129:199.130.3*255"),
            ("070100", "070100"),
        ],
        ids=["energy_import", "power", "manufacturer", "short_tag"],
    )
    def test_format(self, code: str, expected: str) -> None:
        """Test A-B:C.D.E*F formatting, falling back to hex for other lengths."""
        assert format_obis(bytes.fromhex(code)) == expected


# =============================================================================
# Entry Reader Tests
# =============================================================================


class TestReadEntry:
    """Tests for read_entry."""

    def test_energy_entry(self) -> None:
        """Test reading status, unit, scaler and value of an energy entry."""
        data = bytes.fromhex("6401018201621E52FF560013E1C99301")

        entry = read_entry(data, 0)

        assert entry.status.value == 0x010182
        assert entry.unit == 30
        assert entry.scaler == -1
        assert entry.value == Decimal("33356430.7")

    def test_optional_fields_not_set(self) -> None:
        """Test that empty unit and scaler read as None."""
        entry = read_entry(bytes.fromhex("0101010104454D4801"), 0)

        assert entry.status.is_empty
        assert entry.unit is None
        assert entry.scaler is None
        assert entry.value == "EMH"

    def test_value_time_list_is_skipped(self) -> None:
        """Test that a valTime list does not shift the following fields."""
        entry = read_entry(bytes.fromhex("0172620165173B1C9E01016207"), 0)

        assert entry.unit is None
        assert entry.value == Decimal(7)

    @pytest.mark.parametrize(
        ("hex_data", "error_match"),
        [
            ("0101621E52FF5600", "exceeds telegram"),
            ("0101" "04414243" "52FF" "6201", "Expected integer unit"),
            ("0101621E" "0441424301" "6201", "Expected integer scaler"),
            ("0101010172620162020101", "Expected scalar value"),
        ],
        ids=["truncated", "unit_not_integer", "scaler_not_integer", "value_is_list"],
    )
    def test_invalid_raises(self, hex_data: str, error_match: str) -> None:
        """Test that malformed entries raise ValueError."""
        with pytest.raises(ValueError, match=error_match):
            read_entry(bytes.fromhex(hex_data), 0)


# =============================================================================
# Locator Tests
# =============================================================================


class TestLocate:
    """Tests for locate against the captured eHZ telegram and synthetic entries."""

    @pytest.mark.parametrize(
        ("identifier", "expected"),
        [
            (TEST_OBIS_ENERGY_IMPORT, Decimal("33356430.7")),
            ("0100010801ff", Decimal("33356430.7")),
            ("0100010802ff", Decimal("0")),
            ("0100020800ff", Decimal("78428041.8")),
            (TEST_OBIS_POWER, Decimal("2043.4")),
            (TEST_OBIS_MANUFACTURER, "EMH"),
            ("0100010800FF", Decimal("33356430.7")),
        ],
        ids=["energy_import", "import_tariff1", "import_tariff2", "energy_export", "power", "manufacturer", "uppercase"],
    )
    def test_capture(self, ehz_telegram: str, identifier: str, expected: object) -> None:
        """Test values extracted from the real telegram."""
        assert locate(ehz_telegram, identifier) == expected

    def test_capture_device_number_is_raw(self, ehz_telegram: str) -> None:
        """Test that the locator returns the device number undecoded."""
        value = locate(ehz_telegram, TEST_OBIS_DEVICE_NUMBER)

        assert isinstance(value, OctetString)
        assert value.raw == bytes.fromhex("080C2AED2D4C633C")

    def test_capture_multi_byte_tl_value(self, ehz_telegram: str) -> None:
        """Test the public key entry with a valTime list and a two-byte TL field."""
        value = locate(ehz_telegram, TEST_OBIS_PUBLIC_KEY)

        assert isinstance(value, OctetString)
        assert len(value.raw) == 48

    @pytest.mark.parametrize(
        "identifier",
        ["0100010803ff", "0100600100ff", "deadbeef"],
        ids=["tariff3_missing", "other_channel", "random_tag"],
    )
    def test_capture_absent(self, ehz_telegram: str, identifier: str) -> None:
        """Test that identifiers not in the telegram return None."""
        assert locate(ehz_telegram, identifier) is None

    @pytest.mark.parametrize(
        "identifier",
        ["070100100700ff", "77070100100700ff", "01001007", "0100100700ff"],
        ids=["with_obj_name_tl", "with_list_header", "code_prefix", "full_code"],
    )
    def test_tag_anchoring(self, ehz_telegram: str, identifier: str) -> None:
        """Test that tags with extra header bytes or a code prefix find the same entry."""
        assert locate(ehz_telegram, identifier) == Decimal("2043.4")

    def test_first_match_wins(self) -> None:
        """Test that the leftmost occurrence of a tag is used."""
        first = sml_entry(TEST_OBIS_POWER, "0101621B52FF520101")
        second = sml_entry(TEST_OBIS_POWER, "0101621B52FF520201")

        assert locate(second, TEST_OBIS_POWER) == Decimal("0.2")
        assert locate(first + second, TEST_OBIS_POWER) == Decimal("0.1")
        assert locate(second + first, TEST_OBIS_POWER) == Decimal("0.2")

    def test_search_is_byte_aligned(self) -> None:
        """Test that a tag straddling byte boundaries of the hex text does not match."""
        # Hex text contains "0100010800FF" starting at an odd character index
        telegram = "A0100010800FF0"

        assert TEST_OBIS_ENERGY_IMPORT.upper() in telegram
        assert locate(telegram, TEST_OBIS_ENERGY_IMPORT) is None

    @pytest.mark.parametrize(
        ("fields", "expected"),
        [
            ("0101621B52FF5500004FD201", Decimal("2043.4")),
            ("0101621B52025300050101", Decimal("500")),
            ("01010101620701", Decimal("7")),
            ("0101621B52FD65FFFFFFFF01", Decimal("4294967.295")),
            ("0101621B5200550000000A01", Decimal("10")),
            ("010101014201", Decimal("1")),
            ("0101621B52FF52FF01", Decimal("-0.1")),
        ],
        ids=["scaled", "positive_scaler", "no_scaler", "uint32_max", "zero_scaler", "boolean", "negative"],
    )
    def test_numeric_values(self, fields: str, expected: Decimal) -> None:
        """Test scaling of numeric entries."""
        value = locate(sml_entry(TEST_OBIS_POWER, fields), TEST_OBIS_POWER)

        assert isinstance(value, Decimal)
        assert value == expected

    @pytest.mark.parametrize(
        "fields",
        [
            "0101621B52FF5500",
            "0101010172620162020101",
            "0101621B52FF0101",
            "",
        ],
        ids=["truncated", "value_is_list", "value_not_set", "tag_at_end"],
    )
    def test_unreadable_entry_is_absent(self, fields: str) -> None:
        """Test that entries that cannot be read resolve as absent."""
        assert locate(sml_entry(TEST_OBIS_POWER, fields), TEST_OBIS_POWER) is None

    def test_deeply_nested_status_is_absent(self) -> None:
        """Test that runaway list nesting after a tag resolves as absent."""
        assert locate(sml_entry(TEST_OBIS_ENERGY_IMPORT, "71" * 3000), TEST_OBIS_ENERGY_IMPORT) is None

    def test_unreadable_entry_is_logged(self, debug_logging: pytest.LogCaptureFixture) -> None:
        """Test that an absorbed entry error is logged at debug level."""
        locate(sml_entry(TEST_OBIS_POWER, "0101621B52FF5500"), TEST_OBIS_POWER)

        assert "Unreadable entry for 0100100700ff" in debug_logging.text

    def test_accepts_bytes(self, ehz_telegram: str) -> None:
        """Test that already decoded telegrams are accepted."""
        assert locate(bytes.fromhex(ehz_telegram), TEST_OBIS_POWER) == Decimal("2043.4")

    def test_malformed_telegram_raises(self) -> None:
        """Test that a non-hex telegram raises SmlDecodingError."""
        with pytest.raises(SmlDecodingError):
            locate("7707XX", TEST_OBIS_POWER)

    def test_malformed_identifier_raises(self, ehz_telegram: str) -> None:
        """Test that a non-hex identifier raises SmlConfigurationError."""
        with pytest.raises(SmlConfigurationError):
            locate(ehz_telegram, "1.8.0")

    def test_pure(self, ehz_telegram: str) -> None:
        """Test that repeated lookups return equal values."""
        assert locate(ehz_telegram, TEST_OBIS_POWER) == locate(ehz_telegram, TEST_OBIS_POWER)
