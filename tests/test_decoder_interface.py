import pytest
import logging
import yaml
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from pcl_decoder.decoder_interface import (
    PeopleCounterDecoder, DecoderConfig, CommandSpec, DecodeResult,
    load_config, build_registry, decode_uplink, get_default_decoder,
    DEFAULT_CONFIG_PATH,
)
from pcl_decoder.pcl_protocol import Channel, RangeError
from pcl_decoder.pcl_protocol.commands import parse_counts

# Points (0, 0) and (80, 60) packed into 26 bits plus 6 padding bits
AREA_POINTS_BYTES = [0x00, 0x00, 0x14, 0x3C]


@pytest.fixture(scope="module")
def decoder():
    """Decoder built from the bundled config"""
    return PeopleCounterDecoder()


def write_config(tmp_path, config_data, name="config.yaml"):
    config_file = tmp_path / name
    config_file.write_text(yaml.dump(config_data))
    return str(config_file)


class TestConfiguration:
    """Test decoder configuration loading and validation"""

    def test_bundled_config(self):
        config = load_config()
        assert config.counting_channel == Channel.COUNTING_DATA
        assert config.area_channel == Channel.GET_AREA
        assert len(config.commands) == 22
        assert CommandSpec(2, 2, "CMD_CNT_GET", "counts") in config.commands

    def test_bundled_registry(self, decoder):
        registry = decoder.registry
        assert registry.frozen
        assert registry.lookup(2, 2).parser is parse_counts
        assert registry.lookup(3, 1).parser is None
        assert registry.lookup(100, 131).name == "CMD_SET_PUSH_PERIOD"
        assert registry.lookup(102, 0).name == "CMD_SET_AREA_PTS"

    def test_config_loading(self, tmp_path):
        """Test loading valid configuration"""
        path = write_config(tmp_path, {
            "PeopleCounter": {
                "counting_channel": 10,
                "area_channel": 11,
                "commands": [
                    {"channel": 2, "id": 2, "name": "CMD_CNT_GET", "parser": "counts"},
                    {"channel": 3, "id": 1, "name": "CMD_DEV_RBT"},
                ],
            }
        })
        config = load_config(path)
        assert config.counting_channel == 10
        assert config.area_channel == 11
        assert config.commands == (
            CommandSpec(2, 2, "CMD_CNT_GET", "counts"),
            CommandSpec(3, 1, "CMD_DEV_RBT", None),
        )

    def test_channel_defaults(self, tmp_path):
        path = write_config(tmp_path, {"PeopleCounter": {"commands": []}})
        config = load_config(path)
        assert config.counting_channel == 1
        assert config.area_channel == 101

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(str(tmp_path / "absent.yaml"))

    @pytest.mark.parametrize("config_data", [
        {"Other": {}},
        {"PeopleCounter": {"counting_channel": 1}},
        {"PeopleCounter": {"commands": [{"channel": 2, "name": "CMD_CNT_GET"}]}},
    ])
    def test_missing_keys(self, tmp_path, config_data):
        path = write_config(tmp_path, config_data)
        with pytest.raises(ValueError, match="Missing required keys"):
            load_config(path)

    def test_unknown_parser(self, tmp_path):
        path = write_config(tmp_path, {"PeopleCounter": {"commands": [
            {"channel": 2, "id": 2, "name": "CMD_CNT_GET", "parser": "bogus"},
        ]}})
        with pytest.raises(ValueError, match="Unknown payload parser"):
            load_config(path)

    def test_out_of_range_command_aborts_startup(self, tmp_path):
        path = write_config(tmp_path, {"PeopleCounter": {"commands": [
            {"channel": 0, "id": 1, "name": "x"},
        ]}})
        with pytest.raises(RangeError):
            PeopleCounterDecoder.from_yaml(path)

    def test_build_registry_last_wins(self):
        config = DecoderConfig(commands=(
            CommandSpec(5, 1, "OLD"),
            CommandSpec(5, 1, "CMD_GET_AP_STATE", "access_point_state"),
        ))
        registry = build_registry(config)
        assert len(registry) == 1
        assert registry.lookup(5, 1).name == "CMD_GET_AP_STATE"


class TestDecodeScenarios:
    """Test decoding of captured uplink frames"""

    def test_counting_uplink(self, decoder):
        result = decoder.decode(bytes([0, 0, 0, 5, 0, 0, 0, 3, 0b00000011]), 1)
        assert result.ok
        assert result.errors == []
        assert result.data == {
            'count_in': 5,
            'count_out': 3,
            'flags': {'TPC_STOPPED': 1, 'TPC_STUCK': 1},
        }

    def test_counting_uplink_large_counts(self, decoder):
        result = decoder.decode([0, 0, 1, 44, 0, 1, 0, 0, 0b00001000], 1)
        assert result.data['count_in'] == 300
        assert result.data['count_out'] == 65536
        assert result.data['flags'] == {'WIFI_AP_ENABLED': 1}

    def test_counting_uplink_short(self, decoder):
        result = decoder.decode([0, 0, 0, 5], 1)
        assert result.data is None
        assert len(result.errors) == 1
        assert "Counting frame" in result.errors[0]

    def test_area_uplink(self, decoder):
        result = decoder.decode([2] + AREA_POINTS_BYTES, 101)
        cmd = result.data['cmd']
        assert cmd['name'] == "CMD_GET_AREA_PTS"
        assert cmd['id'] is None
        assert cmd['success'] is True
        assert cmd['value']['declared_count'] == 2
        assert cmd['value']['points'] == [{'x': 0, 'y': 0}, {'x': 80, 'y': 60}]

    def test_area_uplink_inconsistent(self, decoder):
        result = decoder.decode([3] + AREA_POINTS_BYTES, 101)
        assert result.data is None
        assert result.errors == ["Couldn't decode area payload: Inconsistent number of points"]

    def test_generic_ack_success(self, decoder):
        result = decoder.decode([255, 2, 0, 0, 0, 0, 10, 0, 0, 0, 7], 2)
        assert result.data == {'cmd': {
            'name': "CMD_CNT_GET",
            'id': 2,
            'success': True,
            'value': {'count_in': 10, 'count_out': 7},
        }}

    def test_generic_ack_failure(self, decoder):
        result = decoder.decode([255, 2, 255], 2)
        cmd = result.data['cmd']
        assert cmd['name'] == "CMD_CNT_GET"
        assert cmd['success'] is False
        assert 'value' not in cmd

    def test_generic_ack_short_trailer(self, decoder):
        """A trailer too short for the parser leaves the value out"""
        result = decoder.decode([255, 2, 0, 1], 2)
        assert result.errors == []
        assert result.data == {'cmd': {'name': "CMD_CNT_GET", 'id': 2, 'success': True}}

    def test_generic_ack_without_payload(self, decoder):
        result = decoder.decode([255, 130, 0], 2)
        assert result.data == {'cmd': {'name': "CMD_CNT_SET", 'id': 130, 'success': True}}

    def test_unknown_command(self, decoder):
        result = decoder.decode([250], 2)
        assert result.data is None
        assert result.errors == ["command not registered"]

    def test_unknown_channel(self, decoder):
        result = decoder.decode([1], 42)
        assert result.errors == ["command not registered"]

    @pytest.mark.parametrize("channel,data,value", [
        (4, [1, 2, 7, 14], {'software_version': "2.7.14"}),
        (4, [6, 1, 0, 0], {'software_version': "1.0.0"}),
        (5, [1, 1], {'state': "enabled"}),
        (100, [1, 0x0B, 0xB8], {'mounting_height': 3000}),
        (100, [2, 1], {'direction': "reversed"}),
        (100, [3, 0, 30], {'push_period_min': 30}),
    ])
    def test_responses(self, decoder, channel, data, value):
        result = decoder.decode(data, channel)
        assert result.data['cmd']['id'] == data[0]
        assert result.data['cmd']['value'] == value

    def test_short_response_payload(self, decoder):
        """Truncated payloads are reported, never raised"""
        result = decoder.decode([2, 0, 0], 2)
        assert result.data is None
        assert len(result.errors) == 1
        assert "exactly 4 bytes" in result.errors[0]

    @pytest.mark.parametrize("data", [[], [255], [255, 2]])
    def test_truncated_frames(self, decoder, data):
        result = decoder.decode(data, 2)
        assert result.data is None
        assert len(result.errors) == 1

    def test_invalid_byte_values(self, decoder):
        result = decoder.decode([1, 300], 2)
        assert result.data is None
        assert len(result.errors) == 1

    def test_failures_are_logged(self, decoder, caplog):
        with caplog.at_level(logging.WARNING):
            decoder.decode([250], 2)
        assert "Failed to decode uplink" in caplog.text


class TestDecodeUplink:
    """Test the network server entry point"""

    def test_success_envelope(self, decoder):
        result = decode_uplink({"bytes": [0, 0, 0, 5, 0, 0, 0, 3, 3], "fPort": 1}, decoder)
        assert set(result) == {"data"}
        assert result["data"]["count_in"] == 5

    def test_error_envelope(self, decoder):
        result = decode_uplink({"bytes": [250], "fPort": 2}, decoder)
        assert result == {"errors": ["command not registered"]}

    def test_channel_alias(self, decoder):
        result = decode_uplink({"bytes": [255, 1, 0], "channel": 6}, decoder)
        assert result["data"]["cmd"]["name"] == "CMD_FORCE_REJOIN"

    @pytest.mark.parametrize("uplink,field", [
        ({"fPort": 1}, "bytes"),
        ({"bytes": [1]}, "fPort"),
    ])
    def test_missing_fields(self, uplink, field):
        assert decode_uplink(uplink) == {"errors": [f"Missing required input field: {field}"]}

    @pytest.mark.parametrize("data", [9, "0102", 3.5])
    def test_non_sequence_bytes(self, decoder, data):
        result = decode_uplink({"bytes": data, "fPort": 1}, decoder)
        assert set(result) == {"errors"}
        assert "expected a byte sequence" in result["errors"][0]

    def test_default_decoder(self):
        assert get_default_decoder() is get_default_decoder()
        with ThreadPoolExecutor(max_workers=4) as pool:
            decoders = list(pool.map(lambda _: get_default_decoder(), range(8)))
        assert all(d is decoders[0] for d in decoders)
        result = decode_uplink({"bytes": [2, 0, 0, 0, 9, 0, 0, 0, 4], "fPort": 2})
        assert result["data"]["cmd"]["value"] == {'count_in': 9, 'count_out': 4}

    def test_result_to_dict(self):
        assert DecodeResult().to_dict() == {}
        assert DecodeResult(data={}, warnings=["w"]).to_dict() == {"data": {}, "warnings": ["w"]}

    def test_bundled_config_path(self):
        assert Path(DEFAULT_CONFIG_PATH).exists()


if __name__ == '__main__':
    pytest.main([__file__])
