"""
Tests for the loopback transport and the payload codec it carries.
"""
import pytest

from ppets.errors import MalformedPayloadError
from ppets.protocol import RESPONSE_FAIL, DeviceCommand, Message, MessageType, ReaderCommand
from ppets.protocol.codec import MAX_FIELD, Fields, pack_fields, unpack_fields
from ppets.protocols import AID, PPETSFGP
from ppets.transport import LoopbackTransport


@pytest.fixture
def transport(crypto):
    return LoopbackTransport(PPETSFGP().device(crypto=crypto))


class TestChannel:
    """Commands answered by the channel itself."""

    def test_open_and_select(self, transport):
        assert transport.exchange(ReaderCommand.OPEN, b"", 0) == Message.data()
        assert transport.exchange(ReaderCommand.SELECT, AID, 0) == Message.data()

    def test_select_before_open(self, transport):
        reply = transport.exchange(ReaderCommand.SELECT, AID, 0)
        assert reply.is_signal(b"error")

    def test_get_before_select(self, transport):
        transport.exchange(ReaderCommand.OPEN, b"", 0)
        assert transport.exchange(ReaderCommand.GET, b"", 0).is_signal(b"error")

    def test_internal_commands_loop_back(self, transport):
        assert transport.exchange(ReaderCommand.PUT_INTERNAL, b"\x01", 0) == Message.data(b"\x01")
        assert transport.exchange(ReaderCommand.GET_INTERNAL, b"", 0) == Message.data()

    def test_close(self, transport):
        assert transport.exchange(ReaderCommand.CLOSE, b"", 0).is_signal(b"close")
        assert transport.exchange(ReaderCommand.OPEN, b"", 0).is_signal(b"close")

    def test_open_resets_device(self, transport):
        transport.exchange(ReaderCommand.OPEN, b"", 0)
        transport.exchange(ReaderCommand.SELECT, AID, 0)
        # device expects the setup snapshot; garbage fails it
        assert transport.exchange(ReaderCommand.PUT, b"junk", 0).is_signal(b"error")
        assert transport.device.finished

        transport.exchange(ReaderCommand.OPEN, b"", 0)
        assert not transport.device.finished
        assert transport.device.index == 0

    def test_device_status_words(self, crypto):
        device = PPETSFGP().device(crypto=crypto)
        step = device.advance(Message.data(b"junk"))
        assert step.command is DeviceCommand.RESPONSE
        assert step.payload == RESPONSE_FAIL


class TestCodec:
    """Length-prefixed payload fields."""

    def test_field_types(self):
        data = pack_fields(b"\x00\x01", 258, "café", {"b": 1, "a": [2]})
        fields = Fields(data, 4)
        assert fields.raw() == b"\x00\x01"
        assert fields.integer() == 258
        assert fields.text() == "café"
        assert fields.mapping() == {"a": [2], "b": 1}

    def test_zero_and_empty(self):
        assert unpack_fields(pack_fields(0, b"")) == [b"\x00", b""]

    def test_dict_is_canonical(self):
        assert pack_fields({"b": 1, "a": 2}) == pack_fields({"a": 2, "b": 1})

    @pytest.mark.parametrize("value", [True, -1, 1.5, None])
    def test_rejected_types(self, value):
        with pytest.raises((TypeError, ValueError)):
            pack_fields(value)

    def test_field_size_limit(self):
        assert unpack_fields(pack_fields(b"x" * MAX_FIELD)) == [b"x" * MAX_FIELD]
        with pytest.raises(MalformedPayloadError, match="too long"):
            pack_fields(b"x" * (MAX_FIELD + 1))
        # non-ASCII text is escaped inside JSON fields
        with pytest.raises(MalformedPayloadError):
            pack_fields({"name": "é" * 20000})

    def test_wrong_field_count(self):
        with pytest.raises(MalformedPayloadError, match="expected 3"):
            Fields(pack_fields(1, 2), 3)

    def test_bad_mapping(self):
        with pytest.raises(MalformedPayloadError):
            Fields(pack_fields("[1, 2]"), 1).mapping()
        with pytest.raises(MalformedPayloadError):
            Fields(pack_fields(b"\xff{"), 1).mapping()

    def test_bad_text(self):
        with pytest.raises(MalformedPayloadError):
            Fields(pack_fields(b"\xff\xfe"), 1).text()

    def test_message_kinds(self):
        assert Message.data().is_request
        assert not Message.data(b"").is_request
        assert Message.data(b"").has_data
        assert Message.start().type is MessageType.CONTROL
        assert not Message.start().has_data
