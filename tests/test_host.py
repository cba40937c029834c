"""Tests for the host event adapter."""

import json
import uuid

from bguard.gatekeeper import RejectReason
from bguard.host import HandshakeEvent, handle_handshake
from tests.conftest import ADDRESS, HOSTNAME, MESSAGES, PLAYER_UUID, TEXTURES, make_handshake, token_property


class TestHandleHandshake:
    def test_accept_fills_outputs(self, make_gatekeeper):
        event = HandshakeEvent(make_handshake(properties=[TEXTURES, token_property("secret1")]))
        decision = handle_handshake(make_gatekeeper(["secret1"]), event)

        assert decision.accepted
        assert not event.failed
        assert event.fail_message is None
        assert event.server_hostname == HOSTNAME
        assert event.socket_address_hostname == ADDRESS
        assert event.unique_id == uuid.UUID(PLAYER_UUID)
        assert json.loads(event.properties_json) == [TEXTURES]

    def test_reject_sets_failure(self, make_gatekeeper):
        event = HandshakeEvent(make_handshake(properties=[token_property("wrong")]))
        decision = handle_handshake(make_gatekeeper(["secret1"]), event)

        assert decision.reason is RejectReason.INVALID_TOKEN
        assert event.failed
        assert event.fail_message == MESSAGES.invalid_token
        assert event.properties_json is None
        assert event.unique_id is None

    def test_malformed_uses_no_data_message(self, make_gatekeeper):
        event = HandshakeEvent("nothing useful")
        handle_handshake(make_gatekeeper(["secret1"]), event)

        assert event.failed
        assert event.fail_message == MESSAGES.no_data

    def test_already_failed_event_is_skipped(self, make_gatekeeper, persister):
        event = HandshakeEvent(make_handshake(properties=[token_property("T")]), failed=True, fail_message="other")
        gatekeeper = make_gatekeeper()

        assert handle_handshake(gatekeeper, event) is None
        assert event.fail_message == "other"
        assert not gatekeeper.tokens.is_seeded
        assert persister.calls == []

    def test_one_bad_event_does_not_affect_the_next(self, make_gatekeeper):
        gatekeeper = make_gatekeeper(["secret1"])
        bad = HandshakeEvent(make_handshake(raw_properties="[[["))
        good = HandshakeEvent(make_handshake(properties=[token_property("secret1")]))

        handle_handshake(gatekeeper, bad)
        handle_handshake(gatekeeper, good)

        assert bad.failed
        assert not good.failed
        assert good.properties_json == "[]"

    def test_hostile_event_does_not_affect_the_next(self, make_gatekeeper, persister):
        gatekeeper = make_gatekeeper()
        bad = HandshakeEvent(make_handshake(raw_properties=r'[{"name":"bungeeguard-token","value":"\ud800"}]'))
        good = HandshakeEvent(make_handshake(properties=[token_property("good")]))

        handle_handshake(gatekeeper, bad)
        handle_handshake(gatekeeper, good)

        assert bad.failed
        assert bad.fail_message == MESSAGES.no_data
        assert not good.failed
        assert persister.calls == [["good"]]
