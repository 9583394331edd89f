"""
End-to-end PPETS sessions over the loopback transport.
"""
import pytest

from conftest import SMALL_A, SMALL_A1, SMALL_E, params

from ppets.crypto import prove_opening, sign
from ppets.engine import SessionEngine, run_loopback, run_scenario
from ppets.errors import VerificationError
from ppets.protocol import (
    RESPONSE_FAIL,
    Actor,
    CentralVerifierData,
    DeviceCommand,
    Message,
    ReaderCommand,
    SellerData,
    SharedContext,
    Status,
    ValidationOutcome,
)
from ppets.protocol.codec import int_from_bytes, pack_fields, unpack_fields
from ppets.protocols import PPETSABC, PPETSFGP, PPETSFGPLite, get_protocol
from ppets.protocols.issuing import IssueTicket, issue_context
from ppets.protocols.registration import credential_message
from ppets.protocols.policy import FarePolicy
from ppets.transport import LoopbackTransport

VALID = ValidationOutcome.VALID
DOUBLE = ValidationOutcome.DOUBLE_SPEND_DETECTED
FAILED = ValidationOutcome.VERIFICATION_FAILED

VARIANTS = ["PPETSABC", "PPETSFGP", "PPETSFGPLite"]

# Ordinal of the device reply to each GET, in session order
USER_KEYS, TICKET_REQUEST, FIRST_TICKET_PROOF = 1, 2, 3


class TamperingTransport(LoopbackTransport):
    """Loopback that corrupts the last field of selected GET replies."""

    def __init__(self, device, tamper_gets=(), **kwargs):
        super().__init__(device, **kwargs)
        self.tamper_gets = set(tamper_gets)
        self.gets = 0

    def exchange(self, command, payload, timeout_ms):
        reply = super().exchange(command, payload, timeout_ms)
        if command is ReaderCommand.GET and reply.has_data:
            self.gets += 1
            if self.gets in self.tamper_gets:
                fields = unpack_fields(reply.payload)
                fields[-1] = int_from_bytes(fields[-1]) + 1
                return Message.data(pack_fields(*fields))
        return reply


class DroppingTransport(LoopbackTransport):
    """Loopback whose link fails on the first exchange."""

    def __init__(self, device, **kwargs):
        super().__init__(device, **kwargs)
        self.closed = False

    def exchange(self, command, payload, timeout_ms):
        raise ConnectionError("link lost")

    def close(self):
        self.closed = True
        super().close()


def run_session(name, parameters, crypto, tamper_gets=(), attributes=None, logger=None):
    variant = get_protocol(name)
    reader = variant.reader(parameters, crypto, logger)
    device = variant.device(attributes, crypto)
    transport = TamperingTransport(device, tamper_gets)
    return SessionEngine(reader, transport, logger).run()


class TestHonestSessions:
    """Both peers follow the protocol."""

    @pytest.mark.parametrize("name", VARIANTS)
    def test_single_validation(self, name, crypto):
        result = run_loopback(name, params(SMALL_A, validations=1), crypto=crypto)
        assert result.status is Status.END_SUCCESS
        assert result.outcomes == (VALID,)
        assert result.skipped_checks == ()
        assert result.fully_verified

    @pytest.mark.parametrize("name", VARIANTS)
    @pytest.mark.parametrize("skip", [False, True])
    def test_double_spend(self, name, skip, crypto):
        result = run_loopback(name, params(SMALL_A, skip=skip, validations=2), crypto=crypto)
        assert result.succeeded
        assert result.outcomes == (VALID, DOUBLE)
        assert result.skipped_checks == ()

    def test_every_later_pass_is_double_spend(self, crypto):
        result = run_loopback("PPETSFGP", params(SMALL_A, validations=4), crypto=crypto)
        assert result.outcomes == (VALID, DOUBLE, DOUBLE, DOUBLE)

    @pytest.mark.parametrize("parameters", [SMALL_E, SMALL_A1], ids=["E", "A1"])
    @pytest.mark.parametrize("name", VARIANTS)
    def test_other_families(self, name, parameters, crypto):
        result = run_loopback(name, parameters, crypto=crypto)
        assert result.outcomes == (VALID, DOUBLE)

    def test_exchange_count(self, crypto):
        # open, select, setup, keys, credential, request, ticket, then
        # nonce, proof and outcome per pass, plus one loop-back between passes
        result = run_loopback("PPETSFGP", params(SMALL_A, validations=1), crypto=crypto)
        assert result.exchanges == 7 + 3
        result = run_loopback("PPETSFGP", params(SMALL_A, validations=2), crypto=crypto)
        assert result.exchanges == 7 + 3 + 1 + 3

    def test_fresh_sessions_are_independent(self, crypto):
        variant = PPETSFGP()
        device = variant.device(crypto=crypto)
        for _ in range(2):
            reader = variant.reader(params(SMALL_A, validations=1), crypto)
            transport = LoopbackTransport(device)
            result = SessionEngine(reader, transport).run()
            assert result.outcomes == (VALID,)

    def test_logs_tagged_by_peer(self, crypto, log):
        run_loopback("PPETSABC", params(SMALL_A, validations=1), crypto=crypto, logger=log)
        messages = [message for _, message in log.lines]
        assert any(m.startswith("[reader] [Setup]") for m in messages)
        assert any(m.startswith("[device] [Issuing]") for m in messages)
        assert any(m.startswith("[Engine]") for m in messages)


class TestPolicies:
    """Issuing policies of the two protocol families."""

    def test_abc_underage_refused(self, crypto):
        result = run_loopback("PPETSABC", SMALL_A, attributes={"age": 15}, crypto=crypto)
        assert result.status is Status.END_FAILURE
        assert "policy" in result.reason
        assert result.outcomes == ()

    def test_abc_underage_skipped(self, crypto):
        result = run_loopback("PPETSABC", params(SMALL_A, skip=True), attributes={"age": 15},
                              crypto=crypto)
        assert result.succeeded
        assert "venue-entry issuing policy" in result.skipped_checks
        assert "venue-entry ticket terms" in result.skipped_checks
        assert not result.fully_verified

    def test_fgp_unknown_category_refused(self, crypto):
        result = run_loopback("PPETSFGP", SMALL_A, attributes={"category": "vip"}, crypto=crypto)
        assert result.status is Status.END_FAILURE

    def test_fgp_lite_uses_fares(self, crypto):
        result = run_loopback("PPETSFGPLite", SMALL_A, attributes={"category": "child"},
                              crypto=crypto)
        assert result.outcomes == (VALID, DOUBLE)

    def test_custom_fare_table(self, crypto):
        variant = PPETSFGP(FarePolicy(fares={"student": 30}))
        result = run_loopback(variant, params(SMALL_A, validations=1),
                              attributes={"category": "student"}, crypto=crypto)
        assert result.outcomes == (VALID,)


class TestTampering:
    """Corrupted proofs with verification enforced and skipped."""

    @pytest.mark.parametrize("name", VARIANTS)
    def test_bad_user_key_proof(self, name, crypto):
        result = run_session(name, SMALL_A, crypto, tamper_gets={USER_KEYS})
        assert result.status is Status.END_FAILURE
        assert "user key proof" in result.reason

    @pytest.mark.parametrize("name", VARIANTS)
    def test_bad_issuing_proof_enforced(self, name, crypto):
        result = run_session(name, SMALL_A, crypto, tamper_gets={TICKET_REQUEST})
        assert result.status is Status.END_FAILURE
        assert result.outcomes == ()

    @pytest.mark.parametrize("name", VARIANTS)
    def test_bad_issuing_proof_skipped(self, name, crypto, log):
        result = run_session(name, params(SMALL_A, skip=True), crypto,
                             tamper_gets={TICKET_REQUEST}, logger=log)
        assert result.status is Status.END_SUCCESS
        assert result.outcomes == (VALID, DOUBLE)
        assert len(result.skipped_checks) == 1
        assert any("SKIPPED" in line for line in log.at("warn"))

    @pytest.mark.parametrize("name", VARIANTS)
    def test_bad_possession_proof_enforced(self, name, crypto):
        result = run_session(name, SMALL_A, crypto, tamper_gets={FIRST_TICKET_PROOF})
        assert result.status is Status.END_FAILURE
        assert result.outcomes == (FAILED,)

    def test_bad_second_proof_enforced(self, crypto):
        result = run_session("PPETSFGP", SMALL_A, crypto, tamper_gets={FIRST_TICKET_PROOF + 1})
        assert result.status is Status.END_FAILURE
        assert result.outcomes == (VALID, FAILED)

    @pytest.mark.parametrize("name", VARIANTS)
    def test_bad_possession_proof_skipped(self, name, crypto):
        result = run_session(name, params(SMALL_A, skip=True), crypto,
                             tamper_gets={FIRST_TICKET_PROOF})
        assert result.status is Status.END_SUCCESS
        assert result.outcomes == (VALID, DOUBLE)
        assert result.skipped_checks == ("ticket possession proof",)


class TestChannelFailures:
    """Cancellation, timeouts and a wrong application."""

    def test_cancelled(self, crypto):
        variant = PPETSFGP()
        transport = LoopbackTransport(variant.device(crypto=crypto))
        transport.cancel()
        result = SessionEngine(variant.reader(SMALL_A, crypto), transport).run()
        assert result.status is Status.END_FAILURE
        assert "closed" in result.reason

    def test_timeout(self, crypto):
        ticks = iter(range(0, 10_000_000, 10))
        variant = PPETSFGP()
        transport = LoopbackTransport(variant.device(crypto=crypto), default_timeout_ms=5000,
                                      clock=lambda: next(ticks))
        result = SessionEngine(variant.reader(SMALL_A, crypto), transport).run()
        assert result.status is Status.END_FAILURE
        assert "timeout" in result.reason

    def test_wrong_aid(self, crypto):
        variant = PPETSFGP()
        transport = LoopbackTransport(variant.device(crypto=crypto), aid=b"\xa0other")
        result = SessionEngine(variant.reader(SMALL_A, crypto), transport).run()
        assert result.status is Status.END_FAILURE
        assert result.exchanges == 2

    def test_transport_closed_after_session(self, crypto):
        variant = PPETSABC()
        transport = LoopbackTransport(variant.device(crypto=crypto))
        SessionEngine(variant.reader(params(SMALL_A, validations=1), crypto), transport).run()
        assert transport.exchange(ReaderCommand.GET, b"", 0).is_signal(b"close")

    def test_bad_group_parameters(self, crypto):
        result = run_loopback("PPETSFGP", ["false", "2", "A", "300", "512"], crypto=crypto)
        assert result.status is Status.END_FAILURE
        assert result.exchanges == 0


class TestIndexContract:
    """Every variant keeps successors inside its own sequence."""

    @pytest.mark.parametrize("name", VARIANTS)
    def test_successors_in_range(self, name):
        variant = get_protocol(name)
        for states in (variant.reader_states(), variant.device_states()):
            for state in states:
                assert all(0 <= s < len(states) for s in state.successors)

    def test_lengths(self):
        for variant in (PPETSABC(), PPETSFGP(), PPETSFGPLite()):
            assert len(variant.reader_states()) == 11
            assert len(variant.device_states()) == 7

    def test_lite_substitutes_only_issuing_and_validation(self):
        full, lite = PPETSFGP(), PPETSFGPLite()
        reader = [(type(a), type(b)) for a, b in zip(full.reader_states(), lite.reader_states())]
        changed = [i for i, (a, b) in enumerate(reader) if a is not b]
        assert changed == [6, 9]
        device = [(type(a), type(b)) for a, b in zip(full.device_states(), lite.device_states())]
        changed = [i for i, (a, b) in enumerate(device) if a is not b]
        assert changed == [3, 6]


class TestScenarioRun:
    """Running a YAML scenario file end to end."""

    def test_run(self, tmp_path, crypto):
        path = tmp_path / "fgp.yaml"
        path.write_text(
            "protocol: PPETSFGPLite\n"
            "parameters: [false, 3, A, 64, 128]\n"
            "attributes: {category: senior}\n"
        )
        result = run_scenario(path, crypto=crypto)
        assert result.outcomes == (VALID, DOUBLE, DOUBLE)


class TestUnencodableInput:
    """Inputs that cannot be encoded or used end the session, never the caller."""

    def test_oversized_attributes(self, crypto, log):
        # JSON escapes each character to six bytes, past the field limit
        attributes = {"category": "adult", "name": "é" * 20000}
        result = run_loopback("PPETSFGP", SMALL_A, attributes=attributes, crypto=crypto, logger=log)
        assert result.status is Status.END_FAILURE
        assert result.outcomes == ()
        assert any("too long" in line for line in log.at("error"))

    @pytest.mark.parametrize("name", ["group_a", "group_a1"])
    def test_snapshot_with_zero_order(self, request, crypto, name):
        group = request.getfixturevalue(name)
        server = SharedContext.server(crypto=crypto)
        server.group = group
        snapshot = server.to_wire().replace(
            f'"p":"{hex(group.order)}"'.encode(), b'"p":"0x0"')
        assert b'"p":"0x0"' in snapshot

        device = PPETSFGP().device(crypto=crypto)
        step = device.advance(Message.data(snapshot))
        assert step.status is Status.END_FAILURE
        assert step.command is DeviceCommand.RESPONSE
        assert step.payload == RESPONSE_FAIL
        assert device.finished


class TestTransportRelease:
    """The engine releases the transport however the session ends."""

    def test_closed_when_exchange_raises(self, crypto):
        variant = PPETSFGP()
        transport = DroppingTransport(variant.device(crypto=crypto))
        engine = SessionEngine(variant.reader(SMALL_A, crypto), transport)
        with pytest.raises(ConnectionError):
            engine.run()
        assert transport.closed

    def test_closed_on_failure(self, crypto):
        variant = PPETSFGP()
        transport = DroppingTransport(variant.device(crypto=crypto))
        result = SessionEngine(variant.reader(["false", "2", "A", "300", "512"], crypto),
                               transport).run()
        assert result.status is Status.END_FAILURE
        assert transport.closed


class TestRegistrationRecord:
    """The seller only issues to keys the central verifier registered."""

    ATTRIBUTES = {"category": "adult"}

    @pytest.fixture
    def reader_context(self, crypto, group_a):
        context = SharedContext.server(crypto=crypto)
        context.group = group_a
        cv = context.act_as(Actor.CENTRAL_VERIFIER, CentralVerifierData)
        cv.x_cv = crypto.secure_random(group_a.order)
        context.public_keys[Actor.CENTRAL_VERIFIER] = group_a.exp(group_a.g, cv.x_cv)
        seller = context.act_as(Actor.SELLER, SellerData)
        seller.x_s = crypto.secure_random(group_a.order)
        context.public_keys[Actor.SELLER] = group_a.exp(group_a.g, seller.x_s)
        return context

    def ticket_request(self, crypto, group, x_cv):
        """Request with a valid credential for a fresh user key."""
        x_u = crypto.secure_random(group.order)
        y_u = group.exp(group.g, x_u)
        credential = sign(crypto, group, x_cv, credential_message(y_u, self.ATTRIBUTES))
        d = crypto.secure_random(group.order)
        r = crypto.secure_random(group.order)
        commitment = group.commit(d, r)
        proof = prove_opening(crypto, group, d, r, commitment, issue_context(y_u))
        payload = pack_fields(y_u, self.ATTRIBUTES, credential.c, credential.s,
                              commitment, proof.c, proof.s1, proof.s2)
        return y_u, Message.data(payload)

    def test_unregistered_key_refused(self, crypto, group_a, reader_context):
        cv = reader_context.data_for(Actor.CENTRAL_VERIFIER, CentralVerifierData)
        _, request = self.ticket_request(crypto, group_a, cv.x_cv)
        with pytest.raises(VerificationError) as exc:
            IssueTicket(PPETSFGP().policy).get_action(request, reader_context)
        assert exc.value.check == "user registration"

    def test_registered_key_issued(self, crypto, group_a, reader_context):
        cv = reader_context.data_for(Actor.CENTRAL_VERIFIER, CentralVerifierData)
        y_u, request = self.ticket_request(crypto, group_a, cv.x_cv)
        cv.registered[y_u] = dict(self.ATTRIBUTES)
        action = IssueTicket(PPETSFGP().policy).get_action(request, reader_context)
        assert action.command is ReaderCommand.PUT
        assert action.next_index == 7

    def test_attributes_must_match_registration(self, crypto, group_a, reader_context):
        cv = reader_context.data_for(Actor.CENTRAL_VERIFIER, CentralVerifierData)
        y_u, request = self.ticket_request(crypto, group_a, cv.x_cv)
        cv.registered[y_u] = {"category": "child"}
        with pytest.raises(VerificationError, match="user registration"):
            IssueTicket(PPETSFGP().policy).get_action(request, reader_context)
