"""
Tests for payment verification.
"""

import pytest
import httpx

from agentrelay.config import RelayConfig
from agentrelay.exceptions import AdmissionError, ExplorerError
from agentrelay.payments import (
    HiroExplorer,
    PaymentGate,
    evaluate_transaction,
    normalize_reference,
    payment_required,
)
from agentrelay.payments.gate import parse_clarity_principal, parse_clarity_uint
from agentrelay.registry.models import PaymentToken


CONFIG = RelayConfig()
PAYER = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"


def sbtc_call(status="success", contract=None, amount="u100", sender=PAYER,
              function="transfer", recipient=None):
    return {
        "tx_status": status,
        "tx_type": "contract_call",
        "sender_address": sender,
        "contract_call": {
            "contract_id": contract or CONFIG.sbtc_contract,
            "function_name": function,
            "function_args": [
                {"repr": amount},
                {"repr": f"'{sender}"},
                {"repr": f"'{recipient or CONFIG.payment_address}"},
                {"repr": "none"},
            ],
        },
    }


def stx_transfer(recipient=None, amount="5000"):
    return {
        "tx_status": "success",
        "tx_type": "token_transfer",
        "sender_address": PAYER,
        "token_transfer": {
            "recipient_address": recipient or CONFIG.payment_address,
            "amount": amount,
        },
    }


def make_gate(transactions, config=None, calls=None):
    """Gate whose explorer answers from a dict of txid -> payload (or status code)."""
    def handler(request: httpx.Request) -> httpx.Response:
        txid = request.url.path.rsplit("/", 1)[-1]
        if calls is not None:
            calls.append(txid)
        entry = transactions.get(txid)
        if entry is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(entry, int):
            return httpx.Response(entry, text="upstream error")
        return httpx.Response(200, json=entry)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = config or CONFIG
    return PaymentGate(config, HiroExplorer(config.explorer_url, client=client))


class TestNormalizeReference:
    """Test reference normalization."""

    def test_adds_prefix(self):
        assert normalize_reference("abc123") == "0xabc123"

    def test_keeps_prefix(self):
        assert normalize_reference("0xabc123") == "0xabc123"
        assert normalize_reference("0Xabc123") == "0xabc123"

    def test_trims(self):
        assert normalize_reference("  abc  ") == "0xabc"

    def test_empty(self):
        assert normalize_reference("") == ""
        assert normalize_reference(None) == ""
        assert normalize_reference("   ") == ""

    def test_clarity_uint(self):
        assert parse_clarity_uint("u100") == 100
        assert parse_clarity_uint("250") == 250
        assert parse_clarity_uint("'SP123") is None
        assert parse_clarity_uint(None) is None

    def test_clarity_principal(self):
        assert parse_clarity_principal("'SP123") == "SP123"
        assert parse_clarity_principal(" SP123.token ") == "SP123.token"
        assert parse_clarity_principal(None) is None


class TestEvaluateTransaction:
    """Test the pure payment decision."""

    def test_sbtc_contract_call_accepted(self):
        decision = evaluate_transaction(sbtc_call(), CONFIG, "0x1")
        assert decision.accepted
        assert decision.payer == PAYER
        assert decision.amount == 100
        assert decision.token == PaymentToken.SBTC
        assert decision.reason is None

    def test_payment_contract_accepted(self):
        decision = evaluate_transaction(sbtc_call(contract=CONFIG.payment_contract), CONFIG, "0x1")
        assert decision.accepted
        assert decision.token == PaymentToken.STX

    def test_pending_rejected(self):
        decision = evaluate_transaction(sbtc_call(status="pending"), CONFIG)
        assert not decision.accepted
        assert decision.reason == "Transaction status: pending"

    def test_aborted_rejected(self):
        decision = evaluate_transaction(sbtc_call(status="abort_by_response"), CONFIG)
        assert decision.reason == "Transaction status: abort_by_response"

    def test_wrong_contract(self):
        decision = evaluate_transaction(sbtc_call(contract="SP000.other-token"), CONFIG)
        assert not decision.accepted
        assert decision.reason == "Unexpected contract: SP000.other-token"

    def test_sbtc_other_function_rejected(self):
        decision = evaluate_transaction(sbtc_call(function="get-balance"), CONFIG)
        assert not decision.accepted
        assert decision.reason == "Unexpected function: get-balance"

    def test_sbtc_transfer_to_someone_else(self):
        decision = evaluate_transaction(sbtc_call(recipient="SPSOMEONEELSE"), CONFIG)
        assert not decision.accepted
        assert decision.reason == "Transfer recipient mismatch"

    def test_sbtc_transfer_without_recipient(self):
        tx = sbtc_call()
        tx["contract_call"]["function_args"] = [{"repr": "u100"}]
        decision = evaluate_transaction(tx, CONFIG)
        assert decision.reason == "Transfer recipient mismatch"

    def test_payment_contract_skips_recipient_check(self):
        decision = evaluate_transaction(
            sbtc_call(contract=CONFIG.payment_contract, function="pay", recipient="SPSOMEONEELSE"), CONFIG
        )
        assert decision.accepted

    def test_stx_transfer_to_treasury(self):
        decision = evaluate_transaction(stx_transfer(), CONFIG)
        assert decision.accepted
        assert decision.amount == 5000
        assert decision.token == PaymentToken.STX

    def test_stx_transfer_elsewhere(self):
        decision = evaluate_transaction(stx_transfer(recipient="SPSOMEONEELSE"), CONFIG)
        assert not decision.accepted
        assert decision.reason == "Transfer recipient mismatch"

    def test_unsupported_type(self):
        decision = evaluate_transaction({"tx_status": "success", "tx_type": "smart_contract"}, CONFIG)
        assert decision.reason == "Unsupported transaction type: smart_contract"

    def test_missing_sender(self):
        decision = evaluate_transaction(sbtc_call(sender=None), CONFIG)
        assert not decision.accepted
        assert decision.reason == "Transaction has no sender"


class TestPaymentGate:
    """Test admission against a mocked explorer."""

    @pytest.mark.asyncio
    async def test_admits_settled_payment(self):
        gate = make_gate({"0xabc": sbtc_call()})
        decision = await gate.admit("abc")
        assert decision.accepted
        assert decision.reference == "0xabc"
        assert decision.payer == PAYER

    @pytest.mark.asyncio
    async def test_missing_reference(self):
        calls = []
        gate = make_gate({}, calls=calls)
        decision = await gate.admit("")
        assert not decision.accepted
        assert decision.reason == "Missing payment reference"
        assert calls == []

    @pytest.mark.asyncio
    async def test_unknown_transaction(self):
        gate = make_gate({})
        decision = await gate.admit("0xdead")
        assert not decision.accepted
        assert decision.reason == "Transaction not found"

    @pytest.mark.asyncio
    async def test_explorer_failure_is_not_found(self):
        gate = make_gate({"0xabc": 503})
        decision = await gate.admit("0xabc")
        assert not decision.accepted
        assert decision.reason == "Transaction not found"

    @pytest.mark.asyncio
    async def test_require_raises(self):
        gate = make_gate({"0xabc": sbtc_call(status="pending")})
        with pytest.raises(AdmissionError) as exc_info:
            await gate.require("0xabc")
        assert exc_info.value.reason == "Transaction status: pending"

    @pytest.mark.asyncio
    async def test_require_returns_decision(self):
        gate = make_gate({"0xabc": sbtc_call()})
        decision = await gate.require("0xabc")
        assert decision.accepted

    @pytest.mark.asyncio
    async def test_verifies_every_call_by_default(self):
        calls = []
        gate = make_gate({"0xabc": sbtc_call()}, calls=calls)
        await gate.admit("0xabc")
        await gate.admit("0xabc")
        assert calls == ["0xabc", "0xabc"]

    @pytest.mark.asyncio
    async def test_cache_remembers_acceptance(self):
        calls = []
        config = RelayConfig(payment_cache_ttl=60)
        gate = make_gate({"0xabc": sbtc_call()}, config=config, calls=calls)
        first = await gate.admit("abc")
        second = await gate.admit("0xabc")
        assert first == second
        assert calls == ["0xabc"]

    @pytest.mark.asyncio
    async def test_cache_skips_rejections(self):
        calls = []
        config = RelayConfig(payment_cache_ttl=60)
        gate = make_gate({}, config=config, calls=calls)
        await gate.admit("0xabc")
        await gate.admit("0xabc")
        assert len(calls) == 2


class TestHiroExplorer:
    """Test the explorer client directly."""

    @pytest.mark.asyncio
    async def test_requests_tx_path(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"tx_status": "success"})

        explorer = HiroExplorer("https://api.example.com/", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        tx = await explorer.get_transaction("0xabc")
        assert tx == {"tx_status": "success"}
        assert seen == ["https://api.example.com/extended/v1/tx/0xabc"]

    @pytest.mark.asyncio
    async def test_bad_json_raises(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        explorer = HiroExplorer(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(ExplorerError):
            await explorer.get_transaction("0xabc")

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        explorer = HiroExplorer(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(ExplorerError):
            await explorer.get_transaction("0xabc")


class TestPaymentRequired:
    """Test the 402 document."""

    def test_fields(self):
        doc = payment_required("/orchestrate", 100, CONFIG)
        assert doc["code"] == "PAYMENT_REQUIRED"
        assert doc["resource"] == "/orchestrate"
        assert doc["maxAmountRequired"] == "100"
        assert doc["payTo"] == CONFIG.payment_address
        assert doc["tokenType"] == "sBTC"
        assert doc["tokenContract"] == {
            "address": "SP3K8BC0PPEVCV7NZ6QSRWPQ2JE9E5B6N3PA0KBR9",
            "name": "token-sbtc",
        }
        assert len(doc["instructions"]) == 3

    def test_fresh_nonce(self):
        assert payment_required("/x", 1, CONFIG)["nonce"] != payment_required("/x", 1, CONFIG)["nonce"]
