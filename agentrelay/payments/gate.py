"""
Payment gate - admits paid requests after checking the settling transaction.

The gate is split in two: :func:`evaluate_transaction` is a pure decision over
an already-fetched transaction record, and :class:`PaymentGate` does the one
outbound fetch and wraps the decision.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from ..config import RelayConfig
from ..exceptions import AdmissionError, ExplorerError
from ..registry.models import PaymentToken
from .explorer import HiroExplorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentDecision:
    """Outcome of checking one payment reference."""
    accepted: bool
    reference: str
    payer: Optional[str] = None
    amount: Optional[int] = None
    token: Optional[PaymentToken] = None
    reason: Optional[str] = None

    @classmethod
    def reject(cls, reference: str, reason: str) -> "PaymentDecision":
        return cls(accepted=False, reference=reference, reason=reason)

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "reference": self.reference,
            "payer": self.payer,
            "amount": self.amount,
            "token": self.token.value if self.token else None,
            "reason": self.reason,
        }


def normalize_reference(reference: Optional[str]) -> str:
    """Trim a transaction ID and give it the 0x prefix the explorer expects."""
    ref = (reference or "").strip()
    if not ref:
        return ""
    if ref[:2].lower() == "0x":
        return "0x" + ref[2:]
    return f"0x{ref}"


def parse_clarity_uint(repr_value: Any) -> Optional[int]:
    """Parse a Clarity uint repr such as ``u100``."""
    if repr_value is None:
        return None
    text = str(repr_value).strip()
    if text.startswith("u"):
        text = text[1:]
    try:
        return int(text)
    except ValueError:
        return None


def parse_clarity_principal(repr_value: Any) -> Optional[str]:
    """Parse a Clarity principal repr such as ``'SP2J6...``."""
    if repr_value is None:
        return None
    text = str(repr_value).strip()
    return text[1:] if text.startswith("'") else text


def evaluate_transaction(tx: dict[str, Any], config: RelayConfig, reference: str = "") -> PaymentDecision:
    """
    Decide whether a fetched transaction pays for a request.

    Accepts a successful sBTC ``transfer`` to the configured payment address,
    any successful call to the payment contract, or a successful STX transfer
    to the configured payment address.
    """
    status = tx.get("tx_status")
    if status != "success":
        return PaymentDecision.reject(reference, f"Transaction status: {status}")

    tx_type = tx.get("tx_type")

    if tx_type == "contract_call":
        call = tx.get("contract_call") or {}
        contract_id = call.get("contract_id")
        if contract_id not in config.accepted_contracts:
            return PaymentDecision.reject(reference, f"Unexpected contract: {contract_id}")

        args = [a.get("repr") if isinstance(a, dict) else None for a in call.get("function_args") or []]
        amount = parse_clarity_uint(args[0]) if args else None

        if contract_id == config.sbtc_contract:
            # SIP-010 transfer(amount, sender, recipient, memo)
            function_name = call.get("function_name")
            if function_name != "transfer":
                return PaymentDecision.reject(reference, f"Unexpected function: {function_name}")
            recipient = parse_clarity_principal(args[2]) if len(args) > 2 else None
            if recipient != config.payment_address:
                return PaymentDecision.reject(reference, "Transfer recipient mismatch")
            token = PaymentToken.SBTC
        else:
            token = PaymentToken.STX

    elif tx_type == "token_transfer":
        transfer = tx.get("token_transfer") or {}
        if transfer.get("recipient_address") != config.payment_address:
            return PaymentDecision.reject(reference, "Transfer recipient mismatch")

        amount = parse_clarity_uint(transfer.get("amount"))
        token = PaymentToken.STX

    else:
        return PaymentDecision.reject(reference, f"Unsupported transaction type: {tx_type}")

    payer = tx.get("sender_address")
    if not payer:
        return PaymentDecision.reject(reference, "Transaction has no sender")

    return PaymentDecision(
        accepted=True,
        reference=reference,
        payer=payer,
        amount=amount,
        token=token,
    )


class PaymentGate:
    """
    Admission check for paid operations.

    Every call verifies against the explorer. When ``payment_cache_ttl`` is
    positive, accepted decisions are remembered per reference for that many
    seconds; rejections are never cached.
    """

    def __init__(self, config: Optional[RelayConfig] = None, explorer: Optional[HiroExplorer] = None):
        self.config = config or RelayConfig()
        self.explorer = explorer or HiroExplorer(
            base_url=self.config.explorer_url,
            timeout=self.config.explorer_timeout,
        )
        self._cache: dict[str, tuple[float, PaymentDecision]] = {}

    async def admit(self, reference: Optional[str]) -> PaymentDecision:
        """
        Verify a payment reference.

        Args:
            reference: Transaction ID, with or without 0x prefix

        Returns:
            PaymentDecision; ``accepted`` is False with a ``reason`` on rejection
        """
        normalized = normalize_reference(reference)
        if not normalized:
            return PaymentDecision.reject("", "Missing payment reference")

        cached = self._cached(normalized)
        if cached is not None:
            return cached

        try:
            tx = await self.explorer.get_transaction(normalized)
        except ExplorerError as e:
            logger.warning("Payment %s could not be fetched: %s", normalized, e)
            tx = None

        if tx is None:
            decision = PaymentDecision.reject(normalized, "Transaction not found")
        else:
            decision = evaluate_transaction(tx, self.config, normalized)

        if decision.accepted:
            logger.info("Payment %s admitted (payer %s)", normalized, decision.payer)
            if self.config.payment_cache_ttl > 0:
                self._cache[normalized] = (time.monotonic() + self.config.payment_cache_ttl, decision)
        else:
            logger.info("Payment %s rejected: %s", normalized, decision.reason)

        return decision

    async def require(self, reference: Optional[str]) -> PaymentDecision:
        """Like :meth:`admit` but raises AdmissionError on rejection."""
        decision = await self.admit(reference)
        if not decision.accepted:
            raise AdmissionError(decision.reason or "Payment rejected")
        return decision

    def _cached(self, normalized: str) -> Optional[PaymentDecision]:
        entry = self._cache.get(normalized)
        if entry is None:
            return None
        expires_at, decision = entry
        if time.monotonic() >= expires_at:
            del self._cache[normalized]
            return None
        return decision
