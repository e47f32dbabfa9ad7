"""
OTP Service - Generate, store, and verify one-time codes bound to an address.

Codes are 6-digit numeric, expire after 5 minutes and allow 3 verification
attempts. A record is deleted on success, on expiry, and once its attempts
are exhausted, so a code can never be verified twice. Expired records left
behind by abandoned logins are removed by sweep_expired(), which the
application runs on a fixed interval.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Dict, Optional
import hmac
import logging
import secrets

from app.core.clock import Clock, system_clock
from app.store.keyed import KeyedStateStore

logger = logging.getLogger(__name__)


class CodeVerificationReason(str, Enum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
    MISMATCH = "MISMATCH"


_MESSAGES = {
    CodeVerificationReason.OK: "OTP verified successfully",
    CodeVerificationReason.NOT_FOUND: "OTP not found or expired",
    CodeVerificationReason.EXPIRED: "OTP expired",
    CodeVerificationReason.ATTEMPTS_EXHAUSTED: "Maximum attempts exceeded. Please request a new OTP.",
    CodeVerificationReason.MISMATCH: "Invalid OTP",
}


@dataclass(frozen=True)
class CodeVerification:
    success: bool
    reason: CodeVerificationReason

    @property
    def message(self) -> str:
        return _MESSAGES[self.reason]


def normalize_address(address: str) -> str:
    """Addresses are matched case-insensitively."""
    return address.strip().lower()


class OTPService:
    """
    Issues and verifies one-time codes.

    State lives in the injected KeyedStateStore; verification of one
    address is serialised by that store's per-key lock.
    """

    OTP_LENGTH = 6
    OTP_EXPIRY_MINUTES = 5
    MAX_OTP_ATTEMPTS = 3

    def __init__(
        self,
        store: Optional[KeyedStateStore] = None,
        clock: Clock = system_clock,
        length: int = OTP_LENGTH,
        expiry_minutes: int = OTP_EXPIRY_MINUTES,
        max_attempts: int = MAX_OTP_ATTEMPTS,
    ):
        self.store = store or KeyedStateStore("otp")
        self.clock = clock
        self.length = length
        self.expiry = timedelta(minutes=expiry_minutes)
        self.max_attempts = max_attempts

    def generate_otp(self) -> str:
        """
        Generate a uniformly random numeric code of `length` digits.

        Returns:
            Code string without leading zero (e.g. 6 digits: 100000-999999)
        """
        low = 10 ** (self.length - 1)
        return str(low + secrets.randbelow(9 * low))

    def store_otp(self, address: str, otp: str) -> Dict:
        """Persist a code for address, replacing any previous one."""
        now = self.clock.now()
        record = {
            "otp": otp,
            "attempts": 0,
            "created_at": now,
            "expires_at": now + self.expiry,
        }
        key = normalize_address(address)
        with self.store.locked(key):
            self.store.put(key, record)
        return record

    def issue(self, address: str) -> str:
        """Generate and store a fresh code for address."""
        otp = self.generate_otp()
        record = self.store_otp(address, otp)
        logger.info(f"OTP issued for {normalize_address(address)} (expires at {record['expires_at'].isoformat()})")
        return otp

    def verify_otp(self, address: str, candidate: str) -> CodeVerification:
        """
        Verify a candidate code for address.

        Args:
            address: Address the code was issued to
            candidate: Code entered by the user

        Returns:
            CodeVerification with success flag and reason
        """
        key = normalize_address(address)
        now = self.clock.now()

        with self.store.locked(key):
            record = self.store.get(key)

            if record is None:
                return CodeVerification(False, CodeVerificationReason.NOT_FOUND)

            if now >= record["expires_at"]:
                self.store.delete(key)
                return CodeVerification(False, CodeVerificationReason.EXPIRED)

            if record["attempts"] >= self.max_attempts:
                self.store.delete(key)
                return CodeVerification(False, CodeVerificationReason.ATTEMPTS_EXHAUSTED)

            if not hmac.compare_digest(record["otp"].encode(), (candidate or "").strip().encode()):
                record["attempts"] += 1
                if record["attempts"] >= self.max_attempts:
                    self.store.delete(key)
                    logger.warning(f"OTP attempts exhausted for {key}, code discarded")
                else:
                    self.store.put(key, record)
                return CodeVerification(False, CodeVerificationReason.MISMATCH)

            self.store.delete(key)

        logger.info(f"OTP verified successfully for {key}")
        return CodeVerification(True, CodeVerificationReason.OK)

    def sweep_expired(self) -> int:
        """Delete every expired record. Returns how many were removed."""
        now = self.clock.now()
        removed = self.store.sweep(lambda record: now >= record["expires_at"])
        if removed:
            logger.info(f"Swept {removed} expired OTP record(s)")
        return removed
