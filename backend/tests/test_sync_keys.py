"""
Sync key and account token parsing.

Verifies:
- Sync keys parse into (lineLogId, sessionId, localId) and format back
- Malformed keys parse to None instead of raising
- Account tokens split into roster ids and cash codes
"""

import pytest

from linesync.sync_keys import (
    SyncKey,
    RealAccount,
    CashAccount,
    is_cash_token,
    parse_account_ref,
)


class TestSyncKey:

    def test_parse_structured_key(self):
        key = SyncKey.parse("12-34-56")
        assert key == SyncKey(line_log_id=12, session_id=34, local_id="56")
        assert key.format() == "12-34-56"
        assert str(key) == "12-34-56"

    def test_local_segment_may_contain_dashes(self):
        key = SyncKey.parse("12-34-p-9")
        assert key.session_id == 34
        assert key.local_id == "p-9"

    @pytest.mark.parametrize("raw", [None, "", "12", "12-34", "x-34-1", "12-y-1", "12-34-"])
    def test_malformed_keys_parse_to_none(self, raw):
        assert SyncKey.parse(raw) is None


class TestAccountRef:

    @pytest.mark.parametrize("raw", ["C1", "c7", " C12 "])
    def test_cash_codes_are_case_insensitive(self, raw):
        assert is_cash_token(raw)
        ref = parse_account_ref(raw)
        assert isinstance(ref, CashAccount)
        assert ref.raw == raw.strip()

    def test_numeric_string_is_roster_account(self):
        ref = parse_account_ref("100234")
        assert ref == RealAccount(account_id=100234, raw="100234")

    def test_integer_is_roster_account(self):
        assert parse_account_ref(100234) == RealAccount(account_id=100234, raw="100234")

    def test_custom_cash_prefix(self):
        assert isinstance(parse_account_ref("X5", cash_prefix="X"), CashAccount)
        with pytest.raises(ValueError):
            parse_account_ref("C5", cash_prefix="X")

    @pytest.mark.parametrize("raw", [None, "", "abc", True, 3.5])
    def test_invalid_tokens_raise(self, raw):
        with pytest.raises(ValueError):
            parse_account_ref(raw)
