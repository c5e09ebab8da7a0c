"""Tests for the TransactionClassifier utility."""

from decimal import Decimal

import pytest

from anapay_sync.exceptions import DateParseError
from anapay_sync.models.core import WalletTransaction
from anapay_sync.utils.classifier import TransactionClassifier, sanitize_payee
from anapay_sync.utils.error_handler import ErrorHandler


class TestTransactionClassifier:
    """Test cases for TransactionClassifier"""

    def setup_method(self):
        """Set up test fixtures"""
        self.classifier = TransactionClassifier()

    def create_transaction(self, **overrides) -> WalletTransaction:
        """Helper to create test transactions"""
        fields = {
            'sale_datetime': "20241223011207",
            'deal_type': "01",
            'del_kbn': "01",
            'description_type': "",
            'shop_name': "",
            'amount': "1000",
            'wallet_settlement_no': "23123401120741221241",
            'wallet_settlement_sub_no': "01",
        }
        fields.update(overrides)
        return WalletTransaction(**fields)

    def test_purchase_is_negative(self):
        """Test that purchases leave the wallet"""
        tx = self.create_transaction(amount="300", description_type="3001")
        assert self.classifier.classify(tx).amount == Decimal("-300")

    @pytest.mark.parametrize("overrides", [
        {'deal_type': "05"},
        {'deal_type': "06"},
        {'del_kbn': "02"},
        {'del_kbn': "07"},
        {'del_kbn': "08"},
    ])
    def test_incoming_codes_are_positive(self, overrides):
        """Test each code that flips the sign to positive"""
        tx = self.create_transaction(amount="1500", **overrides)
        assert self.classifier.classify(tx).amount == Decimal("1500")

    @pytest.mark.parametrize("del_kbn", ["01", "03", "04", "09", ""])
    def test_other_del_kbn_stays_negative(self, del_kbn):
        tx = self.create_transaction(amount="1500", del_kbn=del_kbn, description_type="1018")
        assert self.classifier.classify(tx).amount == Decimal("-1500")

    def test_empty_amount_is_zero(self):
        """Test that an empty amount means zero regardless of codes"""
        for deal_type in ("01", "05"):
            tx = self.create_transaction(amount="", deal_type=deal_type)
            assert self.classifier.classify(tx).amount == Decimal("0")

    def test_decimal_amount_preserved(self):
        tx = self.create_transaction(amount="123.45")
        assert self.classifier.classify(tx).amount == Decimal("-123.45")

    @pytest.mark.parametrize("amount", ["12x", "5,000", "NaN", "Infinity"])
    def test_invalid_amount_recorded_as_zero(self, amount):
        """Test that an unparseable amount still yields a candidate with amount 0"""
        tx = self.create_transaction(amount=amount)

        candidate = self.classifier.classify(tx)

        assert candidate.amount == Decimal("0")
        assert candidate.date == "2024-12-23"
        assert candidate.dedup_key == "23123401120741221241"

    def test_invalid_amount_logged_as_warning(self):
        error_handler = ErrorHandler(enable_console=False)
        classifier = TransactionClassifier(error_handler)

        classifier.classify(self.create_transaction(amount="5,000"))

        assert not error_handler.has_errors()
        warning = error_handler.warnings[0]
        assert warning.error_code == "D002"
        assert warning.settlement_no == "23123401120741221241"
        assert warning.context['raw_value'] == "5,000"

    @pytest.mark.parametrize("deal_type,description_type,expected_text,expected_transfer", [
        ("05", "3001", "top-up", True),
        ("06", "3009", "cashback", False),
        ("01", "3001", "credit card", False),
        ("01", "3006", "mobile-wallet tap-to-pay", False),
        ("01", "3007", "cashback", False),
        ("01", "3009", "auto top-up", True),
        ("01", "1017", "virtual prepaid card", False),
        ("01", "1018", "contactless card payment", False),
        ("01", "1019", "contactless ID payment", False),
        ("01", "9999", "unknown transaction type", False),
        ("", "", "unknown transaction type", False),
    ])
    def test_classification_table(self, deal_type, description_type,
                                  expected_text, expected_transfer):
        """Test display text and transfer flag by priority, deal types first"""
        tx = self.create_transaction(deal_type=deal_type, description_type=description_type)
        assert self.classifier.classify_type(tx) == (expected_text, expected_transfer)

    def test_auto_top_up_for_any_other_deal_type(self):
        for deal_type in ("01", "02", "03", "04", "07", ""):
            tx = self.create_transaction(deal_type=deal_type, description_type="3009")
            candidate = self.classifier.classify(tx)
            assert candidate.category_text == "auto top-up"
            assert candidate.is_transfer is True

    def test_payee_falls_back_to_display_text(self):
        tx = self.create_transaction(shop_name="", description_type="1018")
        assert self.classifier.classify(tx).payee == "contactless card payment"

    def test_payee_uses_shop_name(self):
        tx = self.create_transaction(shop_name="Café X", description_type="1018")
        assert self.classifier.classify(tx).payee == "Café X"

    def test_payee_trims_whitespace(self):
        tx = self.create_transaction(shop_name="  Shop B  ")
        assert self.classifier.classify(tx).payee == "Shop B"

    def test_whitespace_shop_name_falls_back(self):
        tx = self.create_transaction(shop_name="   ", deal_type="06")
        assert self.classifier.classify(tx).payee == "cashback"

    def test_date_conversion(self):
        tx = self.create_transaction(sale_datetime="20241223011207")
        assert self.classifier.classify(tx).date == "2024-12-23"

    @pytest.mark.parametrize("sale_datetime", ["", "2024-12-23", "20241323011207", "2024122301120", "abcdefghijklmn"])
    def test_malformed_date_raises(self, sale_datetime):
        tx = self.create_transaction(sale_datetime=sale_datetime)
        with pytest.raises(DateParseError) as excinfo:
            self.classifier.classify(tx)
        assert excinfo.value.raw_value == sale_datetime

    def test_memo_and_dedup_key(self):
        tx = self.create_transaction(shop_name=" Shop B ", description_type="3001",
                                     wallet_settlement_no="A2", wallet_settlement_sub_no="")
        candidate = self.classifier.classify(tx)
        assert candidate.memo == "Shop B A2 credit card"
        assert candidate.dedup_key == "A2"
        assert candidate.reference_number == "A2"

    def test_reference_number_includes_sub_number(self):
        tx = self.create_transaction(wallet_settlement_no="A1", wallet_settlement_sub_no="02")
        candidate = self.classifier.classify(tx)
        assert candidate.dedup_key == "A1"
        assert candidate.reference_number == "A1-02"

    def test_classify_is_deterministic(self):
        tx = self.create_transaction(amount="777", deal_type="06", shop_name="Store")
        assert self.classifier.classify(tx) == self.classifier.classify(tx)


class TestSanitizePayee:
    """Test cases for payee normalization"""

    def test_full_width_folds_to_ascii(self):
        assert sanitize_payee("ＡＮＡ　ＳＴＯＲＥ１２") == "ANA STORE12"

    def test_collapses_whitespace(self):
        assert sanitize_payee("  Shop   B \t") == "Shop B"

    def test_keeps_accents_and_japanese(self):
        assert sanitize_payee("Café X") == "Café X"
        assert sanitize_payee("ローソン") == "ローソン"
