"""Tests for subtype normalization, credit extraction and record building."""

from __future__ import annotations

from datetime import date

import pytest

from finsync.models.provider import ProviderAccount, ProviderInvestment, ProviderTransaction
from finsync.normalization import (
    build_account,
    build_investment_account,
    build_transaction,
    extract_credit_fields,
    is_credit_card,
    is_investment,
    normalize_subtype,
)

RAW_SUBTYPES = [
    None,
    "",
    "   ",
    "CREDIT_CARD",
    "credit_card_account",
    "Credit Card",
    "credit-card",
    " Checking ",
    "CHECKING_ACCOUNT",
    "Savings Account",
    "savings",
    "BROKERAGE",
    "mutual-fund",
    "Mutual Fund",
    "investment",
    "LOAN",
    "Previdência Privada",
    "some.odd.type",
]


class TestNormalizeSubtype:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("CREDIT_CARD", "credit_card"),
            ("credit_card_account", "credit_card"),
            ("Credit Card", "credit_card"),
            ("checking", "checking"),
            ("CHECKING_ACCOUNT", "checking"),
            ("Savings Account", "savings"),
            ("brokerage", "investment"),
            ("MUTUAL_FUND", "investment"),
            ("Investment", "investment"),
        ],
    )
    def test_known_variants(self, raw: str, expected: str) -> None:
        assert normalize_subtype(raw) == expected

    def test_unknown_subtype_is_kept_lowercased(self) -> None:
        assert normalize_subtype("LOAN") == "loan"
        assert normalize_subtype("Previdencia Privada") == "previdencia_privada"

    def test_empty_input(self) -> None:
        assert normalize_subtype(None) == ""
        assert normalize_subtype("") == ""
        assert normalize_subtype("   ") == ""

    @pytest.mark.parametrize("raw", RAW_SUBTYPES)
    def test_idempotent(self, raw: str | None) -> None:
        once = normalize_subtype(raw)
        assert normalize_subtype(once) == once

    def test_variants_folding_alike_normalize_alike(self) -> None:
        assert len({normalize_subtype(s) for s in ["CREDIT_CARD", "credit card", "Credit-Card", " credit_card "]}) == 1

    @pytest.mark.parametrize("raw", RAW_SUBTYPES)
    def test_is_credit_card_matches_normalization(self, raw: str | None) -> None:
        assert is_credit_card(raw) == (normalize_subtype(raw) == "credit_card")

    def test_is_investment(self) -> None:
        assert is_investment("INVESTMENT", None)
        assert is_investment("BANK", "Mutual Fund")
        assert is_investment(None, "brokerage")
        assert not is_investment("BANK", "CHECKING_ACCOUNT")
        assert not is_investment(None, None)


class TestExtractCreditFields:
    def test_nested_limit_wins_over_top_level(self) -> None:
        account = ProviderAccount.model_validate(
            {
                "id": "acc-1",
                "subtype": "CREDIT_CARD",
                "creditLimit": 1000.0,
                "limit": 900.0,
                "creditData": {"totalCreditLimit": 5000.0, "limit": 4000.0},
            }
        )
        assert extract_credit_fields(account).credit_limit == 5000.0

    def test_limit_priority_order(self) -> None:
        nested_generic = ProviderAccount.model_validate(
            {"id": "a", "creditLimit": 1000.0, "creditData": {"limit": 4000.0}}
        )
        top_level = ProviderAccount.model_validate({"id": "a", "creditLimit": 1000.0, "limit": 900.0})
        bare_limit = ProviderAccount.model_validate({"id": "a", "limit": 900.0})

        assert extract_credit_fields(nested_generic).credit_limit == 4000.0
        assert extract_credit_fields(top_level).credit_limit == 1000.0
        assert extract_credit_fields(bare_limit).credit_limit == 900.0

    def test_available_credit_priority_order(self) -> None:
        payloads = [
            ({"creditData": {"availableCreditLimit": 1.0, "availableCredit": 2.0, "available": 3.0}, "availableCredit": 4.0}, 1.0),
            ({"creditData": {"availableCredit": 2.0, "available": 3.0}, "availableCredit": 4.0}, 2.0),
            ({"creditData": {"available": 3.0}, "availableCredit": 4.0, "available": 5.0}, 3.0),
            ({"availableCredit": 4.0, "available": 5.0}, 4.0),
            ({"available": 5.0}, 5.0),
        ]
        for payload, expected in payloads:
            account = ProviderAccount.model_validate({"id": "a", **payload})
            assert extract_credit_fields(account).available_credit == expected

    def test_zero_is_a_value_not_a_gap(self) -> None:
        account = ProviderAccount.model_validate(
            {"id": "a", "creditData": {"availableCreditLimit": 0.0}, "availableCredit": 100.0}
        )
        assert extract_credit_fields(account).available_credit == 0.0

    def test_snake_case_credit_data(self) -> None:
        account = ProviderAccount.model_validate(
            {"id": "a", "credit_data": {"total_credit_limit": 2500.0, "balance": -120.5}}
        )
        fields = extract_credit_fields(account)
        assert fields.credit_limit == 2500.0
        assert fields.current_invoice == 120.5

    def test_invoice_from_nested_balance(self) -> None:
        account = ProviderAccount.model_validate(
            {"id": "a", "subtype": "CREDIT_CARD", "balance": 10.0, "creditData": {"balance": -845.9}}
        )
        assert extract_credit_fields(account).current_invoice == 845.9

    def test_invoice_falls_back_to_balance_for_credit_cards(self) -> None:
        account = ProviderAccount.model_validate({"id": "a", "subtype": "credit card", "balance": -320.0})
        assert extract_credit_fields(account).current_invoice == 320.0

    def test_no_invoice_from_checking_balance(self) -> None:
        account = ProviderAccount.model_validate({"id": "a", "subtype": "CHECKING_ACCOUNT", "balance": -320.0})
        assert extract_credit_fields(account).current_invoice is None

    def test_nothing_is_guessed(self) -> None:
        fields = extract_credit_fields(ProviderAccount.model_validate({"id": "a", "subtype": "CREDIT_CARD"}))
        assert fields.credit_limit is None
        assert fields.available_credit is None
        assert fields.current_invoice is None


class TestBuildRecords:
    def test_credit_card_account(self) -> None:
        payload = ProviderAccount.model_validate(
            {
                "id": "acc-card",
                "itemId": "item-1",
                "name": "Ultravioleta",
                "type": "CREDIT",
                "subtype": "CREDIT_CARD",
                "balance": 845.9,
                "currencyCode": "BRL",
                "creditData": {"totalCreditLimit": 5000.0, "availableCreditLimit": 4154.1},
            }
        )
        account = build_account(payload, "item-1")
        assert account.subtype == "credit_card"
        assert account.is_credit_card
        assert account.credit_limit == 5000.0
        assert account.available_credit == 4154.1
        assert account.current_invoice == 845.9

    def test_credit_fields_only_for_credit_cards(self) -> None:
        payload = ProviderAccount.model_validate(
            {"id": "acc-1", "subtype": "CHECKING_ACCOUNT", "balance": 100.0, "limit": 500.0, "available": 50.0}
        )
        account = build_account(payload, "item-1")
        assert account.subtype == "checking"
        assert account.item_id == "item-1"
        assert account.credit_limit is None
        assert account.available_credit is None
        assert account.current_invoice is None

    def test_missing_subtype_is_stored_as_none(self) -> None:
        account = build_account(ProviderAccount.model_validate({"id": "acc-1"}), "item-1")
        assert account.subtype is None

    def test_investment_type_is_forced(self) -> None:
        inv = ProviderInvestment.model_validate(
            {"id": "inv-1", "name": "CDB Banco XP", "type": "FIXED_INCOME", "balance": 1200.0}
        )
        account = build_investment_account(inv, "item-xp")
        assert account.type == "investment"
        assert account.subtype == "fixed_income"
        assert account.item_id == "item-xp"
        assert account.is_investment

    def test_investment_subtype_defaults(self) -> None:
        account = build_investment_account(ProviderInvestment.model_validate({"id": "inv-1"}), "item-xp")
        assert account.subtype == "investment"

    def test_transaction_keeps_sign_and_details(self) -> None:
        payload = ProviderTransaction.model_validate(
            {
                "id": "txn-1",
                "accountId": "acc-1",
                "amount": -42.5,
                "date": "2025-01-15T03:00:00.000Z",
                "category": None,
                "paymentData": {
                    "payer": {"name": "Maria", "documentNumber": {"type": "CPF", "value": "123"}},
                    "paymentMethod": "PIX",
                },
            }
        )
        txn = build_transaction(payload)
        assert txn.amount == -42.5
        assert txn.date == date(2025, 1, 15)
        assert txn.category is None
        assert txn.payment_data is not None
        assert txn.payment_data.payment_method == "PIX"
        assert txn.payment_data.payer.document_number.value == "123"
