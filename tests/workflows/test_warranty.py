"""Tests for warranty date extraction."""

from workflows.warranty import (
    add_years,
    extract_warranty,
    manual_warranty,
    normalize_date_guess,
    normalize_manual_date,
)


class TestNormalizeDateGuess:

    def test_day_month_year(self):
        assert normalize_date_guess("28/10/2025") == "2025-10-28"

    def test_dotted(self):
        assert normalize_date_guess("01.02.2024") == "2024-02-01"

    def test_iso(self):
        assert normalize_date_guess("2024-03-15") == "2024-03-15"

    def test_two_digit_year(self):
        assert normalize_date_guess("03/04/22") == "2022-04-03"

    def test_english_month_name(self):
        assert normalize_date_guess("5 March 2023") == "2023-03-05"

    def test_hebrew_month_name(self):
        assert normalize_date_guess("12 מרץ 2024") == "2024-03-12"

    def test_invalid_calendar_date(self):
        assert normalize_date_guess("29/02/2023") is None

    def test_garbage(self):
        assert normalize_date_guess("hello") is None
        assert normalize_date_guess("") is None


class TestExtractWarranty:

    def test_purchase_keyword(self):
        info = extract_warranty("purchase date: 28/10/2025")
        assert info.warranty_start == "2025-10-28"
        assert info.warranty_expires_at == "2026-10-28"
        assert info.auto_delete_after == "2032-10-28"

    def test_hebrew_purchase_keyword(self):
        info = extract_warranty("חשבונית\nתאריך רכישה: 01.02.2024\nסה\"כ 300")
        assert info.warranty_start == "2024-02-01"

    def test_explicit_expiry(self):
        info = extract_warranty("invoice date 2024-03-15 warranty until 2026-03-15")
        assert info.warranty_start == "2024-03-15"
        assert info.warranty_expires_at == "2026-03-15"
        assert info.auto_delete_after == "2031-03-15"

    def test_month_name_after_keyword(self):
        info = extract_warranty("Date of purchase: 5 March 2023")
        assert info.warranty_start == "2023-03-05"

    def test_hebrew_month_name_after_keyword(self):
        info = extract_warranty("תאריך קנייה: 12 מרץ 2024")
        assert info.warranty_start == "2024-03-12"

    def test_first_date_near_top(self):
        info = extract_warranty("Receipt\nTotal 100\n03/04/2022")
        assert info.warranty_start == "2022-04-03"

    def test_single_date_anywhere(self):
        info = extract_warranty("x" * 600 + "\nprinted 03/04/2022")
        assert info.warranty_start == "2022-04-03"

    def test_two_dates_far_down_are_ambiguous(self):
        info = extract_warranty("x" * 600 + "\n01/01/2020\n02/02/2021")
        assert info.warranty_start is None
        assert info.found is False

    def test_invalid_date_yields_nothing(self):
        info = extract_warranty("purchase date: 29/02/2023")
        assert info.warranty_start is None
        assert info.auto_delete_after is None

    def test_accepts_bytes(self):
        info = extract_warranty("purchase date: 28/10/2025".encode("utf-8"))
        assert info.warranty_start == "2025-10-28"

    def test_empty_input(self):
        info = extract_warranty(b"")
        assert info.found is False

    def test_to_dict_keys(self):
        data = extract_warranty("purchase date: 28/10/2025").to_dict()
        assert data == {
            "warrantyStart": "2025-10-28",
            "warrantyExpiresAt": "2026-10-28",
            "autoDeleteAfter": "2032-10-28",
        }


class TestAddYears:

    def test_plain(self):
        assert add_years("2024-05-10", 7) == "2031-05-10"

    def test_leap_day_rolls_forward(self):
        assert add_years("2024-02-29", 7) == "2031-03-01"

    def test_leap_day_to_leap_year(self):
        assert add_years("2024-02-29", 4) == "2028-02-29"


class TestManualWarranty:

    def test_day_first(self):
        assert normalize_manual_date("01/02/2024") == "2024-02-01"

    def test_year_first(self):
        assert normalize_manual_date("2024-2-1") == "2024-02-01"

    def test_rejects_junk(self):
        assert normalize_manual_date("next week") is None
        assert normalize_manual_date("") is None

    def test_manual_sets_auto_delete(self):
        info = manual_warranty("01/02/2024", "")
        assert info.warranty_start == "2024-02-01"
        assert info.warranty_expires_at is None
        assert info.auto_delete_after == "2031-02-01"

    def test_expiry_only(self):
        info = manual_warranty(None, "2026-01-01")
        assert info.found is True
        assert info.auto_delete_after is None
