"""
Per-step validators and phone checks
"""
import pytest

from app.services.phone import dial_code_for_country, validate_phone
from app.services.registration_validation import (
    validate_company,
    validate_otp_recipient,
    validate_personal,
    validate_step,
    validate_usertype,
)

PROPOSAL_EMPTY = {
    "capital_percentage": "",
    "capital_total_value": "",
    "license_fee": "",
    "licensing_royalties_percentage": "",
    "franchisee_investment": "",
    "monthly_royalties": "",
    "total_sale_of_project": "",
    "initial_license_value": "",
    "exploitation_license_royalty": "",
    "patent_sale": "",
}


def startup_form(**overrides):
    form = {
        "user_type": "StartUp",
        "company_name": "Acme Labs",
        "project_name": "Widget Cloud",
        "project_category": "Software",
        **PROPOSAL_EMPTY,
    }
    form.update(overrides)
    return form


class TestUserTypeStep:
    def test_role_required(self):
        assert validate_usertype({"user_type": ""}) == "Please select your role"
        assert validate_usertype({"user_type": "Astronaut"}) == "Please select your role"

    @pytest.mark.parametrize("user_type", ["Inventor", "StartUp", "Company", "Investor"])
    def test_each_role_accepted(self, user_type):
        assert validate_usertype({"user_type": user_type}) is None


class TestCompanyStep:
    def test_startup_total_sale_alone_satisfies_proposal_gate(self):
        assert validate_company(startup_form(total_sale_of_project="5000000")) is None

    def test_startup_without_any_proposal_fails(self):
        message = validate_company(startup_form())
        assert message is not None
        assert "commercial proposal" in message

    def test_startup_without_company_name(self):
        form = startup_form(company_name="", total_sale_of_project="5000000")
        assert validate_company(form) == "Please enter your company name"

    def test_inventor_patent_sale_alone_passes(self):
        form = {
            "user_type": "Inventor",
            "project_name": "Widget",
            "project_category": "Hardware",
            **PROPOSAL_EMPTY,
            "patent_sale": "$350,000",
        }
        assert validate_company(form) is None

    def test_inventor_does_not_need_company_name(self):
        form = {
            "user_type": "Inventor",
            "project_name": "Widget",
            "project_category": "Hardware",
            "initial_license_value": "20000",
        }
        assert validate_company(form) is None

    def test_half_filled_group_does_not_count(self):
        # Equity needs both the percentage and the total value
        assert validate_company(startup_form(capital_percentage="15%")) is not None
        assert validate_company(startup_form(capital_percentage="15%", capital_total_value="200000")) is None

    def test_patent_groups_do_not_apply_to_company(self):
        form = startup_form(user_type="Company", patent_sale="100000")
        assert validate_company(form) is not None

    def test_invalid_company_telephone(self):
        form = startup_form(
            total_sale_of_project="5000000",
            company_telephone="555-12",
            company_phone_country_code="+1",
        )
        assert validate_company(form).startswith("Company telephone:")

    def test_investor_needs_name_and_category(self):
        assert validate_company({"user_type": "Investor"}) == "Please enter your full name"
        assert validate_company({"user_type": "Investor", "full_name": "Ivy Investor"}) == (
            "Please select your investment category"
        )
        assert validate_company({"user_type": "Investor", "full_name": "Ivy", "project_category": "Tech"}) is None


class TestPersonalStep:
    def investor(self, **overrides):
        form = {
            "user_type": "Investor",
            "full_name": "Ivy Investor",
            "personal_email": "ivy@example.com",
            "password": "",
            "telephone": "(555) 123-4567",
            "phone_country_code": "+1",
            "country": "United States",
            "city": "Austin",
        }
        form.update(overrides)
        return form

    def test_complete_investor_passes(self):
        assert validate_personal(self.investor()) is None

    @pytest.mark.parametrize(
        "overrides,expected",
        [
            ({"personal_email": ""}, "Please enter your email"),
            ({"personal_email": "ivy@example"}, "Please enter a valid email"),
            ({"password": "abc"}, "Password must be at least 6 characters"),
            ({"telephone": ""}, "Please enter your telephone"),
            ({"country": ""}, "Please select your country"),
            ({"city": " "}, "Please enter your city"),
        ],
    )
    def test_investor_requirements(self, overrides, expected):
        assert validate_personal(self.investor(**overrides)) == expected

    def test_other_roles_only_need_full_name(self):
        assert validate_personal({"user_type": "StartUp", "full_name": "Sam"}) is None
        assert validate_personal({"user_type": "StartUp"}) == "Please enter your full name"


def test_pitch_step_always_passes():
    assert validate_step("pitch", {"user_type": "Inventor"}) is None


def test_otp_needs_somewhere_to_send_the_code():
    assert validate_otp_recipient({"personal_email": ""}) is not None
    assert validate_otp_recipient({"personal_email": "not-an-email"}) == "Please enter a valid email"
    assert validate_otp_recipient({"personal_email": "sam@example.com", "password": "12345"}) is not None
    assert validate_otp_recipient({"personal_email": "sam@example.com"}) is None


class TestPhone:
    def test_us_number_with_ten_digits(self):
        assert validate_phone("5551234567", "+1") is None

    def test_us_number_too_short(self):
        assert "too short" in validate_phone("555123", "+1")

    @pytest.mark.parametrize("code", ["+1", "+351", "+999", ""])
    def test_global_maximum(self, code):
        assert "too long" in validate_phone("12345678901234567", code)

    def test_separators_are_ignored(self):
        assert validate_phone("912 345-678", "+351") is None

    def test_letters_rejected(self):
        assert validate_phone("91234abc", "+351") == "Phone number can only contain digits"

    def test_unknown_code_uses_default_range(self):
        assert validate_phone("1234567", "+999") is None
        assert "too short" in validate_phone("123456", "+999")

    def test_dial_code_lookup(self):
        assert dial_code_for_country("pt") == "+351"
        assert dial_code_for_country("XX") is None

    @pytest.mark.parametrize("number,code", [("312345678", "+39"), ("1512345678", "+49")])
    def test_italy_and_germany_exact_length(self, number, code):
        assert validate_phone(number, code) is None

    @pytest.mark.parametrize("number,code", [("3123456789", "+39"), ("15123456789", "+49")])
    def test_italy_and_germany_one_digit_too_many(self, number, code):
        assert "too long" in validate_phone(number, code)
