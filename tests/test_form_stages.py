"""
Tests for the MMX form stages against the fake page.
"""

import pytest

from automation.bank_details import (
    ACCOUNT_TYPE_SELECT,
    BRANCH_CODE_INPUT,
    BRANCH_DESCRIPTION,
    COLLECTION_DAY_SELECT,
    SET_SELECT_QUIETLY_JS,
    SET_SELECT_STRIPPED_JS,
    account_type_value,
    fill_bank_details,
)
from automation.cover_tab import (
    EFFECTIVE_DATE_INPUT,
    ITEM_AMOUNT_INPUT,
    RISK_ITEMS_DIALOG,
    SECTION_AMOUNT_INPUT,
    fill_cover_tab,
)
from automation.dialogs import SEARCH_FIRST_RESULT, SEARCH_MODAL, is_validation_error
from automation.file_tab import SAVE_BUTTON, file_client_tab, file_cover_tab, file_policy_tab
from automation.login import LOGIN_BUTTON, USERNAME_INPUT, login_to_mmx
from automation.policy_info import (
    EXPIRY_INPUT,
    REVIEW_MONTH_SELECT,
    expiry_date_for,
    fill_policy_info,
    review_month_for,
)
from automation.settings import FormSettings
from automation.stages import STAGE_NAMES, build_stages, get_stage
from core.models import JobFields
from fakes import FakePage

BANK_FIELDS = JobFields(
    client_name="Thandi",
    client_surname="Mokoena",
    account_holder="Thandi Mokoena",
    bank="Standard Bank",
    account_number="123456789",
    account_type="Savings",
    inception_date="15/11/2026",
    debit_order_date="15/11/2026",
    collection_day="15",
)


class TestFileTab:

    @pytest.mark.asyncio
    async def test_files_cleanly_without_dialogs(self, page, browser_state, settings):
        outcome = await file_client_tab(page, settings)

        assert outcome.success
        assert SAVE_BUTTON in browser_state.clicks
        assert 'a[href="#tabsClient"]' in browser_state.clicks

    @pytest.mark.asyncio
    async def test_validation_dialogs_fail_with_exact_text(self, page, browser_state, settings):
        def reject(state):
            state.show_dialog("ID Number is invalid")
            state.show_dialog("Email must be provided")
        browser_state.on_click[SAVE_BUTTON] = reject

        outcome = await file_client_tab(page, settings)

        assert not outcome.success
        assert outcome.message == "ID Number is invalid | Email must be provided"
        assert outcome.data["validation_errors"] == ["ID Number is invalid", "Email must be provided"]
        assert browser_state.current_dialog is None

    @pytest.mark.asyncio
    async def test_informational_dialog_does_not_fail(self, page, browser_state, settings):
        browser_state.on_click[SAVE_BUTTON] = lambda state: state.show_dialog("Record saved successfully")

        outcome = await file_policy_tab(page, settings)

        assert outcome.success
        assert outcome.data["dialogs"] == ["Record saved successfully"]

    @pytest.mark.asyncio
    async def test_lingering_dialog_is_dismissed_before_filing(self, page, browser_state, settings):
        browser_state.show_dialog("Client search complete")

        outcome = await file_client_tab(page, settings)

        assert outcome.success
        assert browser_state.current_dialog is None

    @pytest.mark.asyncio
    async def test_cover_filing_skips_tab_click_when_active(self, page, browser_state, settings):
        browser_state.visible.add('li.active > a[href="#tabsCover"]')

        outcome = await file_cover_tab(page, settings)

        assert outcome.success
        assert 'a[href="#tabsCover"]' not in browser_state.clicks

    @pytest.mark.asyncio
    async def test_logged_out_page_fails_the_stage(self, settings):
        outcome = await file_client_tab(FakePage(logged_in=False), settings)

        assert not outcome.success
        assert "Content frame not found" in outcome.message


def test_validation_vocabulary():
    keywords = ["invalid", "must be", "required"]
    assert is_validation_error("Surname is REQUIRED", keywords)
    assert not is_validation_error("Record saved", keywords)
    assert not is_validation_error("", keywords)


class TestBankDetails:

    @pytest.mark.asyncio
    async def test_standard_bank_savings_on_the_15th(self, page, browser_state, settings):
        browser_state.values[BRANCH_DESCRIPTION] = "STANDARD BANK UNIVERSAL"

        outcome = await fill_bank_details(page, BANK_FIELDS, settings)

        assert outcome.success, outcome.message
        assert outcome.data["branch_code"] == "051001"
        assert outcome.data["branch_description"] == "STANDARD BANK UNIVERSAL"
        assert outcome.data["collection_day"] == "15"
        assert outcome.data["account_type_value"] == "2"
        assert (BRANCH_CODE_INPUT, "051001") in browser_state.fills
        assert browser_state.selections[COLLECTION_DAY_SELECT] == "15"
        assert browser_state.values[ACCOUNT_TYPE_SELECT] == "2"
        assert outcome.data["fields_set"] == [
            "account_holder", "account_number", "branch_code", "collection_day", "account_type",
        ]

    @pytest.mark.asyncio
    async def test_unknown_bank_fails_before_touching_the_form(self, page, browser_state, settings):
        fields = JobFields(bank="Qwerty Trust", account_number="1")

        outcome = await fill_bank_details(page, fields, settings)

        assert not outcome.success
        assert outcome.message == "No branch code found for bank 'Qwerty Trust'"
        assert browser_state.fills == []

    @pytest.mark.asyncio
    async def test_first_account_type_attempt_disables_change_and_blur_hooks(self, page, browser_state, settings):
        await fill_bank_details(page, BANK_FIELDS, settings)

        first_script = next(expr for sel, expr, _ in browser_state.evaluations if sel == ACCOUNT_TYPE_SELECT)
        assert first_script == SET_SELECT_QUIETLY_JS
        for hook in ("el.onchange = null", "el.onblur = null", "removeAttribute('xonblur')"):
            assert hook in first_script
        assert "dispatchEvent" not in first_script

    @pytest.mark.asyncio
    async def test_reverted_account_type_is_set_again_with_hooks_stripped(self, page, browser_state, settings):
        browser_state.values[ACCOUNT_TYPE_SELECT] = "1"
        browser_state.ignored_scripts.add((ACCOUNT_TYPE_SELECT, SET_SELECT_QUIETLY_JS))

        outcome = await fill_bank_details(page, BANK_FIELDS, settings)

        assert outcome.success
        scripts = [expr for sel, expr, _ in browser_state.evaluations if sel == ACCOUNT_TYPE_SELECT]
        assert SET_SELECT_STRIPPED_JS in scripts
        assert browser_state.values[ACCOUNT_TYPE_SELECT] == "2"

    @pytest.mark.asyncio
    async def test_account_type_that_never_sticks_fails(self, page, browser_state, settings):
        browser_state.values[ACCOUNT_TYPE_SELECT] = "1"
        browser_state.ignored_scripts.add((ACCOUNT_TYPE_SELECT, SET_SELECT_QUIETLY_JS))
        browser_state.ignored_scripts.add((ACCOUNT_TYPE_SELECT, SET_SELECT_STRIPPED_JS))

        outcome = await fill_bank_details(page, BANK_FIELDS, settings)

        assert not outcome.success
        assert outcome.message == "Account type not accepted: expected '2', form holds '1'"

    @pytest.mark.asyncio
    async def test_branch_search_modal_picks_first_result(self, page, browser_state, settings):
        browser_state.visible.add(SEARCH_MODAL)

        def pick(state):
            state.visible.discard(SEARCH_MODAL)
            state.values[BRANCH_DESCRIPTION] = "STANDARD BANK"
        browser_state.on_click[SEARCH_FIRST_RESULT] = pick

        outcome = await fill_bank_details(page, BANK_FIELDS, settings)

        assert outcome.success
        assert outcome.data["branch_description"] == "STANDARD BANK"

    @pytest.mark.parametrize("label,value", [
        ("Savings", "2"),
        ("current", "1"),
        ("Cheque", "1"),
        ("Transmission", "3"),
        ("7", "7"),
    ])
    def test_account_type_values(self, label, value):
        assert account_type_value(label) == value


class TestPolicyInfo:

    def test_expiry_is_always_2099(self):
        assert expiry_date_for("15/11/2026") == "15/11/2099"
        assert expiry_date_for("") is None

    def test_review_month_is_the_following_month(self):
        assert review_month_for("15/11/2026") == ("December", 12)
        assert review_month_for("01/12/2026") == ("January", 1)
        assert review_month_for("bad") is None

    @pytest.mark.asyncio
    async def test_fills_policy_fields(self, page, browser_state, settings):
        outcome = await fill_policy_info(page, BANK_FIELDS, settings)

        assert outcome.success, outcome.message
        assert outcome.data["expiry_date"] == "15/11/2099"
        assert outcome.data["review_month"] == "December"
        assert browser_state.values[EXPIRY_INPUT] == "15/11/2099"
        assert browser_state.selections[REVIEW_MONTH_SELECT] == "December"
        assert ("#txt5", "CIV01") in browser_state.fills


class TestCoverTab:

    @pytest.mark.asyncio
    async def test_adds_donation_item(self, page, browser_state, settings):
        fields = JobFields(donation_amount="75", debit_order_date="15/11/2026")

        outcome = await fill_cover_tab(page, fields, settings)

        assert outcome.success, outcome.message
        assert (ITEM_AMOUNT_INPUT, "75") in browser_state.fills
        assert browser_state.values[SECTION_AMOUNT_INPUT] == "75"
        assert browser_state.values[EFFECTIVE_DATE_INPUT] == "15/11/2026"
        assert SAVE_BUTTON not in browser_state.clicks

    @pytest.mark.asyncio
    async def test_critical_input_dialog_blocks_the_stage(self, page, browser_state, settings):
        browser_state.show_dialog("CRITICAL INPUT: Client details have not been filed")

        outcome = await fill_cover_tab(page, JobFields(), settings)

        assert not outcome.success
        assert "File Client and Policy tabs first" in outcome.message

    @pytest.mark.asyncio
    async def test_missing_risk_items_dialog(self, page, browser_state, settings):
        browser_state.hidden.add(RISK_ITEMS_DIALOG)

        outcome = await fill_cover_tab(page, JobFields(), settings)

        assert not outcome.success
        assert RISK_ITEMS_DIALOG in outcome.message


class TestLogin:

    @pytest.mark.asyncio
    async def test_missing_credentials(self, page, settings):
        outcome = await login_to_mmx(page, FormSettings(delays=settings.delays))

        assert not outcome.success
        assert "Missing MMX credentials" in outcome.message

    @pytest.mark.asyncio
    async def test_existing_session_redirects_away_from_login(self, page, settings):
        page.redirect_to = "https://mmx.test/main.aspx"

        outcome = await login_to_mmx(page, settings)

        assert outcome.success
        assert outcome.data["already_logged_in"] is True

    @pytest.mark.asyncio
    async def test_login_form_disappears_after_submit(self, page, browser_state, settings):
        browser_state.on_click[LOGIN_BUTTON] = lambda state: state.hidden.add(USERNAME_INPUT)

        outcome = await login_to_mmx(page, settings)

        assert outcome.success
        assert (USERNAME_INPUT, "agent") in browser_state.fills
        assert 'input[name="HAHA"]' not in browser_state.clicks

    @pytest.mark.asyncio
    async def test_login_form_still_visible_fails(self, page, settings):
        outcome = await login_to_mmx(page, settings)

        assert not outcome.success
        assert outcome.message.startswith("Login failed.")


class TestStageList:

    def test_canonical_order(self):
        assert [s.name for s in build_stages()] == STAGE_NAMES

    def test_highlight_columns_resolve_to_letters(self):
        mapping = {"bank": "L", "account_number": "M", "status": "A"}
        stages = {s.name: s for s in build_stages(column_for=mapping.get)}

        assert stages["bank_details"].highlight_columns == ("L", "M")
        assert stages["update_status"].highlight_columns == ("A",)
        assert stages["login"].highlight_columns == ()

    def test_unknown_stage(self):
        with pytest.raises(KeyError):
            get_stage("submit_everything")
