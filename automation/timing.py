"""
Named delays for the MMX form.

MMX gives no reliable readiness signal after most actions (network-idle
never settles on its ASP.NET postbacks), so the form is driven with fixed
waits. Every wait used by the stages is named here.
"""

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class Delays:
    """Fixed waits, in milliseconds."""
    field_settle: int = 300          # after typing into a field and tabbing out
    select_settle: int = 300         # after changing a select via script
    subtab_settle: int = 500         # after clicking a sub-tab inside an iframe
    tab_settle: int = 1500           # after clicking a top-level tab
    cover_tab_settle: int = 3000     # cover iframe loads its item table
    dialog_dismiss: int = 1000       # after dismissing a dialog
    search_modal_dismiss: int = 500
    lookup_round_trip: int = 1500    # NPC code lookup after Tab
    branch_lookup: int = 3000        # branch code lookup after Tab
    branch_result_pick: int = 2000   # after picking a branch search result
    server_round_trip: int = 3000    # after clicking File
    add_item: int = 5000             # cover item form navigation
    login_settle: int = 1000
    post_login: int = 2000
    product_populate: int = 2000     # product dropdown refresh after client type
    before_click: int = 300

    def scaled(self, factor: float) -> "Delays":
        """Copy with every delay multiplied by factor."""
        return Delays(**{f.name: int(getattr(self, f.name) * factor) for f in fields(self)})


DEFAULT_DELAYS = Delays()


async def pause(page, ms: int):
    """Fixed wait on the page's clock."""
    if ms > 0:
        await page.wait_for_timeout(ms)
