"""
Playwright driver for the TeachAssist attendance pages.

TeachAssist is a PHP frameset application: the course list lives in
``menuFrame`` and the attendance form in ``mainFrame``. Every call here is
bounded by the page's default timeout; timeouts surface as
ExternalTimeoutError and a closed browser as ExternalSessionLostError.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, List, Optional, Type

from playwright.async_api import (
    async_playwright,
    Browser,
    Frame,
    Page,
    Playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from app.core.config import settings
from app.core.teachassist_config import TeachAssistCredentials
from app.schemas.sync import ExecutionMode
from app.services.sync.types import ExternalNameRow
from .base import BaseExternalAttendanceDriver, to_external_code
from .error_handler import (
    ExternalAuthenticationError,
    ExternalFormSubmissionError,
    ExternalNavigationError,
    ExternalSessionLostError,
    ExternalSystemError,
    ExternalTimeoutError,
    external_error_context,
)
from .selectors import (
    ATTENDANCE, FRAMES, LOGIN, TABS,
    NON_STUDENT_ROW_LABELS, RADIOS_PER_STUDENT_ROW, attendance_radio,
)


logger = logging.getLogger('teachassist')

_SESSION_LOST_MARKERS = (
    "Target closed",
    "Target page, context or browser has been closed",
    "Browser has been closed",
    "Connection closed",
)

_READ_ROWS_SCRIPT = """
(rows, args) => {
    const [skipLabels, minRadios] = args;
    const result = [];
    for (const row of rows) {
        const radios = row.querySelectorAll('input[type="radio"]');
        if (radios.length < minRadios) continue;
        const firstCell = row.querySelector('td');
        if (!firstCell) continue;
        const anchor = firstCell.querySelector('a');
        const name = ((anchor ? anchor.textContent : firstCell.textContent) || '').trim();
        if (!name || skipLabels.includes(name)) continue;
        result.push({ name: name, reference: radios[0].name });
    }
    return result;
}
"""

_SET_DATE_SCRIPT = """
([selector, value]) => {
    const input = document.querySelector(selector);
    if (!input) return false;
    input.value = value;
    const form = input.closest('form');
    if (!form) return false;
    form.submit();
    return true;
}
"""


@dataclass
class TeachAssistSession:
    """Browser resources held for the duration of one sync job."""
    playwright: Playwright
    browser: Browser


def _is_session_lost(error: Exception) -> bool:
    message = str(error)
    return any(marker in message for marker in _SESSION_LOST_MARKERS)


@asynccontextmanager
async def _guard(
    operation: str,
    error_class: Type[ExternalSystemError],
    scrub: Callable[[str], str] = lambda text: text
):
    """Classify Playwright failures raised inside one driver operation."""
    async with external_error_context(operation, error_class, scrub=scrub):
        try:
            yield
        except ExternalSystemError:
            raise
        except PlaywrightTimeoutError as e:
            raise ExternalTimeoutError(scrub(f"{operation} timed out: {e}"), operation_type=operation) from e
        except PlaywrightError as e:
            if _is_session_lost(e):
                raise ExternalSessionLostError(
                    f"Browser session lost during {operation}", operation_type=operation
                ) from e
            raise error_class(scrub(f"{operation} failed: {e}"), operation_type=operation) from e


class PlaywrightTeachAssistDriver(BaseExternalAttendanceDriver):
    """Production driver that operates TeachAssist through Chromium."""

    name = "teachassist"

    def __init__(
        self,
        headless: Optional[bool] = None,
        timeout_ms: Optional[int] = None,
        execution_mode: ExecutionMode = ExecutionMode.FULL_AUTO
    ):
        if headless is None:
            # Confirmation mode keeps the browser visible so the teacher can watch
            headless = settings.TEACHASSIST_HEADLESS and execution_mode == ExecutionMode.FULL_AUTO
        self.headless = headless
        self.timeout_ms = timeout_ms or settings.TEACHASSIST_TIMEOUT_MS
        self.execution_mode = execution_mode

    async def launch_browser(self) -> TeachAssistSession:
        async with _guard("launch_browser", ExternalSessionLostError):
            playwright = await async_playwright().start()
            try:
                browser = await playwright.chromium.launch(headless=self.headless)
            except Exception:
                await playwright.stop()
                raise
            logger.debug(f"Launched Chromium (headless={self.headless})")
            return TeachAssistSession(playwright=playwright, browser=browser)

    async def create_page(self, session: TeachAssistSession) -> Page:
        async with _guard("create_page", ExternalSessionLostError):
            page = await session.browser.new_page()
            page.set_default_timeout(self.timeout_ms)
            page.set_default_navigation_timeout(self.timeout_ms)
            return page

    async def login_to_external_system(self, page: Page, credentials: TeachAssistCredentials) -> None:
        # Browser error text can echo form values
        async with _guard("login", ExternalAuthenticationError, scrub=credentials.scrub):
            await page.goto(credentials.base_url)
            await page.fill(LOGIN["username_input"], credentials.username)
            await page.fill(LOGIN["password_input"], credentials.password.get_secret_value())
            await page.click(LOGIN["submit_button"])
            await page.wait_for_load_state()

            if page.frame(name=FRAMES["menu"]) is None:
                still_on_login = await page.query_selector(LOGIN["password_input"])
                if still_on_login is not None:
                    raise ExternalAuthenticationError(
                        f"TeachAssist rejected the login for user '{credentials.username}'"
                    )
                await page.wait_for_selector(
                    f'frame[name="{FRAMES["menu"]}"], iframe[name="{FRAMES["menu"]}"]',
                    state="attached"
                )
        logger.info(f"Logged in to TeachAssist as {credentials.username}")

    async def select_course(self, page: Page, course_identifier: str) -> None:
        async with _guard("select_course", ExternalNavigationError):
            menu_frame = self._frame(page, "menu")
            for link in await menu_frame.query_selector_all("a"):
                text = await link.text_content()
                if text and course_identifier in text:
                    await link.click()
                    break
            else:
                raise ExternalNavigationError(
                    f'Course containing "{course_identifier}" not found in the sidebar'
                )

            main_frame = self._frame(page, "main")
            await main_frame.wait_for_selector(f'a:has-text("{TABS["attendance"]}")')

    async def navigate_to_attendance_view(self, page: Page, date: str) -> None:
        async with _guard("navigate_to_attendance_view", ExternalNavigationError):
            main_frame = self._frame(page, "main")

            if await main_frame.query_selector(ATTENDANCE["date_input"]) is None:
                tab = await main_frame.wait_for_selector(f'a:has-text("{TABS["attendance"]}")')
                await tab.click()
                await main_frame.wait_for_selector(ATTENDANCE["date_input"])

            current = await main_frame.eval_on_selector(ATTENDANCE["date_input"], "el => el.value")
            if current == date:
                return

            submitted = await main_frame.evaluate(_SET_DATE_SCRIPT, [ATTENDANCE["date_input"], date])
            if not submitted:
                raise ExternalNavigationError("Attendance date form not found")

            await main_frame.wait_for_selector(ATTENDANCE["date_input"], state="attached")
            shown = await main_frame.eval_on_selector(ATTENDANCE["date_input"], "el => el.value")
            if shown != date:
                raise ExternalNavigationError(
                    f"Failed to set date to {date}; page shows {shown}. "
                    f"The date may not be a class day in TeachAssist."
                )

    async def read_attendance_rows(self, page: Page) -> List[ExternalNameRow]:
        async with _guard("read_attendance_rows", ExternalNavigationError):
            main_frame = self._frame(page, "main")
            rows = await main_frame.eval_on_selector_all(
                "tr",
                _READ_ROWS_SCRIPT,
                [sorted(NON_STUDENT_ROW_LABELS), RADIOS_PER_STUDENT_ROW]
            )
            return [
                ExternalNameRow(name=row["name"], external_row_reference=row["reference"])
                for row in rows
            ]

    async def record_attendance_for_row(self, page: Page, external_row_reference: str, status: str) -> None:
        code = to_external_code(status)
        async with _guard("record_attendance_for_row", ExternalFormSubmissionError):
            main_frame = self._frame(page, "main")
            radio = await main_frame.query_selector(attendance_radio(external_row_reference, code))
            if radio is None:
                raise ExternalFormSubmissionError(
                    f'Radio button name="{external_row_reference}" value="{code}" not found'
                )
            await radio.check()

            button = await main_frame.query_selector(ATTENDANCE["record_button"])
            if button is None:
                raise ExternalFormSubmissionError("Record Attendance button not found")
            await button.click()
            await main_frame.wait_for_selector(ATTENDANCE["date_input"], state="attached")

    async def close_browser(self, session: TeachAssistSession) -> None:
        try:
            await session.browser.close()
        finally:
            await session.playwright.stop()

    def _frame(self, page: Page, key: str) -> Frame:
        frame = page.frame(name=FRAMES[key])
        if frame is None:
            raise ExternalNavigationError(
                f'Frame "{FRAMES[key]}" not found. Is this the TeachAssist frameset page?'
            )
        return frame
