from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from playwright.sync_api import Browser, Error as PlaywrightError, Playwright, sync_playwright

from ..config import AffiliationConfig, Credentials, PortalConfig, TimingConfig
from ..errors import PageDriverError, SessionError
from .driver import PageDriver, PlaywrightPageDriver
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)


def login(
    driver: PageDriver,
    *,
    portal: PortalConfig,
    creds: Credentials,
    affiliation: AffiliationConfig,
    timing: TimingConfig,
    selectors: Optional[PortalSelectors] = None,
    progress_path: Optional[Path] = None,
) -> None:
    """
    Open the portal, pre-set the affiliation cookie, sign in through the Auth0 modal and wait until the
    affiliated interpretation list is rendered.

    Raises SessionError on any failure; there is no catalog to work on without a session.
    """
    sel = selectors or PortalSelectors()
    domain = portal.active
    try:
        driver.goto(portal.base_url)

        # With the cookie in place the portal skips the affiliation selection flow after login.
        if affiliation.affiliation_id:
            driver.add_cookie(name="affiliation", value=affiliation.cookie_value(), domain=domain.domain)
        else:
            logger.warning("No affiliation configured; the portal may ask for one interactively.")

        driver.click(domain.login_button_selector)
        driver.wait_for(sel.login_email_input, visible=True, timeout_ms=timing.login_timeout_ms)

        driver.type_text(sel.login_email_input, creds.username)
        driver.type_text(sel.login_password_input, creds.password)
        driver.click_and_wait_for_navigation(sel.login_submit, timeout_ms=timing.login_timeout_ms)

        if progress_path is not None:
            try:
                driver.screenshot(progress_path)
            except PageDriverError:
                logger.debug("Failed to save post-login screenshot.", exc_info=True)

        # Affiliations with many interpretations can take a long time to render this list.
        driver.wait_for(sel.interpretation_rows, visible=True, timeout_ms=timing.catalog_timeout_ms)
    except PageDriverError as e:
        raise SessionError(f"Portal login failed ({domain.domain}): {e}") from e

    logger.info("Logged in to %s", domain.domain)


class PortalSession:
    """
    One browser, one context, one page for the whole run.

    Usage:
        with PortalSession(portal=cfg.portal, creds=creds, ...) as driver:
            ...

    The browser is closed on normal exit and on any exception.
    """

    def __init__(
        self,
        *,
        portal: PortalConfig,
        creds: Credentials,
        affiliation: AffiliationConfig,
        timing: TimingConfig,
        selectors: Optional[PortalSelectors] = None,
        debug_dir: str = "data/debug",
    ) -> None:
        self.portal = portal
        self.creds = creds
        self.affiliation = affiliation
        self.timing = timing
        self.selectors = selectors or PortalSelectors()
        self.debug_dir = debug_dir

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self.driver: Optional[PlaywrightPageDriver] = None

    def __enter__(self) -> PlaywrightPageDriver:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _launch(self, pw: Playwright) -> Browser:
        headless = self.portal.headless
        slow_mo = int(self.portal.slow_mo_ms or 0)
        try:
            return pw.chromium.launch(headless=headless, slow_mo=slow_mo)
        except PlaywrightError as e:
            msg = str(e)
            if "Executable doesn't exist" not in msg:
                raise
            logger.warning(
                "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
                msg,
            )
            try:
                return pw.chromium.launch(headless=headless, slow_mo=slow_mo, channel="chrome")
            except PlaywrightError:
                return pw.chromium.launch(headless=headless, slow_mo=slow_mo, channel="msedge")

    def start(self) -> PlaywrightPageDriver:
        Path(self.debug_dir).mkdir(parents=True, exist_ok=True)
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._launch(self._playwright)
            ctx = self._browser.new_context(color_scheme="light")
            self.driver = PlaywrightPageDriver(ctx.new_page())
        except PlaywrightError as e:
            self.close()
            raise SessionError(f"Could not start browser: {e}") from e

        try:
            login(
                self.driver,
                portal=self.portal,
                creds=self.creds,
                affiliation=self.affiliation,
                timing=self.timing,
                selectors=self.selectors,
                progress_path=Path(self.debug_dir) / "after_login.png",
            )
        except SessionError:
            self.driver.save_debug(debug_dir=self.debug_dir, name_prefix="login_failure")
            self.close()
            raise
        except Exception:
            # __exit__ is not called when __enter__ raises.
            self.close()
            raise
        return self.driver

    def close(self) -> None:
        if self._browser is not None:
            try:
                self._browser.close()
            except PlaywrightError:
                logger.debug("Browser close failed.", exc_info=True)
            self._browser = None
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except PlaywrightError:
                logger.debug("Playwright stop failed.", exc_info=True)
            self._playwright = None
        self.driver = None
