from .driver import Control, PageDriver, PlaywrightPageDriver
from .selectors import PortalSelectors
from .session import PortalSession

__all__ = ["Control", "PageDriver", "PlaywrightPageDriver", "PortalSelectors", "PortalSession"]
