"""
Settings the form stages read, derived from AppConfig.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from api.config import AppConfig, get_config, DEFAULT_VALIDATION_KEYWORDS
from automation.timing import Delays, DEFAULT_DELAYS


@dataclass(frozen=True)
class FormSettings:
    base_url: str = ""
    username: str = ""
    password: str = ""
    client_type: str = "Domestic"
    product_label: str = "GW6 - CIV DOMESTIC DONATION NPC"
    npc_company_code: str = "CIV01"
    validation_keywords: List[str] = field(
        default_factory=lambda: DEFAULT_VALIDATION_KEYWORDS.split(",")
    )
    navigation_timeout_ms: int = 30000
    action_timeout_ms: int = 10000
    delays: Delays = DEFAULT_DELAYS

    @property
    def login_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/login.aspx"

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None, delays: Optional[Delays] = None) -> "FormSettings":
        config = config or get_config()
        return cls(
            base_url=config.MMX_BASE_URL,
            username=config.MMX_USERNAME,
            password=config.MMX_PASSWORD,
            client_type=config.CLIENT_TYPE,
            product_label=config.PRODUCT_LABEL,
            npc_company_code=config.NPC_COMPANY_CODE,
            validation_keywords=list(config.VALIDATION_KEYWORDS),
            navigation_timeout_ms=config.NAVIGATION_TIMEOUT_MS,
            action_timeout_ms=config.ACTION_TIMEOUT_MS,
            delays=delays or DEFAULT_DELAYS,
        )
