from dataclasses import dataclass
from typing import Callable, Optional

from wa_connect.observability.logging import log
from wa_connect.onboarding.models import DurableCredentials

MSG_REQUIRED_FIELDS = "Please fill in all required fields"


@dataclass
class ManualFallbackForm:
    """
    Direct credential entry. Phone number id and access token are required;
    the business account id is optional and omitted from the request when blank.
    """
    phone_number_id: str = ""
    access_token: str = ""
    business_account_id: str = ""
    error: Optional[str] = None

    def fill(self, phone_number_id: str = "", access_token: str = "", business_account_id: str = "") -> None:
        self.phone_number_id = (phone_number_id or "").strip()
        self.access_token = (access_token or "").strip()
        self.business_account_id = (business_account_id or "").strip()
        self.error = None

    def validate(self) -> Optional[str]:
        if not self.phone_number_id or not self.access_token:
            return MSG_REQUIRED_FIELDS
        return None

    def credentials(self) -> DurableCredentials:
        return DurableCredentials(
            phone_number_id=self.phone_number_id,
            access_token=self.access_token,
            business_account_id=self.business_account_id or None,
        )

    def submit(self, machine, on_error: Callable[[str], None]) -> bool:
        """
        Validate locally, then drive idle -> connecting -> success|error through
        the manual connect endpoint. Returns False when validation blocked the submit.
        """
        problem = self.validate()
        if problem:
            self.error = problem
            log(
                event="manual_form_invalid",
                orgId=getattr(machine, "org_id", None),
                hasPhoneNumberId=bool(self.phone_number_id),
                hasAccessToken=bool(self.access_token),
            )
            on_error(problem)
            return False

        self.error = None
        machine.begin_manual(self.credentials())
        return True

    def clear(self) -> None:
        self.fill()
