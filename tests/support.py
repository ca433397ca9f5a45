"""Constants and fakes shared by test modules."""

from datetime import datetime, timedelta, timezone

from memberhub.core.database.base import generate_ulid
from memberhub.features.users.schemas import ProvisionedAccount

GUJARAT = "Gujarat Prant"
PUNJAB = "Punjab Prant"
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def future(days: int = 7) -> datetime:
    return NOW + timedelta(days=days)


class FakeProvisioner:
    """Stands in for Appwrite: hands out fresh user ids and remembers them."""

    def __init__(self) -> None:
        self.accounts: list[ProvisionedAccount] = []

    async def provision(self, email: str, full_name: str) -> ProvisionedAccount:
        account = ProvisionedAccount(user_id=f"aw-{generate_ulid().lower()}", email=email)
        self.accounts.append(account)
        return account
