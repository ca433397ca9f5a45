"""
Account provisioning for approved applicants.

Approving an application must produce an identity keyed by an auth-provider
user id. The provisioner creates that account; the registry never stores
credentials. Tests substitute their own provisioner.
"""
from typing import Protocol
from fastapi.concurrency import run_in_threadpool
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.services.users import Users

from memberhub.core.errors import Conflict, TransientStorageError
from memberhub.features.users.auth import AppwriteClient
from memberhub.features.users.schemas import ProvisionedAccount
from memberhub.utils import get_logger


log = get_logger(__name__)


class AccountProvisioner(Protocol):
    async def provision(self, email: str, full_name: str) -> ProvisionedAccount:
        ...


class AppwriteProvisioner:
    """Creates password-less Appwrite users; members set a password via recovery."""

    async def provision(self, email: str, full_name: str) -> ProvisionedAccount:
        users = Users(AppwriteClient.get_client())
        try:
            created = await run_in_threadpool(
                users.create, user_id=ID.unique(), email=email, name=full_name
            )
        except AppwriteException as e:
            if e.code == 409:
                raise Conflict("An account with this email already exists", {"email": email})
            log.error("Appwrite provisioning failed for %s: %s", email, e)
            raise TransientStorageError("Account provisioning is unavailable")
        log.info("Provisioned account %s for %s", created["$id"], email)
        return ProvisionedAccount(user_id=created["$id"], email=email)


def get_provisioner() -> AccountProvisioner:
    return AppwriteProvisioner()
