"""
Bootstrap script to appoint the first SUPER_CONTROLLER.

A fresh registry has no one who may assign roles. Run this once with the
Appwrite user id of the operator who should hold the top role; every later
appointment goes through the API and the authorization engine.

Usage:
    uv run python -m scripts.bootstrap_controller <appwrite-user-id>
"""
import asyncio
import sys

from memberhub.core.database.engine import get_db, init_db
from memberhub.features.audit import service as audit
from memberhub.features.audit.service import AuditAction
from memberhub.features.roles.catalog import Role
from memberhub.features.roles.store import get_stored_role, upsert_role
from memberhub.utils import get_logger


log = get_logger(__name__)


async def bootstrap_controller(db, user_id: str) -> bool:
    """
    Give ``user_id`` the SUPER_CONTROLLER role.

    Returns False when the user already holds it.
    """
    previous = await get_stored_role(db, user_id)
    if previous == Role.SUPER_CONTROLLER:
        log.info("User %s is already SUPER_CONTROLLER, skipping", user_id)
        return False

    await upsert_role(db, user_id, Role.SUPER_CONTROLLER)
    await db.commit()
    log.warning("Bootstrapped SUPER_CONTROLLER for %s", user_id)
    await audit.record(
        db, None, AuditAction.CONTROLLER_BOOTSTRAPPED, "profile", user_id,
        {"previous_role": (previous or Role.MEMBER).value},
    )
    return True


async def main(user_id: str):
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            await bootstrap_controller(db, user_id)
        except Exception as e:
            log.error(f"Error bootstrapping controller: {e}", exc_info=True)
            await db.rollback()
            raise
        break


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    asyncio.run(main(sys.argv[1]))
