import os
import sys

from loguru import logger

from authorize.config import load_privilege_catalog
from authorize.errors import AuthorizeError
from authorize.models import dispose_db_manager, get_db_manager
from authorize.service import AuthorizationService
from authorize.store import DatabaseStore

USAGE = """Usage: python main.py <command> [args]

Commands:
  init-db                       Create the authorization tables
  add-user <username>           Create a user
  add-role <rolename>           Create a role
  grant-role <user> <role>      Add a user to a role
  revoke-role <user> <role>     Remove a user from a role
  grant-priv <role> <priv>      Grant a privilege to a role
  revoke-priv <role> <priv>     Revoke a privilege from a role
  grant-user-priv <user> <priv> Grant a privilege directly to a user
  revoke-user-priv <user> <priv>
                                Revoke a direct privilege from a user
  check <priv> <user>           Exit 0 if the user holds the privilege, else 1
  list-privs <user>             Print the user's effective privileges"""

ARITY = {
    "init-db": 0,
    "add-user": 1,
    "add-role": 1,
    "grant-role": 2,
    "revoke-role": 2,
    "grant-priv": 2,
    "revoke-priv": 2,
    "grant-user-priv": 2,
    "revoke-user-priv": 2,
    "check": 2,
    "list-privs": 1,
}


def run(command, args, db_manager) -> int:
    store = DatabaseStore(db_manager)

    if command == "init-db":
        if not db_manager.health_check():
            logger.critical("Database is not reachable")
            return 1
        logger.success("Authorization tables are ready")
        return 0
    if command == "add-user":
        store.insert("users", [None, args[0]])
        logger.success(f"Created user {args[0]}")
        return 0
    if command == "add-role":
        store.insert("roles", [None, args[0]])
        logger.success(f"Created role {args[0]}")
        return 0

    service = AuthorizationService(store, load_privilege_catalog())
    mutations = {
        "grant-role": service.add_user_role,
        "revoke-role": service.remove_user_role,
        "grant-priv": service.add_role_priv,
        "revoke-priv": service.remove_role_priv,
        "grant-user-priv": service.add_user_priv,
        "revoke-user-priv": service.remove_user_priv,
    }
    if command in mutations:
        mutations[command](*args)
        logger.success(f"{command} {' '.join(args)}")
        return 0
    if command == "check":
        priv, user = args
        if service.has_priv(priv, user):
            logger.success(f"{user} holds {priv}")
            return 0
        logger.warning(f"{user} does not hold {priv}")
        return 1
    if command == "list-privs":
        for priv_id, name in service.fetch_user_privs(args[0]).items():
            print(f"{priv_id}\t{name}")
        return 0
    return 1


def main():
    logger.remove()
    logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))

    if len(sys.argv) < 2 or sys.argv[1] not in ARITY:
        logger.error(USAGE)
        sys.exit(1)

    command = sys.argv[1]
    args = sys.argv[2:]
    if len(args) != ARITY[command]:
        logger.error(f"{command} expects {ARITY[command]} argument(s)\n{USAGE}")
        sys.exit(1)

    try:
        db_manager = get_db_manager()
        code = run(command, args, db_manager)
    except AuthorizeError as e:
        logger.error(f"{command} failed: {e}")
        code = 1
    except Exception as e:
        logger.exception(f"Fatal error during {command}: {e}")
        code = 1
    finally:
        dispose_db_manager()

    sys.exit(code)


if __name__ == "__main__":  # pragma: no cover
    main()
