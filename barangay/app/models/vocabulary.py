"""
Recommended vocabulary for audit block `action` and `module` fields.

Both fields are open strings: the chain accepts any value so that a new
records module never needs a schema migration.  The names below are the
values the barangay records system emits today; collaborators should reuse
them so the audit UI can group and filter consistently.
"""

SYSTEM_ACTOR = "System"

# Actions
CREATE = "CREATE"
UPDATE = "UPDATE"
EDIT = "EDIT"
ARCHIVE = "ARCHIVE"
RESTORE = "RESTORE"
DELETE = "DELETE"
DELETE_PERMANENT = "DELETE PERMANENT"
LOGIN = "LOGIN"
SIGNUP = "SIGNUP"
IMPORT = "IMPORT"
BULK_ARCHIVE = "BULK_ARCHIVE"
UPDATE_PHOTO = "UPDATE_PHOTO"
UPDATE_INFO = "UPDATE_INFO"
PASSWORD_CHANGE = "PASSWORD_CHANGE"
VIEWED = "VIEWED"

KNOWN_ACTIONS = frozenset(
    {
        CREATE,
        UPDATE,
        EDIT,
        ARCHIVE,
        RESTORE,
        DELETE,
        DELETE_PERMANENT,
        LOGIN,
        SIGNUP,
        IMPORT,
        BULK_ARCHIVE,
        UPDATE_PHOTO,
        UPDATE_INFO,
        PASSWORD_CHANGE,
        VIEWED,
    }
)

# Modules
RESIDENT = "Resident"
OFFICIAL = "Official"
DOCUMENTS = "Documents"
BLOTTER = "Blotter"
ANNOUNCEMENT = "Announcement"
AUTH = "Auth"
USER = "User"

KNOWN_MODULES = frozenset(
    {RESIDENT, OFFICIAL, DOCUMENTS, BLOTTER, ANNOUNCEMENT, AUTH, USER}
)


def is_known_action(action: str) -> bool:
    """True if `action` is part of the recommended vocabulary."""
    return action in KNOWN_ACTIONS


def is_known_module(module: str) -> bool:
    """True if `module` is part of the recommended vocabulary."""
    return module in KNOWN_MODULES
