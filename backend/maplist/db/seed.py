"""Core rows every deployment needs: formats, roles and their permissions, config.

``seed_core`` only inserts what is missing, so it is safe to run repeatedly.
The same tables feed the ``0002_seed_core`` migration.
"""

import logging

from sqlalchemy.orm import Session

from maplist.models.config import Config, ConfigFormat
from maplist.models.format import (
    BEST_OF_THE_BEST,
    EXPERT_LIST,
    MAPLIST,
    MAPLIST_ALL_VERSIONS,
    NOSTALGIA_PACK,
    Format,
    FormatRuleSubset,
)
from maplist.models.role import Role, RoleFormatPermission, RoleGrant

logger = logging.getLogger(__name__)

FORMATS = [
    {
        "id": MAPLIST,
        "name": "Maplist",
        "hidden": False,
        "run_submission_status": "open",
        "map_submission_status": "open_chimps",
    },
    {
        "id": MAPLIST_ALL_VERSIONS,
        "name": "Maplist (all versions)",
        "hidden": True,
        "run_submission_status": "closed",
        "map_submission_status": "closed",
    },
    {
        "id": NOSTALGIA_PACK,
        "name": "Nostalgia Pack",
        "hidden": False,
        "run_submission_status": "lcc_only",
        "map_submission_status": "open",
    },
    {
        "id": EXPERT_LIST,
        "name": "Expert List",
        "hidden": False,
        "run_submission_status": "open",
        "map_submission_status": "open_chimps",
    },
    {
        "id": BEST_OF_THE_BEST,
        "name": "Best of the Best",
        "hidden": False,
        "run_submission_status": "lcc_only",
        "map_submission_status": "open",
    },
]

# (parent, child)
FORMAT_RULE_SUBSETS = [
    (MAPLIST_ALL_VERSIONS, MAPLIST),
    (NOSTALGIA_PACK, MAPLIST),
    (NOSTALGIA_PACK, EXPERT_LIST),
    (NOSTALGIA_PACK, BEST_OF_THE_BEST),
    (EXPERT_LIST, MAPLIST),
    (BEST_OF_THE_BEST, MAPLIST),
    (BEST_OF_THE_BEST, EXPERT_LIST),
    (BEST_OF_THE_BEST, NOSTALGIA_PACK),
]

TECHNICIAN = 1
MAPLIST_OWNER = 2
EXPERT_LIST_OWNER = 3
MAPLIST_MODERATOR = 4
EXPERT_LIST_MODERATOR = 5
REQUIRES_RECORDINGS = 6
CAN_SUBMIT = 7
BOTB_OWNER = 8
BOTB_CURATOR = 9
BOTB_VERIFIER = 10
NOSTALGIA_OWNER = 11
NOSTALGIA_CURATOR = 12
NOSTALGIA_VERIFIER = 13
BASIC_PERMS = 14

ROLES = [
    {"id": TECHNICIAN, "name": "Technician", "internal": True, "assign_on_create": False},
    {"id": MAPLIST_OWNER, "name": "Maplist Owner", "internal": False, "assign_on_create": False},
    {"id": EXPERT_LIST_OWNER, "name": "Expert List Owner", "internal": False, "assign_on_create": False},
    {"id": MAPLIST_MODERATOR, "name": "Maplist Moderator", "internal": False, "assign_on_create": False},
    {"id": EXPERT_LIST_MODERATOR, "name": "Expert List Moderator", "internal": False, "assign_on_create": False},
    {"id": REQUIRES_RECORDINGS, "name": "Requires Recording", "internal": False, "assign_on_create": False},
    {"id": CAN_SUBMIT, "name": "Can Submit", "internal": False, "assign_on_create": True},
    {"id": BOTB_OWNER, "name": "Best of the Best Owner", "internal": False, "assign_on_create": False},
    {"id": BOTB_CURATOR, "name": "Best of the Best Curator", "internal": False, "assign_on_create": False},
    {"id": BOTB_VERIFIER, "name": "Best of the Best Verifier", "internal": False, "assign_on_create": False},
    {"id": NOSTALGIA_OWNER, "name": "Nostalgia Pack Owner", "internal": False, "assign_on_create": False},
    {"id": NOSTALGIA_CURATOR, "name": "Nostalgia Pack Curator", "internal": False, "assign_on_create": False},
    {"id": NOSTALGIA_VERIFIER, "name": "Nostalgia Pack Verifier", "internal": False, "assign_on_create": False},
    {"id": BASIC_PERMS, "name": "Basic Permissions", "internal": True, "assign_on_create": True},
]

# role_required -> roles it may grant and revoke
ROLE_GRANTS = {
    TECHNICIAN: [
        MAPLIST_OWNER,
        EXPERT_LIST_OWNER,
        MAPLIST_MODERATOR,
        EXPERT_LIST_MODERATOR,
        REQUIRES_RECORDINGS,
        CAN_SUBMIT,
        BASIC_PERMS,
    ],
    MAPLIST_OWNER: [MAPLIST_MODERATOR, REQUIRES_RECORDINGS, CAN_SUBMIT],
    EXPERT_LIST_OWNER: [EXPERT_LIST_MODERATOR, REQUIRES_RECORDINGS, CAN_SUBMIT],
    MAPLIST_MODERATOR: [REQUIRES_RECORDINGS, CAN_SUBMIT],
    EXPERT_LIST_MODERATOR: [REQUIRES_RECORDINGS, CAN_SUBMIT],
    BOTB_OWNER: [BOTB_CURATOR, BOTB_VERIFIER],
    NOSTALGIA_OWNER: [NOSTALGIA_CURATOR, NOSTALGIA_VERIFIER],
}

LIST_STAFF_PERMISSIONS = [
    "create:map",
    "edit:map",
    "delete:map",
    "edit:config",
    "create:completion",
    "edit:completion",
    "delete:completion",
    "delete:map_submission",
    "edit:achievement_roles",
]
USER_MANAGEMENT_PERMISSIONS = ["create:user", "ban:user"]
CURATOR_PERMISSIONS = ["create:map", "edit:map", "delete:map"] + USER_MANAGEMENT_PERMISSIONS
VERIFIER_PERMISSIONS = [
    "edit:config",
    "create:completion",
    "edit:completion",
    "delete:completion",
] + USER_MANAGEMENT_PERMISSIONS

# role -> {format_id or None for global: [permission, ...]}
ROLE_PERMISSIONS = {
    TECHNICIAN: {
        None: [
            "delete:map_submission",
            "edit:achievement_roles",
            "create:map",
            "edit:map",
            "delete:map",
            "edit:config",
            "create:completion",
            "edit:completion",
            "delete:completion",
            "create:map_submission",
            "create:user",
            "edit:self",
            "ban:user",
            "create:completion_submission",
            "edit:format",
        ],
    },
    MAPLIST_OWNER: {
        MAPLIST: LIST_STAFF_PERMISSIONS + ["edit:format"],
        MAPLIST_ALL_VERSIONS: LIST_STAFF_PERMISSIONS + ["edit:format"],
        None: USER_MANAGEMENT_PERMISSIONS,
    },
    MAPLIST_MODERATOR: {
        MAPLIST: LIST_STAFF_PERMISSIONS,
        MAPLIST_ALL_VERSIONS: LIST_STAFF_PERMISSIONS,
    },
    EXPERT_LIST_OWNER: {
        EXPERT_LIST: LIST_STAFF_PERMISSIONS + ["edit:format"],
        None: USER_MANAGEMENT_PERMISSIONS,
    },
    EXPERT_LIST_MODERATOR: {
        EXPERT_LIST: LIST_STAFF_PERMISSIONS,
    },
    REQUIRES_RECORDINGS: {None: ["require:completion_submission:recording"]},
    CAN_SUBMIT: {None: ["create:map_submission", "create:completion_submission"]},
    BOTB_OWNER: {EXPERT_LIST: CURATOR_PERMISSIONS},
    BOTB_CURATOR: {EXPERT_LIST: CURATOR_PERMISSIONS},
    BOTB_VERIFIER: {EXPERT_LIST: VERIFIER_PERMISSIONS},
    NOSTALGIA_OWNER: {NOSTALGIA_PACK: CURATOR_PERMISSIONS + ["edit:format"]},
    NOSTALGIA_CURATOR: {NOSTALGIA_PACK: CURATOR_PERMISSIONS},
    NOSTALGIA_VERIFIER: {NOSTALGIA_PACK: VERIFIER_PERMISSIONS},
    BASIC_PERMS: {None: ["edit:self"]},
}

CONFIGS = [
    {"name": "points_top_map", "value": "100", "type": "float", "description": "Points for the #1 map"},
    {"name": "points_bottom_map", "value": "5", "type": "float", "description": "Points for the last map"},
    {"name": "formula_slope", "value": "0.88", "type": "float", "description": "Formula slope"},
    {"name": "points_extra_lcc", "value": "20", "type": "float", "description": "Extra points for LCCs"},
    {"name": "points_multi_gerry", "value": "2", "type": "float", "description": "No Optimal Hero point multiplier"},
    {"name": "points_multi_bb", "value": "3", "type": "float", "description": "Black Border point multiplier"},
    {"name": "decimal_digits", "value": "0", "type": "int", "description": "Decimal digits to round to"},
    {"name": "map_count", "value": "50", "type": "int", "description": "Number of maps on the list"},
    {"name": "current_btd6_ver", "value": "441", "type": "int", "description": "Current BTD6 version"},
    {"name": "exp_bb_multi", "value": "1", "type": "int", "description": "Base points multiplier"},
    {"name": "exp_lcc_extra", "value": "0", "type": "int", "description": "Extra points"},
]

EXPERT_TIERS = ["casual", "medium", "high", "true", "extreme"]
for _difficulty, _tier in enumerate(EXPERT_TIERS):
    CONFIGS.append({
        "name": f"exp_points_{_tier}",
        "value": str(_difficulty + 1),
        "type": "int",
        "difficulty": _difficulty,
        "description": f"{_tier.capitalize()} Exp completion points",
    })
    CONFIGS.append({
        "name": f"exp_nogerry_points_{_tier}",
        "value": str(_difficulty + 1),
        "type": "int",
        "difficulty": _difficulty,
        "description": f"{_tier.capitalize()} Exp extra",
    })

MAPLIST_CONFIG = [
    "points_top_map",
    "points_bottom_map",
    "formula_slope",
    "points_extra_lcc",
    "points_multi_gerry",
    "points_multi_bb",
    "decimal_digits",
    "map_count",
    "current_btd6_ver",
]
CONFIG_FORMATS = {
    MAPLIST: MAPLIST_CONFIG,
    MAPLIST_ALL_VERSIONS: MAPLIST_CONFIG,
    EXPERT_LIST: ["current_btd6_ver"]
    + [f"exp_points_{t}" for t in EXPERT_TIERS]
    + [f"exp_nogerry_points_{t}" for t in EXPERT_TIERS]
    + ["exp_bb_multi", "exp_lcc_extra"],
}


def role_permission_rows() -> list[dict]:
    return [
        {"role_id": role_id, "format_id": format_id, "permission": permission}
        for role_id, scopes in ROLE_PERMISSIONS.items()
        for format_id, permissions in scopes.items()
        for permission in permissions
    ]


def config_format_rows() -> list[dict]:
    return [
        {"config_name": name, "format_id": format_id}
        for format_id, names in CONFIG_FORMATS.items()
        for name in names
    ]


def seed_core(db: Session) -> None:
    """Insert the core rows that are missing. The caller commits."""
    for data in FORMATS:
        if not db.get(Format, data["id"]):
            db.add(Format(**data))
    db.flush()

    for parent, child in FORMAT_RULE_SUBSETS:
        if not db.get(FormatRuleSubset, (parent, child)):
            db.add(FormatRuleSubset(format_parent=parent, format_child=child))

    for data in ROLES:
        if not db.get(Role, data["id"]):
            db.add(Role(**data))
    db.flush()

    for required, targets in ROLE_GRANTS.items():
        for target in targets:
            if not db.get(RoleGrant, (required, target)):
                db.add(RoleGrant(role_required=required, role_can_grant=target))

    existing = {
        (p.role_id, p.format_id, p.permission)
        for p in db.query(RoleFormatPermission).all()
    }
    for row in role_permission_rows():
        if (row["role_id"], row["format_id"], row["permission"]) not in existing:
            db.add(RoleFormatPermission(**row))

    for data in CONFIGS:
        if not db.get(Config, data["name"]):
            db.add(Config(**data))
    db.flush()

    for row in config_format_rows():
        if not db.get(ConfigFormat, (row["config_name"], row["format_id"])):
            db.add(ConfigFormat(**row))
    db.flush()

    logger.info("Core data seeded")
