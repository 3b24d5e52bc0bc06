from maplist.models.achievement import AchievementRole, DiscordRole  # noqa: F401
from maplist.models.completion import Completion, CompletionMeta, CompletionProof, CompPlayer, LeastCostChimps  # noqa: F401
from maplist.models.config import Config, ConfigFormat  # noqa: F401
from maplist.models.format import Format, FormatRuleSubset  # noqa: F401
from maplist.models.map import Map, MapListMeta  # noqa: F401
from maplist.models.role import Role, RoleFormatPermission, RoleGrant, UserRole  # noqa: F401
from maplist.models.user import User  # noqa: F401
from maplist.models.verification import Verification  # noqa: F401
