from claimscore.models.claim import Claim  # noqa: F401
from claimscore.models.stats import ProcedureStat, ProviderStat  # noqa: F401
