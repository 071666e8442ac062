"""Domain modules package."""

from app.modules.identity import models as identity_models  # noqa: F401
from app.modules.organizations import models as organizations_models  # noqa: F401
from app.modules.scheduling import models as scheduling_models  # noqa: F401
