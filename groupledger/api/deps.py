from groupledger.core.database import get_db  # noqa: F401
from groupledger.realtime.broadcaster import get_broadcaster  # noqa: F401
