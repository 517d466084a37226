"""
ORM models for accounts and profiles, organization structure, maintenance
tickets and assets, spare-part inventory, configuration, and activity logs.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .security import (  # noqa: F401
    AuthUser,
    Profile,
    RolePermission,
)
from .organization import (  # noqa: F401
    Sector,
    Area,
    Brand,
    Branch,
)
from .maintenance import (  # noqa: F401
    FaultCategory,
    MaintenanceAsset,
    Ticket,
    TicketComment,
)
from .inventory import (  # noqa: F401
    SparePart,
    InventoryTransaction,
)
from .configuration import (  # noqa: F401
    SystemSetting,
    NotificationTemplate,
    FormFieldConfig,
)
from .audit import (  # noqa: F401
    SystemLog,
)
