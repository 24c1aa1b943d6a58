from hive.core.exceptions import (
    ConfigurationError as ConfigurationError,
    HiveError as HiveError,
    PathTraversalError as PathTraversalError,
)
from hive.core.types import (
    Architecture as Architecture,
    Component as Component,
    Project as Project,
)
