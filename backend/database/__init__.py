from .connection import (
    StoreAccessor,
    StoreDescriptor,
    normalize_async_url,
    IDENTITY_STORE,
    PROFILE_STORE,
)

# Import store models to ensure they are registered with their bases
from .models import (
    IdentityBase, ProfileBase,
    IdentityDB, ProfileDB,
    AgencyAssignmentDB, DivisionAssignmentDB, SectionAssignmentDB,
)

__all__ = [
    'StoreAccessor', 'StoreDescriptor', 'normalize_async_url',
    'IDENTITY_STORE', 'PROFILE_STORE',
    # Identity store
    'IdentityBase', 'IdentityDB',
    # Profile store
    'ProfileBase', 'ProfileDB',
    'AgencyAssignmentDB', 'DivisionAssignmentDB', 'SectionAssignmentDB',
]
