from .role import GlobalRole, OrganizationRole, SpaceRole
from .user import User, AccessToken
from .association import OrganizationUserRole, SpaceUserRole
from .organization import QuotaDefinition, Organization
from .space import Space
from .domain import Domain, SharedDomain, PrivateDomain, Route
from .app import App, AppAnnotation
from .service_instance import (
    ServicePlan, ServicePlanVisibility, ServiceInstance,
    ManagedServiceInstance, UserProvidedServiceInstance, ServiceBinding,
)
from .security_group import SecurityGroup, staging_security_groups_spaces, security_groups_spaces
from .usage_event import (
    UsageEvent, AppUsageEvent, ServiceUsageEvent, BillingEvent,
    OrganizationStartEvent, AppStartEvent, AppStopEvent, ServiceCreateEvent, ServiceDeleteEvent,
)
