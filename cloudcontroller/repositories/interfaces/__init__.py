from .unit_of_work import IUnitOfWork
from .user import IUserRepository
from .organization import IOrganizationRepository
from .space import ISpaceRepository
from .domain import IDomainRepository
from .app import IAppRepository
from .service_instance import IServiceInstanceRepository
from .security_group import ISecurityGroupRepository
from .usage_event import IUsageEventRepository
