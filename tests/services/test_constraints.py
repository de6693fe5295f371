# tests/services/test_constraints.py
import pytest
from unittest.mock import MagicMock

from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import (
    IAppRepository, IDomainRepository, IOrganizationRepository,
    ISecurityGroupRepository, IServiceInstanceRepository, ISpaceRepository,
)
from cloudcontroller.services.authorization import Operation
from cloudcontroller.services.constraints import ConstraintEngine, has_control_characters
from cloudcontroller.services.exceptions import *

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_org_repo() -> MagicMock:
    repo = MagicMock(spec=IOrganizationRepository)
    # 시나리오: 기본적으로 이름 충돌이 없음
    repo.find_by_name.return_value = None
    return repo

@pytest.fixture
def mock_space_repo() -> MagicMock:
    repo = MagicMock(spec=ISpaceRepository)
    repo.find_by_name_and_organization.return_value = None
    return repo

@pytest.fixture
def mock_app_repo() -> MagicMock:
    repo = MagicMock(spec=IAppRepository)
    repo.find_by_name_and_space.return_value = None
    return repo

@pytest.fixture
def mock_service_instance_repo() -> MagicMock:
    repo = MagicMock(spec=IServiceInstanceRepository)
    repo.find_by_name_and_space.return_value = None
    repo.find_binding.return_value = None
    return repo

@pytest.fixture
def mock_domain_repo() -> MagicMock:
    repo = MagicMock(spec=IDomainRepository)
    repo.find_by_name.return_value = None
    repo.find_route.return_value = None
    return repo

@pytest.fixture
def mock_security_group_repo() -> MagicMock:
    repo = MagicMock(spec=ISecurityGroupRepository)
    repo.find_by_name.return_value = None
    return repo

@pytest.fixture
def engine(mock_org_repo, mock_space_repo, mock_app_repo, mock_service_instance_repo,
           mock_domain_repo, mock_security_group_repo) -> ConstraintEngine:
    return ConstraintEngine(mock_org_repo, mock_space_repo, mock_app_repo,
                            mock_service_instance_repo, mock_domain_repo, mock_security_group_repo)

@pytest.fixture
def org() -> models.Organization:
    return models.Organization(guid="org-1", name="acme", status="active")

@pytest.fixture
def space(org) -> models.Space:
    return models.Space(guid="space-1", name="dev", organization=org)

def add_manager(org: models.Organization, guid: str):
    models.OrganizationUserRole(user=models.User(guid=guid, username=guid), organization=org, role="manager")

# ===================================================================
#  이름 규칙 테스트
# ===================================================================
class TestNames:
    @pytest.mark.parametrize("name,expected", [
        ("plain", False),
        ("수박 & Co. \\ 🍉", False),
        ("line\nbreak", True),
        ("escape\x1b[0m", True),
    ])
    def test_has_control_characters(self, name, expected):
        assert has_control_characters(name) is expected

    def test_organization_name_rules_run_in_order(self, engine, mock_org_repo):
        """필수값 검사가 형식/유일성 검사보다 먼저 실행되는지 테스트합니다."""
        with pytest.raises(MissingFieldError):
            engine.validate(Operation.CREATE, models.Organization(name=""))
        mock_org_repo.find_by_name.assert_not_called()

    def test_duplicate_organization_name(self, engine, mock_org_repo, org):
        # 시나리오: 다른 조직이 같은 이름을 사용 중
        mock_org_repo.find_by_name.return_value = models.Organization(guid="org-2", name="acme")
        with pytest.raises(DuplicateNameError, match="Organization with name 'acme' already exists."):
            engine.validate(Operation.UPDATE, org)

    def test_renaming_to_own_name_is_allowed(self, engine, mock_org_repo, org):
        mock_org_repo.find_by_name.return_value = org
        engine.validate(Operation.UPDATE, org, {"name": "acme"})

    def test_proposed_name_is_checked_instead_of_current(self, engine, mock_org_repo, org):
        engine.validate(Operation.UPDATE, org, {"name": "renamed"})
        mock_org_repo.find_by_name.assert_called_once_with("renamed")

    def test_space_name_unique_within_organization(self, engine, mock_space_repo, space, org):
        mock_space_repo.find_by_name_and_organization.return_value = models.Space(guid="space-2", name="dev")
        with pytest.raises(DuplicateNameError, match="Space with name 'dev' already exists in the organization."):
            engine.validate(Operation.CREATE, space)
        mock_space_repo.find_by_name_and_organization.assert_called_once_with("dev", org)

# ===================================================================
#  조직 규칙 테스트
# ===================================================================
class TestOrganizationRules:
    def test_manager_floor_rejects_emptying(self, engine, org):
        add_manager(org, "u1")
        with pytest.raises(LastManagerRemovalError, match="Cannot remove the last manager of the organization."):
            engine.validate(Operation.UPDATE, org, {"managers": []})

    def test_manager_floor_allows_replacement(self, engine, org):
        add_manager(org, "u1")
        engine.validate(Operation.UPDATE, org, {"managers": ["u2"]})

    def test_manager_floor_ignores_org_without_managers(self, engine, org):
        engine.validate(Operation.UPDATE, org, {"managers": []})

    def test_private_domain_of_other_org(self, engine, org):
        other = models.Organization(guid="org-2", name="other", status="active")
        domain = models.PrivateDomain(guid="d-1", name="other.example.com", owning_organization=other)
        with pytest.raises(UnauthorizedAccessToPrivateDomainError):
            engine.validate(Operation.UPDATE, org, {"domain": domain})

    def test_own_private_domain_and_shared_domain_are_allowed(self, engine, org):
        own = models.PrivateDomain(guid="d-1", name="acme.example.com", owning_organization=org)
        shared = models.SharedDomain(guid="d-2", name="example.com")
        engine.validate(Operation.UPDATE, org, {"domain": own})
        engine.validate(Operation.UPDATE, org, {"domain": shared})

    def test_invalid_status(self, engine, org):
        with pytest.raises(InvalidFormatError):
            engine.validate(Operation.UPDATE, org, {"status": "deleted"})

# ===================================================================
#  스페이스 / 앱 규칙 테스트
# ===================================================================
class TestSpaceAndAppRules:
    def test_space_member_must_belong_to_organization(self, engine, mock_org_repo, space, org):
        # === Arrange ===
        user = models.User(guid="u1", username="stranger")
        mock_org_repo.has_role.return_value = False

        # === Act & Assert ===
        with pytest.raises(InvalidRelationError):
            engine.validate(Operation.UPDATE, space, {"member": user})
        mock_org_repo.has_role.assert_called_once_with(user, org, "user")

    @pytest.mark.parametrize("field,value", [
        ("memory", 0), ("memory", -1), ("instances", -1), ("memory", "512"), ("state", "RUNNING"),
    ])
    def test_invalid_app_attributes(self, engine, space, field, value):
        app = models.App(guid="app-1", name="web", space=space, memory=128, instances=1, state="STOPPED")
        with pytest.raises(InvalidFormatError):
            engine.validate(Operation.UPDATE, app, {field: value})

    def test_memory_quota_exceeded(self, engine, mock_org_repo, org, space):
        """쿼터 500에서 450을 사용 중일 때 100MB 앱은 거부되는지 테스트합니다."""
        # === Arrange ===
        org.quota_definition = models.QuotaDefinition(name="small", memory_limit=500)
        mock_org_repo.memory_used.return_value = 450
        app = models.App(name="web", space=space, memory=100, instances=1, state="STOPPED")

        # === Act & Assert ===
        with pytest.raises(QuotaExceededError, match="You have exceeded your organization's memory limit."):
            engine.validate(Operation.CREATE, app)
        mock_org_repo.memory_used.assert_called_once_with(org, exclude_app=None)

    def test_memory_quota_allows_exact_fit(self, engine, mock_org_repo, org, space):
        org.quota_definition = models.QuotaDefinition(name="small", memory_limit=500)
        mock_org_repo.memory_used.return_value = 450
        engine.validate(Operation.CREATE, models.App(name="web", space=space, memory=50, instances=1, state="STOPPED"))

    def test_scaling_down_skips_quota_check(self, engine, mock_org_repo, org, space):
        # 시나리오: 이미 쿼터를 넘긴 조직이라도 축소는 허용됨
        org.quota_definition = models.QuotaDefinition(name="small", memory_limit=100)
        mock_org_repo.memory_used.return_value = 1000
        app = models.App(id=1, name="web", space=space, memory=512, instances=2, state="STARTED")

        engine.validate(Operation.UPDATE, app, {"instances": 1})

        mock_org_repo.memory_used.assert_not_called()

    def test_no_quota_means_no_limit(self, engine, mock_org_repo, space):
        engine.validate(Operation.CREATE, models.App(name="web", space=space, memory=1 << 20, instances=10, state="STOPPED"))
        mock_org_repo.memory_used.assert_not_called()

# ===================================================================
#  서비스 바인딩 / 라우트 규칙 테스트
# ===================================================================
class TestBindingAndRouteRules:
    def test_binding_across_spaces(self, engine, org, space):
        other_space = models.Space(guid="space-2", name="prod", organization=org)
        app = models.App(guid="app-1", name="web", space=space)
        instance = models.UserProvidedServiceInstance(guid="si-1", name="ups", space=other_space)
        with pytest.raises(InvalidServiceBindingError,
                           match="The app and the service instance must be in the same space."):
            engine.validate(Operation.CREATE, models.ServiceBinding(app=app, service_instance=instance))

    def test_duplicate_binding(self, engine, mock_service_instance_repo, space):
        app = models.App(guid="app-1", name="web", space=space)
        instance = models.UserProvidedServiceInstance(guid="si-1", name="ups", space=space)
        mock_service_instance_repo.find_binding.return_value = models.ServiceBinding(guid="existing")
        with pytest.raises(DuplicateNameError, match="The app is already bound to the service instance."):
            engine.validate(Operation.CREATE, models.ServiceBinding(app=app, service_instance=instance))

    def test_route_on_private_domain_of_other_org(self, engine, space):
        other = models.Organization(guid="org-2", name="other", status="active")
        domain = models.PrivateDomain(guid="d-1", name="other.example.com", owning_organization=other)
        with pytest.raises(UnauthorizedAccessToPrivateDomainError):
            engine.validate(Operation.CREATE, models.Route(host="web", domain=domain, space=space))

    def test_route_on_shared_domain(self, engine, mock_domain_repo, space):
        domain = models.SharedDomain(guid="d-1", name="example.com")
        route = models.Route(host="web", domain=domain, space=space)
        engine.validate(Operation.CREATE, route)
        mock_domain_repo.find_route.assert_called_once_with("web", domain)

# ===================================================================
#  보안 그룹 규칙 테스트
# ===================================================================
class TestSecurityGroupRules:
    def test_valid_rules(self, engine):
        rules = [
            {"protocol": "tcp", "destination": "10.0.0.0/8", "ports": "443"},
            {"protocol": "icmp", "destination": "0.0.0.0/0", "type": 0, "code": 0},
            {"protocol": "all", "destination": "192.168.0.1"},
        ]
        engine.validate(Operation.CREATE, models.SecurityGroup(name="sg", rules=rules))

    @pytest.mark.parametrize("rule,message", [
        ({"protocol": "ftp", "destination": "0.0.0.0/0"}, "protocol"),
        ({"protocol": "tcp"}, "destination"),
        ({"protocol": "udp", "destination": "0.0.0.0/0"}, "ports"),
        ({"protocol": "icmp", "destination": "0.0.0.0/0", "type": 0}, "code"),
    ])
    def test_invalid_rules(self, engine, rule, message):
        with pytest.raises(InvalidFormatError, match=rf"Rules\[0\]: .*{message}"):
            engine.validate(Operation.CREATE, models.SecurityGroup(name="sg", rules=[rule]))

    def test_duplicate_security_group_name(self, engine, mock_security_group_repo):
        mock_security_group_repo.find_by_name.return_value = models.SecurityGroup(guid="sg-0", name="sg")
        with pytest.raises(DuplicateNameError, match="Security group with name 'sg' already exists."):
            engine.validate(Operation.CREATE, models.SecurityGroup(name="sg", rules=[]))

    def test_unknown_node_has_no_rules(self, engine):
        assert engine.rules_for(models.User(username="alice")) == []
