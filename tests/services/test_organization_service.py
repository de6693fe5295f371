# tests/services/test_organization_service.py
import pytest

from cloudcontroller.database import models
from cloudcontroller.services.authorization import Actor
from cloudcontroller.services.exceptions import *

# ===================================================================
#  조직 생성/조회(Organization Lifecycle) 테스트
# ===================================================================
class TestOrganizationLifecycle:
    def test_create_organization_uses_default_quota(self, services, admin):
        """쿼터를 지정하지 않으면 'default' 쿼터가 연결되는지 테스트합니다."""
        # === Arrange ===
        quota = services["organizations"].create_quota_definition(admin, "default", 10240)

        # === Act ===
        org = services["organizations"].create(admin, "acme")

        # === Assert ===
        assert org["name"] == "acme"
        assert org["status"] == "active"
        assert org["billing_enabled"] is False
        assert org["relationships"]["quota"]["data"]["guid"] == quota["guid"]
        assert org["relationships"]["managers"]["data"] == []

    def test_create_fails_if_name_exists(self, services, admin, org):
        """같은 이름의 조직이 있으면 DuplicateNameError가 발생하는지 테스트합니다."""
        with pytest.raises(DuplicateNameError, match="Organization with name 'acme' already exists."):
            services["organizations"].create(admin, "acme")
        # 검증: 실패한 생성은 롤백되어 조직이 하나만 남아야 함
        assert [o["name"] for o in services["organizations"].list(admin)] == ["acme"]

    def test_name_accepts_unicode_and_punctuation(self, services, admin):
        """유니코드, 구두점, 역슬래시가 포함된 이름은 허용되는지 테스트합니다."""
        name = "수박 & Co. \\ 🍉"
        org = services["organizations"].create(admin, name)
        assert org["name"] == name

    @pytest.mark.parametrize("name", ["bad\nname", "esc\x1bname", "tab\tname"])
    def test_name_rejects_control_characters(self, services, admin, name):
        with pytest.raises(InvalidFormatError):
            services["organizations"].create(admin, name)

    def test_name_is_required(self, services, admin):
        with pytest.raises(MissingFieldError):
            services["organizations"].create(admin, "   ")

    def test_non_admin_cannot_create_organization(self, services, make_user, actor_for):
        """관리자가 아니면 조직을 생성할 수 없는지 테스트합니다."""
        actor = actor_for(make_user("alice"))
        with pytest.raises(AuthorizationError):
            services["organizations"].create(actor, "acme")

    def test_invisible_organization_is_not_found(self, services, org):
        """역할이 없는 사용자에게는 조직이 존재하지 않는 것처럼 보이는지 테스트합니다."""
        outsider = Actor(user_guid="outsider")
        with pytest.raises(OrganizationNotFoundError, match="Organization not found"):
            services["organizations"].get(outsider, org["guid"])
        assert services["organizations"].list(outsider) == []

    def test_org_user_sees_organization(self, services, admin, org, make_user, actor_for):
        user_guid = make_user("alice")
        services["organizations"].add_user(admin, org["guid"], user_guid)

        visible = services["organizations"].list(actor_for(user_guid))

        assert [o["guid"] for o in visible] == [org["guid"]]

# ===================================================================
#  조직 역할(Organization Roles) 테스트
# ===================================================================
class TestOrganizationRoles:
    def test_last_manager_cannot_be_removed(self, services, admin, org, make_user):
        """매니저를 한 명씩 제거하다가 마지막 매니저 제거는 거부되는지 테스트합니다."""
        # === Arrange ===
        org_service = services["organizations"]
        u1, u2 = make_user("u1"), make_user("u2")
        org_service.add_manager(admin, org["guid"], u1)
        org_service.add_manager(admin, org["guid"], u2)

        # === Act ===
        result = org_service.remove_manager(admin, org["guid"], u1)

        # === Assert ===
        assert result["relationships"]["managers"]["data"] == [{"guid": u2}]
        with pytest.raises(LastManagerRemovalError, match="Cannot remove the last manager of the organization."):
            org_service.remove_manager(admin, org["guid"], u2)
        # 검증: 거부된 뒤에도 u2는 여전히 매니저여야 함
        assert org_service.list_users(admin, org["guid"], "manager") == [u2]

    def test_set_managers_replaces_but_never_empties(self, services, admin, org, make_user):
        org_service = services["organizations"]
        u1, u2 = make_user("u1"), make_user("u2")
        org_service.add_manager(admin, org["guid"], u2)

        with pytest.raises(LastManagerRemovalError):
            org_service.set_managers(admin, org["guid"], [])

        result = org_service.set_managers(admin, org["guid"], [u1])
        assert result["relationships"]["managers"]["data"] == [{"guid": u1}]
        # 검증: 매니저로 지정된 사용자는 조직 구성원(user)으로도 등록됨
        assert u1 in org_service.list_users(admin, org["guid"])

    def test_organization_without_managers_can_be_updated(self, services, admin, org):
        """매니저가 없던 조직은 매니저 없이도 갱신할 수 있는지 테스트합니다."""
        result = services["organizations"].set_managers(admin, org["guid"], [])
        assert result["relationships"]["managers"]["data"] == []

    def test_unknown_role_is_rejected(self, services, admin, org, make_user):
        with pytest.raises(InvalidFormatError):
            services["organizations"].add_role(admin, org["guid"], make_user("u1"), "owner")

    def test_manager_can_rename_but_not_change_status(self, services, admin, org, make_user, actor_for):
        """조직 매니저는 이름만 바꿀 수 있고, 상태 변경은 관리자 전용인지 테스트합니다."""
        # === Arrange ===
        manager_guid = make_user("manager")
        services["organizations"].add_manager(admin, org["guid"], manager_guid)
        manager = actor_for(manager_guid)

        # === Act ===
        renamed = services["organizations"].update(manager, org["guid"], name="acme-renamed")

        # === Assert ===
        assert renamed["name"] == "acme-renamed"
        with pytest.raises(AuthorizationError):
            services["organizations"].update(manager, org["guid"], status="suspended")

    def test_org_auditor_cannot_update(self, services, admin, org, make_user, actor_for):
        """조직을 볼 수는 있지만 쓰기 권한이 없으면 404가 아닌 403(AuthorizationError)인지 테스트합니다."""
        auditor_guid = make_user("auditor")
        services["organizations"].add_auditor(admin, org["guid"], auditor_guid)

        with pytest.raises(AuthorizationError):
            services["organizations"].update(actor_for(auditor_guid), org["guid"], name="other")

    def test_suspended_organization_is_read_only_for_managers(self, services, admin, org, make_user, actor_for):
        # === Arrange ===
        manager_guid = make_user("manager")
        services["organizations"].add_manager(admin, org["guid"], manager_guid)
        services["organizations"].update(admin, org["guid"], status="suspended")
        manager = actor_for(manager_guid)

        # === Act & Assert ===
        assert services["organizations"].get(manager, org["guid"])["status"] == "suspended"
        with pytest.raises(AuthorizationError, match="suspended"):
            services["spaces"].create(manager, "prod", org["guid"])

    def test_invalid_status_is_rejected(self, services, admin, org):
        with pytest.raises(InvalidFormatError):
            services["organizations"].update(admin, org["guid"], status="deleted")

    def test_remove_user_with_space_roles_fails(self, services, admin, org, space, make_user):
        """스페이스 역할이 남아 있는 사용자는 비재귀적으로 조직에서 제거할 수 없는지 테스트합니다."""
        # === Arrange ===
        user_guid = make_user("dev")
        services["organizations"].add_user(admin, org["guid"], user_guid)
        services["spaces"].add_role(admin, space["guid"], user_guid, "developer")

        # === Act & Assert ===
        with pytest.raises(AssociationNotEmptyError,
                           match="Please delete the user associations for your spaces in the organization."):
            services["organizations"].remove_user(admin, org["guid"], user_guid)
        assert user_guid in services["organizations"].list_users(admin, org["guid"])

    def test_remove_user_recursive_removes_space_roles(self, services, admin, org, space, make_user):
        # === Arrange ===
        user_guid = make_user("dev")
        services["organizations"].add_user(admin, org["guid"], user_guid)
        services["spaces"].add_role(admin, space["guid"], user_guid, "developer")
        services["spaces"].add_role(admin, space["guid"], user_guid, "auditor")

        # === Act ===
        services["organizations"].remove_user_recursive(admin, org["guid"], user_guid)

        # === Assert ===
        assert user_guid not in services["organizations"].list_users(admin, org["guid"])
        assert services["spaces"].list_users(admin, space["guid"], "developer") == []
        assert services["spaces"].list_users(admin, space["guid"], "auditor") == []

    def test_space_role_requires_org_membership(self, services, admin, space, make_user):
        with pytest.raises(InvalidRelationError):
            services["spaces"].add_role(admin, space["guid"], make_user("stranger"), "developer")

# ===================================================================
#  도메인(Domain) 테스트
# ===================================================================
class TestOrganizationDomains:
    def test_add_private_domain_owned_by_another_org_fails(self, services, admin):
        """다른 조직이 소유한 프라이빗 도메인은 추가할 수 없는지 테스트합니다."""
        # === Arrange ===
        org_a = services["organizations"].create(admin, "org-a")
        org_b = services["organizations"].create(admin, "org-b")
        domain = services["domains"].create_private(admin, "a.example.com", org_a["guid"])

        # === Act & Assert ===
        with pytest.raises(UnauthorizedAccessToPrivateDomainError):
            services["organizations"].add_domain(admin, org_b["guid"], domain["guid"])

    def test_manager_cannot_see_foreign_private_domain(self, services, admin, make_user, actor_for):
        """다른 조직의 프라이빗 도메인은 그 조직 구성원이 아닌 매니저에게 404로 응답하는지 테스트합니다."""
        # === Arrange ===
        org_a = services["organizations"].create(admin, "org-a")
        org_b = services["organizations"].create(admin, "org-b")
        domain = services["domains"].create_private(admin, "a.example.com", org_a["guid"])
        manager_guid = make_user("b-manager")
        services["organizations"].add_manager(admin, org_b["guid"], manager_guid)

        # === Act & Assert ===
        with pytest.raises(DomainNotFoundError, match="Domain not found"):
            services["organizations"].add_domain(actor_for(manager_guid), org_b["guid"], domain["guid"])
        with pytest.raises(DomainNotFoundError):
            services["organizations"].add_domain(actor_for(manager_guid), org_b["guid"], "no-such-domain")

    def test_add_own_or_shared_domain_is_noop(self, services, admin):
        # === Arrange ===
        org_a = services["organizations"].create(admin, "org-a")
        private = services["domains"].create_private(admin, "a.example.com", org_a["guid"])
        shared = services["domains"].create_shared(admin, "shared.example.com")

        # === Act ===
        services["organizations"].add_domain(admin, org_a["guid"], private["guid"])
        services["organizations"].add_domain(admin, org_a["guid"], shared["guid"])
        domains = services["organizations"].list_domains(admin, org_a["guid"])

        # === Assert ===
        # 검증: 이미 소유한 도메인을 다시 추가해도 목록에는 한 번만 나타남
        assert [d["name"] for d in domains] == ["a.example.com", "shared.example.com"]
        assert domains[0]["type"] == "private_domain"
        assert domains[0]["relationships"]["organization"]["data"]["guid"] == org_a["guid"]

    def test_shared_domain_requires_admin(self, services, org, make_user, actor_for):
        with pytest.raises(AuthorizationError):
            services["domains"].create_shared(actor_for(make_user("alice")), "shared.example.com")

# ===================================================================
#  쿼터(Quota) 테스트
# ===================================================================
class TestMemoryQuota:
    def test_memory_remaining(self, services, admin):
        """limit 500에서 (200 x 2) + (50 x 1)을 사용하면 50이 남는지 테스트합니다."""
        # === Arrange ===
        quota = services["organizations"].create_quota_definition(admin, "small", 500)
        org = services["organizations"].create(admin, "small-org", quota_definition_guid=quota["guid"])
        space = services["spaces"].create(admin, "dev", org["guid"])
        services["apps"].create(admin, "big", space["guid"], memory=200, instances=2, state="STARTED")
        services["apps"].create(admin, "small", space["guid"], memory=50, instances=1)

        # === Act ===
        remaining = services["organizations"].memory_remaining(admin, org["guid"])

        # === Assert ===
        assert remaining == 50
        with pytest.raises(QuotaExceededError, match="You have exceeded your organization's memory limit."):
            services["apps"].create(admin, "too-big", space["guid"], memory=100, instances=1)

    def test_memory_remaining_without_quota(self, services, admin, org):
        assert services["organizations"].memory_remaining(admin, org["guid"]) is None

# ===================================================================
#  과금(Billing) 테스트
# ===================================================================
class TestBilling:
    def test_enabling_billing_records_start_events(self, billing_services, admin):
        """과금이 켜지면 조직, 실행 중인 앱, 관리형 서비스마다 시작 이벤트가 기록되는지 테스트합니다."""
        # === Arrange ===
        services = billing_services
        org = services["organizations"].create(admin, "acme")
        space = services["spaces"].create(admin, "dev", org["guid"])
        services["apps"].create(admin, "running", space["guid"], memory=128, state="STARTED")
        services["apps"].create(admin, "stopped", space["guid"], memory=128)
        plan = services["service_instances"].create_service_plan(admin, "small")
        services["service_instances"].create_managed(admin, "db", space["guid"], plan["guid"])
        services["service_instances"].create_user_provided(admin, "ups", space["guid"])
        # 시나리오: 과금이 꺼져 있는 동안에는 과금 이벤트가 없음
        assert services["usage_events"].list_billing_events(organization_guid=org["guid"]) == []

        # === Act ===
        services["organizations"].update(admin, org["guid"], billing_enabled=True)

        # === Assert ===
        events = services["usage_events"].list_billing_events(organization_guid=org["guid"])
        assert [type(e) for e in events] == [
            models.OrganizationStartEvent, models.AppStartEvent, models.ServiceCreateEvent,
        ]
        assert events[1].resource_name == "running"
        assert events[2].resource_name == "db"

    def test_billing_events_follow_app_transitions(self, billing_services, admin):
        services = billing_services
        org = services["organizations"].create(admin, "acme", billing_enabled=True)
        space = services["spaces"].create(admin, "dev", org["guid"])
        app = services["apps"].create(admin, "web", space["guid"], memory=128)

        services["apps"].start(admin, app["guid"])
        services["apps"].stop(admin, app["guid"])

        events = services["usage_events"].list_billing_events(organization_guid=org["guid"])
        assert [type(e) for e in events] == [
            models.OrganizationStartEvent, models.AppStartEvent, models.AppStopEvent,
        ]

    def test_no_billing_events_when_setting_disabled(self, services, admin, org):
        """billing_event_writing_enabled 설정이 꺼져 있으면 조직 과금을 켜도 이벤트가 없는지 테스트합니다."""
        services["organizations"].update(admin, org["guid"], billing_enabled=True)
        assert services["usage_events"].list_billing_events() == []
