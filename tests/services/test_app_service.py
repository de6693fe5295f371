# tests/services/test_app_service.py
import pytest

from cloudcontroller.database import models
from cloudcontroller.services.exceptions import *

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def apps(services):
    return services["apps"]

@pytest.fixture
def member(services, admin, org, space, make_user, actor_for):
    """스페이스 역할을 가진 사용자의 Actor를 만드는 함수"""
    def _member(username: str, role: str):
        user_guid = make_user(username)
        services["organizations"].add_user(admin, org["guid"], user_guid)
        services["spaces"].add_role(admin, space["guid"], user_guid, role)
        return actor_for(user_guid)
    return _member

def app_events(services, org_guid: str):
    events = services["usage_events"].list_usage_events(models.AppUsageEvent, org_guid=org_guid)
    return [(e.state, e.memory_in_mb_per_instance, e.instance_count) for e in events]

# ===================================================================
#  앱 생성 / 권한 테스트
# ===================================================================
class TestCreateApp:
    def test_create_stopped_app(self, services, apps, admin, org, space):
        app = apps.create(admin, "web", space["guid"])

        assert app["name"] == "web"
        assert app["state"] == "STOPPED"
        assert app["memory"] == 1024
        assert app["instances"] == 1
        assert app["relationships"]["space"]["data"]["guid"] == space["guid"]
        # 검증: 정지 상태로 생성된 앱은 이벤트를 남기지 않음
        assert app_events(services, org["guid"]) == []

    def test_create_started_app_records_event(self, services, apps, admin, org, space):
        apps.create(admin, "web", space["guid"], memory=256, instances=2, state="STARTED")
        assert app_events(services, org["guid"]) == [("STARTED", 256, 2)]

    def test_duplicate_name_in_space(self, apps, admin, space):
        apps.create(admin, "web", space["guid"])
        with pytest.raises(DuplicateNameError, match="App with name 'web' already exists in the space."):
            apps.create(admin, "web", space["guid"])

    def test_space_developer_can_create(self, apps, space, member):
        developer = member("dev", "developer")
        app = apps.create(developer, "web", space["guid"])
        assert [a["guid"] for a in apps.list(developer)] == [app["guid"]]

    def test_space_auditor_cannot_create(self, apps, space, member):
        with pytest.raises(AuthorizationError):
            apps.create(member("aud", "auditor"), "web", space["guid"])

    def test_outsider_sees_space_as_missing(self, apps, space, make_user, actor_for):
        """스페이스를 볼 수 없는 사용자의 생성 요청은 스페이스 404로 응답하는지 테스트합니다."""
        with pytest.raises(SpaceNotFoundError, match="Space not found"):
            apps.create(actor_for(make_user("nobody")), "web", space["guid"])

    def test_invalid_attributes(self, apps, admin, space):
        with pytest.raises(InvalidFormatError):
            apps.create(admin, "web", space["guid"], memory=0)
        assert apps.list(admin) == []

# ===================================================================
#  상태 전이 / 스케일 조정 테스트
# ===================================================================
class TestAppTransitions:
    def test_start_and_stop_record_events(self, services, apps, admin, org, space):
        app = apps.create(admin, "web", space["guid"], memory=128)

        started = apps.start(admin, app["guid"])
        apps.start(admin, app["guid"])  # 이미 실행 중이면 이벤트 없음
        stopped = apps.stop(admin, app["guid"])

        assert started["state"] == "STARTED"
        assert stopped["state"] == "STOPPED"
        assert app_events(services, org["guid"]) == [("STARTED", 128, 1), ("STOPPED", 128, 1)]

    def test_rescaling_running_app_records_new_size(self, services, apps, admin, org, space):
        app = apps.create(admin, "web", space["guid"], memory=128, state="STARTED")

        apps.update(admin, app["guid"], instances=3)

        assert app_events(services, org["guid"]) == [("STARTED", 128, 1), ("STARTED", 128, 3)]

    def test_rescaling_stopped_app_records_nothing(self, services, apps, admin, org, space):
        app = apps.create(admin, "web", space["guid"], memory=128)
        updated = apps.update(admin, app["guid"], memory=256, name="api")

        assert updated["name"] == "api"
        assert updated["memory"] == 256
        assert app_events(services, org["guid"]) == []

    def test_scale_up_respects_quota(self, services, apps, admin):
        # === Arrange ===
        quota = services["organizations"].create_quota_definition(admin, "small", 512)
        org = services["organizations"].create(admin, "small-org", quota_definition_guid=quota["guid"])
        space = services["spaces"].create(admin, "dev", org["guid"])
        app = apps.create(admin, "web", space["guid"], memory=256)

        # === Act & Assert ===
        apps.update(admin, app["guid"], instances=2)
        with pytest.raises(QuotaExceededError):
            apps.update(admin, app["guid"], instances=3)
        # 검증: 축소는 항상 허용됨
        assert apps.update(admin, app["guid"], instances=1)["instances"] == 1

# ===================================================================
#  삭제 테스트
# ===================================================================
class TestDeleteApp:
    def test_delete_started_app_records_stop(self, services, apps, admin, org, space):
        app = apps.create(admin, "web", space["guid"], memory=128, state="STARTED")
        ups = services["service_instances"].create_user_provided(admin, "ups", space["guid"])
        binding = services["service_instances"].create_service_binding(admin, app["guid"], ups["guid"])

        deleted = apps.delete(admin, app["guid"])

        assert deleted.items == [("service_binding", binding["guid"]), ("app", app["guid"])]
        with pytest.raises(AppNotFoundError):
            apps.get(admin, app["guid"])
        assert app_events(services, org["guid"]) == [("STARTED", 128, 1), ("STOPPED", 128, 1)]
        # 검증: 서비스 인스턴스는 남아 있음
        assert services["service_instances"].get(admin, ups["guid"])["name"] == "ups"

    def test_delete_stopped_app_records_nothing(self, services, apps, admin, org, space):
        app = apps.create(admin, "web", space["guid"])
        apps.delete(admin, app["guid"])
        assert app_events(services, org["guid"]) == []

# ===================================================================
#  주석(annotations) 테스트
# ===================================================================
class TestAppAnnotations:
    def test_set_and_list(self, apps, admin, space):
        app = apps.create(admin, "web", space["guid"])

        apps.set_annotation(admin, app["guid"], "owner", "team-a")
        result = apps.set_annotation(admin, app["guid"], "  example.com/contact  ", "ops@example.com")

        assert result == {"annotations": {"owner": "team-a", "example.com/contact": "ops@example.com"}}
        assert apps.list_annotations(admin, app["guid"]) == result
        assert apps.get(admin, app["guid"])["metadata"] == result

    def test_same_key_updates_value(self, apps, admin, space, db_session):
        """같은 key로 다시 설정하면 새 주석을 만들지 않고 값만 바뀌는지 테스트합니다."""
        app = apps.create(admin, "web", space["guid"])

        apps.set_annotation(admin, app["guid"], "owner", "team-a")
        result = apps.set_annotation(admin, app["guid"], "owner", "team-b")

        assert result == {"annotations": {"owner": "team-b"}}
        assert db_session.query(models.AppAnnotation).count() == 1

    def test_key_is_unique_per_app(self, apps, admin, space):
        web = apps.create(admin, "web", space["guid"])
        api = apps.create(admin, "api", space["guid"])

        apps.set_annotation(admin, web["guid"], "owner", "team-a")
        apps.set_annotation(admin, api["guid"], "owner", "team-b")

        # 검증: 다른 앱의 같은 key는 서로 영향을 주지 않음
        assert apps.list_annotations(admin, web["guid"]) == {"annotations": {"owner": "team-a"}}
        assert apps.list_annotations(admin, api["guid"]) == {"annotations": {"owner": "team-b"}}

    def test_delete_annotation(self, apps, admin, space):
        app = apps.create(admin, "web", space["guid"])
        apps.set_annotation(admin, app["guid"], "owner", "team-a")
        apps.set_annotation(admin, app["guid"], "tier", "frontend")

        assert apps.delete_annotation(admin, app["guid"], "owner") == {"annotations": {"tier": "frontend"}}
        # 검증: 없는 key 삭제는 무시됨
        assert apps.delete_annotation(admin, app["guid"], "owner") == {"annotations": {"tier": "frontend"}}

    @pytest.mark.parametrize("key, value, error", [
        ("", "x", MissingFieldError),
        ("bad\nkey", "x", InvalidFormatError),
        ("k" * 64, "x", InvalidFormatError),
        ("a/b/c", "x", InvalidFormatError),
        ("owner", "v" * 5001, InvalidFormatError),
    ])
    def test_invalid_annotation(self, apps, admin, space, key, value, error):
        app = apps.create(admin, "web", space["guid"])

        with pytest.raises(error):
            apps.set_annotation(admin, app["guid"], key, value)
        assert apps.list_annotations(admin, app["guid"]) == {"annotations": {}}

    def test_auditor_reads_but_cannot_write(self, apps, admin, space, member):
        app = apps.create(admin, "web", space["guid"])
        apps.set_annotation(admin, app["guid"], "owner", "team-a")
        auditor = member("aud", "auditor")

        assert apps.list_annotations(auditor, app["guid"]) == {"annotations": {"owner": "team-a"}}
        with pytest.raises(AuthorizationError):
            apps.set_annotation(auditor, app["guid"], "owner", "me")
        with pytest.raises(AuthorizationError):
            apps.delete_annotation(auditor, app["guid"], "owner")

    def test_developer_can_write(self, apps, admin, space, member):
        app = apps.create(admin, "web", space["guid"])
        result = apps.set_annotation(member("dev", "developer"), app["guid"], "owner", "team-a")
        assert result == {"annotations": {"owner": "team-a"}}

    def test_outsider_sees_app_as_missing(self, apps, admin, space, make_user, actor_for):
        app = apps.create(admin, "web", space["guid"])
        outsider = actor_for(make_user("nobody"))

        with pytest.raises(AppNotFoundError):
            apps.list_annotations(outsider, app["guid"])
        with pytest.raises(AppNotFoundError):
            apps.set_annotation(outsider, app["guid"], "owner", "me")

    def test_deleting_app_removes_annotations(self, apps, admin, space, db_session):
        app = apps.create(admin, "web", space["guid"])
        apps.set_annotation(admin, app["guid"], "owner", "team-a")
        annotation_guid = db_session.query(models.AppAnnotation).one().guid

        deleted = apps.delete(admin, app["guid"])

        assert deleted.items == [("app_annotation", annotation_guid), ("app", app["guid"])]
        assert db_session.query(models.AppAnnotation).count() == 0

    def test_space_recursive_delete_removes_annotations(self, services, apps, admin, space, db_session):
        app = apps.create(admin, "web", space["guid"])
        apps.set_annotation(admin, app["guid"], "owner", "team-a")

        deleted = services["spaces"].delete(admin, space["guid"], recursive=True)

        assert [kind for kind, _ in deleted.items] == ["app_annotation", "app", "space"]
        assert db_session.query(models.AppAnnotation).count() == 0
