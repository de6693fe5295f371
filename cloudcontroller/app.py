# cloudcontroller/app.py
from wsgiref.simple_server import make_server
from urllib.parse import parse_qs
import json
import logging
import re

# SQLAlchemy 및 의존성 임포트
from cloudcontroller.config import Settings, get_settings
from cloudcontroller.database.database import SessionLocal
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_unit_of_work import SqlalchemyUnitOfWork
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_organization_repository import SqlalchemyOrganizationRepository
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_space_repository import SqlalchemySpaceRepository
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_domain_repository import SqlalchemyDomainRepository
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_app_repository import SqlalchemyAppRepository
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_service_instance_repository import SqlalchemyServiceInstanceRepository
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_security_group_repository import SqlalchemySecurityGroupRepository
from cloudcontroller.repositories.sqlalchemy.sqlalchemy_usage_event_repository import SqlalchemyUsageEventRepository
from cloudcontroller.services.authorization import AuthorizationFilter
from cloudcontroller.services.cascade import CascadeDeleter
from cloudcontroller.services.constraints import ConstraintEngine
from cloudcontroller.services.usage_events import UsageEventEmitter
from cloudcontroller.services.identity_service import IdentityService
from cloudcontroller.services.organization_service import OrganizationService
from cloudcontroller.services.space_service import SpaceService
from cloudcontroller.services.app_service import AppService
from cloudcontroller.services.service_instance_service import ServiceInstanceService
from cloudcontroller.services.security_group_service import SecurityGroupService
from cloudcontroller.services.domain_service import DomainService
from cloudcontroller.services.exceptions import *
from cloudcontroller.utils.encryption import CredentialCipher, generate_key

logger = logging.getLogger(__name__)

GUID = r'([0-9a-fA-F-]+)'

# --------------------------------------------------------------------------
## 의존성 조립
# --------------------------------------------------------------------------

def build_services(db_session, settings: Settings, cipher: CredentialCipher):
    """하나의 DB 세션을 공유하는 리포지토리와 서비스 객체들을 생성합니다."""
    uow = SqlalchemyUnitOfWork(db_session)
    user_repo = SqlalchemyUserRepository(db_session)
    org_repo = SqlalchemyOrganizationRepository(db_session)
    space_repo = SqlalchemySpaceRepository(db_session)
    domain_repo = SqlalchemyDomainRepository(db_session)
    app_repo = SqlalchemyAppRepository(db_session)
    service_instance_repo = SqlalchemyServiceInstanceRepository(db_session)
    security_group_repo = SqlalchemySecurityGroupRepository(db_session)
    event_repo = SqlalchemyUsageEventRepository(db_session)

    authz = AuthorizationFilter(org_repo, space_repo, app_repo, service_instance_repo, domain_repo, security_group_repo)
    constraints = ConstraintEngine(org_repo, space_repo, app_repo, service_instance_repo, domain_repo, security_group_repo)
    emitter = UsageEventEmitter(event_repo, settings.billing_event_writing_enabled)
    cascade = CascadeDeleter(uow, org_repo, space_repo, app_repo, service_instance_repo, domain_repo, emitter)

    return {
        'identity': IdentityService(uow, user_repo, settings.token_ttl_minutes),
        'organizations': OrganizationService(uow, org_repo, space_repo, user_repo, domain_repo,
                                             authz, constraints, emitter, cascade),
        'spaces': SpaceService(uow, space_repo, org_repo, user_repo, authz, constraints, cascade),
        'apps': AppService(uow, app_repo, space_repo, authz, constraints, emitter, cascade),
        'service_instances': ServiceInstanceService(uow, service_instance_repo, space_repo, app_repo, org_repo,
                                                    authz, constraints, emitter, cascade, cipher),
        'security_groups': SecurityGroupService(uow, security_group_repo, space_repo, authz, constraints),
        'domains': DomainService(uow, domain_repo, org_repo, space_repo, authz, constraints, cascade),
        'usage_events': event_repo,
    }

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_request_data(environ):
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        return json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise ValueError("Invalid or missing JSON body.")

def get_actor(environ):
    auth_token = environ.get('HTTP_X_AUTH_TOKEN')
    if not auth_token:
        raise TokenInvalidError("Missing 'X-Auth-Token' header.")
    return environ['services']['identity'].resolve_actor(auth_token)

def is_recursive(environ) -> bool:
    params = parse_qs(environ.get("QUERY_STRING", ""))
    return params.get("recursive", ["false"])[0].lower() == "true"

def relationship_guids(data, name):
    """v3 형식의 {"relationships": {name: {"data": [{"guid": ...}]}}}에서 guid 목록을 꺼냅니다."""
    related = (data.get("relationships") or {}).get(name) or {}
    return [item["guid"] for item in related.get("data") or []]

# 상위 클래스가 뒤에 와야 합니다.
ERROR_STATUSES = (
    (TokenInvalidError, "401 Unauthorized"),
    (AuthenticationError, "401 Unauthorized"),
    (AuthorizationError, "403 Forbidden"),
    (NotFoundError, "404 Not Found"),
    (ValidationError, "422 Unprocessable Entity"),
    (ConstraintViolation, "422 Unprocessable Entity"),
    (ValueError, "400 Bad Request"),
)

def handle_exception(e):
    for error_class, status in ERROR_STATUSES:
        if isinstance(e, error_class):
            break
    else:
        status = "500 Internal Server Error"
        logger.exception("Unhandled error while processing request")

    body = {"error": str(e)}
    if isinstance(e, ApiError):
        body["code"] = e.code
    return status, json.dumps(body)

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

def create_app(session_factory=None, settings: Settings = None):
    """
    WSGI 애플리케이션을 생성합니다.

    Args:
        session_factory: 요청마다 DB 세션을 만들 팩토리. 생략하면 SessionLocal.
        settings: 애플리케이션 설정. 생략하면 환경 변수에서 읽은 설정.
    """
    settings = settings or get_settings()
    session_factory = session_factory or SessionLocal

    encryption_key = settings.encryption_key
    if not encryption_key:
        # 키가 없으면 프로세스가 재시작될 때 기존 자격 증명을 복호화할 수 없습니다.
        logger.warning("CC_DB_ENCRYPTION_KEY is not set; using an ephemeral encryption key")
        encryption_key = generate_key()
    cipher = CredentialCipher(encryption_key)

    routes = [
        ('POST', r'^/v3/auth/tokens$', auth_tokens_handler),
        ('GET', r'^/v3/organizations$', list_organizations_handler),
        ('POST', r'^/v3/organizations$', create_organization_handler),
        ('GET', rf'^/v3/organizations/{GUID}$', get_organization_handler),
        ('PATCH', rf'^/v3/organizations/{GUID}$', update_organization_handler),
        ('DELETE', rf'^/v3/organizations/{GUID}$', delete_organization_handler),
        ('PUT', rf'^/v3/organizations/{GUID}/users/{GUID}$', add_organization_user_handler),
        ('DELETE', rf'^/v3/organizations/{GUID}/users/{GUID}$', remove_organization_user_handler),
        ('GET', r'^/v3/spaces$', list_spaces_handler),
        ('POST', r'^/v3/spaces$', create_space_handler),
        ('DELETE', rf'^/v3/spaces/{GUID}$', delete_space_handler),
        ('GET', r'^/v3/apps$', list_apps_handler),
        ('POST', r'^/v3/apps$', create_app_handler),
        ('POST', rf'^/v3/apps/{GUID}/actions/(start|stop)$', app_action_handler),
        ('DELETE', rf'^/v3/apps/{GUID}$', delete_app_handler),
        ('GET', rf'^/v3/apps/{GUID}/annotations$', list_app_annotations_handler),
        ('PUT', rf'^/v3/apps/{GUID}/annotations/(.+)$', set_app_annotation_handler),
        ('DELETE', rf'^/v3/apps/{GUID}/annotations/(.+)$', delete_app_annotation_handler),
        ('POST', r'^/v3/service_bindings$', create_service_binding_handler),
        ('GET', r'^/v3/security_groups$', list_security_groups_handler),
        ('POST', r'^/v3/security_groups$', create_security_group_handler),
        ('GET', rf'^/v3/security_groups/{GUID}$', get_security_group_handler),
        ('PATCH', rf'^/v3/security_groups/{GUID}$', update_security_group_handler),
        ('DELETE', rf'^/v3/security_groups/{GUID}$', delete_security_group_handler),
    ]

    def application(environ, start_response):
        db_session = session_factory()
        try:
            # 1. 의존성 생성 (Repositories -> Services) 후 environ을 통해 핸들러에 전달
            environ['services'] = build_services(db_session, settings, cipher)

            # 2. 라우팅 및 핸들러 실행
            path = environ.get("PATH_INFO", "")
            method = environ.get("REQUEST_METHOD", "")

            handler, path_args = None, []
            for route_method, pattern, route_handler in routes:
                if method == route_method and (match := re.match(pattern, path)):
                    handler, path_args = route_handler, match.groups()
                    break

            if handler:
                status, response_body = handler(environ, *path_args)
            else:
                status, response_body = '404 Not Found', json.dumps({'error': 'Not Found'})

        except Exception as e:
            status, response_body = handle_exception(e)
        finally:
            db_session.close()

        start_response(status, [("Content-Type", "application/json")])
        return [response_body.encode("utf-8")]

    return application

# --------------------------------------------------------------------------
## 핸들러 함수
# --------------------------------------------------------------------------

def auth_tokens_handler(environ, *args):
    data = get_request_data(environ)
    token = environ['services']['identity'].authenticate(data.get('username'), data.get('password'))
    return '201 Created', json.dumps(token)

def list_organizations_handler(environ, *args):
    orgs = environ['services']['organizations'].list(get_actor(environ))
    return '200 OK', json.dumps({"resources": orgs})

def create_organization_handler(environ, *args):
    actor = get_actor(environ)
    data = get_request_data(environ)
    org = environ['services']['organizations'].create(
        actor, data.get('name'), quota_definition_guid=data.get('quota_definition_guid'),
    )
    return '201 Created', json.dumps(org)

def get_organization_handler(environ, org_guid):
    org = environ['services']['organizations'].get(get_actor(environ), org_guid)
    return '200 OK', json.dumps(org)

def update_organization_handler(environ, org_guid):
    actor = get_actor(environ)
    data = get_request_data(environ)
    org = environ['services']['organizations'].update(
        actor, org_guid,
        name=data.get('name'),
        status=data.get('status'),
        billing_enabled=data.get('billing_enabled'),
        quota_definition_guid=data.get('quota_definition_guid'),
    )
    return '200 OK', json.dumps(org)

def delete_organization_handler(environ, org_guid):
    environ['services']['organizations'].delete(get_actor(environ), org_guid, recursive=is_recursive(environ))
    return '204 No Content', ''

def add_organization_user_handler(environ, org_guid, user_guid):
    org = environ['services']['organizations'].add_user(get_actor(environ), org_guid, user_guid)
    return '200 OK', json.dumps(org)

def remove_organization_user_handler(environ, org_guid, user_guid):
    service = environ['services']['organizations']
    if is_recursive(environ):
        service.remove_user_recursive(get_actor(environ), org_guid, user_guid)
    else:
        service.remove_user(get_actor(environ), org_guid, user_guid)
    return '204 No Content', ''

def list_spaces_handler(environ, *args):
    params = parse_qs(environ.get("QUERY_STRING", ""))
    org_guid = params.get("organization_guids", [None])[0]
    spaces = environ['services']['spaces'].list(get_actor(environ), organization_guid=org_guid)
    return '200 OK', json.dumps({"resources": spaces})

def create_space_handler(environ, *args):
    actor = get_actor(environ)
    data = get_request_data(environ)
    org = ((data.get("relationships") or {}).get("organization") or {}).get("data") or {}
    org_guid = org.get("guid") or data.get("organization_guid")
    space = environ['services']['spaces'].create(actor, data.get('name'), org_guid)
    return '201 Created', json.dumps(space)

def delete_space_handler(environ, space_guid):
    environ['services']['spaces'].delete(get_actor(environ), space_guid, recursive=is_recursive(environ))
    return '204 No Content', ''

def list_apps_handler(environ, *args):
    params = parse_qs(environ.get("QUERY_STRING", ""))
    space_guid = params.get("space_guids", [None])[0]
    apps = environ['services']['apps'].list(get_actor(environ), space_guid=space_guid)
    return '200 OK', json.dumps({"resources": apps})

def create_app_handler(environ, *args):
    actor = get_actor(environ)
    data = get_request_data(environ)
    options = {k: data[k] for k in ('memory', 'instances', 'state') if k in data}
    app = environ['services']['apps'].create(actor, data.get('name'), data.get('space_guid'), **options)
    return '201 Created', json.dumps(app)

def app_action_handler(environ, app_guid, action):
    service = environ['services']['apps']
    actor = get_actor(environ)
    app = service.start(actor, app_guid) if action == 'start' else service.stop(actor, app_guid)
    return '200 OK', json.dumps(app)

def delete_app_handler(environ, app_guid):
    environ['services']['apps'].delete(get_actor(environ), app_guid)
    return '204 No Content', ''

def list_app_annotations_handler(environ, app_guid):
    annotations = environ['services']['apps'].list_annotations(get_actor(environ), app_guid)
    return '200 OK', json.dumps(annotations)

def set_app_annotation_handler(environ, app_guid, key):
    data = get_request_data(environ)
    annotations = environ['services']['apps'].set_annotation(get_actor(environ), app_guid, key, data.get('value'))
    return '200 OK', json.dumps(annotations)

def delete_app_annotation_handler(environ, app_guid, key):
    environ['services']['apps'].delete_annotation(get_actor(environ), app_guid, key)
    return '204 No Content', ''

def create_service_binding_handler(environ, *args):
    actor = get_actor(environ)
    data = get_request_data(environ)
    binding = environ['services']['service_instances'].create_service_binding(
        actor, data.get('app_guid'), data.get('service_instance_guid'),
    )
    return '201 Created', json.dumps(binding)

def list_security_groups_handler(environ, *args):
    groups = environ['services']['security_groups'].list(get_actor(environ))
    return '200 OK', json.dumps({"resources": groups})

def create_security_group_handler(environ, *args):
    actor = get_actor(environ)
    data = get_request_data(environ)
    globally_enabled = data.get('globally_enabled') or {}
    group = environ['services']['security_groups'].create(
        actor, data.get('name'),
        rules=data.get('rules'),
        running=bool(globally_enabled.get('running', False)),
        staging=bool(globally_enabled.get('staging', False)),
        staging_space_guids=relationship_guids(data, 'staging_spaces'),
        running_space_guids=relationship_guids(data, 'running_spaces'),
    )
    return '201 Created', json.dumps(group)

def get_security_group_handler(environ, security_group_guid):
    group = environ['services']['security_groups'].get(get_actor(environ), security_group_guid)
    return '200 OK', json.dumps(group)

def update_security_group_handler(environ, security_group_guid):
    actor = get_actor(environ)
    data = get_request_data(environ)
    globally_enabled = data.get('globally_enabled') or {}
    group = environ['services']['security_groups'].update(
        actor, security_group_guid,
        name=data.get('name'),
        rules=data.get('rules'),
        running=globally_enabled.get('running'),
        staging=globally_enabled.get('staging'),
    )
    return '200 OK', json.dumps(group)

def delete_security_group_handler(environ, security_group_guid):
    environ['services']['security_groups'].delete(get_actor(environ), security_group_guid)
    return '204 No Content', ''


application = create_app()

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    try:
        with make_server("", 8000, application) as httpd:
            logger.info("Serving cloud controller on port 8000...")
            httpd.serve_forever()
    except Exception:
        logger.exception("Error starting server")
