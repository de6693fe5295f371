import logging
from typing import Any, Dict, List, Optional

from cloudcontroller.database import models
from cloudcontroller.database.models.app import STARTED, STOPPED
from cloudcontroller.repositories.interfaces import IAppRepository, ISpaceRepository, IUnitOfWork
from cloudcontroller.services.authorization import Actor, AuthorizationFilter, Operation
from cloudcontroller.services.cascade import CascadeDeleter, DeletedSet
from cloudcontroller.services.constraints import ConstraintEngine
from cloudcontroller.services.exceptions import AppNotFoundError, SpaceNotFoundError
from cloudcontroller.services.representations import app_annotations_repr, app_repr
from cloudcontroller.services.usage_events import APP, UsageEventEmitter

logger = logging.getLogger(__name__)


class AppService:
    """
    앱의 생성, 스케일 조정, 시작/정지, 삭제를 담당합니다.
    상태 전이는 모두 사용량 이벤트로 기록됩니다.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        app_repo: IAppRepository,
        space_repo: ISpaceRepository,
        authz: AuthorizationFilter,
        constraints: ConstraintEngine,
        emitter: UsageEventEmitter,
        cascade: CascadeDeleter,
    ):
        self.uow = uow
        self.app_repo = app_repo
        self.space_repo = space_repo
        self.authz = authz
        self.constraints = constraints
        self.emitter = emitter
        self.cascade = cascade

    def find(self, actor: Actor, app_guid: str) -> models.App:
        app = self.app_repo.find_by_guid(app_guid)
        if not app or not self.authz.can_read(actor, app):
            raise AppNotFoundError("App not found")
        return app

    def create(self, actor: Actor, name: str, space_guid: str, memory: int = 1024,
               instances: int = 1, state: str = STOPPED) -> Dict[str, Any]:
        """
        스페이스에 앱을 생성합니다. STARTED 상태로 생성하면 STARTED 이벤트를 기록합니다.

        Raises:
            SpaceNotFoundError: 스페이스가 없거나 보이지 않을 때.
            QuotaExceededError: 조직의 메모리 쿼터를 초과할 때.
        """
        with self.uow.transaction():
            space = self.space_repo.find_by_guid(space_guid)
            if not space:
                raise SpaceNotFoundError("Space not found")
            app = models.App(name=(name or "").strip(), space=space, memory=memory,
                             instances=instances, state=state, package_state="PENDING")
            try:
                self.authz.ensure(actor, Operation.CREATE, app)
                self.constraints.validate(Operation.CREATE, app)
            except Exception:
                space.apps.remove(app)
                raise
            self.app_repo.create(app)
            if app.is_started():
                self.emitter.record(APP, app, STARTED, space.organization)
            logger.info("Created app %s in space %s", app.guid, space.guid)
            return app_repr(app)

    def get(self, actor: Actor, app_guid: str) -> Dict[str, Any]:
        return app_repr(self.find(actor, app_guid))

    def list(self, actor: Actor, space_guid: Optional[str] = None) -> List[Dict[str, Any]]:
        return [app_repr(a) for a in self.authz.visible_set(actor, "app", scope=space_guid)]

    def update(self, actor: Actor, app_guid: str, name: Optional[str] = None, memory: Optional[int] = None,
               instances: Optional[int] = None, state: Optional[str] = None) -> Dict[str, Any]:
        """
        앱의 이름, 메모리, 인스턴스 수, 상태를 변경합니다.

        상태가 바뀌면 새 상태의 이벤트를, 실행 중인 앱의 메모리나 인스턴스 수가 바뀌면
        새 크기로 STARTED 이벤트를 다시 기록합니다.
        """
        with self.uow.transaction():
            app = self.find(actor, app_guid)
            self.authz.ensure(actor, Operation.UPDATE, app)

            proposed: Dict[str, Any] = {}
            if name is not None:
                proposed["name"] = name.strip()
            if memory is not None:
                proposed["memory"] = memory
            if instances is not None:
                proposed["instances"] = instances
            if state is not None:
                proposed["state"] = state
            self.constraints.validate(Operation.UPDATE, app, proposed)

            was_started = app.is_started()
            rescaled = any(proposed.get(f, getattr(app, f)) != getattr(app, f) for f in ("memory", "instances"))
            for field, value in proposed.items():
                setattr(app, field, value)
            self.app_repo.save(app)

            organization = app.space.organization
            if app.is_started() != was_started:
                self.emitter.record(APP, app, app.state, organization)
            elif was_started and rescaled:
                self.emitter.record(APP, app, STARTED, organization)
            return app_repr(app)

    def start(self, actor: Actor, app_guid: str) -> Dict[str, Any]:
        return self.update(actor, app_guid, state=STARTED)

    def stop(self, actor: Actor, app_guid: str) -> Dict[str, Any]:
        return self.update(actor, app_guid, state=STOPPED)

    def delete(self, actor: Actor, app_guid: str) -> DeletedSet:
        """앱과 그 서비스 바인딩을 삭제합니다. 실행 중이던 앱은 STOPPED 이벤트를 남깁니다."""
        with self.uow.transaction():
            app = self.find(actor, app_guid)
            self.authz.ensure(actor, Operation.DELETE, app)
            return self.cascade.delete(app)

    # --- 주석(annotations) ---
    def set_annotation(self, actor: Actor, app_guid: str, key: str, value: Optional[str]) -> Dict[str, Any]:
        """
        앱에 주석을 추가하거나, 같은 key가 있으면 값을 바꿉니다. (앱 수정 권한 필요)

        Raises:
            AppNotFoundError: 앱이 없거나 보이지 않을 때.
            MissingFieldError, InvalidFormatError: key 또는 value 검증 실패 시.
        """
        with self.uow.transaction():
            app = self.find(actor, app_guid)
            self.authz.ensure(actor, Operation.UPDATE, app)
            key = (key or "").strip()
            annotation = self.app_repo.find_annotation(app, key) if key else None
            if annotation is not None:
                self.constraints.validate(Operation.UPDATE, annotation, {"value": value})
                annotation.value = value
            else:
                annotation = models.AppAnnotation(app=app, key=key, value=value)
                try:
                    self.constraints.validate(Operation.CREATE, annotation)
                except Exception:
                    app.annotations.remove(annotation)
                    raise
            self.app_repo.save_annotation(annotation)
            logger.debug("Set annotation %s on app %s", key, app.guid)
            return app_annotations_repr(app)

    def list_annotations(self, actor: Actor, app_guid: str) -> Dict[str, Any]:
        return app_annotations_repr(self.find(actor, app_guid))

    def delete_annotation(self, actor: Actor, app_guid: str, key: str) -> Dict[str, Any]:
        """주석을 삭제합니다. 없는 key는 무시합니다."""
        with self.uow.transaction():
            app = self.find(actor, app_guid)
            self.authz.ensure(actor, Operation.UPDATE, app)
            annotation = self.app_repo.find_annotation(app, (key or "").strip())
            if annotation is not None:
                self.app_repo.delete_annotation(annotation)
            return app_annotations_repr(app)
