import logging
from typing import List, Optional

from cloudcontroller.database import models
from cloudcontroller.database.models.app import STARTED, STOPPED
from cloudcontroller.repositories.interfaces import IUsageEventRepository

logger = logging.getLogger(__name__)

APP = "app"
SERVICE = "service"

CREATED = "CREATED"
DELETED = "DELETED"


class UsageEventEmitter:
    """
    리소스 생명주기 전이(생성/삭제/시작/정지)를 사용량 이벤트로 기록합니다.

    과금 이벤트는 billing_event_writing_enabled 설정과 조직의 billing_enabled가
    모두 켜져 있을 때만 함께 기록됩니다.
    """
    def __init__(self, event_repo: IUsageEventRepository, billing_event_writing_enabled: bool = False):
        self.event_repo = event_repo
        self.billing_event_writing_enabled = billing_event_writing_enabled

    def record(self, event_type: str, resource_ref, new_state: str, org_ref: models.Organization) -> models.UsageEvent:
        """
        사용량 이벤트 하나를 기록합니다.

        Args:
            event_type: 'app' 또는 'service'.
            resource_ref: 상태가 바뀐 App 또는 ServiceInstance.
            new_state: STARTED/STOPPED (앱), CREATED/DELETED (서비스).
            org_ref: 리소스가 속한 조직.
        """
        if event_type == APP:
            event = self._app_usage_event(resource_ref, new_state, org_ref)
        elif event_type == SERVICE:
            event = self._service_usage_event(resource_ref, new_state, org_ref)
        else:
            raise ValueError(f"Unknown usage event type '{event_type}'.")

        self.event_repo.add(event)
        logger.debug("Recorded %s usage event %s for %s (org %s)", event_type, new_state, resource_ref.guid, org_ref.guid)

        billing_event = self._billing_event_for(event_type, resource_ref, new_state, org_ref)
        if billing_event is not None:
            self.event_repo.add(billing_event)
        return event

    def billing_active(self, organization: models.Organization) -> bool:
        return bool(self.billing_event_writing_enabled and organization.billing_enabled)

    def start_billing(self, organization: models.Organization) -> List[models.BillingEvent]:
        """
        조직의 과금이 켜졌을 때 현재 상태를 기준으로 시작 이벤트를 기록합니다.
        (조직 1건, STARTED 앱마다 1건, 관리형 서비스 인스턴스마다 1건)
        """
        if not self.billing_active(organization):
            return []

        events: List[models.BillingEvent] = [
            models.OrganizationStartEvent(
                organization_guid=organization.guid,
                organization_name=organization.name,
            )
        ]
        for space in organization.spaces:
            for app in space.apps:
                if app.is_started():
                    events.append(self._app_billing_event(models.AppStartEvent, app, organization))
            for instance in space.service_instances:
                if isinstance(instance, models.ManagedServiceInstance):
                    events.append(self._service_billing_event(models.ServiceCreateEvent, instance, organization))

        for event in events:
            self.event_repo.add(event)
        logger.info("Billing started for organization %s (%d events)", organization.guid, len(events))
        return events

    def _billing_event_for(self, event_type, resource, new_state, organization) -> Optional[models.BillingEvent]:
        if not self.billing_active(organization):
            return None
        if event_type == APP:
            event_class = models.AppStartEvent if new_state == STARTED else models.AppStopEvent
            return self._app_billing_event(event_class, resource, organization)
        # 사용자 제공 서비스는 과금 대상이 아닙니다.
        if not isinstance(resource, models.ManagedServiceInstance):
            return None
        event_class = models.ServiceCreateEvent if new_state == CREATED else models.ServiceDeleteEvent
        return self._service_billing_event(event_class, resource, organization)

    @staticmethod
    def _app_usage_event(app: models.App, state: str, organization) -> models.AppUsageEvent:
        if state not in (STARTED, STOPPED):
            raise ValueError(f"Invalid app usage event state '{state}'.")
        return models.AppUsageEvent(
            state=state,
            resource_guid=app.guid,
            resource_name=app.name,
            org_guid=organization.guid,
            space_guid=app.space.guid,
            space_name=app.space.name,
            memory_in_mb_per_instance=app.memory,
            instance_count=app.instances,
        )

    @staticmethod
    def _service_usage_event(instance: models.ServiceInstance, state: str, organization) -> models.ServiceUsageEvent:
        if state not in (CREATED, DELETED):
            raise ValueError(f"Invalid service usage event state '{state}'.")
        plan = getattr(instance, "service_plan", None)
        return models.ServiceUsageEvent(
            state=state,
            resource_guid=instance.guid,
            resource_name=instance.name,
            org_guid=organization.guid,
            space_guid=instance.space.guid,
            space_name=instance.space.name,
            service_instance_type=instance.type,
            service_plan_guid=plan.guid if plan is not None else None,
        )

    @staticmethod
    def _app_billing_event(event_class, app: models.App, organization) -> models.BillingEvent:
        return event_class(
            organization_guid=organization.guid,
            organization_name=organization.name,
            space_guid=app.space.guid,
            resource_guid=app.guid,
            resource_name=app.name,
            memory=app.memory,
            instances=app.instances,
        )

    @staticmethod
    def _service_billing_event(event_class, instance, organization) -> models.BillingEvent:
        plan = instance.service_plan
        return event_class(
            organization_guid=organization.guid,
            organization_name=organization.name,
            space_guid=instance.space.guid,
            resource_guid=instance.guid,
            resource_name=instance.name,
            service_plan_guid=plan.guid if plan is not None else None,
        )
