"""
서비스가 반환하는 리소스 표현(dict)을 만드는 함수 모음입니다.
to-many 관계는 중첩 객체 대신 {"data": [{"guid": ...}]} 형태의 식별자 목록만 노출합니다.
"""
from typing import Any, Dict, Iterable, Optional

from cloudcontroller.database import models


def iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def timestamps(resource) -> Dict[str, Optional[str]]:
    return {"created_at": iso(resource.created_at), "updated_at": iso(resource.updated_at)}


def to_one(node) -> Dict[str, Any]:
    return {"data": {"guid": node.guid} if node is not None else None}


def to_many(nodes: Iterable) -> Dict[str, Any]:
    return {"data": [{"guid": node.guid} for node in nodes]}


def quota_repr(quota: models.QuotaDefinition) -> Dict[str, Any]:
    return {
        "guid": quota.guid,
        **timestamps(quota),
        "name": quota.name,
        "memory_limit": quota.memory_limit,
        "total_services": quota.total_services,
    }


def organization_repr(org: models.Organization) -> Dict[str, Any]:
    return {
        "guid": org.guid,
        **timestamps(org),
        "name": org.name,
        "status": org.status,
        "billing_enabled": bool(org.billing_enabled),
        "relationships": {
            "quota": to_one(org.quota_definition),
            "managers": {"data": [{"guid": g} for g in org.user_guids_with_role(models.OrganizationRole.MANAGER.value)]},
        },
    }


def space_repr(space: models.Space) -> Dict[str, Any]:
    return {
        "guid": space.guid,
        **timestamps(space),
        "name": space.name,
        "relationships": {
            "organization": to_one(space.organization),
        },
    }


def app_repr(app: models.App) -> Dict[str, Any]:
    return {
        "guid": app.guid,
        **timestamps(app),
        "name": app.name,
        "state": app.state,
        "memory": app.memory,
        "instances": app.instances,
        "package_state": app.package_state,
        "metadata": app_annotations_repr(app),
        "relationships": {
            "space": to_one(app.space),
        },
    }


def app_annotations_repr(app: models.App) -> Dict[str, Any]:
    return {"annotations": {a.key: a.value for a in app.annotations}}


def service_instance_repr(instance: models.ServiceInstance) -> Dict[str, Any]:
    representation = {
        "guid": instance.guid,
        **timestamps(instance),
        "name": instance.name,
        "type": instance.type,
        "tags": instance.tags,
        "is_gateway_service": bool(instance.is_gateway_service),
        "relationships": {
            "space": to_one(instance.space),
        },
    }
    if isinstance(instance, models.ManagedServiceInstance):
        representation["relationships"]["service_plan"] = to_one(instance.service_plan)
    else:
        representation["syslog_drain_url"] = getattr(instance, "syslog_drain_url", None)
    return representation


def service_binding_repr(binding: models.ServiceBinding) -> Dict[str, Any]:
    return {
        "guid": binding.guid,
        **timestamps(binding),
        "relationships": {
            "app": to_one(binding.app),
            "service_instance": to_one(binding.service_instance),
        },
    }


def service_plan_repr(plan: models.ServicePlan) -> Dict[str, Any]:
    return {"guid": plan.guid, **timestamps(plan), "name": plan.name, "free": bool(plan.free)}


def domain_repr(domain: models.Domain) -> Dict[str, Any]:
    owner = getattr(domain, "owning_organization", None)
    return {
        "guid": domain.guid,
        **timestamps(domain),
        "name": domain.name,
        "type": domain.type,
        "relationships": {
            "organization": to_one(owner),
        },
    }


def route_repr(route: models.Route) -> Dict[str, Any]:
    return {
        "guid": route.guid,
        **timestamps(route),
        "host": route.host,
        "url": route.fqdn,
        "relationships": {
            "domain": to_one(route.domain),
            "space": to_one(route.space),
        },
    }


def security_group_repr(security_group: models.SecurityGroup) -> Dict[str, Any]:
    return {
        "guid": security_group.guid,
        **timestamps(security_group),
        "name": security_group.name,
        "globally_enabled": {
            "running": bool(security_group.running_default),
            "staging": bool(security_group.staging_default),
        },
        "rules": list(security_group.rules or []),
        "relationships": {
            "staging_spaces": to_many(security_group.staging_spaces),
            "running_spaces": to_many(security_group.running_spaces),
        },
    }


def usage_event_repr(event: models.UsageEvent) -> Dict[str, Any]:
    return {
        "guid": event.guid,
        **timestamps(event),
        "type": event.event_type,
        "state": event.state,
        "resource_guid": event.resource_guid,
        "resource_name": event.resource_name,
        "org_guid": event.org_guid,
        "space_guid": event.space_guid,
    }
