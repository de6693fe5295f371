from typing import List, Optional, Type
from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import IUsageEventRepository
from .base import SqlalchemyRepository

class SqlalchemyUsageEventRepository(SqlalchemyRepository, IUsageEventRepository):
    def add(self, event):
        self.db.add(event)
        self.db.flush()
        return event

    def list_usage_events(self, event_class: Type[models.UsageEvent] = models.UsageEvent,
                          org_guid: Optional[str] = None) -> List[models.UsageEvent]:
        query = self.db.query(event_class)
        if org_guid is not None:
            query = query.filter(models.UsageEvent.org_guid == org_guid)
        return query.order_by(models.UsageEvent.id.asc()).all()

    def list_billing_events(self, event_class: Type[models.BillingEvent] = models.BillingEvent,
                            organization_guid: Optional[str] = None) -> List[models.BillingEvent]:
        query = self.db.query(event_class)
        if organization_guid is not None:
            query = query.filter(models.BillingEvent.organization_guid == organization_guid)
        return query.order_by(models.BillingEvent.id.asc()).all()
