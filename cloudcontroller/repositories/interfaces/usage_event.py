from abc import ABC, abstractmethod
from typing import List, Optional, Type
from cloudcontroller.database import models

class IUsageEventRepository(ABC):
    @abstractmethod
    def add(self, event):
        """사용량/과금 이벤트를 추가합니다. 이벤트는 수정되거나 삭제되지 않습니다."""
        pass

    @abstractmethod
    def list_usage_events(self, event_class: Type[models.UsageEvent] = models.UsageEvent,
                          org_guid: Optional[str] = None) -> List[models.UsageEvent]:
        """사용량 이벤트를 기록 순서대로 조회합니다."""
        pass

    @abstractmethod
    def list_billing_events(self, event_class: Type[models.BillingEvent] = models.BillingEvent,
                            organization_guid: Optional[str] = None) -> List[models.BillingEvent]:
        """과금 이벤트를 기록 순서대로 조회합니다."""
        pass
