from abc import ABC, abstractmethod
from typing import ContextManager


class IUnitOfWork(ABC):
    @abstractmethod
    def transaction(self, savepoint: bool = False) -> ContextManager[None]:
        """
        하나의 원자적 작업 단위를 엽니다.

        최상위 호출은 블록이 정상 종료되면 commit, 예외가 발생하면 rollback 합니다.
        이미 열린 트랜잭션 안에서 savepoint=True로 호출하면 SAVEPOINT를 만들어
        해당 블록만 되돌릴 수 있고, savepoint=False이면 바깥 트랜잭션에 합류합니다.
        """
        pass
