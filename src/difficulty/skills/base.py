"""
Base interface for all skill estimators.
Strategy Pattern implementation.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
from src.difficulty.core import CalculationContext


class SkillStrategy(ABC):
    """모든 스킬 계산기의 부모 클래스"""

    # 일부 스킬은 샘플 개수 등 추가 파라미터가 필요할 수 있음
    def __init__(self, **kwargs):
        self.params = kwargs

    @abstractmethod
    def calculate(self, ctx: CalculationContext) -> Dict[str, Any]:
        """컨텍스트를 받아 스킬 결과를 딕셔너리로 반환 (필요 시 컨텍스트에 이력 기록)"""
        pass
