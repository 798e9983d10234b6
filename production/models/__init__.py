"""
Production Models Package
"""

from .production_order import ProductionOrder
from .stage import ProductionStage
from .rejection import RejectionLine
from .activity_log import StageActivity

__all__ = [
    'ProductionOrder',
    'ProductionStage',
    'RejectionLine',
    'StageActivity',
]
