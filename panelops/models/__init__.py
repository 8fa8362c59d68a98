from .panel import Panel, PanelCredential, PanelEvent
from .client import Client
from .service import Service
from .subscription import Subscription
from .payment import Payment
from .cut import Cut, WeeklyCut
from .project import Project
from .goal import MonthlyGoal, ServiceGoal
from .setting import Setting
from .operator import Operator

__all__ = [
    'Panel', 'PanelCredential', 'PanelEvent',
    'Client', 'Service', 'Subscription', 'Payment',
    'Cut', 'WeeklyCut', 'Project',
    'MonthlyGoal', 'ServiceGoal', 'Setting', 'Operator'
]
