"""Search components: chain context, proposal moves and the Metropolis driver"""

from .case_info import CaseInfo
from .transformations import (
    MoveKind,
    StepResult,
    TOMTransformation,
    metropolis_accept,
    move_table,
    step
)
from .metropolis import MetropolisSearch, ChainResult, run_chain

__all__ = [
    'CaseInfo',
    'MoveKind',
    'StepResult',
    'TOMTransformation',
    'metropolis_accept',
    'move_table',
    'step',
    'MetropolisSearch',
    'ChainResult',
    'run_chain',
]
