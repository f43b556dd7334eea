"""
Pipeline services - action execution and generation
"""
from .action_generator import ActionGenerator
from .action_pipeline import ActionPipeline
from .factory import Components, build_components

__all__ = [
    'ActionGenerator',
    'ActionPipeline',
    'Components',
    'build_components',
]
