from .geometry_utils import axis_rotation, euler_rotation, is_rotation_matrix, ARCSECONDS_TO_RADIANS

__all__ = [
    'axis_rotation',
    'euler_rotation',
    'is_rotation_matrix',
    'ARCSECONDS_TO_RADIANS',
]
