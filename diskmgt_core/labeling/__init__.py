from .autolabel import (
    LABEL_RULES,
    PURPOSE_RULES,
    auto_register_all,
    build_registration,
    infer_label,
    infer_purpose,
)

__all__ = [
    'LABEL_RULES',
    'PURPOSE_RULES',
    'auto_register_all',
    'build_registration',
    'infer_label',
    'infer_purpose',
]
