"""questionkit - immutable question/query model for saved analytics cards."""

from questionkit.errors import (
    CardNotFound,
    InvalidToken,
    InvalidVariantAccess,
    QuestionError,
    UnknownQueryType,
)
from questionkit.question import Question

__version__ = "0.1.0"

__all__ = [
    "CardNotFound",
    "InvalidToken",
    "InvalidVariantAccess",
    "Question",
    "QuestionError",
    "UnknownQueryType",
    "__version__",
]
