"""Turn exam PDFs into timed, self-scoring quizzes."""

__version__ = "0.1.0"
