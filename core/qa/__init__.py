"""Question answering over indexed projects."""

from .answerer import AnswerStream, QuestionAnswerer, build_context

__all__ = ["AnswerStream", "QuestionAnswerer", "build_context"]
