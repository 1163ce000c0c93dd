from .http_question_service import HttpQuestionService

__all__ = ["HttpQuestionService"]
